import logging

from django.contrib import messages
from django.http import HttpResponse
from django.shortcuts import redirect, render
from django.views.decorators.http import require_POST

from .audit_utils import (
    DOCUMENT_TYPES,
    add_document,
    get_packet,
    load_payroll_summary,
    questionnaire_rows,
    remove_document,
    render_audit_pdf,
    save_questionnaire,
    send_packet,
)
from .decorators import signed_in_required
from .errors import ListoError, friendly_error
from .forms import AuditContactForm, AuditDocumentForm, AuditPeriodForm, QuestionnaireForm
from .payroll_utils import period_summary

logger = logging.getLogger(__name__)


@signed_in_required
def audit_home(request):
    packet = get_packet(request.user)
    summary = None
    if packet.policy_start and packet.policy_end:
        summary = period_summary(request.user, packet.policy_start, packet.policy_end)
    context = {
        "packet": packet,
        "summary": summary,
        "period_form": AuditPeriodForm(
            initial={"policy_start": packet.policy_start, "policy_end": packet.policy_end}
        ),
        "contact_form": AuditContactForm(instance=packet),
        "document_form": AuditDocumentForm(),
        "questionnaire_form": QuestionnaireForm(initial=packet.questionnaire or {}),
        "questions": questionnaire_rows(packet),
        "document_labels": dict(DOCUMENT_TYPES),
    }
    return render(request, "portal/audit/home.html", context)


@signed_in_required
@require_POST
def audit_period(request):
    form = AuditPeriodForm(request.POST)
    if not form.is_valid():
        for error in form.non_field_errors() or ["Select both a policy start and end date."]:
            messages.error(request, error)
        return redirect("portal:audit")
    try:
        summary = load_payroll_summary(request.user, form.cleaned_data["policy_start"], form.cleaned_data["policy_end"])
    except ListoError as exc:
        messages.error(request, friendly_error(exc))
    else:
        if summary["rows"]:
            messages.success(request, f"Loaded {summary['grand_count']} payments for the policy period.")
        else:
            messages.info(request, "No payroll entries were found in that period.")
    return redirect("portal:audit")


@signed_in_required
@require_POST
def audit_contact(request):
    form = AuditContactForm(request.POST, instance=get_packet(request.user))
    if form.is_valid():
        form.save()
        messages.success(request, "Contact details saved.")
    else:
        messages.error(request, "Please check the contact details.")
    return redirect("portal:audit")


@signed_in_required
@require_POST
def audit_document_upload(request):
    form = AuditDocumentForm(request.POST, request.FILES)
    if not form.is_valid():
        messages.error(request, "Choose a document type and a file.")
        return redirect("portal:audit")
    try:
        entry = add_document(request.user, form.cleaned_data["doc_type"], form.cleaned_data["file"])
    except ListoError as exc:
        messages.error(request, friendly_error(exc))
    else:
        messages.success(request, f"{entry['fileName']} uploaded.")
    return redirect("portal:audit")


@signed_in_required
@require_POST
def audit_document_remove(request, index):
    removed = remove_document(request.user, index)
    if removed is None:
        messages.error(request, "That document is no longer in the list.")
    else:
        messages.success(request, f"{removed.get('fileName')} removed.")
    return redirect("portal:audit")


@signed_in_required
@require_POST
def audit_questionnaire(request):
    form = QuestionnaireForm(request.POST)
    if form.is_valid():
        save_questionnaire(request.user, form.cleaned_data)
        messages.success(request, "Questionnaire saved.")
    return redirect("portal:audit")


@signed_in_required
def audit_pdf(request):
    packet = get_packet(request.user)
    try:
        pdf = render_audit_pdf(packet)
    except ListoError as exc:
        messages.error(request, friendly_error(exc))
        return redirect("portal:audit")
    response = HttpResponse(pdf, content_type="application/pdf")
    response["Content-Disposition"] = 'attachment; filename="Audit_Package.pdf"'
    return response


@signed_in_required
@require_POST
def audit_send(request):
    packet = get_packet(request.user)
    try:
        send_packet(packet)
    except ListoError as exc:
        logger.warning("Audit package send failed for user %s: %s", request.user.pk, exc)
        messages.error(request, friendly_error(exc, "The audit package could not be sent. Your data is saved."))
    else:
        messages.success(request, f"Audit package sent to {packet.auditor_email}.")
    return redirect("portal:audit")
