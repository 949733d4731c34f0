import logging

from django.contrib import messages
from django.shortcuts import redirect, render
from django.utils import timezone
from django.views.decorators.http import require_POST

from .account_utils import get_profile
from .agreement_pdf import AGREEMENT_CLAUSES, render_agreement_pdf
from .decorators import signed_in_required
from .errors import ListoError, friendly_error
from .formatting import safe_storage_name
from .forms import AgreementForm, CoiExpiryForm, CoiUploadForm, W9FilingForm
from .models import Agreement, PrequalStatus, W9Form
from .prequal import (
    coi_reminder_state,
    get_prequal,
    run_coi_ocr,
    set_coi_expiry,
    store_coi_upload,
    store_prequal_pdf,
)
from .w9_layout import preview_elements, render_w9_pdf

logger = logging.getLogger(__name__)


@signed_in_required
def prequal_overview(request):
    status = get_prequal(request.user)
    context = {
        "status": status,
        "coi_state": coi_reminder_state(status),
        "coi_form": CoiUploadForm(),
        "expiry_form": CoiExpiryForm(initial={"expires_on": status.coi_expires_on}),
        "w9_record": W9Form.objects.filter(user=request.user).first(),
        "agreement_record": Agreement.objects.filter(user=request.user).first(),
    }
    return render(request, "portal/prequal/overview.html", context)


def _w9_initial(user):
    profile = get_profile(user)
    return {
        "name": profile.display_name,
        "business_name": profile.company_name,
        "address": profile.street,
        "city": profile.city,
        "state": profile.state,
        "zip_code": profile.zip_code,
    }


@signed_in_required
def w9_form(request):
    record = W9Form.objects.filter(user=request.user).first() or W9Form(user=request.user)
    if request.method == "POST":
        form = W9FilingForm(request.POST, instance=record)
        if form.is_valid():
            record = form.save(commit=False)
            record.signature_data_url = form.cleaned_data["signature"]
            record.save()
            try:
                pdf = render_w9_pdf(record)
                store_prequal_pdf(
                    request.user,
                    PrequalStatus.DOC_W9,
                    record,
                    pdf,
                    f"W9_{safe_storage_name(record.name, 'form')}.pdf",
                )
            except (ListoError, OSError) as exc:
                logger.exception("W-9 PDF generation failed for user %s", request.user.pk)
                messages.error(request, friendly_error(exc, "The W-9 PDF could not be generated."))
            else:
                messages.success(request, "W-9 saved. Your pre-qualification checklist has been updated.")
                return redirect("portal:prequal")
    else:
        initial = {} if record.pk else _w9_initial(request.user)
        form = W9FilingForm(instance=record, initial=initial)
    context = {
        "form": form,
        "record": record,
        "preview": preview_elements(record),
    }
    return render(request, "portal/prequal/w9_form.html", context)


@signed_in_required
def agreement_form(request):
    record = Agreement.objects.filter(user=request.user).first() or Agreement(user=request.user)
    if request.method == "POST":
        form = AgreementForm(request.POST, instance=record)
        if form.is_valid():
            record = form.save(commit=False)
            record.signature_data_url = form.cleaned_data["signature"]
            record.signed_at = timezone.now()
            record.save()
            try:
                pdf = render_agreement_pdf(
                    company_name=record.company_name,
                    signer_name=record.signer_name,
                    signer_title=record.signer_title,
                    signed_on=timezone.localdate().strftime("%B %d, %Y"),
                    signature_data_url=record.signature_data_url,
                )
                store_prequal_pdf(
                    request.user,
                    PrequalStatus.DOC_AGREEMENT,
                    record,
                    pdf,
                    f"Subcontractor_Agreement_{safe_storage_name(record.signer_name, 'signed')}.pdf",
                )
            except (ListoError, OSError, ValueError) as exc:
                logger.exception("Agreement PDF generation failed for user %s", request.user.pk)
                messages.error(request, friendly_error(exc, "The agreement PDF could not be generated."))
            else:
                messages.success(request, "Agreement signed and saved.")
                return redirect("portal:prequal")
    else:
        initial = {}
        if not record.pk:
            profile = get_profile(request.user)
            initial = {"signer_name": profile.display_name, "company_name": profile.company_name}
        form = AgreementForm(instance=record, initial=initial)
    context = {"form": form, "record": record, "clauses": AGREEMENT_CLAUSES}
    return render(request, "portal/prequal/agreement_form.html", context)


@signed_in_required
@require_POST
def coi_upload(request):
    form = CoiUploadForm(request.POST, request.FILES)
    if not form.is_valid():
        messages.error(request, "Choose a certificate of insurance to upload.")
        return redirect("portal:prequal")
    try:
        store_coi_upload(request.user, form.cleaned_data["file"], form.cleaned_data.get("expires_on"))
    except (ListoError, OSError) as exc:
        messages.error(request, friendly_error(exc))
    else:
        messages.success(request, "Certificate of insurance uploaded.")
    return redirect("portal:prequal")


@signed_in_required
@require_POST
def coi_expiry(request):
    form = CoiExpiryForm(request.POST)
    if form.is_valid():
        set_coi_expiry(request.user, form.cleaned_data["expires_on"])
        messages.success(request, "Expiration date saved.")
    else:
        messages.error(request, "Enter a valid expiration date.")
    return redirect("portal:prequal")


@signed_in_required
@require_POST
def coi_scan(request):
    try:
        status = run_coi_ocr(request.user)
    except ListoError as exc:
        messages.error(request, friendly_error(exc))
    else:
        expires = status.coi_expires_on
        if expires:
            messages.success(request, f"Policy dates read. Earliest expiration: {expires:%b %d, %Y}.")
        else:
            messages.warning(request, "No expiration dates were found. Enter the date manually.")
    return redirect("portal:prequal")
