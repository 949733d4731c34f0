import logging

from django.contrib import messages
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.utils import timezone
from django.views.decorators.http import require_POST

from .decorators import signed_in_required
from .errors import CallableFunctionError, ListoError, friendly_error
from .forms import PayrollEntryForm, PayrollFilterForm, WorkerDocumentForm, WorkerForm
from .models import PayrollEntry, Worker
from .payroll_utils import (
    PayrollFilter,
    add_payroll_entry,
    build_payroll_csv,
    build_payroll_workbook,
    filter_entries,
    load_entries,
    payroll_totals,
)
from .worker_utils import (
    DOCUMENT_FIELDS,
    delete_worker,
    remove_worker_document,
    run_w9_ocr,
    save_worker,
    store_worker_document,
)

logger = logging.getLogger(__name__)


def _payroll_filter(request):
    form = PayrollFilterForm(request.GET or None)
    if form.is_valid():
        data = form.cleaned_data
        return form, PayrollFilter(
            name=data.get("name") or "",
            method=data.get("method") or "",
            start=data.get("start"),
            end=data.get("end"),
        )
    return form, PayrollFilter()


def _filtered_entries(request):
    form, payroll_filter = _payroll_filter(request)
    return form, filter_entries(load_entries(request.user), payroll_filter)


@signed_in_required
def payroll_list(request):
    entries = load_entries(request.user)
    filter_form, payroll_filter = _payroll_filter(request)
    rows = filter_entries(entries, payroll_filter)
    if request.method == "POST":
        form = PayrollEntryForm(request.POST)
        if form.is_valid():
            data = form.cleaned_data
            entry = add_payroll_entry(
                request.user,
                employee_name=data["employee_name"],
                pay_date=data["pay_date"],
                amount=data["amount"],
                method=data["method"],
                memo=data.get("memo") or "",
            )
            logger.info("Payroll entry %s added for user %s", entry.pk, request.user.pk)
            messages.success(request, f"Payment to {entry.employee_name} saved.")
            return redirect("portal:payroll")
    else:
        form = PayrollEntryForm(initial={"pay_date": timezone.localdate(), "method": PayrollEntry.METHOD_CASH})
    context = {
        "form": form,
        "filter_form": filter_form,
        "entries": rows,
        "totals": payroll_totals(entries),
        "query_string": request.GET.urlencode(),
        "worker_names": Worker.objects.filter(user=request.user, archived=False).values_list("name", flat=True),
    }
    return render(request, "portal/payroll/list.html", context)


@signed_in_required
@require_POST
def payroll_delete(request, pk):
    entry = get_object_or_404(PayrollEntry, pk=pk, user=request.user)
    entry.delete()
    if request.headers.get("x-requested-with") == "XMLHttpRequest":
        return JsonResponse({"success": True})
    messages.success(request, "Payment deleted.")
    return redirect("portal:payroll")


@signed_in_required
def payroll_export_csv(request):
    _, rows = _filtered_entries(request)
    response = HttpResponse(build_payroll_csv(rows), content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = f'attachment; filename="payroll_{timezone.localdate():%Y-%m-%d}.csv"'
    return response


@signed_in_required
def payroll_export_xlsx(request):
    _, rows = _filtered_entries(request)
    response = HttpResponse(
        build_payroll_workbook(rows),
        content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
    response["Content-Disposition"] = f'attachment; filename="payroll_{timezone.localdate():%Y-%m-%d}.xlsx"'
    return response


@signed_in_required
def worker_list(request):
    show_archived = request.GET.get("archived") == "1"
    workers = Worker.objects.filter(user=request.user)
    if not show_archived:
        workers = workers.filter(archived=False)
    if request.method == "POST":
        form = WorkerForm(request.POST)
        if form.is_valid():
            worker = form.save(commit=False)
            worker.user = request.user
            save_worker(worker)
            messages.success(request, f"{worker.name} added.")
            return redirect("portal:worker_detail", pk=worker.pk)
    else:
        form = WorkerForm()
    context = {"workers": workers, "form": form, "show_archived": show_archived}
    return render(request, "portal/workers/list.html", context)


@signed_in_required
def worker_detail(request, pk):
    worker = get_object_or_404(Worker, pk=pk, user=request.user)
    if request.method == "POST":
        form = WorkerForm(request.POST, instance=worker)
        if form.is_valid():
            save_worker(form.save(commit=False))
            messages.success(request, "Worker saved.")
            return redirect("portal:worker_detail", pk=worker.pk)
    else:
        form = WorkerForm(instance=worker)
    documents = [
        (doc_type, getattr(worker, field))
        for doc_type, field in DOCUMENT_FIELDS.items()
    ]
    context = {
        "worker": worker,
        "form": form,
        "document_form": WorkerDocumentForm(),
        "documents": documents,
        "payments": worker.payroll_entries.order_by("-pay_date")[:20],
    }
    return render(request, "portal/workers/detail.html", context)


@signed_in_required
@require_POST
def worker_delete(request, pk):
    worker = get_object_or_404(Worker, pk=pk, user=request.user)
    name = worker.name
    delete_worker(worker)
    messages.success(request, f"{name} deleted.")
    return redirect("portal:workers")


@signed_in_required
@require_POST
def worker_archive(request, pk):
    worker = get_object_or_404(Worker, pk=pk, user=request.user)
    worker.archived = not worker.archived
    worker.save(update_fields=["archived", "updated_at"])
    messages.success(request, f"{worker.name} {'archived' if worker.archived else 'restored'}.")
    return redirect("portal:workers")


@signed_in_required
@require_POST
def worker_document_upload(request, pk):
    worker = get_object_or_404(Worker, pk=pk, user=request.user)
    form = WorkerDocumentForm(request.POST, request.FILES)
    if not form.is_valid():
        messages.error(request, "Choose a document type and a file.")
        return redirect("portal:worker_detail", pk=worker.pk)
    try:
        store_worker_document(worker, form.cleaned_data["doc_type"], form.cleaned_data["file"])
    except (ListoError, OSError) as exc:
        messages.error(request, friendly_error(exc))
    else:
        messages.success(request, "Document uploaded.")
    return redirect("portal:worker_detail", pk=worker.pk)


@signed_in_required
@require_POST
def worker_document_remove(request, pk, doc_type):
    worker = get_object_or_404(Worker, pk=pk, user=request.user)
    if doc_type not in DOCUMENT_FIELDS:
        messages.error(request, "Unknown document type.")
    else:
        remove_worker_document(worker, doc_type)
        messages.success(request, "Document removed.")
    return redirect("portal:worker_detail", pk=worker.pk)


@signed_in_required
@require_POST
def worker_w9_scan(request, pk):
    worker = get_object_or_404(Worker, pk=pk, user=request.user)
    try:
        worker = run_w9_ocr(worker)
    except CallableFunctionError as exc:
        logger.warning("W-9 OCR failed for worker %s: %s", worker.pk, exc)
        messages.error(request, friendly_error(exc))
    except ListoError as exc:
        messages.error(request, friendly_error(exc))
    else:
        if worker.w9_ocr_status == Worker.OCR_NEEDS_REVIEW:
            messages.warning(request, "The W-9 was hard to read. Please review the details by hand.")
        else:
            messages.success(request, "W-9 details read and saved.")
    return redirect("portal:worker_detail", pk=worker.pk)
