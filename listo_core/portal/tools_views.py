import logging

from django.contrib import messages
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_POST

from .contract_utils import scan_contract_upload
from .decorators import signed_in_required
from .errors import ListoError, friendly_error
from .forms import ContractScanForm, Form1099Form
from .models import ContractScan, Form1099
from .storage_utils import delete_quietly
from .tax_forms import generate_1099

logger = logging.getLogger(__name__)


@signed_in_required
def contract_scanner(request):
    scan = None
    if request.method == "POST":
        form = ContractScanForm(request.POST, request.FILES)
        if form.is_valid():
            try:
                scan = scan_contract_upload(request.user, form.cleaned_data["file"])
            except ListoError as exc:
                logger.warning("Contract scan failed for user %s: %s", request.user.pk, exc)
                messages.error(request, friendly_error(exc, "The contract could not be translated."))
            else:
                messages.success(request, "Contract translated.")
    else:
        form = ContractScanForm()
        scan_id = request.GET.get("scan")
        if scan_id and scan_id.isascii() and scan_id.isdigit():
            scan = ContractScan.objects.filter(pk=int(scan_id), user=request.user).first()
    context = {
        "form": form,
        "scan": scan,
        "history": ContractScan.objects.filter(user=request.user)[:10],
    }
    return render(request, "portal/tools/contract_scanner.html", context)


@signed_in_required
def form_1099(request):
    if request.method == "POST":
        form = Form1099Form(request.POST, user=request.user)
        if form.is_valid():
            try:
                record = generate_1099(request.user, form.cleaned_data["worker"], form.cleaned_data["tax_year"])
            except ListoError as exc:
                messages.error(request, friendly_error(exc))
            else:
                messages.success(request, f"1099-NEC generated for {record.payee_name} ({record.tax_year}).")
                return redirect("portal:form_1099")
    else:
        form = Form1099Form(user=request.user)
    context = {
        "form": form,
        "records": Form1099.objects.filter(user=request.user).select_related("worker"),
    }
    return render(request, "portal/tools/form_1099.html", context)


@signed_in_required
@require_POST
def form_1099_delete(request, pk):
    record = get_object_or_404(Form1099, pk=pk, user=request.user)
    delete_quietly(record.pdf_path)
    record.delete()
    messages.success(request, "1099-NEC deleted.")
    return redirect("portal:form_1099")
