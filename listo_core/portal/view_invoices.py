import logging

from django.contrib import messages
from django.http import HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.utils import timezone
from django.views.decorators.http import require_POST

from .account_utils import get_profile
from .decorators import signed_in_required
from .errors import ListoError, friendly_error
from .forms import InvoiceForm, line_items_from_post
from .invoice_utils import (
    compute_invoice_totals,
    copy_invoice,
    email_invoice,
    render_invoice_pdf,
    save_invoice,
)
from .models import Invoice

logger = logging.getLogger(__name__)


@signed_in_required
def invoice_list(request):
    invoices = Invoice.objects.filter(user=request.user)
    return render(request, "portal/invoices/list.html", {"invoices": invoices})


def _issuer_initial(user):
    profile = get_profile(user)
    return {
        "from_name": profile.company_name or profile.display_name,
        "from_email": profile.email or user.email,
        "from_phone": profile.phone_number,
        "from_address": profile.address_display,
        "invoice_date": timezone.localdate(),
    }


@signed_in_required
def invoice_edit(request, pk=None):
    """Create a new invoice or update an existing one in place."""
    invoice = get_object_or_404(Invoice, pk=pk, user=request.user) if pk else None
    if request.method == "POST":
        form = InvoiceForm(request.POST, instance=invoice)
        items = line_items_from_post(request.POST)
        if form.is_valid():
            action = request.POST.get("action", "save")
            target = None if action == "copy" else invoice
            try:
                saved = save_invoice(request.user, form.cleaned_data, items, target)
            except ListoError as exc:
                messages.error(request, friendly_error(exc))
            else:
                if action == "copy":
                    messages.success(request, f"Saved a copy as {saved.invoice_number}.")
                else:
                    messages.success(request, f"Invoice {saved.invoice_number} saved.")
                return redirect("portal:invoice_edit", pk=saved.pk)
    else:
        form = InvoiceForm(instance=invoice, initial={} if invoice else _issuer_initial(request.user))
        items = [
            {"description": item.description, "qty": item.qty, "unit_price": item.unit_price}
            for item in invoice.items.all()
        ] if invoice else []

    form_data = form.data if form.is_bound else {}
    totals = compute_invoice_totals(
        items,
        form_data.get("tax_rate_pct", invoice.tax_rate_pct if invoice else 0),
        form_data.get("discount", invoice.discount if invoice else 0),
        form_data.get("deposit", invoice.deposit if invoice else 0),
    )
    context = {
        "form": form,
        "invoice": invoice,
        "items": items or [{"description": "", "qty": "1", "unit_price": ""}],
        "totals": totals,
    }
    return render(request, "portal/invoices/edit.html", context)


@signed_in_required
@require_POST
def invoice_copy(request, pk):
    invoice = get_object_or_404(Invoice, pk=pk, user=request.user)
    duplicate = copy_invoice(invoice)
    messages.success(request, f"Copied to {duplicate.invoice_number}.")
    return redirect("portal:invoice_edit", pk=duplicate.pk)


@signed_in_required
@require_POST
def invoice_delete(request, pk):
    invoice = get_object_or_404(Invoice, pk=pk, user=request.user)
    number = invoice.invoice_number
    invoice.delete()
    messages.success(request, f"Invoice {number} deleted.")
    return redirect("portal:invoices")


@signed_in_required
def invoice_pdf(request, pk):
    invoice = get_object_or_404(Invoice, pk=pk, user=request.user)
    try:
        pdf = render_invoice_pdf(invoice)
    except ListoError as exc:
        messages.error(request, friendly_error(exc))
        return redirect("portal:invoice_edit", pk=invoice.pk)
    response = HttpResponse(pdf, content_type="application/pdf")
    disposition = "inline" if request.GET.get("inline") == "1" else "attachment"
    response["Content-Disposition"] = f'{disposition}; filename="Invoice_{invoice.invoice_number}.pdf"'
    return response


@signed_in_required
@require_POST
def invoice_send(request, pk):
    invoice = get_object_or_404(Invoice, pk=pk, user=request.user)
    try:
        email_invoice(invoice)
    except ListoError as exc:
        logger.warning("Invoice %s email failed: %s", invoice.pk, exc)
        messages.error(request, friendly_error(exc, "The invoice could not be sent."))
    else:
        messages.success(request, f"Invoice sent to {invoice.to_email}.")
    return redirect("portal:invoice_edit", pk=invoice.pk)
