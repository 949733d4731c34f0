from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from django.db import transaction
from django.utils import timezone

from .cloud_functions import send_invoice_email
from .errors import ListoError
from .formatting import quantize_money, to_decimal
from .models import Invoice, InvoiceLineItem
from .pdf_utils import render_template_to_pdf

logger = logging.getLogger(__name__)

DECIMAL_ZERO = Decimal("0.00")

INVOICE_FIELDS = (
    "invoice_number",
    "invoice_date",
    "due_date",
    "project_name",
    "from_name",
    "from_email",
    "from_phone",
    "from_address",
    "to_name",
    "to_email",
    "to_phone",
    "to_address",
    "tax_rate_pct",
    "discount",
    "deposit",
    "notes",
    "payment_instructions",
)


@dataclass
class InvoiceTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal


def compute_invoice_totals(items: Iterable, tax_rate_pct=0, discount=0, deposit=0) -> InvoiceTotals:
    """Subtotal of qty x price, tax at ``tax_rate_pct``, never a negative total.

    ``items`` may be model instances or dicts with ``qty`` / ``unit_price``.
    """
    subtotal = Decimal("0")
    for item in items:
        if isinstance(item, dict):
            qty, price = item.get("qty"), item.get("unit_price")
        else:
            qty, price = item.qty, item.unit_price
        subtotal += to_decimal(qty) * to_decimal(price)
    tax = subtotal * to_decimal(tax_rate_pct) / Decimal("100")
    total = subtotal + tax - to_decimal(discount) - to_decimal(deposit)
    if total < 0:
        total = Decimal("0")
    return InvoiceTotals(subtotal=quantize_money(subtotal), tax=quantize_money(tax), total=quantize_money(total))


def make_invoice_number(today=None, rng=None) -> str:
    today = today or timezone.localdate()
    rng = rng or random
    return f"INV-{today:%Y%m%d}-{rng.randint(1000, 9999)}"


def clean_line_items(items: Iterable[dict]) -> list:
    """Drop rows without a description and coerce numbers."""
    cleaned = []
    for item in items:
        description = (item.get("description") or "").strip()
        if not description:
            continue
        cleaned.append(
            {
                "description": description,
                "qty": to_decimal(item.get("qty")),
                "unit_price": quantize_money(item.get("unit_price")),
            }
        )
    return cleaned


@transaction.atomic
def save_invoice(user, data: dict, items: Iterable[dict], invoice: Optional[Invoice] = None) -> Invoice:
    """Create ``invoice`` or update it in place, replacing its line items."""
    items = clean_line_items(items)
    if invoice is None:
        invoice = Invoice(user=user)
    elif invoice.user_id != user.pk:
        raise ListoError("Invoice not found.", code="not-found")

    for field in INVOICE_FIELDS:
        if field in data:
            setattr(invoice, field, data[field])
    if not (invoice.invoice_number or "").strip():
        invoice.invoice_number = make_invoice_number()
    for field in ("discount", "deposit"):
        setattr(invoice, field, quantize_money(getattr(invoice, field)))
    invoice.tax_rate_pct = to_decimal(invoice.tax_rate_pct).quantize(Decimal("0.001"))

    totals = compute_invoice_totals(items, invoice.tax_rate_pct, invoice.discount, invoice.deposit)
    invoice.subtotal = totals.subtotal
    invoice.tax_amount = totals.tax
    invoice.total = totals.total
    invoice.save()

    invoice.items.all().delete()
    InvoiceLineItem.objects.bulk_create(
        [InvoiceLineItem(invoice=invoice, position=index, **item) for index, item in enumerate(items)]
    )
    return invoice


def copy_invoice(invoice: Invoice) -> Invoice:
    items = [
        {"description": i.description, "qty": i.qty, "unit_price": i.unit_price}
        for i in invoice.items.all()
    ]
    data = {field: getattr(invoice, field) for field in INVOICE_FIELDS}
    data["invoice_number"] = ""
    return save_invoice(invoice.user, data, items)


def render_invoice_pdf(invoice: Invoice) -> bytes:
    return render_template_to_pdf(
        "portal/pdf/invoice.html",
        {"invoice": invoice, "items": list(invoice.items.all()), "user": invoice.user},
    )


def email_invoice(invoice: Invoice) -> Invoice:
    """Deliver ``invoice`` through the ``sendInvoiceEmail`` function.

    The invoice must already be saved and carry a customer email.
    """
    if not invoice.pk:
        raise ListoError("Save the invoice before sending it.", code="failed-precondition")
    if not (invoice.to_email or "").strip():
        raise ListoError("Add a customer email before sending.", code="failed-precondition")
    try:
        send_invoice_email(invoice.pk)
    except ListoError:
        invoice.email_status = Invoice.EMAIL_FAILED
        invoice.save(update_fields=["email_status", "updated_at"])
        raise
    invoice.email_status = Invoice.EMAIL_SENT
    invoice.last_emailed_at = timezone.now()
    invoice.save(update_fields=["email_status", "last_emailed_at", "updated_at"])
    logger.info("Invoice %s emailed to %s", invoice.pk, invoice.to_email)
    return invoice
