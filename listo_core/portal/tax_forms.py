"""1099-NEC generation for subcontractors paid during a tax year."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal

from django.utils import timezone

from .errors import ListoError
from .formatting import mask_tin
from .models import Form1099, Profile, Worker
from .payroll_utils import year_payments
from .pdf_utils import render_template_to_pdf
from .storage_utils import save_bytes, timestamp_ms, user_path

logger = logging.getLogger(__name__)


@dataclass
class Payee:
    name: str
    address: str
    tin_display: str


def payer_is_complete(profile: Profile) -> bool:
    return bool(profile and (profile.company_name or "").strip() and (profile.taxpayer_id or "").strip())


def payee_for(worker: Worker) -> Payee:
    info = worker.w9_info or {}
    name = info.get("legalName") or worker.name
    if info.get("addressLine1"):
        lines = [info["addressLine1"]]
        if info.get("addressLine2"):
            lines.append(info["addressLine2"])
        if info.get("city"):
            lines.append(f"{info['city']}, {info.get('state') or ''} {info.get('zip') or ''}".strip())
        address = "\n".join(lines)
    else:
        address = worker.address
    last4 = info.get("tinLast4") or ""
    return Payee(name=name or "", address=address or "", tin_display=mask_tin(last4))


def payee_file_stem(name: str) -> str:
    cleaned = re.sub(r"[^\w\s-]", "", name or "")
    return re.sub(r"\s+", "_", cleaned.strip()) or "worker"


def generate_1099(user, worker: Worker, tax_year: int) -> Form1099:
    """Render, store and record a 1099-NEC for ``worker`` in ``tax_year``."""
    profile = Profile.objects.filter(user=user).first()
    if not payer_is_complete(profile):
        raise ListoError("Please save your payer business name and taxpayer ID first.",
                         code="failed-precondition")
    payee = payee_for(worker)
    if not payee.name or not payee.address:
        raise ListoError("Worker W-9 information is incomplete. Add a name and address first.",
                         code="failed-precondition")
    total = year_payments(user, worker, tax_year)
    if total <= Decimal("0"):
        raise ListoError("No payments found for this worker in the selected tax year.",
                         code="failed-precondition")

    pdf = render_template_to_pdf(
        "portal/pdf/form_1099_nec.html",
        {
            "user": user,
            "profile": profile,
            "payer_tin": mask_tin(profile.taxpayer_id),
            "payee": payee,
            "tax_year": tax_year,
            "box1": total,
            "generated_on": timezone.localdate(),
        },
    )
    path = save_bytes(
        user_path(user, "taxForms", "1099nec", tax_year, f"{payee_file_stem(worker.name)}_{timestamp_ms()}.pdf"),
        pdf,
    )
    form = Form1099.objects.create(
        user=user,
        worker=worker,
        tax_year=tax_year,
        payee_name=payee.name,
        payer_name=profile.company_name,
        total_amount=total,
        pdf_path=path,
    )
    logger.info("Generated 1099-NEC %s for worker %s (%s)", form.pk, worker.pk, tax_year)
    return form
