"""Workers-comp insurance audit packet."""
from __future__ import annotations

import datetime
import logging
from typing import Optional

from django.utils import timezone

from .cloud_functions import send_audit_package
from .errors import ListoError
from .models import AuditPacket
from .payroll_utils import period_summary
from .pdf_utils import render_template_to_pdf
from .storage_utils import delete_quietly, save_upload, storage_url, timestamped_name, user_path

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = (
    ("bankStatements", "Bank statements"),
    ("scheduleC", "Schedule C"),
    ("form1096", "Form 1096"),
    ("form1099", "Form 1099"),
)
DOCUMENT_TYPE_KEYS = {key for key, _ in DOCUMENT_TYPES}

QUESTIONS = (
    ("qCash", "Did you pay any workers in cash?"),
    ("qCashExplain", "Cash payment details:"),
    ("qSubs", "Did you use subcontractors (1099)?"),
    ("qCOI", "Were subcontractors insured / COIs collected?"),
    ("qOwnerLabor", "Did the owner perform hands-on labor?"),
    ("qChanges", "Changes in business operations:"),
    ("qNotes", "Additional notes:"),
)


def get_packet(user) -> AuditPacket:
    packet, _ = AuditPacket.objects.get_or_create(user=user)
    return packet


def validate_period(start: Optional[datetime.date], end: Optional[datetime.date]):
    if not start or not end:
        raise ListoError("Select both a policy start and end date.", code="invalid-argument")
    if start > end:
        raise ListoError("Policy start date must be on or before the end date.", code="invalid-argument")


def load_payroll_summary(user, start, end) -> dict:
    validate_period(start, end)
    summary = period_summary(user, start, end)
    packet = get_packet(user)
    packet.policy_start = start
    packet.policy_end = end
    packet.payroll_summary = [
        {"worker": row["worker"], "method": row["method"], "total": str(row["total"]), "count": row["count"]}
        for row in summary["rows"]
    ]
    packet.save(update_fields=["policy_start", "policy_end", "payroll_summary", "updated_at"])
    return summary


def add_document(user, doc_type: str, upload) -> dict:
    if doc_type not in DOCUMENT_TYPE_KEYS:
        raise ListoError("Unknown document type.", code="invalid-argument")
    path = save_upload(user_path(user, "audit", timestamped_name(upload.name)), upload)
    entry = {"type": doc_type, "fileName": upload.name, "filePath": path}
    packet = get_packet(user)
    packet.uploaded_files = [*(packet.uploaded_files or []), entry]
    packet.save(update_fields=["uploaded_files", "updated_at"])
    return entry


def remove_document(user, index: int) -> Optional[dict]:
    packet = get_packet(user)
    files = list(packet.uploaded_files or [])
    if index < 0 or index >= len(files):
        return None
    removed = files.pop(index)
    packet.uploaded_files = files
    packet.save(update_fields=["uploaded_files", "updated_at"])
    delete_quietly(removed.get("filePath"))
    return removed


def save_questionnaire(user, answers: dict) -> AuditPacket:
    packet = get_packet(user)
    merged = dict(packet.questionnaire or {})
    merged.update({key: (answers.get(key) or "").strip() for key, _ in QUESTIONS if key in answers})
    packet.questionnaire = merged
    packet.save(update_fields=["questionnaire", "updated_at"])
    return packet


def questionnaire_rows(packet: AuditPacket) -> list:
    answers = packet.questionnaire or {}
    return [(label, answers.get(key) or "N/A") for key, label in QUESTIONS]


def render_audit_pdf(packet: AuditPacket) -> bytes:
    return render_template_to_pdf(
        "portal/pdf/audit_package.html",
        {
            "user": packet.user,
            "packet": packet,
            "questions": questionnaire_rows(packet),
            "document_labels": dict(DOCUMENT_TYPES),
        },
    )


def build_package(packet: AuditPacket) -> dict:
    return {
        "policyStart": packet.policy_start.isoformat() if packet.policy_start else "",
        "policyEnd": packet.policy_end.isoformat() if packet.policy_end else "",
        "businessName": packet.business_name,
        "copyEmail": packet.copy_email,
        "auditorEmail": packet.auditor_email,
        "phone": packet.phone,
        "payrollSummary": packet.payroll_summary or [],
        "questionnaire": packet.questionnaire or {},
        "uploadedFiles": [
            {**entry, "downloadURL": storage_url(entry.get("filePath"))}
            for entry in packet.uploaded_files or []
        ],
    }


def send_packet(packet: AuditPacket):
    """Email the packet. The saved packet is kept when delivery fails."""
    if not packet.auditor_email:
        raise ListoError("Add the auditor email before sending.", code="failed-precondition")
    send_audit_package(build_package(packet))
    packet.last_sent_at = timezone.now()
    packet.save(update_fields=["last_sent_at", "updated_at"])
    logger.info("Audit package sent for user %s", packet.user_id)
