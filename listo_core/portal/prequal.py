"""Pre-qualification documents: storing generated PDFs, COI uploads and reminders."""
from __future__ import annotations

import datetime
import logging
from typing import Optional

from django.conf import settings
from django.utils import timezone

from .cloud_functions import process_coi_upload
from .document_parsing import POLICY_KEYS, earliest_policy_date, parse_coi_text
from .errors import ListoError
from .models import DOCUMENT_STATUS_COMPLETED, PrequalStatus
from .formatting import safe_storage_name
from .storage_utils import (
    delete_quietly,
    save_bytes,
    save_upload,
    timestamp_ms,
    timestamped_name,
    user_path,
    validate_document,
)

logger = logging.getLogger(__name__)

REMINDER_MISSING = "missing"
REMINDER_EXPIRED = "expired"
REMINDER_EXPIRING = "expiring"
REMINDER_ACTIVE = "active"

_FLAG_FIELDS = {
    PrequalStatus.DOC_W9: "w9_completed",
    PrequalStatus.DOC_COI: "coi_completed",
    PrequalStatus.DOC_AGREEMENT: "agreement_completed",
}


def get_prequal(user) -> PrequalStatus:
    status, _ = PrequalStatus.objects.get_or_create(user=user)
    return status


def merge_prequal(user, doc_type: str, metadata: dict, completed: Optional[bool] = True) -> PrequalStatus:
    """Merge ``metadata`` into the nested dict for ``doc_type`` and set its flag."""
    status = get_prequal(user)
    current = dict(getattr(status, doc_type) or {})
    current.update(metadata)
    setattr(status, doc_type, current)
    update_fields = [doc_type, "updated_at"]
    if completed is not None:
        setattr(status, _FLAG_FIELDS[doc_type], completed)
        update_fields.append(_FLAG_FIELDS[doc_type])
    status.save(update_fields=update_fields)
    return status


def store_prequal_pdf(user, doc_type: str, record, pdf_bytes: bytes, file_name: str) -> str:
    """Persist a generated W-9 or agreement PDF.

    Upload first, then drop the superseded file, then point ``record`` at the
    new path, then flip the pre-qualification flag. A failure after the upload
    leaves the new blob in storage.
    """
    name = safe_storage_name(file_name)
    if not name.lower().endswith(".pdf"):
        name = f"{name}.pdf"
    path = save_bytes(user_path(user, "prequal", doc_type, f"{timestamp_ms()}_{name}"), pdf_bytes)

    previous = record.pdf_path
    if previous and previous != path:
        delete_quietly(previous)

    record.pdf_path = path
    record.pdf_file_name = name
    record.status = DOCUMENT_STATUS_COMPLETED
    record.save(update_fields=["pdf_path", "pdf_file_name", "status", "updated_at"])

    merge_prequal(
        user,
        doc_type,
        {
            "filePath": path,
            "fileName": name,
            "uploadedAt": timezone.now().isoformat(),
            "status": DOCUMENT_STATUS_COMPLETED,
        },
    )
    logger.info("Stored %s PDF for user %s at %s", doc_type, user.pk, path)
    return path


def store_coi_upload(user, upload, expires_on: Optional[datetime.date] = None) -> PrequalStatus:
    validate_document(upload)
    path = save_upload(user_path(user, "prequal", "coi", timestamped_name(upload.name)), upload)
    status = get_prequal(user)
    previous = (status.coi or {}).get("filePath")
    if previous and previous != path:
        delete_quietly(previous)
    metadata = {
        "filePath": path,
        "fileName": upload.name,
        "uploadedAt": timezone.now().isoformat(),
        "status": DOCUMENT_STATUS_COMPLETED,
        "ocrProcessed": False,
    }
    if expires_on:
        metadata["expiresOn"] = expires_on.isoformat()
    return merge_prequal(user, PrequalStatus.DOC_COI, metadata)


def set_coi_expiry(user, expires_on: datetime.date) -> PrequalStatus:
    return merge_prequal(user, PrequalStatus.DOC_COI, {"expiresOn": expires_on.isoformat()}, completed=None)


def merge_coi_policies(user, policies: dict, file_path: Optional[str] = None) -> PrequalStatus:
    """Apply OCR'd policy expiry dates to the COI metadata.

    Dates the OCR did not find keep their stored values. ``expiresOn`` becomes
    the earliest policy date when any is known.
    """
    status = get_prequal(user)
    existing = dict(status.coi or {})
    stored = existing.get("policies") or {}
    merged = {key: (policies or {}).get(key) or stored.get(key) for key in POLICY_KEYS}
    update = {
        "policies": merged,
        "expiresOn": earliest_policy_date(merged) or existing.get("expiresOn"),
        "ocrProcessed": True,
        "ocrProcessedAt": timezone.now().isoformat(),
    }
    if file_path:
        if file_path.startswith(user_path(user, "prequal", "coi") + "/"):
            update["filePath"] = file_path
            update["fileName"] = file_path.rsplit("/", 1)[-1]
        else:
            logger.warning("Unexpected COI path %s for user %s", file_path, user.pk)
    return merge_prequal(user, PrequalStatus.DOC_COI, update, completed=None)


def apply_coi_ocr_result(user, result: dict, file_path: str) -> PrequalStatus:
    """Accept either parsed ``policies`` or raw ``text`` from the OCR function."""
    result = result or {}
    policies = result.get("policies")
    if policies is None:
        policies = parse_coi_text(result.get("text") or "")
    return merge_coi_policies(user, policies, file_path)


def warning_days() -> int:
    return getattr(settings, "LISTO_COI_WARNING_DAYS", 30)


def coi_reminder_state(status: Optional[PrequalStatus], today: Optional[datetime.date] = None) -> str:
    if status is None or not status.coi_completed:
        return REMINDER_MISSING
    expires = status.coi_expires_on
    if expires is None:
        return REMINDER_ACTIVE
    today = today or timezone.localdate()
    if expires < today:
        return REMINDER_EXPIRED
    if (expires - today).days <= warning_days():
        return REMINDER_EXPIRING
    return REMINDER_ACTIVE


def run_coi_ocr(user) -> PrequalStatus:
    status = get_prequal(user)
    path = (status.coi or {}).get("filePath")
    if not path:
        raise ListoError("Upload a certificate of insurance first.", code="failed-precondition")
    return apply_coi_ocr_result(user, process_coi_upload(path), path)
