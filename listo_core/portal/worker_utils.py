from __future__ import annotations

import logging

from django.utils import timezone

from .cloud_functions import process_w9_upload
from .document_parsing import CONFIDENCE_LOW, parse_w9_text
from .errors import CallableFunctionError, ListoError
from .models import Worker
from .storage_utils import (
    delete_many_quietly,
    delete_quietly,
    save_upload,
    timestamped_name,
    user_path,
    validate_document,
)

logger = logging.getLogger(__name__)

DOC_W9 = "w9"
DOC_COI = "coi"
DOC_WORKERS_COMP = "workers_comp"
DOCUMENT_FIELDS = {
    DOC_W9: "w9_path",
    DOC_COI: "coi_path",
    DOC_WORKERS_COMP: "workers_comp_path",
}
SUBCONTRACTOR_ONLY = (DOC_COI, DOC_WORKERS_COMP)


def store_worker_document(worker: Worker, doc_type: str, upload) -> str:
    """Upload ``upload`` as the worker's ``doc_type`` document, replacing any older one."""
    if doc_type not in DOCUMENT_FIELDS:
        raise ListoError("Unknown document type.", code="invalid-argument")
    if doc_type in SUBCONTRACTOR_ONLY and not worker.is_subcontractor:
        raise ListoError("Only subcontractors can have insurance documents.", code="failed-precondition")
    validate_document(upload)

    field = DOCUMENT_FIELDS[doc_type]
    path = save_upload(
        user_path(worker.user, "workers", worker.pk, "documents", doc_type, timestamped_name(upload.name)),
        upload,
    )
    previous = getattr(worker, field)
    setattr(worker, field, path)
    update_fields = [field, "updated_at"]
    if doc_type == DOC_W9:
        worker.w9_ocr_status = Worker.OCR_PENDING
        worker.w9_ocr_error = ""
        update_fields += ["w9_ocr_status", "w9_ocr_error"]
    worker.save(update_fields=update_fields)
    if previous and previous != path:
        delete_quietly(previous)
    return path


def remove_worker_document(worker: Worker, doc_type: str):
    field = DOCUMENT_FIELDS[doc_type]
    previous = getattr(worker, field)
    setattr(worker, field, "")
    worker.save(update_fields=[field, "updated_at"])
    delete_quietly(previous)


def save_worker(worker: Worker) -> Worker:
    """Save ``worker``; a switch to employee drops its insurance documents."""
    stale = []
    if not worker.is_subcontractor:
        for doc_type in SUBCONTRACTOR_ONLY:
            field = DOCUMENT_FIELDS[doc_type]
            if getattr(worker, field):
                stale.append(getattr(worker, field))
                setattr(worker, field, "")
    worker.save()
    delete_many_quietly(stale)
    return worker


def delete_worker(worker: Worker):
    """Delete the row; its stored documents go in the post_delete handler."""
    worker.delete()


def apply_w9_fields(worker: Worker, fields: dict, file_path: str = "") -> Worker:
    """Apply parsed W-9 fields to ``worker``.

    Low confidence results only flag the worker for review. Otherwise blank
    name and address are filled and ``w9_info`` is rebuilt, preferring EIN
    over SSN for the TIN.
    """
    fields = fields or {}
    existing = dict(worker.w9_info or {})
    confidence = fields.get("confidence") or CONFIDENCE_LOW
    now = timezone.now().isoformat()

    if confidence == CONFIDENCE_LOW:
        worker.w9_ocr_status = Worker.OCR_NEEDS_REVIEW
        if existing:
            existing.update({"ocrConfidence": CONFIDENCE_LOW, "needsReview": True, "updatedAt": now})
            worker.w9_info = existing
    else:
        worker.w9_ocr_status = Worker.OCR_COMPLETE
        if fields.get("legalName") and not (worker.name or "").strip():
            worker.name = fields["legalName"]
        if fields.get("addressLine1") and not (worker.address or "").strip():
            parts = [fields["addressLine1"]]
            if fields.get("addressLine2"):
                parts.append(fields["addressLine2"])
            if fields.get("city") and fields.get("state") and fields.get("zip"):
                parts.append(f"{fields['city']}, {fields['state']} {fields['zip']}")
            worker.address = ", ".join(parts)

        info = {
            key: fields.get(key) or existing.get(key)
            for key in ("legalName", "businessName", "addressLine1", "addressLine2",
                        "city", "state", "zip", "taxClassification", "ein")
        }
        if fields.get("ein"):
            info["tinType"] = "EIN"
            info["tinLast4"] = fields["ein"].split("-")[-1][-4:]
        elif fields.get("ssnLast4"):
            info["tinType"] = "SSN"
            info["tinLast4"] = fields["ssnLast4"]
        else:
            info["tinType"] = existing.get("tinType")
            info["tinLast4"] = existing.get("tinLast4")
        info["ocrConfidence"] = confidence
        info["updatedAt"] = now
        worker.w9_info = info

    if file_path:
        worker.w9_info = {**(worker.w9_info or {}), "sourceFilePath": file_path}
    worker.w9_ocr_error = ""
    worker.save()
    logger.info("Applied W-9 data to worker %s (confidence: %s)", worker.pk, confidence)
    return worker


def mark_w9_failed(worker: Worker, message: str):
    worker.w9_ocr_status = Worker.OCR_FAILED
    worker.w9_ocr_error = (message or "Unknown error")[:255]
    worker.save(update_fields=["w9_ocr_status", "w9_ocr_error", "updated_at"])


def run_w9_ocr(worker: Worker) -> Worker:
    """Send the stored W-9 to the OCR function and apply what comes back.

    The function may answer with parsed ``fields`` or with raw ``text``.
    """
    if not worker.w9_path:
        raise ListoError("Upload a W-9 first.", code="failed-precondition")
    try:
        result = process_w9_upload(worker.w9_path, worker.pk) or {}
    except CallableFunctionError as exc:
        mark_w9_failed(worker, exc.message)
        raise
    fields = result.get("fields") or parse_w9_text(result.get("text") or "")
    return apply_w9_fields(worker, fields, worker.w9_path)
