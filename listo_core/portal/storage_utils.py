"""Per-user blob storage helpers on top of ``default_storage``."""
from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.urls import reverse

from .errors import ListoError, StorageError
from .formatting import safe_storage_name

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPES = {"application/pdf"}
IMAGE_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png"}
DOCUMENT_CONTENT_TYPES = PDF_CONTENT_TYPES | IMAGE_CONTENT_TYPES
DOCUMENT_EXTENSIONS = (".pdf", ".jpg", ".jpeg", ".png")


def timestamp_ms() -> int:
    return int(time.time() * 1000)


def user_path(user, *parts: str) -> str:
    """Build ``users/<uid>/<part>/<part>...``."""
    cleaned = [str(p).strip("/") for p in parts if p not in (None, "")]
    return "/".join(["users", str(user.pk), *cleaned])


def timestamped_name(filename: str, prefix: str = "") -> str:
    return f"{prefix}{timestamp_ms()}_{safe_storage_name(filename)}"


def save_bytes(path: str, data: bytes) -> str:
    """Store ``data`` at ``path`` and return the name the storage actually used."""
    try:
        return default_storage.save(path, ContentFile(data))
    except OSError as exc:
        raise StorageError(f"Could not store {path}: {exc}") from exc


def save_upload(path: str, upload) -> str:
    if hasattr(upload, "seek"):
        upload.seek(0)
    try:
        return default_storage.save(path, upload)
    except OSError as exc:
        raise StorageError(f"Could not store {path}: {exc}") from exc


def storage_url(path: Optional[str]) -> str:
    """Link to ``path`` through the owner-checked file view."""
    if not path:
        return ""
    return reverse("portal:stored_file", kwargs={"path": path})


def delete_quietly(path: Optional[str]) -> bool:
    """Best-effort delete. Failures are logged and swallowed."""
    if not path:
        return False
    try:
        default_storage.delete(path)
    except (OSError, NotImplementedError) as exc:
        logger.warning("Could not delete stored file %s: %s", path, exc)
        return False
    return True


def delete_many_quietly(paths: Iterable[Optional[str]]) -> int:
    return sum(1 for path in paths if delete_quietly(path))


def upload_content_type(upload) -> str:
    return (getattr(upload, "content_type", "") or "").lower()


def is_allowed_document(upload, *, extensions=DOCUMENT_EXTENSIONS, content_types=DOCUMENT_CONTENT_TYPES) -> bool:
    name = (getattr(upload, "name", "") or "").lower()
    if upload_content_type(upload) in content_types:
        return True
    return name.endswith(tuple(extensions))


def max_document_bytes() -> int:
    return getattr(settings, "LISTO_MAX_DOCUMENT_BYTES", 15 * 1024 * 1024)


def validate_document(upload):
    """PDF, JPG or PNG within the document size limit."""
    if not is_allowed_document(upload):
        raise ListoError("Upload a PDF, JPG or PNG file.", code="invalid-argument")
    if upload.size > max_document_bytes():
        limit_mb = max_document_bytes() // (1024 * 1024)
        raise ListoError(f"Files must be {limit_mb} MB or smaller.", code="invalid-argument")
