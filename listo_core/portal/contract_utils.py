import logging

from .cloud_functions import scan_contract
from .errors import ListoError
from .models import ContractScan
from .storage_utils import (
    is_allowed_document,
    save_upload,
    storage_url,
    timestamped_name,
    upload_content_type,
    user_path,
)

logger = logging.getLogger(__name__)

CONTRACT_EXTENSIONS = (".pdf", ".heic", ".jpg", ".jpeg", ".png")
CONTRACT_CONTENT_TYPES = {"application/pdf", "image/heic", "image/jpeg", "image/jpg", "image/png"}


def scan_contract_upload(user, upload) -> ContractScan:
    """Upload a contract, run OCR + translation remotely and keep both texts."""
    if not is_allowed_document(upload, extensions=CONTRACT_EXTENSIONS, content_types=CONTRACT_CONTENT_TYPES):
        raise ListoError("Upload a PDF, HEIC, JPG or PNG file.", code="invalid-argument")
    path = save_upload(user_path(user, "contracts", timestamped_name(upload.name)), upload)
    result = scan_contract(
        file_url=storage_url(path),
        file_name=upload.name,
        file_type=upload_content_type(upload),
        file_path=path,
    )
    if not result["english"] and not result["spanish"]:
        raise ListoError(
            "No text was extracted from the document. Please ensure the document contains readable text.",
            code="empty-result",
        )
    scan = ContractScan.objects.create(
        user=user,
        file_path=path,
        file_name=upload.name,
        english_text=result["english"],
        spanish_text=result["spanish"],
    )
    logger.info("Scanned contract %s for user %s", scan.pk, user.pk)
    return scan
