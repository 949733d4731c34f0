"""Client for the hosted callable functions (OCR, translation, email delivery).

Requests follow the callable HTTP convention: ``POST <base>/<name>`` with a
``{"data": ...}`` body, answered by ``{"result": ...}`` or
``{"error": {"status": ..., "message": ...}}``.
"""
import logging

import requests
from django.conf import settings

from .errors import CallableFunctionError

logger = logging.getLogger(__name__)

SCAN_CONTRACT = "scanContract"
PROCESS_COI_UPLOAD = "processCoiUpload"
PROCESS_W9_UPLOAD = "processW9Upload"
SEND_INVOICE_EMAIL = "sendInvoiceEmail"
SEND_AUDIT_PACKAGE = "sendAuditPackage"


def _base_url():
    return (getattr(settings, "LISTO_FUNCTIONS_BASE_URL", "") or "").strip().rstrip("/")


def _timeout():
    return getattr(settings, "LISTO_FUNCTIONS_TIMEOUT", 90) or 90


def is_configured() -> bool:
    return bool(_base_url())


def _status_to_code(status):
    return str(status or "internal").strip().lower().replace("_", "-")


class CallableClient:
    def __init__(self, *, token=None, session=None):
        self.base_url = _base_url()
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        token = token if token is not None else getattr(settings, "LISTO_FUNCTIONS_TOKEN", "")
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def call(self, name: str, payload: dict):
        """Invoke ``name`` and return the unwrapped ``result`` value."""
        if not self.base_url:
            raise CallableFunctionError(
                "Cloud functions are not configured.", code="unavailable", function=name
            )
        url = f"{self.base_url}/{name}"
        try:
            resp = self.session.post(url, json={"data": payload}, timeout=_timeout())
        except requests.Timeout as exc:
            raise CallableFunctionError(str(exc), code="deadline-exceeded", function=name) from exc
        except requests.RequestException as exc:
            raise CallableFunctionError(str(exc), code="unavailable", function=name) from exc

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}

        error = body.get("error") if isinstance(body, dict) else None
        if error or not resp.ok:
            if not isinstance(error, dict):
                error = {"message": str(error)} if error else {}
            message = error.get("message") or f"{name} failed: {resp.status_code}"
            logger.warning("Callable %s failed (%s): %s", name, resp.status_code, message)
            raise CallableFunctionError(
                message,
                code=_status_to_code(error.get("status")),
                function=name,
                details=error.get("details"),
            )
        return body.get("result") if isinstance(body, dict) else None


def call_function(name: str, payload: dict, *, token=None):
    return CallableClient(token=token).call(name, payload)


def call_ok(name: str, payload: dict, *, token=None):
    """Call ``name`` and require the ``{ok: true, data}`` application envelope."""
    result = call_function(name, payload, token=token)
    if not isinstance(result, dict) or not result.get("ok"):
        error = result.get("error") if isinstance(result, dict) else None
        if isinstance(error, dict):
            raise CallableFunctionError(
                error.get("message") or f"{name} did not succeed.",
                code=_status_to_code(error.get("code")),
                function=name,
            )
        raise CallableFunctionError(
            str(error) if error else f"{name} did not return an ok response.", code="internal", function=name
        )
    return result.get("data", result)


def scan_contract(*, file_url, file_name, file_type, file_path):
    result = call_function(
        SCAN_CONTRACT,
        {"fileUrl": file_url, "fileName": file_name, "fileType": file_type, "filePath": file_path},
    )
    if result is None:
        result = {}
    if not isinstance(result, dict):
        raise CallableFunctionError(
            f"{SCAN_CONTRACT} returned an unexpected response.", code="internal", function=SCAN_CONTRACT
        )
    if result.get("error"):
        raise CallableFunctionError(str(result["error"]), code="internal", function=SCAN_CONTRACT)
    return {"english": result.get("english") or "", "spanish": result.get("spanish") or ""}


def process_coi_upload(file_path):
    return call_ok(PROCESS_COI_UPLOAD, {"filePath": file_path})


def process_w9_upload(file_path, worker_id):
    return call_ok(PROCESS_W9_UPLOAD, {"filePath": file_path, "workerId": worker_id})


def send_invoice_email(invoice_id):
    return call_ok(SEND_INVOICE_EMAIL, {"invoiceId": invoice_id})


def send_audit_package(audit_package):
    return call_ok(SEND_AUDIT_PACKAGE, {"auditPackage": audit_package})
