"""Error types and the user-facing message translator."""
from __future__ import annotations

from typing import Optional


class ListoError(Exception):
    """Base error carrying a short machine code (``not-found``, ``permission-denied``...)."""

    code = "unknown"

    def __init__(self, message: str = "", *, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code
        self.message = message


class StorageError(ListoError):
    code = "storage-error"


class PdfUnavailableError(ListoError):
    code = "pdf-unavailable"


class CallableFunctionError(ListoError):
    """Raised when a callable cloud function fails or reports ``ok: false``."""

    code = "internal"

    def __init__(self, message: str = "", *, code: Optional[str] = None, function: str = "", details=None):
        super().__init__(message, code=code)
        self.function = function
        self.details = details


_FRIENDLY_MESSAGES = {
    "wrong-password": "Incorrect password. Please try again.",
    "invalid-credential": "Incorrect password. Please try again.",
    "email-already-in-use": "This email address is already in use.",
    "invalid-email": "Invalid email address.",
    "weak-password": "Password is too weak. Please use a stronger password.",
    "requires-recent-login": "Please log out and log back in before changing sensitive information.",
    "permission-denied": "Permission denied.",
    "unauthenticated": "Please sign in again.",
    "not-found": "The requested item was not found.",
    "failed-precondition": "Missing required fields (like customer email).",
    "invalid-argument": "Invalid request.",
    "resource-exhausted": "Usage quota exceeded. Please try again later.",
    "quota-exceeded": "Usage quota exceeded. Please try again later.",
    "unavailable": "The service is temporarily unavailable. Please try again.",
    "deadline-exceeded": "The request took too long. Please try again.",
    "pdf-unavailable": "PDF generation is not available on this server.",
    "storage-error": "The file could not be stored. Please try again.",
}


def _normalize_code(code: str) -> str:
    code = (code or "").strip().lower().replace("_", "-")
    if "/" in code:
        code = code.rsplit("/", 1)[-1]
    return code


def friendly_error(error, default: str = "An error occurred.") -> str:
    """Translate an exception or error code into a message for the user.

    Errors raised by this app already carry a user-facing message. For the
    rest, known codes map to fixed messages; anything else falls back to the
    raw message, then to ``default``.
    """
    if error is None:
        return default
    if isinstance(error, str):
        code = _normalize_code(error)
        return _FRIENDLY_MESSAGES.get(code, error or default)

    if isinstance(error, ListoError) and error.message and not isinstance(
        error, (CallableFunctionError, StorageError, PdfUnavailableError)
    ):
        return error.message

    code = _normalize_code(getattr(error, "code", "") or "")
    if code in _FRIENDLY_MESSAGES:
        return _FRIENDLY_MESSAGES[code]

    message = getattr(error, "message", None) or str(error)
    lowered = message.lower()
    for known, friendly in _FRIENDLY_MESSAGES.items():
        if known in lowered:
            return friendly
    return message or default
