"""
Errors
======
Exception hierarchy and the user-facing message catalogue.

CRITICAL: Public responses carry only the messages defined here. Technical
details are logged server-side, never returned to the visitor.
"""

from typing import Any, Dict, Optional


class InductLiteError(Exception):
    """Base exception for the sign-out core."""
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigurationError(InductLiteError):
    """Raised at startup when required configuration is missing or malformed."""
    code = "CONFIG_ERROR"


class OriginRejectedError(InductLiteError):
    """Raised when a mutating request fails the same-origin check."""
    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str = "Invalid request origin"):
        super().__init__(message)


class RevocationStoreError(InductLiteError):
    """Raised when the revocation store fails unexpectedly."""
    code = "STORE_ERROR"


class StoreUnavailableError(RevocationStoreError):
    """Raised when the revocation store cannot be reached. Safe to retry."""
    code = "STORE_UNAVAILABLE"
    status_code = 503


class TokenPersistenceError(RevocationStoreError):
    """Raised when an issued token hash could not be stored for its record."""
    code = "TOKEN_NOT_PERSISTED"


class PublicMessages:
    """User-facing messages for the public sign-out flow."""
    INVALID_LINK = "Invalid sign-out link"
    EXPIRED = "Sign-out link has expired. Please contact site reception."
    PHONE_MISMATCH = "Phone number does not match the sign-in record"
    ALREADY_SIGNED_OUT = "You have already signed out"
    NOT_FOUND = "Sign-in record not found"
    SIGNED_OUT = "Signed out successfully"
    FORBIDDEN = "Invalid request origin"
    UNEXPECTED = "An unexpected error occurred. Please try again."


def public_error(code: str, message: str, field_errors: Optional[Dict[str, list]] = None) -> Dict[str, Any]:
    """
    Build the JSON error envelope returned to public callers.

    Args:
        code: Stable machine-readable error code
        message: Message from PublicMessages
        field_errors: Optional per-field validation messages

    Returns:
        Response body dict
    """
    error: Dict[str, Any] = {"code": code, "message": message}
    if field_errors:
        error["fields"] = field_errors
    return {"success": False, "error": error}
