"""Error taxonomy shared by the request handlers.

Every ``ApiError`` carries the HTTP status it maps to and renders as the
``{message, errors?}`` envelope. Upstream failures (ML, mail) are *not*
``ApiError`` subclasses: they are caught where they happen and never reach
the caller.
"""
from typing import Any, Dict


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, errors: Any = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": self.message}
        if self.errors:
            payload["errors"] = self.errors
        return payload


class ValidationError(ApiError):
    status_code = 400
    default_message = "Validation error"


class InvalidStatus(ValidationError):
    default_message = "Invalid status"


class InvalidOrExpiredOtp(ValidationError):
    default_message = "Invalid or expired OTP"


class Conflict(ApiError):
    status_code = 400
    default_message = "Conflict"


class DuplicateEmail(Conflict):
    default_message = "User with this email already exists"


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "Authentication required"


class InvalidCredentials(Unauthenticated):
    default_message = "Invalid credentials"


class InvalidToken(Unauthenticated):
    default_message = "Invalid token"


class AccessDenied(ApiError):
    status_code = 403
    default_message = "Access denied"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class UpstreamUnavailable(Exception):
    """Raised when the classification service cannot return a usable result."""
