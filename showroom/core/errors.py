"""
Structured error handling with stable error codes.

Every failure surfaced to the admin is mapped to a stable error code so
the dashboard can show a toast without inspecting exception types.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes for user-facing failures."""

    # General errors (1xxx)
    INTERNAL_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"
    NOT_FOUND = "E1002"
    RATE_LIMITED = "E1005"
    OPERATION_IN_PROGRESS = "E1006"

    # Authentication errors (2xxx)
    INVALID_CREDENTIALS = "E2001"
    SESSION_EXPIRED = "E2002"
    ACCOUNT_LOCKED = "E2011"

    # Authorization errors (3xxx)
    FORBIDDEN = "E3000"

    # Backend errors (4xxx)
    BACKEND_UNAVAILABLE = "E4000"
    BACKEND_ERROR = "E4001"
    BACKEND_BAD_RESPONSE = "E4004"
    BACKEND_AUTH_FAILED = "E4005"


class AppError(Exception):
    """Base application error with structured error detail."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(AppError):
    """Validation error (400)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, 400, details)


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(ErrorCode.NOT_FOUND, message, 404)


class OperationInProgressError(AppError):
    """A duplicate submission arrived while the first is still pending (409)."""

    def __init__(self, message: str = "Operation already in progress"):
        super().__init__(ErrorCode.OPERATION_IN_PROGRESS, message, 409)


class InvalidCredentialsError(AppError):
    """Invalid credentials (401)."""

    def __init__(self, message: str = "Invalid email or password.", details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.INVALID_CREDENTIALS, message, 401, details)


class SessionExpiredError(AppError):
    """Session expired (401)."""

    def __init__(self, message: str = "Session expired due to inactivity. Please log in again."):
        super().__init__(ErrorCode.SESSION_EXPIRED, message, 401)


class AccountLockedError(AppError):
    """Too many failed logins (429)."""

    def __init__(self, retry_after_seconds: int, message: str | None = None):
        minutes = max(1, -(-retry_after_seconds // 60))
        super().__init__(
            ErrorCode.ACCOUNT_LOCKED,
            message or f"Account temporarily locked. Try again in {minutes} minutes.",
            429,
            {"retry_after_seconds": retry_after_seconds},
        )
        self.retry_after_seconds = retry_after_seconds


class ForbiddenError(AppError):
    """Access denied (403)."""

    def __init__(self, message: str = "Access denied: Admin privileges required."):
        super().__init__(ErrorCode.FORBIDDEN, message, 403)


class RateLimitError(AppError):
    """Backend rate limit exceeded (429)."""

    def __init__(self, message: str = "Rate limit exceeded", details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.RATE_LIMITED, message, 429, details)


class BackendError(AppError):
    """Backend error (502)."""

    def __init__(self, message: str = "Backend error", details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.BACKEND_ERROR, message, 502, details)


class BackendUnavailableError(AppError):
    """Backend unavailable (503)."""

    def __init__(self, message: str = "Backend unavailable", details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.BACKEND_UNAVAILABLE, message, 503, details)


class BackendBadResponseError(AppError):
    """Backend returned malformed response (502)."""

    def __init__(
        self, message: str = "Backend returned invalid response", details: dict[str, Any] | None = None
    ):
        super().__init__(ErrorCode.BACKEND_BAD_RESPONSE, message, 502, details)


class BackendAuthError(AppError):
    """Backend rejected our credentials or token (401/403)."""

    def __init__(
        self,
        message: str = "Backend authentication failed",
        status_code: int = 401,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(ErrorCode.BACKEND_AUTH_FAILED, message, status_code, details)
