"""Core module with logging, errors and time helpers."""

from showroom.core.errors import (
    AccountLockedError,
    AppError,
    BackendAuthError,
    BackendBadResponseError,
    BackendError,
    BackendUnavailableError,
    ErrorCode,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    OperationInProgressError,
    RateLimitError,
    SessionExpiredError,
    ValidationError,
)
from showroom.core.logging import configure_from_settings, get_logger, session_context, setup_logging

__all__ = [
    "AccountLockedError",
    "AppError",
    "BackendAuthError",
    "BackendBadResponseError",
    "BackendError",
    "BackendUnavailableError",
    "ErrorCode",
    "ForbiddenError",
    "InvalidCredentialsError",
    "NotFoundError",
    "OperationInProgressError",
    "RateLimitError",
    "SessionExpiredError",
    "ValidationError",
    "configure_from_settings",
    "get_logger",
    "session_context",
    "setup_logging",
]
