"""Authentication module: credential checks, lockout and session timeout."""

from showroom.auth.credentials import (
    check_password,
    require_login_fields,
    require_strong_password,
    validate_email_shape,
    validate_password_strength,
)
from showroom.auth.login_limiter import LoginGuard, SecurityState
from showroom.auth.session import SessionGuard, SessionState, SessionStatus

__all__ = [
    "check_password",
    "require_login_fields",
    "require_strong_password",
    "validate_email_shape",
    "validate_password_strength",
    "LoginGuard",
    "SecurityState",
    "SessionGuard",
    "SessionState",
    "SessionStatus",
]
