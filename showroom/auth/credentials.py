"""Credential shape checks run before any network round trip.

Both checks are pure: no logging, no backend calls.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from showroom.core.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_SYMBOLS = "@$!%*?&"
DEFAULT_MIN_LENGTH = 8


@dataclass
class PasswordCheck:
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_email_shape(email: str) -> str | None:
    """Return a user-facing error for a malformed address, else None."""
    if not EMAIL_PATTERN.match(email or ""):
        return "Please enter a valid email address."
    return None


def validate_password_strength(password: str, min_length: int = DEFAULT_MIN_LENGTH) -> list[str]:
    """
    Check a password against every strength rule.

    Args:
        password: Candidate password.
        min_length: Minimum number of characters.

    Returns:
        All violated rules in a fixed order (length, uppercase, lowercase,
        digit, symbol). Empty when the password is acceptable.
    """
    errors: list[str] = []
    if len(password) < min_length:
        errors.append(f"Password must be at least {min_length} characters")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain uppercase letters")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain lowercase letters")
    if not re.search(r"\d", password):
        errors.append("Password must contain numbers")
    if not any(ch in PASSWORD_SYMBOLS for ch in password):
        errors.append(f"Password must contain special characters ({PASSWORD_SYMBOLS})")
    return errors


def check_password(password: str, min_length: int = DEFAULT_MIN_LENGTH) -> PasswordCheck:
    return PasswordCheck(errors=validate_password_strength(password, min_length))


def require_login_fields(email: str, password: str) -> str:
    """
    Validate a login form submission.

    Returns the trimmed email. Password strength is not enforced here: the
    backend owns existing passwords, only their presence is checked.

    Raises:
        ValidationError: Missing field or malformed email.
    """
    email = (email or "").strip()
    if not email or not password:
        raise ValidationError("Please enter both email and password.")
    problem = validate_email_shape(email)
    if problem:
        raise ValidationError(problem, details={"field": "email"})
    return email


def require_strong_password(password: str, min_length: int = DEFAULT_MIN_LENGTH) -> None:
    """Raise ValidationError listing every violated rule."""
    errors = validate_password_strength(password, min_length)
    if errors:
        raise ValidationError("Password does not meet requirements", details={"errors": errors})
