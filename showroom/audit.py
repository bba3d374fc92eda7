"""
Admin activity log for security event tracking.

Entries are written to the ``admin_logs`` table. Audit writes never fail
the action being audited: backend errors are logged and swallowed.
"""

import json
from typing import Any

from showroom.backend.base import BaseBackend
from showroom.core import AppError, get_logger
from showroom.core.time import Clock, system_clock, to_iso

logger = get_logger(__name__)


class AuditAction:
    """Audit action constants."""

    ADMIN_LOGIN = "ADMIN_LOGIN"
    ADMIN_LOGOUT = "ADMIN_LOGOUT"
    FAILED_LOGINS = "FAILED_LOGINS"
    DAILY_STATS_RESET = "DAILY_STATS_RESET"
    CAR_ADDED = "CAR_ADDED"
    CAR_UPDATED = "CAR_UPDATED"
    CAR_DELETED = "CAR_DELETED"
    CARS_BULK_DELETED = "CARS_BULK_DELETED"
    CARS_STATUS_CHANGED = "CARS_STATUS_CHANGED"


async def log_admin_activity(
    backend: BaseBackend,
    action: str,
    admin_id: str | None = None,
    details: dict[str, Any] | None = None,
    table: str = "admin_logs",
    clock: Clock = system_clock,
) -> bool:
    """
    Create an audit log entry.

    Args:
        backend: Backend to write through.
        action: Action being logged (use AuditAction constants).
        admin_id: Admin performing the action (None before login).
        details: Additional details, stored as a JSON string.
        table: Audit table name.
        clock: Time source for ``created_at``.

    Returns:
        True if the entry was written.
    """
    row = {
        "admin_id": admin_id,
        "action": action,
        "description": json.dumps(details or {}, default=str),
        "created_at": to_iso(clock()),
    }
    try:
        await backend.insert(table, row)
    except AppError as exc:
        logger.error(
            "Error logging admin activity",
            data={"action": action, "code": exc.code.value, "error": exc.message},
        )
        return False
    return True


async def log_login(backend: BaseBackend, admin_id: str, email: str, **kwargs: Any) -> bool:
    """Log a successful admin login."""
    return await log_admin_activity(
        backend, AuditAction.ADMIN_LOGIN, admin_id, {"email": email}, **kwargs
    )


async def log_logout(
    backend: BaseBackend, admin_id: str | None, session_duration: float, **kwargs: Any
) -> bool:
    """Log a logout with the session duration in milliseconds."""
    return await log_admin_activity(
        backend,
        AuditAction.ADMIN_LOGOUT,
        admin_id,
        {"sessionDuration": int(session_duration * 1000)},
        **kwargs,
    )


async def log_lockout(backend: BaseBackend, attempts: int, **kwargs: Any) -> bool:
    """Log a login lockout."""
    return await log_admin_activity(
        backend,
        AuditAction.FAILED_LOGINS,
        None,
        {"event": "lockout", "attempts": attempts, "lockedOut": True},
        **kwargs,
    )
