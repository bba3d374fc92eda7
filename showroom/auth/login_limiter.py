"""Login brute-force protection.

Counts consecutive failed logins for the admin page. After a configurable
number of failures further attempts are rejected locally until the lockout
window, measured from the last failure, has elapsed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from showroom.core.logging import get_logger
from showroom.core.time import Clock, system_clock

logger = get_logger(__name__)


@dataclass
class SecurityState:
    """Per-page security state; never persisted."""

    failed_login_attempts: int = 0
    last_login_attempt: Optional[float] = None
    is_locked_out: bool = False
    session_start_time: Optional[float] = None
    last_activity_time: Optional[float] = None
    warning_shown: bool = False


class LoginGuard:
    """Attempt tracker with temporary lockout."""

    def __init__(
        self,
        state: SecurityState,
        max_attempts: int = 5,
        lockout_seconds: int = 900,
        clock: Clock = system_clock,
        on_lockout: Optional[Callable[[int], None]] = None,
    ):
        self.state = state
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        # Receives the attempt count; used for the audit trail
        self._on_lockout = on_lockout

    def record_failed_attempt(self) -> bool:
        """Record a failed attempt. Returns True if the admin is now locked out."""
        state = self.state
        state.failed_login_attempts += 1
        state.last_login_attempt = self._clock()

        if state.failed_login_attempts >= self.max_attempts:
            state.is_locked_out = True
            logger.warning(
                "Admin login locked out",
                data={"event": "lockout", "attempts": state.failed_login_attempts},
            )
            if self._on_lockout is not None:
                try:
                    self._on_lockout(state.failed_login_attempts)
                except Exception:
                    logger.exception("Lockout audit hook failed")
            return True
        return False

    def is_locked_out(self) -> bool:
        """Return True while locked; clears an expired lockout as a side effect."""
        state = self.state
        if not state.is_locked_out:
            return False

        elapsed = self._clock() - (state.last_login_attempt or 0.0)
        if elapsed > self.lockout_seconds:
            state.is_locked_out = False
            state.failed_login_attempts = 0
            logger.info("Admin login lockout expired")
            return False
        return True

    def reset_attempts(self) -> None:
        """Clear failures after a successful login."""
        self.state.failed_login_attempts = 0
        self.state.is_locked_out = False
        self.state.last_login_attempt = None

    def remaining_lockout_seconds(self) -> int:
        """Seconds remaining on lockout (0 if not locked)."""
        if not self.is_locked_out():
            return 0
        elapsed = self._clock() - (self.state.last_login_attempt or 0.0)
        return max(0, int(self.lockout_seconds - elapsed))

    def attempts_remaining(self) -> int:
        return max(0, self.max_attempts - self.state.failed_login_attempts)
