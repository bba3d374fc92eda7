"""
Inactivity timeout for an authenticated admin session.

A recurring check recomputes the remaining time every interval. Inside the
last ``warning_seconds`` of the budget the session is in WARNING and only an
explicit extension brings it back; at zero it is EXPIRED and the expiry
callback forces a logout.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from showroom.auth.login_limiter import SecurityState
from showroom.core.logging import get_logger
from showroom.core.time import Clock, system_clock

logger = get_logger(__name__)


class SessionState(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    WARNING = "warning"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionStatus:
    state: SessionState
    remaining_seconds: float
    red: bool = False

    @property
    def countdown(self) -> str:
        """Remaining time as MM:SS."""
        total = max(0, int(self.remaining_seconds))
        return f"{total // 60:02d}:{total % 60:02d}"


class SessionGuard:
    """Owns the inactivity timer of one admin session."""

    def __init__(
        self,
        state: SecurityState,
        timeout_seconds: float = 3600,
        warning_seconds: float = 120,
        red_seconds: float = 600,
        interval_seconds: float = 1.0,
        clock: Clock = system_clock,
        on_tick: Optional[Callable[[SessionStatus], Any]] = None,
        on_warning: Optional[Callable[[SessionStatus], Any]] = None,
        on_warning_dismissed: Optional[Callable[[], Any]] = None,
        on_expire: Optional[Callable[[], Awaitable[Any] | Any]] = None,
    ):
        self.state = state
        self.timeout_seconds = timeout_seconds
        self.warning_seconds = warning_seconds
        self.red_seconds = red_seconds
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._on_tick = on_tick
        self._on_warning = on_warning
        self._on_warning_dismissed = on_warning_dismissed
        self._on_expire = on_expire
        self._task: Optional[asyncio.Task] = None
        self._expired = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start_session(self) -> None:
        """Start (or restart) the session clock and its recurring check."""
        self.end_session()

        now = self._clock()
        self.state.session_start_time = now
        self.state.last_activity_time = now
        self.state.warning_shown = False
        self._expired = False

        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Admin session started")

    def record_activity(self) -> None:
        """Register user activity unless the expiry warning is on screen."""
        if not self.state.warning_shown and self.state.last_activity_time is not None:
            self.state.last_activity_time = self._clock()

    def extend_session(self) -> None:
        """Explicit "stay logged in": restart the inactivity budget."""
        self.state.last_activity_time = self._clock()
        was_shown = self.state.warning_shown
        self.state.warning_shown = False
        if was_shown:
            self._call(self._on_warning_dismissed)
        logger.info("Admin session extended")

    def end_session(self) -> None:
        """Cancel the recurring check. Synchronous, safe to call repeatedly."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    def session_duration(self) -> float:
        if self.state.session_start_time is None:
            return 0.0
        return self._clock() - self.state.session_start_time

    def status(self) -> SessionStatus:
        """Evaluate the session without side effects."""
        if self.state.last_activity_time is None:
            return SessionStatus(SessionState.INACTIVE, 0.0)
        inactive = self._clock() - self.state.last_activity_time
        remaining = self.timeout_seconds - inactive
        red = remaining <= self.red_seconds
        if remaining <= 0:
            return SessionStatus(SessionState.EXPIRED, 0.0, True)
        if remaining <= self.warning_seconds:
            return SessionStatus(SessionState.WARNING, remaining, red)
        return SessionStatus(SessionState.ACTIVE, remaining, red)

    def check(self) -> SessionStatus:
        """One tick of the recurring check; fires the tick and warning hooks."""
        status = self.status()
        self._call(self._on_tick, status)
        if status.state is SessionState.WARNING and not self.state.warning_shown:
            self.state.warning_shown = True
            logger.info("Session expiry warning shown", data={"remaining": int(status.remaining_seconds)})
            self._call(self._on_warning, status)
        elif status.state is SessionState.EXPIRED and self.state.warning_shown:
            self.state.warning_shown = False
            self._call(self._on_warning_dismissed)
        return status

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            status = self.check()
            if status.state is SessionState.EXPIRED:
                # Detach first so the expiry handler's end_session() does not
                # cancel the task that is running it.
                self._task = None
                await self._expire()
                return

    async def _expire(self) -> None:
        if self._expired:
            return
        self._expired = True
        logger.info("Admin session expired", data={"duration": int(self.session_duration())})
        if self._on_expire is None:
            return
        try:
            result = self._on_expire()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Session expiry handler failed")

    def _call(self, hook: Optional[Callable[..., Any]], *args: Any) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.exception("Session timer hook failed")
