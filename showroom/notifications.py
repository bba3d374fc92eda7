"""UI collaborator protocols.

The admin core never renders anything itself: toasts and dashboard refreshes
go through these two small interfaces. The defaults only log.
"""

from __future__ import annotations

from typing import Protocol

from showroom.auth.session import SessionStatus
from showroom.core import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    def notify(self, message: str, level: str = "info") -> None:
        """Show a transient toast. ``level`` is info, success, warning or error."""


class DashboardView(Protocol):
    def refresh_row(self, entity_id: str) -> None:
        ...

    def refresh_totals(self) -> None:
        ...

    def show_session_warning(self, status: SessionStatus) -> None:
        ...

    def hide_session_warning(self) -> None:
        ...

    def update_session_timer(self, status: SessionStatus) -> None:
        ...


class LoggingNotifier:
    _LEVELS = {"success": "info", "info": "info", "warning": "warning", "error": "error"}

    def notify(self, message: str, level: str = "info") -> None:
        getattr(logger, self._LEVELS.get(level, "info"))(message, data={"toast": level})


class NullView:
    def refresh_row(self, entity_id: str) -> None:
        pass

    def refresh_totals(self) -> None:
        pass

    def show_session_warning(self, status: SessionStatus) -> None:
        pass

    def hide_session_warning(self) -> None:
        pass

    def update_session_timer(self, status: SessionStatus) -> None:
        pass
