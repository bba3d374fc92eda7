"""Contact-form inbox shown on the admin dashboard."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from showroom.backend.base import BaseBackend
from showroom.config import Settings
from showroom.core import AppError, get_logger
from showroom.notifications import Notifier

logger = get_logger(__name__)


class MessageInbox:
    """Lists, opens and deletes visitor messages."""

    def __init__(
        self,
        backend: BaseBackend,
        settings: Settings,
        *,
        notifier: Notifier,
        on_read: Optional[Callable[[], Awaitable[Any]]] = None,
    ):
        self.backend = backend
        self.settings = settings
        self.notifier = notifier
        self._on_read = on_read
        self.messages: list[dict[str, Any]] = []

    @property
    def unread_count(self) -> int:
        return sum(1 for m in self.messages if not m.get("is_read"))

    async def load(self) -> list[dict[str, Any]]:
        """Newest first. On failure the current list is kept."""
        try:
            self.messages = await self.backend.select(
                self.settings.messages_table, order="created_at", descending=True
            )
        except AppError as exc:
            logger.error("Error loading messages", data={"code": exc.code.value, "error": exc.message})
            self.notifier.notify("Error loading messages", "error")
            return []
        return self.messages

    async def open(self, message_id: Any) -> Optional[dict[str, Any]]:
        """
        Fetch one message for display, marking it read on first open.

        Opening an unread message reloads the list and the stats so the
        unread badge drops straight away.
        """
        try:
            rows = await self.backend.select(
                self.settings.messages_table, filters=[("id", "eq", message_id)], limit=1
            )
        except AppError as exc:
            logger.error("Error fetching message", data={"code": exc.code.value, "message_id": message_id})
            rows = []
        if not rows:
            self.notifier.notify("Could not load message details", "error")
            return None

        message = rows[0]
        if not message.get("is_read") and await self.mark_read(message_id):
            message["is_read"] = True
            await self.load()
            if self._on_read is not None:
                await self._on_read()
        return message

    async def mark_read(self, message_id: Any) -> bool:
        try:
            await self.backend.update(
                self.settings.messages_table, {"is_read": True}, filters=[("id", "eq", message_id)]
            )
        except AppError as exc:
            logger.warning("Could not mark message read", data={"message_id": message_id, "error": exc.message})
            return False
        return True

    async def delete(self, message_id: Any) -> bool:
        try:
            await self.backend.delete(self.settings.messages_table, filters=[("id", "eq", message_id)])
        except AppError as exc:
            logger.error("Error deleting message", data={"code": exc.code.value, "message_id": message_id})
            self.notifier.notify("Failed to delete message", "error")
            return False
        self.notifier.notify("Message deleted", "success")
        await self.load()
        if self._on_read is not None:
            await self._on_read()
        return True
