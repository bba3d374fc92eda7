"""Storefront click tracking.

A click is reported to local listeners first, so the dashboard in the same
client updates instantly, and only then persisted. A failed insert is
logged and otherwise ignored: the optimistic count stands.
"""

from __future__ import annotations

import uuid
from typing import Callable, Optional

from showroom.analytics.mirror import CONTACT_CLICK, EVENT_TYPES
from showroom.backend.base import BaseBackend
from showroom.core import AppError, ValidationError, get_logger

logger = get_logger(__name__)

LocalListener = Callable[[str, str, str], object]


class EventTracker:
    def __init__(
        self,
        backend: BaseBackend,
        table: str = "analytics",
        user_agent: str = "showroom-client",
        increment_lifetime: bool = False,
    ):
        self.backend = backend
        self.table = table
        self.user_agent = user_agent
        # Bump cars.buy_clicks through the increment_buy_clicks procedure
        self.increment_lifetime = increment_lifetime
        self._listeners: list[LocalListener] = []

    def add_listener(self, listener: LocalListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: LocalListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def track(self, entity_id: str, event_type: str) -> str:
        """
        Record a view or contact click for a car.

        Returns the client event id written with the row.

        Raises:
            ValidationError: ``event_type`` is not a tracked type.
        """
        if event_type not in EVENT_TYPES:
            raise ValidationError(f"Unknown analytics event type: {event_type}")
        entity_id = str(entity_id)
        client_event_id = uuid.uuid4().hex

        for listener in list(self._listeners):
            try:
                listener(entity_id, event_type, client_event_id)
            except Exception:
                logger.exception("Local analytics listener failed")

        try:
            await self.backend.insert(
                self.table,
                {
                    "car_id": entity_id,
                    "event_type": event_type,
                    "client_event_id": client_event_id,
                    "user_ip": "unknown",
                    "user_agent": self.user_agent,
                },
            )
            if self.increment_lifetime and event_type == CONTACT_CLICK:
                await self.backend.rpc("increment_buy_clicks", {"car_id_to_increment": entity_id})
        except AppError as exc:
            logger.warning(
                "Could not save analytics event",
                data={"car_id": entity_id, "type": event_type, "error": exc.message},
            )
        return client_event_id

    async def track_view(self, entity_id: str) -> str:
        return await self.track(entity_id, "view")

    async def track_contact_click(self, entity_id: str) -> str:
        return await self.track(entity_id, CONTACT_CLICK)
