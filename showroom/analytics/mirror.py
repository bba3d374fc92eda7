"""
In-memory mirror of per-car click counters.

The dashboard shows lifetime counters (persisted on each car row) next to
daily counters (rebuilt from today's analytics rows). Between full loads the
mirror is kept current by two event paths:

* local events, applied optimistically the moment the admin's own tab
  records a click, before the insert is confirmed;
* remote events, applied when the realtime service reports a new analytics
  row from any client, this one included.

Realtime delivery is at-least-once, so a local click would otherwise be
counted twice once its own row comes back. Local events carry a
client-generated id that is written to the row; a remote event whose id
matches a pending local one is acknowledged and dropped.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Optional

from showroom.core import get_logger
from showroom.core.time import Clock, system_clock
from showroom.notifications import DashboardView, NullView

logger = get_logger(__name__)

VIEW = "view"
CONTACT_CLICK = "contact_click"
EVENT_TYPES = (VIEW, CONTACT_CLICK)


@dataclass
class AnalyticsEntry:
    details_clicks: int = 0
    buy_clicks: int = 0
    daily_details_clicks: int = 0
    daily_buy_clicks: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class AnalyticsTotals:
    details_clicks: int = 0
    buy_clicks: int = 0
    daily_details_clicks: int = 0
    daily_buy_clicks: int = 0


def _event_fields(event: dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
    entity_id = event.get("car_id", event.get("entity_id"))
    event_type = event.get("event_type", event.get("type"))
    return (None if entity_id is None else str(entity_id)), event_type


class AnalyticsMirror:
    """Entity id -> AnalyticsEntry, plus pending local event ids."""

    def __init__(
        self,
        view: Optional[DashboardView] = None,
        dedupe_local_events: bool = True,
        pending_ttl_seconds: float = 600,
        max_pending: int = 1000,
        clock: Clock = system_clock,
    ):
        self._entries: dict[str, AnalyticsEntry] = {}
        self._pending: OrderedDict[str, float] = OrderedDict()
        self.view: DashboardView = view or NullView()
        self.dedupe_local_events = dedupe_local_events
        self.pending_ttl_seconds = pending_ttl_seconds
        self.max_pending = max_pending
        self._clock = clock

    def __contains__(self, entity_id: object) -> bool:
        return str(entity_id) in self._entries

    def __getitem__(self, entity_id: str) -> AnalyticsEntry:
        return self._entries[str(entity_id)]

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, entity_id: str) -> AnalyticsEntry:
        """Return the entry for ``entity_id``, creating a zeroed one if needed."""
        key = str(entity_id)
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = AnalyticsEntry()
        return entry

    def snapshot(self) -> dict[str, dict[str, int]]:
        return {key: entry.to_dict() for key, entry in self._entries.items()}

    def totals(self) -> AnalyticsTotals:
        entries = self._entries.values()
        return AnalyticsTotals(
            details_clicks=sum(e.details_clicks for e in entries),
            buy_clicks=sum(e.buy_clicks for e in entries),
            daily_details_clicks=sum(e.daily_details_clicks for e in entries),
            daily_buy_clicks=sum(e.daily_buy_clicks for e in entries),
        )

    def bulk_load(
        self,
        entities: Iterable[dict[str, Any]],
        todays_events: Iterable[dict[str, Any]] = (),
    ) -> None:
        """
        Rebuild the mirror from storage.

        Args:
            entities: Car rows; ``id`` plus persisted ``details_clicks`` and
                ``buy_clicks`` (missing or null counts as 0).
            todays_events: Analytics rows since the start of today, each with
                ``car_id``/``entity_id`` and ``event_type``/``type``.
        """
        self._entries = {}
        for entity in entities:
            self._entries[str(entity["id"])] = AnalyticsEntry(
                details_clicks=entity.get("details_clicks") or 0,
                buy_clicks=entity.get("buy_clicks") or 0,
            )

        replayed = 0
        for event in todays_events:
            entity_id, event_type = _event_fields(event)
            if entity_id is None or event_type not in EVENT_TYPES:
                continue
            entry = self.get(entity_id)
            if event_type == VIEW:
                entry.daily_details_clicks += 1
            else:
                entry.daily_buy_clicks += 1
            replayed += 1

        logger.info("Analytics loaded", data={"entities": len(self._entries), "events": replayed})
        self.view.refresh_totals()

    def apply_local_event(
        self, entity_id: str, event_type: str, client_event_id: Optional[str] = None
    ) -> bool:
        """Optimistically count a click made in this client. No rollback."""
        if client_event_id and self.dedupe_local_events:
            self._remember(client_event_id)
        return self._increment(entity_id, event_type, source="local")

    def apply_remote_event(
        self, entity_id: str, event_type: str, client_event_id: Optional[str] = None
    ) -> bool:
        """
        Count a click reported by the realtime service.

        Returns False when the event was ignored: unknown type, or the echo of
        a click already applied locally.
        """
        if client_event_id and self.dedupe_local_events and self._acknowledge(client_event_id):
            logger.debug("Skipping echo of local event", data={"entity_id": entity_id})
            return False
        return self._increment(entity_id, event_type, source="remote")

    def apply_change_row(self, row: dict[str, Any]) -> bool:
        """Apply an inserted analytics row as a remote event."""
        entity_id, event_type = _event_fields(row)
        if entity_id is None or event_type is None:
            return False
        return self.apply_remote_event(entity_id, event_type, row.get("client_event_id"))

    def reset_daily(self) -> None:
        """Zero every daily counter; lifetime counters are untouched."""
        for entry in self._entries.values():
            entry.daily_details_clicks = 0
            entry.daily_buy_clicks = 0
        self.view.refresh_totals()

    def clear(self) -> None:
        self._entries = {}
        self._pending.clear()

    def _increment(self, entity_id: str, event_type: str, source: str) -> bool:
        if event_type not in EVENT_TYPES:
            logger.debug("Ignoring analytics event", data={"type": event_type, "source": source})
            return False
        entry = self.get(entity_id)
        if event_type == VIEW:
            entry.details_clicks += 1
            entry.daily_details_clicks += 1
        else:
            entry.buy_clicks += 1
            entry.daily_buy_clicks += 1
        self.view.refresh_row(str(entity_id))
        self.view.refresh_totals()
        return True

    def _remember(self, client_event_id: str) -> None:
        self._expire_pending()
        self._pending[client_event_id] = self._clock()
        while len(self._pending) > self.max_pending:
            self._pending.popitem(last=False)

    def _acknowledge(self, client_event_id: str) -> bool:
        self._expire_pending()
        return self._pending.pop(client_event_id, None) is not None

    def _expire_pending(self) -> None:
        cutoff = self._clock() - self.pending_ttl_seconds
        while self._pending:
            oldest_id, applied_at = next(iter(self._pending.items()))
            if applied_at >= cutoff:
                break
            self._pending.pop(oldest_id)
