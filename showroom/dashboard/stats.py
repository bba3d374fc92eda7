"""Dashboard summary cards and click chart ranges."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from showroom.analytics.mirror import CONTACT_CLICK, VIEW
from showroom.backend.base import BaseBackend
from showroom.config import Settings
from showroom.core import AppError, get_logger
from showroom.core.time import from_iso, start_of_local_day

logger = get_logger(__name__)

CHART_RANGES = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class DashboardStats:
    total_cars: int = 0
    available_cars: int = 0
    sold_cars: int = 0
    inventory_value: float = 0.0
    average_inventory_age_days: float = 0.0
    details_clicks_today: int = 0
    buy_clicks_today: int = 0
    unread_messages: Optional[int] = None


def compute_inventory_stats(cars: Iterable[dict[str, Any]], now: float) -> DashboardStats:
    """Counts, stock value and average age (in days) of available cars."""
    cars = list(cars)
    available = [c for c in cars if c.get("status") == "available"]
    ages = [
        (now - from_iso(c["created_at"])) / SECONDS_PER_DAY
        for c in available
        if c.get("created_at")
    ]
    return DashboardStats(
        total_cars=len(cars),
        available_cars=len(available),
        sold_cars=sum(1 for c in cars if c.get("status") == "sold"),
        inventory_value=float(sum(c.get("price") or 0 for c in cars)),
        average_inventory_age_days=(sum(ages) / len(ages)) if ages else 0.0,
    )


async def fetch_dashboard_stats(
    backend: BaseBackend, settings: Settings, now: float
) -> DashboardStats:
    """
    Load the summary cards.

    Raises:
        AppError: The cars or analytics query failed. A failed unread
            message count only leaves ``unread_messages`` as None.
    """
    cars = await backend.select(settings.cars_table, columns="status, price, created_at")
    stats = compute_inventory_stats(cars, now)

    today = start_of_local_day(now).isoformat()
    events = await backend.select(
        settings.analytics_table,
        columns="event_type",
        filters=[("created_at", "gte", today)],
    )
    stats.details_clicks_today = sum(1 for e in events if e.get("event_type") == VIEW)
    stats.buy_clicks_today = sum(1 for e in events if e.get("event_type") == CONTACT_CLICK)

    try:
        stats.unread_messages = await backend.count(
            settings.messages_table, filters=[("is_read", "eq", False)]
        )
    except AppError as exc:
        logger.warning("Could not count unread messages", data={"error": exc.message})
    return stats


def chart_start_date(range_key: str, now: float) -> datetime:
    """Local midnight ``range_key`` days ago. Unknown ranges fall back to 7d."""
    days = CHART_RANGES.get(range_key, CHART_RANGES["7d"])
    return start_of_local_day(now) - timedelta(days=days)


async def fetch_chart_data(backend: BaseBackend, range_key: str, now: float) -> Any:
    start = chart_start_date(range_key, now)
    return await backend.rpc("get_daily_clicks", {"start_date": start.isoformat()})
