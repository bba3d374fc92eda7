"""Click analytics: in-memory mirror, daily reset and event tracking."""

from showroom.analytics.mirror import (
    CONTACT_CLICK,
    EVENT_TYPES,
    VIEW,
    AnalyticsEntry,
    AnalyticsMirror,
    AnalyticsTotals,
)
from showroom.analytics.scheduler import DailyResetScheduler
from showroom.analytics.tracker import EventTracker

__all__ = [
    "CONTACT_CLICK",
    "EVENT_TYPES",
    "VIEW",
    "AnalyticsEntry",
    "AnalyticsMirror",
    "AnalyticsTotals",
    "DailyResetScheduler",
    "EventTracker",
]
