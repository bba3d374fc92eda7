"""Hosted backend adapters."""

from showroom.backend.base import (
    AuthUser,
    BaseBackend,
    ChangeCallback,
    ChangeEvent,
    Filter,
    Subscription,
)
from showroom.backend.realtime import RealtimeClient
from showroom.backend.rest import RestBackend

__all__ = [
    "AuthUser",
    "BaseBackend",
    "ChangeCallback",
    "ChangeEvent",
    "Filter",
    "Subscription",
    "RealtimeClient",
    "RestBackend",
]
