"""
Base backend interface.

Defines the contract the admin client needs from the hosted
backend-as-a-service: authentication, table queries and writes, remote
procedure calls and row change subscriptions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

# (column, operator, value); operators follow PostgREST: eq, neq, gt, gte, lt, lte
Filter = tuple[str, str, Any]


@dataclass
class AuthUser:
    """An authenticated backend user."""

    id: str
    email: str | None = None
    access_token: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChangeEvent:
    """A row change notification from the realtime service."""

    table: str
    event_type: str  # "INSERT", "UPDATE", "DELETE"
    new: dict[str, Any] = field(default_factory=dict)
    old: dict[str, Any] = field(default_factory=dict)


ChangeCallback = Callable[[ChangeEvent], Any]


class Subscription(ABC):
    """Handle returned by ``BaseBackend.subscribe``."""

    @abstractmethod
    async def unsubscribe(self) -> None:
        ...


class BaseBackend(ABC):
    """
    Abstract base class for the hosted backend.

    Delivery of change notifications is at-least-once and includes rows
    written by this client.
    """

    async def aclose(self) -> None:
        """Close any underlying resources (optional)."""
        return None

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthUser:
        """
        Authenticate with email and password.

        Raises:
            InvalidCredentialsError: The backend rejected the credentials;
                the message is the backend's own and is shown to the admin.
        """
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        ...

    @abstractmethod
    async def get_user(self) -> AuthUser | None:
        """Return the signed-in user, or None."""
        ...

    @abstractmethod
    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Sequence[Filter] | None = None,
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def count(self, table: str, *, filters: Sequence[Filter] | None = None) -> int:
        ...

    @abstractmethod
    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    async def update(
        self, table: str, values: dict[str, Any], *, filters: Sequence[Filter]
    ) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def delete(self, table: str, *, filters: Sequence[Filter]) -> None:
        ...

    @abstractmethod
    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        ...

    @abstractmethod
    async def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        events: Sequence[str] = ("INSERT",),
    ) -> Subscription:
        """Register ``callback`` for row changes on ``table``."""
        ...
