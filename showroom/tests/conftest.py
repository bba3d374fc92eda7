import inspect
from collections import defaultdict
from typing import Any, Sequence

import pytest

from showroom.backend.base import AuthUser, BaseBackend, ChangeCallback, ChangeEvent, Filter, Subscription
from showroom.config import Settings
from showroom.core import InvalidCredentialsError
from showroom.core.time import from_iso
from showroom.storage import MemoryStore


def _comparable(value: Any) -> Any:
    if isinstance(value, str) and "T" in value:
        try:
            return from_iso(value)
        except ValueError:
            return value
    return value


def _matches(row: dict[str, Any], filters: Sequence[Filter] | None) -> bool:
    for column, op, value in filters or ():
        actual = _comparable(row.get(column))
        expected = _comparable(value)
        if op == "eq" and actual != expected:
            return False
        if op == "neq" and actual == expected:
            return False
        if op in ("gt", "gte", "lt", "lte"):
            if actual is None:
                return False
            if op == "gt" and not actual > expected:
                return False
            if op == "gte" and not actual >= expected:
                return False
            if op == "lt" and not actual < expected:
                return False
            if op == "lte" and not actual <= expected:
                return False
    return True


class FakeSubscription(Subscription):
    def __init__(self, backend: "FakeBackend", table: str, entry: tuple):
        self.backend = backend
        self.table = table
        self.entry = entry

    async def unsubscribe(self) -> None:
        entries = self.backend.subscribers[self.table]
        if self.entry in entries:
            entries.remove(self.entry)


class FakeBackend(BaseBackend):
    """In-memory stand-in for the hosted backend."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.accounts: dict[str, tuple[str, AuthUser]] = {}
        self.current: AuthUser | None = None
        self.calls: list[tuple[str, Any]] = []
        self.failures: dict[str, Exception] = {}
        self.subscribers: dict[str, list[tuple[ChangeCallback, tuple[str, ...]]]] = defaultdict(list)

    def add_account(self, email: str, password: str, user_id: str, role: str | None = "admin") -> AuthUser:
        user = AuthUser(id=user_id, email=email, access_token=f"token-{user_id}")
        self.accounts[email] = (password, user)
        if role is not None:
            self.tables["users"].append({"id": user_id, "role": role})
        return user

    def _check(self, method: str, arg: Any = None) -> None:
        self.calls.append((method, arg))
        failure = self.failures.get(method)
        if failure is not None:
            raise failure

    def count_calls(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    async def sign_in(self, email: str, password: str) -> AuthUser:
        self._check("sign_in", email)
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise InvalidCredentialsError("Invalid login credentials")
        self.current = account[1]
        return account[1]

    async def sign_out(self) -> None:
        self._check("sign_out")
        self.current = None

    async def get_user(self) -> AuthUser | None:
        self._check("get_user")
        return self.current

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
        self._check("select", table)
        rows = [dict(r) for r in self.tables[table] if _matches(r, filters)]
        if order:
            rows.sort(key=lambda r: _comparable(r.get(order)) or 0, reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def count(self, table: str, *, filters: Sequence[Filter] | None = None) -> int:
        self._check("count", table)
        return sum(1 for r in self.tables[table] if _matches(r, filters))

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        self._check("insert", table)
        self.tables[table].append(dict(row))
        return dict(row)

    async def update(self, table: str, values: dict[str, Any], *, filters: Sequence[Filter]) -> list[dict[str, Any]]:
        self._check("update", table)
        updated = []
        for row in self.tables[table]:
            if _matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    async def delete(self, table: str, *, filters: Sequence[Filter]) -> None:
        self._check("delete", table)
        self.tables[table] = [r for r in self.tables[table] if not _matches(r, filters)]

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        self._check("rpc", function)
        return []

    async def subscribe(
        self, table: str, callback: ChangeCallback, events: Sequence[str] = ("INSERT",)
    ) -> Subscription:
        self._check("subscribe", table)
        entry = (callback, tuple(events))
        self.subscribers[table].append(entry)
        return FakeSubscription(self, table, entry)

    async def emit(self, table: str, event_type: str, row: dict[str, Any]) -> None:
        """Deliver a change notification to subscribers."""
        for callback, events in list(self.subscribers[table]):
            if event_type in events or "*" in events:
                result = callback(ChangeEvent(table=table, event_type=event_type, new=dict(row)))
                if inspect.isawaitable(result):
                    await result


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def notify(self, message: str, level: str = "info") -> None:
        self.messages.append((message, level))

    def texts(self) -> list[str]:
        return [m for m, _ in self.messages]


class RecordingView:
    def __init__(self) -> None:
        self.rows: list[str] = []
        self.totals_refreshes = 0
        self.warnings_shown = 0
        self.warnings_hidden = 0
        self.ticks: list[Any] = []

    def refresh_row(self, entity_id: str) -> None:
        self.rows.append(entity_id)

    def refresh_totals(self) -> None:
        self.totals_refreshes += 1

    def show_session_warning(self, status: Any) -> None:
        self.warnings_shown += 1

    def hide_session_warning(self) -> None:
        self.warnings_hidden += 1

    def update_session_timer(self, status: Any) -> None:
        self.ticks.append(status)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        backend_url="http://backend.test",
        backend_anon_key="anon-key",
        backend_max_retries=0,
        state_file=str(tmp_path / "state.json"),
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def session_store():
    return MemoryStore()
