"""
REST adapter for the hosted backend.

Authentication goes through the ``/auth/v1`` endpoints, table access through
the PostgREST surface under ``/rest/v1``. Change subscriptions are delegated
to a :class:`RealtimeClient` that shares the signed-in user's token.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx

from showroom.backend.base import AuthUser, BaseBackend, ChangeCallback, Filter, Subscription
from showroom.backend.http_client import (
    create_http_client,
    error_message,
    parse_json,
    raise_for_status,
    request_with_retries,
)
from showroom.backend.realtime import RealtimeClient
from showroom.config import Settings
from showroom.core import (
    BackendBadResponseError,
    BackendUnavailableError,
    InvalidCredentialsError,
    get_logger,
)

logger = get_logger(__name__)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def filter_params(filters: Sequence[Filter] | None) -> list[tuple[str, str]]:
    """Render ``(column, op, value)`` filters as PostgREST query params."""
    params: list[tuple[str, str]] = []
    for column, op, value in filters or ():
        if value is None and op == "eq":
            params.append((column, "is.null"))
        else:
            params.append((column, f"{op}.{_format_value(value)}"))
    return params


class RestBackend(BaseBackend):
    """Backend reached over HTTP."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: int = 15,
        max_retries: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        realtime: Optional[RealtimeClient] = None,
    ):
        self.api_key = api_key
        self.max_retries = max_retries
        self._client = create_http_client(
            base_url,
            timeout,
            headers={"apikey": api_key, "Content-Type": "application/json"},
            transport=transport,
        )
        self._access_token: Optional[str] = None
        self._user: Optional[AuthUser] = None
        self._realtime = realtime

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "RestBackend":
        backend = cls(
            settings.backend_url,
            settings.backend_anon_key,
            timeout=settings.backend_timeout_seconds,
            max_retries=settings.backend_max_retries,
            **kwargs,
        )
        if backend._realtime is None:
            backend._realtime = RealtimeClient(
                settings.realtime_url,
                settings.backend_anon_key,
                heartbeat_seconds=settings.realtime_heartbeat_seconds,
                access_token=lambda: backend._access_token,
            )
        return backend

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._access_token or self.api_key}"}
        headers.update(extra)
        return headers

    async def _request(
        self, method: str, url: str, *, retry: bool = True, **kwargs: Any
    ) -> httpx.Response:
        headers = self._headers(**kwargs.pop("headers", {}))
        max_retries = self.max_retries if retry else 0
        return await request_with_retries(
            self._client, method, url, max_retries=max_retries, headers=headers, **kwargs
        )

    async def aclose(self) -> None:
        if self._realtime is not None:
            await self._realtime.close()
        await self._client.aclose()

    # Auth

    async def sign_in(self, email: str, password: str) -> AuthUser:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if response.status_code in (400, 401, 422):
            raise InvalidCredentialsError(error_message(response, "Invalid email or password."))
        raise_for_status(response)

        body = parse_json(response) or {}
        user = body.get("user") or {}
        if "access_token" not in body or "id" not in user:
            raise BackendBadResponseError("Sign-in response missing session")
        self._access_token = body["access_token"]
        self._user = AuthUser(
            id=str(user["id"]),
            email=user.get("email"),
            access_token=self._access_token,
            metadata=user.get("user_metadata") or {},
        )
        return self._user

    async def sign_out(self) -> None:
        token = self._access_token
        self._access_token = None
        self._user = None
        if token is None:
            return
        response = await request_with_retries(
            self._client,
            "POST",
            "/auth/v1/logout",
            max_retries=self.max_retries,
            headers={"Authorization": f"Bearer {token}"},
        )
        if response.status_code not in (401, 403, 404):
            raise_for_status(response)

    async def get_user(self) -> AuthUser | None:
        if self._access_token is None:
            return None
        response = await self._request("GET", "/auth/v1/user")
        if response.status_code in (401, 403):
            self._access_token = None
            self._user = None
            return None
        raise_for_status(response)
        user = parse_json(response) or {}
        self._user = AuthUser(
            id=str(user["id"]),
            email=user.get("email"),
            access_token=self._access_token,
            metadata=user.get("user_metadata") or {},
        )
        return self._user

    # Tables

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
        params = [("select", columns), *filter_params(filters)]
        if order:
            params.append(("order", f"{order}.{'desc' if descending else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))
        response = await self._request("GET", f"/rest/v1/{table}", params=params)
        raise_for_status(response)
        rows = parse_json(response)
        if not isinstance(rows, list):
            raise BackendBadResponseError("Expected a list of rows", details={"table": table})
        return rows

    async def count(self, table: str, *, filters: Sequence[Filter] | None = None) -> int:
        params = [("select", "*"), *filter_params(filters)]
        response = await self._request(
            "HEAD", f"/rest/v1/{table}", params=params, headers={"Prefer": "count=exact"}
        )
        raise_for_status(response)
        content_range = response.headers.get("content-range", "")
        _, _, total = content_range.partition("/")
        try:
            return int(total)
        except ValueError as exc:
            raise BackendBadResponseError(
                "Missing row count", details={"content-range": content_range}
            ) from exc

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        # A timed-out insert may have landed; resending would write it twice.
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            retry=False,
            json=row,
            headers={"Prefer": "return=representation"},
        )
        raise_for_status(response)
        rows = parse_json(response) or []
        return rows[0] if isinstance(rows, list) and rows else {}

    async def update(
        self, table: str, values: dict[str, Any], *, filters: Sequence[Filter]
    ) -> list[dict[str, Any]]:
        response = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=filter_params(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        raise_for_status(response)
        return parse_json(response) or []

    async def delete(self, table: str, *, filters: Sequence[Filter]) -> None:
        response = await self._request("DELETE", f"/rest/v1/{table}", params=filter_params(filters))
        raise_for_status(response)

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._request("POST", f"/rest/v1/rpc/{function}", json=params or {})
        raise_for_status(response)
        return parse_json(response)

    # Realtime

    async def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        events: Sequence[str] = ("INSERT",),
    ) -> Subscription:
        if self._realtime is None:
            raise BackendUnavailableError("Realtime changes are not configured for this backend")
        return await self._realtime.subscribe(table, callback, events)
