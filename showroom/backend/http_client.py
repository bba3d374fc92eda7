"""
HTTP plumbing shared by the REST backend.

Network failures are retried a bounded number of times; HTTP error statuses
are never retried and are turned into ``AppError`` subclasses so callers can
branch on ``ErrorCode`` instead of httpx types.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from showroom.core import (
    BackendAuthError,
    BackendBadResponseError,
    BackendError,
    BackendUnavailableError,
    NotFoundError,
    RateLimitError,
    get_logger,
)

logger = get_logger(__name__)

RETRYABLE = (httpx.TimeoutException, httpx.NetworkError)
MESSAGE_KEYS = ("error_description", "msg", "message", "error")


def create_http_client(
    base_url: str,
    timeout_seconds: int,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Build the AsyncClient used for every backend call.

    Args:
        base_url: Project URL; a trailing slash is dropped.
        timeout_seconds: Applied to connect, read, write and pool acquisition.
        headers: Headers sent on every request (API key, content type).
        transport: Replacement transport, e.g. ``httpx.MockTransport``.
    """
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        timeout=httpx.Timeout(timeout_seconds),
        headers=headers or {},
        transport=transport,
    )


def _backoff(attempt: int) -> float:
    return min(0.1 * (attempt + 1), 1.0)


async def request_with_retries(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, retrying timeouts and connection errors up to ``max_retries`` times."""
    attempt = 0
    while True:
        try:
            return await client.request(method, url, **kwargs)
        except RETRYABLE as exc:
            if attempt >= max_retries:
                logger.warning(
                    "Backend unreachable", data={"method": method, "url": url, "attempts": attempt + 1}
                )
                raise BackendUnavailableError("Backend unavailable", details={"reason": str(exc)}) from exc
        except httpx.HTTPError as exc:
            if attempt >= max_retries:
                raise BackendError("Backend request failed", details={"reason": str(exc)}) from exc
        attempt += 1
        logger.debug("Retrying backend request", data={"url": url, "attempt": attempt})
        await asyncio.sleep(_backoff(attempt - 1))


def raise_for_status(response: httpx.Response) -> None:
    """Raise the ``AppError`` matching an error status; no-op below 400."""
    status = response.status_code
    if status < 400:
        return

    details = {
        "status": status,
        "body": response.text[:300] if response.text else "",
        "path": response.url.path,
    }
    if status in (401, 403):
        raise BackendAuthError(details=details, status_code=status)
    if status == 404:
        raise NotFoundError(f"Backend resource not found: {response.url.path}")
    if status == 429:
        raise RateLimitError("Rate limit exceeded", details=details)
    if status >= 500:
        raise BackendUnavailableError("Backend unavailable", details=details)
    raise BackendError(error_message(response, "Backend error"), details=details)


def parse_json(response: httpx.Response) -> Any:
    """Decoded body, or None for an empty one."""
    if not response.content:
        return None
    try:
        return response.json()
    except json.JSONDecodeError as exc:
        raise BackendBadResponseError(
            "Backend returned invalid response",
            details={"body": response.text[:500]},
        ) from exc


def error_message(response: httpx.Response, default: str) -> str:
    """Human-readable message from an auth or REST error body."""
    try:
        body = response.json()
    except json.JSONDecodeError:
        return default
    if not isinstance(body, dict):
        return default
    for key in MESSAGE_KEYS:
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return default
