"""
Realtime row-change client.

Speaks the Phoenix channel protocol used by the hosted realtime service:
one WebSocket, one channel per subscribed table, a ``phx_join`` carrying the
``postgres_changes`` filter, and a periodic heartbeat. Reconnection after the
socket drops is not attempted here; the dashboard shows stale counts until
the next full load.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed

from showroom.backend.base import ChangeCallback, ChangeEvent, Subscription
from showroom.core import BackendUnavailableError, get_logger

logger = get_logger(__name__)

Connector = Callable[[str], Awaitable[Any]]


@dataclass
class _Channel:
    topic: str
    table: str
    events: tuple[str, ...]
    callbacks: list[ChangeCallback] = field(default_factory=list)
    joined: bool = False


class RealtimeSubscription(Subscription):
    def __init__(self, client: "RealtimeClient", topic: str, callback: ChangeCallback):
        self._client = client
        self.topic = topic
        self._callback = callback

    async def unsubscribe(self) -> None:
        await self._client.remove(self.topic, self._callback)


class RealtimeClient:
    """Multiplexes table subscriptions over a single WebSocket."""

    def __init__(
        self,
        url: str,
        api_key: str,
        heartbeat_seconds: float = 30,
        schema: str = "public",
        access_token: Optional[Callable[[], Optional[str]]] = None,
        connector: Optional[Connector] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.heartbeat_seconds = heartbeat_seconds
        self.schema = schema
        self._access_token = access_token
        self._connector = connector or self._default_connector
        self._ws: Any = None
        self._reader: Optional[asyncio.Task] = None
        self._heartbeat: Optional[asyncio.Task] = None
        self._channels: dict[str, _Channel] = {}
        self._refs = itertools.count(1)
        self._connect_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._ws is not None

    @staticmethod
    async def _default_connector(uri: str) -> Any:
        # Heartbeats are protocol-level messages; disable websocket pings.
        return await websockets.connect(uri, ping_interval=None, close_timeout=5)

    def _socket_uri(self) -> str:
        query = urlencode({"apikey": self.api_key, "vsn": "1.0.0"})
        return f"{self.url}?{query}"

    async def connect(self) -> None:
        async with self._connect_lock:
            if self._ws is not None:
                return
            try:
                self._ws = await self._connector(self._socket_uri())
            except (OSError, websockets.exceptions.WebSocketException) as exc:
                raise BackendUnavailableError(
                    "Realtime service unavailable", details={"reason": str(exc)}
                ) from exc
            self._stop_heartbeat()
            loop = asyncio.get_running_loop()
            self._reader = loop.create_task(self._read_loop())
            self._heartbeat = loop.create_task(self._heartbeat_loop())
            logger.info("Realtime socket connected")
            # Channels that outlived a dropped socket join the new one.
            for channel in self._channels.values():
                await self._join(channel)

    async def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        events: Sequence[str] = ("INSERT",),
    ) -> RealtimeSubscription:
        await self.connect()
        topic = f"realtime:{self.schema}:{table}"
        channel = self._channels.get(topic)
        if channel is None:
            channel = _Channel(topic=topic, table=table, events=tuple(events))
            self._channels[topic] = channel
            await self._join(channel)
        channel.callbacks.append(callback)
        logger.info("Subscribed to table changes", data={"table": table, "events": list(events)})
        return RealtimeSubscription(self, topic, callback)

    async def remove(self, topic: str, callback: ChangeCallback) -> None:
        channel = self._channels.get(topic)
        if channel is None:
            return
        if callback in channel.callbacks:
            channel.callbacks.remove(callback)
        if not channel.callbacks:
            self._channels.pop(topic, None)
            if self._ws is not None:
                try:
                    await self._send(topic, "phx_leave", {})
                except ConnectionClosed:
                    logger.debug("Socket already closed on leave", data={"topic": topic})

    async def close(self) -> None:
        for task in (self._reader, self._heartbeat):
            if task is not None and not task.done():
                task.cancel()
        self._reader = self._heartbeat = None
        self._channels.clear()
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except ConnectionClosed:
                pass

    async def _join(self, channel: _Channel) -> None:
        payload: dict[str, Any] = {
            "config": {
                "postgres_changes": [
                    {"event": event, "schema": self.schema, "table": channel.table}
                    for event in channel.events
                ]
            }
        }
        token = self._access_token() if self._access_token else None
        if token:
            payload["access_token"] = token
        await self._send(channel.topic, "phx_join", payload)

    async def _send(self, topic: str, event: str, payload: dict[str, Any]) -> None:
        if self._ws is None:
            raise BackendUnavailableError("Realtime socket is not connected", details={"topic": topic})
        ref = str(next(self._refs))
        message = {"topic": topic, "event": event, "payload": payload, "ref": ref}
        if event == "phx_join":
            message["join_ref"] = ref
        await self._ws.send(json.dumps(message))

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            try:
                await self._send("phoenix", "heartbeat", {})
            except (ConnectionClosed, BackendUnavailableError):
                return

    async def _read_loop(self) -> None:
        ws = self._ws
        try:
            async for raw in ws:
                await self.handle_message(raw)
        except ConnectionClosed as exc:
            logger.warning("Realtime socket closed", data={"reason": str(exc)})
        finally:
            # A replacement socket may already be connected; leave it alone.
            if self._ws is ws:
                self._ws = None
                self._stop_heartbeat()
                for channel in self._channels.values():
                    channel.joined = False

    def _stop_heartbeat(self) -> None:
        task, self._heartbeat = self._heartbeat, None
        if task is not None and not task.done():
            task.cancel()

    async def handle_message(self, raw: str | bytes) -> None:
        """Dispatch one frame received from the socket."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Dropping malformed realtime frame")
            return

        topic = message.get("topic")
        event = message.get("event")
        payload = message.get("payload") or {}
        channel = self._channels.get(topic)
        if channel is None:
            return

        if event == "phx_reply":
            status = payload.get("status")
            if status == "ok":
                channel.joined = True
            else:
                logger.warning("Realtime join rejected", data={"topic": topic, "response": payload.get("response")})
            return
        if event == "phx_error":
            channel.joined = False
            logger.warning("Realtime channel error", data={"topic": topic})
            return
        if event != "postgres_changes":
            return

        data = payload.get("data") or {}
        change = ChangeEvent(
            table=data.get("table", channel.table),
            event_type=data.get("type", ""),
            new=data.get("record") or {},
            old=data.get("old_record") or {},
        )
        if change.event_type not in channel.events and "*" not in channel.events:
            return
        for callback in list(channel.callbacks):
            try:
                result = callback(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Realtime callback failed", data={"table": change.table})
