"""WebSocket broadcast relay with heartbeats and acknowledged fan-out.

Every viewer connection gets three tasks: a reader that turns inbound frames
into events, a heartbeat that pings and watches liveness, and the event loop
in :meth:`BroadcastRelay.handle` that owns the connection state. Broadcasts
send to every open connection in parallel and wait, per connection, for a
``requestReceived`` acknowledgment. Delivery is attempted at least once per
connection open at broadcast start; nothing is retried.
"""

from __future__ import annotations

import asyncio
import enum
import itertools
import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

import websockets

from fillanthropist.config import RelayTimings
from fillanthropist.core.errors import DeliveryTimeout
from fillanthropist.core.models import StoredIntent
from fillanthropist.core.utils import get_logger, now_ms

LOGGER = get_logger("fillanthropist.relay")


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(frozen=True)
class ConnectionEvent:
    """Something that happened to a connection; consumed by the event loop."""

    kind: str  # "message", "closed" or "terminate"
    message: Optional[Dict[str, Any]] = None
    reason: str = ""


class Connection:
    """One viewer channel: liveness, state and the pending acknowledgment table."""

    def __init__(self, websocket: Any, client_id: str, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.websocket = websocket
        self.id = client_id
        self.state = ConnectionState.CONNECTING
        self.alive = True
        self._clock = clock
        self.last_seen = clock()
        self.events: "asyncio.Queue[ConnectionEvent]" = asyncio.Queue()
        self.pending: Dict[str, List[asyncio.Future]] = {}
        self.tasks: List[asyncio.Task] = []
        self.closed = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    def touch(self) -> None:
        self.alive = True
        self.last_seen = self._clock()

    def idle_for(self) -> float:
        return self._clock() - self.last_seen

    async def send_json(self, message: Dict[str, Any]) -> None:
        await self.websocket.send(json.dumps(message))

    def expect_ack(self, request_id: str) -> asyncio.Future:
        """Register a waiter for one delivery; overlapping deliveries of an id each get their own."""
        future = asyncio.get_running_loop().create_future()
        self.pending.setdefault(request_id, []).append(future)
        return future

    def discard_ack(self, request_id: str, future: asyncio.Future) -> None:
        waiters = self.pending.get(request_id)
        if waiters and future in waiters:
            waiters.remove(future)
            if not waiters:
                del self.pending[request_id]

    def resolve_ack(self, request_id: str) -> bool:
        """Resolve every waiter for ``request_id``; one ack satisfies all open deliveries."""
        resolved = False
        timestamp = now_ms()
        for future in self.pending.pop(request_id, []):
            if not future.done():
                future.set_result(timestamp)
                resolved = True
        return resolved

    def fail_pending(self, reason: str) -> None:
        for future in itertools.chain.from_iterable(self.pending.values()):
            if not future.done():
                future.set_exception(ConnectionError(reason))
                # Mark retrieved so an unawaited failure is not reported at GC.
                future.exception()
        self.pending.clear()


@dataclass
class BroadcastReport:
    """Per-broadcast delivery counts. Failures never propagate to the caller."""

    request_id: str
    attempted: int = 0
    delivered: int = 0
    failed: int = 0
    skipped: int = 0
    failures: Dict[str, str] = field(default_factory=dict)


_DELIVERED = "delivered"
_SKIPPED = "skipped"


class BroadcastRelay:
    """Owns every viewer connection and fans intents out to them."""

    def __init__(self, timings: Optional[RelayTimings] = None, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.timings = timings or RelayTimings()
        self._clock = clock
        self._connections: Set[Connection] = set()
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self._server: Any = None
        self._closing = False
        self.delivery_failures = 0

    @property
    def client_count(self) -> int:
        return sum(1 for connection in self._connections if connection.is_open)

    async def serve(self, host: str, port: int) -> Any:
        """Start accepting viewers on ``ws://host:port``."""
        self._server = await websockets.serve(self.handle, host, port)
        LOGGER.info("WebSocket relay listening on ws://%s:%s", host, port)
        return self._server

    async def handle(self, websocket: Any) -> None:
        """Run one viewer connection until it closes or is terminated."""
        connection = Connection(websocket, f"client-{next(self._ids)}", clock=self._clock)
        if self._closing:
            await self._close_socket(connection, "relay shutting down")
            return

        async with self._lock:
            self._connections.add(connection)
        connection.state = ConnectionState.OPEN
        LOGGER.info("Client %s connected (%s open)", connection.id, self.client_count)

        try:
            await asyncio.wait_for(
                connection.send_json({"type": "connected", "timestamp": now_ms(), "clientCount": self.client_count}),
                self.timings.send_timeout,
            )
            connection.tasks = [
                asyncio.create_task(self._read(connection)),
                asyncio.create_task(self._heartbeat(connection)),
            ]
            await self._process_events(connection)
        except (asyncio.TimeoutError, websockets.ConnectionClosed, OSError) as exc:
            LOGGER.warning("Client %s dropped during setup: %s", connection.id, exc)
        finally:
            await self._cleanup(connection)

    async def _read(self, connection: Connection) -> None:
        reason = "client closed"
        try:
            async for raw in connection.websocket:
                try:
                    message = json.loads(raw)
                except (TypeError, ValueError):
                    LOGGER.warning("Client %s sent a non-JSON frame", connection.id)
                    connection.touch()
                    continue
                if isinstance(message, dict):
                    await connection.events.put(ConnectionEvent("message", message=message))
                else:
                    connection.touch()
        except websockets.ConnectionClosed as exc:
            reason = f"connection closed: {exc}"
        except Exception as exc:
            reason = f"read error: {exc}"
            LOGGER.warning("Client %s read failed: %s", connection.id, exc)
        await connection.events.put(ConnectionEvent("closed", reason=reason))

    async def _heartbeat(self, connection: Connection) -> None:
        interval = self.timings.heartbeat_interval
        while connection.is_open:
            await asyncio.sleep(interval)
            if not connection.is_open:
                return
            if connection.idle_for() > self.timings.heartbeat_timeout:
                connection.alive = False
                LOGGER.warning("Client %s missed heartbeats for %.1fs, terminating", connection.id, connection.idle_for())
                await connection.events.put(ConnectionEvent("terminate", reason="heartbeat timeout"))
                return
            try:
                await asyncio.wait_for(connection.send_json({"type": "ping"}), self.timings.send_timeout)
            except Exception as exc:
                await connection.events.put(ConnectionEvent("terminate", reason=f"ping failed: {exc}"))
                return

    async def _process_events(self, connection: Connection) -> None:
        while True:
            event = await connection.events.get()
            if event.kind in ("closed", "terminate"):
                LOGGER.info("Client %s leaving: %s", connection.id, event.reason)
                return

            connection.touch()
            message = event.message or {}
            kind = message.get("type")
            if kind == "pong":
                continue
            if kind == "ping":
                try:
                    await asyncio.wait_for(connection.send_json({"type": "pong"}), self.timings.send_timeout)
                except Exception as exc:
                    LOGGER.warning("Client %s pong failed: %s", connection.id, exc)
            elif kind == "requestReceived":
                request_id = str(message.get("requestId", ""))
                if not connection.resolve_ack(request_id):
                    LOGGER.debug("Client %s acknowledged unknown request %s", connection.id, request_id)
            else:
                LOGGER.debug("Client %s sent unhandled message type %r", connection.id, kind)

    async def _close_socket(self, connection: Connection, reason: str) -> None:
        try:
            await asyncio.wait_for(connection.websocket.close(), self.timings.send_timeout)
        except Exception as exc:
            LOGGER.debug("Closing client %s (%s) raised: %s", connection.id, reason, exc)

    async def _cleanup(self, connection: Connection) -> None:
        connection.state = ConnectionState.CLOSING
        current = asyncio.current_task()
        for task in connection.tasks:
            if task is not current:
                task.cancel()
        for task in connection.tasks:
            if task is not current:
                try:
                    await task
                except (asyncio.CancelledError, Exception):
                    pass
        connection.fail_pending("connection closed")
        await self._close_socket(connection, "cleanup")
        connection.state = ConnectionState.CLOSED
        async with self._lock:
            self._connections.discard(connection)
        connection.closed.set()
        LOGGER.info("Client %s disconnected (%s open)", connection.id, self.client_count)

    async def _deliver(self, connection: Connection, request_id: str, message: str) -> str:
        if not connection.is_open:
            return _SKIPPED
        future = connection.expect_ack(request_id)
        try:
            try:
                await asyncio.wait_for(connection.websocket.send(message), self.timings.send_timeout)
            except asyncio.TimeoutError:
                raise DeliveryTimeout(connection.id, request_id, "send") from None
            try:
                await asyncio.wait_for(future, self.timings.ack_timeout)
            except asyncio.TimeoutError:
                raise DeliveryTimeout(connection.id, request_id, "acknowledgment") from None
        finally:
            connection.discard_ack(request_id, future)
        return _DELIVERED

    async def broadcast(self, intent: StoredIntent) -> BroadcastReport:
        """Send ``intent`` to every open connection and wait for their acknowledgments."""
        message = json.dumps({"type": "newRequest", "payload": intent.to_dict()})
        async with self._lock:
            targets = list(self._connections)

        report = BroadcastReport(request_id=intent.id, attempted=len(targets))
        outcomes = await asyncio.gather(
            *(self._deliver(connection, intent.id, message) for connection in targets),
            return_exceptions=True,
        )
        for connection, outcome in zip(targets, outcomes):
            if outcome == _DELIVERED:
                report.delivered += 1
            elif outcome == _SKIPPED:
                report.skipped += 1
            else:
                report.failed += 1
                report.failures[connection.id] = str(outcome)
                self.delivery_failures += 1
                LOGGER.warning("Broadcast of %s to %s failed: %s", intent.id, connection.id, outcome)

        LOGGER.info(
            "Broadcast %s: attempted=%s delivered=%s failed=%s skipped=%s",
            intent.id,
            report.attempted,
            report.delivered,
            report.failed,
            report.skipped,
        )
        return report

    async def close(self) -> None:
        """Stop accepting viewers, terminate every connection and wait for cleanup."""
        self._closing = True
        if self._server is not None:
            self._server.close()

        async with self._lock:
            connections = list(self._connections)
        for connection in connections:
            connection.state = ConnectionState.CLOSING
            await connection.events.put(ConnectionEvent("terminate", reason="relay shutdown"))
        for connection in connections:
            try:
                await asyncio.wait_for(connection.closed.wait(), self.timings.send_timeout)
            except asyncio.TimeoutError:
                LOGGER.warning("Client %s did not close in time, forcing cleanup", connection.id)
                await self._cleanup(connection)

        if self._server is not None:
            await self._server.wait_closed()
            self._server = None
        LOGGER.info("WebSocket relay closed")


__all__ = [
    "BroadcastRelay",
    "BroadcastReport",
    "Connection",
    "ConnectionEvent",
    "ConnectionState",
]
