"""Relay viewer client: reconnects with backoff and acknowledges every intent."""

from __future__ import annotations

import asyncio
import json
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests
import websockets

from fillanthropist.core.errors import RetryExhausted, ValidationError
from fillanthropist.core.models import StoredIntent
from fillanthropist.core.utils import get_logger, now_ms

LOGGER = get_logger("fillanthropist.client")

SEEN_LIMIT = 10_000


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: ``base_delay * factor ** attempt`` capped at ``max_delay``."""

    base_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 30.0
    max_attempts: Optional[int] = None

    def delay(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * self.factor**attempt)

    def should_retry(self, attempt: int) -> bool:
        return self.max_attempts is None or attempt < self.max_attempts


class Scheduler(Protocol):
    async def sleep(self, seconds: float) -> None:
        ...


class AsyncioScheduler:
    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def fetch_intents_http(api_url: str, *, timeout: float = 10) -> List[Dict[str, Any]]:
    """Fetch the relay's current intent list from ``<api_url>/api/broadcasts``."""
    url = api_url.rstrip("/") + "/api/broadcasts"
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise ConnectionError(f"Failed to fetch intents from {url}: {exc}") from exc
    payload = response.json()
    if not isinstance(payload, list):
        raise ValueError(f"Expected a list of intents from {url}")
    return payload


class RelayClient:
    """Keeps a viewer connected to the relay and surfaces each intent once."""

    def __init__(
        self,
        url: str,
        *,
        on_intent: Callable[[StoredIntent], None],
        fetch_intents: Optional[Callable[[], List[Dict[str, Any]]]] = None,
        policy: Optional[RetryPolicy] = None,
        scheduler: Optional[Scheduler] = None,
        connect: Callable[[str], Any] = websockets.connect,
    ) -> None:
        self.url = url
        self.on_intent = on_intent
        self.fetch_intents = fetch_intents
        self.policy = policy or RetryPolicy()
        self.scheduler = scheduler or AsyncioScheduler()
        self._connect = connect
        self._seen: "OrderedDict[str, None]" = OrderedDict()
        self._websocket: Any = None
        self._stopped = False
        self.attempt = 0
        self.connections = 0

    @property
    def connected(self) -> bool:
        return self._websocket is not None

    async def run(self) -> None:
        """Connect, consume and reconnect until :meth:`stop` or the policy gives up."""
        while not self._stopped:
            try:
                async with self._connect(self.url) as websocket:
                    self._websocket = websocket
                    self.attempt = 0
                    self.connections += 1
                    LOGGER.info("Connected to relay %s", self.url)
                    await self._refresh()
                    await self._consume(websocket)
                LOGGER.info("Relay %s closed the connection", self.url)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                LOGGER.warning("Relay connection to %s lost: %s", self.url, exc)
            finally:
                self._websocket = None

            if self._stopped:
                break
            if not self.policy.should_retry(self.attempt):
                raise RetryExhausted(self.attempt)
            delay = self.policy.delay(self.attempt)
            self.attempt += 1
            LOGGER.info("Reconnecting in %.1fs (attempt %s)", delay, self.attempt)
            await self.scheduler.sleep(delay)

    async def stop(self) -> None:
        self._stopped = True
        websocket = self._websocket
        if websocket is not None:
            await websocket.close()

    async def _refresh(self) -> None:
        # Intents broadcast while disconnected are not replayed over the socket.
        if self.fetch_intents is None:
            return
        try:
            payloads = await asyncio.to_thread(self.fetch_intents)
        except Exception as exc:
            LOGGER.warning("Could not refresh intent list: %s", exc)
            return
        for payload in payloads:
            self._accept(payload)

    def _accept(self, payload: Dict[str, Any]) -> Optional[StoredIntent]:
        try:
            intent = StoredIntent.from_dict(payload)
        except ValidationError as exc:
            LOGGER.warning("Ignoring malformed intent: %s", exc)
            return None
        if intent.id in self._seen:
            return intent
        self._seen[intent.id] = None
        while len(self._seen) > SEEN_LIMIT:
            self._seen.popitem(last=False)
        try:
            self.on_intent(intent)
        except Exception:
            LOGGER.exception("on_intent handler failed for %s", intent.id)
        return intent

    async def _consume(self, websocket: Any) -> None:
        async for raw in websocket:
            try:
                message = json.loads(raw)
            except (TypeError, ValueError):
                LOGGER.warning("Ignoring non-JSON frame from relay")
                continue
            if not isinstance(message, dict):
                continue

            kind = message.get("type")
            if kind == "ping":
                await websocket.send(json.dumps({"type": "pong"}))
            elif kind == "connected":
                LOGGER.info("Relay confirmed connection (%s clients)", message.get("clientCount"))
            elif kind == "newRequest":
                intent = self._accept(message.get("payload") or {})
                if intent is not None:
                    await websocket.send(
                        json.dumps({"type": "requestReceived", "requestId": intent.id, "timestamp": now_ms()})
                    )


__all__ = ["AsyncioScheduler", "RelayClient", "RetryPolicy", "Scheduler", "fetch_intents_http"]
