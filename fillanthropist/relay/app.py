"""Wiring of store, verifier, relay and on-chain services into one service."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional, Union

from fillanthropist.config import AppConfig, load_config
from fillanthropist.core.compact import LockStatus, TheCompactService, Web3Factory, default_web3_factory
from fillanthropist.core.models import BroadcastRequest
from fillanthropist.core.signatures import SignatureVerifier
from fillanthropist.core.store import IntentStore
from fillanthropist.core.tribunal import TribunalService
from fillanthropist.core.utils import get_logger
from fillanthropist.relay.ingest import IngestionService
from fillanthropist.relay.server import BroadcastRelay

LOGGER = get_logger("fillanthropist.app")


class RelayApplication:
    """Constructed at startup and shut down on termination; holds no globals."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        *,
        web3_factory: Web3Factory = default_web3_factory,
    ) -> None:
        self.config = config or load_config()
        self.store = IntentStore(
            max_age_seconds=self.config.store.max_age_seconds,
            stale_after_seconds=self.config.store.stale_after_seconds,
        )
        self.relay = BroadcastRelay(self.config.relay)
        self.compact_service = TheCompactService(self.config, web3_factory=web3_factory)
        self.tribunal_service = TribunalService(self.config, web3_factory=web3_factory)
        self.verifier = SignatureVerifier.from_config(self.config, oracle=self.compact_service)
        self.ingestion = IngestionService(
            store=self.store,
            relay=self.relay,
            verifier=self.verifier,
            compact_service=self.compact_service,
            broadcast_timeout=self.config.relay.broadcast_timeout,
        )

    async def start(self, host: Optional[str] = None, port: Optional[int] = None) -> Any:
        """Start the relay; returns the listening websockets server."""
        return await self.relay.serve(host or self.config.host, self.config.port if port is None else port)

    async def stop(self) -> None:
        await self.ingestion.drain()
        await self.relay.close()

    async def quote_dispensation(
        self,
        request: Union[BroadcastRequest, Mapping[str, Any]],
        claimant: str,
        target_chain_id: int,
    ) -> int:
        """Advisory dispensation for display; never feeds settlement math."""
        if not isinstance(request, BroadcastRequest):
            request = BroadcastRequest.from_dict(request)
        return await asyncio.to_thread(self.tribunal_service.get_quote, request, claimant, target_chain_id)

    async def lock_details(self, chain_id: int, lock_id: int, sponsor: str, nonce: int) -> LockStatus:
        return await asyncio.to_thread(
            self.compact_service.get_lock_details_with_status, chain_id, lock_id, sponsor, nonce
        )


__all__ = ["RelayApplication"]
