"""Ingestion boundary: validate, verify, store, then fan out."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Union

from fillanthropist.core.claims import derive_claim_hash
from fillanthropist.core.compact import TheCompactService
from fillanthropist.core.errors import SignatureInvalid, ValidationError
from fillanthropist.core.models import BroadcastRequest, StoredIntent
from fillanthropist.core.signatures import SignatureVerifier
from fillanthropist.core.store import IntentStore
from fillanthropist.core.utils import get_logger, now_ms
from fillanthropist.relay.server import BroadcastRelay, BroadcastReport

LOGGER = get_logger("fillanthropist.ingest")

BROADCAST_WARNING = "Some connected clients may not have received the broadcast"


@dataclass(frozen=True)
class IngestResult:
    accepted: bool
    request_id: str
    claim_hash: str
    is_onchain_registration: bool = False
    warning: Optional[str] = None
    report: Optional[BroadcastReport] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.accepted,
            "message": "Broadcast request received and processed",
            "requestId": self.request_id,
            "claimHash": self.claim_hash,
        }
        if self.warning:
            result["message"] = "Broadcast request received but WebSocket broadcast had issues"
            result["warning"] = self.warning
        return result


class IngestionService:
    """Accepts broadcast requests on behalf of the HTTP layer."""

    def __init__(
        self,
        *,
        store: IntentStore,
        relay: BroadcastRelay,
        verifier: SignatureVerifier,
        compact_service: Optional[TheCompactService] = None,
        broadcast_timeout: float = 10.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.relay = relay
        self.verifier = verifier
        self.compact_service = compact_service
        self.broadcast_timeout = broadcast_timeout
        self._clock = clock
        self._broadcasts: Set[asyncio.Task] = set()

    async def ingest(self, payload: Union[BroadcastRequest, Mapping[str, Any]]) -> IngestResult:
        """Accept one request; the result is independent of relay fan-out outcome.

        Raises :class:`ValidationError` for malformed input,
        :class:`UnsupportedChain` and :class:`SignatureInvalid`.
        """
        request = payload if isinstance(payload, BroadcastRequest) else BroadcastRequest.from_dict(payload)
        LOGGER.info("Processing broadcast request %s on chain %s", request.id, request.chain_id)

        self.verifier.domain_prefix(request.chain_id)
        claim_hash = derive_claim_hash(request.compact)
        if request.claim_hash and request.claim_hash.lower() != claim_hash:
            raise ValidationError(f"claimHash {request.claim_hash} does not match the compact ({claim_hash})")
        request = replace(request, claim_hash=claim_hash)

        verification = await asyncio.to_thread(self.verifier.verify, request)
        if not verification.is_valid:
            raise SignatureInvalid(
                f"Invalid signatures for compact {request.id}",
                is_onchain_registration=verification.is_onchain_registration,
            )

        await self._log_lock_details(verification.request)

        intent = StoredIntent(request=verification.request, claim_hash=claim_hash, timestamp=self._clock())
        self.store.add(intent)
        LOGGER.info("Stored %s; %s clients connected before broadcast", intent.id, self.relay.client_count)

        warning = None
        report = None
        task = asyncio.create_task(self.relay.broadcast(intent))
        self._broadcasts.add(task)
        task.add_done_callback(self._broadcasts.discard)
        try:
            # Shielded: a slow fan-out keeps running on its own per-client timeouts.
            report = await asyncio.wait_for(asyncio.shield(task), self.broadcast_timeout)
            if report.failed:
                warning = BROADCAST_WARNING
        except asyncio.TimeoutError:
            LOGGER.error("Broadcast of %s exceeded %ss", intent.id, self.broadcast_timeout)
            warning = BROADCAST_WARNING
        except Exception as exc:
            LOGGER.error("WebSocket broadcast of %s failed: %s", intent.id, exc)
            warning = BROADCAST_WARNING

        self.store.clear_old()
        return IngestResult(
            accepted=True,
            request_id=intent.id,
            claim_hash=claim_hash,
            is_onchain_registration=verification.is_onchain_registration,
            warning=warning,
            report=report,
        )

    async def _log_lock_details(self, request: BroadcastRequest) -> None:
        if self.compact_service is None:
            return
        try:
            status = await asyncio.to_thread(
                self.compact_service.get_lock_details_with_status,
                request.chain_id,
                request.compact.id,
                request.compact.sponsor,
                request.compact.nonce,
            )
        except Exception as exc:
            LOGGER.warning("Could not load lock details for %s: %s", request.id, exc)
            return
        if status.nonce_consumed:
            LOGGER.warning("Allocator nonce %s for %s is already consumed", request.compact.nonce, request.id)

    def list_intents(self) -> List[StoredIntent]:
        return self.store.list()

    def get_intent(self, intent_id: str) -> Optional[StoredIntent]:
        return self.store.get(intent_id)

    async def drain(self) -> None:
        """Wait for in-flight broadcasts; used on shutdown."""
        if self._broadcasts:
            await asyncio.gather(*list(self._broadcasts), return_exceptions=True)


__all__ = ["BROADCAST_WARNING", "IngestResult", "IngestionService"]
