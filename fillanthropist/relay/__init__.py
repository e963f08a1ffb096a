"""Broadcast relay: WebSocket fan-out, viewer client and ingestion boundary."""

from .client import RelayClient, RetryPolicy
from .ingest import IngestionService, IngestResult
from .server import BroadcastRelay, BroadcastReport

__all__ = [
    "BroadcastRelay",
    "BroadcastReport",
    "IngestResult",
    "IngestionService",
    "RelayClient",
    "RetryPolicy",
]
