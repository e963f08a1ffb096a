"""Core domain logic for the relay."""

from .claims import derive_claim_hash, derive_mandate_hash
from .models import BroadcastRequest, Compact, Context, Mandate, StoredIntent
from .settlement import WAD, derive_priority_fee, derive_settlement_amount
from .store import IntentStore

__all__ = [
    "BroadcastRequest",
    "Compact",
    "Context",
    "IntentStore",
    "Mandate",
    "StoredIntent",
    "WAD",
    "derive_claim_hash",
    "derive_mandate_hash",
    "derive_priority_fee",
    "derive_settlement_amount",
]
