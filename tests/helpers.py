"""Builders for signed broadcast requests used across the test suite."""

from __future__ import annotations

import copy
import time
from dataclasses import replace
from typing import Any, Dict, Optional

from eth_account import Account

from fillanthropist.config import DEFAULT_CONFIG
from fillanthropist.core.claims import derive_claim_hash
from fillanthropist.core.models import BroadcastRequest, StoredIntent
from fillanthropist.core.signatures import SignatureVerifier, sign_digest, signing_digest
from fillanthropist.core.utils import hex_to_bytes

SPONSOR_KEY = "0x" + "11" * 32
ALLOCATOR_KEY = "0x" + "22" * 32
STRANGER_KEY = "0x" + "33" * 32

SPONSOR = Account.from_key(SPONSOR_KEY).address
ALLOCATOR = Account.from_key(ALLOCATOR_KEY).address

CHAIN_ID = 10
TARGET_CHAIN_ID = 8453
DOMAIN_PREFIX = hex_to_bytes(DEFAULT_CONFIG["chains"]["10"]["domain_prefix"])
REGISTRATION_TYPEHASH = hex_to_bytes(DEFAULT_CONFIG["contracts"]["registration_typehash"])

ARBITER = "0xb7dD9E63A0d594C6e58c84bB85660819B7941770"
TRIBUNAL = "0xC0AdfB14A08c5A3f0d6c21cFa601b43bA93B3c8A"
TOKEN = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def compact_payload(
    *,
    compact_id: int = 42,
    expires: Optional[int] = None,
    mandate_expires: Optional[int] = None,
    **mandate_overrides: Any,
) -> Dict[str, Any]:
    expires = int(time.time()) + 600 if expires is None else expires
    mandate_expires = expires if mandate_expires is None else mandate_expires
    mandate = {
        "chainId": TARGET_CHAIN_ID,
        "tribunal": TRIBUNAL,
        "recipient": SPONSOR,
        "expires": str(mandate_expires),
        "token": TOKEN,
        "minimumAmount": str(95 * 10**16),
        "baselinePriorityFee": str(100 * 10**9),
        "scalingFactor": str(15 * 10**17),
        "salt": "0x" + "ab" * 32,
    }
    mandate.update(mandate_overrides)
    return {
        "arbiter": ARBITER,
        "sponsor": SPONSOR,
        "nonce": "7",
        "expires": str(expires),
        "id": str(compact_id),
        "amount": str(10**18),
        "mandate": mandate,
    }


def signed_payload(
    *,
    compact: Optional[Dict[str, Any]] = None,
    sponsor_key: str = SPONSOR_KEY,
    allocator_key: str = ALLOCATOR_KEY,
    chain_id: int = CHAIN_ID,
    prefix: bytes = DOMAIN_PREFIX,
) -> Dict[str, Any]:
    """Return a request dict whose signatures cover the derived claim hash."""
    compact = copy.deepcopy(compact) if compact is not None else compact_payload()
    unsigned = {
        "chainId": str(chain_id),
        "compact": compact,
        "sponsorSignature": "0x",
        "allocatorSignature": "0x",
    }
    claim_hash = derive_claim_hash(BroadcastRequest.from_dict(unsigned).compact)
    digest = signing_digest(prefix, claim_hash)
    unsigned["sponsorSignature"] = sign_digest(digest, sponsor_key)
    unsigned["allocatorSignature"] = sign_digest(digest, allocator_key)
    unsigned["context"] = {"dispensation": "1000", "slippageBips": 50}
    return unsigned


def stored_intent(
    *,
    compact_id: int = 42,
    timestamp: Optional[int] = None,
    expires: Optional[int] = None,
    mandate_expires: Optional[int] = None,
) -> StoredIntent:
    compact = compact_payload(compact_id=compact_id, expires=expires, mandate_expires=mandate_expires)
    request = BroadcastRequest.from_dict(signed_payload(compact=compact))
    claim_hash = derive_claim_hash(request.compact)
    timestamp = int(time.time() * 1000) if timestamp is None else timestamp
    return StoredIntent(request=replace(request, claim_hash=claim_hash), claim_hash=claim_hash, timestamp=timestamp)


def make_verifier(oracle: Any = None) -> SignatureVerifier:
    return SignatureVerifier(
        domain_prefixes={CHAIN_ID: DOMAIN_PREFIX},
        allocator_address=ALLOCATOR,
        registration_typehash=REGISTRATION_TYPEHASH,
        oracle=oracle,
    )
