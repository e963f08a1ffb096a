#!/usr/bin/env python3
"""Build and sign a sample broadcast request for exercising a local relay."""

import json
import os
import secrets
import sys
import time
from pathlib import Path

from dotenv import load_dotenv
from eth_account import Account

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fillanthropist.config import load_config
from fillanthropist.core.claims import derive_claim_hash
from fillanthropist.core.models import BroadcastRequest, Compact, Mandate
from fillanthropist.core.signatures import sign_digest, signing_digest

load_dotenv()

SOURCE_CHAIN_ID = int(os.getenv("SOURCE_CHAIN_ID", "10"))
TARGET_CHAIN_ID = int(os.getenv("TARGET_CHAIN_ID", "8453"))


def main() -> None:
    """Print a signed request as JSON, ready to POST or feed to ``verify``."""
    sponsor_key = os.getenv("SPONSOR_PRIVATE_KEY")
    allocator_key = os.getenv("ALLOCATOR_PRIVATE_KEY")
    if not sponsor_key:
        print("⚠️  SPONSOR_PRIVATE_KEY not set, using a throwaway sponsor key", file=sys.stderr)
        sponsor_key = "0x" + secrets.token_hex(32)
    if not allocator_key:
        print("⚠️  ALLOCATOR_PRIVATE_KEY not set, the allocator signature will not verify", file=sys.stderr)
        allocator_key = "0x" + secrets.token_hex(32)

    config = load_config()
    sponsor = Account.from_key(sponsor_key).address
    now = int(time.time())

    mandate = Mandate(
        chain_id=TARGET_CHAIN_ID,
        tribunal=config.chain(TARGET_CHAIN_ID).tribunal_address,
        recipient=sponsor,
        expires=now + 600,
        token="0x0000000000000000000000000000000000000001",
        minimum_amount=95 * 10**16,
        baseline_priority_fee=100 * 10**9,
        scaling_factor=15 * 10**17,
        salt="0x" + secrets.token_hex(32),
    )
    compact = Compact(
        arbiter=config.chain(SOURCE_CHAIN_ID).tribunal_address,
        sponsor=sponsor,
        nonce=int.from_bytes(secrets.token_bytes(8), "big") or 1,
        expires=now + 600,
        id=int.from_bytes(secrets.token_bytes(31), "big") or 1,
        amount=10**18,
        mandate=mandate,
    )

    claim_hash = derive_claim_hash(compact)
    digest = signing_digest(config.chain(SOURCE_CHAIN_ID).domain_prefix, claim_hash)
    request = BroadcastRequest(
        chain_id=SOURCE_CHAIN_ID,
        compact=compact,
        sponsor_signature=sign_digest(digest, sponsor_key),
        allocator_signature=sign_digest(digest, allocator_key),
        claim_hash=claim_hash,
    )

    print(json.dumps(request.to_dict(), indent=2))


if __name__ == "__main__":
    main()
