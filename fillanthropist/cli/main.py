"""CLI entrypoint for running and inspecting the intent relay."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from fillanthropist import __version__
from fillanthropist.config import AppConfig, load_config
from fillanthropist.core.claims import derive_claim_hash
from fillanthropist.core.compact import TheCompactService
from fillanthropist.core.models import BroadcastRequest, StoredIntent
from fillanthropist.core.settlement import derive_priority_fee, derive_settlement_amount
from fillanthropist.core.signatures import SignatureVerifier
from fillanthropist.core.utils import get_logger, load_json_file
from fillanthropist.relay.app import RelayApplication
from fillanthropist.relay.client import RelayClient, fetch_intents_http

LOGGER = get_logger("fillanthropist.cli")

load_dotenv()


def _load_request(path: Path) -> BroadcastRequest:
    return BroadcastRequest.from_dict(load_json_file(path))


def _config(args: argparse.Namespace) -> AppConfig:
    return load_config(args.config)


def _print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2))


def cmd_claim_hash(args: argparse.Namespace) -> None:
    request = _load_request(args.file)
    print(derive_claim_hash(request.compact))


def cmd_verify(args: argparse.Namespace) -> None:
    config = _config(args)
    oracle = None if args.offline else TheCompactService(config)
    verifier = SignatureVerifier.from_config(config, oracle=oracle)
    result = verifier.verify(_load_request(args.file))
    _print_json(
        {
            "isValid": result.is_valid,
            "isOnchainRegistration": result.is_onchain_registration,
            "claimHash": result.claim_hash,
            "sponsorSignature": result.request.sponsor_signature,
            "expires": str(result.request.compact.expires),
        }
    )
    if not result.is_valid:
        sys.exit(2)


def cmd_settlement(args: argparse.Namespace) -> None:
    print(
        derive_settlement_amount(
            args.priority_fee,
            args.minimum_amount,
            args.baseline_priority_fee,
            args.scaling_factor,
        )
    )


def cmd_priority_fee(args: argparse.Namespace) -> None:
    print(
        derive_priority_fee(
            args.desired_settlement,
            args.minimum_amount,
            args.baseline_priority_fee,
            args.scaling_factor,
        )
    )


async def _serve(app: RelayApplication, host: Optional[str], port: Optional[int]) -> None:
    await app.start(host, port)
    try:
        await asyncio.Event().wait()
    finally:
        await app.stop()


def cmd_serve(args: argparse.Namespace) -> None:
    app = RelayApplication(_config(args))
    try:
        asyncio.run(_serve(app, args.host, args.port))
    except KeyboardInterrupt:
        LOGGER.info("Relay stopped")


def _log_intent(intent: StoredIntent) -> None:
    mandate = intent.compact.mandate
    LOGGER.info(
        "Intent %s: chain=%s sponsor=%s amount=%s -> chain=%s token=%s minimumAmount=%s claimHash=%s",
        intent.id,
        intent.request.chain_id,
        intent.compact.sponsor,
        intent.compact.amount,
        mandate.chain_id,
        mandate.token,
        mandate.minimum_amount,
        intent.claim_hash,
    )


def cmd_watch(args: argparse.Namespace) -> None:
    fetch = (lambda: fetch_intents_http(args.api_url)) if args.api_url else None
    client = RelayClient(args.url, on_intent=_log_intent, fetch_intents=fetch)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        LOGGER.info("Watcher stopped")


def _uint(value: str) -> int:
    try:
        return int(value, 0)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {value}") from exc


def _add_mandate_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--minimum-amount", type=_uint, required=True, help="Mandate minimumAmount (wei)")
    parser.add_argument("--baseline-priority-fee", type=_uint, required=True, help="Mandate baselinePriorityFee (wei)")
    parser.add_argument("--scaling-factor", type=_uint, required=True, help="Mandate scalingFactor (WAD)")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Relay signed cross-chain swap intents to fillers")
    parser.add_argument("--config", type=Path, default=None, help="Path to a JSON config file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    claim_hash = subparsers.add_parser("claim-hash", help="Print the claim hash of a broadcast request")
    claim_hash.add_argument("file", type=Path)
    claim_hash.set_defaults(func=cmd_claim_hash)

    verify = subparsers.add_parser("verify", help="Verify sponsor and allocator signatures")
    verify.add_argument("file", type=Path)
    verify.add_argument("--offline", action="store_true", help="Skip the onchain registration fallback")
    verify.set_defaults(func=cmd_verify)

    settlement = subparsers.add_parser("settlement", help="Derive the settlement amount for a priority fee")
    settlement.add_argument("--priority-fee", type=_uint, required=True, help="Priority fee (wei)")
    _add_mandate_args(settlement)
    settlement.set_defaults(func=cmd_settlement)

    priority_fee = subparsers.add_parser("priority-fee", help="Derive the priority fee for a settlement amount")
    priority_fee.add_argument("--desired-settlement", type=_uint, required=True, help="Target settlement (wei)")
    _add_mandate_args(priority_fee)
    priority_fee.set_defaults(func=cmd_priority_fee)

    serve = subparsers.add_parser("serve", help="Run the WebSocket relay")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=cmd_serve)

    watch = subparsers.add_parser("watch", help="Follow a relay and log incoming intents")
    watch.add_argument("url", help="Relay WebSocket URL, e.g. ws://localhost:3001")
    watch.add_argument("--api-url", default=None, help="HTTP base URL serving /api/broadcasts")
    watch.set_defaults(func=cmd_watch)

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    try:
        args.func(args)
    except Exception as exc:
        print(f"\n❌ Error: {exc}")
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover - CLI entry
    main()
