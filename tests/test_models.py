"""Tests for request parsing and serialization."""

from __future__ import annotations

import pytest

from fillanthropist.core.errors import MissingField, ValidationError
from fillanthropist.core.models import ZERO_SIGNATURE, BroadcastRequest, Context, StoredIntent
from tests.helpers import compact_payload, signed_payload, stored_intent


class TestBroadcastRequest:
    def test_parses_numeric_strings(self) -> None:
        request = BroadcastRequest.from_dict(signed_payload())
        assert request.chain_id == 10
        assert request.compact.amount == 10**18
        assert request.compact.mandate.scaling_factor == 15 * 10**17
        assert request.id == "42"

    def test_accepts_hex_integers(self) -> None:
        payload = signed_payload()
        payload["compact"]["id"] = "0x2a"
        assert BroadcastRequest.from_dict(payload).compact.id == 42

    def test_missing_sponsor(self) -> None:
        payload = signed_payload()
        del payload["compact"]["sponsor"]
        with pytest.raises(MissingField, match="Compact sponsor is required"):
            BroadcastRequest.from_dict(payload)

    def test_bad_address(self) -> None:
        payload = signed_payload()
        payload["compact"]["arbiter"] = "0x1234"
        with pytest.raises(ValidationError, match="Invalid arbiter address format"):
            BroadcastRequest.from_dict(payload)

    def test_bad_salt(self) -> None:
        payload = signed_payload()
        payload["compact"]["mandate"]["salt"] = "0x" + "ab" * 31
        with pytest.raises(ValidationError, match="salt"):
            BroadcastRequest.from_dict(payload)

    def test_bad_signature_hex(self) -> None:
        payload = signed_payload()
        payload["sponsorSignature"] = "0xzz"
        with pytest.raises(ValidationError, match="Invalid sponsor signature format"):
            BroadcastRequest.from_dict(payload)

    def test_bad_claim_hash(self) -> None:
        payload = signed_payload()
        payload["claimHash"] = "0x1234"
        with pytest.raises(ValidationError, match="claimHash"):
            BroadcastRequest.from_dict(payload)

    def test_negative_amount(self) -> None:
        payload = signed_payload()
        payload["compact"]["amount"] = "-5"
        with pytest.raises(ValidationError):
            BroadcastRequest.from_dict(payload)

    def test_not_an_object(self) -> None:
        with pytest.raises(ValidationError):
            BroadcastRequest.from_dict(["not", "a", "dict"])  # type: ignore[arg-type]

    def test_to_dict_uses_wire_format(self) -> None:
        data = BroadcastRequest.from_dict(signed_payload()).to_dict()
        assert data["chainId"] == "10"
        assert data["compact"]["amount"] == str(10**18)
        assert data["compact"]["mandate"]["chainId"] == 8453
        assert data["compact"]["mandate"]["minimumAmount"] == str(95 * 10**16)
        assert data["context"]["slippageBips"] == 50

    def test_with_registration_clamps_expiry(self) -> None:
        request = BroadcastRequest.from_dict(signed_payload(compact=compact_payload(expires=5000)))
        registered = request.with_registration(4000)
        assert registered.sponsor_signature == ZERO_SIGNATURE
        assert registered.compact.expires == 4000
        assert registered.compact.mandate.expires == 5000
        assert request.with_registration(9000).compact.expires == 5000


class TestContext:
    def test_unknown_keys_survive(self) -> None:
        context = Context.from_dict({"dispensationUSD": "$1.00", "routeHint": "fast"})
        assert context.dispensation_usd == "$1.00"
        assert context.to_dict() == {"routeHint": "fast", "dispensationUSD": "$1.00"}

    def test_absent_context(self) -> None:
        assert Context.from_dict(None).to_dict() == {}


class TestStoredIntent:
    def test_round_trips_through_wire_format(self) -> None:
        intent = stored_intent(timestamp=1_700_000_000_000)
        data = intent.to_dict()
        assert data["timestamp"] == 1_700_000_000_000
        assert data["claimHash"] == intent.claim_hash
        assert StoredIntent.from_dict(data) == intent

    def test_requires_claim_hash(self) -> None:
        data = stored_intent().to_dict()
        del data["claimHash"]
        with pytest.raises(MissingField):
            StoredIntent.from_dict(data)
