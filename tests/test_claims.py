"""Tests for claim and mandate hashing."""

from __future__ import annotations

from dataclasses import replace

import pytest

from fillanthropist.core.claims import (
    COMPACT_TYPESTRING,
    MANDATE_TYPESTRING,
    derive_claim_hash,
    derive_mandate_hash,
    validate_compact,
)
from fillanthropist.core.errors import MissingField, ValidationError
from fillanthropist.core.models import Compact
from tests.helpers import compact_payload


def _compact(**overrides) -> Compact:
    payload = compact_payload()
    payload.update(overrides)
    return Compact.from_dict(payload)


class TestDeriveClaimHash:
    def test_format(self) -> None:
        claim_hash = derive_claim_hash(_compact())
        assert claim_hash.startswith("0x")
        assert len(claim_hash) == 66
        assert claim_hash == claim_hash.lower()

    def test_deterministic(self) -> None:
        assert derive_claim_hash(_compact()) == derive_claim_hash(_compact())

    def test_address_case_does_not_matter(self) -> None:
        compact = _compact()
        lowered = replace(
            compact,
            arbiter=compact.arbiter.lower(),
            sponsor=compact.sponsor.lower(),
            mandate=replace(compact.mandate, token=compact.mandate.token.lower()),
        )
        uppered = replace(compact, sponsor="0x" + compact.sponsor[2:].upper())
        assert derive_claim_hash(lowered) == derive_claim_hash(compact) == derive_claim_hash(uppered)

    def test_every_field_is_covered(self) -> None:
        base = derive_claim_hash(_compact())
        assert derive_claim_hash(_compact(nonce="8")) != base
        assert derive_claim_hash(_compact(amount="1")) != base
        changed_mandate = replace(_compact().mandate, minimum_amount=1)
        assert derive_claim_hash(replace(_compact(), mandate=changed_mandate)) != base

    def test_mandate_hash_changes_with_salt(self) -> None:
        mandate = _compact().mandate
        other = replace(mandate, salt="0x" + "cd" * 32)
        assert derive_mandate_hash(mandate) != derive_mandate_hash(other)
        assert len(derive_mandate_hash(mandate)) == 32

    def test_typestrings_nest_mandate(self) -> None:
        assert COMPACT_TYPESTRING.endswith(MANDATE_TYPESTRING)
        assert "Mandate mandate)" in COMPACT_TYPESTRING


class TestValidation:
    def test_zero_nonce_is_missing(self) -> None:
        with pytest.raises(MissingField) as excinfo:
            derive_claim_hash(replace(_compact(), nonce=0))
        assert excinfo.value.name == "Compact nonce"

    def test_zero_baseline_fee_is_missing(self) -> None:
        compact = _compact()
        with pytest.raises(MissingField) as excinfo:
            derive_claim_hash(replace(compact, mandate=replace(compact.mandate, baseline_priority_fee=0)))
        assert excinfo.value.name == "Mandate baselinePriorityFee"

    def test_zero_string_from_the_wire_is_missing(self) -> None:
        payload = compact_payload(baselinePriorityFee="0")
        with pytest.raises(MissingField, match="Mandate baselinePriorityFee"):
            derive_claim_hash(Compact.from_dict(payload))

    def test_zero_amount_is_missing(self) -> None:
        with pytest.raises(MissingField, match="Compact amount is required"):
            derive_claim_hash(replace(_compact(), amount=0))

    def test_mandate_checked_before_compact(self) -> None:
        compact = _compact()
        broken = replace(compact, nonce=0, mandate=replace(compact.mandate, scaling_factor=0))
        with pytest.raises(MissingField) as excinfo:
            validate_compact(broken)
        assert excinfo.value.name == "Mandate scalingFactor"

    def test_missing_mandate(self) -> None:
        with pytest.raises(MissingField, match="Compact mandate"):
            validate_compact(replace(_compact(), mandate=None))

    def test_short_salt_rejected(self) -> None:
        compact = _compact()
        with pytest.raises(ValidationError):
            derive_claim_hash(replace(compact, mandate=replace(compact.mandate, salt="0x1234")))
