"""EIP-712 struct hashing for compacts and their mandate witness."""

from __future__ import annotations

from typing import Iterable, Tuple

from eth_abi import encode

from fillanthropist.core.errors import MissingField, ValidationError
from fillanthropist.core.models import Compact, Mandate
from fillanthropist.core.utils import hex_to_bytes, is_valid_address, keccak, to_hex

MANDATE_TYPESTRING = (
    "Mandate(uint256 chainId,address tribunal,address recipient,uint256 expires,address token,"
    "uint256 minimumAmount,uint256 baselinePriorityFee,uint256 scalingFactor,bytes32 salt)"
)
COMPACT_TYPESTRING = (
    "Compact(address arbiter,address sponsor,uint256 nonce,uint256 expires,uint256 id,"
    "uint256 amount,Mandate mandate)" + MANDATE_TYPESTRING
)

MANDATE_TYPEHASH = keccak(MANDATE_TYPESTRING.encode("utf-8"))
COMPACT_TYPEHASH = keccak(COMPACT_TYPESTRING.encode("utf-8"))

_MANDATE_TYPES = [
    "bytes32",
    "uint256",
    "address",
    "address",
    "uint256",
    "address",
    "uint256",
    "uint256",
    "uint256",
    "bytes32",
]
_COMPACT_TYPES = ["bytes32", "address", "address", "uint256", "uint256", "uint256", "uint256", "bytes32"]


def _require_fields(fields: Iterable[Tuple[str, object]]) -> None:
    for name, value in fields:
        if value is None or value == "" or value == 0:
            raise MissingField(name)


def _address_bytes(value: str, name: str) -> bytes:
    # Lower-casing first keeps mixed-case input from tripping checksum validation.
    if not is_valid_address(value):
        raise ValidationError(f"Invalid {name} address format")
    return hex_to_bytes(value.lower())


def _salt_bytes(salt: str) -> bytes:
    try:
        raw = hex_to_bytes(salt)
    except ValueError as exc:
        raise ValidationError("Mandate salt is not valid hex") from exc
    if len(raw) != 32:
        raise ValidationError("Mandate salt must be 32 bytes")
    return raw


def validate_mandate(mandate: Mandate) -> None:
    _require_fields(
        [
            ("Mandate chainId", mandate.chain_id),
            ("Mandate tribunal", mandate.tribunal),
            ("Mandate recipient", mandate.recipient),
            ("Mandate expires", mandate.expires),
            ("Mandate token", mandate.token),
            ("Mandate minimumAmount", mandate.minimum_amount),
            ("Mandate baselinePriorityFee", mandate.baseline_priority_fee),
            ("Mandate scalingFactor", mandate.scaling_factor),
            ("Mandate salt", mandate.salt),
        ]
    )


def validate_compact(compact: Compact) -> None:
    """Check every field the claim hash covers, mandate first."""
    if compact.mandate is None:
        raise MissingField("Compact mandate")
    validate_mandate(compact.mandate)
    _require_fields(
        [
            ("Compact arbiter", compact.arbiter),
            ("Compact sponsor", compact.sponsor),
            ("Compact nonce", compact.nonce),
            ("Compact expires", compact.expires),
            ("Compact id", compact.id),
            ("Compact amount", compact.amount),
        ]
    )


def derive_mandate_hash(mandate: Mandate) -> bytes:
    """Return the witness hash of ``mandate``."""
    validate_mandate(mandate)
    encoded = encode(
        _MANDATE_TYPES,
        [
            MANDATE_TYPEHASH,
            mandate.chain_id,
            _address_bytes(mandate.tribunal, "tribunal"),
            _address_bytes(mandate.recipient, "recipient"),
            mandate.expires,
            _address_bytes(mandate.token, "token"),
            mandate.minimum_amount,
            mandate.baseline_priority_fee,
            mandate.scaling_factor,
            _salt_bytes(mandate.salt),
        ],
    )
    return keccak(encoded)


def derive_claim_hash(compact: Compact) -> str:
    """Return the ``0x``-prefixed claim hash of ``compact`` and its mandate.

    The hash carries no chain-specific domain; that is prepended by the
    signature verifier.
    """
    validate_compact(compact)
    mandate_hash = derive_mandate_hash(compact.mandate)
    encoded = encode(
        _COMPACT_TYPES,
        [
            COMPACT_TYPEHASH,
            _address_bytes(compact.arbiter, "arbiter"),
            _address_bytes(compact.sponsor, "sponsor"),
            compact.nonce,
            compact.expires,
            compact.id,
            compact.amount,
            mandate_hash,
        ],
    )
    return to_hex(keccak(encoded))


__all__ = [
    "COMPACT_TYPEHASH",
    "COMPACT_TYPESTRING",
    "MANDATE_TYPEHASH",
    "MANDATE_TYPESTRING",
    "derive_claim_hash",
    "derive_mandate_hash",
    "validate_compact",
    "validate_mandate",
]
