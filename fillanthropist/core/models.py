"""Typed intent models and their camelCase wire representation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

from fillanthropist.core.errors import MissingField, ValidationError
from fillanthropist.core.utils import is_valid_address, is_valid_hex, to_uint

ZERO_SIGNATURE = "0x" + "0" * 128


def _require(data: Mapping[str, Any], key: str, context: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise MissingField(f"{context} {key}")
    return value


def _address(data: Mapping[str, Any], key: str, context: str) -> str:
    value = _require(data, key, context)
    if not is_valid_address(value):
        raise ValidationError(f"Invalid {key} address format")
    return value


def _uint(data: Mapping[str, Any], key: str, context: str) -> int:
    value = _require(data, key, context)
    try:
        return to_uint(value, field_name=f"{context} {key}")
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _hex(data: Mapping[str, Any], key: str, label: str) -> str:
    value = _require(data, key, "request")
    if not is_valid_hex(value):
        raise ValidationError(f"Invalid {label} format")
    return value


@dataclass(frozen=True)
class Mandate:
    """Fill-side settlement terms attached to a compact as its witness."""

    chain_id: int
    tribunal: str
    recipient: str
    expires: int
    token: str
    minimum_amount: int
    baseline_priority_fee: int
    scaling_factor: int
    salt: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Mandate":
        if not isinstance(data, Mapping):
            raise ValidationError("mandate must be an object")
        salt = _require(data, "salt", "Mandate")
        if not is_valid_hex(salt) or len(salt) != 66:
            raise ValidationError("Invalid salt format - must be 32 bytes of hex")
        return cls(
            chain_id=_uint(data, "chainId", "Mandate"),
            tribunal=_address(data, "tribunal", "Mandate"),
            recipient=_address(data, "recipient", "Mandate"),
            expires=_uint(data, "expires", "Mandate"),
            token=_address(data, "token", "Mandate"),
            minimum_amount=_uint(data, "minimumAmount", "Mandate"),
            baseline_priority_fee=_uint(data, "baselinePriorityFee", "Mandate"),
            scaling_factor=_uint(data, "scalingFactor", "Mandate"),
            salt=salt,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "tribunal": self.tribunal,
            "recipient": self.recipient,
            "expires": str(self.expires),
            "token": self.token,
            "minimumAmount": str(self.minimum_amount),
            "baselinePriorityFee": str(self.baseline_priority_fee),
            "scalingFactor": str(self.scaling_factor),
            "salt": self.salt,
        }


@dataclass(frozen=True)
class Compact:
    """A sponsor's authorization to move locked funds under a mandate."""

    arbiter: str
    sponsor: str
    nonce: int
    expires: int
    id: int
    amount: int
    mandate: Mandate

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Compact":
        if not isinstance(data, Mapping):
            raise ValidationError("compact must be an object")
        return cls(
            arbiter=_address(data, "arbiter", "Compact"),
            sponsor=_address(data, "sponsor", "Compact"),
            nonce=_uint(data, "nonce", "Compact"),
            expires=_uint(data, "expires", "Compact"),
            id=_uint(data, "id", "Compact"),
            amount=_uint(data, "amount", "Compact"),
            mandate=Mandate.from_dict(_require(data, "mandate", "Compact")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "arbiter": self.arbiter,
            "sponsor": self.sponsor,
            "nonce": str(self.nonce),
            "expires": str(self.expires),
            "id": str(self.id),
            "amount": str(self.amount),
            "mandate": self.mandate.to_dict(),
        }


_CONTEXT_KEYS = {
    "dispensation": "dispensation",
    "dispensationUSD": "dispensation_usd",
    "spotOutputAmount": "spot_output_amount",
    "quoteOutputAmountDirect": "quote_output_amount_direct",
    "quoteOutputAmountNet": "quote_output_amount_net",
    "slippageBips": "slippage_bips",
    "witnessTypeString": "witness_type_string",
    "witnessHash": "witness_hash",
}


@dataclass(frozen=True)
class Context:
    """Advisory quote metadata. Display only, never used for settlement math."""

    dispensation: Optional[str] = None
    dispensation_usd: Optional[str] = None
    spot_output_amount: Optional[str] = None
    quote_output_amount_direct: Optional[str] = None
    quote_output_amount_net: Optional[str] = None
    slippage_bips: Optional[int] = None
    witness_type_string: Optional[str] = None
    witness_hash: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Context":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValidationError("context must be an object")
        known = {attr: data[key] for key, attr in _CONTEXT_KEYS.items() if key in data}
        extra = {key: value for key, value in data.items() if key not in _CONTEXT_KEYS}
        return cls(extra=extra, **known)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = dict(self.extra)
        for key, attr in _CONTEXT_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                result[key] = value
        return result


@dataclass(frozen=True)
class BroadcastRequest:
    """A signed intent as submitted by the sponsoring system."""

    chain_id: int
    compact: Compact
    sponsor_signature: str
    allocator_signature: str
    context: Context = field(default_factory=Context)
    claim_hash: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BroadcastRequest":
        """Validate shape, addresses and hex strings. No crypto happens here."""
        if not isinstance(data, Mapping):
            raise ValidationError("broadcast request must be an object")
        claim_hash = data.get("claimHash")
        if claim_hash is not None and (not is_valid_hex(claim_hash) or len(claim_hash) != 66):
            raise ValidationError("Invalid claimHash format")
        compact = Compact.from_dict(_require(data, "compact", "request"))
        return cls(
            chain_id=_uint(data, "chainId", "request"),
            compact=compact,
            sponsor_signature=_hex(data, "sponsorSignature", "sponsor signature"),
            allocator_signature=_hex(data, "allocatorSignature", "allocator signature"),
            context=Context.from_dict(data.get("context")),
            claim_hash=claim_hash,
        )

    @property
    def id(self) -> str:
        return str(self.compact.id)

    def with_registration(self, registration_expires: int) -> "BroadcastRequest":
        """Return a copy authorized by on-chain registration instead of a signature."""
        expires = min(self.compact.expires, registration_expires)
        return replace(
            self,
            sponsor_signature=ZERO_SIGNATURE,
            compact=replace(self.compact, expires=expires),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "chainId": str(self.chain_id),
            "compact": self.compact.to_dict(),
            "sponsorSignature": self.sponsor_signature,
            "allocatorSignature": self.allocator_signature,
            "context": self.context.to_dict(),
        }
        if self.claim_hash is not None:
            result["claimHash"] = self.claim_hash
        return result


@dataclass(frozen=True)
class StoredIntent:
    """An accepted request plus its ingestion time (epoch ms) and claim hash."""

    request: BroadcastRequest
    claim_hash: str
    timestamp: int

    @property
    def id(self) -> str:
        return self.request.id

    @property
    def compact(self) -> Compact:
        return self.request.compact

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StoredIntent":
        request = BroadcastRequest.from_dict(data)
        claim_hash = _require(data, "claimHash", "stored intent")
        timestamp = _uint(data, "timestamp", "stored intent")
        return cls(request=request, claim_hash=claim_hash, timestamp=timestamp)

    def to_dict(self) -> Dict[str, Any]:
        result = self.request.to_dict()
        result["timestamp"] = self.timestamp
        result["claimHash"] = self.claim_hash
        return result


__all__ = [
    "BroadcastRequest",
    "Compact",
    "Context",
    "Mandate",
    "StoredIntent",
    "ZERO_SIGNATURE",
]
