"""Sponsor and allocator signature verification for broadcast requests.

A sponsor authorizes an intent either with an off-chain signature over the
claim hash or by registering that claim hash with The Compact beforehand.
The verifier tries the signature first and falls back to the registration
oracle, so the relay never needs to know which path a sponsor used.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Tuple

from eth_keys import keys

from fillanthropist.core.claims import derive_claim_hash
from fillanthropist.core.errors import SignatureInvalid, UnsupportedChain
from fillanthropist.core.models import BroadcastRequest
from fillanthropist.core.utils import get_logger, hex_to_bytes, is_valid_hex, keccak, to_hex

LOGGER = get_logger("fillanthropist.signatures")

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_S_MASK = (1 << 255) - 1


class RegistrationOracle(Protocol):
    def get_registration_status(self, chain_id: int, sponsor: str, claim_hash: str, typehash: bytes):
        """Return an object with ``is_active`` and ``expires`` attributes."""


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of :meth:`SignatureVerifier.verify`.

    ``request`` is the request to store: identical to the input unless the
    sponsor was authorized through on-chain registration, in which case the
    sponsor signature is zeroed and ``compact.expires`` clamped.
    """

    is_valid: bool
    is_onchain_registration: bool
    claim_hash: str
    request: BroadcastRequest


def split_signature(signature: str) -> Tuple[int, int, int]:
    """Return ``(v, r, s)`` for a 64-byte EIP-2098 or a 65-byte ``r||s||v`` signature."""
    raw = hex_to_bytes(signature)
    if len(raw) == 64:
        r = int.from_bytes(raw[:32], "big")
        y_parity_and_s = int.from_bytes(raw[32:], "big")
        return 27 + (y_parity_and_s >> 255), r, y_parity_and_s & _S_MASK
    if len(raw) == 65:
        v = raw[64]
        return (v + 27 if v < 27 else v), int.from_bytes(raw[:32], "big"), int.from_bytes(raw[32:64], "big")
    raise ValueError(f"signature must be 64 or 65 bytes, got {len(raw)}")


def to_compact_signature(v: int, r: int, s: int) -> str:
    """Pack ``(v, r, s)`` into a 64-byte EIP-2098 compact signature."""
    y_parity = v - 27 if v >= 27 else v
    if s > SECP256K1_N // 2:
        s = SECP256K1_N - s
        y_parity ^= 1
    return to_hex(r.to_bytes(32, "big") + ((y_parity << 255) | s).to_bytes(32, "big"))


def signing_digest(domain_prefix: bytes, claim_hash: str) -> bytes:
    """``keccak(0x1901 || domainSeparator || claimHash)``."""
    return keccak(domain_prefix + hex_to_bytes(claim_hash))


def recover_signer(digest: bytes, signature: str) -> Optional[str]:
    """Return the checksummed signer, or None when recovery is impossible."""
    try:
        v, r, s = split_signature(signature)
        public_key = keys.Signature(vrs=(v - 27, r, s)).recover_public_key_from_msg_hash(digest)
        return public_key.to_checksum_address()
    except Exception as exc:  # malformed or out-of-range signature components
        LOGGER.debug("Signature recovery failed: %s", exc)
        return None


def sign_digest(digest: bytes, private_key: str) -> str:
    """Sign ``digest`` and return a compact signature. Used by tooling and tests."""
    key = keys.PrivateKey(hex_to_bytes(private_key))
    signature = key.sign_msg_hash(digest)
    return to_compact_signature(signature.v, signature.r, signature.s)


class SignatureVerifier:
    """Checks the sponsor (signature or registration) and the allocator signature."""

    def __init__(
        self,
        *,
        domain_prefixes: Mapping[int, bytes],
        allocator_address: str,
        registration_typehash: bytes,
        oracle: Optional[RegistrationOracle] = None,
    ) -> None:
        self.domain_prefixes = dict(domain_prefixes)
        self.allocator_address = allocator_address
        self.registration_typehash = registration_typehash
        self.oracle = oracle

    @classmethod
    def from_config(cls, config, oracle: Optional[RegistrationOracle] = None) -> "SignatureVerifier":
        return cls(
            domain_prefixes={chain_id: chain.domain_prefix for chain_id, chain in config.chains.items()},
            allocator_address=config.allocator_address,
            registration_typehash=config.registration_typehash,
            oracle=oracle,
        )

    def domain_prefix(self, chain_id: int) -> bytes:
        try:
            return self.domain_prefixes[int(chain_id)]
        except (KeyError, TypeError, ValueError):
            raise UnsupportedChain(chain_id) from None

    def _signed_by(self, digest: bytes, signature: str, expected: str) -> bool:
        if not is_valid_hex(signature):
            return False
        signer = recover_signer(digest, signature)
        return signer is not None and signer.lower() == expected.lower()

    def _registration_expiry(self, request: BroadcastRequest, claim_hash: str) -> Optional[int]:
        """Return the registration expiry when the claim is registered and active."""
        if self.oracle is None:
            return None
        try:
            status = self.oracle.get_registration_status(
                request.chain_id,
                request.compact.sponsor,
                claim_hash,
                self.registration_typehash,
            )
        except Exception as exc:
            LOGGER.error(
                "Registration status check failed for sponsor %s claim %s on chain %s: %s",
                request.compact.sponsor,
                claim_hash,
                request.chain_id,
                exc,
            )
            return None

        LOGGER.info(
            "Registration status for claim %s: active=%s expires=%s compactExpires=%s",
            claim_hash,
            status.is_active,
            status.expires,
            request.compact.expires,
        )
        return int(status.expires) if status.is_active else None

    def verify(self, request: BroadcastRequest) -> VerificationResult:
        """Verify both required authorizations for ``request``.

        Raises :class:`UnsupportedChain` for chains outside the allow-list and
        :class:`MissingField` when the claim hash cannot be derived; every
        signature or oracle failure is reported through the result instead.
        """
        prefix = self.domain_prefix(request.chain_id)
        claim_hash = request.claim_hash or derive_claim_hash(request.compact)
        digest = signing_digest(prefix, claim_hash)

        sponsor = request.compact.sponsor
        sponsor_valid = self._signed_by(digest, request.sponsor_signature, sponsor)
        onchain = False

        if not sponsor_valid:
            LOGGER.info("Sponsor signature invalid for %s, checking onchain registration", sponsor)
            registration_expires = self._registration_expiry(request, claim_hash)
            if registration_expires is not None:
                sponsor_valid = True
                onchain = True
                request = request.with_registration(registration_expires)

        if not sponsor_valid:
            LOGGER.warning(
                "Verification failed for compact %s: invalid sponsor signature and no active registration",
                request.id,
            )
            return VerificationResult(False, False, claim_hash, request)

        if not self._signed_by(digest, request.allocator_signature, self.allocator_address):
            LOGGER.warning("Invalid allocator signature for compact %s", request.id)
            return VerificationResult(False, onchain, claim_hash, request)

        return VerificationResult(True, onchain, claim_hash, request)

    def require_valid(self, request: BroadcastRequest) -> VerificationResult:
        """Like :meth:`verify` but raise :class:`SignatureInvalid` on failure."""
        result = self.verify(request)
        if not result.is_valid:
            raise SignatureInvalid(
                f"Invalid signatures for compact {request.id}",
                is_onchain_registration=result.is_onchain_registration,
            )
        return result


__all__ = [
    "RegistrationOracle",
    "SignatureVerifier",
    "VerificationResult",
    "recover_signer",
    "sign_digest",
    "signing_digest",
    "split_signature",
    "to_compact_signature",
]
