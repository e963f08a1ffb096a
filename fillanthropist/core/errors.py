"""Error taxonomy for intent ingestion, verification and relay."""

from __future__ import annotations

from typing import Optional


class FillanthropistError(Exception):
    """Base class for every error raised by the relay core."""


class ValidationError(FillanthropistError, ValueError):
    """Raised when a request is malformed and rejected before any crypto work."""


class MissingField(ValidationError):
    """Raised when a field required for the claim hash is missing or zero."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} is required")
        self.name = name


class UnsupportedChain(FillanthropistError, ValueError):
    """Raised for chain ids outside the fixed allow-list."""

    def __init__(self, chain_id: object) -> None:
        super().__init__(f"Unsupported chain ID: {chain_id}")
        self.chain_id = chain_id


class UnimplementedScaling(FillanthropistError, NotImplementedError):
    """Raised for exact-out scaling factors (below 1e18), which have no formula."""

    def __init__(self, scaling_factor: int) -> None:
        super().__init__(f"unimplemented: exact-out scaling factor {scaling_factor} is not supported")
        self.scaling_factor = scaling_factor


class SignatureInvalid(FillanthropistError):
    """Raised when neither sponsor path or the allocator signature checks out."""

    def __init__(self, message: str, *, is_onchain_registration: bool = False) -> None:
        super().__init__(message)
        self.is_onchain_registration = is_onchain_registration


class DeliveryTimeout(FillanthropistError, TimeoutError):
    """A single relay client failed to take or acknowledge a message in time."""

    def __init__(self, client_id: str, request_id: str, stage: str) -> None:
        super().__init__(f"client {client_id} timed out during {stage} of request {request_id}")
        self.client_id = client_id
        self.request_id = request_id
        self.stage = stage


class OracleUnavailable(FillanthropistError, ConnectionError):
    """Raised when an on-chain read (registration, lock details, quote) fails."""

    def __init__(self, message: str, *, chain_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.chain_id = chain_id


class RetryExhausted(FillanthropistError):
    """Raised by the relay client once its retry policy gives up."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"giving up after {attempts} reconnect attempts")
        self.attempts = attempts


__all__ = [
    "DeliveryTimeout",
    "FillanthropistError",
    "MissingField",
    "OracleUnavailable",
    "RetryExhausted",
    "SignatureInvalid",
    "UnimplementedScaling",
    "UnsupportedChain",
    "ValidationError",
]
