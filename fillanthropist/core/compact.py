"""Read-only access to The Compact lock ledger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from web3 import Web3
from web3.contract import Contract

from fillanthropist.config import AppConfig
from fillanthropist.contracts import THE_COMPACT_ABI, load_contract_abi
from fillanthropist.core.errors import OracleUnavailable
from fillanthropist.core.utils import get_logger, hex_to_bytes

LOGGER = get_logger("fillanthropist.compact")

Web3Factory = Callable[[str, float], Web3]


def default_web3_factory(rpc_url: str, timeout: float) -> Web3:
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))


@dataclass(frozen=True)
class RegistrationStatus:
    """Whether a sponsor registered a claim hash on-chain, and until when."""

    is_active: bool
    expires: int


@dataclass(frozen=True)
class LockDetails:
    token: str
    allocator: str
    reset_period: int
    no_multichain: bool


@dataclass(frozen=True)
class WithdrawalStatus:
    status: int
    withdrawable_at: int


@dataclass(frozen=True)
class LockStatus:
    """Lock details joined with the sponsor's withdrawal and nonce state."""

    details: LockDetails
    withdrawal: WithdrawalStatus
    nonce_consumed: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "token": self.details.token,
            "allocator": self.details.allocator,
            "resetPeriod": self.details.reset_period,
            "noMultichain": self.details.no_multichain,
            "withdrawalStatus": {
                "status": self.withdrawal.status,
                "withdrawableAt": str(self.withdrawal.withdrawable_at),
            },
            "nonceConsumed": self.nonce_consumed,
        }


class TheCompactService:
    """Calls view functions of The Compact on every configured chain."""

    def __init__(self, config: AppConfig, *, web3_factory: Web3Factory = default_web3_factory) -> None:
        self.config = config
        self._web3_factory = web3_factory
        self._contracts: Dict[int, Contract] = {}
        self._lock_details_cache: Dict[Tuple[int, int], LockDetails] = {}

    def _contract(self, chain_id: int) -> Contract:
        contract = self._contracts.get(chain_id)
        if contract is None:
            chain = self.config.chain(chain_id)
            web3 = self._web3_factory(chain.ensure_rpc_url(), self.config.oracle_timeout)
            contract = web3.eth.contract(
                address=self.config.compact_address,
                abi=load_contract_abi(THE_COMPACT_ABI),
            )
            self._contracts[chain_id] = contract
        return contract

    def _call(self, chain_id: int, label: str, fn: Callable[[Contract], object]) -> object:
        contract = self._contract(chain_id)
        try:
            return fn(contract)
        except Exception as exc:
            raise OracleUnavailable(f"{label} failed on chain {chain_id}: {exc}", chain_id=chain_id) from exc

    def get_registration_status(
        self,
        chain_id: int,
        sponsor: str,
        claim_hash: str,
        typehash: bytes,
    ) -> RegistrationStatus:
        is_active, expires = self._call(
            chain_id,
            "getRegistrationStatus",
            lambda contract: contract.functions.getRegistrationStatus(
                Web3.to_checksum_address(sponsor),
                hex_to_bytes(claim_hash),
                typehash,
            ).call(),
        )
        return RegistrationStatus(is_active=bool(is_active), expires=int(expires))

    def get_lock_details(self, chain_id: int, lock_id: int) -> LockDetails:
        key = (chain_id, lock_id)
        cached = self._lock_details_cache.get(key)
        if cached is not None:
            return cached

        token, allocator, reset_period, no_multichain = self._call(
            chain_id,
            "getLockDetails",
            lambda contract: contract.functions.getLockDetails(lock_id).call(),
        )
        details = LockDetails(
            token=Web3.to_checksum_address(token),
            allocator=Web3.to_checksum_address(allocator),
            reset_period=int(reset_period),
            no_multichain=bool(no_multichain),
        )
        self._lock_details_cache[key] = details
        return details

    def has_consumed_allocator_nonce(self, chain_id: int, nonce: int, allocator: str) -> bool:
        return bool(
            self._call(
                chain_id,
                "hasConsumedAllocatorNonce",
                lambda contract: contract.functions.hasConsumedAllocatorNonce(
                    nonce, Web3.to_checksum_address(allocator)
                ).call(),
            )
        )

    def get_forced_withdrawal_status(self, chain_id: int, sponsor: str, lock_id: int) -> WithdrawalStatus:
        status, withdrawable_at = self._call(
            chain_id,
            "getForcedWithdrawalStatus",
            lambda contract: contract.functions.getForcedWithdrawalStatus(
                Web3.to_checksum_address(sponsor), lock_id
            ).call(),
        )
        return WithdrawalStatus(status=int(status), withdrawable_at=int(withdrawable_at))

    def get_lock_details_with_status(
        self,
        chain_id: int,
        lock_id: int,
        sponsor: str,
        nonce: int,
        allocator: Optional[str] = None,
    ) -> LockStatus:
        """Fetch lock details first, since the nonce check needs its allocator."""
        details = self.get_lock_details(chain_id, lock_id)
        withdrawal = self.get_forced_withdrawal_status(chain_id, sponsor, lock_id)
        consumed = self.has_consumed_allocator_nonce(chain_id, nonce, allocator or details.allocator)
        LOGGER.info(
            "Lock %s on chain %s: token=%s allocator=%s resetPeriod=%s withdrawal=%s nonceConsumed=%s",
            lock_id,
            chain_id,
            details.token,
            details.allocator,
            details.reset_period,
            withdrawal.status,
            consumed,
        )
        return LockStatus(details=details, withdrawal=withdrawal, nonce_consumed=consumed)


__all__ = [
    "LockDetails",
    "LockStatus",
    "RegistrationStatus",
    "TheCompactService",
    "WithdrawalStatus",
    "default_web3_factory",
]
