"""Advisory dispensation quotes from the Tribunal settlement contract."""

from __future__ import annotations

from typing import Dict

from web3 import Web3
from web3.contract import Contract

from fillanthropist.config import AppConfig, ConfigError
from fillanthropist.contracts import TRIBUNAL_ABI, load_contract_abi
from fillanthropist.core.compact import Web3Factory, default_web3_factory
from fillanthropist.core.errors import OracleUnavailable, UnsupportedChain
from fillanthropist.core.models import BroadcastRequest
from fillanthropist.core.utils import get_logger, hex_to_bytes

LOGGER = get_logger("fillanthropist.tribunal")


class TribunalService:
    """Quotes the cross-chain dispensation for a fill.

    The quote is display-only: settlement amounts are always derived locally
    from the mandate, never from this value.
    """

    def __init__(self, config: AppConfig, *, web3_factory: Web3Factory = default_web3_factory) -> None:
        self.config = config
        self._web3_factory = web3_factory
        self._contracts: Dict[int, Contract] = {}

    def _contract(self, chain_id: int) -> Contract:
        contract = self._contracts.get(chain_id)
        if contract is None:
            chain = self.config.chain(chain_id)
            if not chain.tribunal_address:
                raise UnsupportedChain(chain_id)
            web3 = self._web3_factory(chain.ensure_rpc_url(), self.config.oracle_timeout)
            contract = web3.eth.contract(address=chain.tribunal_address, abi=load_contract_abi(TRIBUNAL_ABI))
            self._contracts[chain_id] = contract
        return contract

    def get_quote(self, request: BroadcastRequest, claimant: str, target_chain_id: int) -> int:
        """Simulate ``Tribunal.quote`` on ``target_chain_id`` and return the dispensation."""
        try:
            contract = self._contract(target_chain_id)
        except ConfigError as exc:
            raise OracleUnavailable(str(exc), chain_id=target_chain_id) from exc

        compact = request.compact
        mandate = compact.mandate
        claim = (
            request.chain_id,
            (
                Web3.to_checksum_address(compact.arbiter),
                Web3.to_checksum_address(compact.sponsor),
                compact.nonce,
                compact.expires,
                compact.id,
                compact.amount,
            ),
            hex_to_bytes(request.sponsor_signature),
            hex_to_bytes(request.allocator_signature),
        )
        mandate_args = (
            Web3.to_checksum_address(mandate.recipient),
            mandate.expires,
            Web3.to_checksum_address(mandate.token),
            mandate.minimum_amount,
            mandate.baseline_priority_fee,
            mandate.scaling_factor,
            hex_to_bytes(mandate.salt),
        )

        try:
            dispensation = contract.functions.quote(claim, mandate_args, Web3.to_checksum_address(claimant)).call()
        except Exception as exc:
            LOGGER.error(
                "Tribunal quote failed on chain %s for compact %s (claimant=%s): %s",
                target_chain_id,
                compact.id,
                claimant,
                exc,
            )
            raise OracleUnavailable(f"Tribunal quote failed: {exc}", chain_id=target_chain_id) from exc

        LOGGER.info("Quote dispensation for compact %s on chain %s: %s", compact.id, target_chain_id, dispensation)
        return int(dispensation)


__all__ = ["TribunalService"]
