"""Config loader for the fillanthropist relay."""

from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Optional

from web3 import Web3

from fillanthropist.core.errors import UnsupportedChain
from fillanthropist.core.utils import hex_to_bytes, is_valid_hex


class ConfigError(ValueError):
    """Raised when configuration data is invalid or missing."""


# Keyed by chain id; each domain prefix is 0x1901 followed by The Compact's
# EIP-712 domain separator on that chain.
DEFAULT_CONFIG: Dict[str, Any] = {
    "chains": {
        "1": {
            "name": "ethereum",
            "domain_prefix": "0x1901afbd5f3d34c216b31ba8b82d0b32ae91e4edea92dd5bbf4c1ad028f72364a211",
            "rpc_env": "ETHEREUM_RPC_URL",
        },
        "10": {
            "name": "optimism",
            "domain_prefix": "0x1901ea25de9c16847077fe9d95916c29598dc64f4850ba02c5dbe7800d2e2ecb338e",
            "rpc_env": "OPTIMISM_RPC_URL",
            "tribunal_address": "0xb7dD9E63A0d594C6e58c84bB85660819B7941770",
        },
        "8453": {
            "name": "base",
            "domain_prefix": "0x1901a1324f3bfe91ee592367ae7552e9348145e65b410335d72e4507dcedeb41bf52",
            "rpc_env": "BASE_RPC_URL",
            "tribunal_address": "0xC0AdfB14A08c5A3f0d6c21cFa601b43bA93B3c8A",
        },
        "130": {
            "name": "unichain",
            "domain_prefix": "0x190150e2b173e1ac2eac4e4995e45458f4cd549c256c423a041bf17d0c0a4a736d2c",
            "rpc_env": "UNICHAIN_RPC_URL",
            "tribunal_address": "0x7f268357A8c2552623316e2562D90e642bB538E5",
        },
    },
    "contracts": {
        "allocator_address": "0x51044301738Ba2a27bd9332510565eBE9F03546b",
        "compact_address": "0x00000000000018DF021Ff2467dF97ff846E09f48",
        "registration_typehash": "0x27f09e0bb8ce2ae63380578af7af85055d3ada248c502e2378b85bc3d05ee0b0",
    },
    "relay": {
        "host": "localhost",
        "port": 3001,
        "heartbeat_interval": 5.0,
        "heartbeat_timeout": 10.0,
        "send_timeout": 5.0,
        "ack_timeout": 5.0,
        "broadcast_timeout": 10.0,
    },
    "store": {
        "max_age_seconds": 24 * 60 * 60,
        "stale_after_seconds": 60 * 60,
    },
    "oracle_timeout": 10,
}


def _require_keys(data: Mapping[str, Any], keys: Iterable[str], context: str) -> None:
    missing = [key for key in keys if key not in data]
    if missing:
        raise ConfigError(f"{context} missing required keys: {', '.join(missing)}")


def _to_checksum(value: str, *, field_name: str) -> str:
    try:
        return Web3.to_checksum_address(value)
    except Exception as exc:  # web3 raises ValueError for malformed inputs
        raise ConfigError(f"Invalid address for {field_name}: {value}") from exc


def _to_bytes(value: str, *, field_name: str, length: int) -> bytes:
    if not is_valid_hex(value) or len(hex_to_bytes(value)) != length:
        raise ConfigError(f"{field_name} must be {length} bytes of 0x-prefixed hex")
    return hex_to_bytes(value)


def _positive(value: Any, *, field_name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be a number") from exc
    if number <= 0:
        raise ConfigError(f"{field_name} must be positive")
    return number


@dataclass(frozen=True)
class ChainConfig:
    """One entry of the supported-chain allow-list."""

    chain_id: int
    name: str
    domain_prefix: bytes
    rpc_url: Optional[str] = None
    tribunal_address: Optional[str] = None

    def ensure_rpc_url(self) -> str:
        """Return the RPC URL or raise if it is missing."""
        if not self.rpc_url:
            raise ConfigError(f"RPC URL required for chain {self.chain_id} ({self.name}) but not configured")
        return self.rpc_url


@dataclass(frozen=True)
class RelayTimings:
    """Timeouts and intervals, in seconds, used by the broadcast relay."""

    heartbeat_interval: float = 5.0
    heartbeat_timeout: float = 10.0
    send_timeout: float = 5.0
    ack_timeout: float = 5.0
    broadcast_timeout: float = 10.0


@dataclass(frozen=True)
class StoreSettings:
    """Eviction horizons for the in-memory intent store."""

    max_age_seconds: float = 24 * 60 * 60
    stale_after_seconds: float = 60 * 60


@dataclass(frozen=True)
class AppConfig:
    """Typed wrapper around the relay configuration."""

    chains: Mapping[int, ChainConfig]
    allocator_address: str
    compact_address: str
    registration_typehash: bytes
    host: str = "localhost"
    port: int = 3001
    relay: RelayTimings = field(default_factory=RelayTimings)
    store: StoreSettings = field(default_factory=StoreSettings)
    oracle_timeout: float = 10
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    def chain(self, chain_id: int) -> ChainConfig:
        """Return the chain config or raise :class:`UnsupportedChain`."""
        try:
            return self.chains[int(chain_id)]
        except (KeyError, TypeError, ValueError):
            raise UnsupportedChain(chain_id) from None

    def to_dict(self) -> Dict[str, Any]:
        """Return the original configuration mapping."""
        return dict(self.raw)


def _load_json(path: Path) -> MutableMapping[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file contains invalid JSON: {path}") from exc


def _parse_chains(chains: Mapping[str, Any], env: Mapping[str, str]) -> Dict[int, ChainConfig]:
    result: Dict[int, ChainConfig] = {}
    for key, chain_data in chains.items():
        context = f"chain {key}"
        _require_keys(chain_data, ["name", "domain_prefix"], context)
        try:
            chain_id = int(key)
        except ValueError as exc:
            raise ConfigError(f"chain key must be a numeric chain id: {key}") from exc

        rpc_url = chain_data.get("rpc_url")
        rpc_env = chain_data.get("rpc_env")
        if rpc_env and env.get(rpc_env, "").strip():
            rpc_url = env[rpc_env].strip()

        tribunal = chain_data.get("tribunal_address")
        result[chain_id] = ChainConfig(
            chain_id=chain_id,
            name=str(chain_data["name"]),
            domain_prefix=_to_bytes(chain_data["domain_prefix"], field_name=f"{context} domain_prefix", length=34),
            rpc_url=rpc_url or None,
            tribunal_address=_to_checksum(tribunal, field_name=f"{context} tribunal_address") if tribunal else None,
        )
    if not result:
        raise ConfigError("chains cannot be empty")
    return result


def parse_config(data: Mapping[str, Any], env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Validate a configuration mapping and build an :class:`AppConfig`."""
    env = os.environ if env is None else env
    _require_keys(data, ["chains", "contracts"], "config")

    contracts = data["contracts"]
    _require_keys(contracts, ["allocator_address", "compact_address", "registration_typehash"], "contracts")

    relay = data.get("relay", {})
    defaults = RelayTimings()
    timings = RelayTimings(
        **{
            name: _positive(relay.get(name, getattr(defaults, name)), field_name=f"relay.{name}")
            for name in ("heartbeat_interval", "heartbeat_timeout", "send_timeout", "ack_timeout", "broadcast_timeout")
        }
    )
    if timings.heartbeat_timeout <= timings.heartbeat_interval:
        raise ConfigError("relay.heartbeat_timeout must be greater than relay.heartbeat_interval")

    store = data.get("store", {})
    store_settings = StoreSettings(
        max_age_seconds=_positive(store.get("max_age_seconds", StoreSettings.max_age_seconds), field_name="store.max_age_seconds"),
        stale_after_seconds=_positive(
            store.get("stale_after_seconds", StoreSettings.stale_after_seconds), field_name="store.stale_after_seconds"
        ),
    )

    host = env.get("RELAY_HOST") or relay.get("host", "localhost")
    port_value = env.get("RELAY_PORT") or relay.get("port", 3001)
    try:
        port = int(port_value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"relay port must be an integer: {port_value}") from exc

    return AppConfig(
        chains=_parse_chains(data["chains"], env),
        allocator_address=_to_checksum(contracts["allocator_address"], field_name="allocator_address"),
        compact_address=_to_checksum(contracts["compact_address"], field_name="compact_address"),
        registration_typehash=_to_bytes(
            contracts["registration_typehash"], field_name="registration_typehash", length=32
        ),
        host=str(host),
        port=port,
        relay=timings,
        store=store_settings,
        oracle_timeout=_positive(data.get("oracle_timeout", 10), field_name="oracle_timeout"),
        raw=data,
    )


def load_config(config_path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load and validate relay configuration data.

    Reads ``config_path`` when given, otherwise the built-in defaults. RPC URLs
    come from the environment variable named by each chain's ``rpc_env``.
    """
    data = _load_json(config_path) if config_path else copy.deepcopy(DEFAULT_CONFIG)
    return parse_config(data, env)


__all__ = [
    "AppConfig",
    "ChainConfig",
    "ConfigError",
    "DEFAULT_CONFIG",
    "RelayTimings",
    "StoreSettings",
    "load_config",
    "parse_config",
]
