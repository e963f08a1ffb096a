"""Utility helpers shared across fillanthropist core modules."""

from __future__ import annotations

import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, Union

from web3 import Web3

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_HEX_RE = re.compile(r"^0x(?:[0-9a-fA-F]{2})*$")

UINT256_MAX = 2**256 - 1


def get_logger(name: str = "fillanthropist") -> logging.Logger:
    """Return a configured logger that prints to stdout."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def load_json_file(path: Path) -> Dict[str, Any]:
    """Load JSON data from ``path``."""
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def hex_to_bytes(data: str) -> bytes:
    """Convert a hex string (with or without ``0x``) to bytes."""
    data = data[2:] if data.startswith("0x") else data
    return bytes.fromhex(data)


def to_hex(data: bytes) -> str:
    """Return ``data`` as a ``0x``-prefixed lower-case hex string."""
    return "0x" + bytes(data).hex()


def is_valid_address(value: Any) -> bool:
    """Return True for a ``0x``-prefixed 20-byte hex address in any casing."""
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def is_valid_hex(value: Any) -> bool:
    """Return True for a ``0x``-prefixed, even-length hex string."""
    return isinstance(value, str) and bool(_HEX_RE.match(value))


def to_uint(value: Union[int, str], *, field_name: str) -> int:
    """Parse an int, decimal string or ``0x`` hex string into a uint256."""
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be an integer, got a boolean")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            result = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
        except ValueError as exc:
            raise ValueError(f"{field_name} is not a valid integer: {value!r}") from exc
    else:
        raise ValueError(f"{field_name} must be an integer or numeric string, got {type(value).__name__}")
    if result < 0 or result > UINT256_MAX:
        raise ValueError(f"{field_name} is outside the uint256 range: {value!r}")
    return result


def keccak(data: bytes) -> bytes:
    """Return the keccak-256 digest of ``data``."""
    return bytes(Web3.keccak(data))


def now_ms() -> int:
    """Current UNIX time in milliseconds."""
    return int(time.time() * 1000)


__all__ = [
    "UINT256_MAX",
    "get_logger",
    "hex_to_bytes",
    "is_valid_address",
    "is_valid_hex",
    "keccak",
    "load_json_file",
    "now_ms",
    "to_hex",
    "to_uint",
]
