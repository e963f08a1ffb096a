"""Trimmed ABIs for The Compact and Tribunal.

Each file holds only the view functions the relay calls, not the full
contract interface.
"""

from importlib import resources
from typing import Any, List
import json

THE_COMPACT_ABI = "the_compact.json"
TRIBUNAL_ABI = "tribunal.json"


def load_contract_abi(filename: str) -> List[Any]:
    """Load an ABI JSON file from the contracts package."""
    resource = resources.files(__package__).joinpath(filename)
    if not resource.is_file():
        raise FileNotFoundError(f"No bundled ABI {filename!r}; expected {THE_COMPACT_ABI} or {TRIBUNAL_ABI}")
    with resource.open("r", encoding="utf-8") as fh:
        return json.load(fh)


__all__ = ["THE_COMPACT_ABI", "TRIBUNAL_ABI", "load_contract_abi"]
