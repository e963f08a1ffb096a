"""Relay for signed cross-chain swap intents.

``core`` holds hashing, signature checks and settlement math, ``relay`` the
WebSocket fan-out and ingestion, and ``cli`` the command-line entrypoint.
"""

from importlib import metadata

DISTRIBUTION = "fillanthropist"


def __getattr__(name: str) -> str:
    """Expose the installed version via ``fillanthropist.__version__``."""
    if name == "__version__":
        try:
            return metadata.version(DISTRIBUTION)
        except metadata.PackageNotFoundError:
            return "0.0.0"
    raise AttributeError(name)


__all__ = ["DISTRIBUTION", "__version__"]
