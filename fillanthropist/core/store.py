"""In-memory, time-bounded index of accepted intents."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional

from fillanthropist.core.models import StoredIntent
from fillanthropist.core.utils import get_logger

LOGGER = get_logger("fillanthropist.store")

DEFAULT_MAX_AGE_SECONDS = 24 * 60 * 60
DEFAULT_STALE_AFTER_SECONDS = 60 * 60


class IntentStore:
    """Intents keyed by compact id; a later add with the same id overwrites.

    Two eviction rules apply. Entries ingested longer ago than ``max_age_seconds``
    are dropped by :meth:`clear_old`. Independently, every read drops entries
    whose compact or mandate expired more than ``stale_after_seconds`` ago.
    """

    def __init__(
        self,
        *,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        stale_after_seconds: float = DEFAULT_STALE_AFTER_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_age_seconds = max_age_seconds
        self.stale_after_seconds = stale_after_seconds
        self._clock = clock
        self._intents: Dict[str, StoredIntent] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._intents)

    def add(self, intent: StoredIntent) -> None:
        with self._lock:
            self._intents[intent.id] = intent

    def is_stale(self, intent: StoredIntent, now: Optional[float] = None) -> bool:
        now = int(self._clock() if now is None else now)
        compact = intent.compact
        return (
            now - compact.expires > self.stale_after_seconds
            or now - compact.mandate.expires > self.stale_after_seconds
        )

    def evict_stale(self) -> int:
        """Drop every entry past its compact or mandate expiry window."""
        with self._lock:
            now = self._clock()
            stale = [key for key, intent in self._intents.items() if self.is_stale(intent, now)]
            for key in stale:
                del self._intents[key]
        if stale:
            LOGGER.info("Evicted %s stale intents", len(stale))
        return len(stale)

    def clear_old(self, max_age_seconds: Optional[float] = None) -> int:
        """Drop entries ingested more than ``max_age_seconds`` ago."""
        horizon_ms = (self.max_age_seconds if max_age_seconds is None else max_age_seconds) * 1000
        with self._lock:
            now_ms = self._clock() * 1000
            old = [key for key, intent in self._intents.items() if now_ms - intent.timestamp > horizon_ms]
            for key in old:
                del self._intents[key]
        if old:
            LOGGER.info("Cleared %s intents older than %ss", len(old), horizon_ms / 1000)
        return len(old)

    def get(self, intent_id: str) -> Optional[StoredIntent]:
        with self._lock:
            intent = self._intents.get(str(intent_id))
            if intent is not None and self.is_stale(intent):
                del self._intents[intent.id]
                return None
            return intent

    def list(self) -> List[StoredIntent]:
        """All live intents, newest ingestion first."""
        with self._lock:
            self.evict_stale()
            intents = list(self._intents.values())
        return sorted(intents, key=lambda intent: intent.timestamp, reverse=True)


__all__ = ["DEFAULT_MAX_AGE_SECONDS", "DEFAULT_STALE_AFTER_SECONDS", "IntentStore"]
