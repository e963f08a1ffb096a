"""Tests for the in-memory intent store."""

from __future__ import annotations

from fillanthropist.core.store import IntentStore
from tests.helpers import stored_intent

NOW = 1_700_000_000


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _store(clock: FakeClock, **kwargs) -> IntentStore:
    return IntentStore(clock=clock, **kwargs)


class TestIntentStore:
    def test_add_and_get(self) -> None:
        store = _store(FakeClock())
        intent = stored_intent(compact_id=1, expires=NOW + 600, timestamp=NOW * 1000)
        store.add(intent)
        assert store.get("1") is intent
        assert len(store) == 1

    def test_same_id_overwrites(self) -> None:
        store = _store(FakeClock())
        first = stored_intent(compact_id=1, expires=NOW + 600, timestamp=NOW * 1000)
        second = stored_intent(compact_id=1, expires=NOW + 900, timestamp=NOW * 1000 + 5)
        store.add(first)
        store.add(second)
        assert len(store) == 1
        assert store.get("1") is second

    def test_list_is_newest_first(self) -> None:
        store = _store(FakeClock())
        for compact_id, offset in ((1, 10), (2, 30), (3, 20)):
            store.add(stored_intent(compact_id=compact_id, expires=NOW + 600, timestamp=NOW * 1000 + offset))
        assert [intent.id for intent in store.list()] == ["2", "3", "1"]

    def test_stale_entries_disappear_from_reads(self) -> None:
        clock = FakeClock()
        store = _store(clock, stale_after_seconds=3600)
        store.add(stored_intent(compact_id=1, expires=NOW + 60, timestamp=NOW * 1000))
        store.add(stored_intent(compact_id=2, expires=NOW + 7200, timestamp=NOW * 1000))

        clock.now = NOW + 60 + 3600
        assert {intent.id for intent in store.list()} == {"1", "2"}

        clock.now = NOW + 60 + 3601
        assert store.get("1") is None
        assert [intent.id for intent in store.list()] == ["2"]
        assert len(store) == 1

    def test_expired_mandate_alone_makes_entry_stale(self) -> None:
        store = _store(FakeClock(), stale_after_seconds=3600)
        store.add(
            stored_intent(compact_id=1, expires=NOW + 600, mandate_expires=NOW - 3601, timestamp=NOW * 1000)
        )
        store.add(stored_intent(compact_id=2, expires=NOW + 600, timestamp=NOW * 1000))

        assert store.get("1") is None
        assert [intent.id for intent in store.list()] == ["2"]

    def test_expired_compact_alone_makes_entry_stale(self) -> None:
        store = _store(FakeClock(), stale_after_seconds=3600)
        store.add(
            stored_intent(compact_id=1, expires=NOW - 3601, mandate_expires=NOW + 600, timestamp=NOW * 1000)
        )

        assert store.list() == []
        assert len(store) == 0

    def test_clear_old_uses_ingestion_time(self) -> None:
        clock = FakeClock()
        store = _store(clock, max_age_seconds=100)
        store.add(stored_intent(compact_id=1, expires=NOW + 10_000, timestamp=(NOW - 200) * 1000))
        store.add(stored_intent(compact_id=2, expires=NOW + 10_000, timestamp=(NOW - 50) * 1000))

        assert store.clear_old() == 1
        assert store.get("1") is None
        assert store.get("2") is not None

    def test_clear_old_with_explicit_age(self) -> None:
        store = _store(FakeClock())
        store.add(stored_intent(compact_id=1, expires=NOW + 10_000, timestamp=(NOW - 50) * 1000))
        assert store.clear_old(max_age_seconds=10) == 1
        assert len(store) == 0

    def test_get_missing(self) -> None:
        assert _store(FakeClock()).get("404") is None
