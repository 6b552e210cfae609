from __future__ import annotations

import pytest

from testcenter_audit import UnitReferenceCache, UnitReferences


def _refs(unit_id: str) -> UnitReferences:
    return UnitReferences(unit_id=unit_id, definition_refs=(f"{unit_id}.VOUD",))


def test_cache_hits_only_for_unchanged_payloads() -> None:
    cache = UnitReferenceCache()
    cache.put(1, "u1", "<Unit/>", _refs("U1"))

    assert cache.get(1, "U1", "<Unit/>") == _refs("U1")
    assert cache.get(1, "U1", b"<Unit/>") == _refs("U1")
    assert cache.get(1, "U1", "<Unit>edited</Unit>") is None
    assert cache.get(2, "U1", "<Unit/>") is None
    assert (cache.hits, cache.misses) == (2, 2)


def test_cache_evicts_least_recently_used_entry() -> None:
    cache = UnitReferenceCache(capacity=2)
    cache.put(1, "U1", "a", _refs("U1"))
    cache.put(1, "U2", "b", _refs("U2"))
    assert cache.get(1, "U1", "a") is not None

    cache.put(1, "U3", "c", _refs("U3"))

    assert len(cache) == 2
    assert cache.get(1, "U2", "b") is None
    assert cache.get(1, "U1", "a") is not None
    assert cache.get(1, "U3", "c") is not None


def test_clear_drops_entries_and_counters() -> None:
    cache = UnitReferenceCache()
    cache.put(1, "U1", "a", _refs("U1"))
    cache.get(1, "U1", "a")

    cache.clear()

    assert len(cache) == 0
    assert (cache.hits, cache.misses) == (0, 0)


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        UnitReferenceCache(capacity=0)
