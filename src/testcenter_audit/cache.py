"""Explicitly owned memo of parsed unit references."""

from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict
from dataclasses import dataclass

from .models import UnitReferences
from .normalization import normalise_token


@dataclass(frozen=True)
class _CacheEntry:
    checksum: str
    references: UnitReferences


class UnitReferenceCache:
    """Least-recently-used cache keyed by ``(workspace_id, unit_name)``.

    The owner passes the cache into each run and calls :meth:`clear` at export
    boundaries. Entries remember the checksum of the payload they were parsed
    from, so an edited unit is never served stale.
    """

    def __init__(self, capacity: int = 50) -> None:
        if capacity < 1:
            raise ValueError("capacity must be greater than zero")
        self.capacity = capacity
        self._entries: OrderedDict[tuple[str, str], _CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(
        self, workspace_id: int | str, unit_name: str, payload: str | bytes
    ) -> UnitReferences | None:
        key = self._key(workspace_id, unit_name)
        checksum = _checksum(payload)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.checksum != checksum:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.references

    def put(
        self,
        workspace_id: int | str,
        unit_name: str,
        payload: str | bytes,
        references: UnitReferences,
    ) -> None:
        key = self._key(workspace_id, unit_name)
        entry = _CacheEntry(checksum=_checksum(payload), references=references)
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        """Drop every entry and reset the hit counters."""

        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    @staticmethod
    def _key(workspace_id: int | str, unit_name: str) -> tuple[str, str]:
        return (str(workspace_id), normalise_token(unit_name))


def _checksum(payload: str | bytes) -> str:
    data = payload.encode("utf-8") if isinstance(payload, str) else payload
    return hashlib.sha256(data).hexdigest()


__all__ = ["UnitReferenceCache"]
