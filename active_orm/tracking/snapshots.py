"""
Snapshot store: last known persisted attributes per record identity.

A snapshot is written after every successful load or save and is only read
when computing dirtiness. Stores are plain instances owned by a Session, not
process-wide state. Each identity bucket has its own lock, so concurrent
`set`/`dirty` calls on the same identity serialize while different identities
proceed independently.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Hashable, Mapping, Tuple

from active_orm.domain.models import Record
from active_orm.domain.values import NULL, AttributeValue

SnapshotKey = Tuple[str, Hashable]


def diff(
    snapshot: Mapping[str, AttributeValue], current: Mapping[str, AttributeValue]
) -> Dict[str, AttributeValue]:
    """
    Dirty attributes of `current` relative to `snapshot`.

    An attribute is dirty when both sides are non-null and unequal (current
    value reported), when it was reverted to null (snapshot value reported),
    or when it has no snapshot entry and is non-null (current value reported).
    """
    dirty: Dict[str, AttributeValue] = {}
    names = list(current) + [name for name in snapshot if name not in current]
    for name in names:
        value = current.get(name, NULL)
        if name not in snapshot:
            if not value.is_null:
                dirty[name] = value
            continue
        stored = snapshot[name]
        if stored.is_null:
            if not value.is_null:
                dirty[name] = value
        elif value.is_null:
            dirty[name] = stored
        elif stored != value:
            dirty[name] = value
    return dirty


class SnapshotStore:
    def __init__(self) -> None:
        self._snapshots: Dict[SnapshotKey, Dict[str, AttributeValue]] = {}
        self._locks: Dict[SnapshotKey, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: SnapshotKey) -> threading.Lock:
        """Bucket lock for `key`, created on first write."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _read(self, key: SnapshotKey) -> Dict[str, AttributeValue]:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                return {}
        with lock:
            return dict(self._snapshots.get(key, {}))

    def set(self, record: Record) -> None:
        """Overwrite the snapshot for the record's identity with its current attributes."""
        key = record.identity_key
        with self._lock_for(key):
            self._snapshots[key] = record.attributes

    def merge(self, record: Record) -> Dict[str, AttributeValue]:
        """Stored snapshot for the record's identity, or an empty mapping."""
        return self._read(record.identity_key)

    def dirty(self, record: Record) -> Dict[str, AttributeValue]:
        return diff(self._read(record.identity_key), record.attributes)

    def is_dirty(self, record: Record) -> bool:
        return bool(self.dirty(record))

    def __contains__(self, record: Any) -> bool:
        if not isinstance(record, Record):
            return False
        return record.identity_key in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)


__all__ = ["SnapshotStore", "diff"]
