"""First-read/last-write caches that sit in front of a storage backend."""

from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from .storage import StorageKey, StorageValue


class CacheError(RuntimeError):
    """Raised when the cache would become inconsistent or a key cannot be read."""


class ValueReader(ABC):
    """Reads a value from an external data source."""

    @abstractmethod
    def read_value(self, key: StorageKey) -> StorageValue | None:
        """Return the value stored for the key, or None if it is absent."""


class FirstReads(ValueReader):
    """The values seen by the first read of each key."""

    def __init__(self, reads: Mapping[StorageKey, StorageValue | None] | None = None) -> None:
        self._reads: dict[StorageKey, StorageValue | None] = dict(reads or {})

    def get(self, key: StorageKey) -> StorageValue | None:
        """Return the value read first for the key; KeyError if the key was never read."""
        return self._reads[key]

    def read_value(self, key: StorageKey) -> StorageValue | None:
        try:
            return self._reads[key]
        except KeyError:
            raise CacheError(f"key {key} is inaccessible") from None

    def __contains__(self, key: object) -> bool:
        return key in self._reads

    def __len__(self) -> int:
        return len(self._reads)

    def __iter__(self) -> Iterator[StorageKey]:
        return iter(self._reads)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FirstReads):
            return NotImplemented
        return self._reads == other._reads

    def __repr__(self) -> str:
        return f"FirstReads({self._reads!r})"


_UNREAD = object()


@dataclass
class _Entry:
    value: StorageValue | None
    read: object = _UNREAD
    written: bool = False


class CacheLog:
    """Records the first read and the last write of every key."""

    def __init__(self) -> None:
        self._entries: dict[StorageKey, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get_value(self, key: StorageKey) -> StorageValue | None:
        """Return the current cached value; KeyError if the key is not cached."""
        return self._entries[key].value

    def add_read(self, key: StorageKey, value: StorageValue | None) -> None:
        """Record a read; it must agree with what the cache already holds."""
        entry = self._entries.get(key)
        if entry is None:
            self._entries[key] = _Entry(value=value, read=value)
        elif entry.value != value:
            raise CacheError(
                f"inconsistent read of key {key}: cached {entry.value!r}, read {value!r}"
            )

    def add_write(self, key: StorageKey, value: StorageValue | None) -> None:
        """Record a write; None marks a deletion."""
        entry = self._entries.get(key)
        if entry is None:
            self._entries[key] = _Entry(value=value, written=True)
        else:
            entry.value = value
            entry.written = True

    def merge_left(self, other: CacheLog) -> None:
        """Fold another log into this one, emptying it; nothing changes on conflict."""
        for key, theirs in other._entries.items():
            ours = self._entries.get(key)
            if ours is not None and theirs.read is not _UNREAD and theirs.read != ours.value:
                raise CacheError(
                    f"cannot merge key {key}: read {theirs.read!r}, cached {ours.value!r}"
                )
        for key, theirs in other._entries.items():
            ours = self._entries.get(key)
            if ours is None:
                self._entries[key] = dataclasses.replace(theirs)
            elif theirs.written:
                ours.value = theirs.value
                ours.written = True
        other._entries.clear()

    def get_first_reads(self) -> FirstReads:
        """Return the first-read value of every key whose first access was a read."""
        return FirstReads(
            {key: entry.read for key, entry in self._entries.items() if entry.read is not _UNREAD}
        )

    def drain_writes(self) -> list[tuple[StorageKey, StorageValue | None]]:
        """Return every written key with its last value and clear the log."""
        writes = [(key, entry.value) for key, entry in self._entries.items() if entry.written]
        self._entries.clear()
        return writes


class StorageInternalCache:
    """Caches reads and writes, fetching from a `ValueReader` on the first read of a key."""

    def __init__(self, log: CacheLog | None = None) -> None:
        self.log = log if log is not None else CacheLog()

    def get_or_fetch(self, key: StorageKey, value_reader: ValueReader) -> StorageValue | None:
        """Return the cached value, or read it from the reader and cache it."""
        try:
            value = self.log.get_value(key)
        except KeyError:
            value = value_reader.read_value(key)
        self.log.add_read(key, value)
        return value

    def set(self, key: StorageKey, value: StorageValue) -> None:
        self.log.add_write(key, value)

    def delete(self, key: StorageKey) -> None:
        self.log.add_write(key, None)

    def merge(self, other: StorageInternalCache) -> None:
        """Fold another cache into this one, emptying it."""
        self.log.merge_left(other.log)