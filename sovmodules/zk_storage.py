"""Storage for the proving context, reading only from recorded first reads."""

from __future__ import annotations

from .cache import FirstReads, StorageInternalCache
from .storage import Storage, StorageKey, StorageValue


class ZkStorage(Storage):
    """Storage whose every read must be answered by the given first reads."""

    def __init__(self, value_reader: FirstReads) -> None:
        self._value_reader = value_reader
        self._batch_cache = StorageInternalCache()
        self._tx_cache = StorageInternalCache()

    def get(self, key: StorageKey) -> StorageValue | None:
        return self._tx_cache.get_or_fetch(key, self._value_reader)

    def set(self, key: StorageKey, value: StorageValue) -> None:
        self._tx_cache.set(key, value)

    def delete(self, key: StorageKey) -> None:
        self._tx_cache.delete(key)

    def merge(self) -> None:
        self._batch_cache.merge(self._tx_cache)

    def finalize(self) -> None:
        """Nothing is persisted in the proving context."""