"""Typed state containers that keep their values in a shared storage under a prefix."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from .codec import decode
from .storage import SINGLETON_KEY, Prefix, Storage, StorageKey, StorageValue

K = TypeVar("K")
V = TypeVar("V")


class MissingValueError(LookupError):
    """Raised when a container holds no value for the requested key."""

    def __init__(self, prefix: Prefix, storage_key: StorageKey | None = None) -> None:
        self.prefix = prefix
        self.storage_key = storage_key
        message = f"Value not found for prefix: {prefix}"
        if storage_key is not None:
            message += f" and: storage key {storage_key}"
        super().__init__(message)


class _Backend:
    """Encodes values into storage under a prefix and decodes them back."""

    def __init__(self, storage: Storage, prefix: Prefix) -> None:
        self.storage = storage
        self.prefix = prefix

    def key_for(self, key: Any) -> StorageKey:
        return StorageKey.build(self.prefix, key)

    def set_value(self, storage_key: StorageKey, value: Any) -> None:
        self.storage.set(storage_key, StorageValue.of(value))

    def get_value(self, storage_key: StorageKey) -> Any | None:
        stored = self.storage.get(storage_key)
        if stored is None:
            return None
        return decode(bytes(stored))


class StateValue(Generic[V]):
    """A container for a single value."""

    def __init__(self, storage: Storage, prefix: Prefix) -> None:
        self._backend = _Backend(storage, prefix)

    @property
    def prefix(self) -> Prefix:
        return self._backend.prefix

    def set(self, value: V) -> None:
        """Store the value."""
        self._backend.set_value(self._backend.key_for(SINGLETON_KEY), value)

    def get(self) -> V | None:
        """Return the value, or None if none has been stored."""
        return self._backend.get_value(self._backend.key_for(SINGLETON_KEY))

    def get_or_err(self) -> V:
        """Return the value; MissingValueError if none has been stored."""
        value = self.get()
        if value is None:
            raise MissingValueError(self.prefix)
        return value

    def __repr__(self) -> str:
        return f"StateValue(prefix={self.prefix})"


class StateMap(Generic[K, V]):
    """A container that maps keys to values."""

    def __init__(self, storage: Storage, prefix: Prefix) -> None:
        self._backend = _Backend(storage, prefix)

    @property
    def prefix(self) -> Prefix:
        return self._backend.prefix

    def set(self, key: K, value: V) -> None:
        """Insert a key-value pair."""
        self._backend.set_value(self._backend.key_for(key), value)

    def get(self, key: K) -> V | None:
        """Return the value for the key, or None if the key is absent."""
        return self._backend.get_value(self._backend.key_for(key))

    def get_or_err(self, key: K) -> V:
        """Return the value for the key; MissingValueError if the key is absent."""
        value = self.get(key)
        if value is None:
            raise MissingValueError(self.prefix, self._backend.key_for(key))
        return value

    def __repr__(self) -> str:
        return f"StateMap(prefix={self.prefix})"