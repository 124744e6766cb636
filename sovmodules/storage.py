"""Keys, values, prefixes and the storage interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from .codec import encode


def _quoted(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


@dataclass(frozen=True)
class Prefix:
    """Bytes prepended to every key of one state container, keeping containers apart."""

    prefix: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "prefix", bytes(self.prefix))

    def __len__(self) -> int:
        return len(self.prefix)

    def __bytes__(self) -> bytes:
        return self.prefix

    def __str__(self) -> str:
        return _quoted(self.prefix.decode("utf-8"))


class _SingletonKey:
    """The only key of a single-value container; it encodes to no bytes."""

    def __repr__(self) -> str:
        return "SINGLETON_KEY"


SINGLETON_KEY = _SingletonKey()


@dataclass(frozen=True)
class StorageKey:
    """A full storage key: a prefix followed by an encoded key."""

    key: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", bytes(self.key))

    @classmethod
    def build(cls, prefix: Prefix, key: Any) -> StorageKey:
        """Combine a prefix with the encoding of a key."""
        encoded = b"" if key is SINGLETON_KEY else encode(key)
        return cls(bytes(prefix) + encoded)

    def __bytes__(self) -> bytes:
        return self.key

    def __str__(self) -> str:
        return _quoted(self.key.hex())


@dataclass(frozen=True)
class StorageValue:
    """An encoded value held in storage."""

    value: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", bytes(self.value))

    @classmethod
    def of(cls, value: Any) -> StorageValue:
        """Encode a value for storage."""
        return cls(encode(value))

    def __bytes__(self) -> bytes:
        return self.value


class Storage(ABC):
    """Interface for storing and retrieving values."""

    @abstractmethod
    def get(self, key: StorageKey) -> StorageValue | None:
        """Return the value for the key, or None if it is absent."""

    @abstractmethod
    def set(self, key: StorageKey, value: StorageValue) -> None:
        """Insert a key-value pair."""

    @abstractmethod
    def delete(self, key: StorageKey) -> None:
        """Delete a key."""

    @abstractmethod
    def merge(self) -> None:
        """Merge the transaction-level cache into the batch-level cache."""

    @abstractmethod
    def finalize(self) -> None:
        """Save modified values and clear the batch-level cache."""