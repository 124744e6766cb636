"""Simple public keys, signatures and contexts for testing modules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from .api import Context
from .codec import register
from .jmt_storage import JmtStorage
from .storage import Storage
from .zk_storage import ZkStorage


@register
@dataclass(frozen=True)
class MockPublicKey:
    """A public key that is just bytes."""

    pub_key: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "pub_key", bytes(self.pub_key))

    @classmethod
    def from_str(cls, key: str) -> MockPublicKey:
        """Build a key from the UTF-8 bytes of a string."""
        return cls(key.encode("utf-8"))


@register
@dataclass(frozen=True)
class MockSignature:
    """A signature that is just bytes."""

    sig: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "sig", bytes(self.sig))


@dataclass(frozen=True)
class MockContext(Context):
    """Context for native execution over `JmtStorage`."""

    public_key: MockPublicKey
    storage_type: ClassVar[type[Storage]] = JmtStorage

    def sender(self) -> MockPublicKey:
        return self.public_key


@dataclass(frozen=True)
class ZkMockContext(Context):
    """Context for proving execution over `ZkStorage`."""

    public_key: MockPublicKey
    storage_type: ClassVar[type[Storage]] = ZkStorage

    def sender(self) -> MockPublicKey:
        return self.public_key