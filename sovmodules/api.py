"""Core interfaces of the module system: modules, contexts, responses and prefixes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from .storage import Prefix, Storage

_DOMAIN_SEPARATOR = b"/"


class ModuleError(Exception):
    """Error raised by a module when a call cannot be carried out."""


@dataclass(frozen=True)
class Event:
    """A key-value event emitted by a module call."""

    key: str
    value: str


@dataclass
class CallResponse:
    """Response of `Module.call`: the events the call emitted."""

    events: list[Event] = field(default_factory=list)

    def add_event(self, key: str, value: str) -> None:
        """Append an event."""
        self.events.append(Event(key, value))


@dataclass
class QueryResponse:
    """Response of `Module.query`, returned to the caller as bytes."""

    response: bytes = b""


@dataclass(frozen=True)
class ModulePrefix:
    """Identifies one state variable of a module."""

    module_path: str
    module_name: str
    storage_name: str

    def to_state_prefix(self) -> Prefix:
        """Join the parts, each followed by a separator, into a storage prefix."""
        parts = (self.module_path, self.module_name, self.storage_name)
        return Prefix(b"".join(part.encode("utf-8") + _DOMAIN_SEPARATOR for part in parts))


class Context(ABC):
    """What a module knows about the transaction it runs for."""

    storage_type: ClassVar[type[Storage]]

    @abstractmethod
    def sender(self) -> Any:
        """Return the public key of the transaction's sender."""


class Module(ABC):
    """Base class of every module; override only the entry points the module supports."""

    def genesis(self) -> None:
        """Set the initial state when the rollup is deployed."""

    def call(self, message: Any, context: Context) -> CallResponse:
        """Handle a call message, changing state; raise ModuleError on failure."""
        raise TypeError(f"{type(self).__name__} does not accept call messages")

    def query(self, message: Any) -> QueryResponse:
        """Answer a query message without changing state."""
        raise TypeError(f"{type(self).__name__} does not accept query messages")