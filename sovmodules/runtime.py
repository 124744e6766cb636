"""Wiring of several modules into one runtime: genesis, message encoding and dispatch.

A runtime is built from named module classes. It sets up the state of every
module at genesis, wraps call and query messages with the name of the module
they are meant for, and turns the encoded bytes back into objects that
forward the message to that module.
"""

from __future__ import annotations

import builtins
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from .api import CallResponse, Context, Module, QueryResponse
from .codec import CodecError, decode, encode, register
from .module_info import ModuleInfo
from .storage import Storage


class RuntimeError(builtins.RuntimeError):
    """Raised when a runtime is declared wrongly or a message cannot be routed."""


@register
@dataclass(frozen=True)
class _CallEnvelope:
    module: str
    message: Any


@register
@dataclass(frozen=True)
class _QueryEnvelope:
    module: str
    message: Any


@dataclass(frozen=True)
class CallDispatch:
    """A decoded call message together with the module that handles it."""

    module_name: str
    module_type: type
    message: Any

    def dispatch_call(self, storage: Storage, context: Context) -> CallResponse:
        """Build the module over the storage and pass it the call message."""
        target = self.module_type(storage)
        return target.call(self.message, context)


@dataclass(frozen=True)
class QueryDispatch:
    """A decoded query message together with the module that answers it."""

    module_name: str
    module_type: type
    message: Any

    def dispatch_query(self, storage: Storage) -> QueryResponse:
        """Build the module over the storage and pass it the query message."""
        target = self.module_type(storage)
        return target.query(self.message)


def _check_module_type(name: str, module_type: Any) -> None:
    if not isinstance(module_type, type):
        raise RuntimeError(f"module {name!r} must be a class, got {module_type!r}")
    if not (issubclass(module_type, Module) and issubclass(module_type, ModuleInfo)):
        raise RuntimeError(
            f"module {name!r} must be a Module built with ModuleInfo, "
            f"got {module_type.__qualname__}"
        )


class Runtime:
    """A set of named modules that messages are routed to."""

    def __init__(self, **modules: type) -> None:
        for name, module_type in modules.items():
            _check_module_type(name, module_type)
        self._modules: dict[str, type] = dict(modules)

    @property
    def modules(self) -> Mapping[str, type]:
        """The module classes of the runtime, by name, in declaration order."""
        return MappingProxyType(self._modules)

    def _module_type(self, module_name: str) -> type:
        try:
            return self._modules[module_name]
        except KeyError:
            raise RuntimeError(f"runtime has no module named {module_name!r}") from None

    def genesis(self, storage: Storage) -> None:
        """Run the genesis of every module, in order, over the same storage."""
        for module_type in self._modules.values():
            module_type(storage).genesis()

    def encode_call(self, module_name: str, message: Any) -> bytes:
        """Encode a call message addressed to the named module."""
        self._module_type(module_name)
        try:
            return encode(_CallEnvelope(module_name, message))
        except CodecError as exc:
            raise RuntimeError(f"cannot encode call message: {exc}") from exc

    def encode_query(self, module_name: str, message: Any) -> bytes:
        """Encode a query message addressed to the named module."""
        self._module_type(module_name)
        try:
            return encode(_QueryEnvelope(module_name, message))
        except CodecError as exc:
            raise RuntimeError(f"cannot encode query message: {exc}") from exc

    def _decode(self, data: bytes, envelope_type: type, kind: str) -> tuple[str, type, Any]:
        try:
            envelope = decode(data)
        except CodecError as exc:
            raise RuntimeError(f"cannot decode {kind} message: {exc}") from exc
        if not isinstance(envelope, envelope_type):
            raise RuntimeError(f"data does not hold a {kind} message")
        return envelope.module, self._module_type(envelope.module), envelope.message

    def decode_call(self, data: bytes) -> CallDispatch:
        """Decode bytes made by `encode_call` into a dispatchable call."""
        return CallDispatch(*self._decode(data, _CallEnvelope, "call"))

    def decode_query(self, data: bytes) -> QueryDispatch:
        """Decode bytes made by `encode_query` into a dispatchable query."""
        return QueryDispatch(*self._decode(data, _QueryEnvelope, "query"))

    def __repr__(self) -> str:
        names = ", ".join(self._modules)
        return f"Runtime({names})"