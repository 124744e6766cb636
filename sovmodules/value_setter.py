"""A module holding one number that only the admin may change."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, ClassVar

from .api import CallResponse, Context, Module, ModuleError, QueryResponse
from .codec import register
from .containers import MissingValueError, StateValue
from .mocks import MockPublicKey
from .module_info import ModuleInfo, state


@register
@dataclass(frozen=True)
class SetValue:
    """Set the stored value; admin only."""

    new_value: int


@register
@dataclass(frozen=True)
class GetValue:
    """Query the stored value."""


@dataclass(frozen=True)
class ValueResponse:
    """The stored value, or None if nothing was set."""

    value: int | None = None

    def to_json(self) -> bytes:
        return json.dumps({"value": self.value}, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes | str) -> ValueResponse:
        return cls(value=json.loads(data)["value"])


class ValueSetter(ModuleInfo, Module):
    """Holds a value that the admin sets."""

    public_key_factory: ClassVar[Callable[[str], Any]] = staticmethod(MockPublicKey.from_str)

    value: StateValue[int] = state(StateValue)
    admin: StateValue[Any] = state(StateValue)

    def genesis(self) -> None:
        """Make the key "admin" the administrator."""
        try:
            admin = type(self).public_key_factory("admin")
        except (ValueError, TypeError) as exc:
            raise ModuleError("Admin initialization failed") from exc
        self.admin.set(admin)

    def call(self, message: Any, context: Context) -> CallResponse:
        if isinstance(message, SetValue):
            return self.set_value(message.new_value, context)
        raise TypeError(f"unsupported value setter call message: {message!r}")

    def query(self, message: Any) -> QueryResponse:
        if isinstance(message, GetValue):
            return QueryResponse(self.query_value().to_json())
        raise TypeError(f"unsupported value setter query message: {message!r}")

    def set_value(self, new_value: int, context: Context) -> CallResponse:
        """Store the value and emit a "set" event; only the admin may."""
        try:
            admin = self.admin.get_or_err()
        except MissingValueError as exc:
            raise ModuleError(str(exc)) from exc
        if admin != context.sender():
            raise ModuleError("Only admin can change the value")

        self.value.set(new_value)
        response = CallResponse()
        response.add_event("set", f"value_set: {new_value}")
        return response

    def query_value(self) -> ValueResponse:
        """Return the stored value."""
        return ValueResponse(value=self.value.get())