"""Self-describing binary encoding for values kept in storage and sent as messages."""

from __future__ import annotations

import dataclasses
import enum
from typing import Any, TypeVar

T = TypeVar("T", bound=type)


class CodecError(ValueError):
    """Raised when a value cannot be encoded or bytes cannot be decoded."""


_NONE = 0x00
_FALSE = 0x01
_TRUE = 0x02
_INT = 0x03
_STR = 0x04
_BYTES = 0x05
_LIST = 0x06
_TUPLE = 0x07
_DICT = 0x08
_RECORD = 0x09
_ENUM = 0x0A

_registry: dict[str, type] = {}


def _type_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def register(cls: T) -> T:
    """Make a dataclass or an Enum encodable; usable as a class decorator."""
    if not isinstance(cls, type):
        raise CodecError(f"only classes can be registered, got {cls!r}")
    if not (dataclasses.is_dataclass(cls) or issubclass(cls, enum.Enum)):
        raise CodecError(f"{cls.__qualname__} is neither a dataclass nor an Enum")
    _registry[_type_name(cls)] = cls
    return cls


def _registered_name(cls: type) -> str:
    name = _type_name(cls)
    if _registry.get(name) is not cls:
        raise CodecError(f"type {cls.__qualname__} is not registered with the codec")
    return name


def _write_uvarint(out: bytearray, number: int) -> None:
    while True:
        byte = number & 0x7F
        number >>= 7
        if number:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return


def _write_blob(out: bytearray, data: bytes) -> None:
    _write_uvarint(out, len(data))
    out += data


def _write_str(out: bytearray, text: str) -> None:
    _write_blob(out, text.encode("utf-8"))


def _encode_into(out: bytearray, value: Any) -> None:
    if value is None:
        out.append(_NONE)
    elif isinstance(value, bool):
        out.append(_TRUE if value else _FALSE)
    elif isinstance(value, enum.Enum):
        out.append(_ENUM)
        _write_str(out, _registered_name(type(value)))
        _write_str(out, value.name)
    elif isinstance(value, int):
        out.append(_INT)
        _write_uvarint(out, value * 2 if value >= 0 else -value * 2 - 1)
    elif isinstance(value, str):
        out.append(_STR)
        _write_str(out, value)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        out.append(_BYTES)
        _write_blob(out, bytes(value))
    elif isinstance(value, (list, tuple)):
        out.append(_LIST if isinstance(value, list) else _TUPLE)
        _write_uvarint(out, len(value))
        for item in value:
            _encode_into(out, item)
    elif isinstance(value, dict):
        out.append(_DICT)
        _write_uvarint(out, len(value))
        for key, item in value.items():
            _encode_into(out, key)
            _encode_into(out, item)
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        out.append(_RECORD)
        _write_str(out, _registered_name(type(value)))
        init_fields = [f for f in dataclasses.fields(value) if f.init]
        _write_uvarint(out, len(init_fields))
        for field in init_fields:
            _encode_into(out, getattr(value, field.name))
    else:
        raise CodecError(f"cannot encode value of type {type(value).__qualname__}")


def encode(value: Any) -> bytes:
    """Encode a value into bytes."""
    out = bytearray()
    _encode_into(out, value)
    return bytes(out)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self.pos = 0

    @property
    def exhausted(self) -> bool:
        return self.pos == len(self._data)

    def byte(self) -> int:
        if self.pos >= len(self._data):
            raise CodecError("unexpected end of data")
        value = self._data[self.pos]
        self.pos += 1
        return value

    def uvarint(self) -> int:
        result = 0
        shift = 0
        while True:
            byte = self.byte()
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
            shift += 7

    def blob(self) -> bytes:
        size = self.uvarint()
        end = self.pos + size
        if end > len(self._data):
            raise CodecError("unexpected end of data")
        chunk = self._data[self.pos:end]
        self.pos = end
        return chunk

    def text(self) -> str:
        try:
            return self.blob().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CodecError(f"invalid utf-8 string: {exc}") from exc

    def lookup(self) -> type:
        name = self.text()
        try:
            return _registry[name]
        except KeyError:
            raise CodecError(f"unknown type {name!r}") from None

    def value(self) -> Any:
        tag = self.byte()
        if tag == _NONE:
            return None
        if tag == _FALSE:
            return False
        if tag == _TRUE:
            return True
        if tag == _INT:
            zigzag = self.uvarint()
            return zigzag // 2 if zigzag % 2 == 0 else -(zigzag + 1) // 2
        if tag == _STR:
            return self.text()
        if tag == _BYTES:
            return self.blob()
        if tag in (_LIST, _TUPLE):
            items = [self.value() for _ in range(self.uvarint())]
            return items if tag == _LIST else tuple(items)
        if tag == _DICT:
            pairs = [(self.value(), self.value()) for _ in range(self.uvarint())]
            try:
                return dict(pairs)
            except TypeError as exc:
                raise CodecError(f"unhashable dictionary key: {exc}") from exc
        if tag == _RECORD:
            return self._record()
        if tag == _ENUM:
            cls = self.lookup()
            member = self.text()
            if not issubclass(cls, enum.Enum):
                raise CodecError(f"{cls.__qualname__} is not an Enum")
            try:
                return cls[member]
            except KeyError:
                raise CodecError(f"{cls.__qualname__} has no member {member!r}") from None
        raise CodecError(f"unknown tag {tag:#04x}")

    def _record(self) -> Any:
        cls = self.lookup()
        if not dataclasses.is_dataclass(cls):
            raise CodecError(f"{cls.__qualname__} is not a dataclass")
        values = [self.value() for _ in range(self.uvarint())]
        expected = sum(1 for f in dataclasses.fields(cls) if f.init)
        if len(values) != expected:
            raise CodecError(
                f"{cls.__qualname__} expects {expected} fields, got {len(values)}"
            )
        return cls(*values)


def decode(data: bytes | bytearray | memoryview) -> Any:
    """Decode bytes produced by `encode` back into a value."""
    reader = _Reader(bytes(data))
    value = reader.value()
    if not reader.exhausted:
        raise CodecError("trailing bytes after encoded value")
    return value