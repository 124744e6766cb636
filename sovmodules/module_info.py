"""Declarative state layout for modules.

A module class declares its state containers with `state(...)` and its nested
modules with `module(...)`. Building the module from a storage gives every
state container a unique prefix, made of the module path, the module name and
the field name. Nested modules are built from the same storage.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, ClassVar, Mapping, get_origin

from .api import ModulePrefix
from .storage import Storage

_CLASSVAR_TEXT = re.compile(r"^(typing\.)?ClassVar\b")


class ModuleInfoError(TypeError):
    """Raised when a module class declares its fields incorrectly."""


def _strip_generics(tp: Any) -> Any:
    return get_origin(tp) or tp


class StateField:
    """Declaration of a state container built as `container_type(storage, prefix)`."""

    def __init__(self, container_type: Any) -> None:
        origin = _strip_generics(container_type)
        if not isinstance(origin, type):
            raise ModuleInfoError(
                f"Type not supported as a state container: {container_type!r}"
            )
        self.container_type: type = origin
        self.name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"StateField({self.container_type.__qualname__})"


class ModuleField:
    """Declaration of a nested module built from the same storage."""

    def __init__(self, module_type: Any) -> None:
        origin = _strip_generics(module_type)
        if not (isinstance(origin, type) and issubclass(origin, ModuleInfo)):
            raise ModuleInfoError(
                f"Only ModuleInfo classes can be nested as modules, got {module_type!r}"
            )
        self.module_type: type[ModuleInfo] = origin
        self.name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"ModuleField({self.module_type.__qualname__})"


def state(container_type: Any) -> Any:
    """Declare a state container field; generic arguments are ignored."""
    return StateField(container_type)


def module(module_type: Any) -> Any:
    """Declare a nested module field."""
    return ModuleField(module_type)


def _is_classvar(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return bool(_CLASSVAR_TEXT.match(annotation.strip()))
    return annotation is ClassVar or get_origin(annotation) is ClassVar


class ModuleInfo:
    """Base class that builds declared state containers and nested modules.

    The module path defaults to the defining Python module; pass
    ``module_path=...`` in the class statement to choose another.
    """

    module_path: ClassVar[str]
    module_fields: ClassVar[Mapping[str, StateField | ModuleField]] = MappingProxyType({})

    def __init_subclass__(cls, module_path: str | None = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        fields: dict[str, StateField | ModuleField] = dict(
            getattr(cls, "module_fields", {})
        )
        own = {
            name: value
            for name, value in vars(cls).items()
            if isinstance(value, (StateField, ModuleField))
        }
        fields.update(own)

        for name, annotation in vars(cls).get("__annotations__", {}).items():
            if name in own or _is_classvar(annotation):
                continue
            raise ModuleInfoError(
                f"Field {name!r} of {cls.__qualname__} is missing a declaration: "
                "use state(...) or module(...)."
            )

        cls.module_fields = MappingProxyType(fields)
        if module_path is not None:
            cls.module_path = module_path
        elif "module_path" not in vars(cls):
            cls.module_path = cls.__module__

    def __init__(self, storage: Storage) -> None:
        for name, field in self.module_fields.items():
            if isinstance(field, StateField):
                prefix = self.prefix_of(name).to_state_prefix()
                setattr(self, name, field.container_type(storage, prefix))
            else:
                setattr(self, name, field.module_type(storage))

    def prefix_of(self, field_name: str) -> ModulePrefix:
        """Return the prefix of a state field of this module."""
        field = self.module_fields.get(field_name)
        if not isinstance(field, StateField):
            raise ModuleInfoError(
                f"{type(self).__qualname__} has no state field {field_name!r}"
            )
        return ModulePrefix(type(self).module_path, type(self).__name__, field_name)