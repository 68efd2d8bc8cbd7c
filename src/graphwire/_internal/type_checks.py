from __future__ import annotations

import abc
import importlib
import inspect
import types
from typing import Any, Generic, Protocol, TypeGuard

_IGNORED_BASES: tuple[Any, ...] = (object, abc.ABC, Generic, Protocol)


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_interface(candidate: object) -> bool:
    """Return true when candidate is an interface-like class.

    Abstract classes (with unimplemented abstract methods) and ``typing.Protocol``
    classes are interface-like. Interface-like classes can be bound to
    implementations but never constructed directly.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    if not is_runtime_class(candidate) or candidate in _IGNORED_BASES:
        return False
    return inspect.isabstract(candidate) or bool(getattr(candidate, "_is_protocol", False))


def capabilities_of(cls: type[Any]) -> list[type[Any]]:
    """Return the interface-like classes implemented by ``cls``, nearest first."""
    return [base for base in cls.__mro__[1:] if is_interface(base)]


def ancestors_of(cls: type[Any]) -> list[type[Any]]:
    """Return the concrete ancestors of ``cls``, root-most first.

    Interface-like bases and the implicit ``object``/``ABC``/``Generic`` bases
    are not ancestors.
    """
    return [
        base
        for base in reversed(cls.__mro__[1:])
        if base not in _IGNORED_BASES and not is_interface(base)
    ]


def locate_type(type_name: object) -> type[Any] | None:
    """Return the class named by ``type_name`` or ``None`` when it cannot be loaded.

    Classes are returned as is. Strings are treated as dotted import paths such
    as ``"package.module.ClassName"``; nested classes are supported.

    Args:
        type_name: Class or dotted path to locate.

    """
    if is_runtime_class(type_name):
        return type_name
    if not isinstance(type_name, str) or "." not in type_name:
        return None

    parts = type_name.split(".")
    for split in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:split])
        try:
            located: Any = importlib.import_module(module_name)
        except ImportError:
            continue
        for attribute in parts[split:]:
            located = getattr(located, attribute, None)
            if located is None:
                return None
        return located if is_runtime_class(located) else None
    return None


def type_label(type_name: object) -> str:
    """Return a readable dotted label for a class or id."""
    if is_runtime_class(type_name):
        if type_name.__module__ == "builtins":
            return type_name.__qualname__
        return f"{type_name.__module__}.{type_name.__qualname__}"
    return str(type_name)


def same_type(left: object, right: object) -> bool:
    """Return true when both type names locate the same class."""
    if left is right or left == right:
        return True
    left_type = locate_type(left)
    return left_type is not None and left_type is locate_type(right)


__all__ = [
    "ancestors_of",
    "capabilities_of",
    "is_interface",
    "is_runtime_class",
    "locate_type",
    "same_type",
    "type_label",
]
