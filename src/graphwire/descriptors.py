from __future__ import annotations

import collections.abc
import inspect
import types
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from enum import Enum
from inspect import Parameter
from typing import Annotated, Any, TypeAlias, Union, get_args, get_origin, get_type_hints

from graphwire._internal.type_checks import is_runtime_class, locate_type, type_label
from graphwire.exceptions import GraphWireInvariantViolationError
from graphwire.markers import intersection_members

_MISSING_ANNOTATION: Any = object()
_NONE_TYPE = type(None)
_DESCRIPTOR_MIN_MEMBERS = 2


class PrimitiveKind(Enum):
    """Enumerate the built-in value kinds that are never looked up as services."""

    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    ARRAY = "array"
    """Concrete containers: ``list``, ``tuple``, ``dict``, ``set`` and their ABCs."""
    ITERABLE = "iterable"
    """Any non-string iterable."""


_SCALAR_KINDS: dict[type[Any], PrimitiveKind] = {
    str: PrimitiveKind.STRING,
    bool: PrimitiveKind.BOOL,
    int: PrimitiveKind.INT,
    float: PrimitiveKind.FLOAT,
}
_ARRAY_TYPES: tuple[type[Any], ...] = (
    list,
    tuple,
    dict,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Mapping,
    collections.abc.MutableMapping,
    collections.abc.Set,
    collections.abc.MutableSet,
)
_ITERABLE_TYPES: tuple[type[Any], ...] = (
    collections.abc.Iterable,
    collections.abc.Iterator,
    collections.abc.Collection,
)
_TEXT_TYPES: tuple[type[Any], ...] = (str, bytes, bytearray)


@dataclass(frozen=True, slots=True)
class AnyType:
    """Describe a parameter without a usable type annotation."""

    def __str__(self) -> str:
        return "Any"


@dataclass(frozen=True, slots=True)
class NamedType:
    """Describe a single named type.

    ``name`` is the annotated class (or a dotted path when the annotation was
    a forward reference). ``primitive`` is set for built-in value kinds, which
    are matched by kind and never looked up as services.
    """

    name: Any
    nullable: bool = False
    primitive: PrimitiveKind | None = None

    @property
    def is_primitive(self) -> bool:
        return self.primitive is not None

    def __str__(self) -> str:
        label = type_label(self.name)
        return f"?{label}" if self.nullable else label


@dataclass(frozen=True, slots=True)
class UnionType:
    """Describe a value that must satisfy at least one member."""

    members: tuple[TypeDescriptor, ...]

    def __post_init__(self) -> None:
        _validate_members(self, self.members)

    def __str__(self) -> str:
        return "|".join(str(member) for member in self.members)


@dataclass(frozen=True, slots=True)
class IntersectionType:
    """Describe a value that must satisfy every member."""

    members: tuple[TypeDescriptor, ...]

    def __post_init__(self) -> None:
        _validate_members(self, self.members)

    def __str__(self) -> str:
        return "&".join(str(member) for member in self.members)


TypeDescriptor: TypeAlias = AnyType | NamedType | UnionType | IntersectionType
"""Structured representation of a parameter's declared type shape."""

ANY_TYPE = AnyType()
NULL_TYPE = NamedType(name=_NONE_TYPE, nullable=True)


def _validate_members(descriptor: object, members: tuple[Any, ...]) -> None:
    if len(members) < _DESCRIPTOR_MIN_MEMBERS:
        msg = f"{type(descriptor).__name__} requires at least two members, got {len(members)}."
        raise GraphWireInvariantViolationError(msg)


# region Matching
def primitive_kind_of(value: Any) -> PrimitiveKind | None:
    """Return the runtime primitive kind of ``value`` or ``None`` for objects.

    Args:
        value: Runtime value to classify.

    """
    if isinstance(value, bool):
        return PrimitiveKind.BOOL
    if isinstance(value, int):
        return PrimitiveKind.INT
    if isinstance(value, float):
        return PrimitiveKind.FLOAT
    if isinstance(value, str):
        return PrimitiveKind.STRING
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return PrimitiveKind.ARRAY
    if isinstance(value, Iterable) and not isinstance(value, _TEXT_TYPES):
        return PrimitiveKind.ITERABLE
    return None


def implements_capability(value: Any, type_name: Any) -> bool:
    """Return true when ``value`` is an instance of the named type.

    The check walks the value's MRO, so both ancestors and implemented
    interfaces count. Runtime-checkable protocols are matched structurally.

    Args:
        value: Runtime value to check.
        type_name: Class or dotted path of the required type. A name that
            cannot be loaded is compared with the qualified and dotted names
            of the value's MRO.

    """
    located = locate_type(type_name)
    if located is None:
        return isinstance(type_name, str) and any(
            type_name in (cls.__qualname__, type_label(cls)) for cls in type(value).__mro__
        )
    if located in type(value).__mro__:
        return True
    if getattr(located, "_is_protocol", False):
        if not getattr(located, "_is_runtime_protocol", False):
            return False
    try:
        return isinstance(value, located)
    except TypeError:
        return False


def value_matches(value: Any, descriptor: TypeDescriptor | None) -> bool:
    """Return true when ``value`` satisfies ``descriptor``.

    No coercion is performed: ``True`` is not an ``int``, ``1`` is not a
    ``float`` and ``"1"`` is not an ``int``.

    Args:
        value: Runtime value to check.
        descriptor: Declared type shape; ``None`` matches everything.

    """
    if descriptor is None or isinstance(descriptor, AnyType):
        return True
    if isinstance(descriptor, UnionType):
        return any(value_matches(value, member) for member in descriptor.members)
    if isinstance(descriptor, IntersectionType):
        return all(value_matches(value, member) for member in descriptor.members)

    if value is None:
        return descriptor.nullable
    if descriptor.primitive is None:
        return implements_capability(value, descriptor.name)
    if descriptor.primitive is PrimitiveKind.ARRAY:
        return isinstance(value, descriptor.name) and not isinstance(value, _TEXT_TYPES)
    if descriptor.primitive is PrimitiveKind.ITERABLE:
        return isinstance(value, Iterable) and not isinstance(value, _TEXT_TYPES)
    return primitive_kind_of(value) is descriptor.primitive


def default_for_primitive(descriptor: TypeDescriptor | None) -> Any:
    """Return the zero value for a primitive descriptor or ``None``.

    Containers produce a new empty container of the declared class; abstract
    container ABCs fall back to ``dict``, ``set`` or ``list``.

    Args:
        descriptor: Descriptor to compute the zero value for.

    """
    if not isinstance(descriptor, NamedType) or descriptor.primitive is None:
        return None
    kind = descriptor.primitive
    if kind is PrimitiveKind.STRING:
        return ""
    if kind is PrimitiveKind.BOOL:
        return False
    if kind is PrimitiveKind.INT:
        return 0
    if kind is PrimitiveKind.FLOAT:
        return 0.0
    container = descriptor.name
    if container in (list, tuple, dict, set, frozenset):
        return container()
    if isinstance(container, type) and issubclass(container, collections.abc.Mapping):
        return {}
    if isinstance(container, type) and issubclass(container, collections.abc.Set):
        return set()
    return []


def alternatives_of(descriptor: TypeDescriptor) -> tuple[TypeDescriptor, ...]:
    """Return the alternatives to try when resolving a value for ``descriptor``."""
    if isinstance(descriptor, UnionType):
        return descriptor.members
    if isinstance(descriptor, AnyType):
        return ()
    return (descriptor,)


# endregion Matching


# region Describing annotations
def describe(annotation: Any) -> TypeDescriptor:
    """Convert a resolved type annotation into a ``TypeDescriptor``.

    Missing annotations, ``Any``, ``object``, type variables and typing forms
    without a runtime class (``Callable``, ``Literal``...) describe as
    ``AnyType``.

    Args:
        annotation: Annotation taken from ``typing.get_type_hints``.

    """
    if annotation is _MISSING_ANNOTATION or annotation is Parameter.empty:
        return ANY_TYPE
    if annotation is Any or annotation is object:
        return ANY_TYPE
    if annotation is None or annotation is _NONE_TYPE:
        return NULL_TYPE

    members = intersection_members(annotation)
    if members is not None:
        return IntersectionType(members=tuple(_describe_non_null(member) for member in members))

    origin = get_origin(annotation)
    if origin is Annotated:
        return describe(get_args(annotation)[0])
    if origin is Union or origin is types.UnionType:
        return _describe_union(get_args(annotation))

    if isinstance(annotation, str):
        return NamedType(name=annotation) if "." in annotation else ANY_TYPE

    runtime_type = origin if origin is not None else annotation
    if not is_runtime_class(runtime_type) or runtime_type is object:
        return ANY_TYPE
    return NamedType(name=runtime_type, primitive=_primitive_of(runtime_type))


def _describe_non_null(annotation: Any) -> TypeDescriptor:
    described = describe(annotation)
    if isinstance(described, NamedType) and described.nullable and described is not NULL_TYPE:
        return replace(described, nullable=False)
    return described


def _describe_union(arguments: tuple[Any, ...]) -> TypeDescriptor:
    nullable = any(argument is _NONE_TYPE or argument is None for argument in arguments)
    members: list[TypeDescriptor] = []
    for argument in arguments:
        if argument is _NONE_TYPE or argument is None:
            continue
        described = describe(argument)
        if isinstance(described, AnyType):
            return ANY_TYPE
        if isinstance(described, UnionType):
            members.extend(described.members)
        else:
            members.append(described)

    if nullable:
        members = [
            replace(member, nullable=True) if isinstance(member, NamedType) else member
            for member in members
        ]
        if not any(isinstance(member, NamedType) for member in members):
            members.append(NULL_TYPE)

    if not members:
        return NULL_TYPE
    if len(members) == 1:
        return members[0]
    return UnionType(members=tuple(members))


def _primitive_of(runtime_type: type[Any]) -> PrimitiveKind | None:
    kind = _SCALAR_KINDS.get(runtime_type)
    if kind is not None:
        return kind
    if runtime_type in _ARRAY_TYPES:
        return PrimitiveKind.ARRAY
    if runtime_type in _ITERABLE_TYPES:
        return PrimitiveKind.ITERABLE
    return None


# endregion Describing annotations


@dataclass(frozen=True, slots=True)
class ParameterSpec:
    """Describe one parameter of a constructor or function."""

    name: str
    position: int
    kind: inspect._ParameterKind
    descriptor: TypeDescriptor
    has_default: bool = False
    default: Any = None

    @property
    def nullable(self) -> bool:
        """Return true when ``None`` satisfies the declared type."""
        return value_matches(None, self.descriptor)

    @property
    def is_variadic(self) -> bool:
        return self.kind is Parameter.VAR_POSITIONAL

    @property
    def is_var_keyword(self) -> bool:
        return self.kind is Parameter.VAR_KEYWORD

    @property
    def is_keyword_only(self) -> bool:
        return self.kind is Parameter.KEYWORD_ONLY

    @property
    def is_positional_only(self) -> bool:
        return self.kind is Parameter.POSITIONAL_ONLY

    @property
    def is_optional(self) -> bool:
        return self.has_default or self.is_variadic or self.is_var_keyword


class SignatureInspector:
    """Extracts parameter specs from classes and callables."""

    def parameters_of(self, target: Callable[..., Any]) -> list[ParameterSpec]:
        """Return the parameter specs of a callable or a class constructor.

        Classes without a custom ``__init__``/``__new__`` have no parameters.
        Annotations are resolved one parameter at a time, so a single
        unresolvable name (a ``TYPE_CHECKING``-only import, a local class)
        only affects its own parameter. Such a parameter is described by its
        annotation string as a required, non-nullable named type.

        Args:
            target: Class or callable to inspect.

        """
        parameters = self._signature_parameters(target)
        annotations = self._resolved_type_hints(target)
        return [
            ParameterSpec(
                name=parameter.name,
                position=position,
                kind=parameter.kind,
                descriptor=self._describe_parameter(target, parameter, annotations),
                has_default=parameter.default is not Parameter.empty,
                default=None if parameter.default is Parameter.empty else parameter.default,
            )
            for position, parameter in enumerate(parameters)
        ]

    def _signature_parameters(self, target: Callable[..., Any]) -> tuple[Parameter, ...]:
        if inspect.isclass(target) and target.__init__ is object.__init__:
            if target.__new__ is object.__new__:
                return ()
        try:
            return tuple(inspect.signature(target).parameters.values())
        except (TypeError, ValueError):
            return ()

    def _describe_parameter(
        self,
        target: Callable[..., Any],
        parameter: Parameter,
        annotations: dict[str, Any],
    ) -> TypeDescriptor:
        annotation = annotations.get(parameter.name, _MISSING_ANNOTATION)
        if annotation is _MISSING_ANNOTATION:
            annotation = parameter.annotation
        if not isinstance(annotation, str):
            return describe(annotation)

        resolved = self._resolve_annotation(target, parameter.name, annotation)
        if isinstance(resolved, str):
            return NamedType(name=resolved)
        return describe(resolved)

    def _resolve_annotation(self, target: Callable[..., Any], name: str, annotation: str) -> Any:
        globalns, localns = self._namespaces_of(target)
        holder = types.SimpleNamespace(__annotations__={name: annotation})
        try:
            return get_type_hints(holder, globalns, localns, include_extras=True)[name]
        except (AttributeError, NameError, SyntaxError, TypeError):
            return annotation

    def _namespaces_of(self, target: Callable[..., Any]) -> tuple[dict[str, Any], dict[str, Any]]:
        if not inspect.isclass(target):
            return dict(getattr(inspect.unwrap(target), "__globals__", {})), {}
        for callable_member_name in ("__init__", "__new__"):
            member = getattr(target, callable_member_name, None)
            member_globals = getattr(member, "__globals__", None)
            if member_globals is not None:
                return dict(member_globals), {**vars(target), target.__name__: target}
        return {}, {**vars(target), target.__name__: target}

    def _resolved_type_hints(self, target: Callable[..., Any]) -> dict[str, Any]:
        if not inspect.isclass(target):
            return self._safe_type_hints(target)

        # Constructor hints win over class-level attribute annotations.
        merged: dict[str, Any] = {}
        for callable_member_name in ("__init__", "__new__"):
            member = getattr(target, callable_member_name, None)
            if member is None or member in (object.__init__, object.__new__):
                continue
            for name, annotation in self._safe_type_hints(member).items():
                merged.setdefault(name, annotation)
        for name, annotation in self._safe_type_hints(target).items():
            merged.setdefault(name, annotation)
        return merged

    def _safe_type_hints(self, target: Any) -> dict[str, Any]:
        try:
            return get_type_hints(target, include_extras=True)
        except (AttributeError, NameError, TypeError):
            return {}


__all__ = [
    "ANY_TYPE",
    "NULL_TYPE",
    "AnyType",
    "IntersectionType",
    "NamedType",
    "ParameterSpec",
    "PrimitiveKind",
    "SignatureInspector",
    "TypeDescriptor",
    "UnionType",
    "alternatives_of",
    "default_for_primitive",
    "describe",
    "implements_capability",
    "primitive_kind_of",
    "value_matches",
]
