from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from graphwire.descriptors import (
    IntersectionType,
    NamedType,
    ParameterSpec,
    TypeDescriptor,
    alternatives_of,
    default_for_primitive,
    value_matches,
)
from graphwire.exceptions import (
    GraphWireInvariantViolationError,
    GraphWireTypeMismatchError,
    GraphWireUnresolvableParameterError,
)

logger = logging.getLogger(__name__)


class _Unresolved:
    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False


UNRESOLVED: Any = _Unresolved()
"""Returned by dependency sources and the resolver when no value was found."""

_NO_FALLBACK: Any = object()


class ResolutionMode(Enum):
    """Select what happens to a parameter that cannot be resolved.

    The builder always resolves in ``STRICT`` mode; the invoker uses
    ``LENIENT`` mode so the target callable reports missing arguments itself.
    """

    STRICT = "strict"
    """Raise ``GraphWireUnresolvableParameterError`` immediately."""

    LENIENT = "lenient"
    """Omit the argument; the eventual call fails with Python's ``TypeError``."""


class DependencyLookup(Protocol):
    """Answer whether a service id is available and fetch it."""

    def has(self, service_id: Any) -> bool: ...

    def get(self, service_id: Any) -> Any: ...


@dataclass(frozen=True, slots=True)
class SuppliedArguments:
    """Caller-supplied arguments, either positional or named but never both.

    An empty set is treated as named, so keyword-only lookups still work.
    """

    positional: tuple[Any, ...] = ()
    named: Mapping[Any, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.positional and self.named:
            msg = "Supplied arguments must be either positional or named, not both."
            raise GraphWireInvariantViolationError(msg)

    @classmethod
    def of(cls, *values: Any) -> SuppliedArguments:
        return cls(positional=tuple(values))

    @classmethod
    def from_mapping(cls, arguments: Mapping[Any, Any]) -> SuppliedArguments:
        return cls(named=dict(arguments))

    @property
    def is_positional(self) -> bool:
        return bool(self.positional)

    def __contains__(self, key: object) -> bool:
        if self.is_positional:
            return isinstance(key, int) and 0 <= key < len(self.positional)
        return key in self.named

    def __getitem__(self, key: Any) -> Any:
        if self.is_positional:
            return self.positional[key]
        return self.named[key]

    def remaining_from(self, index: int) -> list[Any]:
        """Return positional values from ``index`` onwards (empty in named mode)."""
        return list(self.positional[index:]) if self.is_positional else []


@dataclass(slots=True)
class ResolvedArguments:
    """Arguments ready to be passed to the resolved callable."""

    args: list[Any] = field(default_factory=list)
    kwargs: dict[str, Any] = field(default_factory=dict)

    def call(self, target: Any) -> Any:
        return target(*self.args, **self.kwargs)


class DependencySource:
    """Resolve non-primitive parameter alternatives through a lookup.

    Subclasses can add their own precedence (for example registry resolvers)
    by overriding ``resolve_named``.
    """

    def __init__(self, lookup: DependencyLookup) -> None:
        self.lookup = lookup

    def resolve_alternative(self, parameter: ParameterSpec, alternative: TypeDescriptor) -> Any:
        if isinstance(alternative, NamedType):
            return self.resolve_named(parameter, alternative)
        if isinstance(alternative, IntersectionType):
            return self.resolve_intersection(parameter, alternative)
        return UNRESOLVED

    def resolve_named(self, parameter: ParameterSpec, alternative: NamedType) -> Any:
        if self.lookup.has(alternative.name):
            return self.lookup.get(alternative.name)
        return UNRESOLVED

    def resolve_intersection(self, parameter: ParameterSpec, alternative: IntersectionType) -> Any:
        """Resolve every member type and accept only one shared concrete instance.

        Members that cannot be looked up are skipped. When the resolvable
        members yield objects of different concrete types, or nothing is
        resolvable, the intersection stays unresolved.
        """
        found: Any = UNRESOLVED
        for member in alternative.members:
            if not isinstance(member, NamedType) or member.is_primitive:
                continue
            if not self.lookup.has(member.name):
                continue
            candidate = self.lookup.get(member.name)
            if found is UNRESOLVED:
                found = candidate
            elif type(candidate) is not type(found):
                return UNRESOLVED
        if found is UNRESOLVED or not value_matches(found, alternative):
            return UNRESOLVED
        return found


class ParameterResolver:
    """Produce a complete argument set for a list of parameter specs.

    Each parameter is taken, in declaration order, from the supplied
    arguments (type-checked), then from the dependency source, then from its
    literal default, a primitive zero value, or ``None``. What happens to a
    parameter left unresolved is decided by ``ResolutionMode``.
    """

    def resolve(
        self,
        parameters: Sequence[ParameterSpec],
        supplied: SuppliedArguments,
        *,
        source: DependencySource | None = None,
        mode: ResolutionMode = ResolutionMode.STRICT,
        service_id: Any = None,
    ) -> ResolvedArguments:
        """Resolve ``parameters`` against ``supplied`` arguments.

        Args:
            parameters: Ordered parameter specs of the target callable.
            supplied: Caller-supplied positional or named arguments.
            source: Optional dependency source consulted for missing
                non-primitive parameters.
            mode: Policy for unresolved parameters.
            service_id: Id being built, used in error messages.

        Raises:
            GraphWireTypeMismatchError: A supplied value does not match its type.
            GraphWireInvariantViolationError: A variadic argument passed by name
                is not a sequence.
            GraphWireUnresolvableParameterError: A parameter is unresolved in
                strict mode.

        """
        bound: dict[str, Any] = {}
        variadic_values: list[Any] = []
        consumed_names: set[Any] = set()

        for parameter in parameters:
            if parameter.is_var_keyword:
                continue

            if parameter.is_variadic:
                variadic_values = self._resolve_variadic(parameter, supplied)
                consumed_names.add(parameter.name)
                continue

            if parameter.is_keyword_only or not supplied.is_positional:
                key: Any = parameter.name
            else:
                key = parameter.position
            consumed_names.add(key)

            if key in supplied:
                value = supplied[key]
                if not value_matches(value, parameter.descriptor):
                    raise GraphWireTypeMismatchError(parameter.name, value, str(parameter.descriptor))
                bound[parameter.name] = value
                continue

            value = self.resolve_single(parameter, source)
            if value is UNRESOLVED:
                if mode is ResolutionMode.STRICT:
                    raise GraphWireUnresolvableParameterError(
                        parameter.name,
                        service_id=service_id,
                        position=parameter.position,
                        type_label=str(parameter.descriptor),
                    )
                logger.debug("Leaving parameter '%s' unresolved", parameter.name)
                continue
            bound[parameter.name] = value

        extra_named = {
            name: value
            for name, value in supplied.named.items()
            if isinstance(name, str) and name not in consumed_names
        }
        return self._assemble(parameters, bound, variadic_values, extra_named)

    def resolve_single(self, parameter: ParameterSpec, source: DependencySource | None) -> Any:
        """Resolve one parameter that was not supplied, or return ``UNRESOLVED``.

        Args:
            parameter: Parameter to resolve.
            source: Optional dependency source for non-primitive alternatives.

        """
        nullable = parameter.nullable
        fallback: Any = _NO_FALLBACK
        for alternative in alternatives_of(parameter.descriptor):
            if isinstance(alternative, NamedType) and alternative.is_primitive:
                if fallback is _NO_FALLBACK and not nullable:
                    fallback = default_for_primitive(alternative)
                continue
            if source is None:
                continue
            value = source.resolve_alternative(parameter, alternative)
            if value is not UNRESOLVED:
                return value

        if parameter.has_default:
            return parameter.default
        if fallback is not _NO_FALLBACK and not nullable:
            return fallback
        if nullable and fallback is _NO_FALLBACK:
            return None
        if fallback is not _NO_FALLBACK:
            return fallback
        return UNRESOLVED

    def _resolve_variadic(self, parameter: ParameterSpec, supplied: SuppliedArguments) -> list[Any]:
        if supplied.is_positional or parameter.name not in supplied:
            return supplied.remaining_from(parameter.position)

        provided = supplied[parameter.name]
        if not isinstance(provided, Sequence) or isinstance(provided, (str, bytes)):
            msg = (
                f"Variadic argument for parameter '{parameter.name}' must be a sequence when "
                f"passed by name, got {type(provided).__name__}."
            )
            raise GraphWireInvariantViolationError(msg)
        if isinstance(parameter.descriptor, NamedType):
            for element in provided:
                if not value_matches(element, parameter.descriptor):
                    raise GraphWireTypeMismatchError(parameter.name, element, str(parameter.descriptor))
        return list(provided)

    def _assemble(
        self,
        parameters: Sequence[ParameterSpec],
        bound: dict[str, Any],
        variadic_values: list[Any],
        extra_named: dict[str, Any],
    ) -> ResolvedArguments:
        resolved = ResolvedArguments()
        # Parameters ahead of *args must be passed positionally once *args has values.
        pass_positionally = bool(variadic_values)
        gap = False
        for parameter in parameters:
            if parameter.is_variadic:
                if not gap:
                    resolved.args.extend(variadic_values)
                continue
            if parameter.is_var_keyword:
                resolved.kwargs.update(extra_named)
                continue
            positional = parameter.is_positional_only or (
                pass_positionally and not parameter.is_keyword_only
            )
            if parameter.name not in bound:
                gap = gap or positional
                continue
            value = bound[parameter.name]
            if positional:
                if gap:
                    continue
                resolved.args.append(value)
            else:
                resolved.kwargs[parameter.name] = value
        return resolved


__all__ = [
    "UNRESOLVED",
    "DependencyLookup",
    "DependencySource",
    "ParameterResolver",
    "ResolutionMode",
    "ResolvedArguments",
    "SuppliedArguments",
]
