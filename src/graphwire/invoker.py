from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from graphwire._internal.type_checks import is_interface, locate_type, type_label
from graphwire.descriptors import SignatureInspector
from graphwire.exceptions import GraphWireInvariantViolationError, GraphWireNotFoundError
from graphwire.parameters import (
    DependencySource,
    ParameterResolver,
    ResolutionMode,
    SuppliedArguments,
)

if TYPE_CHECKING:
    from graphwire.builder import Builder

T = TypeVar("T")

logger = logging.getLogger(__name__)


class Invoker:
    """Call functions and build fresh objects with resolved arguments.

    Arguments that are not supplied are resolved leniently: non-primitive
    parameters come from the attached builder when it has them, primitives
    fall back to defaults, and anything left unresolved is omitted so the
    target reports it with its own ``TypeError``.

    Nothing produced by the invoker is cached and registry callbacks never
    run on it. Dependencies taken from the attached builder are still the
    builder's cached instances.

    Examples:
        .. code-block:: python

            invoker = Invoker(builder)
            invoker.invoke(send_report, "weekly")
            report = invoker.make_named(Report, {"title": "weekly"})

    """

    def __init__(self, builder: Builder | None = None) -> None:
        """Initialize an invoker.

        Args:
            builder: Optional builder consulted for missing dependencies.

        """
        self._builder = builder
        self._signature_inspector = SignatureInspector()
        self._parameter_resolver = ParameterResolver()

    @property
    def builder(self) -> Builder | None:
        return self._builder

    def invoke(self, function: Callable[..., T], *arguments: Any) -> T:
        """Call ``function`` with positional ``arguments`` and resolve the rest.

        Args:
            function: Any callable.
            *arguments: Positional values, type-checked against the signature.

        """
        return self._invoke(function, SuppliedArguments.of(*arguments))

    def invoke_named(self, function: Callable[..., T], arguments: Mapping[str, Any]) -> T:
        """Call ``function`` with named ``arguments`` and resolve the rest.

        Args:
            function: Any callable.
            arguments: Values keyed by parameter name. A variadic parameter
                takes a sequence under its own name.

        """
        return self._invoke(function, SuppliedArguments.from_mapping(arguments))

    def make(self, cls: type[T] | str, *arguments: Any) -> T:
        """Build a fresh instance of ``cls`` from positional ``arguments``.

        Interface-like classes are built by a disposable clone of the attached
        builder, so the registry binding and its callbacks apply.

        Args:
            cls: Class or dotted class path to instantiate.
            *arguments: Positional constructor values.

        Raises:
            GraphWireNotFoundError: ``cls`` is a dotted path that cannot be loaded.
            GraphWireInvariantViolationError: ``cls`` is an interface and no
                builder is attached.

        """
        return self._make(cls, SuppliedArguments.of(*arguments))

    def make_named(self, cls: type[T] | str, arguments: Mapping[str, Any]) -> T:
        """Build a fresh instance of ``cls`` from named ``arguments``."""
        return self._make(cls, SuppliedArguments.from_mapping(arguments))

    def _invoke(self, function: Callable[..., T], supplied: SuppliedArguments) -> T:
        parameters = self._signature_inspector.parameters_of(function)
        resolved = self._parameter_resolver.resolve(
            parameters,
            supplied,
            source=self._dependency_source(),
            mode=ResolutionMode.LENIENT,
        )
        return resolved.call(function)

    def _make(self, type_name: type[T] | str, supplied: SuppliedArguments) -> T:
        cls = locate_type(type_name)
        if cls is None:
            raise GraphWireNotFoundError(type_name)
        if is_interface(cls):
            if self._builder is None:
                msg = f"Cannot instantiate interface '{type_label(cls)}' without a builder."
                raise GraphWireInvariantViolationError(msg)
            logger.debug("Building a fresh '%s' through a cloned builder", type_label(cls))
            return self._builder.clone().get(cls)

        parameters = self._signature_inspector.parameters_of(cls)
        resolved = self._parameter_resolver.resolve(
            parameters,
            supplied,
            source=self._dependency_source(),
            mode=ResolutionMode.LENIENT,
            service_id=cls,
        )
        return resolved.call(cls)

    def _dependency_source(self) -> DependencySource | None:
        if self._builder is None:
            return None
        return DependencySource(self._builder)

    def __repr__(self) -> str:
        return f"Invoker(builder={self._builder!r})"


__all__ = ["Invoker"]
