from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from graphwire._internal.autoloading import UnboundTypePolicy
from graphwire._internal.integrations.pydantic_settings import is_settings_class
from graphwire._internal.type_checks import is_interface, locate_type, same_type, type_label
from graphwire.descriptors import NamedType, ParameterSpec, SignatureInspector
from graphwire.exceptions import (
    GraphWireBuildFailureError,
    GraphWireCircularReferenceError,
    GraphWireError,
    GraphWireInvariantViolationError,
    GraphWireNotFoundError,
)
from graphwire.invoker import Invoker
from graphwire.markers import ServiceRef
from graphwire.parameters import (
    UNRESOLVED,
    DependencySource,
    ParameterResolver,
    ResolutionMode,
    ResolvedArguments,
    SuppliedArguments,
)
from graphwire.registry import Callback, Registry, ServiceId, is_type_name

logger = logging.getLogger(__name__)

_BUILDER_ID = "graphwire.builder.Builder"
_INVOKER_ID = "graphwire.invoker.Invoker"


class Builder:
    """Build, configure and cache the object graph described by a ``Registry``.

    ``get`` returns one instance per id for the builder's lifetime. Each
    instance is constructed by introspecting its constructor and resolving
    every parameter from registry overrides, registry resolvers, or other
    services, and then configured once by the registry callbacks that apply
    to it.

    The builder references its registry without copying it. ``clone`` returns
    a builder over the same registry with an empty cache.

    Examples:
        .. code-block:: python

            builder = Builder(registry)
            service = builder.get(Service)
            assert builder.get(Service) is service

    """

    def __init__(
        self,
        registry: Registry | Mapping[ServiceId, Any] | None = None,
        *,
        autoload_types: bool = True,
    ) -> None:
        """Initialize a builder over a registry.

        Args:
            registry: Registry to build from. A mapping or ``None`` creates a
                new registry from it.
            autoload_types: Allow building classes that have no binding. When
                disabled, every id (including dependencies) must be bound.

        """
        if not isinstance(registry, Registry):
            registry = Registry(registry)
        self._registry = registry
        self._autoload_types = autoload_types
        self._unbound_type_policy = UnboundTypePolicy()
        self._signature_inspector = SignatureInspector()
        self._parameter_resolver = ParameterResolver()
        self._instances: dict[ServiceId, Any] = {}
        self._building: dict[type[Any], None] = {}

    @property
    def registry(self) -> Registry:
        return self._registry

    def has(self, service_id: ServiceId) -> bool:
        """Return true when ``get`` will not raise ``GraphWireNotFoundError``.

        An id is available when the registry binds it, or when it names a
        concrete class that can be loaded and autoloading is enabled.
        """
        if self._registry.has(service_id):
            return True
        if self._is_self_id(service_id) or self._is_invoker_id(service_id):
            return True
        if not self._autoload_types:
            return False
        return self._unbound_type_policy.locate_loadable(service_id) is not None

    def get(self, service_id: ServiceId) -> Any:
        """Return the cached instance for ``service_id``, building it on first use.

        Args:
            service_id: Service name, dotted class path or class.

        Raises:
            GraphWireNotFoundError: The id is unknown.
            GraphWireCircularReferenceError: The id depends on itself.
            GraphWireUnresolvableParameterError: A required parameter has no value.
            GraphWireTypeMismatchError: A parameter override has the wrong type.
            GraphWireBuildFailureError: The constructor raised.

        """
        if not self.has(service_id):
            raise GraphWireNotFoundError(service_id)
        if self._is_self_id(service_id):
            return self
        if self._is_invoker_id(service_id) and self._registry.miss(service_id):
            return Invoker(self)

        if service_id in self._instances:
            logger.debug("Returning cached instance for '%s'", type_label(service_id))
            return self._instances[service_id]

        instance = self.build(service_id)
        # Callbacks run once since the instance is cached right after.
        self.configure(instance, service_id)
        self._instances[service_id] = instance
        return instance

    def is_cached(self, service_id: ServiceId) -> bool:
        return service_id in self._instances

    def clone(self) -> Builder:
        """Return a builder over the same registry with an empty cache."""
        return copy.copy(self)

    def __copy__(self) -> Builder:
        cloned = Builder.__new__(Builder)
        cloned.__dict__.update(self.__dict__)
        cloned._instances = {}
        cloned._building = {}
        return cloned

    # region Building
    def build(self, service_id: ServiceId) -> Any:
        """Construct a new instance for ``service_id`` without caching it.

        Args:
            service_id: Id to build.

        """
        target = self._registry.expand(service_id)
        if target is None:
            target = service_id
        if not is_type_name(target):
            # Pre-built instances and factory results are used as is.
            return target

        cls = locate_type(target)
        if cls is None:
            msg = f"Class '{type_label(target)}' does not exist."
            raise GraphWireInvariantViolationError(msg)

        if cls in self._building:
            logger.debug("Circular reference detected while building '%s'", type_label(cls))
            raise GraphWireCircularReferenceError(cls, [*self._building, cls])

        self._building[cls] = None
        try:
            return self._construct(cls, service_id)
        finally:
            self._building.pop(cls, None)

    def _construct(self, cls: type[Any], service_id: ServiceId) -> Any:
        logger.debug("Building '%s' for '%s'", type_label(cls), type_label(service_id))
        parameters = self._signature_inspector.parameters_of(cls)
        overrides = self._overrides_for(cls, service_id, parameters)
        if is_settings_class(cls):
            # Settings load their own fields; only explicit overrides are passed.
            arguments = ResolvedArguments(
                kwargs={name: value for name, value in overrides.items() if isinstance(name, str)},
            )
        else:
            arguments = self._parameter_resolver.resolve(
                parameters,
                SuppliedArguments.from_mapping(overrides),
                source=_RegistryDependencySource(self, cls),
                mode=ResolutionMode.STRICT,
                service_id=service_id,
            )

        try:
            return arguments.call(cls)
        except GraphWireError:
            raise
        except Exception as error:
            raise GraphWireBuildFailureError(
                service_id,
                type(error).__name__,
                str(error),
            ) from error

    def _overrides_for(
        self,
        cls: type[Any],
        service_id: ServiceId,
        parameters: list[ParameterSpec],
    ) -> dict[str, Any]:
        names_by_position = {parameter.position: parameter.name for parameter in parameters}
        overrides: dict[str, Any] = {}
        for key, value in self._registry.all_parameters_for(cls, service_id).items():
            name = names_by_position.get(key, key) if isinstance(key, int) else key
            if isinstance(value, ServiceRef):
                value = self.get(value.service_id)
            overrides[name] = value
        return overrides

    # endregion Building

    # region Configuration
    def configure(self, instance: Any, service_id: ServiceId) -> None:
        """Run every callback that applies to ``instance`` requested as ``service_id``.

        Requesting the concrete class runs its ancestry callbacks only.
        Requesting an interface runs the interface callbacks first, then the
        concrete ones. Requesting any other id runs the concrete callbacks
        first, then the id's own callbacks.

        Args:
            instance: Freshly built instance.
            service_id: Id the instance was requested as.

        """
        instance_type = type(instance)
        class_callbacks = self._registry.callbacks_for_ancestry_of(instance_type)
        id_callbacks = list(self._registry.callbacks_for(service_id).values())

        callbacks: list[Callback]
        if same_type(service_id, instance_type):
            callbacks = class_callbacks
        elif is_interface(locate_type(service_id)):
            callbacks = [*id_callbacks, *class_callbacks]
        else:
            callbacks = [*class_callbacks, *id_callbacks]

        for callback in callbacks:
            callback(instance, self)
        if callbacks:
            logger.debug("Ran %d callbacks for '%s'", len(callbacks), type_label(service_id))

    # endregion Configuration

    def _is_self_id(self, service_id: ServiceId) -> bool:
        return service_id is Builder or service_id == _BUILDER_ID

    def _is_invoker_id(self, service_id: ServiceId) -> bool:
        return service_id is Invoker or service_id == _INVOKER_ID

    def __repr__(self) -> str:
        return f"Builder(registry={self._registry!r}, cached={len(self._instances)})"


class _RegistryDependencySource(DependencySource):
    """Resolve constructor dependencies through registry resolvers, then by type."""

    def __init__(self, builder: Builder, consuming_class: type[Any]) -> None:
        super().__init__(builder)
        self._builder = builder
        self._consuming_class = consuming_class

    def resolve_named(self, parameter: ParameterSpec, alternative: NamedType) -> Any:
        registry = self._builder.registry
        service_id = registry.resolver_lookup(parameter.name, alternative.name, self._consuming_class)
        if service_id is not None and registry.has(service_id):
            return self._builder.get(service_id)
        if self._builder.has(alternative.name):
            return self._builder.get(alternative.name)
        return UNRESOLVED


__all__ = ["Builder"]
