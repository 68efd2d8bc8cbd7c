from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

from graphwire._internal.type_checks import (
    ancestors_of,
    capabilities_of,
    is_interface,
    is_runtime_class,
    locate_type,
    type_label,
)
from graphwire.exceptions import GraphWireInvariantViolationError

if TYPE_CHECKING:
    from typing_extensions import Self

    from graphwire.builder import Builder

logger = logging.getLogger(__name__)

ServiceId: TypeAlias = Any
"""A string service name, a dotted class path, or a class."""

Callback: TypeAlias = Callable[[Any, "Builder"], Any]
"""Called with ``(instance, builder)`` once after an instance is built."""

Factory: TypeAlias = Callable[["Registry", dict[Any, Any]], Any]
"""Called with ``(registry, parameters_for(id))``; returns an instance or a type name."""

WILDCARD = "*"
_OBJECT_IDS: tuple[Any, ...] = (object, "builtins.object")


def is_factory(target: object) -> bool:
    """Return true when a binding target or resolver value is a deferred function.

    Plain functions, lambdas, bound methods and ``functools.partial`` objects
    are factories. Classes are type names, and every other object is a
    pre-built instance.

    Args:
        target: Binding target or resolver value.

    """
    return (
        inspect.isfunction(target)
        or inspect.ismethod(target)
        or isinstance(target, functools.partial)
    )


def is_type_name(target: object) -> bool:
    """Return true when a target names a type to construct rather than an instance."""
    return is_runtime_class(target) or isinstance(target, str)


class Registry:
    """Store service bindings, parameter overrides, callbacks and resolvers.

    A registry is assembled once by composition code, optionally merged from
    smaller registries, and then locked. Every mutator raises
    ``GraphWireInvariantViolationError`` once the registry is locked.

    Bindings map a service id to a target: a class (or dotted class path) to
    construct, a pre-built instance, a factory function called with
    ``(registry, parameters_for(id))``, or ``None`` when the id is itself the
    class to construct.

    Examples:
        .. code-block:: python

            registry = (
                Registry()
                .bind_interface(PostgresRepository, Repository)
                .set_parameter(PostgresRepository, "dsn", "postgres://localhost")
                .add_callback(Repository, lambda repo, builder: repo.connect())
                .lock()
            )
            builder = registry.create_builder()

    """

    def __init__(self, bindings: Mapping[ServiceId, Any] | Registry | None = None) -> None:
        """Initialize a registry, optionally seeded from a mapping or another registry.

        Args:
            bindings: A mapping registered with ``register_all`` or a registry
                merged with ``merge``.

        """
        self._values: dict[ServiceId, Any] = {}
        self._callbacks: dict[ServiceId, dict[str, Callback]] = {}
        self._parameters: dict[ServiceId, dict[Any, Any]] = {}
        self._resolvers: dict[ServiceId, dict[Any, Any]] = {}
        self._locked = False

        if isinstance(bindings, Registry):
            self.merge(bindings)
        elif bindings is not None:
            self.register_all(bindings)

    # region Bindings
    def register(self, service_id: ServiceId, target: Any = None) -> Self:
        """Bind ``service_id`` to a target, replacing any previous binding.

        Args:
            service_id: Id to bind. ``object`` is rejected.
            target: Class or dotted class path, pre-built instance, factory,
                or ``None`` to build ``service_id`` itself.

        """
        self._ensure_unlocked()
        if any(service_id is object_id or service_id == object_id for object_id in _OBJECT_IDS):
            msg = "Cannot register 'object' as a service id."
            raise GraphWireInvariantViolationError(msg)
        if isinstance(target, str) and locate_type(target) is None:
            msg = f"Value for '{type_label(service_id)}' is not valid: '{target}' is not a loadable class."
            raise GraphWireInvariantViolationError(msg)
        self._values[service_id] = target
        return self

    def register_if_absent(self, service_id: ServiceId, target: Any = None) -> Self:
        """Bind ``service_id`` unless it already has a binding (even ``None``)."""
        if self.has(service_id):
            return self
        return self.register(service_id, target)

    def register_all(self, bindings: Mapping[ServiceId, Any]) -> Self:
        for service_id, target in bindings.items():
            self.register(service_id, target)
        return self

    def register_instance(self, instance: object) -> Self:
        """Bind a pre-built instance under its own class and every supertype.

        The concrete class binding always replaces an existing one. Implemented
        interfaces and concrete ancestors are bound only when still unbound.

        Args:
            instance: Object to bind.

        """
        self._ensure_unlocked()
        instance_type = type(instance)
        for interface in capabilities_of(instance_type):
            self.register_if_absent(interface, instance)
        for ancestor in ancestors_of(instance_type):
            self.register_if_absent(ancestor, instance)
        self._values[instance_type] = instance
        return self

    def bind_interface(
        self,
        cls: type[Any],
        interface: type[Any] | None = None,
        parameters: Mapping[Any, Any] | None = None,
    ) -> Self:
        """Bind an interface to the class implementing it.

        Args:
            cls: Concrete class to construct for the interface.
            interface: Interface-like class to bind. When omitted, ``cls`` must
                implement exactly one interface.
            parameters: Optional parameter overrides stored for ``cls``.

        """
        self._ensure_unlocked()
        if not is_runtime_class(cls):
            msg = f"Class '{cls!r}' does not exist."
            raise GraphWireInvariantViolationError(msg)

        if interface is None:
            interfaces = capabilities_of(cls)
            if len(interfaces) != 1:
                msg = (
                    f"Class '{type_label(cls)}' implements {len(interfaces)} interfaces; "
                    "pass the interface to bind explicitly."
                )
                raise GraphWireInvariantViolationError(msg)
            interface = interfaces[0]
        if not is_interface(interface):
            msg = f"Interface '{type_label(interface)}' is not an interface."
            raise GraphWireInvariantViolationError(msg)

        if parameters:
            self.set_parameters_from(cls, parameters)
        return self.register(interface, cls)

    def bind_all_interfaces(self, cls: type[Any]) -> Self:
        """Bind ``cls`` to every interface it implements that is still unbound."""
        for interface in capabilities_of(cls):
            self.register_if_absent(interface, cls)
        return self

    def has(self, service_id: ServiceId) -> bool:
        return service_id in self._values

    def miss(self, service_id: ServiceId) -> bool:
        return not self.has(service_id)

    def get(self, service_id: ServiceId) -> Any:
        """Return the raw binding target; factories are not expanded."""
        return self._values.get(service_id)

    def expand(self, service_id: ServiceId) -> Any:
        """Return the binding target, calling it first when it is a factory.

        Args:
            service_id: Id whose binding should be expanded.

        Raises:
            GraphWireInvariantViolationError: The factory returned ``None``.

        """
        entry = self.get(service_id)
        if not is_factory(entry):
            return entry

        logger.debug("Expanding factory bound to '%s'", type_label(service_id))
        result = entry(self, self.parameters_for(service_id))
        if result is None:
            msg = f"Factory for '{type_label(service_id)}' must return an instance or a type name."
            raise GraphWireInvariantViolationError(msg)
        return result

    @property
    def bindings(self) -> dict[ServiceId, Any]:
        return dict(self._values)

    # endregion Bindings

    # region Parameters
    def set_parameter(self, service_id: ServiceId, name: str | int, value: Any) -> Self:
        """Provide a constructor parameter value for an id.

        Args:
            service_id: Id (or class) the parameter applies to.
            name: Parameter name, or its position.
            value: Literal value, or a ``ServiceRef`` to resolve another id.

        """
        self._ensure_unlocked()
        self._parameters.setdefault(service_id, {})[name] = value
        return self

    def set_parameters(self, service_id: ServiceId, *values: Any, **named: Any) -> Self:
        """Provide several parameter values, positional (by index) or named."""
        self._ensure_unlocked()
        for position, value in enumerate(values):
            self.set_parameter(service_id, position, value)
        for name, value in named.items():
            self.set_parameter(service_id, name, value)
        return self

    def set_parameters_from(self, service_id: ServiceId, parameters: Mapping[Any, Any]) -> Self:
        self._ensure_unlocked()
        for name, value in parameters.items():
            self.set_parameter(service_id, name, value)
        return self

    def parameters_for(self, service_id: ServiceId | None = None) -> dict[Any, Any]:
        if service_id is None:
            return {}
        return dict(self._parameters.get(service_id, {}))

    def all_parameters_for(self, cls: type[Any], service_id: ServiceId | None = None) -> dict[Any, Any]:
        """Return class-scoped parameters overlaid with id-scoped parameters."""
        return {**self.parameters_for(cls), **self.parameters_for(service_id)}

    @property
    def parameters(self) -> dict[ServiceId, dict[Any, Any]]:
        return {service_id: dict(values) for service_id, values in self._parameters.items()}

    # endregion Parameters

    # region Callbacks
    def add_callback(self, service_id: ServiceId, callback: Callback, name: str | None = None) -> Self:
        """Add a callback run once after an instance for ``service_id`` is built.

        Args:
            service_id: Id or class the callback applies to.
            callback: Function called with ``(instance, builder)``.
            name: Optional name; re-using a name replaces that callback.
                Unnamed callbacks get the next number not already used as a
                name.

        """
        self._ensure_unlocked()
        callbacks = self._callbacks.setdefault(service_id, {})
        if name is None:
            index = len(callbacks)
            while str(index) in callbacks:
                index += 1
            name = str(index)
        callbacks[name] = callback
        return self

    def callbacks_for(self, service_id: ServiceId) -> dict[str, Callback]:
        return dict(self._callbacks.get(service_id, {}))

    def callbacks_for_ancestry_of(self, cls: type[Any]) -> list[Callback]:
        """Return callbacks of every concrete ancestor, root-most first, then of ``cls``."""
        callbacks: list[Callback] = []
        for ancestor in ancestors_of(cls):
            callbacks.extend(self.callbacks_for(ancestor).values())
        callbacks.extend(self.callbacks_for(cls).values())
        return callbacks

    @property
    def callbacks(self) -> dict[ServiceId, dict[str, Callback]]:
        return {service_id: dict(values) for service_id, values in self._callbacks.items()}

    # endregion Callbacks

    # region Resolvers
    def add_resolver(self, type_name: ServiceId, key: Any, target: Any) -> Self:
        """Select which bound id satisfies parameters of type ``type_name``.

        Args:
            type_name: Parameter type the rule applies to.
            key: A parameter name, ``"*"`` for every parameter, or a supertype
                (class or dotted path) of the consuming class.
            target: A service id, or a function called with
                ``(parameter_name, consuming_class)`` returning one.

        """
        self._ensure_unlocked()
        self._resolvers.setdefault(type_name, {})[key] = target
        return self

    def resolvers_for(self, type_name: ServiceId) -> dict[Any, Any]:
        return dict(self._resolvers.get(type_name, {}))

    def resolver_lookup(
        self,
        parameter_name: str,
        parameter_type: ServiceId,
        consuming_class: type[Any],
    ) -> ServiceId | None:
        """Return the id a resolver selects for a parameter, or ``None``.

        Entries are scanned in insertion order and the first match wins: a
        ``"*"`` function, a key equal to the parameter name, or a key naming
        a supertype of the consuming class.

        Args:
            parameter_name: Name of the constructor parameter.
            parameter_type: Declared type of the parameter.
            consuming_class: Class whose constructor is being resolved.

        """
        for key, value in self._resolvers.get(parameter_type, {}).items():
            if key == WILDCARD:
                if is_factory(value):
                    return self._checked_service_id(value(parameter_name, consuming_class), parameter_type)
                continue
            if key == parameter_name or self._is_supertype_key(key, consuming_class):
                if is_factory(value):
                    value = value(parameter_name, consuming_class)
                return self._checked_service_id(value, parameter_type)
        return None

    @property
    def resolvers(self) -> dict[ServiceId, dict[Any, Any]]:
        return {type_name: dict(values) for type_name, values in self._resolvers.items()}

    def _is_supertype_key(self, key: Any, consuming_class: type[Any]) -> bool:
        if not is_runtime_class(key) and not (isinstance(key, str) and "." in key):
            return False
        supertype = locate_type(key)
        return supertype is not None and is_runtime_class(consuming_class) and issubclass(
            consuming_class,
            supertype,
        )

    def _checked_service_id(self, service_id: Any, parameter_type: ServiceId) -> ServiceId | None:
        if service_id is None or is_type_name(service_id):
            return service_id
        msg = (
            f"Resolver for '{type_label(parameter_type)}' must return a service id, "
            f"got {type(service_id).__name__}."
        )
        raise GraphWireInvariantViolationError(msg)

    # endregion Resolvers

    # region Lifecycle
    def merge(self, other: Registry) -> Self:
        """Merge another registry into this one.

        Plain bindings from ``other`` replace same-id bindings. Parameter,
        callback and resolver bags are merged per id, ``other`` winning name
        collisions.
        """
        self._ensure_unlocked()
        self._values.update(other.bindings)
        self._merge_bags(self._callbacks, other.callbacks)
        self._merge_bags(self._parameters, other.parameters)
        self._merge_bags(self._resolvers, other.resolvers)
        return self

    def sort(self) -> Self:
        """Order every map by id for deterministic iteration and comparison."""
        self._values = _sorted_by_id(self._values)
        self._callbacks = _sorted_by_id(self._callbacks)
        self._parameters = _sorted_by_id(self._parameters)
        self._resolvers = _sorted_by_id(self._resolvers)
        return self

    def lock(self) -> Self:
        """Reject any further mutation."""
        self._locked = True
        return self

    def unlock(self) -> Self:
        self._locked = False
        return self

    @property
    def is_locked(self) -> bool:
        return self._locked

    def create_builder(self) -> Builder:
        from graphwire.builder import Builder  # noqa: PLC0415

        return Builder(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Registry):
            return NotImplemented
        return all(
            list(mine.items()) == list(theirs.items())
            for mine, theirs in (
                (self._values, other._values),
                (self._callbacks, other._callbacks),
                (self._parameters, other._parameters),
                (self._resolvers, other._resolvers),
            )
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Registry(bindings={len(self._values)}, locked={self._locked})"

    def _merge_bags(self, mine: dict[Any, dict[Any, Any]], theirs: dict[Any, dict[Any, Any]]) -> None:
        for service_id, values in theirs.items():
            mine[service_id] = {**mine.get(service_id, {}), **values}

    def _ensure_unlocked(self) -> None:
        if self._locked:
            msg = "Registry is locked and cannot be modified."
            raise GraphWireInvariantViolationError(msg)

    # endregion Lifecycle


def _sorted_by_id(values: dict[Any, Any]) -> dict[Any, Any]:
    return dict(sorted(values.items(), key=lambda item: type_label(item[0])))


__all__ = [
    "WILDCARD",
    "Callback",
    "Factory",
    "Registry",
    "ServiceId",
    "is_factory",
    "is_type_name",
]
