from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class GraphWireError(Exception):
    """Represent a base class for all GraphWire-specific failures.

    Catch this type when you want to handle any GraphWire error path without
    matching each concrete exception class individually.
    """


class GraphWireNotFoundError(GraphWireError):
    """Signal that a service id has no binding and names no loadable type.

    Raised by ``Builder.get`` when ``Builder.has`` answers ``False`` for the
    requested id.

    Typical fixes include registering the id on the ``Registry``, passing the
    class itself instead of an arbitrary string, or enabling
    ``autoload_types`` on the builder.
    """

    def __init__(self, service_id: Any) -> None:
        self.service_id = service_id
        super().__init__(f"Service '{_label(service_id)}' is not registered and is not a loadable type.")


class GraphWireCircularReferenceError(GraphWireError):
    """Signal that a type was requested again while it was still being built.

    The ``chain`` attribute holds the types currently under construction, in
    the order construction started, so the cycle can be read left to right.

    Typical fixes include breaking the cycle with a factory binding, a
    callback that sets the back-reference after construction, or an
    ``Invoker`` dependency that builds the other side lazily.
    """

    def __init__(self, service_type: Any, chain: Sequence[Any]) -> None:
        self.service_type = service_type
        self.chain = tuple(chain)
        build_chain = ", ".join(_label(item) for item in self.chain)
        super().__init__(f"Circular reference to '{_label(service_type)}' in '{build_chain}'.")


class GraphWireUnresolvableParameterError(GraphWireError):
    """Signal that a required parameter could not be satisfied.

    Raised when a parameter has no supplied value, no resolver or registry
    match, no default, no primitive fallback, and does not accept ``None``.

    Typical fixes include ``Registry.set_parameter`` for literal values,
    ``Registry.add_resolver`` to point the parameter at a bound id, or adding a
    default to the parameter.
    """

    def __init__(
        self,
        parameter_name: str,
        *,
        service_id: Any = None,
        position: int | None = None,
        type_label: str = "Any",
    ) -> None:
        self.parameter_name = parameter_name
        self.service_id = service_id
        self.position = position
        self.type_label = type_label
        if service_id is None:
            msg = (
                f"Cannot resolve required parameter #{position} ('{parameter_name}') "
                f"of type {type_label}."
            )
        else:
            msg = (
                f"Unable to create object '{_label(service_id)}', missing parameter: "
                f"'{parameter_name}' of type {type_label}."
            )
        super().__init__(msg)


class GraphWireTypeMismatchError(GraphWireError):
    """Signal that an explicitly supplied value does not fit the declared type.

    Raised for supplied call arguments, registry parameter overrides, and each
    element of a variadic argument passed by name. No coercion is attempted:
    ``"1"`` does not satisfy ``int`` and ``True`` does not satisfy ``int``.
    """

    def __init__(self, parameter_name: str, value: Any, type_label: str) -> None:
        self.parameter_name = parameter_name
        self.value = value
        self.type_label = type_label
        super().__init__(
            f"Parameter '{parameter_name}' of type {type_label} doesn't support "
            f"{type(value).__name__}.",
        )


class GraphWireBuildFailureError(GraphWireError):
    """Signal that a constructor raised while an object was being built.

    The original exception is chained as ``__cause__``; its class name and
    message are also kept on ``error_kind`` and ``error_message``.
    """

    def __init__(self, service_id: Any, error_kind: str, error_message: str) -> None:
        self.service_id = service_id
        self.error_kind = error_kind
        self.error_message = error_message
        super().__init__(
            f"Unable to create object '{_label(service_id)}', threw exception: "
            f"'{error_kind}' with message '{error_message}'.",
        )


class GraphWireInvariantViolationError(GraphWireError):
    """Signal misuse of the registry or resolver contracts.

    Raised for mutations on a locked ``Registry``, registering ``object`` as an
    id, ambiguous ``bind_interface`` calls, invalid binding targets or factory
    results, and a variadic argument passed by name that is not a sequence.
    """


def _label(value: Any) -> str:
    if isinstance(value, type):
        return f"{value.__module__}.{value.__qualname__}"
    return str(value)
