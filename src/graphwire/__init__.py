from graphwire.builder import Builder
from graphwire.descriptors import (
    AnyType,
    IntersectionType,
    NamedType,
    PrimitiveKind,
    UnionType,
    default_for_primitive,
    describe,
    implements_capability,
    value_matches,
)
from graphwire.exceptions import (
    GraphWireBuildFailureError,
    GraphWireCircularReferenceError,
    GraphWireError,
    GraphWireInvariantViolationError,
    GraphWireNotFoundError,
    GraphWireTypeMismatchError,
    GraphWireUnresolvableParameterError,
)
from graphwire.invoker import Invoker
from graphwire.markers import AllOf, Intersection, ServiceRef
from graphwire.parameters import ParameterResolver, ResolutionMode, SuppliedArguments
from graphwire.registry import Registry

__all__ = [
    "AllOf",
    "AnyType",
    "Builder",
    "GraphWireBuildFailureError",
    "GraphWireCircularReferenceError",
    "GraphWireError",
    "GraphWireInvariantViolationError",
    "GraphWireNotFoundError",
    "GraphWireTypeMismatchError",
    "GraphWireUnresolvableParameterError",
    "Intersection",
    "IntersectionType",
    "Invoker",
    "NamedType",
    "ParameterResolver",
    "PrimitiveKind",
    "Registry",
    "ResolutionMode",
    "ServiceRef",
    "SuppliedArguments",
    "UnionType",
    "default_for_primitive",
    "describe",
    "implements_capability",
    "value_matches",
]
