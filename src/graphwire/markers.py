from __future__ import annotations

from typing import Annotated, Any, NamedTuple, get_args, get_origin

_ANNOTATED_MARKER_MIN_ARGS = 2
_INTERSECTION_MIN_MEMBERS = 2


class ServiceRef(NamedTuple):
    """Reference another service id from a parameter override.

    A plain value stored with ``Registry.set_parameter`` is passed to the
    constructor as is. Wrap an id in ``ServiceRef`` to have the builder resolve
    that id instead and pass the result.

    Examples:
        .. code-block:: python

            registry.set_parameter(Repository, "db", ServiceRef("replica_db"))

    """

    service_id: Any


class AllOf(NamedTuple):
    """Metadata listing every type an intersection-typed parameter must satisfy."""

    types: tuple[Any, ...]


class Intersection:
    """Declare an intersection type for a parameter.

    Python has no runtime intersection annotation, so ``Intersection[A, B]``
    resolves to ``Annotated[A, AllOf((A, B))]``. Type checkers see the first
    member; the builder and matcher see all of them.

    Examples:
        .. code-block:: python

            class Copier:
                def __init__(self, stream: Intersection[Readable, Writable]) -> None:
                    self.stream = stream

    """

    def __class_getitem__(cls, item: Any) -> Any:
        members = item if isinstance(item, tuple) else (item,)
        if len(members) < _INTERSECTION_MIN_MEMBERS:
            msg = "Intersection[...] requires at least two member types."
            raise TypeError(msg)
        return build_annotated_key((members[0], AllOf(types=tuple(members))))


def intersection_members(annotation: Any) -> tuple[Any, ...] | None:
    """Return the ``AllOf`` members of an annotation or ``None`` when absent."""
    if get_origin(annotation) is not Annotated:
        return None
    annotation_args = get_args(annotation)
    if len(annotation_args) < _ANNOTATED_MARKER_MIN_ARGS:
        return None
    for item in annotation_args[1:]:
        if isinstance(item, AllOf):
            return item.types
    return None


def build_annotated_key(params: tuple[object, ...]) -> Any:
    """Return Annotated[...] with a pre-built params tuple (Py 3.10+ compatible)."""
    try:
        return Annotated.__class_getitem__(params)  # type: ignore[attr-defined]
    except AttributeError:
        return Annotated.__getitem__(params)  # type: ignore[attr-defined]


__all__ = [
    "AllOf",
    "Intersection",
    "ServiceRef",
    "build_annotated_key",
    "intersection_members",
]
