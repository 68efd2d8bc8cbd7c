from __future__ import annotations

import pytest

from graphwire.builder import Builder
from graphwire.invoker import Invoker
from graphwire.registry import Registry


@pytest.fixture()
def graphwire_registry() -> Registry:
    """Provide the registry the plugin fixtures build from.

    Override this fixture in your test suite to return the application's
    registry. The default is an empty registry, so only unbound concrete
    classes can be built.

    Returns:
        A new ``Registry`` instance.

    """
    return Registry()


@pytest.fixture()
def graphwire_builder(graphwire_registry: Registry) -> Builder:
    """Provide a per-test builder over ``graphwire_registry``.

    The fixture is function-scoped, so cached instances never leak between
    tests even when the registry fixture is session-scoped.

    Args:
        graphwire_registry: Registry fixture to build from.

    """
    return Builder(graphwire_registry)


@pytest.fixture()
def graphwire_invoker(graphwire_builder: Builder) -> Invoker:
    """Provide an invoker attached to ``graphwire_builder``.

    Args:
        graphwire_builder: Builder consulted for missing dependencies.

    """
    return Invoker(graphwire_builder)
