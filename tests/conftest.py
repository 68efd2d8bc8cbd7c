"""Shared pytest fixtures for graphwire tests."""

import pytest

from graphwire.builder import Builder
from graphwire.descriptors import SignatureInspector
from graphwire.invoker import Invoker
from graphwire.parameters import ParameterResolver
from graphwire.registry import Registry


@pytest.fixture()
def registry() -> Registry:
    """Empty, unlocked registry."""
    return Registry()


@pytest.fixture()
def builder(registry: Registry) -> Builder:
    """Builder over the ``registry`` fixture with autoloading enabled."""
    return Builder(registry)


@pytest.fixture()
def invoker(builder: Builder) -> Invoker:
    """Invoker attached to the ``builder`` fixture."""
    return Invoker(builder)


@pytest.fixture()
def inspector() -> SignatureInspector:
    return SignatureInspector()


@pytest.fixture()
def resolver() -> ParameterResolver:
    return ParameterResolver()
