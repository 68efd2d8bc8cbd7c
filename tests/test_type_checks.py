from __future__ import annotations

import datetime
import pathlib
from abc import ABC, abstractmethod
from typing import Protocol

import pytest

from graphwire._internal.autoloading import UnboundTypePolicy
from graphwire._internal.type_checks import (
    ancestors_of,
    capabilities_of,
    is_interface,
    locate_type,
    same_type,
    type_label,
)


class _Repository(ABC):
    @abstractmethod
    def load(self) -> str: ...


class _Closeable(Protocol):
    def close(self) -> None: ...


class _BaseRepository(_Repository):
    def load(self) -> str:
        return ""


class _CachedRepository(_BaseRepository):
    def close(self) -> None:
        pass


class _Outer:
    class Inner:
        pass


class TestInterfaces:
    def test_abstract_and_protocol_classes_are_interfaces(self) -> None:
        assert is_interface(_Repository)
        assert is_interface(_Closeable)
        assert not is_interface(_BaseRepository)
        assert not is_interface(ABC)
        assert not is_interface("not a class")

    def test_capabilities_and_ancestors(self) -> None:
        assert capabilities_of(_CachedRepository) == [_Repository]
        assert ancestors_of(_CachedRepository) == [_BaseRepository]
        assert ancestors_of(_BaseRepository) == []


class TestLocateType:
    def test_classes_are_returned_as_is(self) -> None:
        assert locate_type(_Outer) is _Outer

    def test_dotted_paths(self) -> None:
        assert locate_type("pathlib.Path") is pathlib.Path
        assert locate_type(f"{__name__}._Outer.Inner") is _Outer.Inner

    @pytest.mark.parametrize(
        "type_name",
        ["NoDots", "graphwire.missing.Type", "pathlib.sep", 5],
    )
    def test_unloadable_names(self, type_name: object) -> None:
        assert locate_type(type_name) is None

    def test_same_type_compares_located_classes(self) -> None:
        assert same_type("pathlib.Path", pathlib.Path)
        assert same_type("db", "db")
        assert not same_type("db", pathlib.Path)

    def test_type_label(self) -> None:
        assert type_label(int) == "int"
        assert type_label(_Outer.Inner) == f"{__name__}._Outer.Inner"
        assert type_label("db") == "db"


class TestUnboundTypePolicy:
    @pytest.mark.parametrize(
        "service_id",
        [str, _Repository, type, pathlib.Path, datetime.date, "db", "graphwire.missing.Type"],
    )
    def test_not_loadable(self, service_id: object) -> None:
        assert UnboundTypePolicy().locate_loadable(service_id) is None

    def test_concrete_classes_are_loadable(self) -> None:
        policy = UnboundTypePolicy()

        assert policy.locate_loadable(_CachedRepository) is _CachedRepository
        assert policy.locate_loadable(f"{__name__}._Outer") is _Outer
