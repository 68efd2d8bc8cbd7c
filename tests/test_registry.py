from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import pytest

from graphwire.builder import Builder
from graphwire.exceptions import GraphWireInvariantViolationError
from graphwire.registry import WILDCARD, Registry, is_factory, is_type_name


class _Database(ABC):
    @abstractmethod
    def query(self) -> str: ...


class _MainDb(_Database):
    def query(self) -> str:
        return "main"


class _ReportsDb(_MainDb):
    def query(self) -> str:
        return "reports"


class _Readable(ABC):
    @abstractmethod
    def read(self) -> str: ...


class _Writable(ABC):
    @abstractmethod
    def write(self, data: str) -> None: ...


class _Stream(_Readable, _Writable):
    def read(self) -> str:
        return ""

    def write(self, data: str) -> None:
        pass


class _Plain:
    pass


class _AdminController(_Plain):
    pass


def _noop(instance: Any, builder: Builder) -> None:
    pass


class TestLocking:
    def test_locked_registry_rejects_mutation(self, registry: Registry) -> None:
        registry.lock()

        assert registry.is_locked
        with pytest.raises(GraphWireInvariantViolationError, match="locked"):
            registry.register(_Plain)
        with pytest.raises(GraphWireInvariantViolationError):
            registry.set_parameter(_Plain, "name", "value")
        with pytest.raises(GraphWireInvariantViolationError):
            registry.add_callback(_Plain, _noop)
        with pytest.raises(GraphWireInvariantViolationError):
            registry.add_resolver(_Database, "db", "main_db")
        with pytest.raises(GraphWireInvariantViolationError):
            registry.merge(Registry())

    def test_unlock_allows_mutation_again(self, registry: Registry) -> None:
        registry.lock().unlock()

        registry.register(_Plain)

        assert registry.has(_Plain)

    def test_reads_work_while_locked(self, registry: Registry) -> None:
        registry.register("plain", _Plain).lock()

        assert registry.get("plain") is _Plain
        assert registry.has("plain")


class TestBindings:
    @pytest.mark.parametrize("service_id", [object, "builtins.object"])
    def test_object_cannot_be_registered(self, registry: Registry, service_id: Any) -> None:
        with pytest.raises(GraphWireInvariantViolationError, match="object"):
            registry.register(service_id)

    def test_string_target_must_be_loadable(self, registry: Registry) -> None:
        with pytest.raises(GraphWireInvariantViolationError, match="not a loadable class"):
            registry.register("db", "graphwire.missing.Database")

    def test_register_without_target_binds_none(self, registry: Registry) -> None:
        registry.register(_Plain)

        assert registry.has(_Plain)
        assert registry.get(_Plain) is None
        assert registry.miss(_MainDb)

    def test_register_if_absent_keeps_existing_binding(self, registry: Registry) -> None:
        registry.register(_Database, _MainDb)
        registry.register_if_absent(_Database, _ReportsDb)

        assert registry.get(_Database) is _MainDb

    def test_register_if_absent_keeps_none_binding(self, registry: Registry) -> None:
        registry.register(_Plain)
        registry.register_if_absent(_Plain, _AdminController)

        assert registry.get(_Plain) is None

    def test_register_instance_binds_supertypes(self, registry: Registry) -> None:
        existing = _MainDb()
        registry.register(_Database, existing)
        reports = _ReportsDb()

        registry.register_instance(reports)

        assert registry.get(_ReportsDb) is reports
        assert registry.get(_MainDb) is reports
        assert registry.get(_Database) is existing

    def test_register_instance_replaces_concrete_binding(self, registry: Registry) -> None:
        first = _MainDb()
        second = _MainDb()

        registry.register_instance(first).register_instance(second)

        assert registry.get(_MainDb) is second
        assert registry.get(_Database) is first

    def test_bind_interface_detects_single_interface(self, registry: Registry) -> None:
        registry.bind_interface(_MainDb)

        assert registry.get(_Database) is _MainDb

    def test_bind_interface_stores_parameters(self, registry: Registry) -> None:
        registry.bind_interface(_MainDb, _Database, {"dsn": "sqlite://"})

        assert registry.parameters_for(_MainDb) == {"dsn": "sqlite://"}

    def test_bind_interface_rejects_ambiguous_class(self, registry: Registry) -> None:
        with pytest.raises(GraphWireInvariantViolationError, match="2 interfaces"):
            registry.bind_interface(_Stream)

    def test_bind_interface_rejects_concrete_interface(self, registry: Registry) -> None:
        with pytest.raises(GraphWireInvariantViolationError, match="is not an interface"):
            registry.bind_interface(_AdminController, _Plain)

    def test_bind_interface_rejects_non_class(self, registry: Registry) -> None:
        with pytest.raises(GraphWireInvariantViolationError, match="does not exist"):
            registry.bind_interface("not a class")  # type: ignore[arg-type]

    def test_bind_all_interfaces(self, registry: Registry) -> None:
        registry.register(_Writable, _Plain)

        registry.bind_all_interfaces(_Stream)

        assert registry.get(_Readable) is _Stream
        assert registry.get(_Writable) is _Plain

    def test_expand_calls_factory_with_parameters(self, registry: Registry) -> None:
        registry.register("answer", lambda reg, parameters: parameters["value"] * 2)
        registry.set_parameter("answer", "value", 21)

        assert registry.expand("answer") == 42
        assert is_factory(registry.get("answer"))

    def test_expand_returns_plain_targets(self, registry: Registry) -> None:
        instance = _Plain()
        registry.register("plain", instance).register(_Database, _MainDb)

        assert registry.expand("plain") is instance
        assert registry.expand(_Database) is _MainDb
        assert registry.expand("unbound") is None

    def test_factory_returning_none_is_rejected(self, registry: Registry) -> None:
        registry.register("broken", lambda reg, parameters: None)

        with pytest.raises(GraphWireInvariantViolationError, match="must return"):
            registry.expand("broken")

    def test_constructor_accepts_mapping(self) -> None:
        registry = Registry({_Database: _MainDb, "plain": _Plain})

        assert registry.bindings == {_Database: _MainDb, "plain": _Plain}

    def test_constructor_accepts_registry(self, registry: Registry) -> None:
        registry.register(_Database, _MainDb).set_parameter(_MainDb, "dsn", "sqlite://")

        assert Registry(registry) == registry


class TestTargetKinds:
    def test_is_factory(self) -> None:
        assert is_factory(_noop)
        assert is_factory(lambda: None)
        assert is_factory(_MainDb().query)
        assert not is_factory(_MainDb)
        assert not is_factory("module.Type")

    def test_is_type_name(self) -> None:
        assert is_type_name(_MainDb)
        assert is_type_name("module.Type")
        assert not is_type_name(_MainDb())


class TestParameters:
    def test_set_parameters_uses_positions_and_names(self, registry: Registry) -> None:
        registry.set_parameters(_MainDb, "sqlite://", 5, timeout=1.5)

        assert registry.parameters_for(_MainDb) == {0: "sqlite://", 1: 5, "timeout": 1.5}

    def test_set_parameters_merges_with_existing(self, registry: Registry) -> None:
        registry.set_parameter(_MainDb, "dsn", "sqlite://")
        registry.set_parameters_from(_MainDb, {"timeout": 2.0, "dsn": "postgres://"})

        assert registry.parameters_for(_MainDb) == {"dsn": "postgres://", "timeout": 2.0}

    def test_id_scoped_parameters_win(self, registry: Registry) -> None:
        registry.set_parameters(_MainDb, dsn="sqlite://", timeout=1.0)
        registry.set_parameter("reports_db", "dsn", "postgres://reports")

        assert registry.all_parameters_for(_MainDb, "reports_db") == {
            "dsn": "postgres://reports",
            "timeout": 1.0,
        }
        assert registry.all_parameters_for(_MainDb) == {"dsn": "sqlite://", "timeout": 1.0}

    def test_parameters_for_returns_copy(self, registry: Registry) -> None:
        registry.set_parameter(_MainDb, "dsn", "sqlite://")

        registry.parameters_for(_MainDb)["dsn"] = "changed"

        assert registry.parameters_for(_MainDb) == {"dsn": "sqlite://"}


class TestCallbacks:
    def test_unnamed_callbacks_are_numbered(self, registry: Registry) -> None:
        def first(instance: Any, builder: Builder) -> None:
            pass

        def second(instance: Any, builder: Builder) -> None:
            pass

        registry.add_callback(_Plain, first).add_callback(_Plain, second)

        assert registry.callbacks_for(_Plain) == {"0": first, "1": second}

    def test_named_callback_replaces_existing(self, registry: Registry) -> None:
        def replacement(instance: Any, builder: Builder) -> None:
            pass

        registry.add_callback(_Plain, _noop, "setup")
        registry.add_callback(_Plain, replacement, "setup")

        assert registry.callbacks_for(_Plain) == {"setup": replacement}

    def test_unnamed_callbacks_skip_names_in_use(self, registry: Registry) -> None:
        def named(instance: Any, builder: Builder) -> None:
            pass

        def first(instance: Any, builder: Builder) -> None:
            pass

        def second(instance: Any, builder: Builder) -> None:
            pass

        registry.add_callback(_Plain, named, "1")
        registry.add_callback(_Plain, first).add_callback(_Plain, second)

        assert registry.callbacks_for(_Plain) == {"1": named, "2": first, "3": second}

    def test_ancestry_callbacks_run_root_first(self, registry: Registry) -> None:
        def on_plain(instance: Any, builder: Builder) -> None:
            pass

        def on_admin(instance: Any, builder: Builder) -> None:
            pass

        registry.add_callback(_AdminController, on_admin)
        registry.add_callback(_Plain, on_plain)

        assert registry.callbacks_for_ancestry_of(_AdminController) == [on_plain, on_admin]
        assert registry.callbacks_for_ancestry_of(_Plain) == [on_plain]


class TestResolverLookup:
    def test_parameter_name_key(self, registry: Registry) -> None:
        registry.add_resolver(_Database, "reports", "reports_db")

        assert registry.resolver_lookup("reports", _Database, _Plain) == "reports_db"
        assert registry.resolver_lookup("users", _Database, _Plain) is None

    def test_wildcard_requires_function(self, registry: Registry) -> None:
        registry.add_resolver(_Database, WILDCARD, "ignored_db")

        assert registry.resolver_lookup("db", _Database, _Plain) is None

    def test_wildcard_function(self, registry: Registry) -> None:
        calls: list[tuple[str, type[Any]]] = []

        def choose(parameter_name: str, consuming_class: type[Any]) -> str:
            calls.append((parameter_name, consuming_class))
            return f"{parameter_name}_db"

        registry.add_resolver(_Database, WILDCARD, choose)

        assert registry.resolver_lookup("audit", _Database, _Plain) == "audit_db"
        assert calls == [("audit", _Plain)]

    def test_supertype_key(self, registry: Registry) -> None:
        registry.add_resolver(_Database, _Plain, "plain_db")

        assert registry.resolver_lookup("db", _Database, _AdminController) == "plain_db"
        assert registry.resolver_lookup("db", _Database, _Stream) is None

    def test_dotted_supertype_key(self, registry: Registry) -> None:
        registry.add_resolver(_Database, f"{__name__}._Plain", "plain_db")

        assert registry.resolver_lookup("db", _Database, _AdminController) == "plain_db"

    def test_first_matching_entry_wins(self, registry: Registry) -> None:
        registry.add_resolver(_Database, _Plain, "plain_db")
        registry.add_resolver(_Database, "db", "named_db")

        assert registry.resolver_lookup("db", _Database, _AdminController) == "plain_db"

    def test_function_value_for_named_key(self, registry: Registry) -> None:
        registry.add_resolver(_Database, "db", lambda name, consumer: _ReportsDb)

        assert registry.resolver_lookup("db", _Database, _Plain) is _ReportsDb

    def test_non_id_result_is_rejected(self, registry: Registry) -> None:
        registry.add_resolver(_Database, "db", lambda name, consumer: 5)

        with pytest.raises(GraphWireInvariantViolationError, match="must return a service id"):
            registry.resolver_lookup("db", _Database, _Plain)


class TestLifecycle:
    def test_merge_replaces_bindings_and_merges_bags(self, registry: Registry) -> None:
        registry.register(_Database, _MainDb)
        registry.set_parameters(_MainDb, dsn="sqlite://", timeout=1.0)
        registry.add_callback(_MainDb, _noop, "connect")
        other = Registry().register(_Database, _ReportsDb).set_parameter(_MainDb, "dsn", "postgres://")

        registry.merge(other)

        assert registry.get(_Database) is _ReportsDb
        assert registry.parameters_for(_MainDb) == {"dsn": "postgres://", "timeout": 1.0}
        assert registry.callbacks_for(_MainDb) == {"connect": _noop}

    def test_equality_is_order_sensitive_until_sorted(self) -> None:
        first = Registry().register("b.service", _Plain).register("a.service", _MainDb)
        second = Registry().register("a.service", _MainDb).register("b.service", _Plain)

        assert first != second
        assert first.sort() == second.sort()
        assert list(first.bindings) == ["a.service", "b.service"]

    def test_registries_are_unhashable(self, registry: Registry) -> None:
        with pytest.raises(TypeError):
            hash(registry)

    def test_create_builder(self, registry: Registry) -> None:
        builder = registry.create_builder()

        assert isinstance(builder, Builder)
        assert builder.registry is registry
