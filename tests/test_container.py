"""Tests for wren.di.container: scoped dependency container."""

import inspect
import threading
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Annotated, Any, Protocol

import pytest

from wren.di.container import Container, Inject, create_child_scope, is_autowirable
from wren.errors import ConfigurationError, CyclicDependency, UnresolvedDependency

# -- Fixtures --


class Clock:
    def now(self) -> int:
        return 0


class Repository(ABC):
    @abstractmethod
    def get(self, key: str) -> str: ...


class MemoryRepository(Repository):
    def __init__(self, clock: Clock) -> None:
        self.clock = clock

    def get(self, key: str) -> str:
        return f"value:{key}"


class Notifier(Protocol):
    def send(self, message: str) -> None: ...


class Service:
    def __init__(self, repo: Repository, clock: Clock) -> None:
        self.repo = repo
        self.clock = clock


class Database:
    def __init__(self, url: str = "sqlite://") -> None:
        self.url = url


class Reports:
    replica: Annotated[Database, Inject("replica")]
    clock: Annotated[Clock, Inject()]

    def __init__(self, primary: Database) -> None:
        self.primary = primary


class ChickenA:
    def __init__(self, egg: "ChickenB") -> None:
        self.egg = egg


class ChickenB:
    def __init__(self, chicken: ChickenA) -> None:
        self.chicken = chicken


class Exploding:
    def __init__(self) -> None:
        msg = "boom"
        raise RuntimeError(msg)


class NeedsString:
    def __init__(self, name: str) -> None:
        self.name = name


class OptionalNotifier:
    def __init__(self, notifier: Notifier | None) -> None:
        self.notifier = notifier


class Untyped:
    def __init__(self, value) -> None:  # noqa: ANN001
        self.value = value


class Poller:
    def __init__(
        self,
        timeout: timedelta = timedelta(seconds=5),
        clock: Clock = Clock(),  # noqa: B008
    ) -> None:
        self.timeout = timeout
        self.clock = clock


class Session:
    def __init__(self) -> None:
        self.data: dict[str, str] = {}


class Cart:
    def __init__(self, session: Session) -> None:
        self.session = session


class TestBindings:
    def test_bind_value(self) -> None:
        c = Container()
        clock = Clock()
        c.bind_value(Clock, clock)
        assert c.resolve(Clock) is clock

    def test_bind_class_is_transient(self) -> None:
        c = Container()
        c.bind_class(Repository, MemoryRepository)
        first = c.resolve(Repository)
        second = c.resolve(Repository)
        assert isinstance(first, MemoryRepository)
        assert first is not second

    def test_bind_class_singleton(self) -> None:
        c = Container()
        c.bind_class(Repository, MemoryRepository, singleton=True)
        assert c.resolve(Repository) is c.resolve(Repository)

    def test_bind_class_rejects_instances(self) -> None:
        with pytest.raises(TypeError):
            Container().bind_class(Repository, MemoryRepository(Clock()))  # type: ignore[arg-type]

    def test_bind_factory_injects_its_parameters(self) -> None:
        c = Container()
        clock = Clock()
        c.bind_value(Clock, clock)

        def make_repo(clock: Clock) -> Repository:
            return MemoryRepository(clock)

        c.bind_factory(Repository, make_repo)
        assert c.resolve(Repository).clock is clock

    def test_named_bindings_are_separate(self) -> None:
        c = Container()
        primary = Database("primary")
        replica = Database("replica")
        c.bind_value(Database, primary)
        c.bind_value(Database, replica, name="replica")
        assert c.resolve(Database) is primary
        assert c.resolve(Database, "replica") is replica

    def test_is_bound(self) -> None:
        c = Container()
        c.bind_value(Clock, Clock())
        assert c.is_bound(Clock)
        assert not c.is_bound(Clock, "other")


class TestAutowiring:
    def test_concrete_class_is_built(self) -> None:
        c = Container()
        c.bind_class(Repository, MemoryRepository)
        service = c.resolve(Service)
        assert isinstance(service.repo, MemoryRepository)
        assert isinstance(service.clock, Clock)

    def test_autowired_classes_are_transient(self) -> None:
        c = Container()
        assert c.resolve(Clock) is not c.resolve(Clock)

    def test_defaults_are_kept_for_unresolvable_parameters(self) -> None:
        assert Container().resolve(Database).url == "sqlite://"

    def test_optional_dependency_becomes_none(self) -> None:
        assert Container().resolve(OptionalNotifier).notifier is None

    @pytest.mark.parametrize(
        "annotation", [Repository, Notifier, str, int, inspect.Parameter.empty, Any]
    )
    def test_not_autowirable(self, annotation: type) -> None:
        assert is_autowirable(annotation) is False

    def test_abstract_class_unresolved(self) -> None:
        with pytest.raises(UnresolvedDependency) as exc_info:
            Container().resolve(Repository)
        assert exc_info.value.key == (Repository, None)

    def test_protocol_unresolved(self) -> None:
        with pytest.raises(UnresolvedDependency):
            Container().resolve(Notifier)

    def test_missing_transitive_dependency_names_chain(self) -> None:
        with pytest.raises(UnresolvedDependency) as exc_info:
            Container().resolve(Service)
        assert "Service" in str(exc_info.value)
        assert "Repository" in str(exc_info.value)

    def test_builtin_parameter_unresolved(self) -> None:
        with pytest.raises(UnresolvedDependency):
            Container().resolve(NeedsString)

    def test_resolve_optional(self) -> None:
        c = Container()
        assert c.resolve_optional(Repository) is None
        assert isinstance(c.resolve_optional(Clock), Clock)

    def test_can_resolve(self) -> None:
        c = Container()
        assert c.can_resolve(Clock)
        assert not c.can_resolve(Repository)
        assert not c.can_resolve(Clock, "named")

    def test_unresolved_is_a_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            Container().resolve(Repository)

    def test_unannotated_parameter_unresolved(self) -> None:
        with pytest.raises(UnresolvedDependency) as exc_info:
            Container().resolve(Untyped)
        assert exc_info.value.key == (inspect.Parameter.empty, None)
        assert exc_info.value.chain == ((Untyped, None),)

    def test_unannotated_parameter_fails_validation(self) -> None:
        with pytest.raises(UnresolvedDependency):
            Container().validate([Untyped])

    def test_defaults_win_over_autowiring(self) -> None:
        poller = Container().resolve(Poller)
        assert poller.timeout == timedelta(seconds=5)
        assert poller.clock is Poller.__init__.__defaults__[1]

    def test_binding_wins_over_default(self) -> None:
        c = Container()
        clock = Clock()
        c.bind_value(Clock, clock)
        c.bind_value(timedelta, timedelta(seconds=1))
        poller = c.resolve(Poller)
        assert poller.clock is clock
        assert poller.timeout == timedelta(seconds=1)

    def test_defaulted_graph_validates(self) -> None:
        Container().validate([Poller])


class TestFieldInjection:
    def test_fills_annotated_attributes(self) -> None:
        c = Container()
        replica = Database("replica")
        c.bind_value(Database, replica, name="replica")
        reports = c.resolve(Reports)
        assert reports.primary.url == "sqlite://"
        assert reports.replica is replica
        assert isinstance(reports.clock, Clock)

    def test_missing_named_field_binding(self) -> None:
        with pytest.raises(UnresolvedDependency) as exc_info:
            Container().resolve(Reports)
        assert exc_info.value.key == (Database, "replica")

    def test_instantiate_ignores_binding(self) -> None:
        c = Container()
        c.bind_value(Clock, "not a clock")
        assert isinstance(c.instantiate(Clock), Clock)


class TestCycles:
    def test_cycle_detected(self) -> None:
        with pytest.raises(CyclicDependency) as exc_info:
            Container().resolve(ChickenA)
        chain = [key[0] for key in exc_info.value.chain]
        assert chain == [ChickenA, ChickenB, ChickenA]

    def test_cycle_detected_by_validate(self) -> None:
        with pytest.raises(CyclicDependency):
            Container().validate([ChickenA])


class TestErrorsPropagate:
    def test_constructor_exception_is_unchanged(self) -> None:
        with pytest.raises(RuntimeError, match="boom"):
            Container().resolve(Exploding)


class TestScopes:
    def test_child_sees_parent_bindings(self) -> None:
        parent = Container()
        clock = Clock()
        parent.bind_value(Clock, clock)
        assert parent.child().resolve(Clock) is clock

    def test_child_bindings_do_not_leak_to_parent(self) -> None:
        parent = Container()
        child = create_child_scope(parent)
        child.bind_value(Clock, Clock())
        assert child.is_bound(Clock)
        assert not parent.is_bound(Clock)
        assert child.parent is parent

    def test_child_overrides_parent(self) -> None:
        parent = Container()
        parent.bind_value(Database, Database("parent"))
        child = parent.child()
        child.bind_value(Database, Database("child"))
        assert child.resolve(Database).url == "child"
        assert parent.resolve(Database).url == "parent"

    def test_siblings_are_isolated(self) -> None:
        parent = Container()
        a = parent.child()
        b = parent.child()
        a.bind_value(Database, Database("a"))
        b.bind_value(Database, Database("b"))
        assert a.resolve(Database).url == "a"
        assert b.resolve(Database).url == "b"

    def test_transient_sees_request_scope(self) -> None:
        parent = Container()
        parent.bind_class(Repository, MemoryRepository)
        child = parent.child()
        clock = Clock()
        child.bind_value(Clock, clock)
        assert child.resolve(Repository).clock is clock

    def test_singleton_resolves_against_owner(self) -> None:
        parent = Container()
        parent.bind_class(Repository, MemoryRepository, singleton=True)
        parent_clock = Clock()
        parent.bind_value(Clock, parent_clock)
        child = parent.child()
        child.bind_value(Clock, Clock())
        assert child.resolve(Repository).clock is parent_clock

    def test_singleton_shared_across_children(self) -> None:
        parent = Container()
        parent.bind_class(Clock, singleton=True)
        assert parent.child().resolve(Clock) is parent.child().resolve(Clock)

    def test_singleton_created_once_under_contention(self) -> None:
        created: list[object] = []

        class Slow:
            def __init__(self) -> None:
                created.append(self)

        parent = Container()
        parent.bind_class(Slow, singleton=True)
        results: list[object] = []

        def worker() -> None:
            results.append(parent.child().resolve(Slow))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(created) == 1
        assert all(r is created[0] for r in results)


class TestValidate:
    def test_passes_for_resolvable_graph(self) -> None:
        c = Container()
        c.bind_class(Repository, MemoryRepository)
        c.validate([Service])

    def test_reports_first_unresolved(self) -> None:
        with pytest.raises(UnresolvedDependency):
            Container().validate([Service])

    def test_deferred_types_are_skipped(self) -> None:
        class NeedsRequestValue:
            def __init__(self, repo: Repository) -> None:
                self.repo = repo

        Container().validate([NeedsRequestValue], deferred=[Repository])

    def test_does_not_build_anything(self) -> None:
        Container().validate([Exploding])

    def test_deferred_types_are_checked_below_singletons(self) -> None:
        c = Container()
        c.reserve(Session)
        c.bind_class(Cart, singleton=True)
        with pytest.raises(UnresolvedDependency) as exc_info:
            c.validate([Cart], deferred=[Session])
        assert exc_info.value.key == (Session, None)

    def test_deferred_types_are_skipped_for_transients(self) -> None:
        c = Container()
        c.reserve(Session)
        c.bind_class(Cart)
        c.validate([Cart], deferred=[Session])


class TestReserved:
    def test_reserved_type_is_not_autowired(self) -> None:
        c = Container()
        c.reserve(Session)
        assert not c.can_resolve(Session)
        with pytest.raises(UnresolvedDependency):
            c.resolve(Cart)

    def test_child_scope_binding_provides_reserved_type(self) -> None:
        c = Container()
        c.reserve(Session)
        scope = c.child()
        session = Session()
        scope.bind_value(Session, session)
        assert scope.resolve(Cart).session is session

    def test_children_inherit_reservations(self) -> None:
        c = Container()
        c.reserve(Session)
        assert not c.child().can_resolve(Session)

    def test_singleton_cannot_see_request_scope(self) -> None:
        c = Container()
        c.reserve(Session)
        c.bind_class(Cart, singleton=True)
        scope = c.child()
        scope.bind_value(Session, Session())
        with pytest.raises(UnresolvedDependency):
            scope.resolve(Cart)
