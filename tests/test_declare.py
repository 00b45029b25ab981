"""Tests for wren.routing.declare: @action, signature compilation, rule building."""

from typing import Annotated

import pytest

from wren.di.container import Inject
from wren.errors import ConfigurationError
from wren.http.request import Request
from wren.http.session import Session
from wren.routing.declare import (
    action,
    compile_params,
    controller_actions,
    controller_rules,
    function_rule,
    join_path,
)
from wren.routing.route import ControllerTarget, FunctionTarget, InstanceTarget


class Repo:
    pass


def _slug(value: str) -> str | None:
    return None if value.isidentifier() else "not a slug"


class UserController:
    @action("/")
    def index(self) -> str:
        return "index"

    @action("/{id:int}")
    def show(self, id: int, repo: Repo) -> str:
        return f"user {id}"

    @action("/{id:int}", methods=["post"])
    @action("/{id:int}/edit", methods=["POST"], name="edit_user")
    def update(self, id: int, name: str) -> str:
        return name

    def helper(self) -> None:
        """Not an action."""

    @staticmethod
    @action("/ping")
    def ping() -> str:
        return "pong"


class AdminController(UserController):
    def index(self) -> str:
        return "overridden without @action"

    @action("/audit")
    def audit(self) -> str:
        return "audit"


class TestJoinPath:
    @pytest.mark.parametrize(
        ("prefix", "path", "expected"),
        [
            ("", "", "/"),
            ("/users", "", "/users"),
            ("/users", "/", "/users"),
            ("/users/", "/{id}", "/users/{id}"),
            ("users", "edit", "/users/edit"),
        ],
    )
    def test_join(self, prefix: str, path: str, expected: str) -> None:
        assert join_path(prefix, path) == expected


class TestCompileParams:
    def test_value_params(self) -> None:
        def handler(id: int, q: str = "x") -> None: ...

        params, catch_all = compile_params(handler)
        assert [(p.name, p.annotation, p.source) for p in params] == [
            ("id", int, "value"),
            ("q", str, "value"),
        ]
        assert params[1].default == "x"
        assert catch_all is None

    def test_unannotated_is_a_value(self) -> None:
        def handler(name): ...

        params, _ = compile_params(handler)
        assert params[0].source == "value"

    def test_request_by_name(self) -> None:
        def handler(request): ...

        params, _ = compile_params(handler)
        assert params[0].source == "inject"
        assert params[0].annotation is Request

    def test_non_bindable_types_are_injected(self) -> None:
        def handler(repo: Repo, session: Session): ...

        params, _ = compile_params(handler)
        assert [(p.annotation, p.source) for p in params] == [
            (Repo, "inject"),
            (Session, "inject"),
        ]

    def test_inject_marker_forces_injection(self) -> None:
        def handler(name: Annotated[str, Inject("site_name")]): ...

        params, _ = compile_params(handler)
        assert params[0].source == "inject"
        assert params[0].inject_name == "site_name"
        assert params[0].annotation is str

    def test_optional_injection_defaults_to_none(self) -> None:
        def handler(repo: Repo | None): ...

        params, _ = compile_params(handler)
        assert params[0].annotation is Repo
        assert params[0].default is None

    def test_annotated_rules(self) -> None:
        def handler(slug: Annotated[str, _slug]): ...

        params, _ = compile_params(handler)
        assert params[0].rules == (_slug,)
        assert params[0].source == "value"

    def test_catch_all(self) -> None:
        def handler(id: int, **extra: str): ...

        params, catch_all = compile_params(handler)
        assert [p.name for p in params] == ["id"]
        assert catch_all == "extra"

    def test_var_positional_rejected(self) -> None:
        def handler(*values: str): ...

        with pytest.raises(ConfigurationError):
            compile_params(handler)

    def test_skip_first(self) -> None:
        params, _ = compile_params(UserController.show, skip_first=True)
        assert [p.name for p in params] == ["id", "repo"]


class TestAction:
    def test_stacked_declarations_keep_order(self) -> None:
        specs = UserController.update.__wren_actions__  # type: ignore[attr-defined]
        assert [s.path for s in specs] == ["/{id:int}", "/{id:int}/edit"]
        assert specs[1].name == "edit_user"

    def test_controller_actions_in_definition_order(self) -> None:
        names = [name for name, _ in controller_actions(UserController)]
        assert names == ["index", "show", "update", "update", "ping"]

    def test_subclass_inherits_and_overrides(self) -> None:
        names = [name for name, _ in controller_actions(AdminController)]
        assert "index" not in names
        assert names[-1] == "audit"
        assert "show" in names


class TestRules:
    def test_function_rule(self) -> None:
        def show(id: int) -> str:
            return str(id)

        rule = function_rule("/items/{id:int}", show, methods=["get", "post"], order=3)
        assert isinstance(rule.target, FunctionTarget)
        assert rule.methods == frozenset({"GET", "POST"})
        assert rule.order == 3
        assert rule.handler_name == "show"

    def test_function_rule_defaults_to_get(self) -> None:
        rule = function_rule("/", lambda: "x")
        assert rule.methods == frozenset({"GET"})

    def test_controller_rules(self) -> None:
        rules = controller_rules(UserController, prefix="/users", scope="singleton", order=10)
        assert [(r.path, sorted(r.methods)) for r in rules] == [
            ("/users", ["GET"]),
            ("/users/{id:int}", ["GET"]),
            ("/users/{id:int}", ["POST"]),
            ("/users/{id:int}/edit", ["POST"]),
            ("/users/ping", ["GET"]),
        ]
        assert [r.order for r in rules] == [10, 11, 12, 13, 14]
        target = rules[1].target
        assert isinstance(target, ControllerTarget)
        assert target.scope == "singleton"
        assert rules[1].handler_name == "UserController.show"
        assert [p.name for p in rules[1].params] == ["id", "repo"]

    def test_static_action_keeps_its_parameters(self) -> None:
        rules = controller_rules(UserController)
        ping = next(r for r in rules if r.path == "/ping")
        assert ping.params == ()

    def test_instance_controller(self) -> None:
        controller = UserController()
        rules = controller_rules(controller, prefix="/u")
        assert isinstance(rules[0].target, InstanceTarget)
        assert rules[0].target.instance is controller
        assert [p.name for p in rules[1].params] == ["id", "repo"]

    def test_controller_without_actions(self) -> None:
        class Empty:
            pass

        with pytest.raises(ConfigurationError, match="no @action"):
            controller_rules(Empty)
