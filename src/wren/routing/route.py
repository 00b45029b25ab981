"""Route rule, target, and match dataclasses."""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from wren._internal.types import Validator

EMPTY = inspect.Parameter.empty
"""Sentinel for "no default" and "no annotation"."""

type TargetScope = Literal["request", "singleton"]


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:  ``/users``  (is_param=False)
    Param:   ``/{id}``   (is_param=True, param_name="id")
    Typed:   ``/{id:int}`` (is_param=True, param_name="id", param_type="int")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


@dataclass(frozen=True, slots=True)
class ParamSpec:
    """One declared handler parameter.

    ``source`` is ``"value"`` for parameters bound from the request's
    values (path placeholders and the parameter bag) and ``"inject"``
    for parameters resolved from the request's dependency scope.
    ``inject_name`` selects a named binding.
    """

    name: str
    annotation: Any = str
    default: Any = EMPTY
    rules: tuple[Validator, ...] = ()
    source: Literal["value", "inject"] = "value"
    inject_name: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not EMPTY


@dataclass(frozen=True, slots=True)
class FunctionTarget:
    """A plain action function."""

    func: Callable[..., Any]

    @property
    def label(self) -> str:
        return getattr(self.func, "__module__", None) or "<function>"

    @property
    def method_name(self) -> str:
        return getattr(self.func, "__qualname__", repr(self.func))


@dataclass(frozen=True, slots=True)
class ControllerTarget:
    """A controller class resolved through the container, plus an action method.

    ``scope`` decides whether the controller is built per request or once
    per application.
    """

    cls: type
    method_name: str
    scope: TargetScope = "request"

    @property
    def label(self) -> str:
        return self.cls.__qualname__


@dataclass(frozen=True, slots=True)
class InstanceTarget:
    """A pre-built controller value shared by every request."""

    instance: Any
    method_name: str

    @property
    def label(self) -> str:
        return type(self.instance).__qualname__


type Target = FunctionTarget | ControllerTarget | InstanceTarget


@dataclass(frozen=True, slots=True)
class RouteRule:
    """A compiled route rule. Immutable once the router is compiled.

    ``order`` is the declaration index; lower wins when two rules match.
    ``catch_all`` names the handler's ``**kwargs`` parameter, if any.
    """

    path: str
    methods: frozenset[str]
    target: Target
    params: tuple[ParamSpec, ...] = ()
    catch_all: str | None = None
    name: str | None = None
    order: int = 0

    @property
    def value_params(self) -> tuple[ParamSpec, ...]:
        return tuple(p for p in self.params if p.source == "value")

    @property
    def inject_params(self) -> tuple[ParamSpec, ...]:
        return tuple(p for p in self.params if p.source == "inject")

    @property
    def handler_name(self) -> str:
        target = self.target
        if isinstance(target, FunctionTarget):
            return getattr(target.func, "__name__", repr(target.func))
        return f"{target.label}.{target.method_name}"


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match.

    ``values`` merges path placeholders with the parameter bag; path
    placeholders win on key collision.
    """

    rule: RouteRule
    path_params: dict[str, str]
    values: dict[str, list[str]] = field(default_factory=dict)
