"""Route declaration: the ``action`` decorator and signature compilation.

Functions are registered with ``@app.route(...)``. Controller classes
mark their action methods with ``@action(...)`` and are registered with
``app.controller(...)``::

    class UserController:
        def __init__(self, repo: UserRepository) -> None:
            self.repo = repo

        @action("/{id:int}")
        def show(self, id: int):
            return self.repo.get(id).name

        @action("/{id:int}", methods=["POST"])
        @action("/{id:int}/edit", methods=["POST"])
        def update(self, id: int, name: Annotated[str, required]):
            ...

    app.controller(UserController, prefix="/users")

Handler parameters are compiled once into ``ParamSpec`` tuples. A
parameter is bound from request values when its annotation is bindable
(``str``, ``int``, ``float``, ``bool``, enums, literals, optionals and
lists of those). Everything else (and anything marked ``Inject``) is
resolved from the request's dependency scope.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Annotated, Any, get_args, get_origin, get_type_hints

from wren.di.container import Inject
from wren.dispatch.binder import is_bindable, is_optional
from wren.errors import ConfigurationError
from wren.http.request import Request
from wren.routing.route import (
    EMPTY,
    ControllerTarget,
    FunctionTarget,
    InstanceTarget,
    ParamSpec,
    RouteRule,
    Target,
    TargetScope,
)

ACTIONS_ATTR = "__wren_actions__"


@dataclass(frozen=True, slots=True)
class ActionSpec:
    """One ``@action`` declaration on a controller method."""

    path: str = ""
    methods: tuple[str, ...] | None = None
    name: str | None = None


def action(
    path: str = "",
    *,
    methods: list[str] | None = None,
    name: str | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark a controller method as an action. May be stacked.

    Args:
        path: Path relative to the controller prefix. ``""`` maps the
            action to the prefix itself.
        methods: HTTP methods. Defaults to ``["GET"]``.
        name: Optional route name.
    """
    spec = ActionSpec(path, tuple(methods) if methods else None, name)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        declared: list[ActionSpec] = list(getattr(func, ACTIONS_ATTR, ()))
        # Decorators apply bottom-up; keep the topmost declaration first.
        declared.insert(0, spec)
        setattr(func, ACTIONS_ATTR, tuple(declared))
        return func

    return decorator


def normalize_methods(methods: Iterable[str] | None) -> frozenset[str]:
    return frozenset(m.upper() for m in (methods or ("GET",)))


def join_path(prefix: str, path: str) -> str:
    """Join a controller prefix and an action path into one route path."""
    parts = [p for p in (*prefix.split("/"), *path.split("/")) if p]
    return "/" + "/".join(parts)


# -- Signature compilation --


def _hints(func: Callable[..., Any]) -> dict[str, Any]:
    try:
        return get_type_hints(func, include_extras=True)
    except (NameError, TypeError):
        return {}


def compile_params(
    func: Callable[..., Any],
    *,
    skip_first: bool = False,
) -> tuple[tuple[ParamSpec, ...], str | None]:
    """Compile *func*'s signature into parameter specs.

    Returns ``(params, catch_all)`` where ``catch_all`` names a
    ``**kwargs`` parameter, if the handler declares one.

    Raises ``ConfigurationError`` for ``*args``: positional catch-alls
    cannot be bound by name.
    """
    hints = _hints(func)
    signature = inspect.signature(func)
    params: list[ParamSpec] = []
    catch_all: str | None = None

    for index, param in enumerate(signature.parameters.values()):
        if skip_first and index == 0:
            continue
        if param.kind is param.VAR_KEYWORD:
            catch_all = param.name
            continue
        if param.kind is param.VAR_POSITIONAL:
            msg = f"Handler {func.__qualname__} declares *{param.name}; use **kwargs instead"
            raise ConfigurationError(msg)
        params.append(_compile_param(param, hints.get(param.name, param.annotation)))

    return tuple(params), catch_all


def _compile_param(param: inspect.Parameter, annotation: Any) -> ParamSpec:
    rules: list[Callable[[str], str | None]] = []
    inject: Inject | None = None
    if get_origin(annotation) is Annotated:
        annotation, *metadata = get_args(annotation)
        for meta in metadata:
            if isinstance(meta, Inject):
                inject = meta
            elif callable(meta):
                rules.append(meta)

    if annotation is EMPTY and param.name == "request":
        annotation = Request

    if inject is None and is_bindable(annotation):
        return ParamSpec(
            name=param.name,
            annotation=annotation,
            default=param.default,
            rules=tuple(rules),
        )

    default = param.default
    if is_optional(annotation):
        annotation = next(a for a in get_args(annotation) if a is not type(None))
        if default is EMPTY:
            default = None
    return ParamSpec(
        name=param.name,
        annotation=annotation,
        default=default,
        source="inject",
        inject_name=inject.name if inject else None,
    )


# -- Rule building --


def function_rule(
    path: str,
    func: Callable[..., Any],
    *,
    methods: Iterable[str] | None = None,
    name: str | None = None,
    order: int = 0,
) -> RouteRule:
    """Build the rule for a plain action function."""
    params, catch_all = compile_params(func)
    return RouteRule(
        path=path,
        methods=normalize_methods(methods),
        target=FunctionTarget(func),
        params=params,
        catch_all=catch_all,
        name=name,
        order=order,
    )


def controller_actions(cls: type) -> list[tuple[str, ActionSpec]]:
    """List ``(method_name, spec)`` pairs in definition order.

    Base class actions come first. An override without ``@action`` on a
    subclass removes the action.
    """
    names: dict[str, None] = {}
    for klass in reversed(cls.__mro__):
        for attr_name in vars(klass):
            names.setdefault(attr_name, None)

    found: list[tuple[str, ActionSpec]] = []
    for attr_name in names:
        member = getattr(cls, attr_name, None)
        for spec in getattr(member, ACTIONS_ATTR, ()):
            found.append((attr_name, spec))
    return found


def _takes_self(cls: type, method_name: str) -> bool:
    raw = inspect.getattr_static(cls, method_name)
    return not isinstance(raw, (staticmethod, classmethod))


def controller_rules(
    controller: type | object,
    *,
    prefix: str = "",
    scope: TargetScope = "request",
    order: int = 0,
) -> list[RouteRule]:
    """Build one rule per ``@action`` declared on *controller*.

    *controller* is either a class, resolved through the container with
    the given *scope*, or a pre-built instance shared by every request.
    """
    cls = controller if isinstance(controller, type) else type(controller)
    actions = controller_actions(cls)
    if not actions:
        msg = f"Controller {cls.__qualname__} declares no @action methods"
        raise ConfigurationError(msg)

    rules: list[RouteRule] = []
    for offset, (method_name, spec) in enumerate(actions):
        target: Target
        if isinstance(controller, type):
            target = ControllerTarget(controller, method_name, scope)
            params, catch_all = compile_params(
                getattr(controller, method_name),
                skip_first=_takes_self(controller, method_name),
            )
        else:
            target = InstanceTarget(controller, method_name)
            params, catch_all = compile_params(getattr(controller, method_name))
        rules.append(
            RouteRule(
                path=join_path(prefix, spec.path),
                methods=normalize_methods(spec.methods),
                target=target,
                params=params,
                catch_all=catch_all,
                name=spec.name,
                order=order + offset,
            )
        )
    return rules
