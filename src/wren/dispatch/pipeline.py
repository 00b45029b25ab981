"""The dispatch pipeline: match, scope, resolve, bind, execute, render.

``Dispatcher.dispatch`` turns one request into a committed ``Response``
or raises the ``HTTPError`` describing why it could not. Routing and
binding failures are translated before they leave; faults inside user
code arrive already translated from the executors. Each stage runs
only when the previous one succeeded.
"""

from __future__ import annotations

from typing import Any

from wren.context import ActionContext
from wren.di.container import Container, create_child_scope
from wren.dispatch.binder import bind_arguments
from wren.dispatch.executor import execute_action, execute_result
from wren.dispatch.outcome import Failure
from wren.dispatch.translate import Position, translate_dispatch_error, translate_fault
from wren.errors import DispatchError, HTTPError, InternalError
from wren.http.auth import Auth
from wren.http.request import Request
from wren.http.response import Response
from wren.http.session import Session
from wren.routing.route import ControllerTarget, FunctionTarget, RouteRule
from wren.routing.router import Router

# Types bound into every request scope. Never known when the app freezes.
REQUEST_SCOPED: tuple[type, ...] = (ActionContext, Request, Response, Session, Auth)


def _raise(error: HTTPError) -> None:
    if isinstance(error, InternalError) and error.cause is not None:
        raise error from error.cause
    raise error


class Dispatcher:
    """Runs requests against a compiled router and application container.

    Both are read-only here; each request works in its own child scope.
    """

    __slots__ = ("_container", "_router", "_strict")

    def __init__(self, router: Router, container: Container, *, strict_params: bool = True) -> None:
        self._router = router
        self._container = container
        self._strict = strict_params

    @property
    def router(self) -> Router:
        return self._router

    @property
    def container(self) -> Container:
        return self._container

    def resolvable(self, rule: RouteRule) -> bool:
        """True if the container can produce *rule*'s target."""
        target = rule.target
        if isinstance(target, ControllerTarget):
            return self._container.can_resolve(target.cls)
        return True

    async def dispatch(self, request: Request) -> Response:
        """Dispatch *request* and return its committed response.

        Raises ``HTTPError`` (4xx for routing and binding, 5xx for faults).
        """
        try:
            match = self._router.match(
                request.method, request.path, request.params, resolvable=self.resolvable
            )
        except DispatchError as exc:
            raise translate_dispatch_error(exc) from exc

        rule = match.rule
        request = request.with_path_params(match.path_params)
        response = Response()
        scope = create_child_scope(self._container)
        ctx = ActionContext(request=request, response=response, container=scope, rule=rule)
        scope.bind_value(ActionContext, ctx)
        scope.bind_value(Request, request)
        scope.bind_value(Response, response)
        scope.bind_value(Session, request.session)
        scope.bind_value(Auth, request.auth)

        try:
            handler = self._handler(rule, scope)
        except Exception as exc:
            position = Position(target=rule.target.label, method=rule.target.method_name)
            raise translate_fault(exc, position) from exc

        try:
            values = bind_arguments(
                rule.value_params,
                match.values,
                catch_all=rule.catch_all is not None,
                strict=self._strict,
                reserved=frozenset(p.name for p in rule.inject_params),
            )
        except DispatchError as exc:
            raise translate_dispatch_error(exc) from exc

        try:
            injected = self._inject(rule, scope)
        except Exception as exc:
            position = Position(target=rule.target.label, method=rule.target.method_name)
            raise translate_fault(exc, position) from exc

        ctx.handler = handler
        ctx.args = {**values, **injected}

        outcome = await execute_action(ctx)
        if isinstance(outcome, Failure):
            _raise(outcome.error)

        outcome = await execute_result(ctx)
        if isinstance(outcome, Failure):
            _raise(outcome.error)

        return response

    def _handler(self, rule: RouteRule, scope: Container) -> Any:
        target = rule.target
        if isinstance(target, FunctionTarget):
            return target.func
        if isinstance(target, ControllerTarget):
            return getattr(scope.resolve(target.cls), target.method_name)
        return getattr(target.instance, target.method_name)

    def _inject(self, rule: RouteRule, scope: Container) -> dict[str, Any]:
        injected: dict[str, Any] = {}
        for spec in rule.inject_params:
            if spec.has_default and not scope.can_resolve(spec.annotation, spec.inject_name):
                injected[spec.name] = spec.default
                continue
            injected[spec.name] = scope.resolve(spec.annotation, spec.inject_name)
        return injected
