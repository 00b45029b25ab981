"""Wren application class.

Mutable during setup (routes, controllers, bindings, middleware, error
handlers). Frozen on the first ASGI call: the route table is compiled,
the dependency graph is validated, and both are read-only from then on.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from wren._internal.asgi import Receive, Scope, Send
from wren._internal.invoke import invoke
from wren._internal.types import ErrorHandler, Handler
from wren.config import AppConfig
from wren.di.container import Container
from wren.dispatch.pipeline import REQUEST_SCOPED, Dispatcher
from wren.middleware.protocol import Middleware
from wren.routing.declare import controller_rules, function_rule
from wren.routing.route import ControllerTarget, RouteRule, TargetScope
from wren.routing.router import Router
from wren.server.handler import handle_request

logger = logging.getLogger("wren.app")


@dataclass(slots=True)
class _PendingRoute:
    """A function route waiting to be compiled."""

    path: str
    handler: Handler
    methods: list[str] | None
    name: str | None


@dataclass(slots=True)
class _PendingController:
    """A controller waiting to be compiled."""

    controller: type | object
    prefix: str
    scope: TargetScope | None


class App:
    """The wren application.

    Mutable during setup (route registration, bindings, middleware).
    Frozen at runtime when ``__call__()`` is first invoked.

    Usage::

        app = App(AppConfig(debug=True))
        app.bind(UserRepository, SqlUserRepository, singleton=True)

        @app.route("/users/{id:int}")
        def show(id: int, repo: UserRepository):
            return repo.get(id).name

        app.controller(AdminController, prefix="/admin")

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check to ensure exactly
        one thread compiles the app.
    """

    __slots__ = (
        "_container",
        "_dispatcher",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_middleware",
        "_middleware_list",
        "_pending",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(self, config: AppConfig | None = None, *, container: Container | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._container: Container = container or Container()
        self._pending: list[_PendingRoute | _PendingController] = []
        self._middleware_list: list[Middleware] = []
        self._error_handlers: dict[int | type, ErrorHandler] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state, set during _freeze()
        self._dispatcher: Dispatcher | None = None
        self._middleware: tuple[Callable[..., Any], ...] = ()

    # -- Route registration --

    def route(
        self,
        path: str,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
    ) -> Callable[[Handler], Handler]:
        """Register an action function via decorator.

        Args:
            path: URL path pattern. Use ``{param}`` or ``{param:int}``
                for placeholders.
            methods: HTTP methods. Defaults to ``["GET"]``.
            name: Optional route name.
        """

        def decorator(func: Handler) -> Handler:
            self._check_not_frozen()
            self._pending.append(_PendingRoute(path, func, methods, name))
            return func

        return decorator

    def controller(
        self,
        controller: Any = None,
        *,
        prefix: str = "",
        scope: Literal["request", "singleton"] | None = None,
    ) -> Any:
        """Register a controller class (or a pre-built instance).

        Every method decorated with ``@action`` becomes a route under
        *prefix*. Classes are resolved through the container per request,
        or once per app when *scope* (default
        ``AppConfig.controller_scope``) is ``"singleton"``. Instances are
        always shared.

        Works as a plain call or as a class decorator::

            app.controller(UserController, prefix="/users")

            @app.controller(prefix="/admin", scope="singleton")
            class AdminController: ...
        """

        def register(target: Any) -> Any:
            self._check_not_frozen()
            self._pending.append(_PendingController(target, prefix, scope))
            return target

        if controller is None:
            return register
        return register(controller)

    # -- Dependency bindings --

    @property
    def container(self) -> Container:
        """The application container. Bind during setup only."""
        return self._container

    def bind(
        self,
        annotation: Any,
        impl: type | None = None,
        *,
        name: str | None = None,
        singleton: bool = False,
    ) -> None:
        """Bind *annotation* to a class built by the container."""
        self._check_not_frozen()
        self._container.bind_class(annotation, impl, name=name, singleton=singleton)

    def provide(
        self,
        annotation: Any,
        factory: Callable[..., Any],
        *,
        name: str | None = None,
        singleton: bool = False,
    ) -> None:
        """Register a provider factory for dependency injection.

        The factory's own parameters are injected, so a provider can ask
        for the current ``Request`` or any other binding::

            app.provide(DocumentStore, get_store, singleton=True)

            # Any handler with ``store: DocumentStore`` gets it injected:
            def show(store: DocumentStore, id: int): ...
        """
        self._check_not_frozen()
        self._container.bind_factory(annotation, factory, name=name, singleton=singleton)

    def instance(self, annotation: Any, value: Any, *, name: str | None = None) -> None:
        """Bind a pre-built value."""
        self._check_not_frozen()
        self._container.bind_value(annotation, value, name=name)

    # -- Error handlers --

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler via decorator."""

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Middleware --

    def add_middleware(self, middleware: Middleware) -> None:
        """Add a middleware to the pipeline."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        before the server begins accepting HTTP requests.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator.

        Hooks run in registration order during ASGI lifespan shutdown.
        """
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    async def startup(self) -> None:
        """Freeze the app and run the startup hooks in registration order."""
        self._ensure_frozen()
        for hook in self._startup_hooks:
            await invoke(hook)

    async def shutdown(self) -> None:
        """Run the shutdown hooks in registration order."""
        for hook in self._shutdown_hooks:
            await invoke(hook)

    # -- Introspection --

    @property
    def routes(self) -> list[RouteRule]:
        """Compiled rules in precedence order. Freezes the app."""
        self._ensure_frozen()
        assert self._dispatcher is not None
        return self._dispatcher.router.routes

    @property
    def dispatcher(self) -> Dispatcher:
        self._ensure_frozen()
        assert self._dispatcher is not None
        return self._dispatcher

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point.

        Handles lifespan scopes directly, then delegates HTTP scopes to
        the request handler pipeline.
        """
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()

        assert self._dispatcher is not None

        await handle_request(
            scope,
            receive,
            send,
            dispatcher=self._dispatcher,
            middleware=self._middleware,
            error_handlers=self._error_handlers,
            debug=self.config.debug,
            max_content_length=self.config.max_content_length,
        )

    async def _handle_lifespan(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before first HTTP request), then
        runs registered startup/shutdown hooks and signals completion
        back to the server.
        """
        try:
            self._ensure_frozen()
        except Exception as exc:
            # Wait for startup so the failure is reported on the right message
            await receive()
            await send({"type": "lifespan.startup.failed", "message": str(exc)})
            return

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as exc:
                    logger.exception("Startup hook failed")
                    await send(
                        {
                            "type": "lifespan.startup.failed",
                            "message": str(exc),
                        }
                    )
                    return

            elif msg_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, bindings, and middleware before calling __call__()."
            )
            raise RuntimeError(msg)

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        # 1. Compile route table, in declaration order
        router = Router()
        for pending in self._pending:
            order = len(router.routes)
            if isinstance(pending, _PendingRoute):
                router.add(
                    function_rule(
                        pending.path,
                        pending.handler,
                        methods=pending.methods,
                        name=pending.name,
                        order=order,
                    )
                )
                continue
            scope = pending.scope or self.config.controller_scope
            for rule in controller_rules(
                pending.controller, prefix=pending.prefix, scope=scope, order=order
            ):
                router.add(rule)
        router.compile()

        # 2. Singleton controllers live in the application container.
        #    Request-scoped types exist only in a request scope.
        container = self._container
        container.reserve(*REQUEST_SCOPED)
        controllers = _controller_classes(router.routes)
        for cls, scope in controllers.items():
            if scope == "singleton" and not container.is_bound(cls):
                container.bind_class(cls, singleton=True)

        # 3. Fail fast on wiring errors. Unresolvable controllers stay
        #    registered and answer 404 (Missing) at request time.
        if self.config.validate_container:
            roots: list[Any] = []
            for cls in controllers:
                if container.can_resolve(cls):
                    roots.append(cls)
                else:
                    logger.warning("Controller %s cannot be resolved", cls.__qualname__)
            for rule in router.routes:
                roots.extend(
                    spec.annotation
                    for spec in rule.inject_params
                    if not spec.has_default and spec.inject_name is None
                )
            container.validate(roots, deferred=REQUEST_SCOPED)

        self._dispatcher = Dispatcher(router, container, strict_params=self.config.strict_params)

        # 4. Capture middleware as immutable tuple
        self._middleware = tuple(self._middleware_list)

        self._frozen = True
        logger.info(
            "Compiled %d routes (%d controllers, %d middleware)",
            len(router.routes),
            len(controllers),
            len(self._middleware),
        )


def _controller_classes(rules: list[RouteRule]) -> dict[type, TargetScope]:
    found: dict[type, TargetScope] = {}
    for rule in rules:
        if isinstance(rule.target, ControllerTarget):
            found.setdefault(rule.target.cls, rule.target.scope)
    return found
