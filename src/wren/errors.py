"""Wren exception hierarchy.

Shared across Router, Container, binder, executors, and middleware so
every module raises and catches the same types.

Three families:

- ``HTTPError``: already carries an HTTP status. Raised by the router
  (405), by handlers, or produced by the error translator.
- ``DispatchError``: routing/binding failures. The action did not run.
  Mapped to a status by ``wren.dispatch.translate``.
- ``ContainerError``: dependency wiring failures. Configuration errors;
  surfaced at freeze where possible, 500 at request time otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from wren.dispatch.translate import Position


class WrenError(Exception):
    """Base for all wren-specific errors."""


class ConfigurationError(WrenError):
    """Raised when app configuration is invalid.

    Typically caught during ``App._freeze()`` at startup.
    """


class ResultAlreadyRendered(WrenError):
    """A result was rendered twice for one request.

    A programming error: rendering happens at most once per action
    context and a response sink is committed at most once.
    """


# -- HTTP errors --


@dataclass(frozen=True, slots=True)
class HTTPError(WrenError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, middleware, or handlers. The ASGI handler
    catches these and dispatches to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: route exists but not for this HTTP method.

    Includes an ``Allow`` header listing the valid methods and embeds
    the allowed methods in the detail string for developer visibility.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )
        object.__setattr__(self, "allowed", allowed)


class InternalError(HTTPError):
    """500: an unexpected fault during execution or rendering.

    ``cause`` keeps the original exception and ``position`` describes the
    target, method, and argument snapshot. Both are for logs and debug
    pages; production responses never include them.
    """

    def __init__(
        self,
        detail: str = "Internal Server Error",
        *,
        cause: BaseException | None = None,
        position: Position | None = None,
    ) -> None:
        super().__init__(status=500, detail=detail)
        object.__setattr__(self, "cause", cause)
        object.__setattr__(self, "position", position)


# -- Dispatch errors --


class DispatchError(WrenError):
    """Base for routing and binding failures.

    A dispatch error always means the action did not execute.
    """

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFound(DispatchError):  # noqa: N818
    """No route rule matched the path.

    ``part`` is the path segment where matching gave up.
    """

    def __init__(self, detail: str = "Not Found", *, part: str | None = None) -> None:
        super().__init__(detail)
        self.part = part


class Missing(DispatchError):  # noqa: N818
    """A rule matched but its target cannot be resolved.

    Typically an abstract controller or protocol with no registered
    implementation.
    """


class TooManyValues(DispatchError):  # noqa: N818
    """More values were supplied than the handler declares parameters for."""

    def __init__(self, names: tuple[str, ...], detail: str = "") -> None:
        super().__init__(detail or f"Unexpected values for: {', '.join(names)}")
        self.names = names


class InvalidValue(DispatchError):  # noqa: N818
    """A supplied value could not be converted or failed a validation rule."""

    def __init__(self, name: str, value: Any, reason: str) -> None:
        super().__init__(f"Invalid value for {name!r}: {reason}")
        self.name = name
        self.value = value
        self.reason = reason


class MissingParam(DispatchError):  # noqa: N818
    """A required parameter was not supplied and has no default."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Missing required parameter {name!r}")
        self.name = name


# -- Container errors --


def _format_key(key: tuple[Any, str | None]) -> str:
    annotation, name = key
    label = getattr(annotation, "__qualname__", None) or repr(annotation)
    return f"{label}[{name!r}]" if name is not None else label


class ContainerError(ConfigurationError):
    """Base for dependency resolution failures."""


class UnresolvedDependency(ContainerError):
    """No binding exists for a required dependency and it cannot be autowired."""

    def __init__(
        self,
        key: tuple[Any, str | None],
        chain: tuple[tuple[Any, str | None], ...] = (),
    ) -> None:
        path = " -> ".join(_format_key(k) for k in (*chain, key))
        super().__init__(f"No binding for {_format_key(key)} (resolving {path})")
        self.key = key
        self.chain = chain


class CyclicDependency(ContainerError):
    """A dependency graph revisits a key it is already resolving."""

    def __init__(self, chain: tuple[tuple[Any, str | None], ...]) -> None:
        path = " -> ".join(_format_key(k) for k in chain)
        super().__init__(f"Cyclic dependency: {path}")
        self.chain = chain
