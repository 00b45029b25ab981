"""Error rendering for wren requests.

Maps ``HTTPError`` exceptions and unexpected failures to ``Response``
sinks, using registered error handlers or plain-text defaults.
"""

import inspect
import logging
import traceback
from collections.abc import Callable
from http import HTTPStatus
from typing import Any

from wren._internal.invoke import invoke
from wren.context import ActionContext
from wren.di.container import Container
from wren.dispatch.results import to_result
from wren.dispatch.translate import describe_position
from wren.errors import HTTPError, InternalError
from wren.http.request import Request
from wren.http.response import Response

logger = logging.getLogger("wren.server")

_TEXT = "text/plain; charset=utf-8"


def status_text(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return f"Error {status}"


async def render_value(value: Any, request: Request) -> Response:
    """Render an error handler's return value onto a fresh sink."""
    if isinstance(value, Response):
        return value
    response = Response()
    ctx = ActionContext(request=request, response=response, container=Container())
    await invoke(to_result(value).execute, ctx)
    return response


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: BaseException,
) -> Response:
    """Invoke a user-registered error handler with introspected arguments.

    Error handlers may accept zero, one (request), or two (request, exc) args.
    Supports both sync and async error handlers.
    """
    params = list(inspect.signature(handler).parameters.values())

    if len(params) >= 2:
        value = await invoke(handler, request, exc)
    elif len(params) == 1:
        value = await invoke(handler, request)
    else:
        value = await invoke(handler)

    return await render_value(value, request)


def _find_handler(
    exc: HTTPError,
    error_handlers: dict[int | type, Callable[..., Any]],
) -> Callable[..., Any] | None:
    # Exact exception type first, then the original failure, then the status code
    handler = error_handlers.get(type(exc))
    if handler is None:
        cause = exc.cause if isinstance(exc, InternalError) else exc.__cause__
        if cause is not None:
            handler = error_handlers.get(type(cause))
    return handler or error_handlers.get(exc.status)


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    debug: bool,
) -> Response:
    """Map an HTTPError to a Response using registered error handlers."""
    if exc.status >= 500:
        return await handle_internal_error(exc, request, error_handlers, debug)

    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)

    handler = _find_handler(exc, error_handlers)
    if handler is not None:
        response = await call_error_handler(handler, request, exc)
        # Keep the error status unless the handler chose its own
        if response.status == 200:
            response.status = exc.status
        for name, value in exc.headers:
            if response.get_header(name) is None:
                response.add_header(name, value)
        return response

    detail = exc.detail or status_text(exc.status)
    if debug and exc.detail:
        detail = f"{exc.status}: {exc.detail}"

    response = Response(body=detail, status=exc.status, content_type=_TEXT)
    for name, value in exc.headers:
        response.add_header(name, value)
    return response


async def handle_internal_error(
    exc: BaseException,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    debug: bool,
) -> Response:
    """Handle faults as 500 errors.

    The cause and position go to the log. Only debug responses show them.
    """
    error = exc if isinstance(exc, HTTPError) else InternalError(cause=exc)
    cause = error.cause if isinstance(error, InternalError) else None
    position = error.position if isinstance(error, InternalError) else None

    logger.error(
        "%d %s %s at %s: %s",
        error.status,
        request.method,
        request.path,
        describe_position(position),
        error.detail,
        exc_info=cause if cause is not None else exc,
    )

    handler = _find_handler(error, error_handlers)
    if handler is not None:
        response = await call_error_handler(handler, request, cause or exc)
        if response.status == 200:
            response.status = error.status
        return response

    if debug:
        return Response(
            body=render_debug_text(error, request),
            status=error.status,
            content_type=_TEXT,
        )
    return Response(body=status_text(error.status), status=error.status, content_type=_TEXT)


def render_debug_text(error: HTTPError, request: Request) -> str:
    """Plain-text debug body: detail, position and the cause's traceback."""
    lines = [f"{error.status} {status_text(error.status)}", f"{request.method} {request.path}", ""]
    if error.detail:
        lines.append(error.detail)
    if isinstance(error, InternalError):
        lines.append(f"at {describe_position(error.position)}")
        if error.cause is not None:
            lines.append("")
            lines.extend(
                line.rstrip("\n") for line in traceback.format_exception(error.cause)
            )
    return "\n".join(lines)
