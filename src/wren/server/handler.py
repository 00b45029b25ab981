"""ASGI handler: translates ASGI scope/messages to wren types.

The only component that touches raw ASGI directly. Converts scope dicts
to typed Request objects, runs upstream middleware, dispatches, and
sends the Response back through ASGI send().
"""

from collections.abc import Callable
from contextvars import Token
from typing import Any

from wren._internal.asgi import Receive, Scope, Send
from wren.context import request_var
from wren.dispatch.pipeline import Dispatcher
from wren.errors import HTTPError
from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.protocol import Next
from wren.server.errors import handle_http_error, handle_internal_error
from wren.server.sender import send_response

_BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


async def merge_form(request: Request, *, max_content_length: int | None = None) -> Request:
    """Append form fields to the parameter bag of a form-encoded request.

    Query values keep their position ahead of form values. Raises
    ``HTTPError(413)`` when the declared body exceeds *max_content_length*.
    """
    if request.method in _BODYLESS_METHODS or not request.is_form:
        return request
    length = request.content_length
    if max_content_length is not None and length is not None and length > max_content_length:
        raise HTTPError(status=413, detail=f"Request body exceeds {max_content_length} bytes")
    try:
        form = await request.form()
    except ValueError as exc:
        raise HTTPError(status=400, detail=f"Malformed form body: {exc}") from exc
    return request.with_params(form.multi_items())


def build_chain(
    dispatch: Next,
    middleware: tuple[Callable[..., Any], ...],
) -> Next:
    """Wrap *dispatch* in *middleware*; the first registered runs outermost."""
    handler = dispatch
    for mw in reversed(middleware):
        outer = handler

        async def make_next(req: Request, _mw: Any = mw, _next: Next = outer) -> Response:
            return await _mw(req, _next)

        handler = make_next
    return handler


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    dispatcher: Dispatcher,
    middleware: tuple[Callable[..., Any], ...],
    error_handlers: dict[int | type, Callable[..., Any]],
    debug: bool,
    max_content_length: int | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)
    token: Token[Request] = request_var.set(request)

    try:

        async def dispatch(req: Request) -> Response:
            req = await merge_form(req, max_content_length=max_content_length)
            request_var.set(req)
            return await dispatcher.dispatch(req)

        response = await build_chain(dispatch, middleware)(request)

    except HTTPError as exc:
        response = await handle_http_error(exc, request_var.get(), error_handlers, debug)
    except Exception as exc:
        response = await handle_internal_error(exc, request_var.get(), error_handlers, debug)
    finally:
        current = request_var.get()
        request_var.reset(token)

    await send_response(response, send, head=current.method == "HEAD")
