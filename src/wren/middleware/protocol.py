"""Middleware protocol and Next type alias.

A middleware is any callable matching::

    async def my_mw(request: Request, next: Next) -> Response: ...

No base class required. The framework checks the shape, not the lineage.

Middleware runs before dispatch begins. It may answer the request
itself, or hand a replaced copy of the request to ``next`` (a
different path, extra params, a session or auth handle). The
``Response`` that comes back is a mutable sink; middleware may add
headers to it.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from wren.http.request import Request
from wren.http.response import Response

# The next handler in the middleware chain
type Next = Callable[[Request], Awaitable[Response]]


class Middleware(Protocol):
    """Protocol for wren middleware.

    Accepts both functions and callable objects::

        # Function middleware
        async def timing(request: Request, next: Next) -> Response:
            start = time.monotonic()
            response = await next(request)
            response.set_header("X-Time", f"{time.monotonic() - start:.3f}")
            return response

        # Class middleware
        class Authenticate:
            async def __call__(self, request: Request, next: Next) -> Response:
                return await next(request.replace(auth=lookup(request)))
    """

    async def __call__(self, request: Request, next: Next) -> Response: ...
