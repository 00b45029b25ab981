"""Prefix-stripping upstream filter.

Lets an app mounted under a sub-path (``/api``, ``/admin``) declare its
routes without the mount point. Requests outside the prefix fall
through unchanged, or are answered 404 when the prefix is required.
"""

from wren.errors import HTTPError
from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.protocol import Next


class StripPrefix:
    """Middleware that removes a leading path prefix before dispatch.

    Usage::

        app.add_middleware(StripPrefix("/api"))

        @app.route("/users")          # served at /api/users
        def users(): ...
    """

    __slots__ = ("_prefix", "_required")

    def __init__(self, prefix: str, *, required: bool = False) -> None:
        stripped = "/" + prefix.strip("/")
        if stripped == "/":
            msg = "StripPrefix needs a non-root prefix"
            raise ValueError(msg)
        self._prefix = stripped
        self._required = required

    @property
    def prefix(self) -> str:
        return self._prefix

    async def __call__(self, request: Request, next: Next) -> Response:
        path = request.path
        if path == self._prefix or path.startswith(self._prefix + "/"):
            return await next(request.with_path(path[len(self._prefix) :] or "/"))
        if self._required:
            raise HTTPError(status=404, detail=f"Path {path!r} is outside {self._prefix!r}")
        return await next(request)
