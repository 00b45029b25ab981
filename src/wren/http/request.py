"""Immutable HTTP request.

Frozen metadata with async body access. Upstream middleware never
mutates a request in place: it hands a replaced copy to ``next()``
before dispatch begins.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from wren._internal.asgi import Receive
from wren.http.auth import AnonymousAuth, Auth
from wren.http.cookies import parse_cookies
from wren.http.headers import Headers
from wren.http.params import ParamBag
from wren.http.session import Session

async def _empty_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    ``path`` is the normalized path the router sees. ``params`` is the
    ordered multi-valued parameter bag: the query string, plus form
    fields once the server layer has merged them in for non-GET
    requests. ``path_params`` is filled in after a route matched.

    ``session`` and ``auth`` are handles attached by upstream middleware;
    both default to empty/anonymous handles.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    params: ParamBag = field(default_factory=ParamBag)
    path_params: Mapping[str, str] = field(default_factory=dict)
    http_version: str = "1.1"
    server: tuple[str, int] | None = None
    client: tuple[str, int] | None = None
    cookies: Mapping[str, str] = field(default_factory=dict)
    session: Session = field(default_factory=Session)
    auth: Auth = field(default_factory=AnonymousAuth)
    query_string: bytes = b""

    # Private: ASGI receive callable for body streaming
    _receive: Receive = _empty_receive

    # Private: mutable cache for body and parsed form data
    # (dict contents are mutable even though the field reference is frozen)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        """The Content-Length header as int."""
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def url(self) -> str:
        """Path plus query string."""
        if self.query_string:
            return f"{self.path}?{self.query_string.decode('latin-1')}"
        return self.path

    @property
    def is_form(self) -> bool:
        """True if the body is URL-encoded or multipart form data."""
        ct = (self.content_type or "").lower()
        return ct.startswith(("application/x-www-form-urlencoded", "multipart/form-data"))

    # -- Copies --

    def replace(self, **changes: Any) -> Request:
        """Return a copy with *changes* applied. The body cache is shared."""
        return replace(self, **changes)

    def with_path(self, path: str) -> Request:
        """Return a copy routed at a different path."""
        return replace(self, path=path)

    def with_params(self, pairs: Iterable[tuple[str, str]]) -> Request:
        """Return a copy whose parameter bag has *pairs* appended."""
        return replace(self, params=self.params.merged(pairs))

    def with_path_params(self, path_params: Mapping[str, str]) -> Request:
        """Return a copy carrying the placeholders extracted by the router."""
        return replace(self, path_params=dict(path_params))

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body.

        Result is cached: the ASGI receive is consumed once, then
        the same bytes are returned on subsequent calls.
        """
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        """Parse the body as JSON."""
        import json as json_module

        raw = await self.body()
        return json_module.loads(raw)

    async def text(self) -> str:
        """Read the body as text (UTF-8)."""
        raw = await self.body()
        return raw.decode("utf-8")

    async def form(self) -> ParamBag:
        """Parse the body as form fields (URL-encoded or multipart).

        Result is cached. Multipart parsing requires ``python-multipart``
        (``pip install wren[forms]``).

        Raises:
            ValueError: If Content-Type is not a form encoding.
            ConfigurationError: If multipart is needed but
                ``python-multipart`` is not installed.
        """
        if "_form" in self._cache:
            return self._cache["_form"]

        from wren.http.forms import parse_form

        ct = self.content_type or "application/x-www-form-urlencoded"
        raw = await self.body()
        result = parse_form(raw, ct)
        self._cache["_form"] = result
        return result

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any], receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        headers = Headers(tuple(scope.get("headers", ())))
        server = scope.get("server")
        client = scope.get("client")
        query_string = scope.get("query_string", b"")
        return cls(
            method=scope["method"].upper(),
            path=scope["path"],
            headers=headers,
            params=ParamBag.from_query_string(query_string),
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            cookies=parse_cookies(headers.get("cookie", "")),
            query_string=query_string,
            _receive=receive,
        )
