"""HTTP response sink.

Unlike the request, the response is written to: results render
themselves onto it (status, headers, body, redirect target) and the
server layer sends it once it has been committed. A sink can be
committed exactly once; a second commit is a programming error.
"""

from __future__ import annotations

from wren.errors import ResultAlreadyRendered


class Response:
    """A mutable response sink owned by one request.

    Usage::

        response = Response()
        response.content_type = "text/plain; charset=utf-8"
        response.write("hello")
        response.commit()
    """

    __slots__ = (
        "_body",
        "_committed",
        "_headers",
        "content_type",
        "is_permanent",
        "redirect_location",
        "status",
    )

    def __init__(
        self,
        body: str | bytes = "",
        status: int = 200,
        content_type: str = "text/html; charset=utf-8",
        headers: tuple[tuple[str, str], ...] = (),
    ) -> None:
        self._body = bytearray(body.encode("utf-8") if isinstance(body, str) else body)
        self.status = status
        self.content_type = content_type
        self._headers: list[tuple[str, str]] = list(headers)
        self.redirect_location: str | None = None
        self.is_permanent = False
        self._committed = False

    def __repr__(self) -> str:
        return f"<Response {self.status} {self.content_type!r} {len(self._body)} bytes>"

    # -- Headers --

    @property
    def headers(self) -> tuple[tuple[str, str], ...]:
        """Extra headers, in the order they were added."""
        return tuple(self._headers)

    def add_header(self, name: str, value: str) -> None:
        """Append a header, keeping existing values under the same name."""
        self._headers.append((name, value))

    def set_header(self, name: str, value: str) -> None:
        """Set a header, replacing existing values under the same name."""
        lower = name.lower()
        self._headers = [(n, v) for n, v in self._headers if n.lower() != lower]
        self._headers.append((name, value))

    def get_header(self, name: str) -> str | None:
        """Return the first value for *name*, or ``None``."""
        lower = name.lower()
        for n, v in self._headers:
            if n.lower() == lower:
                return v
        return None

    # -- Body --

    def write(self, chunk: str | bytes) -> None:
        """Append *chunk* to the body. Strings are encoded as UTF-8."""
        self._body.extend(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)

    def clear(self) -> None:
        """Drop the body written so far."""
        self._body.clear()

    @property
    def body_bytes(self) -> bytes:
        """Body as bytes."""
        return bytes(self._body)

    @property
    def text(self) -> str:
        """Body as string."""
        return self._body.decode("utf-8")

    # -- Redirects --

    def redirect(self, location: str, *, permanent: bool = False) -> None:
        """Point the client at *location*.

        Permanent redirects use 301, temporary ones 302.
        """
        self.redirect_location = location
        self.is_permanent = permanent
        self.status = 301 if permanent else 302
        self.set_header("Location", location)

    # -- Lifecycle --

    @property
    def committed(self) -> bool:
        """True once the response has been finalized for sending."""
        return self._committed

    def commit(self) -> None:
        """Finalize the response. Raises ``ResultAlreadyRendered`` on a second call."""
        if self._committed:
            msg = "Response has already been committed"
            raise ResultAlreadyRendered(msg)
        self._committed = True
