"""Canonical action results.

Every handler return value is normalized into a ``Result`` before it is
rendered. The built-in family is closed: ``EmptyResult``,
``ContentResult`` and ``RedirectResult``. Applications add their own
rendering strategies by subclassing ``Result`` and implementing
``execute``.

Usage::

    @app.route("/old")
    def old():
        return redirect("/new", permanent=True)

    @app.route("/ping")
    def ping():
        return "pong"          # -> ContentResult("pong")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from wren.context import ActionContext


class Result:
    """Base class for everything a handler can render.

    ``execute`` writes onto ``ctx.response``; it may be sync or async.
    """

    __slots__ = ()

    kind: ClassVar[str] = "custom"

    async def execute(self, ctx: ActionContext) -> None:
        msg = f"{type(self).__name__} does not implement execute()"
        raise NotImplementedError(msg)


@dataclass(frozen=True, slots=True)
class EmptyResult(Result):
    """No body. The response keeps its status and headers."""

    kind: ClassVar[str] = "empty"

    async def execute(self, ctx: ActionContext) -> None:
        ctx.response.clear()


@dataclass(frozen=True, slots=True)
class ContentResult(Result):
    """A text body written verbatim."""

    content: str
    content_type: str = "text/html; charset=utf-8"

    kind: ClassVar[str] = "content"

    async def execute(self, ctx: ActionContext) -> None:
        response = ctx.response
        response.content_type = self.content_type
        response.clear()
        response.write(self.content)


@dataclass(frozen=True, slots=True)
class RedirectResult(Result):
    """Send the client to ``location`` (301 when permanent, else 302)."""

    location: str
    permanent: bool = False

    kind: ClassVar[str] = "redirect"

    async def execute(self, ctx: ActionContext) -> None:
        ctx.response.redirect(self.location, permanent=self.permanent)


def redirect(location: str, permanent: bool = False) -> RedirectResult:
    """Build a redirect result.

    ``redirect("/homepage", False)`` is a temporary redirect;
    ``redirect("http://example.com/page", True)`` a permanent one.
    """
    if not location:
        msg = "Redirect location must not be empty"
        raise ValueError(msg)
    return RedirectResult(location, permanent)


def to_result(value: Any) -> Result:
    """Normalize a handler return value.

    A ``Result`` is returned unchanged, ``None`` becomes ``EmptyResult``
    and anything else becomes ``ContentResult(str(value))``.
    """
    match value:
        case Result():
            return value
        case None:
            return EmptyResult()
        case _:
            return ContentResult(str(value))
