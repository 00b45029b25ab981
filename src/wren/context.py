"""Per-request dispatch state.

Provides:
- ``ActionContext``: everything one dispatch needs, threaded through
  the executors and handed to ``Result.execute``.
- ``request_var``: The current ``Request`` for this task.

``request_var`` is set by the handler pipeline and reset after each
request. It is opt-in: if nothing sets it, ``get_request`` raises
``LookupError``.

Thread safety:
    ``ContextVar`` is task-local under asyncio. An ``ActionContext`` is
    created per request and never shared between tasks.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from wren.http.request import Request
from wren.http.response import Response

if TYPE_CHECKING:
    from wren.di.container import Container
    from wren.dispatch.results import Result
    from wren.dispatch.translate import Position
    from wren.routing.route import RouteRule

# -- Request context --

request_var: ContextVar[Request] = ContextVar("wren_request")
"""The current request. Set by the ASGI handler before dispatch."""


def get_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` if called outside a request context.
    """
    return request_var.get()


# -- Action context --


class ActionState(Enum):
    """Execution state of one action."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_TRANSITIONS: dict[ActionState, frozenset[ActionState]] = {
    ActionState.NOT_STARTED: frozenset({ActionState.RUNNING}),
    ActionState.RUNNING: frozenset({ActionState.SUCCEEDED, ActionState.FAILED}),
    ActionState.SUCCEEDED: frozenset(),
    ActionState.FAILED: frozenset(),
}


@dataclass(slots=True)
class ActionContext:
    """Mutable state for one dispatched request.

    Created by the pipeline once a rule has matched and bound into the
    request's container scope, so handlers and controllers can ask for
    it by type. ``args`` is only assigned after binding has fully
    succeeded.
    """

    request: Request
    response: Response
    container: Container
    rule: RouteRule | None = None
    handler: Any = None
    args: dict[str, Any] = field(default_factory=dict)
    result: Result | None = None
    position: Position | None = None
    state: ActionState = ActionState.NOT_STARTED
    rendered: bool = False

    def advance(self, state: ActionState) -> None:
        """Move to *state*. Raises ``RuntimeError`` on an illegal transition."""
        if state not in _TRANSITIONS[self.state]:
            msg = f"Illegal action state transition {self.state.name} -> {state.name}"
            raise RuntimeError(msg)
        self.state = state
