"""Action and result executors.

``execute_action`` runs the resolved handler with its bound arguments
and normalizes the return value; ``execute_result`` renders that value
onto the response sink. Faults raised by user code are captured and
returned as ``Failure``; they never escape as exceptions. The only
exception either executor raises is ``ResultAlreadyRendered`` (and
``RuntimeError`` for an illegal state transition), both programming
errors.
"""

from __future__ import annotations

from typing import Any

from wren._internal.invoke import invoke
from wren.context import ActionContext, ActionState
from wren.dispatch.outcome import Failure, Outcome, Success
from wren.dispatch.results import Result, to_result
from wren.dispatch.translate import Position, snapshot_args, translate_fault
from wren.errors import ResultAlreadyRendered


def position_for(ctx: ActionContext) -> Position:
    """Describe the handler about to run in *ctx*."""
    args = snapshot_args(ctx.args)
    rule = ctx.rule
    if rule is None:
        name = getattr(ctx.handler, "__qualname__", repr(ctx.handler))
        return Position(target="", method=name, args=args)
    target = rule.target
    return Position(target=target.label, method=target.method_name, args=args)


async def execute_action(ctx: ActionContext) -> Outcome[Result]:
    """Invoke ``ctx.handler(**ctx.args)`` and normalize what it returns."""
    ctx.advance(ActionState.RUNNING)
    ctx.position = position_for(ctx)
    try:
        value: Any = await invoke(ctx.handler, **ctx.args)
    except Exception as exc:
        ctx.advance(ActionState.FAILED)
        return Failure(translate_fault(exc, ctx.position))

    result = to_result(value)
    ctx.result = result
    ctx.advance(ActionState.SUCCEEDED)
    return Success(result)


async def execute_result(ctx: ActionContext) -> Outcome[None]:
    """Render ``ctx.result`` onto ``ctx.response`` and commit it.

    Raises ``ResultAlreadyRendered`` when the context was rendered before.
    """
    if ctx.rendered:
        msg = "Result has already been rendered for this request"
        raise ResultAlreadyRendered(msg)
    result = ctx.result
    if result is None:
        msg = f"No result to render (action state: {ctx.state.name})"
        raise RuntimeError(msg)

    ctx.rendered = True
    try:
        await invoke(result.execute, ctx)
        ctx.response.commit()
    except ResultAlreadyRendered:
        raise
    except Exception as exc:
        return Failure(translate_fault(exc, ctx.position))
    return Success(None)
