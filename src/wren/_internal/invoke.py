"""Invoke helpers: call sync or async callables uniformly.

Wren handlers, error handlers, lifecycle hooks, and custom result
strategies can be ``def`` or ``async def``. Any code that calls a
user-provided callable goes through this helper so the sync/async
check lives in exactly one place.

Usage::

    from wren._internal.invoke import invoke

    result = await invoke(handler, *args, **kwargs)
"""

import inspect
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable.

    Works with both sync and async callables::

        # sync: returns immediately, no await needed
        def show(id: int):
            return f"user {id}"

        # async: returns coroutine, awaited automatically
        async def show(id: int):
            user = await repo.get(id)
            return user.name
    """
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
