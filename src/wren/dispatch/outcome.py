"""Deferred stage outcomes.

The executors never raise for faults inside user code. They return an
``Outcome``: ``Success`` carries the stage's value, ``Failure`` carries
the ``HTTPError`` the fault translated to. Callers branch with ``match``::

    match await execute_action(ctx):
        case Success(result):
            ...
        case Failure(error):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass

from wren.errors import HTTPError


@dataclass(frozen=True, slots=True)
class Success[T]:
    value: T


@dataclass(frozen=True, slots=True)
class Failure:
    error: HTTPError


type Outcome[T] = Success[T] | Failure
