"""Error translation.

Turns anything that goes wrong during dispatch into an ``HTTPError``.

- ``translate_dispatch_error`` maps routing and binding failures to 4xx.
- ``translate_fault`` handles everything else: deliberate ``HTTPError``
  passes through, dispatch errors are mapped, any other exception
  becomes a 500 ``InternalError`` that keeps the cause and the position
  (target, method and argument snapshot) where it was raised.

Both functions are total: they return an error, they never raise one.
"""

from __future__ import annotations

import reprlib
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from wren.errors import (
    DispatchError,
    HTTPError,
    InternalError,
    InvalidValue,
    Missing,
    MissingParam,
    NotFound,
    TooManyValues,
)

_DISPATCH_STATUS: dict[type[DispatchError], int] = {
    NotFound: 404,
    Missing: 404,
    TooManyValues: 404,
    InvalidValue: 400,
    MissingParam: 400,
}

_repr = reprlib.Repr()
_repr.maxstring = 80
_repr.maxother = 80
_repr.maxlist = 10
_repr.maxdict = 10


def _safe_repr(value: Any) -> str:
    try:
        return _repr.repr(value)
    except Exception:  # noqa: BLE001
        return f"<unrepresentable {type(value).__name__}>"


@dataclass(frozen=True, slots=True)
class Position:
    """Where a fault happened: target label, method name, argument snapshot.

    ``args`` holds ``(name, repr)`` pairs taken when the position was
    recorded, so later mutation of the arguments does not change it.
    """

    target: str
    method: str
    args: tuple[tuple[str, str], ...] = ()

    def describe(self) -> str:
        """One-line description, e.g. ``UserController.show(id=42)``."""
        rendered = ", ".join(f"{name}={value}" for name, value in self.args)
        if self.target and self.target != self.method:
            return f"{self.target}.{self.method}({rendered})"
        return f"{self.method}({rendered})"


def snapshot_args(args: Mapping[str, Any]) -> tuple[tuple[str, str], ...]:
    """Freeze *args* into ``(name, repr)`` pairs. Never raises."""
    return tuple((name, _safe_repr(value)) for name, value in args.items())


def describe_position(position: Position | None) -> str:
    if position is None:
        return "<unknown position>"
    try:
        return position.describe()
    except Exception:  # noqa: BLE001
        return f"{position.target}.{position.method}"


def dispatch_status(error: DispatchError) -> int:
    """Status for a dispatch error. Unknown subclasses map like their base."""
    for cls in type(error).__mro__:
        status = _DISPATCH_STATUS.get(cls)  # type: ignore[arg-type]
        if status is not None:
            return status
    return 404


def translate_dispatch_error(error: DispatchError) -> HTTPError:
    """Map a routing or binding failure to a 4xx ``HTTPError``."""
    return HTTPError(status=dispatch_status(error), detail=error.detail)


def translate_fault(exc: BaseException, position: Position | None = None) -> HTTPError:
    """Map any exception raised while dispatching to an ``HTTPError``."""
    if isinstance(exc, HTTPError):
        return exc
    if isinstance(exc, DispatchError):
        return translate_dispatch_error(exc)
    try:
        message = str(exc)
    except Exception:  # noqa: BLE001
        message = ""
    detail = f"{type(exc).__name__}: {message}" if message else type(exc).__name__
    return InternalError(detail, cause=exc, position=position)
