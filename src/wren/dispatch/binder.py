"""Parameter binding: raw request strings to declared handler types.

``bind_arguments`` walks a rule's value parameters in declaration order
and either returns a complete mapping of typed arguments or raises a
``DispatchError``. Nothing partial escapes: arguments accumulate in a
local dict that is only returned once every parameter has bound.

Coercions:

- ``str`` (and unannotated / ``Any``): the raw string
- ``int``: optional sign followed by decimal digits
- ``float``: decimal notation with optional fraction and exponent;
  ``nan``, ``inf``, and underscores are rejected
- ``bool``: ``true/false``, ``1/0``, ``yes/no``, ``on/off``
  (case-insensitive); every other word is invalid
- ``Enum`` subclasses: by member value, then by member name
- ``Literal[...]``: one of the listed values, compared as strings
- ``T | None``: ``T``, with an empty string binding ``None``
- ``list[T]``: every supplied value, each coerced to ``T``
"""

from __future__ import annotations

import enum
import re
import types
from collections.abc import Mapping, Sequence
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from wren.errors import InvalidValue, MissingParam, TooManyValues
from wren.routing.route import EMPTY, ParamSpec

TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
FALSE_WORDS = frozenset({"false", "0", "no", "off"})

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")

_SCALARS: tuple[Any, ...] = (str, int, float, bool, Any, EMPTY)


def _is_scalar(annotation: Any) -> bool:
    return any(annotation is scalar for scalar in _SCALARS)


def _is_union(annotation: Any) -> bool:
    return get_origin(annotation) in (Union, types.UnionType)


def _union_members(annotation: Any) -> tuple[Any, ...]:
    return tuple(arg for arg in get_args(annotation) if arg is not type(None))


def is_optional(annotation: Any) -> bool:
    """True for ``T | None`` / ``Optional[T]``."""
    return _is_union(annotation) and type(None) in get_args(annotation)


def is_list(annotation: Any) -> bool:
    """True for ``list[T]`` (and bare ``list``)."""
    return annotation is list or get_origin(annotation) is list


def is_bindable(annotation: Any) -> bool:
    """Return True if request strings can be coerced to *annotation*.

    Anything else on a handler signature is resolved from the
    dependency container instead.
    """
    if get_origin(annotation) is Annotated:
        return is_bindable(get_args(annotation)[0])
    if _is_scalar(annotation):
        return True
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return True
    if get_origin(annotation) is Literal:
        return True
    if is_list(annotation):
        args = get_args(annotation)
        return not args or is_bindable(args[0])
    if _is_union(annotation):
        members = _union_members(annotation)
        return bool(members) and all(is_bindable(m) for m in members)
    return False


def coerce(raw: str, annotation: Any) -> Any:
    """Convert one raw string to *annotation*.

    Raises ``ValueError`` when the string is not a valid value for the
    type, and ``TypeError`` when the type is not bindable.
    """
    if annotation is str or annotation is Any or annotation is EMPTY:
        return raw

    if annotation is bool:
        word = raw.strip().lower()
        if word in TRUE_WORDS:
            return True
        if word in FALSE_WORDS:
            return False
        msg = f"expected one of {', '.join(sorted(TRUE_WORDS | FALSE_WORDS))}"
        raise ValueError(msg)

    if annotation is int:
        text = raw.strip()
        if not _INT_RE.match(text):
            msg = "expected an integer"
            raise ValueError(msg)
        return int(text)

    if annotation is float:
        text = raw.strip()
        if not _FLOAT_RE.match(text):
            msg = "expected a decimal number"
            raise ValueError(msg)
        return float(text)

    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return _coerce_enum(raw, annotation)

    if get_origin(annotation) is Literal:
        for choice in get_args(annotation):
            if str(choice) == raw:
                return choice
        options = ", ".join(str(c) for c in get_args(annotation))
        msg = f"expected one of {options}"
        raise ValueError(msg)

    if _is_union(annotation):
        if raw == "" and is_optional(annotation):
            return None
        errors: list[str] = []
        for member in _union_members(annotation):
            try:
                return coerce(raw, member)
            except ValueError as exc:
                errors.append(str(exc))
        raise ValueError(" or ".join(errors) or "no matching type")

    msg = f"cannot bind request values to {annotation!r}"
    raise TypeError(msg)


def _coerce_enum(raw: str, enum_type: type[enum.Enum]) -> enum.Enum:
    for member in enum_type:
        if str(member.value) == raw:
            return member
    try:
        return enum_type[raw]
    except KeyError:
        options = ", ".join(str(m.value) for m in enum_type)
        msg = f"expected one of {options}"
        raise ValueError(msg) from None


def _coerce_param(spec: ParamSpec, raw_values: Sequence[str]) -> Any:
    if is_list(spec.annotation):
        args = get_args(spec.annotation)
        item_type = args[0] if args else str
        return [coerce(raw, item_type) for raw in raw_values]
    return coerce(raw_values[0], spec.annotation)


def bind_arguments(
    params: Sequence[ParamSpec],
    values: Mapping[str, Sequence[str]],
    *,
    catch_all: bool = False,
    strict: bool = True,
    reserved: frozenset[str] = frozenset(),
) -> dict[str, Any]:
    """Bind raw request values to the declared parameters.

    Args:
        params: Value parameters, in declaration order.
        values: Raw values by name (path placeholders merged with the
            parameter bag).
        catch_all: The handler declares ``**kwargs``. Undeclared values
            are bound by name instead of being rejected.
        strict: Reject undeclared values when there is no catch-all.
        reserved: Names claimed by injected parameters; never treated as
            undeclared values.

    Returns:
        A new dict of typed arguments, complete for every parameter.

    Raises:
        MissingParam: A required parameter has no value.
        InvalidValue: A value failed coercion or a validation rule.
        TooManyValues: A scalar parameter got several values, or values
            were supplied that no parameter declares.
    """
    bound: dict[str, Any] = {}
    declared = {spec.name for spec in params} | reserved

    for spec in params:
        raw_values = values.get(spec.name)
        if not raw_values:
            if spec.default is not EMPTY:
                bound[spec.name] = spec.default
            elif is_optional(spec.annotation):
                bound[spec.name] = None
            else:
                raise MissingParam(spec.name)
            continue

        if len(raw_values) > 1 and not is_list(spec.annotation):
            raise TooManyValues((spec.name,), f"Parameter {spec.name!r} accepts a single value")

        for rule in spec.rules:
            for raw in raw_values:
                message = rule(raw)
                if message is not None:
                    raise InvalidValue(spec.name, raw, message)

        try:
            bound[spec.name] = _coerce_param(spec, raw_values)
        except (ValueError, TypeError) as exc:
            raise InvalidValue(spec.name, list(raw_values), str(exc)) from exc

    extra = [key for key in values if key not in declared]
    if extra and catch_all:
        for key in extra:
            raw_values = values[key]
            bound[key] = raw_values[0] if len(raw_values) == 1 else list(raw_values)
    elif extra and strict:
        raise TooManyValues(tuple(extra))

    return bound
