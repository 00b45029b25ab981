"""Compiled router with ordered, first-match-wins rule matching.

Rules are registered during setup and compiled into an immutable
table when the app freezes. Matching walks the table in declaration
order; the earliest rule whose path pattern and method both match
wins, even when a later rule would be a more specific match.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from wren._internal.multimap import MultiValueMapping
from wren.errors import ConfigurationError, MethodNotAllowed, Missing, NotFound
from wren.routing.params import CONVERTERS, segment_regex
from wren.routing.route import PathSegment, RouteMatch, RouteRule


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route path string into segments.

    Examples::

        "/users"          -> [PathSegment("users")]
        "/users/{id}"     -> [PathSegment("users"), PathSegment("{id}", is_param=True, ...)]
        "/users/{id:int}" -> [PathSegment("{id:int}", is_param=True, param_type="int")]
        "/files/{path:path}" -> [PathSegment("{path:path}", is_param=True, param_type="path")]
    """
    segments: list[PathSegment] = []
    parts = [part for part in path.strip("/").split("/") if part]
    for index, part in enumerate(parts):
        if part.startswith("<") and part.endswith(">"):
            msg = (
                f"Route {path!r} uses <param> syntax. "
                "Wren placeholders are written {param} or {param:int}."
            )
            raise ConfigurationError(msg)
        if not (part.startswith("{") and part.endswith("}")):
            segments.append(PathSegment(value=part))
            continue

        param_name, _, param_type = part[1:-1].partition(":")
        param_type = param_type or "str"
        if param_type not in CONVERTERS:
            msg = f"Route {path!r}: unknown converter {param_type!r} for {{{param_name}}}"
            raise ConfigurationError(msg)
        if param_type == "path" and index != len(parts) - 1:
            msg = f"Route {path!r}: {{{param_name}:path}} must be the last segment"
            raise ConfigurationError(msg)
        segments.append(
            PathSegment(
                value=part,
                is_param=True,
                param_name=param_name,
                param_type=param_type,
            )
        )
    return segments


def split_path(path: str) -> list[str]:
    """Split a request path into its non-empty segments."""
    return [part for part in path.strip("/").split("/") if part]


@dataclass(frozen=True, slots=True)
class _CompiledRule:
    """A rule plus its parsed segments and converter patterns."""

    rule: RouteRule
    segments: tuple[PathSegment, ...]
    patterns: tuple[re.Pattern[str] | None, ...]

    def match_path(self, parts: list[str]) -> tuple[dict[str, str] | None, int]:
        """Match *parts* against this rule's segments.

        Returns ``(params, depth)``. ``params`` is ``None`` on failure and
        ``depth`` is the index of the first part that did not match.
        """
        params: dict[str, str] = {}
        for index, (segment, pattern) in enumerate(zip(self.segments, self.patterns, strict=True)):
            if segment.param_type == "path" and segment.is_param:
                if index >= len(parts):
                    return None, index
                params[segment.param_name or "path"] = "/".join(parts[index:])
                return params, len(parts)
            if index >= len(parts):
                return None, index
            part = parts[index]
            if segment.is_param:
                assert pattern is not None
                if not pattern.match(part):
                    return None, index
                params[segment.param_name or ""] = part
            elif segment.value != part:
                return None, index
        if len(self.segments) != len(parts):
            return None, len(self.segments)
        return params, len(parts)


class Router:
    """Ordered route table.

    Usage::

        router = Router()
        router.add(RouteRule("/users", frozenset({"GET"}), FunctionTarget(list_users)))
        router.add(RouteRule("/users/{id:int}", frozenset({"GET"}), FunctionTarget(show)))
        router.compile()
        match = router.match("GET", "/users/42")
    """

    __slots__ = ("_compiled", "_rules")

    def __init__(self) -> None:
        self._rules: list[_CompiledRule] = []
        self._compiled = False

    def add(self, rule: RouteRule) -> None:
        """Append a rule to the table. Must be called before compile()."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        segments = tuple(parse_path(rule.path))
        patterns = tuple(
            segment_regex(seg.param_type) if seg.is_param else None for seg in segments
        )
        self._rules.append(_CompiledRule(rule=rule, segments=segments, patterns=patterns))

    @property
    def routes(self) -> list[RouteRule]:
        """Return all rules in precedence order."""
        return [compiled.rule for compiled in self._rules]

    @property
    def compiled(self) -> bool:
        return self._compiled

    def compile(self) -> None:
        """Freeze the router. No more rules can be added."""
        self._compiled = True

    def match(
        self,
        method: str,
        path: str,
        params: MultiValueMapping | Mapping[str, list[str]] | None = None,
        *,
        resolvable: Callable[[RouteRule], bool] | None = None,
    ) -> RouteMatch:
        """Find the first rule matching *path* and *method*.

        Returns a ``RouteMatch`` whose ``values`` merge the extracted
        placeholders with *params*.

        Raises ``NotFound`` if no rule matches the path; ``part`` names
        the segment where the deepest attempt gave up.
        Raises ``MethodNotAllowed`` if the path matches but no rule
        accepts the method.
        Raises ``Missing`` if the winning rule's target is not resolvable.
        """
        parts = split_path(path)
        deepest = 0
        allowed: set[str] = set()

        for compiled in self._rules:
            path_params, depth = compiled.match_path(parts)
            if path_params is None:
                deepest = max(deepest, depth)
                continue
            if method not in compiled.rule.methods:
                allowed.update(compiled.rule.methods)
                continue

            rule = compiled.rule
            if resolvable is not None and not resolvable(rule):
                msg = f"Route {rule.path!r} matched but {rule.handler_name} cannot be resolved"
                raise Missing(msg)
            return RouteMatch(
                rule=rule,
                path_params=path_params,
                values=_merge_values(path_params, params),
            )

        if allowed:
            raise MethodNotAllowed(frozenset(allowed))

        raise NotFound(f"No route matches {method} {path!r}", part=_failed_part(parts, deepest))


def _failed_part(parts: list[str], depth: int) -> str:
    if not parts:
        return "/"
    if depth < len(parts):
        return parts[depth]
    return parts[-1]


def _merge_values(
    path_params: dict[str, str],
    params: MultiValueMapping | Mapping[str, list[str]] | None,
) -> dict[str, list[str]]:
    values: dict[str, list[str]] = {name: [value] for name, value in path_params.items()}
    if params is None:
        return values
    for key in params:
        if key in values:
            continue
        if isinstance(params, MultiValueMapping):
            values[key] = params.get_list(key)
        else:
            values[key] = list(params[key])
    return values
