"""``wren routes``: list compiled routes.

Resolves an import string to a wren App, freezes it, and prints the
route table in precedence order: the first row that matches a request
is the one that handles it.
"""

import argparse
import sys

from wren.cli._resolve import resolve_app
from wren.errors import ConfigurationError
from wren.routing.route import RouteRule


def describe_rule(rule: RouteRule) -> tuple[str, str, str]:
    """Return ``(methods, path, handler)`` columns for one rule."""
    methods_str = ", ".join(sorted(rule.methods))
    handler_name = rule.handler_name
    scope = getattr(rule.target, "scope", None)
    if scope == "singleton":
        handler_name = f"{handler_name} [singleton]"
    if rule.name:
        handler_name = f"{handler_name} ({rule.name})"
    return methods_str, rule.path, handler_name


def run_routes(args: argparse.Namespace) -> None:
    """List registered routes for a wren app.

    Resolves ``args.app`` to an App instance, freezes it, and prints
    a table of METHOD, PATH, and handler name.
    """
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    try:
        routes = app.routes
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    if not routes:
        print("No routes registered.")
        return

    rows = [describe_rule(rule) for rule in routes]

    # Column widths
    max_methods = max(max(len(r[0]) for r in rows), 6)  # "METHOD" header
    max_path = max(max(len(r[1]) for r in rows), 4)  # "PATH" header

    fmt = f"{{:<{max_methods}}}  {{:<{max_path}}}  {{}}"
    print(fmt.format("METHOD", "PATH", "HANDLER"))
    sep_len = max_methods + max_path + 4 + max((len(r[2]) for r in rows), default=0)
    print("-" * min(sep_len, 80))
    for methods_str, path, handler_name in rows:
        print(fmt.format(methods_str, path, handler_name))
