"""Wren: typed request dispatch for ASGI applications.

Matches a request against an ordered route table, resolves the handler
through a scoped dependency container, binds typed arguments, runs the
action, and renders its result. Every failure becomes a well-defined
HTTP error.

Basic usage::

    from wren import App, redirect

    app = App()

    @app.route("/users/{id:int}")
    def show(id: int):
        return f"user {id}"

    @app.route("/home")
    def home():
        return redirect("/homepage")

Serve it with any ASGI server (``uvicorn myapp:app``).
"""

__version__ = "0.1.0"
__all__ = [
    "ActionContext",
    "App",
    "AppConfig",
    "Auth",
    "ConfigurationError",
    "Container",
    "ContentResult",
    "DispatchError",
    "EmptyResult",
    "HTTPError",
    "Inject",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "RedirectResult",
    "Request",
    "Response",
    "Result",
    "Session",
    "WrenError",
    "action",
    "get_request",
    "redirect",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import wren`` fast while providing a clean top-level API.
    """
    if name == "App":
        from wren.app import App

        return App

    if name == "AppConfig":
        from wren.config import AppConfig

        return AppConfig

    if name == "Request":
        from wren.http.request import Request

        return Request

    if name == "Response":
        from wren.http.response import Response

        return Response

    if name == "Session":
        from wren.http.session import Session

        return Session

    if name == "Auth":
        from wren.http.auth import Auth

        return Auth

    if name in ("Result", "EmptyResult", "ContentResult", "RedirectResult", "redirect"):
        from wren.dispatch import results as _results

        return getattr(_results, name)

    if name in ("Container", "Inject"):
        from wren.di import container as _di

        return getattr(_di, name)

    if name == "action":
        from wren.routing.declare import action

        return action

    if name in ("ActionContext", "get_request"):
        from wren import context as _ctx

        return getattr(_ctx, name)

    if name in ("Middleware", "Next"):
        from wren.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in (
        "WrenError",
        "ConfigurationError",
        "HTTPError",
        "MethodNotAllowed",
        "DispatchError",
        "NotFound",
    ):
        from wren import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
