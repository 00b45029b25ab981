"""Tests for wren.errors and wren.server.errors: hierarchy and rendering."""

import pytest

from wren.dispatch.translate import Position
from wren.errors import (
    ConfigurationError,
    ContainerError,
    DispatchError,
    HTTPError,
    InternalError,
    InvalidValue,
    MethodNotAllowed,
    Missing,
    MissingParam,
    NotFound,
    TooManyValues,
    UnresolvedDependency,
    WrenError,
)
from wren.http.request import Request
from wren.http.response import Response
from wren.server.errors import (
    call_error_handler,
    handle_http_error,
    handle_internal_error,
    render_debug_text,
    status_text,
)


def _request() -> Request:
    return Request(method="GET", path="/users/1")


class TestHierarchy:
    @pytest.mark.parametrize("cls", [NotFound, Missing, TooManyValues, InvalidValue, MissingParam])
    def test_dispatch_errors_are_not_http_errors(self, cls: type) -> None:
        assert issubclass(cls, DispatchError)
        assert issubclass(cls, WrenError)
        assert not issubclass(cls, HTTPError)

    def test_container_errors_are_configuration_errors(self) -> None:
        assert issubclass(UnresolvedDependency, ContainerError)
        assert issubclass(ContainerError, ConfigurationError)

    def test_http_error_str(self) -> None:
        assert str(HTTPError(status=404, detail="Not Found")) == "404: Not Found"
        assert str(HTTPError(status=500)) == "500"

    def test_method_not_allowed(self) -> None:
        error = MethodNotAllowed(frozenset({"POST", "GET"}))
        assert error.status == 405
        assert error.headers == (("Allow", "GET, POST"),)
        assert "GET, POST" in error.detail
        assert error.allowed == frozenset({"GET", "POST"})

    def test_internal_error_keeps_cause_and_position(self) -> None:
        cause = ValueError("bad")
        position = Position("Ctl", "show")
        error = InternalError("ValueError: bad", cause=cause, position=position)
        assert error.status == 500
        assert error.cause is cause
        assert error.position is position

    def test_internal_error_defaults(self) -> None:
        error = InternalError()
        assert error.detail == "Internal Server Error"
        assert error.cause is None
        assert error.position is None

    def test_internal_error_can_be_raised_from_its_cause(self) -> None:
        cause = KeyError("user")
        with pytest.raises(InternalError) as exc_info:
            raise InternalError("KeyError: 'user'", cause=cause) from cause
        assert exc_info.value.__cause__ is cause
        assert exc_info.value.cause is cause

    def test_not_found_part(self) -> None:
        assert NotFound(part="users").part == "users"
        assert NotFound().detail == "Not Found"

    def test_too_many_values_detail(self) -> None:
        assert TooManyValues(("a", "b")).detail == "Unexpected values for: a, b"

    def test_invalid_value_fields(self) -> None:
        error = InvalidValue("id", "abc", "expected an integer")
        assert (error.name, error.value, error.reason) == ("id", "abc", "expected an integer")
        assert "'id'" in error.detail


class TestStatusText:
    def test_known(self) -> None:
        assert status_text(404) == "Not Found"
        assert status_text(500) == "Internal Server Error"

    def test_unknown(self) -> None:
        assert status_text(599) == "Error 599"


class TestHandleHttpError:
    @pytest.mark.asyncio
    async def test_default_body_is_detail(self) -> None:
        response = await handle_http_error(
            HTTPError(status=400, detail="Bad page"), _request(), {}, debug=False
        )
        assert response.status == 400
        assert response.text == "Bad page"
        assert response.content_type.startswith("text/plain")

    @pytest.mark.asyncio
    async def test_default_body_without_detail(self) -> None:
        response = await handle_http_error(HTTPError(status=404), _request(), {}, debug=False)
        assert response.text == "Not Found"

    @pytest.mark.asyncio
    async def test_debug_prefixes_status(self) -> None:
        response = await handle_http_error(
            HTTPError(status=400, detail="Bad page"), _request(), {}, debug=True
        )
        assert response.text == "400: Bad page"

    @pytest.mark.asyncio
    async def test_error_headers_are_copied(self) -> None:
        response = await handle_http_error(
            MethodNotAllowed(frozenset({"GET"})), _request(), {}, debug=False
        )
        assert response.get_header("Allow") == "GET"

    @pytest.mark.asyncio
    async def test_handler_by_status(self) -> None:
        handlers = {404: lambda: "custom"}
        response = await handle_http_error(HTTPError(status=404), _request(), handlers, False)
        assert response.status == 404
        assert response.text == "custom"

    @pytest.mark.asyncio
    async def test_handler_by_exception_type(self) -> None:
        handlers = {MethodNotAllowed: lambda: "wrong method", 405: lambda: "by status"}
        response = await handle_http_error(
            MethodNotAllowed(frozenset({"GET"})), _request(), handlers, False
        )
        assert response.text == "wrong method"

    @pytest.mark.asyncio
    async def test_handler_response_keeps_error_headers(self) -> None:
        handlers = {405: lambda: "use another method"}
        response = await handle_http_error(
            MethodNotAllowed(frozenset({"GET", "HEAD"})), _request(), handlers, False
        )
        assert response.status == 405
        assert response.text == "use another method"
        assert response.get_header("Allow") == "GET, HEAD"

    @pytest.mark.asyncio
    async def test_handler_header_wins_over_error_header(self) -> None:
        def handler() -> Response:
            return Response(body="no", status=405, headers=(("Allow", "POST"),))

        response = await handle_http_error(
            MethodNotAllowed(frozenset({"GET"})), _request(), {405: handler}, False
        )
        assert [value for name, value in response.headers if name == "Allow"] == ["POST"]

    @pytest.mark.asyncio
    async def test_handler_by_cause_type(self) -> None:
        error = HTTPError(status=400, detail="bad")
        try:
            raise error from MissingParam("q")
        except HTTPError as exc:
            response = await handle_http_error(exc, _request(), {MissingParam: lambda: "q?"}, False)
        assert response.text == "q?"

    @pytest.mark.asyncio
    async def test_handler_status_is_kept(self) -> None:
        handlers = {404: lambda: Response("gone", status=410)}
        response = await handle_http_error(HTTPError(status=404), _request(), handlers, False)
        assert response.status == 410


class TestHandleInternalError:
    @pytest.mark.asyncio
    async def test_production_body(self) -> None:
        error = InternalError("RuntimeError: secret", cause=RuntimeError("secret"))
        response = await handle_internal_error(error, _request(), {}, debug=False)
        assert response.status == 500
        assert response.text == "Internal Server Error"
        assert "secret" not in response.text

    @pytest.mark.asyncio
    async def test_plain_exception_becomes_500(self) -> None:
        response = await handle_internal_error(KeyError("x"), _request(), {}, debug=False)
        assert response.status == 500

    @pytest.mark.asyncio
    async def test_debug_body(self) -> None:
        try:
            raise RuntimeError("secret")
        except RuntimeError as exc:
            cause = exc
        error = InternalError(
            "RuntimeError: secret", cause=cause, position=Position("Ctl", "show", (("id", "1"),))
        )
        response = await handle_internal_error(error, _request(), {}, debug=True)
        assert "RuntimeError: secret" in response.text
        assert "at Ctl.show(id=1)" in response.text
        assert "Traceback" in response.text

    @pytest.mark.asyncio
    async def test_logs_position(self, caplog: pytest.LogCaptureFixture) -> None:
        error = InternalError("boom", cause=RuntimeError("boom"), position=Position("Ctl", "show"))
        with caplog.at_level("ERROR", logger="wren.server"):
            await handle_internal_error(error, _request(), {}, debug=False)
        assert "Ctl.show()" in caplog.records[0].getMessage()

    @pytest.mark.asyncio
    async def test_handler_receives_cause(self) -> None:
        cause = RuntimeError("db down")
        seen: list[BaseException] = []

        def on_error(request: Request, exc: BaseException) -> str:
            seen.append(exc)
            return "sorry"

        response = await handle_internal_error(
            InternalError("x", cause=cause), _request(), {RuntimeError: on_error}, False
        )
        assert seen == [cause]
        assert response.status == 500
        assert response.text == "sorry"


class TestCallErrorHandler:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "handler",
        [
            lambda: "zero",
            lambda request: f"one {request.path}",
            lambda request, exc: f"two {exc.status}",
        ],
    )
    async def test_arity(self, handler) -> None:
        response = await call_error_handler(handler, _request(), HTTPError(status=418))
        assert response.text in {"zero", "one /users/1", "two 418"}

    @pytest.mark.asyncio
    async def test_async_handler(self) -> None:
        async def handler(request: Request) -> str:
            return "async"

        response = await call_error_handler(handler, _request(), HTTPError(status=500))
        assert response.text == "async"


class TestRenderDebugText:
    def test_http_error(self) -> None:
        text = render_debug_text(HTTPError(status=404, detail="nope"), _request())
        assert text.splitlines()[:2] == ["404 Not Found", "GET /users/1"]
        assert "nope" in text
