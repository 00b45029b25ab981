"""ASGI response sending: translates a wren Response sink to ASGI messages."""

from wren._internal.asgi import Send
from wren.http.response import Response


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


def raw_headers(response: Response, content_length: int) -> list[tuple[bytes, bytes]]:
    """Encode the sink's headers for ``http.response.start``."""
    headers: list[tuple[bytes, bytes]] = [
        (b"content-type", response.content_type.encode("latin-1")),
    ]
    headers.extend(
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in response.headers
    )
    headers.append((b"content-length", str(content_length).encode("latin-1")))
    return headers


async def send_response(response: Response, send: Send, *, head: bool = False) -> None:
    """Translate a wren Response into ASGI send() calls.

    For ``HEAD`` requests the headers describe the full body but no
    body bytes are sent.
    """
    body = response.body_bytes if _body_allowed(response.status) else b""

    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers(response, len(body)),
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": b"" if head else body,
        }
    )
