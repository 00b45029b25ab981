"""Form bodies as request parameters.

A form-encoded body yields ``(field, value)`` pairs that the server
layer appends to the request's ``ParamBag``, so handlers bind form
fields exactly like query values. File parts of a multipart body carry
no bindable value and are skipped; read them from ``request.stream()``.

``python-multipart`` is an optional dependency (``pip install wren[forms]``).
"""

from __future__ import annotations

from urllib.parse import parse_qsl

from wren.errors import ConfigurationError
from wren.http.params import ParamBag

URLENCODED = "application/x-www-form-urlencoded"
MULTIPART = "multipart/form-data"


def parse_form(body: bytes, content_type: str) -> ParamBag:
    """Parse a form body into a parameter bag, in submission order.

    Raises:
        ConfigurationError: If the body is multipart and
            ``python-multipart`` is not installed.
        ValueError: If the content type is not a form encoding, or a
            multipart body has no boundary.
    """
    media_type = content_type.split(";")[0].strip().lower()
    if media_type == URLENCODED:
        return ParamBag(parse_qsl(body.decode("utf-8"), keep_blank_values=True))
    if media_type == MULTIPART:
        return ParamBag(_multipart_fields(body, content_type))
    msg = f"Unsupported form content type: {content_type!r}"
    raise ValueError(msg)


def _multipart_fields(body: bytes, content_type: str) -> list[tuple[str, str]]:
    try:
        from python_multipart.multipart import MultipartParser, parse_options_header
    except ImportError:
        msg = (
            "Multipart form parsing requires the 'python-multipart' package. "
            "Install it with: pip install wren[forms]"
        )
        raise ConfigurationError(msg) from None

    _, options = parse_options_header(content_type.encode("latin-1"))
    boundary = options.get(b"boundary")
    if boundary is None:
        msg = "Multipart form data missing boundary parameter"
        raise ValueError(msg)

    fields: list[tuple[str, str]] = []
    # Per part: field name (None for file parts and nameless parts), raw value
    name: str | None = None
    value = bytearray()
    header = b""

    def on_part_begin() -> None:
        nonlocal name
        name = None
        value.clear()

    def on_part_data(chunk: bytes, start: int, end: int) -> None:
        value.extend(chunk[start:end])

    def on_part_end() -> None:
        if name is not None:
            fields.append((name, value.decode("utf-8", errors="replace")))

    def on_header_field(chunk: bytes, start: int, end: int) -> None:
        nonlocal header
        header = chunk[start:end].lower()

    def on_header_value(chunk: bytes, start: int, end: int) -> None:
        nonlocal name
        if header != b"content-disposition":
            return
        _, params = parse_options_header(chunk[start:end])
        if b"filename" in params:
            name = None
        elif b"name" in params:
            name = params[b"name"].decode("utf-8")

    parser = MultipartParser(
        boundary,
        {
            "on_part_begin": on_part_begin,
            "on_part_data": on_part_data,
            "on_part_end": on_part_end,
            "on_header_field": on_header_field,
            "on_header_value": on_header_value,
        },
    )
    parser.write(body)
    parser.finalize()
    return fields
