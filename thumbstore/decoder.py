"""Decode ``POST /images`` bodies into an ordered list of image requests.

Two encodings are accepted, chosen by the request's content type:

- ``application/json``: an array of ``{"filename", "data"}`` objects.
- ``multipart/form-data``: one part per image; the part's field name is
  the filename and its body the raw image bytes.

Anything else is rejected as an unsupported media type. Submission order
is preserved in both cases.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import TypeAdapter, ValidationError
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.requests import Request

from .errors import ThumbnailError
from .models import BytesSource, ImageRequest

JSON = "application/json"
MULTIPART = "multipart/form-data"

_batch_adapter = TypeAdapter(List[ImageRequest])


def media_type(content_type: str) -> str:
    """Return the primary media type of a Content-Type header value."""
    return content_type.split(";", 1)[0].strip().lower()


def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors(include_url=False):
        loc = ".".join(str(p) for p in error["loc"])
        parts.append(f"{loc}: {error['msg']}" if loc else error["msg"])
    return "; ".join(parts)


def _invalid_multipart(cause) -> ThumbnailError:
    return ThumbnailError.invalid_argument("body", "invalid multipart form data", cause)


def parse_json(body: bytes) -> List[ImageRequest]:
    """Parse a JSON batch.

    Raises:
        ThumbnailError: InvalidArgument for malformed JSON or items that
            do not match the expected shape.
    """
    try:
        return _batch_adapter.validate_json(body)
    except ValidationError as exc:
        raise ThumbnailError.invalid_argument("body", "invalid json", _summarize(exc)) from exc


class MultipartCollector:
    """Collect the field name and raw body of every part of a form.

    Part bodies are kept byte for byte, whether or not the part declares
    a filename. :meth:`finish` fails unless the closing boundary was seen
    and every part was complete.

    Args:
        boundary: Boundary parameter of the request's Content-Type.
    """

    def __init__(self, boundary: bytes) -> None:
        self.parts: List[tuple] = []
        self.ended = False
        self._open = False
        self._headers: Dict[bytes, bytes] = {}
        self._field = b""
        self._value = b""
        self._data = bytearray()
        self.parser = MultipartParser(
            boundary,
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_end": self._on_end,
            },
        )

    def write(self, chunk: bytes) -> None:
        self.parser.write(chunk)

    def finish(self) -> List[tuple]:
        """Return ``(name, data)`` pairs in submission order."""
        self.parser.finalize()
        if self._open or not self.ended:
            raise _invalid_multipart("unexpected end of body")
        return self.parts

    def _on_part_begin(self) -> None:
        self._open = True
        self._headers = {}
        self._data = bytearray()

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._data += data[start:end]

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[self._field.lower()] = self._value
        self._field = b""
        self._value = b""

    def _on_part_end(self) -> None:
        self._open = False
        self.parts.append((self._part_name(), bytes(self._data)))

    def _on_end(self) -> None:
        self.ended = True

    def _part_name(self) -> str:
        disposition = self._headers.get(b"content-disposition")
        if disposition is None:
            raise _invalid_multipart("part without Content-Disposition")
        _, params = parse_options_header(disposition)
        name: Optional[bytes] = params.get(b"name")
        if name is None:
            raise _invalid_multipart("part without a name")
        try:
            return name.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise _invalid_multipart(exc) from exc


async def parse_multipart(request: Request) -> List[ImageRequest]:
    """Parse a multipart form, one image request per part.

    Raises:
        ThumbnailError: InvalidArgument if the form is malformed or
            truncated.
    """
    _, params = parse_options_header(request.headers.get("content-type", ""))
    boundary = params.get(b"boundary")
    if not boundary:
        raise _invalid_multipart("missing boundary")

    try:
        collector = MultipartCollector(boundary)
        async for chunk in request.stream():
            collector.write(chunk)
        parts = collector.finish()
    except (MultipartParseError, ValueError) as exc:
        raise _invalid_multipart(exc) from exc

    try:
        return [ImageRequest(filename=name, data=BytesSource.from_bytes(data)) for name, data in parts]
    except ValidationError as exc:
        raise _invalid_multipart(_summarize(exc)) from exc


async def decode_request(request: Request) -> List[ImageRequest]:
    """Dispatch on the request's content type and decode its body."""
    kind = media_type(request.headers.get("content-type", ""))
    if kind == JSON:
        return parse_json(await request.body())
    if kind == MULTIPART:
        return await parse_multipart(request)
    raise ThumbnailError.unsupported_media_type()
