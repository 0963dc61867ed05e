"""Resolve submitted image sources into raw image bytes.

An item of a batch carries its image in one of three ways: a remote URI
fetched over HTTP, base64 text, or an array of bytes. Whatever the
variant, the result is an :class:`~thumbstore.models.Image` holding the
raw bytes under the submitted filename.
"""

from __future__ import annotations

import base64
import binascii
import logging

import httpx

from .errors import ThumbnailError, error_context
from .models import Base64Source, BytesSource, Image, ImageRequest, UriSource

logger = logging.getLogger(__name__)


def decode_base64(text: str) -> bytes:
    """Decode standard base64 text, rejecting anything outside the alphabet.

    Raises:
        ThumbnailError: InvalidArgument on malformed input.
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ThumbnailError.invalid_argument("base64", "failed to decode", exc) from exc


async def fetch_remote(client: httpx.AsyncClient, uri: str) -> bytes:
    """Download the body of ``uri``.

    Args:
        client: Shared HTTP client (timeouts and redirects configured there).
        uri: Absolute http(s) address of the image.

    Returns:
        The response body.

    Raises:
        ThumbnailError: InvalidArgument when the address is unusable,
            unreachable or answers with a non-success status; Internal when
            the body cannot be read once the response has started.
    """
    try:
        request = client.build_request("GET", uri)
        response = await client.send(request, stream=True)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.info(f"[Sources] Fetch failed: {uri[:80]} ({exc})")
        raise ThumbnailError.invalid_argument("uri", "failed to fetch specified file", exc) from exc

    try:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.info(f"[Sources] HTTP error {response.status_code}: {uri[:80]}")
            raise ThumbnailError.invalid_argument("uri", "failed to fetch specified file", exc) from exc

        with error_context("get response bytes"):
            data = await response.aread()
    finally:
        await response.aclose()

    logger.debug(f"[Sources] Fetched: {uri[:80]} ({len(data)} bytes)")
    return data


async def resolve_image(item: ImageRequest, client: httpx.AsyncClient) -> Image:
    """Turn one submitted item into raw image bytes."""
    source = item.data
    if isinstance(source, UriSource):
        data = await fetch_remote(client, source.uri)
    elif isinstance(source, Base64Source):
        data = decode_base64(source.base64)
    elif isinstance(source, BytesSource):
        data = source.to_bytes()
    else:
        raise ThumbnailError.internal(f"unknown image source: {type(source).__name__}")
    return Image(item.filename, data)
