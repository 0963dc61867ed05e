"""Shared fixtures for the thumbnail store tests.

Images are generated in memory with Pillow, remote sources are served by
an ``httpx.MockTransport`` and every app writes into its own temporary
storage directory.
"""

import io

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image  # type: ignore

from main import create_app
from thumbstore.config import BatchMode, Settings

REMOTE_HOST = "images.example.test"


class BrokenStream(httpx.AsyncByteStream):
    """Response body whose transfer dies after the headers arrived."""

    async def __aiter__(self):
        raise httpx.ReadError("connection reset by peer")
        yield b""


@pytest.fixture
def make_image():
    """Return a factory producing encoded image bytes."""

    def _make(size=(64, 48), color=(200, 30, 30), mode="RGB", fmt="PNG"):
        img = Image.new(mode, size, color=color)
        buf = io.BytesIO()
        img.save(buf, format=fmt)
        return buf.getvalue()

    return _make


@pytest.fixture
def png_bytes(make_image):
    return make_image()


@pytest.fixture
def remote_transport(png_bytes):
    """Fake remote web server used for URI sources."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "unreachable.example.test":
            raise httpx.ConnectError("name or service not known", request=request)
        if request.url.path == "/logo.png":
            return httpx.Response(200, content=png_bytes, headers={"Content-Type": "image/png"})
        if request.url.path == "/moved.png":
            return httpx.Response(302, headers={"Location": f"http://{REMOTE_HOST}/logo.png"})
        if request.url.path == "/broken.png":
            return httpx.Response(200, stream=BrokenStream())
        return httpx.Response(404, text="not here")

    return httpx.MockTransport(handler)


@pytest.fixture
def storage_dir(tmp_path):
    return tmp_path / "images"


@pytest.fixture
def settings(storage_dir):
    return Settings(img_folder=str(storage_dir), transform_workers=2)


@pytest.fixture
def client(settings, remote_transport):
    app = create_app(settings, transport=remote_transport)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def atomic_client(storage_dir, remote_transport):
    settings = Settings(img_folder=str(storage_dir), batch_mode=BatchMode.ALL_OR_NOTHING)
    app = create_app(settings, transport=remote_transport)
    with TestClient(app) as c:
        yield c
