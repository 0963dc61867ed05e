"""HTTP entry point of the thumbnail store.

``POST /images`` accepts a batch of images (JSON or multipart), turns each
into a thumbnail and stores it under its filename. ``GET /images/<name>``
serves a stored thumbnail back. Every other route answers 404.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from thumbstore.config import Settings, get_settings
from thumbstore.decoder import decode_request
from thumbstore.errors import ThumbnailError, error_context
from thumbstore.image_ops import Thumbnailer
from thumbstore.models import ErrorResponse, ImageResponse
from thumbstore.pipeline import load_thumbnail, store_images
from thumbstore.storage import LocalStorage
from thumbstore.workers import TransformPool

logger = logging.getLogger("thumbstore")
access_logger = logging.getLogger("thumbstore.access")

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def error_response(err: ThumbnailError) -> JSONResponse:
    body = ErrorResponse(code=err.status_code, reason=err.reason())
    return JSONResponse(status_code=err.status_code, content=body.model_dump())


def log_response(method: str, path: str, status: int) -> None:
    line = f"status: {status} route: {method} {path}"
    if status < 300:
        access_logger.info(line)
    elif status < 500:
        access_logger.warning(line)
    else:
        access_logger.error(line)


def create_app(settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Configuration; read from the environment when omitted.
        transport: Optional transport for the outgoing HTTP client, used to
            stub remote sources.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage = LocalStorage(settings.img_folder)
        storage.prepare()
        thumbnailer = Thumbnailer(size=settings.thumbnail_size, quality=settings.jpeg_quality)
        app.state.storage = storage
        app.state.pool = TransformPool(thumbnailer.transform, max_workers=settings.transform_workers)
        app.state.http_client = httpx.AsyncClient(
            timeout=settings.fetch_timeout,
            follow_redirects=True,
            transport=transport,
        )
        logger.info(f"[startup] Storing thumbnails in {settings.img_folder!r} ({settings.batch_mode.value} batches)")
        try:
            yield
        finally:
            await app.state.http_client.aclose()
            app.state.pool.shutdown()
            logger.info("[shutdown] Done")

    app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

    # --- Middleware ---
    @app.middleware("http")
    async def log_responses(request: Request, call_next):
        response = await call_next(request)
        log_response(request.method, request.url.path, response.status_code)
        return response

    # --- Error Handlers ---
    @app.exception_handler(ThumbnailError)
    async def handle_thumbnail_error(request: Request, err: ThumbnailError):
        if err.is_server_error:
            logger.error(f"{request.method} {request.url.path}: {err}")
        return error_response(err)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        err = ThumbnailError.internal(exc).context("unhandled")
        logger.error(f"{request.method} {request.url.path}: {err}", exc_info=exc)
        log_response(request.method, request.url.path, err.status_code)
        return error_response(err)

    # --- Image Endpoints ---
    @app.post("/images", status_code=201)
    async def store_images_endpoint(request: Request):
        state = request.app.state
        with error_context("parse request body"):
            items = await decode_request(request)
        filenames = await store_images(
            items,
            client=state.http_client,
            pool=state.pool,
            storage=state.storage,
            mode=settings.batch_mode,
        )
        with error_context("build response"):
            content = [ImageResponse(filename=name).model_dump() for name in filenames]
        return JSONResponse(status_code=201, content=content)

    @app.get("/images/{name}")
    async def get_image_endpoint(name: str, request: Request):
        data = await load_thumbnail(name, request.app.state.storage)
        return Response(content=data, media_type="image/jpeg")

    @app.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def unknown_route(path: str):
        raise ThumbnailError.not_found("unknown route")

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn until SIGINT/SIGTERM."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"[startup] Listening on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, access_log=False, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
