"""Store and load thumbnails.

:func:`store_images` runs a batch through the pipeline one item at a
time, in submission order: resolve the source, convert it on the worker
pool, persist the thumbnail. The first failing item aborts the batch.

Whether items stored before the failure are kept is still an open
decision, so both behaviours are available through
:class:`~thumbstore.config.BatchMode`. ``partial`` (the default) keeps
them. ``all_or_nothing`` prepares every thumbnail before writing any and
removes what it already wrote if a write fails; blobs it overwrote are
not restored.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

import httpx

from .config import BatchMode
from .errors import ThumbnailError, error_context
from .image_ops import TransformError
from .models import Image, ImageRequest
from .sources import resolve_image
from .storage import InvalidKeyError, LocalStorage, MissingBlobError
from .workers import TransformPool

logger = logging.getLogger(__name__)


async def make_thumbnail(img: Image, pool: TransformPool) -> Image:
    """Convert a raw image on the worker pool."""
    try:
        data = await pool.run(img.data)
    except TransformError as exc:
        raise ThumbnailError.internal(exc.message) from exc
    return Image(img.filename, data)


async def save_thumbnail(thumb: Image, storage: LocalStorage) -> None:
    try:
        await storage.put(thumb.filename, thumb.data)
    except InvalidKeyError as exc:
        raise ThumbnailError.invalid_argument("filename", "invalid storage key", exc) from exc


async def _prepare(item: ImageRequest, client: httpx.AsyncClient, pool: TransformPool) -> Image:
    with error_context("load image"):
        img = await resolve_image(item, client)
    with error_context("thumbnail img"):
        return await make_thumbnail(img, pool)


async def _store_partial(
    items: Sequence[ImageRequest],
    client: httpx.AsyncClient,
    pool: TransformPool,
    storage: LocalStorage,
) -> List[str]:
    stored = []
    for item in items:
        thumb = await _prepare(item, client, pool)
        with error_context("save thumbnail"):
            await save_thumbnail(thumb, storage)
        stored.append(thumb.filename)
    return stored


async def _store_all_or_nothing(
    items: Sequence[ImageRequest],
    client: httpx.AsyncClient,
    pool: TransformPool,
    storage: LocalStorage,
) -> List[str]:
    thumbs = []
    for item in items:
        thumbs.append(await _prepare(item, client, pool))

    written: List[str] = []
    try:
        for thumb in thumbs:
            with error_context("save thumbnail"):
                await save_thumbnail(thumb, storage)
            written.append(thumb.filename)
    except ThumbnailError:
        await _rollback(written, storage)
        raise
    return [thumb.filename for thumb in thumbs]


async def _rollback(keys: List[str], storage: LocalStorage) -> None:
    for key in reversed(keys):
        try:
            await storage.delete(key)
        except OSError as exc:
            logger.error(f"[Pipeline] Rollback could not remove {key!r}: {exc}")


async def store_images(
    items: Sequence[ImageRequest],
    *,
    client: httpx.AsyncClient,
    pool: TransformPool,
    storage: LocalStorage,
    mode: BatchMode = BatchMode.PARTIAL,
) -> List[str]:
    """Convert and persist a batch, returning the stored filenames in order.

    Args:
        items: The decoded batch.
        client: HTTP client used for remote sources.
        pool: Worker pool running the thumbnail transform.
        storage: Destination of the thumbnails.
        mode: What happens to earlier items when one fails.

    Raises:
        ThumbnailError: For the first item that fails; no acknowledgments
            are returned in that case.
    """
    if mode is BatchMode.ALL_OR_NOTHING:
        return await _store_all_or_nothing(items, client, pool, storage)
    return await _store_partial(items, client, pool, storage)


async def load_thumbnail(name: str, storage: LocalStorage) -> bytes:
    """Return the stored thumbnail ``name``.

    Raises:
        ThumbnailError: NotFound if nothing is stored under ``name``;
            Internal for other I/O failures.
    """
    try:
        return await storage.get(name)
    except (MissingBlobError, InvalidKeyError) as exc:
        raise ThumbnailError.not_found() from exc
    except OSError as exc:
        raise ThumbnailError.internal(exc).context("load thumbnail") from exc
