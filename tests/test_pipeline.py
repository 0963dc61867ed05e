import asyncio
import threading

import httpx
import pytest

from thumbstore.config import BatchMode
from thumbstore.errors import ErrorKind, ThumbnailError
from thumbstore.image_ops import TransformError
from thumbstore.models import Base64Source, BytesSource, ImageRequest
from thumbstore.pipeline import load_thumbnail, store_images
from thumbstore.storage import LocalStorage
from thumbstore.workers import TransformPool


def upper(data: bytes) -> bytes:
    if data == b"corrupt":
        raise TransformError("thumbnail failed: cannot identify image file")
    return data.upper()


def item(name, data=None, base64=None):
    source = Base64Source(base64=base64) if base64 is not None else BytesSource.from_bytes(data)
    return ImageRequest(filename=name, data=source)


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "images"))


def run_batch(items, storage, mode=BatchMode.PARTIAL, transform=upper):
    async def go():
        pool = TransformPool(transform, max_workers=2)
        try:
            async with httpx.AsyncClient() as client:
                return await store_images(items, client=client, pool=pool, storage=storage, mode=mode)
        finally:
            pool.shutdown()

    return asyncio.run(go())


def stored(storage, name):
    return asyncio.run(load_thumbnail(name, storage))


@pytest.mark.parametrize("mode", list(BatchMode))
def test_stores_batch_in_order(storage, mode):
    names = run_batch([item("b.jpg", b"bee"), item("a.jpg", b"ay"), item("c.jpg", b"sea")], storage, mode)
    assert names == ["b.jpg", "a.jpg", "c.jpg"]
    assert stored(storage, "a.jpg") == b"AY"


def test_empty_batch(storage):
    assert run_batch([], storage) == []


def test_transform_runs_off_the_event_loop_thread(storage):
    seen = []

    def record(data):
        seen.append(threading.current_thread().name)
        return data

    run_batch([item("a.jpg", b"x")], storage, transform=record)
    assert seen and seen[0].startswith("thumbnail")
    assert seen[0] != threading.main_thread().name


def test_resolve_failure_carries_context(storage):
    with pytest.raises(ThumbnailError) as info:
        run_batch([item("bad.jpg", base64="not-valid!!")], storage)
    err = info.value
    assert err.kind is ErrorKind.INVALID_ARGUMENT
    assert err.trail == ["load image"]
    assert str(err).startswith("load image: base64: failed to decode")


def test_transform_failure_is_internal(storage):
    with pytest.raises(ThumbnailError) as info:
        run_batch([item("a.jpg", b"corrupt")], storage)
    err = info.value
    assert err.kind is ErrorKind.INTERNAL
    assert err.trail == ["thumbnail img"]
    assert err.cause == "thumbnail failed: cannot identify image file"


def test_invalid_filename_is_rejected_when_saving(storage):
    with pytest.raises(ThumbnailError) as info:
        run_batch([item("../escape.jpg", b"x")], storage)
    err = info.value
    assert err.kind is ErrorKind.INVALID_ARGUMENT
    assert err.argument == "filename"
    assert err.trail == ["save thumbnail"]


def test_partial_mode_keeps_items_before_the_failure(storage):
    with pytest.raises(ThumbnailError):
        run_batch([item("first.jpg", b"one"), item("second.jpg", b"corrupt"), item("third.jpg", b"three")], storage)
    assert stored(storage, "first.jpg") == b"ONE"
    for name in ("second.jpg", "third.jpg"):
        with pytest.raises(ThumbnailError):
            stored(storage, name)


def test_all_or_nothing_mode_persists_nothing_on_failure(storage):
    with pytest.raises(ThumbnailError):
        run_batch(
            [item("first.jpg", b"one"), item("second.jpg", b"corrupt")],
            storage,
            mode=BatchMode.ALL_OR_NOTHING,
        )
    assert not asyncio.run(storage.exists("first.jpg"))


def test_all_or_nothing_mode_rolls_back_writes(storage):
    with pytest.raises(ThumbnailError) as info:
        run_batch(
            [item("first.jpg", b"one"), item("nested/second.jpg", b"two")],
            storage,
            mode=BatchMode.ALL_OR_NOTHING,
        )
    assert info.value.argument == "filename"
    assert not asyncio.run(storage.exists("first.jpg"))


def test_load_missing_thumbnail_is_not_found(storage):
    storage.prepare()
    with pytest.raises(ThumbnailError) as info:
        stored(storage, "missing.jpeg")
    err = info.value
    assert err.kind is ErrorKind.NOT_FOUND
    assert err.reason() == "Not Found"
