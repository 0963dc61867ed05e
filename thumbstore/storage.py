"""Storage backend for thumbnail bytes.

Thumbnails are kept as flat files in a single directory, one file per
storage key. The key is the filename submitted by the client and is used
verbatim, so it has to be a single path segment. File operations run in
worker threads to keep the event loop free.

Writes go to a temporary sibling first and are then moved into place, so
readers never observe a half-written thumbnail. Concurrent writes to the
same key are not coordinated: the last one wins.
"""

from __future__ import annotations

import asyncio
import os
import tempfile


class StorageError(Exception):
    """Base class for storage failures that are not plain I/O errors."""


class InvalidKeyError(StorageError, ValueError):
    """Raised when a key cannot be mapped to a file inside the root."""


class MissingBlobError(StorageError, LookupError):
    """Raised when no blob is stored under the requested key."""


def _ensure_dir(path: str) -> None:
    """Create the directory (and parents) if it does not exist."""
    os.makedirs(path, exist_ok=True)


def validate_key(key: str) -> str:
    """Return ``key`` if it is usable as a single file name.

    Raises:
        InvalidKeyError: If the key is empty, contains a path separator or
            NUL, or names the current or parent directory.
    """
    separators = {"/", "\0", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    if not key or key in (".", "..") or any(sep in key for sep in separators):
        raise InvalidKeyError(f"invalid storage key: {key!r}")
    return key


class LocalStorage:
    """Keyed blob storage in a local directory.

    Args:
        root: Directory holding the blobs. Created on first write or by
            :meth:`prepare`.
    """

    def __init__(self, root: str) -> None:
        self.root = root

    def path_for(self, key: str) -> str:
        return os.path.join(self.root, validate_key(key))

    def prepare(self) -> None:
        _ensure_dir(self.root)

    async def put(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, replacing any previous blob."""
        await asyncio.to_thread(self._write, self.path_for(key), data)

    async def get(self, key: str) -> bytes:
        """Return the blob stored under ``key``.

        Raises:
            MissingBlobError: If nothing is stored under ``key``.
            InvalidKeyError: If ``key`` is not a valid file name.
            OSError: For any other I/O failure.
        """
        path = self.path_for(key)
        try:
            return await asyncio.to_thread(self._read, path)
        except FileNotFoundError as exc:
            raise MissingBlobError(key) from exc

    async def delete(self, key: str) -> bool:
        """Remove the blob under ``key``; return False if it was absent."""
        path = self.path_for(key)
        try:
            await asyncio.to_thread(os.remove, path)
        except FileNotFoundError:
            return False
        return True

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(os.path.isfile, self.path_for(key))

    def _write(self, path: str, data: bytes) -> None:
        _ensure_dir(self.root)
        fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise

    @staticmethod
    def _read(path: str) -> bytes:
        with open(path, "rb") as f:
            return f.read()
