"""Pydantic models and data schemas for the thumbnail store.

The request schemas mirror the JSON accepted by ``POST /images``: an
array of ``{"filename": ..., "data": ...}`` objects where ``data`` holds
exactly one of ``uri``, ``base64`` or ``bytes``. :class:`Image` is the
plain in-memory value passed between the resolver, the transform and the
storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, List, Union

from pydantic import BaseModel, ConfigDict, Field

Byte = Annotated[int, Field(ge=0, le=255)]


class UriSource(BaseModel):
    """Image fetched from a remote address."""

    model_config = ConfigDict(extra="forbid")

    uri: str


class Base64Source(BaseModel):
    """Image sent inline as base64 text."""

    model_config = ConfigDict(extra="forbid")

    base64: str


class BytesSource(BaseModel):
    """Image sent inline as an array of byte values."""

    model_config = ConfigDict(extra="forbid")

    values: List[Byte] = Field(alias="bytes")

    @classmethod
    def from_bytes(cls, data: bytes) -> "BytesSource":
        """Wrap bytes that were not received as JSON (e.g. an upload).

        Skips validation: every element of a ``bytes`` object is already a
        valid byte, and checking them one by one is slow for large images.
        """
        return cls.model_construct(values=data)

    def to_bytes(self) -> bytes:
        return bytes(self.values)


ImageSource = Union[UriSource, Base64Source, BytesSource]


class ImageRequest(BaseModel):
    """One item of a batch submitted to ``POST /images``.

    Attributes:
        filename: Storage key the thumbnail is saved under.
        data: Where the image bytes come from.
    """

    filename: str = Field(min_length=1)
    data: ImageSource


class ImageResponse(BaseModel):
    """Acknowledgment returned for every stored thumbnail."""

    filename: str


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    code: int
    reason: str


@dataclass(frozen=True)
class Image:
    """Named image bytes, either as submitted or as a thumbnail."""

    filename: str
    data: bytes
