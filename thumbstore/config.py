"""Service configuration loaded from environment variables or .env file."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BatchMode(str, Enum):
    """How a batch behaves when one of its items fails.

    ``partial`` persists every item as soon as it is ready, so items
    before the failing one stay stored. ``all_or_nothing`` prepares every
    thumbnail before writing any of them.
    """

    PARTIAL = "partial"
    ALL_OR_NOTHING = "all_or_nothing"


class Settings(BaseSettings):
    """Configuration read once at start-up and passed to the app."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Server
    host: str = Field("127.0.0.1", description="Interface to listen on.")
    port: int = Field(3000, description="Port to listen on.")
    log_level: str = Field("INFO", description="Root logging level.")

    # Storage
    img_folder: str = Field("images", description="Directory holding stored thumbnails.")

    # Thumbnails
    thumbnail_size: int = Field(100, ge=1, description="Thumbnail bounding box edge (pixels).")
    jpeg_quality: int = Field(75, ge=1, le=95, description="JPEG quality of stored thumbnails.")
    transform_workers: Optional[int] = Field(
        default=None, ge=1, description="Maximum concurrent conversions; executor default if unset."
    )

    # Remote sources
    fetch_timeout: float = Field(30.0, gt=0, description="Timeout for fetching remote images (seconds).")

    # Batches
    batch_mode: BatchMode = Field(BatchMode.PARTIAL, description="Behaviour of a batch with a failing item.")


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance so it is only parsed once."""

    return Settings()
