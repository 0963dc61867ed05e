"""Worker pool running the thumbnail transform off the event loop.

Conversions are CPU heavy; running them on the loop would stall every
other in-flight request. The pool is bounded so a burst of uploads queues
up instead of spawning unbounded threads.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Transform = Callable[[bytes], bytes]


class TransformPool:
    """Dispatch a synchronous transform to a dedicated thread pool.

    Args:
        transform: Function turning raw bytes into thumbnail bytes.
        max_workers: Upper bound on concurrent conversions; ``None`` uses
            the executor default.
    """

    def __init__(self, transform: Transform, max_workers: Optional[int] = None) -> None:
        self._transform = transform
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="thumbnail")

    async def run(self, data: bytes) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._transform, data)

    def shutdown(self) -> None:
        """Wait for in-flight conversions and release the threads."""
        logger.info("[TransformPool] Shutting down")
        self._executor.shutdown(wait=True)
