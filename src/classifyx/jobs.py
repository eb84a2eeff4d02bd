"""Job concurrency layer.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> MetadataWorker -> classifier calls

Jobs beyond the semaphore limit queue with a timeout, then get 503.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from classifyx.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JobPool:
    """Limits how many worker invocations run at the same time."""

    def __init__(self, settings: Settings) -> None:
        self._semaphore = asyncio.Semaphore(settings.max_concurrent_jobs)
        self._queue_timeout = settings.job_queue_timeout
        self._active_count: int = 0
        self._queue_depth: int = 0

    async def run(self, job: Callable[[], Awaitable[T]]) -> T:
        """Run a job once a slot is free.

        Raises:
            TimeoutError: If no slot frees up within the queue timeout.
        """
        self._queue_depth += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._queue_timeout)
        finally:
            self._queue_depth -= 1

        self._active_count += 1
        try:
            return await job()
        finally:
            self._active_count -= 1
            self._semaphore.release()

    @property
    def active_count(self) -> int:
        """Number of currently running jobs."""
        return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of jobs waiting for a slot."""
        return self._queue_depth
