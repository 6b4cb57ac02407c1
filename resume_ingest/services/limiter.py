"""Process-wide admission limiter for heavy ingestion work."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from resume_ingest.core.errors import LimiterClosedError
from resume_ingest.core.logging import get_logger

logger = get_logger(__name__)


class AdmissionLimiter:
    """Counting permit pool bounding concurrent jobs and sub-tasks.

    Wraps an asyncio.Semaphore so waiters are served roughly in arrival
    order. Permits are handed out through ``permit()``, an async context
    manager, so every exit path of the holder returns the slot.
    """

    def __init__(self, capacity: int, name: str = "jobs") -> None:
        if capacity < 1:
            raise ValueError("Limiter capacity must be at least 1.")
        self.capacity = capacity
        self.name = name
        self._semaphore = asyncio.Semaphore(capacity)
        self._in_use = 0
        self._peak_in_use = 0
        self._closed = False

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def peak_in_use(self) -> int:
        return self._peak_in_use

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Refuse new permits. Holders keep theirs until they exit."""
        self._closed = True

    async def acquire(self, label: str = "") -> None:
        if self._closed:
            raise LimiterClosedError(f"Limiter '{self.name}' is closed.")

        if self._semaphore.locked():
            logger.info(
                "%s: waiting for %s slot (%d/%d in use)",
                label or "task",
                self.name,
                self._in_use,
                self.capacity,
            )
        await self._semaphore.acquire()

        if self._closed:
            self._semaphore.release()
            raise LimiterClosedError(f"Limiter '{self.name}' is closed.")

        self._in_use += 1
        self._peak_in_use = max(self._peak_in_use, self._in_use)
        logger.debug("%s: acquired %s slot", label or "task", self.name)

    def release(self) -> None:
        self._in_use -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def permit(self, label: str = "") -> AsyncIterator[None]:
        """Hold one slot for the duration of the ``async with`` block."""
        await self.acquire(label)
        try:
            yield
        finally:
            self.release()
