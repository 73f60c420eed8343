"""Bound on simultaneous outbound signing requests."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


class ConcurrencyGate:
    """Counting semaphore that also tracks how many permits are in use.

    Waiters are not served in any guaranteed order. Prefer ``slot()`` over
    bare ``acquire()``/``release()`` so the permit is returned on every exit
    path.
    """

    def __init__(self, max_concurrent: int):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._max = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._active = 0
        self._peak = 0

    @property
    def max_concurrent(self) -> int:
        return self._max

    @property
    def active(self) -> int:
        """Permits currently held."""
        return self._active

    @property
    def peak(self) -> int:
        """Highest number of permits held at once since creation."""
        return self._peak

    async def acquire(self) -> None:
        """Suspend until a permit is free, then take it."""
        if self._semaphore.locked():
            logger.debug("gate_waiting", extra={"active": self._active, "max": self._max})
        await self._semaphore.acquire()
        self._active += 1
        self._peak = max(self._peak, self._active)

    def release(self) -> None:
        """Return a permit taken with ``acquire()``."""
        if self._active == 0:
            raise RuntimeError("release() called without a matching acquire()")
        self._active -= 1
        self._semaphore.release()

    @contextlib.asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a permit for the duration of the ``async with`` block."""
        await self.acquire()
        try:
            yield
        finally:
            self.release()
