"""FIFO permit pool bounding the number of requests in flight."""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from dataclasses import dataclass

from loadburst._internal.errors import RunCancelledError
from loadburst._internal.logging import get_logger

logger = get_logger("engine.governor")


@dataclass(frozen=True)
class Permit:
    """Right to keep one request in flight.

    Attributes:
        id: Sequence number, unique within one governor.
    """

    id: int


class ConcurrencyGovernor:
    """Async permit pool with strict first-come, first-served fairness.

    At most ``limit`` permits are outstanding at any time. A released
    permit is handed straight to the oldest waiter, so a later
    ``acquire()`` can never overtake an earlier one.

    Attributes:
        limit: Maximum number of outstanding permits.
    """

    def __init__(self, limit: int) -> None:
        """Initialize the pool.

        Args:
            limit: Maximum outstanding permits. Must be positive.

        Raises:
            ValueError: If limit is not positive.
        """
        if limit < 1:
            msg = f"limit must be positive, got {limit}"
            raise ValueError(msg)

        self.limit = limit
        self._outstanding: set[Permit] = set()
        self._waiters: deque[asyncio.Future[Permit]] = deque()
        self._ids = itertools.count()
        self._closed = False
        self._peak = 0

    @property
    def in_flight(self) -> int:
        """Number of permits currently held."""
        return len(self._outstanding)

    @property
    def peak_in_flight(self) -> int:
        """Highest number of permits ever held at once."""
        return self._peak

    @property
    def waiting(self) -> int:
        """Number of callers blocked in :meth:`acquire`."""
        return sum(1 for fut in self._waiters if not fut.done())

    @property
    def closed(self) -> bool:
        return self._closed

    async def acquire(self) -> Permit:
        """Wait for a free slot and return a permit.

        Returns:
            A permit that must be passed back to :meth:`release`.

        Raises:
            RunCancelledError: If the governor is closed before or while
                waiting.
        """
        if self._closed:
            msg = "Run cancelled; no new permits are granted"
            raise RunCancelledError(msg)

        if not self._waiters and len(self._outstanding) < self.limit:
            return self._grant()

        fut: asyncio.Future[Permit] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            return await fut
        except asyncio.CancelledError:
            # The permit may have been handed over just before cancellation.
            if fut.done() and not fut.cancelled() and fut.exception() is None:
                self.release(fut.result())
            raise
        finally:
            if fut in self._waiters:
                self._waiters.remove(fut)

    def release(self, permit: Permit) -> None:
        """Return a permit to the pool and wake the oldest waiter.

        Raises:
            ValueError: If the permit is not currently held.
        """
        try:
            self._outstanding.remove(permit)
        except KeyError:
            msg = f"Permit {permit.id} is not held"
            raise ValueError(msg) from None
        self._wake_waiters()

    def close(self) -> None:
        """Refuse further permits and fail every pending :meth:`acquire`."""
        if self._closed:
            return
        self._closed = True
        pending = 0
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_exception(RunCancelledError("Run cancelled while waiting for a permit"))
                pending += 1
        logger.debug("Governor closed: %d waiters rejected, %d in flight", pending, self.in_flight)

    def _grant(self) -> Permit:
        permit = Permit(next(self._ids))
        self._outstanding.add(permit)
        self._peak = max(self._peak, len(self._outstanding))
        return permit

    def _wake_waiters(self) -> None:
        while self._waiters and len(self._outstanding) < self.limit and not self._closed:
            fut = self._waiters.popleft()
            if fut.done():
                continue
            fut.set_result(self._grant())
