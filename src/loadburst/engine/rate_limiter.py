"""Token-bucket rate limiter capping how fast attempts are started."""

from __future__ import annotations

import asyncio
import time


class TokenBucketRateLimiter:
    """Async token bucket that lets callers borrow against future tokens.

    Each ``acquire()`` takes one token immediately, driving the balance
    negative when the bucket is empty, then sleeps until the refill has
    paid the debt back. Callers are therefore released in call order,
    spaced ``1 / rate`` seconds apart once the initial burst is spent.

    Attributes:
        rate: Tokens added per second.
        capacity: Maximum stored tokens (burst size).
    """

    def __init__(self, rate: float, capacity: float | None = None) -> None:
        """Initialize a full bucket.

        Args:
            rate: Tokens per second. Must be positive.
            capacity: Burst size. Defaults to one token, so a run starts
                at the configured rate with no initial burst.

        Raises:
            ValueError: If rate or capacity is not positive.
        """
        if rate <= 0:
            msg = f"rate must be positive, got {rate}"
            raise ValueError(msg)
        if capacity is not None and capacity <= 0:
            msg = f"capacity must be positive, got {capacity}"
            raise ValueError(msg)

        self.rate = rate
        self.capacity = capacity if capacity is not None else 1.0
        self._tokens = self.capacity
        self._last_refill = time.monotonic()

    @property
    def available_tokens(self) -> float:
        """Current balance; negative while callers are queued."""
        self._refill()
        return self._tokens

    async def acquire(self) -> None:
        """Take one token, sleeping until the bucket can cover it."""
        self._refill()
        self._tokens -= 1.0
        if self._tokens < 0:
            await asyncio.sleep(-self._tokens / self.rate)

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(self.capacity, self._tokens + (now - self._last_refill) * self.rate)
        self._last_refill = now
