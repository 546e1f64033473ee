"""Token bucket rate limiter shared by every fetch on an event loop."""

import asyncio
import time
import weakref
from typing import Optional


class TokenBucket:
    """Token bucket algorithm implementation for rate limiting.

    The bucket starts full and refills at a constant rate.
    Each request consumes one token. If no tokens are available,
    the request waits until tokens are refilled.
    """

    def __init__(self, rate: float, capacity: float):
        """Initialize token bucket.

        Args:
            rate: Tokens per second (e.g., 1.0 = 60 RPM)
            capacity: Maximum tokens in bucket (burst capacity)
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate  # tokens per second
        self.capacity = capacity
        self.tokens = capacity
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    @classmethod
    def per_minute(cls, rpm: int) -> "TokenBucket":
        """Build a bucket from a requests-per-minute budget.

        Capacity allows small bursts (10% of RPM, min 2).
        """
        return cls(rate=rpm / 60.0, capacity=max(2.0, rpm / 10.0))

    def _refill(self) -> None:
        """Refill tokens based on elapsed time since last refill."""
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens from the bucket, waiting if necessary.

        Args:
            tokens: Number of tokens to acquire (default 1.0)
        """
        async with self._lock:
            while True:
                self._refill()
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                # Calculate wait time until we have enough tokens
                wait_time = (tokens - self.tokens) / self.rate
                await asyncio.sleep(wait_time)


# One bucket per event loop; the bucket's asyncio.Lock belongs to that loop
_fetch_buckets: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, TokenBucket]" = weakref.WeakKeyDictionary()


def get_fetch_rate_limiter(rpm: int) -> Optional[TokenBucket]:
    """Get the bucket guarding the remote fetch service for the running loop.

    Every monitor pipeline on the loop draws from this one bucket, so the
    budget holds for the whole batch rather than per monitor. Returns None
    when rpm <= 0.

    Raises:
        RuntimeError: If called outside a running event loop
    """
    if rpm <= 0:
        return None
    loop = asyncio.get_running_loop()
    bucket = _fetch_buckets.get(loop)
    if bucket is None:
        bucket = TokenBucket.per_minute(rpm)
        _fetch_buckets[loop] = bucket
    return bucket
