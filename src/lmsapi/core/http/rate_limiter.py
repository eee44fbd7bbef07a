"""Client-side token bucket bounding the aggregate outbound request rate."""

from __future__ import annotations

import random
import threading
import time
from typing import Final

from lmsapi.clients.client_exceptions import CancellationError
from lmsapi.core.context import RequestContext

__all__ = ["TokenBucketLimiter"]

_CLOSE_POLL_INTERVAL: Final[float] = 0.05


class TokenBucketLimiter:
    """Token bucket refilled at ``rate_per_second``.

    ``capacity`` bounds the burst size and defaults to the rate (at least one
    token).

    Tokens are refilled lazily from the monotonic clock on every call, so the
    limiter owns no background thread. A rate of ``0`` (or ``None``) disables
    throttling: :meth:`acquire` then returns immediately.
    """

    def __init__(
        self,
        rate_per_second: float | None,
        *,
        capacity: float | None = None,
        jitter: bool = False,
    ) -> None:
        rate = float(rate_per_second or 0.0)
        if rate < 0:
            msg = "rate_per_second must be >= 0"
            raise ValueError(msg)
        self.rate = rate
        if capacity is not None and capacity < 1:
            msg = "capacity must be >= 1"
            raise ValueError(msg)
        if rate > 0:
            self.capacity = float(capacity) if capacity is not None else max(rate, 1.0)
        else:
            self.capacity = 0.0
        self.jitter = jitter
        self._tokens = self.capacity
        self._last_refill = time.monotonic()
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._jitter_max = 1.0 / rate if rate > 0 else 0.0

    @property
    def unlimited(self) -> bool:
        return self.rate <= 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def acquire(self, ctx: RequestContext | None = None) -> float:
        """Block until a token is available and return the seconds waited.

        Raises
        ------
        CancellationError
            If ``ctx`` is cancelled or expires, or the limiter is closed,
            before a token becomes available. No token is consumed.
        """

        if ctx is not None:
            ctx.check()
        if self.unlimited:
            self._raise_if_closed()
            return 0.0

        waited = 0.0
        while True:
            with self._lock:
                self._raise_if_closed()
                self._refill(time.monotonic())
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return waited
                sleep_for = (1.0 - self._tokens) / self.rate
            if self.jitter:
                sleep_for += random.uniform(0.0, self._jitter_max)
            waited += self._sleep(min(sleep_for, _CLOSE_POLL_INTERVAL), ctx)

    def try_acquire(self) -> bool:
        """Take a token without blocking; return ``False`` when none is available."""

        if self.unlimited:
            return not self.closed
        with self._lock:
            if self.closed:
                return False
            self._refill(time.monotonic())
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    @property
    def available_tokens(self) -> float:
        """Return the current bucket level (``inf`` when unlimited)."""

        if self.unlimited:
            return float("inf")
        with self._lock:
            self._refill(time.monotonic())
            return self._tokens

    def close(self) -> None:
        """Stop handing out tokens and release every blocked waiter."""

        self._closed.set()

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
            self._last_refill = now

    def _raise_if_closed(self) -> None:
        if self.closed:
            raise CancellationError("rate limiter closed")

    def _sleep(self, duration: float, ctx: RequestContext | None) -> float:
        start = time.monotonic()
        if ctx is not None:
            ctx.wait(duration)
        else:
            self._closed.wait(duration)
        return time.monotonic() - start
