"""Cancellation and deadline signal shared by every blocking call."""

from __future__ import annotations

import threading
import time

from lmsapi.clients.client_exceptions import CancellationError

__all__ = ["RequestContext"]


class RequestContext:
    """Caller-owned cancellation token with an optional deadline.

    One context may be shared by many threads; cancelling it wakes every
    waiter blocked in :meth:`wait`.

    Parameters
    ----------
    timeout:
        Seconds from now after which the context counts as expired.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self._reason = "operation cancelled"

    @classmethod
    def background(cls) -> RequestContext:
        """Return a fresh context that is never cancelled on its own."""

        return cls()

    def cancel(self, reason: str | None = None) -> None:
        if reason:
            self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> float | None:
        """Return seconds left before the deadline, ``None`` when unbounded."""

        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def check(self) -> None:
        """Raise :class:`CancellationError` if the context is cancelled or expired."""

        if self.cancelled:
            raise CancellationError(self._reason)
        if self.expired:
            raise CancellationError("deadline exceeded")

    def wait(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first; raise on cancellation.

        A wait that would outlast the deadline stops at the deadline and
        raises immediately.
        """

        self.check()
        if seconds <= 0:
            return
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            self.check()
            raise CancellationError("deadline exceeded")
        if self._event.wait(seconds):
            raise CancellationError(self._reason)
