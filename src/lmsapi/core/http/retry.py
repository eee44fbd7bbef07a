"""Retry eligibility and backoff schedule for the request executor."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from lmsapi.config.models.http import RetryConfig

__all__ = ["RetryPolicy", "RetryState", "parse_retry_after", "IDEMPOTENCY_KEY_HEADER"]

IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"


def _current_utc_time() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class RetryState:
    attempt: int
    status_code: int | None = None
    retry_after: float | None = None


def parse_retry_after(headers: Mapping[str, str] | None) -> float | None:
    """Return the server's reset hint in seconds, if any.

    ``Retry-After`` accepts delta-seconds or an HTTP date; ``X-Rate-Limit-Reset``
    accepts delta-seconds or a Unix timestamp.
    """

    if not headers:
        return None
    retry_after = _parse_http_delay(headers.get("Retry-After"))
    if retry_after is not None:
        return retry_after
    return _parse_reset(headers.get("X-Rate-Limit-Reset"))


def _parse_http_delay(value: str | None) -> float | None:
    if not value:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    delta = (parsed - _current_utc_time()).total_seconds()
    return max(delta, 0.0)


def _parse_reset(value: str | None) -> float | None:
    if not value:
        return None
    try:
        number = float(value.strip())
    except ValueError:
        return None
    # Values this large are epoch timestamps rather than relative delays.
    if number > 1_000_000_000:
        return max(number - _current_utc_time().timestamp(), 0.0)
    return max(number, 0.0)


class RetryPolicy:
    """Decide whether a failed attempt is retried and how long to wait.

    Retryable statuses are retried for every method: a 429 or 50x gateway
    answer means the server refused or never processed the request. Transport
    failures (no response at all) are ambiguous for writes, so they are only
    retried for idempotent methods or requests carrying an
    ``Idempotency-Key`` header.
    """

    def __init__(self, config: RetryConfig | None = None) -> None:
        self.config = config or RetryConfig()
        self.max_attempts = int(self.config.max_attempts)
        self.network_attempts = int(self.config.network_attempts)
        self._statuses = frozenset(self.config.statuses)
        self._idempotent = frozenset(self.config.idempotent_methods)

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in self._statuses

    def should_retry_status(
        self, status_code: int, attempt: int, *, max_attempts: int | None = None
    ) -> bool:
        limit = max_attempts or self.max_attempts
        return self.is_retryable_status(status_code) and attempt < limit

    def allows_network_retry(self, method: str, headers: Mapping[str, str] | None = None) -> bool:
        if method.upper() in self._idempotent:
            return True
        if headers:
            return any(key.lower() == IDEMPOTENCY_KEY_HEADER.lower() for key in headers)
        return False

    def should_retry_network(
        self,
        method: str,
        attempt: int,
        headers: Mapping[str, str] | None = None,
        *,
        max_attempts: int | None = None,
    ) -> bool:
        """``max_attempts`` can only lower the configured network attempt budget."""

        limit = min(max_attempts or self.network_attempts, self.network_attempts)
        return attempt < limit and self.allows_network_retry(method, headers)

    def backoff(self, state: RetryState) -> float:
        """Return the delay before the next attempt.

        A server reset hint wins over the exponential schedule but is still
        capped by ``backoff_max``.
        """

        ceiling = float(self.config.backoff_max)
        if state.retry_after is not None:
            return min(state.retry_after, ceiling)
        attempt_index = max(state.attempt - 1, 0)
        delay = float(self.config.backoff_initial) * (2**attempt_index)
        return min(delay, ceiling)
