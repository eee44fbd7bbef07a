"""Registry of structured logging event identifiers."""

from __future__ import annotations

from enum import Enum, auto
from typing import Any

from structlog.stdlib import BoundLogger

__all__ = ["LogEvents", "emit"]


class LogEvents(str, Enum):
    """Strongly typed registry of UnifiedLogger events."""

    @staticmethod
    def _generate_next_value_(name: str, start: int, count: int, _last_values: list[str]) -> str:
        """Produce a dotted event identifier based on enum member naming."""
        parts = name.lower().split("_")
        namespace = parts[0] if parts else "event"
        suffix = parts[-1] if len(parts) > 1 else "event"
        action_parts = parts[1:-1] if len(parts) > 2 else []
        if not action_parts:
            action_parts = ["event"]
        action = ".".join(action_parts)
        return ".".join((namespace, action, suffix))

    def __str__(self) -> str:
        return str(self.value)

    HTTP_RATE_LIMITER_WAIT = auto()
    HTTP_REQUEST_COMPLETED = auto()
    HTTP_REQUEST_EXCEPTION = auto()
    HTTP_REQUEST_FAILED = auto()
    HTTP_REQUEST_RETRY = auto()
    HTTP_REQUEST_CANCELLED = auto()
    HTTP_RESPONSE_MALFORMED = auto()
    HTTP_RESOLVE_URL = auto()
    HTTP_REQUEST_DRY_RUN = auto()
    HTTP_PAGINATOR_PAGE_FETCHED = auto()
    HTTP_PAGINATOR_NEXT_RESOLVED = auto()
    HTTP_PAGINATOR_CYCLE_DETECTED = auto()
    HTTP_PAGINATOR_MAX_REACHED = auto()
    HTTP_PAGINATOR_LIMIT_REACHED = auto()
    CLIENT_VERSION_DETECTED = auto()
    CLIENT_VERSION_FALLBACK = auto()
    CLIENT_QUOTA_WARNING = auto()
    CLIENT_SESSION_CLOSED = auto()
    CLIENT_FEATURE_UNSUPPORTED = auto()


def emit(logger: BoundLogger, event: str | LogEvents, **fields: Any) -> None:
    """Send an event via ``BoundLogger`` without mutating the provided fields."""

    message = event.value if isinstance(event, LogEvents) else event
    logger.info(message, **fields)
