"""Public exceptions raised by the lmsapi client core.

The module defines a stable contract for resource services built on top of
the core. Callers import error types and predicates only from here, so they
never depend on ``requests`` exceptions directly; transport failures arrive
as :class:`NetworkError` with the original exception chained as ``__cause__``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

__all__ = [
    "LMSAPIError",
    "NetworkError",
    "StructuredError",
    "ErrorDetail",
    "MalformedResponseError",
    "CancellationError",
    "is_rate_limit_error",
    "is_auth_error",
    "is_not_found_error",
    "is_forbidden_error",
    "is_server_error",
]


class LMSAPIError(Exception):
    """Base class for every error raised by the client core."""


class NetworkError(LMSAPIError):
    """No HTTP response was received (DNS, connect, TLS, read timeout)."""

    def __init__(self, message: str, *, method: str | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.method = method
        self.url = url


class MalformedResponseError(LMSAPIError):
    """A 2xx response whose body could not be decoded into the expected shape."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.body = body


class CancellationError(LMSAPIError):
    """The caller cancelled the operation or its deadline expired."""


@dataclass(frozen=True, slots=True)
class ErrorDetail:
    """One ``(message, code)`` pair reported by the server."""

    message: str
    code: str | None = None


class StructuredError(LMSAPIError):
    """A non-2xx response classified into an actionable error."""

    def __init__(
        self,
        status_code: int,
        errors: Sequence[ErrorDetail] = (),
        *,
        error_report_id: int | None = None,
        suggestion: str = "",
        docs_url: str = "",
        method: str | None = None,
        url: str | None = None,
    ) -> None:
        if not status_code:
            msg = "StructuredError requires a non-zero status code"
            raise ValueError(msg)
        self.status_code = int(status_code)
        self.errors: tuple[ErrorDetail, ...] = tuple(errors)
        self.error_report_id = error_report_id
        self.suggestion = suggestion
        self.docs_url = docs_url
        self.method = method
        self.url = url
        super().__init__(self._render())

    @property
    def message(self) -> str:
        """Return the first server-reported message, or an empty string."""

        return self.errors[0].message if self.errors else ""

    @property
    def messages(self) -> list[str]:
        return [detail.message for detail in self.errors]

    def _render(self) -> str:
        text = self.message or f"HTTP {self.status_code}"
        if self.suggestion:
            text += f"\n\nSuggestion: {self.suggestion}"
        if self.docs_url:
            text += f"\nDocs: {self.docs_url}"
        return text

    def __repr__(self) -> str:
        return (
            f"StructuredError(status_code={self.status_code}, "
            f"errors={list(self.errors)!r}, error_report_id={self.error_report_id!r})"
        )


def _find_structured(error: BaseException | None) -> StructuredError | None:
    seen: set[int] = set()
    current = error
    while current is not None and id(current) not in seen:
        if isinstance(current, StructuredError):
            return current
        seen.add(id(current))
        current = current.__cause__
    return None


def _has_status(error: BaseException | None, status_code: int) -> bool:
    structured = _find_structured(error)
    return structured is not None and structured.status_code == status_code


def is_rate_limit_error(error: BaseException | None) -> bool:
    """Return ``True`` when ``error`` is (or wraps) a 429 :class:`StructuredError`."""

    return _has_status(error, 429)


def is_auth_error(error: BaseException | None) -> bool:
    """Return ``True`` when ``error`` is (or wraps) a 401 :class:`StructuredError`."""

    return _has_status(error, 401)


def is_not_found_error(error: BaseException | None) -> bool:
    """Return ``True`` when ``error`` is (or wraps) a 404 :class:`StructuredError`."""

    return _has_status(error, 404)


def is_forbidden_error(error: BaseException | None) -> bool:
    return _has_status(error, 403)


def is_server_error(error: BaseException | None) -> bool:
    structured = _find_structured(error)
    return structured is not None and 500 <= structured.status_code <= 599
