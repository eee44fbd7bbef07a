"""Value types shared by the executor, paginator and client."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Generic, TypeVar
from urllib.parse import parse_qs, urlparse

from requests.utils import parse_header_links

from lmsapi.core.http.retry import parse_retry_after

__all__ = ["Page", "PaginationLinks", "RateLimitInfo"]

T = TypeVar("T")

_LINK_RELS: tuple[str, ...] = ("current", "next", "prev", "first", "last")


@dataclass(frozen=True, slots=True)
class PaginationLinks:
    """Links parsed from an RFC 5988 ``Link`` header; missing ones are empty."""

    current: str = ""
    next: str = ""
    prev: str = ""
    first: str = ""
    last: str = ""

    @classmethod
    def from_header(cls, value: str | None) -> PaginationLinks:
        if not value or not value.strip():
            return cls()
        found: dict[str, str] = {}
        for link in parse_header_links(value):
            url = link.get("url", "").strip()
            for rel in link.get("rel", "").split():
                if rel in _LINK_RELS and url and rel not in found:
                    found[rel] = url
        return cls(**found)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str] | None) -> PaginationLinks:
        if not headers:
            return cls()
        return cls.from_header(headers.get("Link"))

    @property
    def has_next(self) -> bool:
        return bool(self.next)

    @property
    def has_prev(self) -> bool:
        return bool(self.prev)

    @staticmethod
    def page_number(url: str) -> str:
        """Return the ``page`` query value of ``url`` or an empty string."""

        values = parse_qs(urlparse(url).query).get("page")
        return values[0] if values else ""

    @staticmethod
    def per_page(url: str, default: str = "10") -> str:
        values = parse_qs(urlparse(url).query).get("per_page")
        return values[0] if values else default


@dataclass(frozen=True, slots=True)
class RateLimitInfo:
    """Quota headers reported by the server; informational only."""

    limit: float | None
    remaining: float
    reset: datetime | None = None

    @classmethod
    def from_headers(
        cls,
        headers: Mapping[str, str] | None,
        *,
        now: datetime | None = None,
    ) -> RateLimitInfo | None:
        """Return ``None`` when the response carries no quota header."""

        if not headers:
            return None
        remaining = _parse_float(headers.get("X-Rate-Limit-Remaining"))
        if remaining is None:
            return None
        limit = _parse_float(headers.get("X-Rate-Limit-Limit"))
        reset: datetime | None = None
        delay = parse_retry_after(headers)
        if delay is not None:
            reset = (now or datetime.now(timezone.utc)) + timedelta(seconds=delay)
        return cls(limit=limit, remaining=remaining, reset=reset)

    def fraction_remaining(self, quota_total: float) -> float:
        total = self.limit if self.limit else quota_total
        if total <= 0:
            return 1.0
        return self.remaining / total


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    """One decoded page of a listing."""

    items: list[T]
    links: PaginationLinks = field(default_factory=PaginationLinks)
    index: int = 0
    url: str = ""


def _parse_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value.strip())
    except ValueError:
        return None
