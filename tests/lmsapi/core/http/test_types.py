"""Tests for Link header parsing and quota header parsing."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from requests.structures import CaseInsensitiveDict

from lmsapi.core.http.types import PaginationLinks, RateLimitInfo

LINK_HEADER = (
    '<https://lms.example.com/api/v1/courses?page=2&per_page=10>; rel="current",'
    '<https://lms.example.com/api/v1/courses?page=3&per_page=10>; rel="next",'
    '<https://lms.example.com/api/v1/courses?page=1&per_page=10>; rel="prev",'
    '<https://lms.example.com/api/v1/courses?page=1&per_page=10>; rel="first",'
    '<https://lms.example.com/api/v1/courses?page=5&per_page=10>; rel="last"'
)


@pytest.mark.unit
class TestPaginationLinks:
    def test_parses_all_relations(self) -> None:
        links = PaginationLinks.from_header(LINK_HEADER)

        assert links.current.endswith("page=2&per_page=10")
        assert links.next.endswith("page=3&per_page=10")
        assert links.prev.endswith("page=1&per_page=10")
        assert links.first == links.prev
        assert links.last.endswith("page=5&per_page=10")
        assert links.has_next and links.has_prev

    @pytest.mark.parametrize("header", [None, "", "   ", "garbage"])
    def test_missing_or_malformed_header_yields_empty_links(self, header: str | None) -> None:
        links = PaginationLinks.from_header(header)

        assert not links.has_next
        assert links.current == ""

    def test_from_headers_is_case_insensitive_with_requests_headers(self) -> None:
        headers = CaseInsensitiveDict({"link": LINK_HEADER})

        assert PaginationLinks.from_headers(headers).has_next

    def test_page_helpers(self) -> None:
        url = "https://lms.example.com/api/v1/courses?page=3&per_page=50"

        assert PaginationLinks.page_number(url) == "3"
        assert PaginationLinks.per_page(url) == "50"
        assert PaginationLinks.per_page("https://lms.example.com/api/v1/courses") == "10"


@pytest.mark.unit
class TestRateLimitInfo:
    def test_absent_header(self) -> None:
        assert RateLimitInfo.from_headers({"Content-Type": "application/json"}) is None

    def test_parses_remaining_limit_and_reset(self) -> None:
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)

        info = RateLimitInfo.from_headers(
            {
                "X-Rate-Limit-Remaining": "350.5",
                "X-Rate-Limit-Limit": "700",
                "Retry-After": "30",
            },
            now=now,
        )

        assert info is not None
        assert info.remaining == 350.5
        assert info.limit == 700.0
        assert info.reset == now + timedelta(seconds=30)
        assert info.fraction_remaining(1000) == pytest.approx(0.5007, abs=1e-3)

    def test_fraction_uses_configured_total_without_limit(self) -> None:
        info = RateLimitInfo(limit=None, remaining=140.0)

        assert info.fraction_remaining(700) == pytest.approx(0.2)
