from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from lmsapi.config.models.http import RetryConfig
from lmsapi.core.http.retry import RetryPolicy, RetryState
from lmsapi.core.http.types import PaginationLinks
from lmsapi.core.params import QueryParams

_RELS = ("current", "next", "prev", "first", "last")


@pytest.mark.unit
@given(
    initial=st.floats(min_value=0.0, max_value=5.0, allow_nan=False),
    ceiling=st.floats(min_value=0.0, max_value=60.0, allow_nan=False),
    attempts=st.integers(min_value=1, max_value=12),
)
def test_backoff_is_non_decreasing_and_capped(initial: float, ceiling: float, attempts: int) -> None:
    policy = RetryPolicy(RetryConfig(backoff_initial=initial, backoff_max=ceiling))

    delays = [policy.backoff(RetryState(attempt=n)) for n in range(1, attempts + 1)]

    assert all(0.0 <= delay <= ceiling for delay in delays)
    assert delays == sorted(delays)


@pytest.mark.unit
@given(
    pages=st.fixed_dictionaries({rel: st.integers(min_value=1, max_value=10_000) for rel in _RELS}),
    per_page=st.integers(min_value=1, max_value=100),
)
def test_link_header_relations_survive_parsing(pages: dict[str, int], per_page: int) -> None:
    base = "https://lms.example.com/api/v1/courses"
    header = ",".join(
        f'<{base}?page={page}&per_page={per_page}>; rel="{rel}"' for rel, page in pages.items()
    )

    links = PaginationLinks.from_header(header)

    for rel, page in pages.items():
        url = getattr(links, rel)
        assert PaginationLinks.page_number(url) == str(page)
        assert PaginationLinks.per_page(url) == str(per_page)


@pytest.mark.unit
@given(values=st.lists(st.text(alphabet="abcdefgh_", max_size=8), max_size=10))
def test_add_list_emits_one_pair_per_non_empty_value(values: list[str]) -> None:
    pairs = QueryParams().add_list("include", values).build()

    assert [value for _, value in pairs] == [value for value in values if value]
    assert all(key == "include[]" for key, _ in pairs)
