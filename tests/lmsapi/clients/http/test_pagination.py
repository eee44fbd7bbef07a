"""Tests for Link-header pagination."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
import responses
from pydantic import BaseModel

from lmsapi.clients.client_exceptions import (
    CancellationError,
    MalformedResponseError,
    StructuredError,
)
from lmsapi.clients.http.pagination import Paginator
from lmsapi.config.models.http import ClientConfig
from lmsapi.core.context import RequestContext
from lmsapi.core.http.api_client import RequestExecutor

COURSES = "https://lms.example.com/api/v1/courses"


class Course(BaseModel):
    id: int
    name: str


def _page_url(page: int) -> str:
    return f"{COURSES}?page={page}&per_page=10"


def _link(next_page: int | None, current: int) -> dict[str, str]:
    parts = [f'<{_page_url(current)}>; rel="current"']
    if next_page is not None:
        parts.append(f'<{_page_url(next_page)}>; rel="next"')
    parts.append(f'<{_page_url(1)}>; rel="first"')
    return {"Link": ",".join(parts)}


def _courses(start: int, count: int) -> list[dict[str, Any]]:
    return [{"id": start + offset, "name": f"Course {start + offset}"} for offset in range(count)]


def _register_three_pages(mocked: responses.RequestsMock) -> None:
    mocked.add(responses.GET, _page_url(1), json=_courses(1, 10), headers=_link(2, 1))
    mocked.add(responses.GET, _page_url(2), json=_courses(11, 10), headers=_link(3, 2))
    mocked.add(responses.GET, _page_url(3), json=_courses(21, 5), headers=_link(None, 3))


FIRST_PAGE_PARAMS = {"page": 1, "per_page": 10}


@pytest.mark.unit
class TestPaginator:
    def test_collects_all_pages_in_order(
        self, executor: RequestExecutor, mocked_responses: responses.RequestsMock
    ) -> None:
        _register_three_pages(mocked_responses)

        items = Paginator(executor).collect("/api/v1/courses", Course, params=FIRST_PAGE_PARAMS)

        assert len(items) == 25
        assert [item.id for item in items] == list(range(1, 26))
        assert all(isinstance(item, Course) for item in items)
        assert len(mocked_responses.calls) == 3

    def test_iter_pages_yields_page_metadata(
        self, executor: RequestExecutor, mocked_responses: responses.RequestsMock
    ) -> None:
        _register_three_pages(mocked_responses)

        pages = list(Paginator(executor).iter_pages("/api/v1/courses", dict, params=FIRST_PAGE_PARAMS))

        assert [page.index for page in pages] == [0, 1, 2]
        assert [len(page.items) for page in pages] == [10, 10, 5]
        assert pages[0].links.has_next
        assert not pages[-1].links.has_next

    def test_cyclic_next_link_terminates(
        self, executor: RequestExecutor, mocked_responses: responses.RequestsMock
    ) -> None:
        mocked_responses.add(responses.GET, _page_url(1), json=_courses(1, 10), headers=_link(2, 1))
        mocked_responses.add(responses.GET, _page_url(2), json=_courses(11, 10), headers=_link(1, 2))

        items = Paginator(executor).collect("/api/v1/courses", Course, params=FIRST_PAGE_PARAMS)

        assert len(items) == 20
        assert len(mocked_responses.calls) == 2

    def test_max_pages_backstop(
        self, executor: RequestExecutor, mocked_responses: responses.RequestsMock
    ) -> None:
        _register_three_pages(mocked_responses)

        items = Paginator(executor, max_pages=2).collect(
            "/api/v1/courses", Course, params=FIRST_PAGE_PARAMS
        )

        assert len(items) == 20
        assert len(mocked_responses.calls) == 2

    def test_limit_truncates_and_stops_fetching(
        self, executor: RequestExecutor, mocked_responses: responses.RequestsMock
    ) -> None:
        _register_three_pages(mocked_responses)

        items = Paginator(executor).collect(
            "/api/v1/courses", Course, params=FIRST_PAGE_PARAMS, limit=12
        )

        assert [item.id for item in items] == list(range(1, 13))
        assert len(mocked_responses.calls) == 2

    def test_max_results_default_limit(
        self, executor: RequestExecutor, mocked_responses: responses.RequestsMock
    ) -> None:
        _register_three_pages(mocked_responses)

        items = Paginator(executor, max_results=5).collect(
            "/api/v1/courses", Course, params=FIRST_PAGE_PARAMS
        )

        assert len(items) == 5
        assert len(mocked_responses.calls) == 1

    def test_error_mid_traversal_returns_no_partial_result(
        self, executor: RequestExecutor, mocked_responses: responses.RequestsMock
    ) -> None:
        mocked_responses.add(responses.GET, _page_url(1), json=_courses(1, 10), headers=_link(2, 1))
        mocked_responses.add(
            responses.GET,
            _page_url(2),
            status=403,
            json={"errors": [{"message": "user not authorized to perform that action"}]},
        )

        with pytest.raises(StructuredError) as exc_info:
            Paginator(executor).collect("/api/v1/courses", Course, params=FIRST_PAGE_PARAMS)

        assert exc_info.value.status_code == 403

    def test_non_array_page_is_malformed(
        self, executor: RequestExecutor, mocked_responses: responses.RequestsMock
    ) -> None:
        mocked_responses.add(responses.GET, COURSES, json={"courses": []})

        with pytest.raises(MalformedResponseError, match="JSON array"):
            Paginator(executor).collect("/api/v1/courses")

    def test_foreign_host_next_link_is_not_followed(
        self, executor: RequestExecutor, mocked_responses: responses.RequestsMock
    ) -> None:
        mocked_responses.add(
            responses.GET,
            COURSES,
            json=_courses(1, 3),
            headers={"Link": '<https://evil.example.net/api/v1/courses?page=2>; rel="next"'},
        )

        items = Paginator(executor).collect("/api/v1/courses")

        assert len(items) == 3
        assert len(mocked_responses.calls) == 1

    def test_only_first_request_carries_params(
        self, executor: RequestExecutor, mocked_responses: responses.RequestsMock
    ) -> None:
        mocked_responses.add(
            responses.GET,
            f"{COURSES}?include%5B%5D=term",
            json=_courses(1, 1),
            headers={"Link": f'<{_page_url(2)}>; rel="next"'},
        )
        mocked_responses.add(responses.GET, _page_url(2), json=_courses(2, 1))

        items = Paginator(executor).collect("/api/v1/courses", params={"include": ["term"]})

        assert len(items) == 2
        assert mocked_responses.calls[1].request.url == _page_url(2)

    def test_cancellation_between_pages(
        self, executor: RequestExecutor, mocked_responses: responses.RequestsMock
    ) -> None:
        _register_three_pages(mocked_responses)
        ctx = RequestContext()
        pages = Paginator(executor).iter_pages(
            "/api/v1/courses", Course, params=FIRST_PAGE_PARAMS, ctx=ctx
        )

        first = next(pages)
        ctx.cancel()

        assert len(first.items) == 10
        with pytest.raises(CancellationError):
            next(pages)
        assert len(mocked_responses.calls) == 1

    def test_invalid_max_pages(self, executor: RequestExecutor) -> None:
        with pytest.raises(ValueError, match="max_pages must be > 0"):
            Paginator(executor, max_pages=0)


@pytest.mark.unit
class TestMasqueradedPagination:
    def test_self_linking_next_with_as_user_id_is_fetched_once(
        self,
        make_config: Callable[..., ClientConfig],
        mocked_responses: responses.RequestsMock,
    ) -> None:
        next_url = f"{COURSES}?page=2&as_user_id=5"
        mocked_responses.add(
            responses.GET,
            f"{COURSES}?as_user_id=5",
            json=_courses(1, 2),
            headers={"Link": f'<{next_url}>; rel="next"'},
        )
        mocked_responses.add(
            responses.GET,
            next_url,
            json=_courses(3, 2),
            headers={"Link": f'<{next_url}>; rel="next"'},
        )
        executor = RequestExecutor(make_config(as_user_id=5, max_pages=20))

        items = Paginator(executor, max_pages=20).collect("/api/v1/courses", Course)

        assert [item.id for item in items] == [1, 2, 3, 4]
        assert [call.request.url for call in mocked_responses.calls] == [
            f"{COURSES}?as_user_id=5",
            next_url,
        ]

    def test_next_link_without_as_user_id_gets_it_added(
        self,
        make_config: Callable[..., ClientConfig],
        mocked_responses: responses.RequestsMock,
    ) -> None:
        mocked_responses.add(
            responses.GET,
            f"{COURSES}?as_user_id=5",
            json=_courses(1, 1),
            headers={"Link": f'<{COURSES}?page=2>; rel="next"'},
        )
        mocked_responses.add(responses.GET, f"{COURSES}?page=2&as_user_id=5", json=_courses(2, 1))
        executor = RequestExecutor(make_config(as_user_id=5))

        items = Paginator(executor).collect("/api/v1/courses", Course)

        assert len(items) == 2
        assert mocked_responses.calls[1].request.url == f"{COURSES}?page=2&as_user_id=5"
