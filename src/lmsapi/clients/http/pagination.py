"""Link-header pagination over the request executor."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, TypeVar
from urllib.parse import parse_qsl, urlencode, urlparse

from structlog.stdlib import BoundLogger

from lmsapi.clients.client_exceptions import MalformedResponseError
from lmsapi.core.context import RequestContext
from lmsapi.core.http.api_client import QueryInput, RequestExecutor
from lmsapi.core.http.types import Page, PaginationLinks
from lmsapi.core.logging import LogEvents, UnifiedLogger

__all__ = ["Paginator"]

T = TypeVar("T")


class Paginator:
    """Walk ``rel="next"`` links and accumulate items in page order.

    The traversal never follows a link it has already visited and stops after
    ``max_pages`` pages, so a server that keeps returning the same ``next``
    URL cannot trap the caller in a loop.
    """

    def __init__(
        self,
        executor: RequestExecutor,
        *,
        max_pages: int = 1000,
        max_results: int = 0,
        logger: BoundLogger | None = None,
    ) -> None:
        if max_pages <= 0:
            msg = "max_pages must be > 0"
            raise ValueError(msg)
        self._executor = executor
        self.max_pages = max_pages
        self.max_results = max_results
        self._log = logger or UnifiedLogger.get(__name__).bind(component="clients.paginator")

    def iter_pages(
        self,
        path: str,
        item_type: type[T] | Any = Any,
        *,
        params: QueryInput = None,
        ctx: RequestContext | None = None,
    ) -> Iterator[Page[T]]:
        """Yield one :class:`Page` per response, lazily."""

        visited: set[str] = set()
        next_endpoint: str | None = path
        pending_params = params
        page_index = 0

        while next_endpoint:
            if ctx is not None:
                ctx.check()
            if page_index >= self.max_pages:
                self._log.warning(
                    LogEvents.HTTP_PAGINATOR_MAX_REACHED,
                    endpoint=path,
                    max_pages=self.max_pages,
                )
                return
            visited.add(self._visit_key(self._executor.prepare_url(next_endpoint, pending_params)))
            response = self._executor.send("GET", next_endpoint, params=pending_params, ctx=ctx)
            try:
                payload = self._executor.decode(response)
                links = PaginationLinks.from_headers(response.headers)
                url = response.url
                status_code = response.status_code
            finally:
                response.close()

            if payload is None:
                payload = []
            if not isinstance(payload, list):
                raise MalformedResponseError(
                    f"Expected a JSON array page from {url!s}, received {type(payload).__name__}",
                    status_code=status_code,
                    url=url,
                )
            items = self._executor.validate(
                payload, list[item_type], url=url, status_code=status_code
            )
            self._log.info(
                LogEvents.HTTP_PAGINATOR_PAGE_FETCHED,
                endpoint=next_endpoint,
                page_index=page_index,
                status_code=status_code,
                items_count=len(items),
            )
            yield Page(items=items, links=links, index=page_index, url=url)

            pending_params = None
            page_index += 1
            next_endpoint = self._resolve_next(links, visited)

    def collect(
        self,
        path: str,
        item_type: type[T] | Any = Any,
        *,
        params: QueryInput = None,
        ctx: RequestContext | None = None,
        limit: int | None = None,
    ) -> list[T]:
        """Return every item from every page, or raise; never a partial list.

        ``limit`` (falling back to the paginator's ``max_results``) truncates
        the result and stops fetching once reached; ``0`` means unlimited.
        """

        cap = limit if limit is not None else self.max_results
        records: list[T] = []
        for page in self.iter_pages(path, item_type, params=params, ctx=ctx):
            records.extend(page.items)
            if cap and len(records) >= cap:
                self._log.info(
                    LogEvents.HTTP_PAGINATOR_LIMIT_REACHED,
                    endpoint=path,
                    limit=cap,
                    page_index=page.index,
                )
                return records[:cap]
        return records

    def _resolve_next(self, links: PaginationLinks, visited: set[str]) -> str | None:
        if not links.has_next:
            return None
        candidate = self._executor.relative_path(links.next)
        if candidate is None:
            self._log.warning(
                LogEvents.HTTP_PAGINATOR_NEXT_RESOLVED,
                next_link=links.next,
                accepted=False,
                reason="foreign_host",
            )
            return None
        if self._visit_key(self._executor.prepare_url(candidate)) in visited:
            self._log.warning(
                LogEvents.HTTP_PAGINATOR_CYCLE_DETECTED,
                next_link=links.next,
                visited=len(visited),
            )
            return None
        self._log.debug(
            LogEvents.HTTP_PAGINATOR_NEXT_RESOLVED,
            next_link=links.next,
            next_endpoint=candidate,
            accepted=True,
        )
        return candidate

    @staticmethod
    def _visit_key(url: str) -> str:
        parsed = urlparse(url)
        query = sorted(parse_qsl(parsed.query, keep_blank_values=True))
        return f"{parsed.netloc}{parsed.path or '/'}?{urlencode(query)}"
