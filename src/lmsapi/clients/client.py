"""Thread-safe API client assembled from the transport core."""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Final, TextIO, TypeVar

import requests
from requests import Response
from structlog.stdlib import BoundLogger

from lmsapi.clients.client_exceptions import MalformedResponseError
from lmsapi.clients.http.pagination import Paginator
from lmsapi.clients.version import APIVariant, VersionProbe
from lmsapi.config.models.http import ClientConfig
from lmsapi.core.context import RequestContext
from lmsapi.core.http.api_client import QueryInput, RequestExecutor
from lmsapi.core.http.rate_limiter import TokenBucketLimiter
from lmsapi.core.http.retry import RetryPolicy
from lmsapi.core.http.types import Page, PaginationLinks, RateLimitInfo
from lmsapi.core.logging import LogEvents, UnifiedLogger

__all__ = ["Client", "RawResponse", "QUOTA_WARNING_THRESHOLDS"]

T = TypeVar("T")

QUOTA_WARNING_THRESHOLDS: Final[tuple[float, ...]] = (0.5, 0.2)
RAW_METHODS: Final[frozenset[str]] = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"})


@dataclass(frozen=True, slots=True)
class RawResponse:
    """Undecoded view of a response for endpoints without a typed wrapper."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    pagination: PaginationLinks = field(default_factory=PaginationLinks)


class Client:
    """Entry point used by resource services.

    One instance owns one rate limiter and one HTTP session and may be shared
    by many threads. The API variant is probed once during construction,
    except in dry-run mode where no request ever reaches the network.

    Example
    -------
    >>> with Client(ClientConfig(base_url="https://lms.example.com", token="t")) as client:
    ...     courses = client.get_all_pages("/api/v1/courses", dict)
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        session: requests.Session | None = None,
        logger: BoundLogger | None = None,
        dry_run_stream: TextIO | None = None,
    ) -> None:
        self.config = config
        self._log = logger or UnifiedLogger.get(__name__).bind(component="clients.client")
        self._state_lock = threading.Lock()
        self._rate_limit: RateLimitInfo | None = None
        self._quota_warned: set[float] = set()
        self._closed = False

        self._executor = RequestExecutor(
            config,
            limiter=TokenBucketLimiter(config.requests_per_second),
            retry_policy=RetryPolicy(config.retries),
            session=session,
            logger=self._log.bind(component="http_client"),
            on_response=self._observe_response,
            dry_run_stream=dry_run_stream,
        )
        self._paginator = Paginator(
            self._executor,
            max_pages=config.max_pages,
            max_results=config.max_results,
            logger=self._log.bind(component="clients.paginator"),
        )
        self._probe = VersionProbe(self._executor, logger=self._log.bind(component="clients.version"))
        if config.dry_run:
            self._variant = APIVariant.dry_run()
        elif config.probe_enabled:
            self._variant = self._probe.detect(RequestContext(config.probe_timeout_sec))
        else:
            self._variant = APIVariant.unknown()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop the limiter, release blocked callers and close the session."""

        with self._state_lock:
            if self._closed:
                return
            self._closed = True
        self._executor.close()
        self._log.info(LogEvents.CLIENT_SESSION_CLOSED, base_url=self.config.base_url)

    def __enter__(self) -> Client:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # JSON primitives
    # ------------------------------------------------------------------

    def get_json(
        self,
        path: str,
        into: Any = None,
        *,
        params: QueryInput = None,
        ctx: RequestContext | None = None,
    ) -> Any:
        return self._executor.execute("GET", path, into=into, params=params, ctx=ctx)

    def post_json(
        self,
        path: str,
        body: Any = None,
        into: Any = None,
        *,
        params: QueryInput = None,
        headers: Mapping[str, str] | None = None,
        ctx: RequestContext | None = None,
    ) -> Any:
        """POST ``body`` as JSON and decode the answer.

        Pass an ``Idempotency-Key`` header to allow the request to be resent
        after a transport failure.
        """

        return self._executor.execute(
            "POST", path, into=into, params=params, body=body, headers=headers, ctx=ctx
        )

    def put_json(
        self,
        path: str,
        body: Any = None,
        into: Any = None,
        *,
        params: QueryInput = None,
        headers: Mapping[str, str] | None = None,
        ctx: RequestContext | None = None,
    ) -> Any:
        return self._executor.execute(
            "PUT", path, into=into, params=params, body=body, headers=headers, ctx=ctx
        )

    def delete(
        self,
        path: str,
        into: Any = None,
        *,
        params: QueryInput = None,
        headers: Mapping[str, str] | None = None,
        ctx: RequestContext | None = None,
    ) -> Any:
        """DELETE ``path``; returns the decoded body or ``None`` when empty."""

        return self._executor.execute(
            "DELETE", path, into=into, params=params, headers=headers, ctx=ctx
        )

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    def get_all_pages(
        self,
        path: str,
        item_type: type[T] | Any = Any,
        *,
        params: QueryInput = None,
        ctx: RequestContext | None = None,
        limit: int | None = None,
    ) -> list[T]:
        """Collect every item of a paginated listing in page order."""

        return self._paginator.collect(path, item_type, params=params, ctx=ctx, limit=limit)

    def iter_pages(
        self,
        path: str,
        item_type: type[T] | Any = Any,
        *,
        params: QueryInput = None,
        ctx: RequestContext | None = None,
    ) -> Iterator[Page[T]]:
        return self._paginator.iter_pages(path, item_type, params=params, ctx=ctx)

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def request_raw(
        self,
        method: str,
        path: str,
        *,
        params: QueryInput = None,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        paginate: bool = False,
        ctx: RequestContext | None = None,
    ) -> RawResponse:
        """Call any endpoint and return status, headers and decoded body.

        With ``paginate`` a GET whose first page is a JSON array follows
        ``next`` links and returns the concatenated items; any other body is
        returned as-is.
        """

        method = method.upper()
        if method not in RAW_METHODS:
            msg = f"unsupported HTTP method: {method}"
            raise ValueError(msg)

        response = self._executor.send(
            method, path, params=params, body=body, headers=headers, ctx=ctx
        )
        try:
            first = self._raw_from(response)
        finally:
            response.close()

        if not (paginate and method == "GET" and isinstance(first.body, list)):
            return first
        if not first.pagination.has_next:
            return first

        next_path = self._executor.relative_path(first.pagination.next)
        if next_path is None:
            return first
        items: list[Any] = list(first.body)
        last_links = first.pagination
        for page in self._paginator.iter_pages(next_path, Any, ctx=ctx):
            items.extend(page.items)
            last_links = page.links
        return RawResponse(
            status_code=first.status_code,
            headers=first.headers,
            body=items,
            pagination=last_links,
        )

    def _raw_from(self, response: Response) -> RawResponse:
        body: Any = None
        if response.content:
            try:
                body = self._executor.decode(response)
            except MalformedResponseError:
                body = response.text
        return RawResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=body,
            pagination=PaginationLinks.from_headers(response.headers),
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def variant(self) -> APIVariant:
        return self._variant

    def supports_feature(self, feature: str) -> bool:
        """Return whether the detected variant offers ``feature``; warn when not."""

        supported = self._variant.supports_feature(feature)
        if not supported:
            self._log.warning(
                LogEvents.CLIENT_FEATURE_UNSUPPORTED,
                feature=feature,
                version=self._variant.raw,
            )
        return supported

    @property
    def rate_limit_info(self) -> RateLimitInfo | None:
        """Last quota reported by the server, or ``None`` before any response."""

        with self._state_lock:
            return self._rate_limit

    def _observe_response(self, response: Response) -> None:
        info = RateLimitInfo.from_headers(response.headers)
        if info is None:
            return
        fraction = info.fraction_remaining(self.config.quota_total)
        crossed: float | None = None
        with self._state_lock:
            self._rate_limit = info
            if fraction > QUOTA_WARNING_THRESHOLDS[0]:
                self._quota_warned.clear()
            for threshold in QUOTA_WARNING_THRESHOLDS:
                if fraction <= threshold and threshold not in self._quota_warned:
                    self._quota_warned.add(threshold)
                    crossed = threshold
        if crossed is not None:
            self._log.warning(
                LogEvents.CLIENT_QUOTA_WARNING,
                remaining=info.remaining,
                limit=info.limit or self.config.quota_total,
                fraction_remaining=round(fraction, 3),
                threshold=crossed,
            )
