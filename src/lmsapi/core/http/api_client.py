"""Request executor with rate limiting, retries and response classification."""

from __future__ import annotations

import sys
import time
from collections.abc import Callable, Mapping, Sequence
from functools import lru_cache
from typing import Any, TextIO, TypeVar, overload
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse
from uuid import uuid4

import requests
from pydantic import BaseModel, TypeAdapter, ValidationError
from requests import Response
from requests.exceptions import RequestException
from structlog.stdlib import BoundLogger

from lmsapi.clients.client_exceptions import (
    CancellationError,
    MalformedResponseError,
    NetworkError,
)
from lmsapi.config.models.http import ClientConfig
from lmsapi.core.context import RequestContext
from lmsapi.core.http.dry_run import build_dry_run_response, render_curl
from lmsapi.core.http.error_classifier import classify_response
from lmsapi.core.http.rate_limiter import TokenBucketLimiter
from lmsapi.core.http.retry import RetryPolicy, RetryState, parse_retry_after
from lmsapi.core.logging import LogEvents, UnifiedLogger, emit
from lmsapi.core.params import QueryParams, RequestBody, encode_query

__all__ = ["RequestExecutor", "QueryInput", "ResponseObserver"]

T = TypeVar("T")

QueryInput = Mapping[str, Any] | Sequence[tuple[str, Any]] | QueryParams | None
ResponseObserver = Callable[[Response], None]

_DRY_RUN_HEADERS = ("Authorization", "Accept", "User-Agent")


def _with_query(url: str, query: list[tuple[str, str]]) -> str:
    if not query:
        return url
    separator = "&" if urlparse(url).query else "?"
    return f"{url}{separator}{urlencode(query)}"


@lru_cache(maxsize=256)
def _adapter_for(target: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target)


class RequestExecutor:
    """Execute one logical API call end-to-end.

    Every attempt acquires a token from the shared limiter, so retries are
    throttled exactly like first attempts. Non-2xx answers are classified
    into :class:`StructuredError`; retryable statuses are retried with
    exponential backoff before the last classified error is raised.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        limiter: TokenBucketLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        session: requests.Session | None = None,
        name: str | None = None,
        logger: BoundLogger | None = None,
        on_response: ResponseObserver | None = None,
        dry_run_stream: TextIO | None = None,
    ) -> None:
        self.config = config
        self.base_url = config.base_url
        self.name = name or "default"
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {config.token.get_secret_value()}",
                "Accept": "application/json",
                "User-Agent": config.user_agent,
            }
        )
        self._timeout = (float(config.connect_timeout_sec), float(config.timeout_sec))
        self.limiter = limiter or TokenBucketLimiter(config.requests_per_second)
        self.retry_policy = retry_policy or RetryPolicy(config.retries)
        self._on_response = on_response
        self._dry_run_stream = dry_run_stream
        self._logger = logger or UnifiedLogger.get(__name__).bind(
            component="http_client",
            http_client=self.name,
        )
        self._host = urlparse(self.base_url).netloc

    def close(self) -> None:
        self.limiter.close()
        self._session.close()

    # ------------------------------------------------------------------
    # Request execution
    # ------------------------------------------------------------------

    def send(
        self,
        method: str,
        path: str,
        *,
        params: QueryInput = None,
        body: Any | None = None,
        headers: Mapping[str, str] | None = None,
        ctx: RequestContext | None = None,
        max_attempts: int | None = None,
        raise_for_status: bool = True,
    ) -> Response:
        """Send a request and return the raw response.

        Raises :class:`StructuredError` for non-2xx answers (after retries)
        unless ``raise_for_status`` is ``False``; :class:`NetworkError` when no
        response was received; :class:`CancellationError` when ``ctx`` is
        cancelled at any suspension point.

        With ``dry_run`` configured nothing is sent: the equivalent curl
        command is written to the dry-run stream and a 200 response with an
        empty JSON array is returned.
        """

        method = method.upper()
        url = self.resolve_url(path)
        query = self._build_query(params, url)
        payload = body.to_payload() if isinstance(body, RequestBody) else body
        request_headers = dict(headers or {})
        if payload is not None:
            request_headers.setdefault("Content-Type", "application/json")
        request_id = str(uuid4())
        if self.config.dry_run:
            if ctx is not None:
                ctx.check()
            if self.limiter.closed:
                raise CancellationError("client closed")
            return self._dry_run(method, url, query, payload, request_headers, request_id)

        attempt = 0
        network_failures = 0
        while True:
            attempt += 1
            if ctx is not None:
                ctx.check()
            wait_seconds = self.limiter.acquire(ctx)
            if wait_seconds:
                self._logger.debug(
                    LogEvents.HTTP_RATE_LIMITER_WAIT,
                    wait_seconds=wait_seconds,
                    endpoint=url,
                    attempt=attempt,
                    request_id=request_id,
                )

            start = time.perf_counter()
            try:
                response = self._session.request(
                    method,
                    url,
                    params=query or None,
                    json=payload,
                    headers=request_headers or None,
                    timeout=self._timeout_for(ctx),
                )
            except RequestException as exc:
                duration_ms = (time.perf_counter() - start) * 1000
                self._raise_if_cancelled(ctx, method, url, request_id, exc)
                network_failures += 1
                self._logger.warning(
                    LogEvents.HTTP_REQUEST_EXCEPTION,
                    method=method,
                    endpoint=url,
                    attempt=attempt,
                    duration_ms=duration_ms,
                    request_id=request_id,
                    error=str(exc),
                )
                if self.retry_policy.should_retry_network(
                    method, network_failures, request_headers, max_attempts=max_attempts
                ):
                    self._backoff(RetryState(attempt=network_failures), ctx)
                    continue
                raise NetworkError(
                    f"{method} {url} failed: {exc}",
                    method=method,
                    url=url,
                ) from exc

            duration_ms = (time.perf_counter() - start) * 1000
            if ctx is not None and ctx.done:
                response.close()
                self._raise_if_cancelled(ctx, method, url, request_id, None)
            if self._on_response is not None:
                self._on_response(response)

            status_code = response.status_code
            if 200 <= status_code < 300:
                self._logger.info(
                    LogEvents.HTTP_REQUEST_COMPLETED,
                    method=method,
                    endpoint=url,
                    attempt=attempt,
                    duration_ms=duration_ms,
                    status_code=status_code,
                    request_id=request_id,
                )
                return response
            if not raise_for_status:
                return response

            error = classify_response(response, method=method)
            response.close()
            if self.retry_policy.should_retry_status(
                status_code, attempt, max_attempts=max_attempts
            ):
                retry_after = parse_retry_after(response.headers)
                self._logger.warning(
                    LogEvents.HTTP_REQUEST_RETRY,
                    method=method,
                    endpoint=url,
                    attempt=attempt,
                    duration_ms=duration_ms,
                    status_code=status_code,
                    retry_after=retry_after,
                    request_id=request_id,
                )
                self._backoff(
                    RetryState(attempt=attempt, status_code=status_code, retry_after=retry_after),
                    ctx,
                )
                continue

            self._logger.error(
                LogEvents.HTTP_REQUEST_FAILED,
                method=method,
                endpoint=url,
                attempt=attempt,
                duration_ms=duration_ms,
                status_code=status_code,
                request_id=request_id,
                error=error.message,
            )
            raise error

    @overload
    def execute(
        self,
        method: str,
        path: str,
        *,
        into: type[T],
        params: QueryInput = ...,
        body: Any | None = ...,
        headers: Mapping[str, str] | None = ...,
        ctx: RequestContext | None = ...,
        decode: bool = ...,
    ) -> T: ...

    @overload
    def execute(
        self,
        method: str,
        path: str,
        *,
        into: None = ...,
        params: QueryInput = ...,
        body: Any | None = ...,
        headers: Mapping[str, str] | None = ...,
        ctx: RequestContext | None = ...,
        decode: bool = ...,
    ) -> Any: ...

    def execute(
        self,
        method: str,
        path: str,
        *,
        into: Any = None,
        params: QueryInput = None,
        body: Any | None = None,
        headers: Mapping[str, str] | None = None,
        ctx: RequestContext | None = None,
        decode: bool = True,
    ) -> Any:
        """Send a request and decode the JSON body.

        With ``into`` the payload is validated into that type; otherwise the
        decoded JSON is returned as-is. ``decode=False`` ignores the body.
        """

        response = self.send(method, path, params=params, body=body, headers=headers, ctx=ctx)
        try:
            if not decode:
                return None
            return self.decode(response, into)
        finally:
            response.close()

    def decode(self, response: Response, into: Any = None) -> Any:
        """Decode ``response`` JSON, optionally validating it into ``into``."""

        if response.status_code == 204 or not response.content:
            return None
        try:
            data = response.json()
        except ValueError as exc:
            self._logger.warning(
                LogEvents.HTTP_RESPONSE_MALFORMED,
                endpoint=response.url,
                status_code=response.status_code,
                error=str(exc),
            )
            raise MalformedResponseError(
                f"Unable to decode JSON response from {response.url!s}",
                status_code=response.status_code,
                url=response.url,
                body=response.text[:500],
            ) from exc
        if into is None:
            return data
        return self.validate(data, into, url=response.url, status_code=response.status_code)

    def validate(
        self,
        data: Any,
        into: Any,
        *,
        url: str | None = None,
        status_code: int | None = None,
    ) -> Any:
        try:
            if isinstance(into, type) and issubclass(into, BaseModel):
                return into.model_validate(data)
            return _adapter_for(into).validate_python(data)
        except ValidationError as exc:
            self._logger.warning(
                LogEvents.HTTP_RESPONSE_MALFORMED,
                endpoint=url,
                status_code=status_code,
                error=str(exc),
            )
            raise MalformedResponseError(
                f"Response from {url!s} does not match {getattr(into, '__name__', into)!s}: "
                f"{exc.error_count()} validation error(s)",
                status_code=status_code,
                url=url,
            ) from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def resolve_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        resolved = urljoin(self.base_url + "/", endpoint.lstrip("/"))
        self._logger.debug(
            LogEvents.HTTP_RESOLVE_URL,
            endpoint=endpoint,
            base_url=self.base_url,
            resolved=resolved,
        )
        return resolved

    def relative_path(self, url: str) -> str | None:
        """Reduce an absolute URL on the configured host to ``path?query``.

        Returns ``None`` for URLs on another host so the bearer token is
        never sent elsewhere.
        """

        if not url.startswith(("http://", "https://")):
            return url
        parsed = urlparse(url)
        if parsed.netloc != self._host:
            return None
        relative = parsed.path or "/"
        if parsed.query:
            relative = f"{relative}?{parsed.query}"
        return relative

    def prepare_url(self, path: str, params: QueryInput = None) -> str:
        """Return the absolute URL, query included, that :meth:`send` requests."""

        url = self.resolve_url(path)
        return _with_query(url, self._build_query(params, url))

    def _build_query(self, params: QueryInput, url: str) -> list[tuple[str, str]]:
        query = encode_query(params)
        if self.config.as_user_id > 0:
            present = {key for key, _ in query}
            present.update(key for key, _ in parse_qsl(urlparse(url).query, keep_blank_values=True))
            if "as_user_id" not in present:
                query.append(("as_user_id", str(self.config.as_user_id)))
        return query

    def _dry_run(
        self,
        method: str,
        url: str,
        query: list[tuple[str, str]],
        payload: Any,
        headers: Mapping[str, str],
        request_id: str,
    ) -> Response:
        url = _with_query(url, query)
        merged = {name: self._session.headers[name] for name in _DRY_RUN_HEADERS}
        merged.update(headers)
        command = render_curl(method, url, merged, payload, show_token=self.config.show_token)
        stream = self._dry_run_stream or sys.stdout
        stream.write(command + "\n")
        emit(
            self._logger,
            LogEvents.HTTP_REQUEST_DRY_RUN,
            method=method,
            endpoint=url,
            request_id=request_id,
        )
        return build_dry_run_response(url)

    def _timeout_for(self, ctx: RequestContext | None) -> tuple[float, float]:
        if ctx is None:
            return self._timeout
        remaining = ctx.remaining()
        if remaining is None:
            return self._timeout
        if remaining <= 0:
            ctx.check()
        connect, read = self._timeout
        return (min(connect, remaining), min(read, remaining))

    def _backoff(self, state: RetryState, ctx: RequestContext | None) -> None:
        delay = self.retry_policy.backoff(state)
        if delay <= 0:
            return
        if ctx is not None:
            ctx.wait(delay)
        else:
            time.sleep(delay)

    def _raise_if_cancelled(
        self,
        ctx: RequestContext | None,
        method: str,
        url: str,
        request_id: str,
        cause: BaseException | None,
    ) -> None:
        if ctx is None or not ctx.done:
            return
        self._logger.info(
            LogEvents.HTTP_REQUEST_CANCELLED,
            method=method,
            endpoint=url,
            request_id=request_id,
        )
        try:
            ctx.check()
        except CancellationError as exc:
            if cause is not None:
                raise exc from cause
            raise
