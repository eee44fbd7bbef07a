"""HTTP transport primitives: limiter, retry policy, classifier and executor."""

from .api_client import QueryInput, RequestExecutor
from .dry_run import build_dry_run_response, render_curl
from .error_classifier import classify_response, suggestion_for
from .rate_limiter import TokenBucketLimiter
from .retry import IDEMPOTENCY_KEY_HEADER, RetryPolicy, RetryState, parse_retry_after
from .types import Page, PaginationLinks, RateLimitInfo

__all__ = [
    "IDEMPOTENCY_KEY_HEADER",
    "Page",
    "PaginationLinks",
    "QueryInput",
    "RateLimitInfo",
    "RequestExecutor",
    "RetryPolicy",
    "RetryState",
    "TokenBucketLimiter",
    "build_dry_run_response",
    "classify_response",
    "parse_retry_after",
    "render_curl",
    "suggestion_for",
]
