"""Thread-safe transport core for LMS REST API clients."""

from __future__ import annotations

from lmsapi.clients.client_exceptions import (
    CancellationError,
    ErrorDetail,
    LMSAPIError,
    MalformedResponseError,
    NetworkError,
    StructuredError,
    is_auth_error,
    is_forbidden_error,
    is_not_found_error,
    is_rate_limit_error,
    is_server_error,
)
from lmsapi.clients.client import Client, RawResponse
from lmsapi.clients.version import APIVariant
from lmsapi.config import ClientConfig, RetryConfig, load_client_config
from lmsapi.core import QueryParams, RequestBody, RequestContext
from lmsapi.core.http import Page, PaginationLinks, RateLimitInfo

__all__ = [
    "APIVariant",
    "CancellationError",
    "Client",
    "ClientConfig",
    "ErrorDetail",
    "LMSAPIError",
    "MalformedResponseError",
    "NetworkError",
    "Page",
    "PaginationLinks",
    "QueryParams",
    "RateLimitInfo",
    "RawResponse",
    "RequestBody",
    "RequestContext",
    "RetryConfig",
    "StructuredError",
    "is_auth_error",
    "is_forbidden_error",
    "is_not_found_error",
    "is_rate_limit_error",
    "is_server_error",
    "load_client_config",
]
