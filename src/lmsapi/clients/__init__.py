"""Client surface built on the lmsapi transport core.

Submodules import ``lmsapi.core``, which in turn imports the exception module
of this package, so symbols other than exceptions are resolved lazily.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any, Final

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

if TYPE_CHECKING:
    from lmsapi.clients.client import Client, RawResponse
    from lmsapi.clients.http.pagination import Paginator
    from lmsapi.clients.version import APIVariant, VersionProbe

__all__ = [
    "APIVariant",
    "CancellationError",
    "Client",
    "ErrorDetail",
    "LMSAPIError",
    "MalformedResponseError",
    "NetworkError",
    "Paginator",
    "RawResponse",
    "StructuredError",
    "VersionProbe",
    "is_auth_error",
    "is_forbidden_error",
    "is_not_found_error",
    "is_rate_limit_error",
    "is_server_error",
]

_ATTR_MAP: Final[dict[str, tuple[str, str]]] = {
    "Client": ("lmsapi.clients.client", "Client"),
    "RawResponse": ("lmsapi.clients.client", "RawResponse"),
    "Paginator": ("lmsapi.clients.http.pagination", "Paginator"),
    "APIVariant": ("lmsapi.clients.version", "APIVariant"),
    "VersionProbe": ("lmsapi.clients.version", "VersionProbe"),
}


def __getattr__(name: str) -> Any:
    """Lazily resolve client symbols to avoid circular imports with the core."""
    try:
        module_path, attr_name = _ATTR_MAP[name]
    except KeyError as exc:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}") from exc

    module = import_module(module_path)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
