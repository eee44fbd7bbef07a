"""Transport core shared by every lmsapi client."""

from __future__ import annotations

from .context import RequestContext
from .params import QueryParams, RequestBody, encode_query

__all__ = ["QueryParams", "RequestBody", "RequestContext", "encode_query"]
