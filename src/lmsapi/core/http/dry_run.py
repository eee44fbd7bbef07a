"""Dry-run support: render requests as curl commands instead of sending them."""

from __future__ import annotations

import json
import shlex
from collections.abc import Mapping
from typing import Any, Final

from requests import Response
from requests.structures import CaseInsensitiveDict

from lmsapi.core.logging import REDACTED, mask_query_tokens

__all__ = ["DRY_RUN_BODY", "build_dry_run_response", "render_curl"]

DRY_RUN_BODY: Final[bytes] = b"[]"

_SECRET_HEADERS: Final[frozenset[str]] = frozenset({"authorization"})


def _mask_header(name: str, value: str) -> str:
    if name.lower() not in _SECRET_HEADERS:
        return value
    scheme, _, _ = value.partition(" ")
    if scheme.lower() == "bearer":
        return f"{scheme} {REDACTED}"
    return REDACTED


def render_curl(
    method: str,
    url: str,
    headers: Mapping[str, str],
    body: Any = None,
    *,
    show_token: bool = False,
) -> str:
    """Return a shell-safe curl command equivalent to the request.

    Unless ``show_token`` is set, the ``Authorization`` value and any
    ``access_token`` query value are masked.
    """

    target = url if show_token else mask_query_tokens(url)
    parts = [f"curl -X {method.upper()} {shlex.quote(target)}"]
    for name, value in headers.items():
        shown = value if show_token else _mask_header(name, str(value))
        parts.append(f"-H {shlex.quote(f'{name}: {shown}')}")
    if body is not None:
        payload = body if isinstance(body, str) else json.dumps(body, ensure_ascii=False)
        parts.append(f"-d {shlex.quote(payload)}")
    return " \\\n  ".join(parts)


def build_dry_run_response(url: str) -> Response:
    """Build the 200 response with an empty JSON array returned in dry-run mode."""

    response = Response()
    response.status_code = 200
    response._content = DRY_RUN_BODY
    response.headers = CaseInsensitiveDict({"Content-Type": "application/json"})
    response.url = url
    response.encoding = "utf-8"
    return response
