"""Classify non-2xx responses into :class:`StructuredError` values."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Final

from requests import Response

from lmsapi.clients.client_exceptions import ErrorDetail, StructuredError

__all__ = ["classify_response", "suggestion_for", "DOCS_ROOT"]

DOCS_ROOT: Final[str] = "https://canvas.instructure.com/doc/api/"
_OAUTH_DOCS: Final[str] = DOCS_ROOT + "file.oauth.html"
_THROTTLING_DOCS: Final[str] = DOCS_ROOT + "file.throttling.html"

_TRANSIENT_HINT: Final[str] = (
    "The server is experiencing temporary issues. The request is safe to retry in a few moments."
)

_SUGGESTIONS: Final[Mapping[int, tuple[str, str]]] = {
    400: (
        "The request was malformed. Check the query parameters and the request body format.",
        DOCS_ROOT,
    ),
    401: (
        "Your access token may be expired or invalid. Re-check your credentials and authenticate again.",
        _OAUTH_DOCS,
    ),
    403: (
        "You don't have permission to access this resource. Check the token's scopes and your role.",
        DOCS_ROOT,
    ),
    404: (
        "The requested resource was not found. Verify the resource identifier and try again.",
        DOCS_ROOT,
    ),
    409: (
        "The resource changed on the server. Fetch the latest state before retrying the change.",
        DOCS_ROOT,
    ),
    422: (
        "The request was rejected by validation. Inspect the returned field-level errors.",
        DOCS_ROOT,
    ),
    429: (
        "Rate limit exceeded. Slow down and honour the server's rate-limit headers before retrying.",
        _THROTTLING_DOCS,
    ),
    500: (_TRANSIENT_HINT, DOCS_ROOT),
    502: (_TRANSIENT_HINT, DOCS_ROOT),
    503: (_TRANSIENT_HINT, DOCS_ROOT),
    504: (_TRANSIENT_HINT, DOCS_ROOT),
}

_GENERIC_CLIENT_HINT: Final[tuple[str, str]] = (
    "The server rejected the request. Review the error messages for details.",
    DOCS_ROOT,
)
_GENERIC_SERVER_HINT: Final[tuple[str, str]] = (
    "The server failed to process the request. Try again later.",
    DOCS_ROOT,
)


def suggestion_for(status_code: int) -> tuple[str, str]:
    """Return the ``(suggestion, docs_url)`` pair for ``status_code``."""

    known = _SUGGESTIONS.get(status_code)
    if known is not None:
        return known
    if status_code >= 500:
        return _GENERIC_SERVER_HINT
    return _GENERIC_CLIENT_HINT


def classify_response(response: Response, *, method: str | None = None) -> StructuredError:
    """Build a :class:`StructuredError` from ``response``. Never raises."""

    status_code = response.status_code or 0
    if status_code <= 0:
        status_code = 520
    body = _read_text(response)
    details, report_id = _parse_error_body(body)
    if not details:
        details = [ErrorDetail(message=body)]
    suggestion, docs_url = suggestion_for(status_code)
    request_method = method
    if request_method is None and response.request is not None:
        request_method = response.request.method
    return StructuredError(
        status_code,
        details,
        error_report_id=report_id,
        suggestion=suggestion,
        docs_url=docs_url,
        method=request_method,
        url=response.url or None,
    )


def _read_text(response: Response) -> str:
    try:
        return response.text
    except (UnicodeDecodeError, LookupError):
        return response.content.decode("utf-8", errors="replace")


def _parse_error_body(body: str) -> tuple[list[ErrorDetail], int | None]:
    if not body.strip():
        return [], None

    try:
        payload = json.loads(body)
    except ValueError:
        return [], None
    if not isinstance(payload, Mapping):
        return [], None

    details: list[ErrorDetail] = []
    errors = payload.get("errors")
    if isinstance(errors, list):
        for entry in errors:
            detail = _detail_from(entry)
            if detail is not None:
                details.append(detail)
    elif isinstance(errors, Mapping):
        # Field-level validation errors: {"errors": {"name": [{"message": ...}]}}
        for field, entries in errors.items():
            for entry in entries if isinstance(entries, list) else [entries]:
                detail = _detail_from(entry, field=str(field))
                if detail is not None:
                    details.append(detail)
    elif isinstance(payload.get("message"), str):
        details.append(ErrorDetail(message=payload["message"]))

    return details, _coerce_report_id(payload.get("error_report_id"))


def _detail_from(entry: Any, *, field: str | None = None) -> ErrorDetail | None:
    if isinstance(entry, str):
        message = entry
        code: Any = None
    elif isinstance(entry, Mapping):
        raw_message = entry.get("message")
        if raw_message is None:
            return None
        message = str(raw_message)
        code = entry.get("error_code") or entry.get("type")
    else:
        return None
    if field is not None and field not in message:
        message = f"{field}: {message}"
    return ErrorDetail(message=message, code=str(code) if code is not None else None)


def _coerce_report_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
