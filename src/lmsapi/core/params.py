"""Request body and query-string builders with explicit field presence.

Resource services describe write payloads as :class:`RequestBody` models.
Only fields the caller actually set are serialised, so ``False``, ``0``,
``""`` and ``None`` can be sent deliberately while untouched optional fields
stay out of the payload.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

__all__ = ["QueryParams", "RequestBody", "encode_query"]


class RequestBody(BaseModel):
    """Base model for JSON write payloads."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_payload(self, root_key: str | None = None) -> dict[str, Any]:
        """Return the JSON-ready payload containing only explicitly set fields.

        ``root_key`` wraps the payload, e.g. ``{"course": {...}}``.
        """

        payload = self.model_dump(mode="json", exclude_unset=True, by_alias=True)
        if root_key:
            return {root_key: payload}
        return payload


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return _format_scalar(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class QueryParams:
    """Ordered query-string builder using the ``key[]`` convention for arrays."""

    def __init__(self, prefix: str | None = None) -> None:
        self._pairs: list[tuple[str, str]] = []
        self._prefix = prefix

    def _key(self, key: str) -> str:
        if self._prefix:
            return f"{self._prefix}[{key}]"
        return key

    def with_prefix(self, prefix: str) -> QueryParams:
        """Return a builder sharing this one's pairs but nesting keys under ``prefix``."""

        scoped = QueryParams(prefix)
        scoped._pairs = self._pairs
        return scoped

    def set(self, key: str, value: Any) -> QueryParams:
        """Add ``key=value`` unless ``value`` is ``None`` or an empty string."""

        if value is None or value == "":
            return self
        if isinstance(value, (list, tuple, set, frozenset)):
            return self.add_list(key, value)
        self._pairs.append((self._key(key), _format_scalar(value)))
        return self

    def set_bool(self, key: str, value: bool | None) -> QueryParams:
        """Add a boolean when it was provided, including ``False``."""

        if value is None:
            return self
        self._pairs.append((self._key(key), _format_scalar(bool(value))))
        return self

    def add_list(self, key: str, values: Iterable[Any] | None) -> QueryParams:
        """Add ``key[]=v`` once per non-empty value."""

        if not values:
            return self
        list_key = self._key(key if key.endswith("[]") else f"{key}[]")
        for value in values:
            if value is None or value == "":
                continue
            self._pairs.append((list_key, _format_scalar(value)))
        return self

    def build(self) -> list[tuple[str, str]]:
        return list(self._pairs)

    def __bool__(self) -> bool:
        return bool(self._pairs)


def encode_query(params: Mapping[str, Any] | Sequence[tuple[str, Any]] | QueryParams | None) -> list[tuple[str, str]]:
    """Normalise caller-supplied params into ordered pairs.

    Mapping values that are sequences are expanded with the ``key[]``
    convention; ``None`` values are dropped.
    """

    if params is None:
        return []
    if isinstance(params, QueryParams):
        return params.build()
    builder = QueryParams()
    items = params.items() if isinstance(params, Mapping) else params
    for key, value in items:
        if isinstance(value, bool):
            builder.set_bool(key, value)
        else:
            builder.set(key, value)
    return builder.build()
