"""Structured logging for the client core.

Every component obtains its logger through :class:`UnifiedLogger`, so request,
retry and pagination events share one renderer, one timestamp format and one
redaction policy. Bearer tokens never reach a log sink: ``authorization`` and
``token`` fields, ``Authorization`` headers and ``access_token`` query values
are masked before rendering.
"""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, TextIO

import structlog
from structlog.contextvars import bind_contextvars, bound_contextvars, clear_contextvars
from structlog.stdlib import BoundLogger

__all__ = [
    "DEFAULT_LOG_LEVEL",
    "REDACTED",
    "LogConfig",
    "LogFormat",
    "SecretRedactor",
    "UnifiedLogger",
    "bind_global_context",
    "configure_logging",
    "get_logger",
    "mask_query_tokens",
    "reset_global_context",
]

DEFAULT_LOG_LEVEL = logging.INFO

_DEFAULT_LOGGER_NAME: Final[str] = "lmsapi"
REDACTED: Final[str] = "***REDACTED***"
_TOKEN_IN_QUERY = re.compile(r"(?i)(access_token=)[^&\s]+")

# Columns rendered first by the key-value renderer.
_KEY_ORDER: Final[tuple[str, ...]] = (
    "timestamp",
    "level",
    "component",
    "http_client",
    "method",
    "endpoint",
    "status_code",
    "attempt",
    "message",
)


class LogFormat(str, Enum):
    JSON = "json"
    KEY_VALUE = "key_value"


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging parameters for :func:`configure_logging`.

    ``stream`` defaults to ``sys.stderr`` at configuration time.
    """

    level: int | str = DEFAULT_LOG_LEVEL
    format: LogFormat = LogFormat.JSON
    redact_fields: Sequence[str] = ("authorization", "token", "access_token", "password")
    stream: TextIO | None = field(default=None, compare=False)

    def resolved_level(self) -> int:
        if isinstance(self.level, int):
            return self.level
        level = logging.getLevelNamesMapping().get(self.level.strip().upper())
        if level is None:
            raise ValueError(f"Unsupported log level: {self.level}")
        return level


def mask_query_tokens(value: str) -> str:
    """Replace ``access_token`` query values in ``value`` with :data:`REDACTED`."""

    return _TOKEN_IN_QUERY.sub(rf"\g<1>{REDACTED}", value)


class SecretRedactor:
    """structlog processor masking credentials anywhere in the event dict."""

    def __init__(self, fields: Iterable[str]) -> None:
        self._fields = frozenset(name.lower() for name in fields)

    def __call__(
        self, _: Any, __: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        for key in list(event_dict):
            if key.lower() in self._fields:
                event_dict[key] = REDACTED
        headers = event_dict.get("headers")
        if isinstance(headers, Mapping):
            event_dict["headers"] = {
                name: REDACTED if name.lower() in self._fields else value
                for name, value in headers.items()
            }
        for key in ("endpoint", "url", "next_link", "resolved"):
            value = event_dict.get(key)
            if isinstance(value, str) and "access_token=" in value.lower():
                event_dict[key] = mask_query_tokens(value)
        return event_dict


def _renderer(format: LogFormat) -> Any:
    if format is LogFormat.KEY_VALUE:
        return structlog.processors.KeyValueRenderer(
            key_order=list(_KEY_ORDER),
            sort_keys=False,
            drop_missing=True,
        )
    return structlog.processors.JSONRenderer(sort_keys=True, ensure_ascii=False)


def _pre_chain(config: LogConfig, extra: Sequence[Any]) -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.EventRenamer("message"),
        SecretRedactor(config.redact_fields),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        *extra,
    ]


def configure_logging(
    config: LogConfig | None = None,
    *,
    additional_processors: Sequence[Any] | None = None,
) -> None:
    """Route structlog and stdlib records through one handler and renderer."""

    cfg = config or LogConfig()
    level = cfg.resolved_level()
    pre_chain = _pre_chain(cfg, additional_processors or ())

    handler = logging.StreamHandler(cfg.stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(cfg.format),
            ],
        )
    )
    logging.basicConfig(handlers=[handler], level=level, force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def bind_global_context(**kwargs: Any) -> None:
    bind_contextvars(**kwargs)


def reset_global_context() -> None:
    clear_contextvars()


def get_logger(name: str = _DEFAULT_LOGGER_NAME) -> BoundLogger:
    return structlog.stdlib.get_logger(name)


class UnifiedLogger:
    """Facade used by every lmsapi component to obtain and scope loggers."""

    @staticmethod
    def configure(
        config: LogConfig | None = None,
        *,
        additional_processors: Sequence[Any] | None = None,
    ) -> None:
        configure_logging(config, additional_processors=additional_processors)

    @staticmethod
    def get(name: str | None = None) -> BoundLogger:
        return get_logger(name or _DEFAULT_LOGGER_NAME)

    @staticmethod
    def bind(**context: Any) -> None:
        """Attach ``context`` to every later event in the current context."""

        bind_global_context(**context)

    @staticmethod
    def reset() -> None:
        reset_global_context()

    @staticmethod
    def scoped(**context: Any) -> AbstractContextManager[None]:
        """Bind ``context`` for a ``with`` block, restoring prior values afterwards."""

        return bound_contextvars(**context)
