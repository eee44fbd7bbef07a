"""Structured logging primitives for the lmsapi core package."""

from .log_events import LogEvents, emit
from .logger import (
    DEFAULT_LOG_LEVEL,
    REDACTED,
    LogConfig,
    LogFormat,
    SecretRedactor,
    UnifiedLogger,
    bind_global_context,
    configure_logging,
    get_logger,
    mask_query_tokens,
    reset_global_context,
)

__all__ = [
    "DEFAULT_LOG_LEVEL",
    "LogConfig",
    "LogEvents",
    "LogFormat",
    "SecretRedactor",
    "UnifiedLogger",
    "bind_global_context",
    "configure_logging",
    "emit",
    "get_logger",
    "mask_query_tokens",
    "REDACTED",
    "reset_global_context",
]
