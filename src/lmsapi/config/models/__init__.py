"""Typed configuration models."""

from .http import ClientConfig, RetryConfig, StatusCode

__all__ = ["ClientConfig", "RetryConfig", "StatusCode"]
