"""Shared pytest fixtures for lmsapi tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest
import responses

from lmsapi.config.models.http import ClientConfig, RetryConfig
from lmsapi.core.http.api_client import RequestExecutor

BASE_URL = "https://lms.example.com"


@pytest.fixture
def base_url() -> str:
    return BASE_URL


@pytest.fixture
def make_config() -> Callable[..., ClientConfig]:
    """Factory for configs with instant retries and no probe request."""

    def _make(**overrides: Any) -> ClientConfig:
        data: dict[str, Any] = {
            "base_url": BASE_URL,
            "token": "test-token",
            "requests_per_second": 0,
            "probe_enabled": False,
            "retries": RetryConfig(backoff_initial=0.0, backoff_max=0.0),
        }
        data.update(overrides)
        return ClientConfig(**data)

    return _make


@pytest.fixture
def client_config(make_config: Callable[..., ClientConfig]) -> ClientConfig:
    return make_config()


@pytest.fixture
def executor(client_config: ClientConfig) -> Iterator[RequestExecutor]:
    instance = RequestExecutor(client_config)
    yield instance
    instance.close()


@pytest.fixture
def mocked_responses() -> Iterator[responses.RequestsMock]:
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps
