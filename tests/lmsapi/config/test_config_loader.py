"""Tests for layered client configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from lmsapi.config import (
    ClientConfig,
    RetryConfig,
    load_client_config,
    load_environment_settings,
    load_raw_config,
)

ENV_VARS = (
    "LMSAPI_BASE_URL",
    "LMSAPI_TOKEN",
    "LMSAPI_REQUESTS_PER_SECOND",
    "LMSAPI_TIMEOUT_SEC",
    "LMSAPI_AS_USER_ID",
    "LMSAPI_USER_AGENT",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "lmsapi.yaml"
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.unit
def test_load_from_yaml(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        """
client:
  base_url: https://lms.example.com/
  token: yaml-token
  requests_per_second: 2
  retries:
    max_attempts: 6
    statuses: [429, 503]
""",
    )

    config = load_client_config(path)

    assert config.base_url == "https://lms.example.com"
    assert config.token.get_secret_value() == "yaml-token"
    assert config.requests_per_second == 2.0
    assert config.retries.max_attempts == 6
    assert config.retries.statuses == (429, 503)
    assert config.retries.backoff_max == 8.0


@pytest.mark.unit
def test_environment_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_config(tmp_path, "base_url: https://yaml.example.com\ntoken: yaml-token\n")
    monkeypatch.setenv("LMSAPI_TOKEN", "env-token")
    monkeypatch.setenv("LMSAPI_REQUESTS_PER_SECOND", "0")

    config = load_client_config(path)

    assert config.base_url == "https://yaml.example.com"
    assert config.token.get_secret_value() == "env-token"
    assert not config.throttled


@pytest.mark.unit
def test_dry_run_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LMSAPI_BASE_URL", "https://env.example.com")
    monkeypatch.setenv("LMSAPI_TOKEN", "env-token")
    monkeypatch.setenv("LMSAPI_DRY_RUN", "true")

    config = load_client_config()

    assert config.dry_run is True
    assert config.show_token is False


@pytest.mark.unit
def test_explicit_overrides_win(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LMSAPI_BASE_URL", "https://env.example.com")
    monkeypatch.setenv("LMSAPI_TOKEN", "env-token")

    config = load_client_config(
        overrides={"base_url": "https://override.example.com", "retries": {"max_attempts": 2}}
    )

    assert config.base_url == "https://override.example.com"
    assert config.retries.max_attempts == 2


@pytest.mark.unit
def test_env_file_is_read(tmp_path: Path) -> None:
    env_file = tmp_path / "custom.env"
    env_file.write_text("LMSAPI_BASE_URL=https://dotenv.example.com\nLMSAPI_TOKEN=dotenv-token\n")

    settings = load_environment_settings(env_file=env_file)
    config = load_client_config(environment_settings=settings)

    assert config.base_url == "https://dotenv.example.com"
    assert config.token.get_secret_value() == "dotenv-token"


@pytest.mark.unit
def test_non_mapping_yaml_root_is_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path, "- just\n- a list\n")

    with pytest.raises(TypeError, match="must be a mapping"):
        load_raw_config(path)


@pytest.mark.unit
def test_missing_token_fails_validation() -> None:
    with pytest.raises(ValidationError):
        load_client_config(overrides={"base_url": "https://lms.example.com"})


@pytest.mark.unit
class TestClientConfigModel:
    def test_defaults(self) -> None:
        config = ClientConfig(base_url="https://lms.example.com", token="t")

        assert config.requests_per_second is None
        assert config.max_pages == 1000
        assert config.probe_enabled is True
        assert config.retries == RetryConfig()
        assert not config.throttled

    @pytest.mark.parametrize("base_url", ["", "   ", "lms.example.com", "ftp://lms.example.com"])
    def test_invalid_base_url(self, base_url: str) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(base_url=base_url, token="t")

    def test_blank_token_rejected(self) -> None:
        with pytest.raises(ValidationError, match="token is required"):
            ClientConfig(base_url="https://lms.example.com", token="  ")

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(base_url="https://lms.example.com", token="t", verbose=True)  # type: ignore[call-arg]

    def test_frozen(self) -> None:
        config = ClientConfig(base_url="https://lms.example.com", token="t")

        with pytest.raises(ValidationError):
            config.timeout_sec = 1.0  # type: ignore[misc]

    def test_idempotent_methods_are_uppercased(self) -> None:
        assert RetryConfig(idempotent_methods=("get", " head ")).idempotent_methods == ("GET", "HEAD")
