"""Environment-driven configuration helpers.

Responsibilities:

- reading ``.env``/process env through :class:`EnvironmentSettings`;
- turning the short ``LMSAPI_*`` variables into a nested override mapping
  that :func:`lmsapi.config.loader.load_client_config` layers over YAML.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "EnvironmentSettings",
    "build_env_override_mapping",
    "load_environment_settings",
]


class EnvironmentSettings(BaseSettings):
    """Typed view of the ``LMSAPI_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    base_url: str | None = Field(default=None, alias="LMSAPI_BASE_URL")
    token: SecretStr | None = Field(default=None, alias="LMSAPI_TOKEN")
    requests_per_second: float | None = Field(default=None, alias="LMSAPI_REQUESTS_PER_SECOND")
    timeout_sec: float | None = Field(default=None, alias="LMSAPI_TIMEOUT_SEC")
    as_user_id: int | None = Field(default=None, alias="LMSAPI_AS_USER_ID")
    dry_run: bool | None = Field(default=None, alias="LMSAPI_DRY_RUN")
    user_agent: str | None = Field(default=None, alias="LMSAPI_USER_AGENT")

    @field_validator("base_url", "user_agent")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        """Treat empty strings as unset."""
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None


def load_environment_settings(*, env_file: Path | None = None) -> EnvironmentSettings:
    """Load and validate environment settings.

    Parameters
    ----------
    env_file:
        Optional path to a ``.env`` file. When omitted, the default search order
        from :class:`EnvironmentSettings` is used.
    """

    init_kwargs: dict[str, Any] = {}
    if env_file is not None:
        init_kwargs["_env_file"] = env_file
    return EnvironmentSettings(**init_kwargs)


def build_env_override_mapping(settings: EnvironmentSettings) -> dict[str, Any]:
    """Return config overrides derived from the environment, skipping unset values."""

    overrides: dict[str, Any] = {}
    for field_name in EnvironmentSettings.model_fields:
        value = getattr(settings, field_name)
        if value is None:
            continue
        if isinstance(value, SecretStr):
            plain = value.get_secret_value().strip()
            if not plain:
                continue
            overrides[field_name] = plain
            continue
        overrides[field_name] = value
    return overrides
