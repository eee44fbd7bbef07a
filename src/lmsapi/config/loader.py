"""Configuration loading utilities."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any, cast

import yaml

from .environment import (
    EnvironmentSettings,
    build_env_override_mapping,
    load_environment_settings,
)
from .models.http import ClientConfig

__all__ = ["load_client_config", "load_raw_config"]


def load_raw_config(path: Path) -> dict[str, Any]:
    """Load a YAML configuration file into a plain mapping.

    A top-level ``client`` section is unwrapped when present so the same
    file can carry unrelated sections for the calling application.
    """

    resolved = path.expanduser().resolve()
    with resolved.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    payload = _ensure_mapping(data, resolved)
    client_section = payload.get("client")
    if isinstance(client_section, Mapping):
        return dict(client_section)
    return payload


def load_client_config(
    path: str | Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
    environment_settings: EnvironmentSettings | None = None,
) -> ClientConfig:
    """Build a :class:`ClientConfig`.

    Order of layers: YAML file -> ``LMSAPI_*`` environment -> explicit overrides.
    """

    payload: MutableMapping[str, Any] = {}
    if path is not None:
        payload = load_raw_config(Path(path))

    env_settings = environment_settings or load_environment_settings()
    payload = _deep_merge(payload, build_env_override_mapping(env_settings))
    if overrides:
        payload = _deep_merge(payload, overrides)
    return ClientConfig.model_validate(payload)


def _ensure_mapping(data: Any, path: Path) -> dict[str, Any]:
    if not isinstance(data, Mapping):
        msg = f"Configuration root in {path} must be a mapping, got {type(data).__name__}"
        raise TypeError(msg)
    return dict(cast(Mapping[str, Any], data))


def _deep_merge(
    base: MutableMapping[str, Any], override: Mapping[str, Any]
) -> MutableMapping[str, Any]:
    for key, value in override.items():
        if key in base and isinstance(base[key], MutableMapping) and isinstance(value, Mapping):
            base_value = cast(MutableMapping[str, Any], base[key])
            _deep_merge(base_value, cast(Mapping[str, Any], value))
        else:
            base[key] = value
    return base
