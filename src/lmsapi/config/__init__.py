"""Configuration models and loaders for the lmsapi client core."""

from .environment import EnvironmentSettings, load_environment_settings
from .loader import load_client_config, load_raw_config
from .models import ClientConfig, RetryConfig

__all__ = [
    "ClientConfig",
    "EnvironmentSettings",
    "RetryConfig",
    "load_client_config",
    "load_environment_settings",
    "load_raw_config",
]
