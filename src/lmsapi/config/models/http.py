"""HTTP client configuration models."""

from __future__ import annotations

from typing import Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    field_validator,
)

__all__ = ["ClientConfig", "RetryConfig", "StatusCode"]

StatusCode = Annotated[int, Field(ge=100, le=599)]

DEFAULT_USER_AGENT = "lmsapi/1.0"


class RetryConfig(BaseModel):
    """Retry policy for the request executor."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_attempts: PositiveInt = Field(
        default=4,
        description="Maximum number of attempts for a retryable status, including the first call.",
    )
    backoff_initial: NonNegativeFloat = Field(
        default=1.0,
        description="Delay in seconds before the first retry; doubled on every further attempt.",
    )
    backoff_max: NonNegativeFloat = Field(
        default=8.0,
        description="Maximum delay in seconds between retry attempts.",
    )
    statuses: tuple[StatusCode, ...] = Field(
        default=(429, 502, 503, 504),
        description="HTTP status codes that should trigger a retry.",
    )
    network_attempts: PositiveInt = Field(
        default=2,
        description="Attempts allowed when no response was received (idempotent methods only).",
    )
    idempotent_methods: tuple[str, ...] = Field(
        default=("GET", "HEAD", "OPTIONS"),
        description="Methods that may be resent after a transport failure.",
    )

    @field_validator("idempotent_methods")
    @classmethod
    def _upper_methods(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(method.strip().upper() for method in value if method.strip())


class ClientConfig(BaseModel):
    """Immutable configuration for a single API client."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str = Field(..., description="Root URL of the backend, e.g. https://school.example.com.")
    token: SecretStr = Field(..., description="Static bearer token sent with every request.")
    requests_per_second: NonNegativeFloat | None = Field(
        default=None,
        description="Token bucket rate and capacity; unset or 0 disables client-side throttling.",
    )
    timeout_sec: PositiveFloat = Field(default=30.0, description="Socket read timeout in seconds.")
    connect_timeout_sec: PositiveFloat = Field(
        default=10.0,
        description="Connection timeout in seconds.",
    )
    retries: RetryConfig = Field(default_factory=RetryConfig)
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent header value.")
    as_user_id: NonNegativeInt = Field(
        default=0,
        description="Masquerade as this user id (admin only); 0 disables masquerading.",
    )
    max_results: NonNegativeInt = Field(
        default=0,
        description="Upper bound on items collected by pagination; 0 means unlimited.",
    )
    max_pages: PositiveInt = Field(
        default=1000,
        description="Hard bound on pages followed for one listing.",
    )
    probe_enabled: bool = Field(
        default=True,
        description="Detect the API variant during client construction.",
    )
    probe_timeout_sec: PositiveFloat = Field(
        default=10.0,
        description="Deadline for the one-shot version probe.",
    )
    quota_total: PositiveFloat = Field(
        default=700.0,
        description="Server-side request quota used to compute remaining-quota warnings.",
    )
    dry_run: bool = Field(
        default=False,
        description="Print each request as a curl command and return an empty JSON array instead of sending it.",
    )
    show_token: bool = Field(
        default=False,
        description="Show the bearer token in dry-run output instead of redacting it.",
    )

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized:
            msg = "base_url is required"
            raise ValueError(msg)
        if not normalized.startswith(("http://", "https://")):
            msg = f"base_url must start with http:// or https://, got {value!r}"
            raise ValueError(msg)
        return normalized

    @field_validator("token")
    @classmethod
    def _require_token(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            msg = "token is required"
            raise ValueError(msg)
        return value

    @property
    def throttled(self) -> bool:
        """Return ``True`` when client-side rate limiting is active."""

        return bool(self.requests_per_second)
