"""Configuration management for Switchboard."""

import logging
import warnings
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings

from switchboard.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://slack.com/api/"

RetryPolicyName = Literal[
    "retry_forever_exponential",
    "retry_forever_exponential_capped",
    "retry_forever_exponential_capped_random",
    "ten_retries_in_about_thirty_minutes",
    "five_retries_in_five_minutes",
    "rapid_retry_policy",
]


class Settings(BaseSettings):
    """Switchboard configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the SWITCHBOARD_ prefix. For example:
        SWITCHBOARD_API_URL=https://slack.example.test/api/
        SWITCHBOARD_MAX_REQUEST_CONCURRENCY=5

    Settings are frozen once constructed. The client and the webhook
    handler each receive an instance rather than reading a global.

    Security Notes:
        - The signing secret is a SecretStr and never appears in repr() or logs
        - verbose_errors leaks exception messages to callers; development only
    """

    # Outbound
    api_url: str = Field(
        default=DEFAULT_API_URL,
        description="Base URL for API method calls",
    )
    token: SecretStr | None = Field(
        default=None,
        description="Bearer token sent with outbound API calls",
    )
    max_request_concurrency: int = Field(
        default=3,
        ge=1,
        description="Maximum number of API calls in flight at once",
    )
    retry_policy: RetryPolicyName = Field(
        default="retry_forever_exponential_capped_random",
        description="Named retry policy used for outbound calls",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="HTTP request timeout for a single attempt",
    )

    # Inbound
    signing_secret: SecretStr | None = Field(
        default=None,
        description="Shared secret used to verify inbound request signatures",
    )
    timestamp_tolerance_seconds: int = Field(
        default=300,
        ge=1,
        description="Maximum age (either direction) of an inbound request timestamp",
    )
    verbose_errors: bool = Field(
        default=False,
        description="Include exception messages in 500 responses (development only)",
    )
    events_path: str = Field(
        default="/slack/events",
        description="Route that receives inbound event requests",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    model_config = {
        "env_prefix": "SWITCHBOARD_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "frozen": True,
    }

    @field_validator("api_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        """Method names are appended directly to the base URL."""
        return value if value.endswith("/") else f"{value}/"

    @field_validator("events_path")
    @classmethod
    def _ensure_leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"

    @model_validator(mode="after")
    def _warn_if_verbose_errors(self) -> "Settings":
        """Warn when internal error details may reach untrusted callers."""
        if self.verbose_errors:
            warnings.warn(
                "verbose_errors is enabled: 500 responses will include exception messages. "
                "Do not enable this outside development.",
                UserWarning,
                stacklevel=2,
            )
            logger.warning("verbose_errors enabled - internal error messages will be exposed")
        return self

    def require_signing_secret(self) -> str:
        """Return the signing secret, failing if it was never configured.

        Returns:
            The plain-text signing secret.

        Raises:
            ConfigurationError: If SWITCHBOARD_SIGNING_SECRET is not set.
        """
        if self.signing_secret is None or not self.signing_secret.get_secret_value():
            raise ConfigurationError(
                "A signing secret is required to verify inbound requests. "
                "Set SWITCHBOARD_SIGNING_SECRET or pass signing_secret=..."
            )
        return self.signing_secret.get_secret_value()
