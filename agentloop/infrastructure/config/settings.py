"""Runtime settings loaded from ``AGENTLOOP_*`` environment variables."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class RuntimeSettings(BaseSettings):
    """Configuration for the agent runtime.

    Loaded in this order (later wins):
    1. Field defaults
    2. ``.env`` file in the working directory
    3. ``AGENTLOOP_*`` environment variables
    4. Constructor arguments
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENTLOOP_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Run loop
    max_steps: int = Field(default=25, description="Agent steps allowed per run")
    model_timeout_seconds: float = Field(default=60.0, description="Timeout for one model invocation")
    tool_timeout_seconds: float = Field(default=30.0, description="Default timeout for one tool call")

    # Memory
    token_limit: int = Field(default=8000, description="Token budget for model context")
    short_term_token_limit_ratio: float = Field(
        default=0.7,
        description="Share of token_limit kept for verbatim recent messages",
    )

    # Provider retry
    provider_max_retries: int = Field(default=3, ge=0)
    provider_backoff_seconds: float = Field(default=1.0, ge=0)
    provider_backoff_max_seconds: float = Field(default=30.0, ge=0)

    # Logging
    log_level: LogLevel = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    service_name: str = Field(default="agentloop")

    # Tracing
    langfuse_enabled: bool = Field(default=False)
    langfuse_public_key: Optional[str] = None
    langfuse_secret_key: Optional[str] = None
    langfuse_host: Optional[str] = None

    @field_validator("max_steps", "token_limit")
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("model_timeout_seconds", "tool_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("short_term_token_limit_ratio")
    @classmethod
    def _ratio_in_range(cls, value: float) -> float:
        if not 0 < value <= 1:
            raise ValueError("must be in (0, 1]")
        return value


@lru_cache
def get_settings() -> RuntimeSettings:
    return RuntimeSettings()
