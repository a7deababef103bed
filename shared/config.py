"""
Shared configuration management for the Exile AI Bridge.

Settings are read once at process start (environment variables prefixed with
``BRIDGE_`` or a local ``.env`` file) and are frozen afterwards.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="BRIDGE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Upstream services
    trade_api_url: str = Field(default="https://www.pathofexile.com/api/trade2")
    chat_base_url: str = Field(default="http://localhost:3080")
    chat_model: str = Field(default="Multimodal Lite")
    user_agent: str = Field(default="ExiledAIBridge/1.0.0")

    # Per-upstream timeouts (seconds); generative calls get longer budgets
    pricing_timeout_seconds: float = Field(default=10.0, gt=0)
    insight_timeout_seconds: float = Field(default=15.0, gt=0)
    chat_timeout_seconds: float = Field(default=30.0, gt=0)
    probe_timeout_seconds: float = Field(default=5.0, gt=0)

    # Rate limiting; must stay at or below the trade API's published ceiling
    rate_limit_max_requests: int = Field(default=45, gt=0)
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)
    rate_limit_max_keys: int = Field(default=10000, gt=0)

    # Circuit breakers
    circuit_failure_threshold: int = Field(default=5, gt=0)
    circuit_recovery_seconds: float = Field(default=30.0, gt=0)

    # Pipeline defaults
    default_league: str = Field(default="Hardcore", min_length=1)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int = 3001
    host: str = "0.0.0.0"


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)
