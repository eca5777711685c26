"""
Configuration management for MarketScout.

Provides centralized, validated configuration from environment variables
with proper type checking and defaults.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

TRUTHY_VALUES = ("1", "true", "yes", "y", "on")


def parse_flag(value: Any) -> bool:
    """Interpret an environment style boolean flag."""
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_VALUES
    return bool(value)


def _lenient(cls, v, info, cast):
    """Parse a numeric setting, falling back to the field default on bad input."""
    default = cls.model_fields[info.field_name].default
    if v is None or v == "":
        return default
    try:
        return cast(v)
    except (TypeError, ValueError):
        logger.warning(
            "Invalid numeric setting, using default",
            field=info.field_name,
            value=str(v),
            default=default,
        )
        return default


class GatewayConfig(BaseSettings):
    """Remote generative-text API configuration."""

    api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    api_base: str = Field(default="https://api.openai.com", alias="OPENAI_API_BASE")
    chat_endpoint: str = Field(default="/v1/chat/completions", alias="OPENAI_CHAT_ENDPOINT")
    model: str = Field(default="gpt-4o-mini", alias="OPENAI_CHAT_MODEL")
    temperature: float = Field(default=0.2, alias="OPENAI_TEMPERATURE")
    max_tokens: int = Field(default=800, alias="OPENAI_MAX_TOKENS")

    # Retry policy
    max_retries: int = Field(default=3, alias="OPENAI_MAX_RETRIES")
    initial_retry_delay_ms: int = Field(default=1000, alias="OPENAI_INITIAL_RETRY_DELAY")
    backoff_factor: int = Field(default=2, alias="OPENAI_BACKOFF_FACTOR")
    max_retry_delay_seconds: float = Field(default=60.0, alias="OPENAI_MAX_RETRY_DELAY")
    request_timeout: float = Field(default=30.0, alias="OPENAI_REQUEST_TIMEOUT")

    @field_validator(
        "max_retries", "initial_retry_delay_ms", "backoff_factor", "max_tokens", mode="before"
    )
    @classmethod
    def parse_int_setting(cls, v, info):
        return _lenient(cls, v, info, int)

    @field_validator("request_timeout", "max_retry_delay_seconds", "temperature", mode="before")
    @classmethod
    def parse_float_setting(cls, v, info):
        return _lenient(cls, v, info, float)

    @property
    def initial_retry_delay_seconds(self) -> float:
        return self.initial_retry_delay_ms / 1000.0

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)


class StockConfig(BaseSettings):
    """Stock quote enrichment configuration."""

    api_key: Optional[str] = Field(default=None, alias="ALPHA_VANTAGE_API_KEY")
    base_url: str = Field(default="https://www.alphavantage.co/query", alias="ALPHA_VANTAGE_BASE_URL")
    request_timeout: float = Field(default=10.0, alias="STOCK_REQUEST_TIMEOUT")

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)


class ScoringConfig(BaseSettings):
    """Default scoring weights, validated when the scoring engine is built."""

    funding_stage: float = Field(default=0.3, alias="SCORING_WEIGHT_FUNDING_STAGE")
    market_buzz: float = Field(default=0.3, alias="SCORING_WEIGHT_MARKET_BUZZ")
    strategic_relevance: float = Field(default=0.4, alias="SCORING_WEIGHT_STRATEGIC_RELEVANCE")

    def as_weights(self) -> Dict[str, float]:
        return {
            "funding_stage": self.funding_stage,
            "market_buzz": self.market_buzz,
            "strategic_relevance": self.strategic_relevance,
        }

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", populate_by_name=True)


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: str = Field(default="production", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # Component configurations
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    stock: StockConfig = Field(default_factory=StockConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    # Performance settings
    max_workers: int = Field(default=8, alias="MAX_WORKERS")

    @field_validator("debug", "log_json", mode="before")
    @classmethod
    def parse_bool(cls, v):
        return parse_flag(v)

    def model_post_init(self, __context) -> None:
        # Initialize sub-configurations
        self.gateway = GatewayConfig()
        self.stock = StockConfig()
        self.scoring = ScoringConfig()

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global settings
    settings = None


def enablement_key(provider_name: str) -> str:
    """Environment flag that switches a provider on, e.g. ``CREWAI_ENABLED``."""
    return f"{''.join(provider_name.split()).upper()}_ENABLED"


def is_provider_enabled(provider_name: str, flags: Mapping[str, Any]) -> bool:
    """Read a provider's enablement flag from a mapping such as ``os.environ``."""
    return parse_flag(flags.get(enablement_key(provider_name), ""))


def validate_required_settings() -> List[str]:
    """
    Validate that the settings needed for live research are present.

    Returns:
        List of missing required settings
    """
    missing = []
    try:
        config = get_settings()
        if not config.gateway.api_key:
            missing.append("OPENAI_API_KEY")
    except Exception as e:
        missing.append(f"Configuration error: {e}")

    return missing


def _mask(value: Optional[str]) -> str:
    if not value:
        return "✗"
    return f"{value[:3]}***{value[-2:]}" if len(value) > 8 else "***"


def configuration_summary() -> Dict[str, Any]:
    """Summarize the current configuration with credentials masked."""
    config = get_settings()
    return {
        "environment": config.environment,
        "debug": config.debug,
        "max_workers": config.max_workers,
        "openai_api_key": _mask(config.gateway.api_key),
        "model": config.gateway.model,
        "max_retries": config.gateway.max_retries,
        "initial_retry_delay_ms": config.gateway.initial_retry_delay_ms,
        "backoff_factor": config.gateway.backoff_factor,
        "alpha_vantage_api_key": _mask(config.stock.api_key),
        "scoring_weights": config.scoring.as_weights(),
    }
