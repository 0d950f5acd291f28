"""Application configuration via pydantic-settings."""

import json
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from earnpulse.core.constants import (
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_PERPLEXITY_API_URL,
    DEFAULT_PERPLEXITY_MODEL,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_SUBSCRIBER_QUEUE_SIZE,
    HEARTBEAT_INTERVAL_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Core
    env: Literal["development", "staging", "production"] = Field(
        default="development", alias="EARNPULSE_ENV"
    )
    debug: bool = Field(default=False, alias="EARNPULSE_DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="EARNPULSE_LOG_LEVEL"
    )

    # Database (persistence is disabled when unset)
    database_url: str | None = Field(default=None)

    # Redis (event relay)
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Perplexity (live earnings source)
    perplexity_api_key: SecretStr | None = Field(default=None)
    perplexity_base_url: str = Field(default=DEFAULT_PERPLEXITY_API_URL)
    perplexity_model: str = Field(default=DEFAULT_PERPLEXITY_MODEL)

    # Live polling engine
    live_poll_interval_ms: int = Field(
        default=DEFAULT_POLL_INTERVAL_MS,
        gt=0,
        description="Default polling interval for new sessions, in milliseconds",
    )
    live_fetch_timeout_seconds: float = Field(
        default=DEFAULT_FETCH_TIMEOUT_SECONDS,
        gt=0,
        description="Upper bound on a single source fetch",
    )
    live_heartbeat_interval_seconds: float = Field(
        default=HEARTBEAT_INTERVAL_SECONDS,
        gt=0,
        description="Keep-alive period for stream connections",
    )
    live_subscriber_queue_size: int = Field(
        default=DEFAULT_SUBSCRIBER_QUEUE_SIZE,
        gt=0,
        description="Per-subscriber event buffer; oldest events are dropped when full",
    )
    live_persist_on_change: bool = Field(
        default=False,
        description="Also persist snapshots when a scheduled poll detects a change",
    )
    live_event_relay_enabled: bool = Field(
        default=True,
        description="Mirror bus events onto a Redis pub/sub channel",
    )

    # Fiscal calendar: subject -> month in which its fiscal year ends
    fiscal_year_end_months: Annotated[dict[str, int], NoDecode] = Field(default_factory=dict)

    @field_validator("fiscal_year_end_months", mode="before")
    @classmethod
    def parse_fiscal_year_end_months(cls, v: str | dict[str, int] | None) -> dict[str, int]:
        if v is None:
            return {}
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return {}
            if v.startswith("{"):
                v = json.loads(v)
            else:
                pairs = [p.strip() for p in v.split(",") if p.strip()]
                parsed: dict[str, int] = {}
                for pair in pairs:
                    subject, _, month = pair.rpartition(":")
                    if not subject:
                        raise ValueError(f"Expected 'subject:month', got {pair!r}")
                    parsed[subject] = int(month)
                v = parsed
        result: dict[str, int] = {}
        for subject, month in v.items():
            month = int(month)
            if not 1 <= month <= 12:
                raise ValueError(f"Fiscal year end month for {subject!r} must be 1-12")
            result[subject.strip().lower()] = month
        return result

    @property
    def is_production(self) -> bool:
        return self.env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
