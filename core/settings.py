import logging
import os
from decimal import Decimal
from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.reconciler import ReconcilePolicy

logger = logging.getLogger(__name__)

_KNOWN_PORTFOLIO_ENV_KEYS = {
    "PORTFOLIO_ROUNDING_TOLERANCE",
    "PORTFOLIO_REINVEST_PROFIT",
    "PORTFOLIO_RETAIN_SOLD_HOLDINGS",
}

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _warn_unknown_prefixed_env(prefix: str, known_keys: set[str]) -> None:
    unknown = sorted(key for key in os.environ if key.startswith(prefix) and key not in known_keys)
    if unknown:
        logger.warning("Unknown %s env vars ignored: %s", prefix, ", ".join(unknown))


class Settings(BaseSettings):
    """Application settings sourced from environment variables."""

    database_url: str = Field(
        default="sqlite:///./data/portfolio.db",
        validation_alias=AliasChoices("database_url", "DATABASE_URL", "db_url", "sqlite_url"),
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0", validation_alias=AliasChoices("redis_url", "REDIS_URL")
    )
    price_cache_namespace: str = Field(
        default="prices",
        validation_alias=AliasChoices("price_cache_namespace", "PRICE_CACHE_NAMESPACE"),
    )
    price_cache_ttl_seconds: int = Field(
        default=900,
        ge=0,
        validation_alias=AliasChoices("price_cache_ttl_seconds", "PRICE_CACHE_TTL_SECONDS"),
    )
    rounding_tolerance: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=1,
        validation_alias=AliasChoices("rounding_tolerance", "PORTFOLIO_ROUNDING_TOLERANCE"),
    )
    reinvest_realized_profit: bool = Field(
        default=False,
        validation_alias=AliasChoices("reinvest_realized_profit", "PORTFOLIO_REINVEST_PROFIT"),
    )
    retain_sold_holdings: bool = Field(
        default=True,
        validation_alias=AliasChoices("retain_sold_holdings", "PORTFOLIO_RETAIN_SOLD_HOLDINGS"),
    )
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("log_level", "LOG_LEVEL"))
    api_host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("api_host", "API_HOST"))
    api_port: int = Field(default=8000, validation_alias=AliasChoices("api_port", "API_PORT"))

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            logger.warning("LOG_LEVEL=%s is unknown; falling back to INFO", value)
            return "INFO"
        return level

    @model_validator(mode="after")
    def _warn_on_policy(self) -> "Settings":
        if self.rounding_tolerance > 0:
            logger.warning(
                "PORTFOLIO_ROUNDING_TOLERANCE=%s lets allocations overspend by up to one share",
                self.rounding_tolerance,
            )
        _warn_unknown_prefixed_env("PORTFOLIO_", _KNOWN_PORTFOLIO_ENV_KEYS)
        return self

    def reconcile_policy(self) -> ReconcilePolicy:
        return ReconcilePolicy(
            rounding_tolerance=self.rounding_tolerance,
            reinvest_realized_profit=self.reinvest_realized_profit,
            retain_sold_holdings=self.retain_sold_holdings,
        )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Cached accessor so we only load settings once per process."""
    return Settings()
