# stocktracker/config.py
"""
Settings read from the environment (and an optional .env next to the
package) by pydantic-settings. A bad value fails at import time, so the
server refuses to start rather than misreporting later.

Usage:
    from stocktracker.config import settings

    store = JsonDocumentStore(settings.store_path)
"""
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stocktracker.constants import (
    EXTERNAL_API_TIMEOUT_SECONDS,
    FX_LIVE_TTL_SECONDS,
    PRICE_CACHE_TTL_SECONDS,
    PRICE_FAILURE_SUPPRESSION_SECONDS,
    SUPPORTED_CURRENCIES,
)


_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """
    Runtime knobs. Every field maps to the upper-cased env var of the
    same name, e.g. PRICE_CACHE_TTL_SECONDS.

    BASE_CURRENCY, when set, overrides the currency stored in the portfolio
    document and must be one of SUPPORTED_CURRENCIES because stored FX
    snapshots carry no other currencies.
    """

    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Deployment mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Root log level name"
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Log output format"
    )

    app_name: str = "Stock Tracker"
    debug: bool = False

    # =========================================================================
    # PORTFOLIO STORE
    # =========================================================================
    store_path: Path = Field(
        default=Path("data/portfolio.json"),
        description="Path of the JSON document holding accounts, transactions and FX rates"
    )
    base_currency: str | None = Field(
        default=None,
        min_length=3,
        max_length=3,
        description="Reporting currency; unset means the document's settings.baseCurrency"
    )

    # =========================================================================
    # FX PROVIDER
    # =========================================================================
    fx_api_base_url: str = Field(
        default="https://api.frankfurter.app",
        description="Frankfurter API base URL"
    )
    fx_live_ttl_seconds: int = Field(
        default=FX_LIVE_TTL_SECONDS,
        ge=0,
        description="Seconds a live FX snapshot is reused before refetching"
    )
    http_timeout_seconds: float = Field(
        default=EXTERNAL_API_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout for outbound HTTP calls"
    )

    # =========================================================================
    # PRICE LOOKUP
    # =========================================================================
    price_cache_ttl_seconds: int = Field(
        default=PRICE_CACHE_TTL_SECONDS,
        ge=0,
        description="Seconds a fetched quote is served from memory"
    )
    price_failure_suppression_seconds: int = Field(
        default=PRICE_FAILURE_SUPPRESSION_SECONDS,
        ge=0,
        description="Seconds to skip the provider for a symbol after a failed fetch"
    )

    # =========================================================================
    # CORS
    # =========================================================================
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Allowed CORS origins (JSON list in env var)"
    )

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("base_currency", mode="before")
    @classmethod
    def normalize_base_currency(cls, value):
        if isinstance(value, str):
            return value.strip().upper() or None
        return value

    @model_validator(mode="after")
    def validate_currency_config(self) -> "Settings":
        if self.base_currency is not None and self.base_currency not in SUPPORTED_CURRENCIES:
            raise ValueError(
                f"BASE_CURRENCY '{self.base_currency}' is not supported, "
                f"use one of {', '.join(SUPPORTED_CURRENCIES)}"
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        return self.environment == "test"


settings = Settings()
