# stocktracker/schemas/prices.py
"""
Pydantic schemas for current prices and price maintenance.
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PriceQuoteResponse(BaseModel):
    """Current price for one symbol."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str = Field(..., description="Provider ticker (e.g., BP.L)")
    price: Decimal = Field(..., description="Price per share, in major units")
    currency: str = Field(..., description="Currency the price is quoted in")
    stale: bool = Field(
        default=False,
        description="True if this is a last known price served during a provider outage"
    )
    as_of: dt.date | None = Field(default=None, description="Date of the price")
    source: str = Field(..., description="provider, cache or last_known")


class PriceCacheResponse(BaseModel):
    """Contents of the in-memory price cache."""

    cached_quotes: int
    oldest_fetched_at: dt.datetime | None = None
    newest_fetched_at: dt.datetime | None = None
    suppressed_tickers: list[str] = Field(
        default_factory=list,
        description="Tickers skipped after a recent provider failure"
    )
    last_known_prices: int


class PriceRefreshResponse(BaseModel):
    """Outcome of re-fetching prices for every open holding."""

    holdings: int
    fresh: int
    stale: int
    missing: int
    persisted: int = Field(..., description="Last known prices written to the store")
    fx_refreshed: bool
