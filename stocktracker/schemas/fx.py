# stocktracker/schemas/fx.py
"""
Pydantic schemas for exchange rates.

These schemas handle:
- Rate snapshots (live and historical)
- Currency conversion results
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class FXSnapshotResponse(BaseModel):
    """Rates against the pivot currency for one date."""

    model_config = ConfigDict(from_attributes=True)

    base: str = Field(..., description="Pivot currency every rate is quoted against")
    date: dt.date = Field(..., description="Date the provider reported for these rates")
    rates: dict[str, Decimal] = Field(..., description="1 base = rate × currency")
    fetched_at: dt.datetime = Field(..., description="When the rates were fetched")
    cached_until: dt.datetime | None = Field(
        default=None,
        description="Expiry of the live snapshot (None for historical snapshots)"
    )


class ConversionResponse(BaseModel):
    """Result of converting an amount between currencies."""

    amount: Decimal = Field(..., description="Amount in from_currency")
    from_currency: str
    to_currency: str
    rate: Decimal = Field(..., description="1 from_currency = rate × to_currency")
    converted: Decimal = Field(..., description="Amount in to_currency")
    rate_date: dt.date | None = Field(
        default=None,
        description="Historical date used (None for the live rate)"
    )
