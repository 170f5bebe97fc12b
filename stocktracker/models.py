# stocktracker/models.py
"""
Pydantic models for the portfolio document.

The whole portfolio lives in one JSON document that is read and written
wholesale:

    {
        "accounts": {"schwab_12345": {...}},
        "transactions": [{...}, ...],
        "processedFiles": ["contract-note-file-id", ...],
        "favorites": {...},
        "fxRates": {
            "live": {"base": "USD", "rates": {...}, "date": "...",
                     "fetchedAt": "...", "cachedUntil": "..."},
            "2024-01-15": {"base": "USD", "rates": {...}, "date": "...",
                           "fetchedAt": "..."}
        },
        "settings": {"baseCurrency": "CAD", "createdAt": "...",
                     "lastPrices": {"BP.L": {"price": 4.82, "currency": "GBP",
                                             "date": "2024-03-01"}}}
    }

Keys are camelCase on disk and snake_case in Python. Unknown keys are kept
(extra="allow") so fields written by other tools survive a round trip.
Amounts are Decimal in memory and plain JSON numbers on disk.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from stocktracker.constants import DEFAULT_BASE_CURRENCY


# Decimal in Python, JSON number on disk
Amount = Annotated[
    Decimal,
    PlainSerializer(lambda value: float(value), return_type=float, when_used="json"),
]


class TransactionType(str, Enum):
    """Side of a fill."""
    BUY = "buy"
    SELL = "sell"


class FXRateSource(str, Enum):
    """Where a transaction's captured FX rate came from."""
    CONTRACT = "contract"   # Printed on the broker's contract note
    API = "api"             # Historical rate fetched from the FX provider
    MANUAL = "manual"       # Typed in by the user
    FALLBACK = "fallback"   # Placeholder rate, needs backfill
    NONE = "none"           # Same-currency transaction


class DocumentModel(BaseModel):
    """Base for every object stored in the portfolio document."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


# =============================================================================
# ACCOUNTS & TRANSACTIONS
# =============================================================================

class Account(DocumentModel):
    """A brokerage account."""

    id: str
    name: str | None = None
    broker: str | None = None
    default_currency: str | None = None
    account_type: str | None = None
    is_active: bool = True
    notes: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class Transaction(DocumentModel):
    """
    One buy or sell fill.

    `total` is in `currency` and is never re-denominated. The *_in_base
    fields are conversions captured when the transaction was recorded (or
    by the FX backfill), in `base_currency`.
    """

    id: str
    account_id: str | None = None
    date: dt.date
    settlement_date: dt.date | None = None
    type: TransactionType
    symbol: str
    company: str | None = None
    quantity: Amount = Field(gt=0)
    currency: str = "USD"
    price: Amount = Decimal("0")
    fees: Amount = Decimal("0")
    total: Amount
    fx_rate: Amount | None = None
    fx_rate_source: FXRateSource | None = None
    fx_rate_date: dt.date | None = None
    base_currency: str | None = None
    price_in_base: Amount | None = None
    fees_in_base: Amount | None = None
    total_in_base: Amount | None = None
    exchange: str | None = None
    broker: str | None = None
    added_at: dt.datetime | None = None
    contract_note_no: str | None = None

    @property
    def is_buy(self) -> bool:
        return self.type == TransactionType.BUY

    @property
    def is_sell(self) -> bool:
        return self.type == TransactionType.SELL


# =============================================================================
# FX RATES
# =============================================================================

class FXSnapshot(DocumentModel):
    """
    Exchange rates against the pivot currency for one date.

    `date` is the date the provider reported, which for weekends and
    holidays can differ from the key the snapshot is stored under.
    `cached_until` is only set on the live snapshot.
    """

    base: str = "USD"
    rates: dict[str, Amount]
    date: dt.date
    fetched_at: dt.datetime
    cached_until: dt.datetime | None = None


# =============================================================================
# SETTINGS
# =============================================================================

class LastPrice(DocumentModel):
    """Last known good price for a provider ticker."""

    price: Amount
    currency: str
    date: dt.date


class StoreSettings(DocumentModel):
    """User settings persisted alongside the data."""

    base_currency: str = DEFAULT_BASE_CURRENCY
    created_at: dt.datetime | None = None
    last_prices: dict[str, LastPrice] = Field(default_factory=dict)


# =============================================================================
# DOCUMENT
# =============================================================================

class PortfolioDocument(DocumentModel):
    """The complete stored portfolio."""

    accounts: dict[str, Account] = Field(default_factory=dict)
    transactions: list[Transaction] = Field(default_factory=list)
    processed_files: list[str] = Field(default_factory=list)
    favorites: dict[str, Any] = Field(default_factory=dict)
    fx_rates: dict[str, FXSnapshot] = Field(default_factory=dict)
    settings: StoreSettings = Field(default_factory=StoreSettings)
