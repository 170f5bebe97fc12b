# stocktracker/schemas/transactions.py
"""
Pydantic schemas for editing stored transactions and accounts.

Request bodies accept the document's camelCase keys as well as snake_case,
so a transaction copied out of portfolio.json can be posted back as is.
Responses use snake_case like the rest of the API.
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from stocktracker.models import FXRateSource, TransactionType


class EditRequest(BaseModel):
    """Base for request bodies: camelCase or snake_case keys, nothing else."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionCreateRequest(EditRequest):
    """A new buy or sell fill. The server assigns id and addedAt."""

    account_id: str | None = None
    date: dt.date = Field(..., description="Trade date")
    settlement_date: dt.date | None = None
    type: TransactionType
    symbol: str = Field(..., min_length=1, max_length=20)
    company: str | None = None
    exchange: str | None = None
    broker: str | None = None
    quantity: Decimal = Field(..., gt=0)
    currency: str = Field(default="USD", description="Currency of price, fees and total")
    price: Decimal = Field(default=Decimal("0"), ge=0)
    fees: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal | None = Field(
        default=None,
        description="Amount in currency (default: quantity × price + fees)"
    )
    fx_rate: Decimal | None = Field(
        default=None,
        gt=0,
        description="1 currency = fx_rate × reporting currency, if known"
    )
    fx_rate_source: FXRateSource | None = None
    fx_rate_date: dt.date | None = None
    contract_note_no: str | None = None


class TransactionUpdateRequest(EditRequest):
    """Fields to change on a stored transaction; omitted fields are kept."""

    account_id: str | None = None
    date: dt.date | None = None
    settlement_date: dt.date | None = None
    type: TransactionType | None = None
    symbol: str | None = Field(default=None, min_length=1, max_length=20)
    company: str | None = None
    exchange: str | None = None
    broker: str | None = None
    quantity: Decimal | None = Field(default=None, gt=0)
    currency: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    fees: Decimal | None = Field(default=None, ge=0)
    total: Decimal | None = None
    fx_rate: Decimal | None = Field(default=None, gt=0)
    fx_rate_source: FXRateSource | None = None
    fx_rate_date: dt.date | None = None
    contract_note_no: str | None = None


class TransactionResponse(BaseModel):
    """A stored transaction."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str | None = None
    date: dt.date
    settlement_date: dt.date | None = None
    type: TransactionType
    symbol: str
    company: str | None = None
    exchange: str | None = None
    broker: str | None = None
    quantity: Decimal
    currency: str
    price: Decimal
    fees: Decimal
    total: Decimal = Field(..., description="Amount in currency")
    fx_rate: Decimal | None = None
    fx_rate_source: FXRateSource | None = None
    fx_rate_date: dt.date | None = None
    base_currency: str | None = Field(
        default=None,
        description="Currency the *_in_base amounts are in"
    )
    price_in_base: Decimal | None = None
    fees_in_base: Decimal | None = None
    total_in_base: Decimal | None = None
    contract_note_no: str | None = None
    added_at: dt.datetime | None = None


# =============================================================================
# ACCOUNTS
# =============================================================================

class AccountUpsertRequest(EditRequest):
    """The full account record; replaces whatever is stored under the id."""

    name: str | None = None
    broker: str | None = None
    default_currency: str | None = None
    account_type: str | None = None
    is_active: bool = True
    notes: str | None = None


class AccountResponse(BaseModel):
    """A stored account."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str | None = None
    broker: str | None = None
    default_currency: str | None = None
    account_type: str | None = None
    is_active: bool
    notes: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None
