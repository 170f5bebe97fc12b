# stocktracker/schemas/portfolio.py
"""
Pydantic schemas for portfolio performance.

These schemas handle:
- Holdings (positions)
- Per-holding and portfolio performance (cost, value, gain/loss, ARR)
- Summaries and FX backfill results
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field


# =============================================================================
# HOLDINGS
# =============================================================================

class HoldingResponse(BaseModel):
    """An open position built from transactions."""

    symbol: str
    company: str
    exchange: str | None = Field(default=None, description="Exchange of the position")
    account_id: str | None = None
    currency: str = Field(..., description="Currency of the first transaction")
    quantity: Decimal = Field(..., description="Σ buys − Σ sells")
    total_cost: Decimal = Field(..., description="Running cost in the transaction currency")
    avg_cost: Decimal | None = Field(
        default=None,
        description="Average cost per share in the transaction currency"
    )
    total_cost_reporting: Decimal = Field(
        ...,
        description="Running cost from captured conversions, in reporting_currency"
    )
    reporting_currency: str
    first_date: dt.date | None = Field(default=None, description="Earliest transaction date")
    warnings: list[str] = Field(default_factory=list)


class HoldingsListResponse(BaseModel):
    """Open positions for the portfolio or one account."""

    account_id: str | None = None
    reporting_currency: str
    holdings: list[HoldingResponse]
    total: int


# =============================================================================
# PERFORMANCE
# =============================================================================

class HoldingPerformanceResponse(BaseModel):
    """Performance of one holding, in the reporting currency."""

    symbol: str
    company: str
    exchange: str | None = None
    quantity: Decimal
    cost_basis: Decimal = Field(
        ...,
        description="Cost at each purchase's historical FX rate"
    )
    current_price: Decimal | None = Field(default=None, description="None if never priced")
    price_currency: str | None = None
    price_stale: bool = Field(default=False, description="Price is a last known fallback")
    price_as_of: dt.date | None = None
    current_value: Decimal | None = Field(
        default=None,
        description="Value in the price currency"
    )
    current_value_reporting: Decimal | None = Field(
        default=None,
        description="Value at the live FX rate"
    )
    gain_loss: Decimal | None = None
    gain_loss_percent: Decimal | None = None
    years_held: Decimal
    arr: Decimal | None = Field(default=None, description="Annualized return, percent")
    fx_history_missing: bool = Field(
        default=False,
        description="Some transaction lacks a real captured FX rate"
    )
    warnings: list[str] = Field(default_factory=list)


class PortfolioStatsResponse(BaseModel):
    """Portfolio totals with per-holding breakdown."""

    reporting_currency: str
    total_positions: int
    total_invested: Decimal
    total_current_value: Decimal = Field(
        ...,
        description="Σ current value; unpriced holdings count at cost"
    )
    total_gain_loss: Decimal
    total_gain_loss_percent: Decimal
    total_arr: Decimal = Field(..., description="Cost-weighted average ARR, percent")
    holdings: list[HoldingPerformanceResponse]
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# SUMMARIES
# =============================================================================

class TransactionSummaryResponse(BaseModel):
    reporting_currency: str
    total_buys: int
    total_sells: int
    total_buy_value: Decimal
    total_sell_value: Decimal
    total_fees: Decimal


class DiversificationEntryResponse(BaseModel):
    symbol: str
    company: str
    value: Decimal
    percentage: Decimal


class MonthlyActivityResponse(BaseModel):
    month: str = Field(..., description="YYYY-MM")
    buys: int
    sells: int
    total_buy_value: Decimal
    total_sell_value: Decimal


class CurrencyBreakdownEntryResponse(BaseModel):
    currency: str
    total_invested: Decimal = Field(..., description="Amount bought, not converted")
    transactions: int


class PortfolioSummaryResponse(BaseModel):
    """All summary views in one response."""

    reporting_currency: str
    transactions: TransactionSummaryResponse
    diversification: list[DiversificationEntryResponse]
    monthly_activity: list[MonthlyActivityResponse]
    currency_breakdown: list[CurrencyBreakdownEntryResponse]


class AccountSummaryResponse(BaseModel):
    """Positions, amount invested and fees for one account."""

    account_id: str
    account_name: str
    account_currency: str
    reporting_currency: str
    total_positions: int
    total_invested: Decimal
    total_fees: Decimal
    holdings: list[HoldingResponse]


# =============================================================================
# MAINTENANCE
# =============================================================================

class BackfillResponse(BaseModel):
    """Outcome of filling missing FX rates on transactions."""

    base_currency: str
    candidates: int
    updated: int
    failed: int
    failed_ids: list[str] = Field(default_factory=list)
