# stocktracker/services/portfolio/types.py
"""
Internal data types for the Portfolio Service.

These dataclasses are used internally by the portfolio calculators.
They are NOT Pydantic schemas - those are defined in
stocktracker/schemas/portfolio.py for API serialization.

Design Principles:
- Use Decimal for ALL financial values (never float)
- Average costs are derived properties, never stored
- Optional fields use None, not sentinel values
- Warnings accumulate for data quality tracking

Type Hierarchy:
    Holding               - Running position for one symbol
    CostBasisResult       - Cost basis re-walked at historical FX rates
    ValueResult           - Current value with live FX conversion
    HoldingPerformance    - Complete view of one holding
    PortfolioStats        - Aggregate over all holdings
    TransactionSummary, AccountSummary, DiversificationEntry,
    MonthlyActivity, CurrencyBreakdownEntry - summary views
    BackfillResult, RefreshResult - maintenance operation outcomes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from stocktracker.constants import QUANTITY_PRECISION

if TYPE_CHECKING:
    from stocktracker.models import Transaction


# =============================================================================
# HOLDINGS
# =============================================================================

@dataclass
class Holding:
    """
    Running position for one symbol, folded from its transactions.

    Attributes:
        symbol: Symbol as recorded on transactions
        company: Display name (first non-empty company seen, else symbol)
        currency: Currency of the first transaction
        reporting_currency: Currency of total_cost_reporting
        account_id: Account of the first transaction
        quantity: Σ buys − Σ sells
        total_cost: Running cost in the transaction currency
        total_cost_reporting: Running cost in the reporting currency,
            from the conversions captured on each transaction
        transactions: Constituent transactions in input order
        warnings: Data quality notes (e.g., oversells)
    """

    symbol: str
    company: str
    currency: str
    reporting_currency: str
    account_id: str | None = None
    quantity: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    total_cost_reporting: Decimal = Decimal("0")
    transactions: list[Transaction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def has_position(self) -> bool:
        """True if there are shares currently held."""
        return self.quantity > Decimal("0")

    @property
    def avg_cost(self) -> Decimal | None:
        """Average cost per share in the transaction currency, None without a position."""
        if not self.has_position:
            return None
        return (self.total_cost / self.quantity).quantize(QUANTITY_PRECISION)

    @property
    def avg_cost_reporting(self) -> Decimal | None:
        """Average cost per share in the reporting currency, None without a position."""
        if not self.has_position:
            return None
        return (self.total_cost_reporting / self.quantity).quantize(QUANTITY_PRECISION)

    @property
    def exchange(self) -> str | None:
        """
        Exchange of the first transaction (input order) that names one.

        Manually entered transactions often lack an exchange, so the first
        transaction alone is not enough. None means US/auto.
        """
        for txn in self.transactions:
            if txn.exchange and txn.exchange.strip():
                return txn.exchange.strip().upper()
        return None

    @property
    def first_date(self) -> date | None:
        """Earliest trade date among the constituent transactions."""
        if not self.transactions:
            return None
        return min(txn.date for txn in self.transactions)


# =============================================================================
# COST BASIS & VALUE
# =============================================================================

@dataclass(frozen=True)
class CostBasisResult:
    """
    Cost basis of a holding in the reporting currency.

    Each buy is converted at the historical rate of its own trade date.

    Attributes:
        amount: Cost basis in reporting currency
        currency: Reporting currency
        used_stored_cost: True if historical rates were unavailable and the
            holding's captured reporting cost was used instead
        warnings: Conversion problems encountered
    """

    amount: Decimal
    currency: str
    used_stored_cost: bool = False
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ValueResult:
    """
    Market value of a holding.

    Attributes:
        price: Price per share in price_currency
        price_currency: Currency the price is quoted in
        local_amount: quantity × price
        reporting_amount: local_amount at the live rate
        fx_rate: Live rate used (1 when currencies match)
    """

    price: Decimal
    price_currency: str
    local_amount: Decimal
    reporting_amount: Decimal
    fx_rate: Decimal


@dataclass
class HoldingPerformance:
    """
    Complete performance view of one holding.

    Price-derived fields are None when no price is known at all.

    Attributes:
        holding: The underlying position
        current_price: Price per share (None if unknown)
        price_currency: Currency of current_price
        price_stale: True if the price is a last known fallback
        price_as_of: Date of the price
        current_value: quantity × price in price currency
        current_value_reporting: current_value at the live FX rate
        cost_basis: Cost basis in reporting currency at historical rates
        gain_loss: current_value_reporting − cost_basis
        gain_loss_percent: gain_loss / cost_basis × 100 (0 if no cost basis)
        years_held: Years since the earliest transaction (min 0.01)
        arr: Annualized rate of return in percent
        fx_history_missing: Some constituent transaction lacks a real
            historical FX rate, so cost basis may be inaccurate
        warnings: Problems encountered while evaluating this holding
    """

    holding: Holding
    cost_basis: Decimal
    years_held: Decimal
    current_price: Decimal | None = None
    price_currency: str | None = None
    price_stale: bool = False
    price_as_of: date | None = None
    current_value: Decimal | None = None
    current_value_reporting: Decimal | None = None
    gain_loss: Decimal | None = None
    gain_loss_percent: Decimal | None = None
    arr: Decimal | None = None
    fx_history_missing: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def has_price(self) -> bool:
        return self.current_price is not None


@dataclass
class PortfolioStats:
    """
    Aggregate performance across all current holdings.

    Attributes:
        reporting_currency: Currency of every amount
        total_invested: Σ cost basis
        total_current_value: Σ current value (cost basis where unpriced)
        total_gain_loss: total_current_value − total_invested
        total_gain_loss_percent: total_gain_loss / total_invested × 100
        total_arr: Cost-basis-weighted average ARR
        holdings: Per-holding performance, in holdings order
        warnings: Portfolio-level warnings
    """

    reporting_currency: str
    total_invested: Decimal = Decimal("0")
    total_current_value: Decimal = Decimal("0")
    total_gain_loss: Decimal = Decimal("0")
    total_gain_loss_percent: Decimal = Decimal("0")
    total_arr: Decimal = Decimal("0")
    holdings: list[HoldingPerformance] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def total_positions(self) -> int:
        return len(self.holdings)


# =============================================================================
# SUMMARIES
# =============================================================================

@dataclass
class TransactionSummary:
    """Counts and reporting-currency values of buys and sells."""

    reporting_currency: str
    total_buys: int = 0
    total_sells: int = 0
    total_buy_value: Decimal = Decimal("0")
    total_sell_value: Decimal = Decimal("0")
    total_fees: Decimal = Decimal("0")


@dataclass
class AccountSummary:
    """Positions and totals for a single account."""

    account_id: str
    account_name: str
    account_currency: str
    reporting_currency: str
    total_positions: int
    total_invested: Decimal
    total_fees: Decimal
    holdings: list[Holding] = field(default_factory=list)


@dataclass(frozen=True)
class DiversificationEntry:
    """Share of the portfolio's cost held in one symbol."""

    symbol: str
    company: str
    value: Decimal
    percentage: Decimal
    reporting_currency: str


@dataclass
class MonthlyActivity:
    """Buys and sells within one calendar month ("YYYY-MM")."""

    month: str
    reporting_currency: str
    buys: int = 0
    sells: int = 0
    total_buy_value: Decimal = Decimal("0")
    total_sell_value: Decimal = Decimal("0")


@dataclass
class CurrencyBreakdownEntry:
    """Amount bought in one transaction currency."""

    currency: str
    total_invested: Decimal = Decimal("0")
    transactions: int = 0


# =============================================================================
# MAINTENANCE RESULTS
# =============================================================================

@dataclass
class BackfillResult:
    """
    Outcome of filling missing FX fields on transactions.

    Attributes:
        base_currency: Currency the conversions were made into
        candidates: Transactions that needed a rate
        updated: Transactions that received one
        failed_ids: Ids of transactions whose rate could not be fetched
    """

    base_currency: str
    candidates: int = 0
    updated: int = 0
    failed_ids: list[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failed_ids)


@dataclass
class RefreshResult:
    """
    Outcome of refreshing prices for all current holdings.

    Attributes:
        holdings: Number of holdings priced
        fresh: Quotes fetched from the provider
        stale: Quotes served from last known prices
        missing: Holdings with no price at all
        persisted: Last known prices written to the store
        fx_refreshed: Whether live FX rates were refreshed
    """

    holdings: int = 0
    fresh: int = 0
    stale: int = 0
    missing: int = 0
    persisted: int = 0
    fx_refreshed: bool = False
