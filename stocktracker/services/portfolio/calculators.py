# stocktracker/services/portfolio/calculators.py
"""
Portfolio calculators.

Each calculator follows the Single Responsibility Principle:
- HoldingsCalculator: Folds transactions into per-symbol positions
- CostBasisCalculator: Re-walks a holding at historical FX rates
- ValueCalculator: Current value with live FX conversion
- ReturnCalculator: Gain/loss percentage and annualized return
- SummaryCalculator: Fees, account, diversification, monthly and
  currency breakdowns

Design Principles:
- No instance state beyond injected services
- Uses Decimal for ALL financial calculations
- Returns structured result objects from types.py

Average cost accounting (used for both holdings and cost basis):

    buy:   quantity += q;  cost += amount
    sell:  avg = cost / quantity            (pre-sale quantity)
           cost -= avg × q;  quantity -= q

A sell larger than the position is not rejected. The arithmetic runs on,
can leave cost negative, and the holding gets a warning.

Usage:
    holdings = HoldingsCalculator().calculate(document.transactions, "CAD")

    cost = await CostBasisCalculator(fx_service).calculate(holdings[0], "CAD")
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable

from stocktracker.models import FXRateSource, PortfolioDocument, Transaction
from stocktracker.constants import MONEY_PRECISION, PERCENT_PRECISION
from stocktracker.services.exceptions import FXRateError
from stocktracker.services.portfolio.types import (
    AccountSummary,
    CostBasisResult,
    CurrencyBreakdownEntry,
    DiversificationEntry,
    Holding,
    MonthlyActivity,
    TransactionSummary,
    ValueResult,
)
from stocktracker.utils.date_utils import month_key

if TYPE_CHECKING:
    from stocktracker.services.price_service import PriceQuote
    from stocktracker.services.protocols import FXRateServiceProtocol

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def reduce_cost_for_sale(
        running_cost: Decimal,
        quantity_before: Decimal,
        quantity_sold: Decimal,
) -> Decimal:
    """
    Remove the average cost of sold shares from a running cost.

    The average uses the quantity held before the sale. With nothing held
    the average is zero, so an oversell from an empty position leaves the
    cost unchanged.

    Example:
        >>> reduce_cost_for_sale(Decimal("1000"), Decimal("100"), Decimal("40"))
        Decimal('600')
    """
    if quantity_before <= ZERO:
        return running_cost
    avg_cost = running_cost / quantity_before
    return running_cost - avg_cost * quantity_sold


def reporting_total(txn: Transaction) -> Decimal:
    """Captured reporting-currency total, else the transaction-currency total."""
    return txn.total_in_base if txn.total_in_base is not None else txn.total


def reporting_fees(txn: Transaction) -> Decimal:
    """Captured reporting-currency fees, else the transaction-currency fees."""
    return txn.fees_in_base if txn.fees_in_base is not None else (txn.fees or ZERO)


# =============================================================================
# HOLDINGS CALCULATOR
# =============================================================================

class HoldingsCalculator:
    """
    Calculates current positions from transactions.

    Note:
        Only returns holdings whose final quantity is > 0. Fully closed and
        over-closed positions are excluded.
    """

    def calculate(
            self,
            transactions: Iterable[Transaction],
            reporting_currency: str,
    ) -> list[Holding]:
        """
        Group transactions by symbol and fold each group.

        Symbols appear in order of first encounter; transactions are applied
        in input order.

        Args:
            transactions: Buy/sell records
            reporting_currency: Currency of the captured *_in_base amounts

        Returns:
            Holdings with quantity > 0
        """
        reporting_currency = reporting_currency.upper()
        holdings: dict[str, Holding] = {}

        for txn in transactions:
            holding = holdings.get(txn.symbol)
            if holding is None:
                holding = Holding(
                    symbol=txn.symbol,
                    company=txn.company or txn.symbol,
                    currency=txn.currency.upper(),
                    reporting_currency=reporting_currency,
                    account_id=txn.account_id,
                )
                holdings[txn.symbol] = holding
            elif holding.company == holding.symbol and txn.company:
                holding.company = txn.company

            self.apply_transaction(holding, txn)

        return [holding for holding in holdings.values() if holding.has_position]

    def apply_transaction(self, holding: Holding, txn: Transaction) -> None:
        """Apply one buy or sell to a holding's running totals (mutates holding)."""
        if txn.is_buy:
            holding.quantity += txn.quantity
            holding.total_cost += txn.total
            holding.total_cost_reporting += reporting_total(txn)

        elif txn.is_sell:
            quantity_before = holding.quantity
            if txn.quantity > quantity_before:
                message = (
                    f"Sell of {txn.quantity} {holding.symbol} on {txn.date} exceeds "
                    f"the {quantity_before} held; cost basis may go negative"
                )
                logger.warning(message)
                holding.warnings.append(message)

            holding.total_cost = reduce_cost_for_sale(
                holding.total_cost, quantity_before, txn.quantity
            )
            holding.total_cost_reporting = reduce_cost_for_sale(
                holding.total_cost_reporting, quantity_before, txn.quantity
            )
            holding.quantity = quantity_before - txn.quantity

        holding.transactions.append(txn)

    def holdings_by_account(
            self,
            transactions: Iterable[Transaction],
            account_id: str,
            reporting_currency: str,
    ) -> list[Holding]:
        """Holdings built from one account's transactions only."""
        return self.calculate(
            [txn for txn in transactions if txn.account_id == account_id],
            reporting_currency,
        )

    @staticmethod
    def all_symbols(transactions: Iterable[Transaction]) -> list[str]:
        """Unique symbols in order of first appearance, including closed ones."""
        return list(dict.fromkeys(txn.symbol for txn in transactions))

    @staticmethod
    def symbol_history(transactions: Iterable[Transaction], symbol: str) -> list[Transaction]:
        """All transactions for a symbol, in input order."""
        return [txn for txn in transactions if txn.symbol == symbol]

    @staticmethod
    def has_missing_fx_history(holding: Holding, reporting_currency: str) -> bool:
        """
        True if any transaction lacks a real captured FX rate.

        That is a placeholder "fallback" rate, or a foreign-currency
        transaction with no rate at all.
        """
        reporting_currency = reporting_currency.upper()
        return any(
            txn.fx_rate_source == FXRateSource.FALLBACK
            or (txn.currency.upper() != reporting_currency and not txn.fx_rate)
            for txn in holding.transactions
        )


# =============================================================================
# COST BASIS CALCULATOR
# =============================================================================

class CostBasisCalculator:
    """
    Cost basis of a holding at each purchase's own historical FX rate.

    Independent of Holding.total_cost_reporting, whose captured conversions
    may be in another base currency or missing. Cost is never converted at
    today's rate.
    """

    def __init__(self, fx_service: FXRateServiceProtocol) -> None:
        self._fx_service = fx_service

    async def calculate(self, holding: Holding, reporting_currency: str) -> CostBasisResult:
        """
        Re-walk the holding's transactions in reporting currency.

        Buys are converted at the rate of their trade date; sells remove the
        average cost of the shares sold.

        If a historical rate cannot be obtained at all, the holding's
        captured reporting cost is returned with used_stored_cost=True.
        """
        reporting_currency = reporting_currency.upper()
        running_cost = ZERO
        quantity = ZERO

        for txn in holding.transactions:
            if txn.is_buy:
                try:
                    converted = await self._fx_service.convert_with_historical_rate(
                        txn.total, txn.currency, reporting_currency, txn.date
                    )
                except FXRateError as e:
                    message = (
                        f"No historical {txn.currency}/{reporting_currency} rate for "
                        f"{holding.symbol} on {txn.date}: {e}"
                    )
                    logger.warning(message)
                    return CostBasisResult(
                        amount=holding.total_cost_reporting.quantize(MONEY_PRECISION),
                        currency=reporting_currency,
                        used_stored_cost=True,
                        warnings=(message,),
                    )

                running_cost += converted
                quantity += txn.quantity

            elif txn.is_sell:
                running_cost = reduce_cost_for_sale(running_cost, quantity, txn.quantity)
                quantity -= txn.quantity

        return CostBasisResult(
            amount=running_cost.quantize(MONEY_PRECISION),
            currency=reporting_currency,
        )


# =============================================================================
# VALUE CALCULATOR
# =============================================================================

class ValueCalculator:
    """
    Current market value of a holding.

    Always converts at the LIVE rate: value reflects today's exchange rate
    while cost basis reflects the rate when each purchase was paid for.
    """

    def __init__(self, fx_service: FXRateServiceProtocol) -> None:
        self._fx_service = fx_service

    async def calculate(
            self,
            quantity: Decimal,
            quote: PriceQuote,
            reporting_currency: str,
    ) -> ValueResult:
        """
        Value quantity shares at the quoted price.

        Raises:
            FXRateError: If no live rate is available for the price currency
        """
        local_amount = quantity * quote.price
        rate = await self._fx_service.get_rate(quote.currency, reporting_currency)

        return ValueResult(
            price=quote.price,
            price_currency=quote.currency,
            local_amount=local_amount.quantize(MONEY_PRECISION),
            reporting_amount=(local_amount * rate).quantize(MONEY_PRECISION),
            fx_rate=rate,
        )


# =============================================================================
# RETURN CALCULATOR
# =============================================================================

class ReturnCalculator:
    """Gain/loss percentage and annualized rate of return (ARR)."""

    @staticmethod
    def gain_loss_percent(gain_loss: Decimal, cost_basis: Decimal) -> Decimal:
        """gain_loss / cost_basis × 100, or 0 when there is no cost basis."""
        if cost_basis == ZERO:
            return ZERO
        return (gain_loss / cost_basis * HUNDRED).quantize(PERCENT_PRECISION)

    @staticmethod
    def arr(gain_loss: Decimal, cost_basis: Decimal, years_held: Decimal) -> Decimal:
        """
        Simple annualized return in percent.

            ARR = gain_loss / cost_basis / years_held × 100

        Returns 0 when there is no cost basis.
        """
        if cost_basis == ZERO or years_held <= ZERO:
            return ZERO
        return (gain_loss / cost_basis / years_held * HUNDRED).quantize(PERCENT_PRECISION)

    @staticmethod
    def weighted_arr(pairs: Iterable[tuple[Decimal, Decimal]], total_weight: Decimal) -> Decimal:
        """
        Σ(arr × weight) / total_weight for (arr, weight) pairs.

        The portfolio passes each holding's cost basis as its weight.
        """
        if total_weight == ZERO:
            return ZERO
        weighted = sum((arr * weight for arr, weight in pairs), ZERO)
        return (weighted / total_weight).quantize(PERCENT_PRECISION)


# =============================================================================
# SUMMARY CALCULATOR
# =============================================================================

class SummaryCalculator:
    """
    Summary views over transactions, in the reporting currency.

    Amounts use the conversions captured on each transaction, falling back
    to transaction-currency amounts where none were captured.
    """

    def __init__(self, holdings_calculator: HoldingsCalculator | None = None) -> None:
        self._holdings = holdings_calculator or HoldingsCalculator()

    @staticmethod
    def total_fees(transactions: Iterable[Transaction]) -> Decimal:
        """Σ fees in reporting currency."""
        total = sum((reporting_fees(txn) for txn in transactions), ZERO)
        return total.quantize(MONEY_PRECISION)

    def transaction_summary(
            self,
            transactions: Iterable[Transaction],
            reporting_currency: str,
    ) -> TransactionSummary:
        summary = TransactionSummary(reporting_currency=reporting_currency.upper())

        for txn in transactions:
            if txn.is_buy:
                summary.total_buys += 1
                summary.total_buy_value += reporting_total(txn)
            elif txn.is_sell:
                summary.total_sells += 1
                summary.total_sell_value += reporting_total(txn)
            summary.total_fees += reporting_fees(txn)

        summary.total_buy_value = summary.total_buy_value.quantize(MONEY_PRECISION)
        summary.total_sell_value = summary.total_sell_value.quantize(MONEY_PRECISION)
        summary.total_fees = summary.total_fees.quantize(MONEY_PRECISION)
        return summary

    def account_summary(
            self,
            document: PortfolioDocument,
            account_id: str,
            reporting_currency: str,
    ) -> AccountSummary:
        """Positions, invested amount and fees for one account."""
        reporting_currency = reporting_currency.upper()
        account = document.accounts.get(account_id)
        account_txns = [txn for txn in document.transactions if txn.account_id == account_id]
        holdings = self._holdings.calculate(account_txns, reporting_currency)

        invested = sum((h.total_cost_reporting for h in holdings), ZERO)
        return AccountSummary(
            account_id=account_id,
            account_name=(account.name if account and account.name else account_id),
            account_currency=(
                account.default_currency.upper()
                if account and account.default_currency
                else reporting_currency
            ),
            reporting_currency=reporting_currency,
            total_positions=len(holdings),
            total_invested=invested.quantize(MONEY_PRECISION),
            total_fees=self.total_fees(account_txns),
            holdings=holdings,
        )

    def diversification(
            self,
            transactions: Iterable[Transaction],
            reporting_currency: str,
    ) -> list[DiversificationEntry]:
        """Each holding's share of total cost, largest first."""
        reporting_currency = reporting_currency.upper()
        holdings = self._holdings.calculate(transactions, reporting_currency)
        total = sum((h.total_cost_reporting for h in holdings), ZERO)

        entries = [
            DiversificationEntry(
                symbol=h.symbol,
                company=h.company,
                value=h.total_cost_reporting.quantize(MONEY_PRECISION),
                percentage=(
                    (h.total_cost_reporting / total * HUNDRED).quantize(PERCENT_PRECISION)
                    if total != ZERO else ZERO
                ),
                reporting_currency=reporting_currency,
            )
            for h in holdings
        ]
        return sorted(entries, key=lambda entry: entry.percentage, reverse=True)

    @staticmethod
    def monthly_activity(
            transactions: Iterable[Transaction],
            reporting_currency: str,
    ) -> list[MonthlyActivity]:
        """Buys and sells grouped by calendar month, oldest first."""
        reporting_currency = reporting_currency.upper()
        by_month: dict[str, MonthlyActivity] = {}

        for txn in transactions:
            key = month_key(txn.date)
            activity = by_month.setdefault(
                key, MonthlyActivity(month=key, reporting_currency=reporting_currency)
            )
            if txn.is_buy:
                activity.buys += 1
                activity.total_buy_value += reporting_total(txn)
            elif txn.is_sell:
                activity.sells += 1
                activity.total_sell_value += reporting_total(txn)

        for activity in by_month.values():
            activity.total_buy_value = activity.total_buy_value.quantize(MONEY_PRECISION)
            activity.total_sell_value = activity.total_sell_value.quantize(MONEY_PRECISION)

        return sorted(by_month.values(), key=lambda activity: activity.month)

    @staticmethod
    def currency_breakdown(transactions: Iterable[Transaction]) -> list[CurrencyBreakdownEntry]:
        """Amount bought per transaction currency (not converted), largest first."""
        by_currency: dict[str, CurrencyBreakdownEntry] = {}

        for txn in transactions:
            currency = (txn.currency or "USD").upper()
            entry = by_currency.setdefault(currency, CurrencyBreakdownEntry(currency=currency))
            if txn.is_buy:
                entry.total_invested += txn.total
                entry.transactions += 1

        for entry in by_currency.values():
            entry.total_invested = entry.total_invested.quantize(MONEY_PRECISION)

        return sorted(by_currency.values(), key=lambda entry: entry.total_invested, reverse=True)
