# stocktracker/services/portfolio/service.py
"""
Portfolio Service - Main orchestrator for portfolio performance.

This is the single entry point for portfolio operations:
- get_holdings(): Open positions, optionally for one account
- calculate_portfolio_stats(): Cost, value, gain/loss and ARR per holding
  and in aggregate
- summaries: transactions, accounts, diversification, monthly activity,
  currency breakdown
- editing: add, update and delete transactions; create or replace accounts
- maintenance: FX backfill, price refresh, cache clearing

Design Principles:
- Dependency Injection: store, FX and price services via constructor
- No HTTP Knowledge: Raises domain exceptions, not HTTPException
- Composable: Uses specialized calculators for each task
- Isolation: One holding failing never fails the whole portfolio

Usage:
    service = PortfolioService(store, fx_service, price_service)

    stats = await service.calculate_portfolio_stats()
    for perf in stats.holdings:
        print(perf.holding.symbol, perf.gain_loss, perf.arr)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from stocktracker.constants import (
    MONEY_PRECISION,
    QUANTITY_PRECISION,
)
from stocktracker.models import Account, FXRateSource, PortfolioDocument, Transaction
from stocktracker.services.exceptions import (
    AccountNotFoundError,
    FXRateError,
    TransactionNotFoundError,
    ValidationError,
)
from stocktracker.services.portfolio.calculators import (
    CostBasisCalculator,
    HoldingsCalculator,
    ReturnCalculator,
    SummaryCalculator,
    ValueCalculator,
)
from stocktracker.services.portfolio.types import (
    AccountSummary,
    BackfillResult,
    CurrencyBreakdownEntry,
    DiversificationEntry,
    Holding,
    HoldingPerformance,
    MonthlyActivity,
    PortfolioStats,
    RefreshResult,
    TransactionSummary,
)
from stocktracker.services.protocols import (
    Clock,
    DocumentStore,
    FXRateServiceProtocol,
    PriceServiceProtocol,
)
from stocktracker.utils.date_utils import utc_now, years_between

logger = logging.getLogger(__name__)

YEARS_PRECISION = Decimal("0.0001")

ModelT = TypeVar("ModelT", bound=BaseModel)

# Set by the service, never by callers
_SERVER_FIELDS = frozenset({"id", "added_at"})

# Amounts the captured conversion is derived from
_CONVERTED_INPUTS = frozenset({"price", "fees", "total", "fx_rate"})

_CONVERSION_FIELDS = (
    "fx_rate",
    "fx_rate_source",
    "fx_rate_date",
    "base_currency",
    "price_in_base",
    "fees_in_base",
    "total_in_base",
)


class PortfolioService:
    """
    Orchestrates holdings, prices and FX into portfolio performance.

    Reporting currency resolution, first match wins:
        1. The reporting_currency argument of a call
        2. The reporting_currency given to the constructor
        3. settings.baseCurrency from the stored document

    Example:
        service = PortfolioService(store, fx_service, price_service)

        stats = await service.calculate_portfolio_stats("CAD")
        print(stats.total_invested, stats.total_current_value, stats.total_arr)
    """

    def __init__(
            self,
            store: DocumentStore,
            fx_service: FXRateServiceProtocol,
            price_service: PriceServiceProtocol,
            reporting_currency: str | None = None,
            clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._fx_service = fx_service
        self._price_service = price_service
        self._reporting_currency = reporting_currency.upper() if reporting_currency else None
        self._clock = clock

        self._holdings_calc = HoldingsCalculator()
        self._cost_basis_calc = CostBasisCalculator(fx_service)
        self._value_calc = ValueCalculator(fx_service)
        self._summary_calc = SummaryCalculator(self._holdings_calc)

        logger.info("PortfolioService initialized")

    async def get_reporting_currency(self, override: str | None = None) -> str:
        """Reporting currency a call with this override would use."""
        document = await self._store.read()
        return self._resolve_currency(document, override)

    def _resolve_currency(self, document: PortfolioDocument, override: str | None) -> str:
        currency = override or self._reporting_currency or document.settings.base_currency
        return currency.upper()

    # =========================================================================
    # HOLDINGS
    # =========================================================================

    async def get_holdings(
            self,
            account_id: str | None = None,
            reporting_currency: str | None = None,
    ) -> list[Holding]:
        """
        Open positions, for one account or the whole portfolio.

        Raises:
            AccountNotFoundError: If account_id is neither a known account
                nor referenced by any transaction
        """
        document = await self._store.read()
        currency = self._resolve_currency(document, reporting_currency)

        if account_id is None:
            return self._holdings_calc.calculate(document.transactions, currency)

        self._require_account(document, account_id)
        return self._holdings_calc.holdings_by_account(
            document.transactions, account_id, currency
        )

    async def get_symbol_history(self, symbol: str) -> list[Transaction]:
        """All transactions recorded for a symbol."""
        document = await self._store.read()
        return self._holdings_calc.symbol_history(document.transactions, symbol)

    # =========================================================================
    # PERFORMANCE
    # =========================================================================

    async def calculate_portfolio_stats(
            self,
            reporting_currency: str | None = None,
    ) -> PortfolioStats:
        """
        Evaluate every holding and aggregate.

        Holdings are evaluated concurrently. A holding whose evaluation
        fails keeps its captured cost, has no price or return figures and
        carries a warning; the other holdings are unaffected.

        Returns:
            PortfolioStats with holdings in first-seen symbol order
        """
        # Step 1: Load transactions and resolve the reporting currency
        document = await self._store.read()
        currency = self._resolve_currency(document, reporting_currency)
        today = self._clock().date()

        # Step 2: Fold transactions into open positions
        holdings = self._holdings_calc.calculate(document.transactions, currency)
        stats = PortfolioStats(reporting_currency=currency)
        if not holdings:
            logger.info("No open positions; returning empty portfolio stats")
            return stats

        # Step 3: Evaluate each holding concurrently
        results = await asyncio.gather(
            *(self._evaluate_holding(holding, currency, today) for holding in holdings),
            return_exceptions=True,
        )

        for holding, result in zip(holdings, results):
            if isinstance(result, BaseException):
                logger.error(f"Failed to evaluate {holding.symbol}: {result}")
                result = HoldingPerformance(
                    holding=holding,
                    cost_basis=holding.total_cost_reporting.quantize(MONEY_PRECISION),
                    years_held=self._years_held(holding, today),
                    warnings=[*holding.warnings, f"Evaluation failed: {result}"],
                )
            stats.holdings.append(result)

        # Step 4: Aggregate
        self._aggregate(stats)

        logger.info(
            f"Portfolio stats: {stats.total_positions} positions, "
            f"invested={stats.total_invested} {currency}, "
            f"value={stats.total_current_value} {currency}"
        )
        return stats

    async def _evaluate_holding(
            self,
            holding: Holding,
            reporting_currency: str,
            today: date,
    ) -> HoldingPerformance:
        """Cost basis, value, gain/loss and ARR for one holding."""
        # Step 1: Cost basis at historical rates
        cost = await self._cost_basis_calc.calculate(holding, reporting_currency)

        perf = HoldingPerformance(
            holding=holding,
            cost_basis=cost.amount,
            years_held=self._years_held(holding, today),
            fx_history_missing=(
                cost.used_stored_cost
                or self._holdings_calc.has_missing_fx_history(holding, reporting_currency)
            ),
            warnings=[*holding.warnings, *cost.warnings],
        )

        # Step 2: Current price
        quote = await self._price_service.get_current_price(holding.symbol, holding.exchange)
        if quote is None:
            perf.warnings.append(f"No price available for {holding.symbol}")
            return perf

        perf.current_price = quote.price
        perf.price_currency = quote.currency
        perf.price_stale = quote.stale
        perf.price_as_of = quote.as_of

        # Step 3: Value at the live rate
        try:
            value = await self._value_calc.calculate(holding.quantity, quote, reporting_currency)
        except FXRateError as e:
            message = f"No live {quote.currency}/{reporting_currency} rate for {holding.symbol}: {e}"
            logger.warning(message)
            perf.warnings.append(message)
            return perf

        perf.current_value = value.local_amount
        perf.current_value_reporting = value.reporting_amount

        # Step 4: Returns
        perf.gain_loss = (value.reporting_amount - cost.amount).quantize(MONEY_PRECISION)
        perf.gain_loss_percent = ReturnCalculator.gain_loss_percent(perf.gain_loss, cost.amount)
        perf.arr = ReturnCalculator.arr(perf.gain_loss, cost.amount, perf.years_held)

        return perf

    @staticmethod
    def _years_held(holding: Holding, today: date) -> Decimal:
        start = holding.first_date or today
        return years_between(start, today).quantize(YEARS_PRECISION)

    @staticmethod
    def _aggregate(stats: PortfolioStats) -> None:
        """
        Fill portfolio totals from per-holding results (mutates stats).

        Unpriced holdings count at cost in the current value, so they add
        to the amount invested without showing a gain or loss.
        """
        total_invested = Decimal("0")
        total_value = Decimal("0")
        for perf in stats.holdings:
            total_invested += perf.cost_basis
            total_value += (
                perf.current_value_reporting
                if perf.current_value_reporting is not None
                else perf.cost_basis
            )

        stats.total_invested = total_invested.quantize(MONEY_PRECISION)
        stats.total_current_value = total_value.quantize(MONEY_PRECISION)
        stats.total_gain_loss = (total_value - total_invested).quantize(MONEY_PRECISION)
        stats.total_gain_loss_percent = ReturnCalculator.gain_loss_percent(
            stats.total_gain_loss, stats.total_invested
        )
        stats.total_arr = ReturnCalculator.weighted_arr(
            ((perf.arr, perf.cost_basis) for perf in stats.holdings if perf.arr is not None),
            stats.total_invested,
        )

        unpriced = [perf.holding.symbol for perf in stats.holdings if not perf.has_price]
        if unpriced:
            stats.warnings.append(f"Valued at cost (no price): {', '.join(unpriced)}")

    # =========================================================================
    # SUMMARIES
    # =========================================================================

    async def get_transaction_summary(
            self,
            reporting_currency: str | None = None,
    ) -> TransactionSummary:
        document = await self._store.read()
        currency = self._resolve_currency(document, reporting_currency)
        return self._summary_calc.transaction_summary(document.transactions, currency)

    async def get_account_summary(
            self,
            account_id: str,
            reporting_currency: str | None = None,
    ) -> AccountSummary:
        """
        Raises:
            AccountNotFoundError: If the account is unknown
        """
        document = await self._store.read()
        self._require_account(document, account_id)
        currency = self._resolve_currency(document, reporting_currency)
        return self._summary_calc.account_summary(document, account_id, currency)

    async def get_diversification(
            self,
            reporting_currency: str | None = None,
    ) -> list[DiversificationEntry]:
        document = await self._store.read()
        currency = self._resolve_currency(document, reporting_currency)
        return self._summary_calc.diversification(document.transactions, currency)

    async def get_monthly_activity(
            self,
            reporting_currency: str | None = None,
    ) -> list[MonthlyActivity]:
        document = await self._store.read()
        currency = self._resolve_currency(document, reporting_currency)
        return self._summary_calc.monthly_activity(document.transactions, currency)

    async def get_currency_breakdown(self) -> list[CurrencyBreakdownEntry]:
        document = await self._store.read()
        return self._summary_calc.currency_breakdown(document.transactions)

    @staticmethod
    def _require_account(document: PortfolioDocument, account_id: str) -> None:
        if account_id in document.accounts:
            return
        if any(txn.account_id == account_id for txn in document.transactions):
            return
        raise AccountNotFoundError(account_id)

    # =========================================================================
    # EDITING
    # =========================================================================

    async def add_transaction(self, data: dict[str, Any]) -> Transaction:
        """
        Record a new fill with a generated id and addedAt timestamp.

        `total` defaults to quantity × price + fees. When a foreign-currency
        fill arrives with an fx_rate but no converted amounts, they are
        captured in the reporting currency (source "manual" unless given).

        Raises:
            ValidationError: If the fields do not form a valid transaction
        """
        document = await self._store.read()
        base = self._resolve_currency(document, None)

        fields = {key: value for key, value in data.items() if key not in _SERVER_FIELDS}
        derive_total = fields.get("total") is None
        fields["id"] = f"txn_{uuid.uuid4().hex[:16]}"
        fields["added_at"] = self._clock()
        if derive_total:
            fields["total"] = Decimal("0")

        txn = self._build(Transaction, fields)
        if derive_total:
            txn.total = txn.quantity * txn.price + txn.fees
        if (
                txn.fx_rate is not None
                and txn.total_in_base is None
                and txn.currency.upper() != base
        ):
            source = txn.fx_rate_source or FXRateSource.MANUAL
            self._capture_conversion(txn, txn.fx_rate, source, base)

        document.transactions.append(txn)
        await self._store.write(document)

        logger.info(f"Added transaction {txn.id}: {txn.type.value} {txn.quantity} {txn.symbol}")
        return txn

    async def update_transaction(self, transaction_id: str, updates: dict[str, Any]) -> Transaction:
        """
        Apply field updates to a stored transaction.

        The id and addedAt never change. A currency change without a new
        fx_rate drops the captured conversion so the FX backfill picks the
        transaction up again; an amount or rate change recomputes it.

        Raises:
            TransactionNotFoundError: If no transaction has this id
            ValidationError: If the result is not a valid transaction
        """
        document = await self._store.read()
        index = self._find_transaction(document, transaction_id)
        current = document.transactions[index]

        changes = {key: value for key, value in updates.items() if key not in _SERVER_FIELDS}
        txn = self._build(Transaction, {**current.model_dump(), **changes})

        if "currency" in changes and txn.currency != current.currency and "fx_rate" not in changes:
            for name in _CONVERSION_FIELDS:
                setattr(txn, name, None)
        elif txn.fx_rate is not None and changes.keys() & _CONVERTED_INPUTS:
            base = txn.base_currency or self._resolve_currency(document, None)
            if txn.currency.upper() != base:
                source = (
                    FXRateSource.MANUAL
                    if "fx_rate" in changes and "fx_rate_source" not in changes
                    else txn.fx_rate_source or FXRateSource.MANUAL
                )
                self._capture_conversion(txn, txn.fx_rate, source, base)

        document.transactions[index] = txn
        await self._store.write(document)

        fields = ", ".join(sorted(changes)) or "no fields"
        logger.info(f"Updated transaction {transaction_id}: {fields}")
        return txn

    async def delete_transaction(self, transaction_id: str) -> Transaction:
        """
        Remove a transaction and return it.

        Raises:
            TransactionNotFoundError: If no transaction has this id
        """
        document = await self._store.read()
        index = self._find_transaction(document, transaction_id)
        removed = document.transactions.pop(index)
        await self._store.write(document)

        logger.info(f"Deleted transaction {transaction_id} ({removed.symbol})")
        return removed

    async def upsert_account(self, account_id: str, data: dict[str, Any]) -> Account:
        """
        Create or replace an account record.

        createdAt is kept from the existing record; updatedAt is always now.

        Raises:
            ValidationError: If the fields do not form a valid account
        """
        document = await self._store.read()
        existing = document.accounts.get(account_id)
        now = self._clock()

        fields = {key: value for key, value in data.items() if key not in ("id", "created_at", "updated_at")}
        account = self._build(Account, {
            **fields,
            "id": account_id,
            "created_at": existing.created_at if existing and existing.created_at else now,
            "updated_at": now,
        })

        document.accounts[account_id] = account
        await self._store.write(document)

        logger.info(f"{'Updated' if existing else 'Added'} account {account_id}")
        return account

    @staticmethod
    def _find_transaction(document: PortfolioDocument, transaction_id: str) -> int:
        for index, txn in enumerate(document.transactions):
            if txn.id == transaction_id:
                return index
        raise TransactionNotFoundError(transaction_id)

    @staticmethod
    def _build(model: type[ModelT], data: dict[str, Any]) -> ModelT:
        """Validate a stored model, reporting the first problem as a ValidationError."""
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or None
            raise ValidationError(
                f"Invalid {model.__name__.lower()}: {error['msg']}", field=field
            ) from e

    @staticmethod
    def _capture_conversion(
            txn: Transaction,
            rate: Decimal,
            source: FXRateSource,
            base: str,
            rate_date: date | None = None,
    ) -> None:
        """Store rate and *_in_base amounts on a transaction (mutates txn)."""
        txn.fx_rate = rate
        txn.fx_rate_source = source
        txn.fx_rate_date = rate_date or txn.fx_rate_date or txn.date
        txn.base_currency = base
        txn.price_in_base = ((txn.price or Decimal("0")) * rate).quantize(QUANTITY_PRECISION)
        txn.fees_in_base = ((txn.fees or Decimal("0")) * rate).quantize(MONEY_PRECISION)
        txn.total_in_base = ((txn.total or Decimal("0")) * rate).quantize(MONEY_PRECISION)

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    async def backfill_missing_fx_rates(self, base_currency: str | None = None) -> BackfillResult:
        """
        Capture historical FX conversions on transactions that lack them.

        Candidates are foreign-currency transactions with no rate, or with a
        placeholder "fallback" rate. Each gets the rate for its trade date,
        source "api", and recomputed *_in_base amounts. Transactions whose
        rate cannot be fetched are left untouched and reported.

        The document is written once at the end if anything was attempted.
        """
        document = await self._store.read()
        base = self._resolve_currency(document, base_currency)
        result = BackfillResult(base_currency=base)

        candidates = [
            txn for txn in document.transactions
            if txn.currency.upper() != base
            and (not txn.fx_rate or txn.fx_rate_source == FXRateSource.FALLBACK)
        ]
        result.candidates = len(candidates)
        if not candidates:
            logger.info(f"FX backfill: no transactions need a {base} rate")
            return result

        # One transaction at a time
        for txn in candidates:
            try:
                rate = await self._fx_service.get_historical_rate(txn.date, txn.currency, base)
            except FXRateError as e:
                logger.warning(f"FX backfill failed for transaction {txn.id} ({txn.date}): {e}")
                result.failed_ids.append(txn.id)
                continue

            self._capture_conversion(txn, rate, FXRateSource.API, base, rate_date=txn.date)
            result.updated += 1

        await self._store.write(document)

        logger.info(
            f"FX backfill into {base}: {result.updated} updated, "
            f"{result.failed} failed of {result.candidates}"
        )
        return result

    async def refresh_all_prices(self) -> RefreshResult:
        """
        Re-fetch live FX and every open holding's price, bypassing caches.

        Successful prices are persisted as last known prices so a later
        provider outage can still show a value.
        """
        result = RefreshResult()

        # Step 1: Live FX (failure is not fatal; prices are still useful)
        try:
            await self._fx_service.get_live_rates()
            result.fx_refreshed = True
        except FXRateError as e:
            logger.warning(f"Live FX refresh failed: {e}")

        # Step 2: Open holdings
        document = await self._store.read()
        currency = self._resolve_currency(document, None)
        holdings = self._holdings_calc.calculate(document.transactions, currency)
        result.holdings = len(holdings)

        # Step 3: Fetch every price fresh
        self._price_service.clear_cache()
        items = [(holding.symbol, holding.exchange) for holding in holdings]
        quotes = await self._price_service.get_batch_prices(items)

        for quote in quotes:
            if quote is None:
                result.missing += 1
            elif quote.stale:
                result.stale += 1
            else:
                result.fresh += 1

        # Step 4: Persist last known prices
        for symbol, exchange in items:
            ticker = self._price_service.normalize_symbol(symbol, exchange)
            record = self._price_service.last_known(ticker)
            if record is not None:
                document.settings.last_prices[ticker] = record
                result.persisted += 1

        if result.persisted:
            await self._store.write(document)

        logger.info(
            f"Price refresh: {result.fresh} fresh, {result.stale} stale, "
            f"{result.missing} missing of {result.holdings} holdings"
        )
        return result

    def clear_cache(self) -> None:
        """Clear the FX and price caches."""
        self._fx_service.clear_cache()
        self._price_service.clear_cache()
