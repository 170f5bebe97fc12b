# tests/services/test_portfolio_service.py
"""
Integration tests for PortfolioService.

These tests wire the real FXRateService and PriceService to mock providers
and an in-memory store, then check the full pipeline:
- Portfolio stats: cost at historical FX, value at live FX, gain/loss, ARR
- Error isolation between holdings
- Summaries and account lookups
- FX backfill and price refresh
"""

from datetime import date
from decimal import Decimal

import pytest

from stocktracker.models import FXRateSource, LastPrice
from stocktracker.services.exceptions import AccountNotFoundError, ProviderUnavailableError
from stocktracker.services.portfolio import PortfolioService
from stocktracker.services.portfolio.calculators import ReturnCalculator
from stocktracker.utils.date_utils import years_between
from tests.conftest import create_snapshot, create_transaction


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def aapl_portfolio(store, fx_provider, price_provider):
    """
    10 AAPL @ 100 USD when USD→CAD was 1.30, 10 more @ 120 at 1.40.
    AAPL now trades at 150 USD and USD→CAD is 1.35.
    """
    store.document.fx_rates["2024-01-15"] = create_snapshot({"CAD": "1.30"}, date(2024, 1, 15))
    store.document.fx_rates["2024-06-03"] = create_snapshot({"CAD": "1.40"}, date(2024, 6, 3))
    store.document.transactions = [
        create_transaction("AAPL", "buy", "10", "100", txn_date=date(2024, 1, 15),
                           company="Apple Inc."),
        create_transaction("AAPL", "buy", "10", "120", txn_date=date(2024, 6, 3)),
    ]
    fx_provider.set_latest({"CAD": "1.35", "GBP": "0.80"})
    price_provider.set_price("AAPL", "150")
    return store


# =============================================================================
# PORTFOLIO STATS
# =============================================================================

class TestPortfolioStats:
    """Tests for calculate_portfolio_stats()."""

    async def test_end_to_end_cad_reporting(self, portfolio_service, aapl_portfolio, clock):
        stats = await portfolio_service.calculate_portfolio_stats()

        assert stats.reporting_currency == "CAD"
        assert stats.total_positions == 1

        perf = stats.holdings[0]
        assert perf.holding.quantity == Decimal("20")
        assert perf.holding.total_cost == Decimal("2200")
        assert perf.cost_basis == Decimal("2980.00")
        assert perf.current_value == Decimal("3000.00")
        assert perf.current_value_reporting == Decimal("4050.00")
        assert perf.gain_loss == Decimal("1070.00")
        assert perf.gain_loss_percent == Decimal("35.91")

        years = years_between(date(2024, 1, 15), clock.now.date()).quantize(Decimal("0.0001"))
        assert perf.years_held == years
        assert perf.arr == ReturnCalculator.arr(Decimal("1070.00"), Decimal("2980.00"), years)

        assert stats.total_invested == Decimal("2980.00")
        assert stats.total_current_value == Decimal("4050.00")
        assert stats.total_gain_loss == Decimal("1070.00")
        assert stats.total_gain_loss_percent == Decimal("35.91")
        assert stats.total_arr == perf.arr

    async def test_cost_uses_historical_rates_not_live(
            self, portfolio_service, aapl_portfolio, fx_provider
    ):
        """Changing today's rate moves value but never cost basis."""
        fx_provider.set_latest({"CAD": "2.00"})

        stats = await portfolio_service.calculate_portfolio_stats()

        assert stats.holdings[0].cost_basis == Decimal("2980.00")
        assert stats.holdings[0].current_value_reporting == Decimal("6000.00")

    async def test_reporting_currency_override(self, portfolio_service, aapl_portfolio):
        stats = await portfolio_service.calculate_portfolio_stats("USD")

        assert stats.reporting_currency == "USD"
        assert stats.total_invested == Decimal("2200.00")
        assert stats.total_current_value == Decimal("3000.00")

    async def test_empty_portfolio(self, portfolio_service):
        stats = await portfolio_service.calculate_portfolio_stats()

        assert stats.total_positions == 0
        assert stats.total_invested == Decimal("0")
        assert stats.total_arr == Decimal("0")

    async def test_unpriced_holding_counts_at_cost(
            self, portfolio_service, aapl_portfolio, store
    ):
        store.document.transactions.append(
            create_transaction("RY", "buy", "10", "100", currency="CAD", txn_date=date(2024, 1, 15))
        )

        stats = await portfolio_service.calculate_portfolio_stats()

        ry = next(p for p in stats.holdings if p.holding.symbol == "RY")
        assert ry.current_price is None
        assert ry.gain_loss is None
        assert ry.arr is None
        assert ry.warnings
        assert stats.total_invested == Decimal("3980.00")
        assert stats.total_current_value == Decimal("5050.00")

    async def test_total_arr_is_cost_weighted_over_all_holdings(
            self, portfolio_service, store, price_provider, clock
    ):
        """Priced holdings weight ARR by cost; unpriced cost still sits in the denominator."""
        store.document.transactions = [
            create_transaction("RY", "buy", "10", "100", currency="CAD", txn_date=date(2024, 1, 15)),
            create_transaction("TD", "buy", "30", "100", currency="CAD", txn_date=date(2024, 7, 15)),
            create_transaction("BNS", "buy", "10", "200", currency="CAD", txn_date=date(2024, 3, 1)),
        ]
        price_provider.set_price("RY", "150", currency="CAD")
        price_provider.set_price("TD", "90", currency="CAD")

        stats = await portfolio_service.calculate_portfolio_stats()

        today = clock.now.date()
        ry_years = years_between(date(2024, 1, 15), today).quantize(Decimal("0.0001"))
        td_years = years_between(date(2024, 7, 15), today).quantize(Decimal("0.0001"))
        ry_arr = ReturnCalculator.arr(Decimal("500.00"), Decimal("1000.00"), ry_years)
        td_arr = ReturnCalculator.arr(Decimal("-300.00"), Decimal("3000.00"), td_years)
        by_symbol = {p.holding.symbol: p for p in stats.holdings}
        assert by_symbol["RY"].arr == ry_arr
        assert by_symbol["TD"].arr == td_arr
        assert by_symbol["BNS"].arr is None
        assert ry_arr != td_arr

        weighted = ry_arr * Decimal("1000") + td_arr * Decimal("3000")
        assert stats.total_invested == Decimal("6000.00")
        assert stats.total_arr == (weighted / Decimal("6000")).quantize(Decimal("0.01"))
        assert stats.total_arr != (weighted / Decimal("4000")).quantize(Decimal("0.01"))
        assert "RY" in stats.warnings[0]

    async def test_stale_price_is_flagged(
            self, portfolio_service, aapl_portfolio, store, price_provider
    ):
        store.document.settings.last_prices["AAPL"] = LastPrice(
            price=Decimal("140"), currency="USD", date=date(2025, 1, 10)
        )
        price_provider.set_error("AAPL", ProviderUnavailableError("mock", "down"))

        stats = await portfolio_service.calculate_portfolio_stats()

        perf = stats.holdings[0]
        assert perf.price_stale is True
        assert perf.price_as_of == date(2025, 1, 10)
        assert perf.current_value == Decimal("2800.00")

    async def test_one_failing_holding_does_not_fail_the_rest(
            self, portfolio_service, aapl_portfolio, store, price_provider
    ):
        store.document.transactions.append(
            create_transaction("MSFT", "buy", "1", "400", total_in_base="540",
                               txn_date=date(2024, 1, 15))
        )
        price_provider.set_error("MSFT", KeyError("unexpected"))

        stats = await portfolio_service.calculate_portfolio_stats()

        msft = next(p for p in stats.holdings if p.holding.symbol == "MSFT")
        aapl = next(p for p in stats.holdings if p.holding.symbol == "AAPL")
        assert msft.cost_basis == Decimal("540.00")
        assert msft.current_value is None
        assert any("Evaluation failed" in w for w in msft.warnings)
        assert aapl.current_value_reporting == Decimal("4050.00")

    async def test_missing_fx_history_is_flagged(self, portfolio_service, aapl_portfolio):
        stats = await portfolio_service.calculate_portfolio_stats()

        # Transactions carry no captured fx_rate
        assert stats.holdings[0].fx_history_missing is True

    async def test_gbp_holding_valued_via_cross_rate(
            self, portfolio_service, store, fx_provider, price_provider
    ):
        store.document.fx_rates["2024-01-15"] = create_snapshot({"CAD": "1.30", "GBP": "0.80"})
        store.document.transactions = [
            create_transaction("BP", "buy", "100", "4", currency="GBP", exchange="LSE",
                               txn_date=date(2024, 1, 15)),
        ]
        fx_provider.set_latest({"CAD": "1.35", "GBP": "0.75"})
        price_provider.set_price("BP.L", "5", currency="GBP")

        stats = await portfolio_service.calculate_portfolio_stats()

        perf = stats.holdings[0]
        # 400 GBP × (1.30 / 0.80)
        assert perf.cost_basis == Decimal("650.00")
        # 500 GBP × (1.35 / 0.75)
        assert perf.current_value_reporting == Decimal("900.00")


# =============================================================================
# HOLDINGS & SUMMARIES
# =============================================================================

class TestHoldingsAndSummaries:
    """Tests for holdings and summary wrappers."""

    async def test_get_holdings_for_unknown_account_raises(self, portfolio_service, aapl_portfolio):
        with pytest.raises(AccountNotFoundError):
            await portfolio_service.get_holdings(account_id="nope")

    async def test_get_holdings_for_account(self, portfolio_service, aapl_portfolio):
        holdings = await portfolio_service.get_holdings(account_id="acct_1")

        assert [h.symbol for h in holdings] == ["AAPL"]

    async def test_get_symbol_history(self, portfolio_service, aapl_portfolio):
        history = await portfolio_service.get_symbol_history("AAPL")

        assert [t.date for t in history] == [date(2024, 1, 15), date(2024, 6, 3)]
        assert await portfolio_service.get_symbol_history("MSFT") == []

    async def test_account_summary_unknown_account_raises(self, portfolio_service):
        with pytest.raises(AccountNotFoundError):
            await portfolio_service.get_account_summary("nope")

    async def test_reporting_currency_defaults_to_stored_setting(
            self, store, fx_service, price_service, clock
    ):
        store.document.settings.base_currency = "gbp"
        service = PortfolioService(store, fx_service, price_service, clock=clock)

        assert await service.get_reporting_currency() == "GBP"
        assert await service.get_reporting_currency("usd") == "USD"

    async def test_summaries(self, portfolio_service, aapl_portfolio):
        summary = await portfolio_service.get_transaction_summary()
        diversification = await portfolio_service.get_diversification()
        monthly = await portfolio_service.get_monthly_activity()
        breakdown = await portfolio_service.get_currency_breakdown()

        assert summary.total_buys == 2
        assert diversification[0].percentage == Decimal("100.00")
        assert [m.month for m in monthly] == ["2024-01", "2024-06"]
        assert breakdown[0].currency == "USD"


# =============================================================================
# MAINTENANCE
# =============================================================================

class TestBackfillMissingFxRates:
    """Tests for backfill_missing_fx_rates()."""

    async def test_fills_missing_and_placeholder_rates(self, portfolio_service, store):
        store.document.fx_rates["2024-01-15"] = create_snapshot({"CAD": "1.30"})
        missing = create_transaction("AAPL", quantity="10", price="100", fees="5")
        placeholder = create_transaction("AAPL", fx_rate="1", fx_rate_source=FXRateSource.FALLBACK)
        captured = create_transaction("AAPL", fx_rate="1.29", fx_rate_source=FXRateSource.CONTRACT)
        domestic = create_transaction("RY", currency="CAD")
        store.document.transactions = [missing, placeholder, captured, domestic]

        result = await portfolio_service.backfill_missing_fx_rates()

        assert result.base_currency == "CAD"
        assert result.candidates == 2
        assert result.updated == 2
        assert result.failed == 0
        assert missing.fx_rate == Decimal("1.30")
        assert missing.fx_rate_source == FXRateSource.API
        assert missing.fx_rate_date == date(2024, 1, 15)
        assert missing.base_currency == "CAD"
        assert missing.total_in_base == Decimal("1300.00")
        assert missing.fees_in_base == Decimal("6.50")
        assert captured.fx_rate == Decimal("1.29")
        assert store.write_count == 1

    async def test_reports_failures_and_leaves_them_untouched(self, portfolio_service, store):
        txn = create_transaction("AAPL", txn_id="t-1")
        store.document.transactions = [txn]

        result = await portfolio_service.backfill_missing_fx_rates()

        assert result.failed_ids == ["t-1"]
        assert txn.fx_rate is None
        assert store.write_count == 1

    async def test_converts_into_configured_reporting_currency(
            self, store, fx_service, price_service, clock
    ):
        """The configured reporting currency wins over the stored setting."""
        service = PortfolioService(
            store, fx_service, price_service, reporting_currency="USD", clock=clock
        )
        store.document.fx_rates["2024-01-15"] = create_snapshot({"GBP": "0.80", "CAD": "1.35"})
        txn = create_transaction("VOD", quantity="10", price="80", currency="GBP")
        store.document.transactions = [txn]
        assert store.document.settings.base_currency == "CAD"

        result = await service.backfill_missing_fx_rates()
        holdings = await service.get_holdings()

        assert result.base_currency == "USD"
        assert txn.base_currency == "USD"
        assert txn.fx_rate == Decimal("1.25")
        assert txn.total_in_base == Decimal("1000.00")
        assert holdings[0].total_cost_reporting == Decimal("1000.00")

    async def test_nothing_to_do_skips_write(self, portfolio_service, store):
        store.document.transactions = [create_transaction("RY", currency="CAD")]

        result = await portfolio_service.backfill_missing_fx_rates()

        assert result.candidates == 0
        assert store.write_count == 0


class TestRefreshAllPrices:
    """Tests for refresh_all_prices()."""

    async def test_refetches_and_persists_last_known(
            self, portfolio_service, aapl_portfolio, price_service, price_provider, store
    ):
        await price_service.get_current_price("AAPL")
        price_provider.set_price("AAPL", "155")

        result = await portfolio_service.refresh_all_prices()

        assert result.holdings == 1
        assert result.fresh == 1
        assert result.persisted == 1
        assert result.fx_refreshed is True
        assert price_provider.call_count("AAPL") == 2
        assert store.document.settings.last_prices["AAPL"].price == Decimal("155")

    async def test_fx_failure_is_not_fatal(
            self, portfolio_service, aapl_portfolio, fx_provider
    ):
        fx_provider.failing = True

        result = await portfolio_service.refresh_all_prices()

        assert result.fx_refreshed is False
        assert result.fresh == 1

    async def test_counts_missing(self, portfolio_service, aapl_portfolio, price_provider):
        price_provider.set_error("AAPL", ProviderUnavailableError("mock", "down"))

        result = await portfolio_service.refresh_all_prices()

        assert result.missing == 1
        assert result.persisted == 0
