# tests/services/test_calculators.py
"""
Unit tests for portfolio calculators.

These tests verify the pure calculation logic WITHOUT a store or network.

Test Coverage:
- HoldingsCalculator: Position aggregation, average cost on sells, oversells
- CostBasisCalculator: Historical FX per purchase, stored-cost fallback
- ValueCalculator: Live FX conversion
- ReturnCalculator: Gain/loss percent, ARR, weighted ARR
- SummaryCalculator: Fees, accounts, diversification, monthly, currencies
"""

from datetime import date
from decimal import Decimal

import pytest

from stocktracker.models import Account, FXRateSource, PortfolioDocument
from stocktracker.services.portfolio.calculators import (
    CostBasisCalculator,
    HoldingsCalculator,
    ReturnCalculator,
    SummaryCalculator,
    ValueCalculator,
    reduce_cost_for_sale,
)
from stocktracker.services.price_service import PriceQuote
from tests.conftest import create_snapshot, create_transaction


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def holdings_calc() -> HoldingsCalculator:
    return HoldingsCalculator()


@pytest.fixture
def summary_calc() -> SummaryCalculator:
    return SummaryCalculator()


# =============================================================================
# HOLDINGS CALCULATOR
# =============================================================================

class TestHoldingsCalculator:
    """Tests for HoldingsCalculator."""

    def test_single_buy(self, holdings_calc):
        txns = [create_transaction("AAPL", quantity="10", price="100")]

        holdings = holdings_calc.calculate(txns, "CAD")

        assert len(holdings) == 1
        assert holdings[0].quantity == Decimal("10")
        assert holdings[0].total_cost == Decimal("1000")
        assert holdings[0].avg_cost == Decimal("100")

    def test_quantity_is_buys_minus_sells(self, holdings_calc):
        txns = [
            create_transaction("AAPL", "buy", "10"),
            create_transaction("AAPL", "buy", "5.5"),
            create_transaction("AAPL", "sell", "3"),
        ]

        holdings = holdings_calc.calculate(txns, "CAD")

        assert holdings[0].quantity == Decimal("12.5")

    def test_sell_removes_average_cost(self, holdings_calc):
        """Buy 100 @ 10, sell 40 → 60 shares, cost 600, average still 10."""
        txns = [
            create_transaction("XYZ", "buy", "100", "10"),
            create_transaction("XYZ", "sell", "40", "15", txn_date=date(2024, 2, 1)),
        ]

        holding = holdings_calc.calculate(txns, "CAD")[0]

        assert holding.quantity == Decimal("60")
        assert holding.total_cost == Decimal("600")
        assert holding.avg_cost == Decimal("10")
        assert holding.warnings == []

    def test_reporting_cost_uses_captured_total_or_native_total(self, holdings_calc):
        txns = [
            create_transaction("AAPL", "buy", "10", "100", total_in_base="1300"),
            create_transaction("AAPL", "buy", "10", "120"),
        ]

        holding = holdings_calc.calculate(txns, "CAD")[0]

        assert holding.total_cost == Decimal("2200")
        assert holding.total_cost_reporting == Decimal("2500")

    def test_closed_positions_are_excluded(self, holdings_calc):
        txns = [
            create_transaction("AAPL", "buy", "10"),
            create_transaction("AAPL", "sell", "10"),
            create_transaction("MSFT", "buy", "1"),
        ]

        holdings = holdings_calc.calculate(txns, "CAD")

        assert [h.symbol for h in holdings] == ["MSFT"]

    def test_oversell_is_allowed_and_flagged(self, holdings_calc):
        txns = [
            create_transaction("AAPL", "buy", "10", "100"),
            create_transaction("AAPL", "sell", "15", "100"),
            create_transaction("AAPL", "buy", "10", "100"),
        ]

        holding = holdings_calc.calculate(txns, "CAD")[0]

        assert holding.quantity == Decimal("5")
        # 1000 - 100 × 15 + 1000
        assert holding.total_cost == Decimal("500")
        assert len(holding.warnings) == 1
        assert "exceeds" in holding.warnings[0]

    def test_sell_from_empty_position_keeps_cost(self, holdings_calc):
        txns = [
            create_transaction("AAPL", "sell", "5", "100"),
            create_transaction("AAPL", "buy", "10", "100"),
        ]

        holding = holdings_calc.calculate(txns, "CAD")[0]

        assert holding.quantity == Decimal("5")
        assert holding.total_cost == Decimal("1000")

    def test_running_cost_never_negative_without_oversell(self, holdings_calc):
        txns = [
            create_transaction("AAPL", "buy", "7", "13.37"),
            create_transaction("AAPL", "sell", "3"),
            create_transaction("AAPL", "buy", "2", "99.1"),
            create_transaction("AAPL", "sell", "5.999"),
        ]

        holding = holdings_calc.calculate(txns, "CAD")[0]

        assert holding.total_cost >= 0
        assert holding.total_cost_reporting >= 0

    def test_symbols_in_first_seen_order(self, holdings_calc):
        txns = [
            create_transaction("MSFT"),
            create_transaction("AAPL"),
            create_transaction("MSFT"),
        ]

        assert [h.symbol for h in holdings_calc.calculate(txns, "CAD")] == ["MSFT", "AAPL"]
        assert holdings_calc.all_symbols(txns) == ["MSFT", "AAPL"]

    def test_exchange_is_first_non_empty_in_input_order(self, holdings_calc):
        txns = [
            create_transaction("BP", exchange=None),
            create_transaction("BP", exchange="  "),
            create_transaction("BP", exchange="lse"),
            create_transaction("BP", exchange="NYSE"),
        ]

        holding = holdings_calc.calculate(txns, "CAD")[0]

        assert holding.exchange == "LSE"

    def test_company_is_first_non_empty(self, holdings_calc):
        txns = [
            create_transaction("AAPL", company=None),
            create_transaction("AAPL", company="Apple Inc."),
        ]

        assert holdings_calc.calculate(txns, "CAD")[0].company == "Apple Inc."

    def test_holdings_by_account(self, holdings_calc):
        txns = [
            create_transaction("AAPL", account_id="a"),
            create_transaction("MSFT", account_id="b"),
        ]

        holdings = holdings_calc.holdings_by_account(txns, "b", "CAD")

        assert [h.symbol for h in holdings] == ["MSFT"]

    def test_symbol_history(self, holdings_calc):
        txns = [create_transaction("AAPL"), create_transaction("MSFT"), create_transaction("AAPL")]

        assert len(holdings_calc.symbol_history(txns, "AAPL")) == 2

    def test_missing_fx_history_detection(self, holdings_calc):
        captured = create_transaction("AAPL", fx_rate="1.3", fx_rate_source=FXRateSource.API)
        placeholder = create_transaction("AAPL", fx_rate="1", fx_rate_source=FXRateSource.FALLBACK)
        missing = create_transaction("MSFT")
        domestic = create_transaction("RY", currency="CAD")

        holdings = {
            h.symbol: h
            for h in holdings_calc.calculate([captured, placeholder, missing, domestic], "CAD")
        }

        assert holdings_calc.has_missing_fx_history(holdings["AAPL"], "CAD")
        assert holdings_calc.has_missing_fx_history(holdings["MSFT"], "CAD")
        assert not holdings_calc.has_missing_fx_history(holdings["RY"], "CAD")


class TestReduceCostForSale:
    def test_proportional_reduction(self):
        assert reduce_cost_for_sale(Decimal("1000"), Decimal("100"), Decimal("40")) == Decimal("600")

    def test_nothing_held(self):
        assert reduce_cost_for_sale(Decimal("0"), Decimal("0"), Decimal("5")) == Decimal("0")


# =============================================================================
# COST BASIS CALCULATOR
# =============================================================================

class TestCostBasisCalculator:
    """Tests for CostBasisCalculator (historical FX per purchase)."""

    async def test_each_buy_at_its_own_rate(self, fx_service, store, holdings_calc):
        store.document.fx_rates["2024-01-15"] = create_snapshot({"CAD": "1.30"})
        store.document.fx_rates["2024-06-03"] = create_snapshot({"CAD": "1.40"})
        txns = [
            create_transaction("AAPL", "buy", "10", "100", txn_date=date(2024, 1, 15)),
            create_transaction("AAPL", "buy", "10", "120", txn_date=date(2024, 6, 3)),
        ]
        holding = holdings_calc.calculate(txns, "CAD")[0]

        result = await CostBasisCalculator(fx_service).calculate(holding, "CAD")

        assert result.amount == Decimal("2980.00")
        assert result.used_stored_cost is False

    async def test_sell_reduces_converted_cost(self, fx_service, store, holdings_calc):
        store.document.fx_rates["2024-01-15"] = create_snapshot({"CAD": "1.30"})
        txns = [
            create_transaction("AAPL", "buy", "100", "10", txn_date=date(2024, 1, 15)),
            create_transaction("AAPL", "sell", "40", "12", txn_date=date(2024, 3, 1)),
        ]
        holding = holdings_calc.calculate(txns, "CAD")[0]

        result = await CostBasisCalculator(fx_service).calculate(holding, "CAD")

        assert result.amount == Decimal("780.00")

    async def test_same_currency_needs_no_rates(self, fx_service, fx_provider, holdings_calc):
        fx_provider.failing = True
        txns = [create_transaction("RY", quantity="10", price="130", currency="CAD")]
        holding = holdings_calc.calculate(txns, "CAD")[0]

        result = await CostBasisCalculator(fx_service).calculate(holding, "CAD")

        assert result.amount == Decimal("1300.00")

    async def test_falls_back_to_stored_cost_when_no_rates_at_all(self, fx_service, holdings_calc):
        txns = [create_transaction("AAPL", "buy", "10", "100", total_in_base="1350")]
        holding = holdings_calc.calculate(txns, "CAD")[0]

        result = await CostBasisCalculator(fx_service).calculate(holding, "CAD")

        assert result.amount == Decimal("1350.00")
        assert result.used_stored_cost is True
        assert result.warnings


# =============================================================================
# VALUE CALCULATOR
# =============================================================================

class TestValueCalculator:
    """Tests for ValueCalculator (live FX)."""

    async def test_converts_at_live_rate(self, fx_service, fx_provider):
        fx_provider.set_latest({"CAD": "1.35"})
        quote = PriceQuote(symbol="AAPL", price=Decimal("150"), currency="USD")

        result = await ValueCalculator(fx_service).calculate(Decimal("20"), quote, "CAD")

        assert result.local_amount == Decimal("3000.00")
        assert result.reporting_amount == Decimal("4050.00")
        assert result.fx_rate == Decimal("1.35")

    async def test_same_currency(self, fx_service, fx_provider):
        fx_provider.failing = True
        quote = PriceQuote(symbol="RY.TO", price=Decimal("130.5"), currency="CAD")

        result = await ValueCalculator(fx_service).calculate(Decimal("2"), quote, "CAD")

        assert result.reporting_amount == Decimal("261.00")
        assert result.fx_rate == Decimal("1")


# =============================================================================
# RETURN CALCULATOR
# =============================================================================

class TestReturnCalculator:
    """Tests for ReturnCalculator."""

    def test_gain_loss_percent(self):
        assert ReturnCalculator.gain_loss_percent(Decimal("1070"), Decimal("2980")) == Decimal("35.91")

    def test_gain_loss_percent_zero_cost(self):
        assert ReturnCalculator.gain_loss_percent(Decimal("10"), Decimal("0")) == Decimal("0")

    def test_arr(self):
        # 20% over two years → 10% a year
        assert ReturnCalculator.arr(Decimal("200"), Decimal("1000"), Decimal("2")) == Decimal("10.00")

    def test_arr_zero_cost(self):
        assert ReturnCalculator.arr(Decimal("200"), Decimal("0"), Decimal("2")) == Decimal("0")

    def test_weighted_arr(self):
        pairs = [(Decimal("10"), Decimal("1000")), (Decimal("40"), Decimal("500"))]

        # (10 × 1000 + 40 × 500) / 2000
        assert ReturnCalculator.weighted_arr(pairs, Decimal("2000")) == Decimal("15.00")

    def test_weighted_arr_no_weight(self):
        assert ReturnCalculator.weighted_arr([], Decimal("0")) == Decimal("0")


# =============================================================================
# SUMMARY CALCULATOR
# =============================================================================

class TestSummaryCalculator:
    """Tests for SummaryCalculator."""

    def test_total_fees_prefers_base_amounts(self, summary_calc):
        txns = [
            create_transaction(fees="10", fees_in_base="13.5"),
            create_transaction(fees="2.25"),
        ]

        assert summary_calc.total_fees(txns) == Decimal("15.75")

    def test_transaction_summary(self, summary_calc):
        txns = [
            create_transaction("AAPL", "buy", "10", "100", total_in_base="1300"),
            create_transaction("AAPL", "sell", "5", "120"),
        ]

        summary = summary_calc.transaction_summary(txns, "cad")

        assert summary.reporting_currency == "CAD"
        assert summary.total_buys == 1
        assert summary.total_sells == 1
        assert summary.total_buy_value == Decimal("1300.00")
        assert summary.total_sell_value == Decimal("600.00")

    def test_account_summary_uses_account_details(self, summary_calc):
        document = PortfolioDocument(
            accounts={"tfsa": Account(id="tfsa", name="TFSA", default_currency="cad")},
            transactions=[
                create_transaction("AAPL", account_id="tfsa", total_in_base="1300", fees="1"),
                create_transaction("MSFT", account_id="rrsp"),
            ],
        )

        summary = summary_calc.account_summary(document, "tfsa", "CAD")

        assert summary.account_name == "TFSA"
        assert summary.account_currency == "CAD"
        assert summary.total_positions == 1
        assert summary.total_invested == Decimal("1300.00")
        assert summary.total_fees == Decimal("1.00")

    def test_account_summary_falls_back_to_id_and_reporting_currency(self, summary_calc):
        document = PortfolioDocument(transactions=[create_transaction(account_id="rrsp")])

        summary = summary_calc.account_summary(document, "rrsp", "CAD")

        assert summary.account_name == "rrsp"
        assert summary.account_currency == "CAD"

    def test_diversification_sorted_by_share(self, summary_calc):
        txns = [
            create_transaction("AAPL", quantity="1", price="250"),
            create_transaction("MSFT", quantity="1", price="750"),
        ]

        entries = summary_calc.diversification(txns, "CAD")

        assert [(e.symbol, e.percentage) for e in entries] == [
            ("MSFT", Decimal("75.00")),
            ("AAPL", Decimal("25.00")),
        ]

    def test_monthly_activity_sorted_by_month(self, summary_calc):
        txns = [
            create_transaction(txn_date=date(2024, 3, 5)),
            create_transaction(txn_date=date(2024, 1, 9)),
            create_transaction("AAPL", "sell", "1", txn_date=date(2024, 3, 20)),
        ]

        months = summary_calc.monthly_activity(txns, "CAD")

        assert [m.month for m in months] == ["2024-01", "2024-03"]
        assert (months[1].buys, months[1].sells) == (1, 1)

    def test_currency_breakdown_counts_buys_only(self, summary_calc):
        txns = [
            create_transaction("AAPL", quantity="10", price="100", currency="USD"),
            create_transaction("RY", quantity="10", price="50", currency="CAD"),
            create_transaction("AAPL", "sell", "5", "100", currency="USD"),
        ]

        entries = summary_calc.currency_breakdown(txns)

        assert [(e.currency, e.total_invested, e.transactions) for e in entries] == [
            ("USD", Decimal("1000.00"), 1),
            ("CAD", Decimal("500.00"), 1),
        ]
