# tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- A controllable clock
- An in-memory document store that counts writes
- Mock price and FX providers
- Sample data factories
"""

import os

# Keep settings deterministic regardless of the developer's environment
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BASE_CURRENCY", "CAD")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from stocktracker.models import (
    FXRateSource,
    FXSnapshot,
    PortfolioDocument,
    Transaction,
    TransactionType,
)
from stocktracker.services.exceptions import FXProviderError, TickerNotFoundError
from stocktracker.services.fx_rate_service import FXRateService
from stocktracker.services.market_data.base import (
    FXRateProvider,
    MarketDataProvider,
    ProviderQuote,
    ProviderRates,
)
from stocktracker.services.portfolio import PortfolioService
from stocktracker.services.price_service import PriceService


# =============================================================================
# CLOCK
# =============================================================================

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, days: int = 0) -> None:
        self.now = self.now + timedelta(seconds=seconds, days=days)


@pytest.fixture
def clock() -> FakeClock:
    """A clock pinned to 2025-01-15 12:00 UTC."""
    return FakeClock()


# =============================================================================
# STORE
# =============================================================================

class InMemoryStore:
    """
    Document store that keeps the document in memory.

    Mirrors JsonDocumentStore: read() always returns the same object and
    write() without an argument saves that object.
    """

    def __init__(self, document: PortfolioDocument | None = None):
        self.document = document or PortfolioDocument()
        self.read_count = 0
        self.write_count = 0

    async def read(self) -> PortfolioDocument:
        self.read_count += 1
        return self.document

    async def write(self, document: PortfolioDocument | None = None) -> None:
        if document is not None:
            self.document = document
        self.write_count += 1


@pytest.fixture
def store() -> InMemoryStore:
    """Empty in-memory store."""
    return InMemoryStore()


# =============================================================================
# MOCK PRICE PROVIDER
# =============================================================================

class MockMarketDataProvider(MarketDataProvider):
    """
    Mock implementation of MarketDataProvider for testing.

    Allows configuring prices for specific tickers and simulating errors.
    Tickers are built as SYMBOL or SYMBOL.L for LSE, like Yahoo.
    """

    def __init__(self):
        self._quotes: dict[str, ProviderQuote] = {}
        self._errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "mock"

    def build_ticker(self, symbol: str, exchange: str | None) -> str:
        symbol = symbol.upper()
        if exchange and exchange.upper() in ("LSE", "LON"):
            return f"{symbol}.L"
        return symbol

    def set_price(
            self,
            ticker: str,
            price: str | Decimal,
            currency: str = "USD",
            as_of: date | None = None,
    ) -> None:
        """Configure a successful quote; clears any configured error."""
        self._errors.pop(ticker, None)
        self._quotes[ticker] = ProviderQuote(
            ticker=ticker, price=Decimal(str(price)), currency=currency, as_of=as_of
        )

    def set_error(self, ticker: str, error: Exception) -> None:
        """Configure an error for a ticker."""
        self._errors[ticker] = error

    def call_count(self, ticker: str) -> int:
        return self.calls.count(ticker)

    async def get_quote(self, ticker: str) -> ProviderQuote:
        self.calls.append(ticker)

        if ticker in self._errors:
            raise self._errors[ticker]
        if ticker in self._quotes:
            return self._quotes[ticker]

        raise TickerNotFoundError(ticker=ticker, exchange="", provider=self.name)


@pytest.fixture
def price_provider() -> MockMarketDataProvider:
    """Create a fresh mock price provider for each test."""
    return MockMarketDataProvider()


# =============================================================================
# MOCK FX PROVIDER
# =============================================================================

class MockFXProvider(FXRateProvider):
    """
    Mock implementation of FXRateProvider for testing.

    Rates are configured per date (and for "latest") as units per USD.
    Unconfigured dates raise FXProviderError, like a provider outage.
    """

    def __init__(self):
        self._latest: dict[str, Decimal] | None = None
        self._latest_date = date(2025, 1, 15)
        self._by_date: dict[date, tuple[date, dict[str, Decimal]]] = {}
        self.failing = False
        self.latest_calls = 0
        self.date_calls: list[date] = []

    @property
    def name(self) -> str:
        return "mock-fx"

    def set_latest(self, rates: dict[str, str], as_of: date | None = None) -> None:
        self._latest = {code: Decimal(value) for code, value in rates.items()}
        if as_of is not None:
            self._latest_date = as_of

    def set_rates(
            self,
            rate_date: date,
            rates: dict[str, str],
            reported_date: date | None = None,
    ) -> None:
        """Configure rates for a date; reported_date mimics weekend roll-back."""
        self._by_date[rate_date] = (
            reported_date or rate_date,
            {code: Decimal(value) for code, value in rates.items()},
        )

    async def fetch_latest(self, base: str) -> ProviderRates:
        self.latest_calls += 1
        if self.failing or self._latest is None:
            raise FXProviderError(self.name, "latest rates unavailable")
        return ProviderRates(base=base, date=self._latest_date, rates=dict(self._latest))

    async def fetch_for_date(self, base: str, rate_date: date) -> ProviderRates:
        self.date_calls.append(rate_date)
        if self.failing or rate_date not in self._by_date:
            raise FXProviderError(self.name, f"no rates for {rate_date}")
        reported, rates = self._by_date[rate_date]
        return ProviderRates(base=base, date=reported, rates=dict(rates))


@pytest.fixture
def fx_provider() -> MockFXProvider:
    """Create a fresh mock FX provider for each test."""
    return MockFXProvider()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def fx_service(fx_provider, store, clock) -> FXRateService:
    return FXRateService(provider=fx_provider, store=store, clock=clock)


@pytest.fixture
def price_service(price_provider, store, clock) -> PriceService:
    return PriceService(provider=price_provider, store=store, clock=clock)


@pytest.fixture
def portfolio_service(store, fx_service, price_service, clock) -> PortfolioService:
    return PortfolioService(
        store=store,
        fx_service=fx_service,
        price_service=price_service,
        reporting_currency="CAD",
        clock=clock,
    )


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

_txn_counter = 0


def create_transaction(
        symbol: str = "AAPL",
        type: TransactionType | str = TransactionType.BUY,
        quantity: str | Decimal = "10",
        price: str | Decimal = "100",
        currency: str = "USD",
        txn_date: date = date(2024, 1, 15),
        account_id: str | None = "acct_1",
        total: str | Decimal | None = None,
        fees: str | Decimal = "0",
        total_in_base: str | Decimal | None = None,
        fees_in_base: str | Decimal | None = None,
        fx_rate: str | Decimal | None = None,
        fx_rate_source: FXRateSource | None = None,
        base_currency: str | None = None,
        exchange: str | None = None,
        company: str | None = None,
        txn_id: str | None = None,
) -> Transaction:
    """Factory function for creating Transaction test data."""
    global _txn_counter
    _txn_counter += 1

    quantity = Decimal(str(quantity))
    price = Decimal(str(price))
    return Transaction(
        id=txn_id or f"txn_{_txn_counter}",
        account_id=account_id,
        date=txn_date,
        type=TransactionType(type),
        symbol=symbol,
        company=company,
        quantity=quantity,
        currency=currency,
        price=price,
        fees=Decimal(str(fees)),
        total=Decimal(str(total)) if total is not None else quantity * price,
        total_in_base=Decimal(str(total_in_base)) if total_in_base is not None else None,
        fees_in_base=Decimal(str(fees_in_base)) if fees_in_base is not None else None,
        fx_rate=Decimal(str(fx_rate)) if fx_rate is not None else None,
        fx_rate_source=fx_rate_source,
        base_currency=base_currency,
        exchange=exchange,
    )


def create_snapshot(
        rates: dict[str, str],
        snapshot_date: date = date(2024, 1, 15),
        fetched_at: datetime | None = None,
        cached_until: datetime | None = None,
) -> FXSnapshot:
    """Factory function for a stored USD-pivoted snapshot."""
    return FXSnapshot(
        base="USD",
        rates={"USD": Decimal("1"), **{code: Decimal(value) for code, value in rates.items()}},
        date=snapshot_date,
        fetched_at=fetched_at or datetime(2024, 1, 15, tzinfo=timezone.utc),
        cached_until=cached_until,
    )
