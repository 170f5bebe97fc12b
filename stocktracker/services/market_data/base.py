# stocktracker/services/market_data/base.py
"""
Abstract interfaces for price and FX rate providers.

Services depend on these abstractions, never on a concrete provider, so
tests can plug in in-memory fakes and a different quote source can be
added without touching the Price Lookup or FX Rate services.

Providers are single-shot: they raise on failure and never retry. The
fallback chain (cache, failure suppression, last known good, nearest
stored date) belongs to the services.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal


# =============================================================================
# DATA CLASSES - QUOTES
# =============================================================================

@dataclass(frozen=True)
class ProviderQuote:
    """
    A current price as returned by a market data provider.

    Prices are already converted to the currency's major unit
    (London pence become pounds before this object is built).

    Attributes:
        ticker: Provider ticker the quote was fetched for (e.g., "BP.L")
        price: Last traded price, always positive
        currency: ISO 4217 code of the price (e.g., "GBP")
        as_of: Trading date of the price, if the provider reports one
    """

    ticker: str
    price: Decimal
    currency: str
    as_of: date | None = None

    def __post_init__(self) -> None:
        """Reject zero and negative prices; they mean "no data"."""
        if not self.ticker:
            raise ValueError("ticker is required")
        if not self.currency:
            raise ValueError("currency is required")
        if self.price is None or self.price <= 0:
            raise ValueError(f"price must be positive, got {self.price}")


# =============================================================================
# DATA CLASSES - FX RATES
# =============================================================================

@dataclass(frozen=True)
class ProviderRates:
    """
    One day of exchange rates from an FX provider.

    Attributes:
        base: Currency the rates are quoted against (e.g., "USD")
        date: Date the provider says the rates belong to. For historical
            requests on weekends/holidays this is the previous business day.
        rates: Quote currency -> units of quote per one unit of base
    """

    base: str
    date: date
    rates: dict[str, Decimal] = field(default_factory=dict)


# =============================================================================
# ABSTRACT BASE CLASSES
# =============================================================================

class MarketDataProvider(ABC):
    """
    Abstract base class for current-price providers.

    Error contract for get_quote:
        - TickerNotFoundError: provider does not know the ticker
        - RateLimitError: provider quota exceeded
        - ProviderUnavailableError: network issues, empty or zero price
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier used in logs and error messages."""
        pass

    @abstractmethod
    def build_ticker(self, symbol: str, exchange: str | None) -> str:
        """
        Map a portfolio symbol plus exchange code to the provider's ticker.

        Args:
            symbol: Symbol as recorded on transactions (e.g., "BP")
            exchange: Exchange code (e.g., "LSE"), None for US/auto

        Returns:
            Provider ticker (e.g., "BP.L")
        """
        pass

    @abstractmethod
    async def get_quote(self, ticker: str) -> ProviderQuote:
        """
        Fetch the current price for an already-normalized ticker.

        Args:
            ticker: Value returned by build_ticker()

        Returns:
            ProviderQuote with a positive price in major currency units
        """
        pass


class FXRateProvider(ABC):
    """
    Abstract base class for exchange rate providers.

    Both methods raise FXProviderError on any failure (transport error,
    non-2xx response, malformed payload).
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier used in logs and error messages."""
        pass

    @abstractmethod
    async def fetch_latest(self, base: str) -> ProviderRates:
        """Fetch the most recent rates quoted against `base`."""
        pass

    @abstractmethod
    async def fetch_for_date(self, base: str, rate_date: date) -> ProviderRates:
        """Fetch the rates quoted against `base` for a calendar date."""
        pass
