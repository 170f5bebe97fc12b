# stocktracker/services/market_data/__init__.py
"""
Market data providers.

- base: MarketDataProvider / FXRateProvider interfaces and their DTOs
- yahoo: current prices via yfinance
- frankfurter: ECB exchange rates via the Frankfurter API
"""

from stocktracker.services.market_data.base import (
    FXRateProvider,
    MarketDataProvider,
    ProviderQuote,
    ProviderRates,
)
from stocktracker.services.market_data.frankfurter import FrankfurterProvider
from stocktracker.services.market_data.yahoo import YahooFinanceProvider

__all__ = [
    "FXRateProvider",
    "MarketDataProvider",
    "ProviderQuote",
    "ProviderRates",
    "FrankfurterProvider",
    "YahooFinanceProvider",
]
