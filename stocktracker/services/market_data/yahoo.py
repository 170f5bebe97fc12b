# stocktracker/services/market_data/yahoo.py
"""
Current prices from Yahoo Finance via yfinance.

Yahoo needs no API key and covers every exchange the
tracker's brokers trade on.

Exchange codes become Yahoo ticker suffixes, minor-unit quotes (GBp, GBX,
ZAc, ILA) are scaled to the major unit, and yfinance failures are mapped
onto MarketDataError subclasses.

yfinance is synchronous, so each lookup runs in a worker thread to keep
the event loop free while the portfolio service fans out over holdings.

Yahoo throttles without documenting limits, and some markets are delayed
by 15 minutes or more.
"""

import asyncio
import logging
import math
from decimal import Decimal
from typing import Any

import yfinance as yf

from stocktracker.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)
from stocktracker.services.market_data.base import MarketDataProvider, ProviderQuote

logger = logging.getLogger(__name__)


class YahooFinanceProvider(MarketDataProvider):
    """
    MarketDataProvider backed by yf.Ticker(...).fast_info.

    Example:
        yahoo = YahooFinanceProvider()

        ticker = yahoo.build_ticker("BP", "LSE")   # "BP.L"
        quote = await yahoo.get_quote(ticker)
        print(quote.price, quote.currency)             # Decimal("4.8215") GBP
    """

    # =========================================================================
    # EXCHANGE MAPPING
    # =========================================================================
    # Yahoo uses suffixes for non-US exchanges (e.g., ".TO" for Toronto).
    # US exchanges use no suffix.

    EXCHANGE_SUFFIXES: dict[str, str] = {
        # US
        "NASDAQ": "",
        "NYSE": "",
        "NYSEARCA": "",
        "AMEX": "",
        "BATS": "",
        "US": "",

        # UK
        "LSE": ".L",
        "LON": ".L",
        "LONDON": ".L",

        # Canada
        "TSX": ".TO",
        "TSE": ".TO",
        "TORONTO": ".TO",
        "TSXV": ".V",
        "CVE": ".V",
        "NEO": ".NE",
        "CSE": ".CN",

        # Europe
        "XETRA": ".DE",
        "FRA": ".F",
        "EPA": ".PA",
        "EURONEXT": ".PA",
        "AMS": ".AS",
        "SWX": ".SW",
        "MIL": ".MI",
        "BME": ".MC",

        # Asia-Pacific
        "ASX": ".AX",
        "HKEX": ".HK",
        "TYO": ".T",
    }

    # Currencies Yahoo reports in minor units, with the major unit and divisor
    MINOR_UNIT_CURRENCIES: dict[str, tuple[str, Decimal]] = {
        "GBp": ("GBP", Decimal("100")),
        "GBX": ("GBP", Decimal("100")),
        "ZAc": ("ZAR", Decimal("100")),
        "ILA": ("ILS", Decimal("100")),
    }

    # London listings quote in pence even when fast_info omits the currency
    _PENCE_SUFFIXES: tuple[str, ...] = (".L",)

    def __init__(self, timeout: float = 10) -> None:
        """
        Args:
            timeout: Seconds to wait for one quote before giving up
        """
        self._timeout = timeout
        logger.info(f"Yahoo provider ready, quote timeout {timeout}s")

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # TICKER NORMALIZATION
    # =========================================================================

    def build_ticker(self, symbol: str, exchange: str | None) -> str:
        """
        Build a Yahoo Finance ticker from a symbol and exchange code.

        Unknown exchanges map to no suffix. A symbol that already carries
        the exchange's suffix (e.g., "RY.TO" on TSX) is left as is.

        Returns:
            Yahoo ticker (e.g., "AAPL", "RY.TO", "BP.L")
        """
        symbol = symbol.strip().upper()
        exchange_code = exchange.strip().upper() if exchange else ""

        suffix = self.EXCHANGE_SUFFIXES.get(exchange_code, "")
        if not suffix or symbol.endswith(suffix.upper()):
            return symbol
        return f"{symbol}{suffix}"

    # =========================================================================
    # QUOTES
    # =========================================================================

    async def get_quote(self, ticker: str) -> ProviderQuote:
        """
        Fetch the latest price from Yahoo Finance.

        Raises:
            TickerNotFoundError: If Yahoo does not know the ticker
            RateLimitError: If Yahoo is throttling requests
            ProviderUnavailableError: Network error, timeout, or no usable price
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._fetch_quote, ticker),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderUnavailableError(
                provider=self.name,
                reason=f"no answer for {ticker} within {self._timeout}s",
            ) from e

    def _fetch_quote(self, ticker: str) -> ProviderQuote:
        """Blocking fetch, run in a worker thread by get_quote()."""
        logger.debug(f"Fetching quote for {ticker}")

        try:
            fast_info = yf.Ticker(ticker).fast_info
            raw_price = fast_info.last_price
            raw_currency = fast_info.currency
        except Exception as e:
            error_str = str(e).lower()
            if "not found" in error_str or "no data" in error_str or "delisted" in error_str:
                raise TickerNotFoundError(
                    ticker=ticker,
                    exchange=self._exchange_from_ticker(ticker),
                    provider=self.name,
                ) from e
            if "rate limit" in error_str or "too many requests" in error_str:
                raise RateLimitError(provider=self.name) from e

            logger.error(f"Yahoo Finance error for {ticker}: {e}")
            raise ProviderUnavailableError(provider=self.name, reason=str(e)) from e

        price = self._to_decimal(raw_price)
        if price is None or price <= 0:
            raise ProviderUnavailableError(
                provider=self.name,
                reason=f"no valid price for {ticker} (got {raw_price!r})",
            )

        price, currency = self._to_major_unit(ticker, price, raw_currency)
        return ProviderQuote(ticker=ticker, price=price, currency=currency)

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _to_major_unit(
            self,
            ticker: str,
            price: Decimal,
            currency: str | None,
    ) -> tuple[Decimal, str]:
        """Convert minor-unit prices (e.g., pence) into the major currency."""
        if currency in self.MINOR_UNIT_CURRENCIES:
            major, divisor = self.MINOR_UNIT_CURRENCIES[currency]
            return price / divisor, major

        if not currency:
            if ticker.endswith(self._PENCE_SUFFIXES):
                return price / Decimal("100"), "GBP"
            # Tickers without a suffix are US listings
            return price, "USD"

        return price, currency.upper()

    def _exchange_from_ticker(self, ticker: str) -> str:
        """Best-effort reverse lookup of the exchange for error messages."""
        if "." not in ticker:
            return "US"
        suffix = ticker[ticker.rindex("."):]
        for code, mapped in self.EXCHANGE_SUFFIXES.items():
            if mapped == suffix:
                return code
        return suffix

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Decimal with 8 places, or None when yfinance gave nothing usable."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return Decimal(str(value)).quantize(Decimal("0.00000001"))
        except (TypeError, ValueError):
            return None
