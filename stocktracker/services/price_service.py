# stocktracker/services/price_service.py
"""
Price Lookup Service: current price and currency for a holding.

Lookup order for get_current_price(symbol, exchange):

    1. Normalize    symbol + exchange → provider ticker ("BP" + "LSE" → "BP.L")
    2. Cache        quote fetched less than PRICE_CACHE_TTL ago → return it
    3. Suppression  ticker failed less than the suppression window ago
                    → skip the provider, go to 5
    4. Provider     success → cache it, remember it as last known good,
                    return it (stale=False)
    5. Fallback     last known good price → return it with stale=True and
                    as_of set to its date; nothing known → None

None and a stale quote mean different things to callers: None is "no
price ever seen" while stale is "old but real". Both must stay distinct.

Last known good prices are seeded from `settings.lastPrices` in the store
on first use. They are only written back to the store by the portfolio
service's refresh_all_prices().
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal

from stocktracker.models import LastPrice
from stocktracker.services.circuit_breaker import CircuitBreakerOpen, CircuitBreakerRegistry
from stocktracker.constants import (
    PRICE_CACHE_TTL_SECONDS,
    PRICE_FAILURE_SUPPRESSION_SECONDS,
)
from stocktracker.services.exceptions import MarketDataError
from stocktracker.services.market_data.base import MarketDataProvider
from stocktracker.services.protocols import Clock, DocumentStore
from stocktracker.utils.date_utils import utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class PriceQuote:
    """
    The latest known market price for a ticker.

    Attributes:
        symbol: Provider ticker (exchange-suffixed where needed)
        price: Price in major units of `currency`, always positive
        currency: ISO 4217 code of the price
        stale: True when served from the last known good record
        as_of: Date of the price; always set on stale quotes
        source: "provider", "cache" or "last_known"
    """

    symbol: str
    price: Decimal
    currency: str
    stale: bool = False
    as_of: date | None = None
    source: str = "provider"

    def __post_init__(self) -> None:
        if self.price <= 0:
            raise ValueError(f"price must be positive, got {self.price}")
        if self.stale and self.as_of is None:
            raise ValueError("stale quotes must carry an as_of date")


@dataclass
class PriceCacheInfo:
    """Snapshot of the price service's caches, for display."""

    cached_quotes: int = 0
    oldest_fetched_at: datetime | None = None
    newest_fetched_at: datetime | None = None
    suppressed_tickers: list[str] = field(default_factory=list)
    last_known_prices: int = 0


@dataclass
class _CachedQuote:
    quote: PriceQuote
    fetched_at: datetime


# =============================================================================
# SERVICE
# =============================================================================

class PriceService:
    """
    Current prices with cache, failure suppression and last-known fallback.

    Example:
        service = PriceService(YahooFinanceProvider(), store=store)

        quote = await service.get_current_price("RY", "TSX")
        if quote is None:
            ...  # never priced
        elif quote.stale:
            ...  # show "last close" label
    """

    def __init__(
            self,
            provider: MarketDataProvider,
            store: DocumentStore | None = None,
            cache_ttl_seconds: int | None = None,
            failure_suppression_seconds: int | None = None,
            clock: Clock = utc_now,
    ) -> None:
        """
        Initialize the price service.

        Args:
            provider: Current-price provider
            store: Store to seed last known prices from (optional)
            cache_ttl_seconds: Quote cache lifetime (default: 900)
            failure_suppression_seconds: Skip window after a failure (default: 300)
            clock: Returns the current aware datetime
        """
        self._provider = provider
        self._store = store
        self._cache_ttl = (
            cache_ttl_seconds if cache_ttl_seconds is not None else PRICE_CACHE_TTL_SECONDS
        )
        suppression = (
            failure_suppression_seconds
            if failure_suppression_seconds is not None
            else PRICE_FAILURE_SUPPRESSION_SECONDS
        )
        self._clock = clock

        self._cache: dict[str, _CachedQuote] = {}
        self._last_known: dict[str, LastPrice] = {}
        self._last_known_loaded = store is None
        self._breakers = CircuitBreakerRegistry(
            recovery_timeout=suppression,
            failure_threshold=1,
            clock=lambda: self._clock().timestamp(),
        )

        logger.info(
            f"PriceService initialized with provider={provider.name}, "
            f"cache_ttl={self._cache_ttl}s, suppression={suppression}s"
        )

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def normalize_symbol(self, symbol: str, exchange: str | None = None) -> str:
        """Provider ticker used as the cache key for symbol + exchange."""
        return self._provider.build_ticker(symbol, exchange)

    async def get_current_price(
            self,
            symbol: str,
            exchange: str | None = None,
    ) -> PriceQuote | None:
        """
        Get the current price for a symbol.

        Args:
            symbol: Symbol as recorded on transactions
            exchange: Exchange code, None for US/auto

        Returns:
            Fresh or cached quote, a stale last-known quote, or None
        """
        ticker = self.normalize_symbol(symbol, exchange)
        await self._ensure_last_known_loaded()

        # Step 1: In-memory cache
        cached = self._cache.get(ticker)
        now = self._clock()
        if cached is not None and (now - cached.fetched_at).total_seconds() < self._cache_ttl:
            logger.debug(f"Price cache hit for {ticker}")
            return replace(cached.quote, source="cache")

        # Step 2: Provider, guarded by the per-ticker breaker
        breaker = self._breakers.get(ticker)
        try:
            with breaker:
                provider_quote = await self._provider.get_quote(ticker)
        except CircuitBreakerOpen as e:
            logger.debug(
                f"Skipping provider for {ticker}: failed recently, "
                f"retry in {e.time_remaining:.0f}s"
            )
            return self._last_known_quote(ticker)
        except (MarketDataError, ValueError) as e:
            logger.warning(f"Price fetch failed for {ticker}: {e}")
            return self._last_known_quote(ticker)

        # Step 3: Remember the fresh quote
        as_of = provider_quote.as_of or now.date()
        quote = PriceQuote(
            symbol=ticker,
            price=provider_quote.price,
            currency=provider_quote.currency,
            stale=False,
            as_of=as_of,
            source="provider",
        )
        self._cache[ticker] = _CachedQuote(quote=quote, fetched_at=now)
        self._last_known[ticker] = LastPrice(
            price=quote.price,
            currency=quote.currency,
            date=as_of,
        )

        logger.debug(f"Fetched {ticker}: {quote.price} {quote.currency}")
        return quote

    async def get_batch_prices(
            self,
            items: list[tuple[str, str | None]],
    ) -> list[PriceQuote | None]:
        """
        Look up many symbols concurrently.

        Args:
            items: (symbol, exchange) pairs

        Returns:
            Quotes in the same order as items; None where nothing is known
        """
        results = await asyncio.gather(
            *(self.get_current_price(symbol, exchange) for symbol, exchange in items),
            return_exceptions=True,
        )

        quotes: list[PriceQuote | None] = []
        for (symbol, exchange), result in zip(items, results):
            if isinstance(result, BaseException):
                logger.error(f"Unexpected error pricing {symbol} ({exchange or 'auto'}): {result}")
                quotes.append(None)
            else:
                quotes.append(result)
        return quotes

    # =========================================================================
    # LAST KNOWN GOOD
    # =========================================================================

    def last_known(self, ticker: str) -> LastPrice | None:
        """Last successful price recorded for a provider ticker."""
        return self._last_known.get(ticker)

    def _last_known_quote(self, ticker: str) -> PriceQuote | None:
        record = self._last_known.get(ticker)
        if record is None:
            logger.info(f"No price available for {ticker}")
            return None

        logger.info(f"Serving last known price for {ticker} from {record.date}")
        return PriceQuote(
            symbol=ticker,
            price=record.price,
            currency=record.currency,
            stale=True,
            as_of=record.date,
            source="last_known",
        )

    async def _ensure_last_known_loaded(self) -> None:
        if self._last_known_loaded:
            return

        document = await self._store.read()
        for ticker, record in document.settings.last_prices.items():
            # Prices fetched in this process are newer than stored ones
            self._last_known.setdefault(ticker, record)
        self._last_known_loaded = True
        logger.debug(f"Seeded {len(document.settings.last_prices)} last known prices from store")

    # =========================================================================
    # CACHE MANAGEMENT
    # =========================================================================

    def clear_cache(self) -> None:
        """Forget cached quotes and failure markers; last known prices are kept."""
        self._cache.clear()
        self._breakers.clear()
        logger.info("Price cache cleared")

    def cache_info(self) -> PriceCacheInfo:
        """Counts and timestamps describing the current cache contents."""
        fetched = [entry.fetched_at for entry in self._cache.values()]
        return PriceCacheInfo(
            cached_quotes=len(self._cache),
            oldest_fetched_at=min(fetched) if fetched else None,
            newest_fetched_at=max(fetched) if fetched else None,
            suppressed_tickers=self._breakers.open_keys(),
            last_known_prices=len(self._last_known),
        )
