# stocktracker/services/fx_rate_service.py
"""
FX Rate Service for live and historical exchange rates.

This service handles:
- Live rates, cached in memory for a rolling TTL (default 1 hour)
- Historical rates, fetched once per calendar date and kept forever
- Fallbacks when the provider is down (stored live snapshot, nearest
  stored date)
- Currency conversion at live or historical rates

=============================================================================
PIVOT CURRENCY (IMPORTANT!)
=============================================================================

Every snapshot is quoted against USD:

    snapshot.rates = {"USD": 1, "CAD": 1.35, "GBP": 0.79, ...}

    Meaning: 1 USD = 1.35 CAD, 1 USD = 0.79 GBP

Any cross rate is derived through the pivot:

    rate(from → to) = rates[to] / rates[from]

    rate(GBP → CAD) = 1.35 / 0.79 ≈ 1.7089   (1 GBP = 1.7089 CAD)

Conversion formula:
    to_amount = from_amount × rate(from → to)

One historical request per date serves every currency pair needed for
transactions on that date, which matters with a rate-limited upstream.

=============================================================================
FAILURE SEMANTICS
=============================================================================

Provider errors are not fatal while some stored data exists:

    get_live_rates()            → stored "live" snapshot
    fetch_all_rates_for_date()  → stored snapshot with the nearest date

FXRateNotAvailableError is raised only when nothing usable is stored.
Fallback snapshots are returned but never persisted under the requested
date, so the next request retries the provider for the true rate.

=============================================================================

Usage:
    service = FXRateService(provider=FrankfurterProvider(), store=store)

    rate = await service.get_rate("USD", "CAD")
    cad = await service.convert_with_historical_rate(
        Decimal("1000"), "USD", "CAD", date(2024, 1, 15)
    )
"""

import asyncio
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Awaitable, Callable

from stocktracker.models import FXSnapshot
from stocktracker.constants import (
    FX_LIVE_TTL_SECONDS,
    FX_PIVOT_CURRENCY,
    LIVE_SNAPSHOT_KEY,
    RATE_PRECISION,
    SUPPORTED_CURRENCIES,
)
from stocktracker.services.exceptions import (
    FXProviderError,
    FXRateNotAvailableError,
    FXRateNotFoundError,
    ValidationError,
)
from stocktracker.services.market_data.base import FXRateProvider, ProviderRates
from stocktracker.services.protocols import Clock, DocumentStore
from stocktracker.utils.date_utils import parse_iso_date, utc_now

logger = logging.getLogger(__name__)


class FXRateService:
    """
    Service for exchange rate lookup and conversion.

    All state (the live snapshot and in-flight fetches) lives on the
    instance; construct one per process and inject it.

    Attributes:
        PIVOT_CURRENCY: Currency every snapshot is quoted against
    """

    PIVOT_CURRENCY: str = FX_PIVOT_CURRENCY

    def __init__(
            self,
            provider: FXRateProvider,
            store: DocumentStore,
            live_ttl_seconds: int | None = None,
            supported_currencies: tuple[str, ...] | None = None,
            clock: Clock = utc_now,
    ) -> None:
        """
        Initialize the FX rate service.

        Args:
            provider: Source of live and historical rates
            store: Durable document store holding `fxRates`
            live_ttl_seconds: Live snapshot lifetime (default: 3600)
            supported_currencies: Currencies kept from provider responses
            clock: Returns the current aware datetime
        """
        self._provider = provider
        self._store = store
        self._live_ttl = timedelta(
            seconds=live_ttl_seconds if live_ttl_seconds is not None else FX_LIVE_TTL_SECONDS
        )
        self._supported = tuple(
            code.upper() for code in (supported_currencies or SUPPORTED_CURRENCIES)
        )
        self._clock = clock

        self._live: FXSnapshot | None = None
        # Concurrent callers asking for the same snapshot share one fetch
        self._pending: dict[str, asyncio.Future] = {}

        logger.info(
            f"FXRateService initialized with provider={provider.name}, "
            f"live_ttl={self._live_ttl.total_seconds():.0f}s"
        )

    # =========================================================================
    # LIVE RATES
    # =========================================================================

    async def get_live_rates(self) -> FXSnapshot:
        """
        Get the current rates for all supported currencies.

        Returns the cached snapshot while it is younger than the TTL,
        otherwise fetches and persists a fresh one.

        Returns:
            Live FXSnapshot pivoted on USD

        Raises:
            FXRateNotAvailableError: Provider failed and no live snapshot
                was ever stored
        """
        now = self._clock()

        if self._live is not None and self._is_fresh(self._live):
            logger.debug("Using cached live FX rates")
            return self._live

        if self._live is None:
            # A snapshot persisted by an earlier process may still be valid
            document = await self._store.read()
            stored = document.fx_rates.get(LIVE_SNAPSHOT_KEY)
            if stored is not None and self._is_fresh(stored):
                logger.debug(f"Using stored live FX rates (valid until {stored.cached_until})")
                self._live = stored
                return stored

        logger.info(f"Fetching live FX rates at {now.isoformat()}")
        return await self._deduplicated(LIVE_SNAPSHOT_KEY, self._fetch_live)

    async def _fetch_live(self) -> FXSnapshot:
        document = await self._store.read()

        try:
            provider_rates = await self._provider.fetch_latest(self.PIVOT_CURRENCY)
        except FXProviderError as e:
            stored = document.fx_rates.get(LIVE_SNAPSHOT_KEY)
            if stored is None:
                logger.error(f"Live FX fetch failed and no stored rates exist: {e}")
                raise FXRateNotAvailableError(LIVE_SNAPSHOT_KEY, e.reason) from e

            logger.warning(
                f"Live FX fetch failed ({e.reason}); using last known rates "
                f"from {stored.date} fetched at {stored.fetched_at}"
            )
            # Already past cached_until, so the next call retries the provider
            self._live = stored
            return stored

        now = self._clock()
        snapshot = self._build_snapshot(provider_rates)
        snapshot.cached_until = now + self._live_ttl

        self._live = snapshot
        document.fx_rates[LIVE_SNAPSHOT_KEY] = snapshot
        await self._store.write()

        logger.info(f"Live FX rates fetched for {snapshot.date}: {len(snapshot.rates)} currencies")
        return snapshot

    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """
        Get the live rate such that to_amount = from_amount × rate.

        Returns:
            Decimal("1") when the currencies match, else the cross rate
        """
        from_currency = self._normalize_currency(from_currency)
        to_currency = self._normalize_currency(to_currency)

        if from_currency == to_currency:
            return Decimal("1")

        snapshot = await self.get_live_rates()
        return self._cross_rate(snapshot, from_currency, to_currency)

    async def convert_currency(
            self,
            amount: Decimal,
            from_currency: str,
            to_currency: str,
    ) -> Decimal:
        """Convert an amount at the live rate; identity when currencies match."""
        rate = await self.get_rate(from_currency, to_currency)
        if rate == 1:
            return amount
        return amount * rate

    # =========================================================================
    # HISTORICAL RATES
    # =========================================================================

    async def fetch_all_rates_for_date(self, rate_date: date) -> FXSnapshot:
        """
        Get the snapshot of all supported currencies for a calendar date.

        Order:
        1. Snapshot stored under that exact date
        2. Provider fetch, persisted under that date
        3. On provider failure, the stored snapshot nearest to the date
           (by absolute day difference; the first one encountered wins a tie)

        Raises:
            FXRateNotAvailableError: Provider failed and no dated snapshot
                is stored at all
        """
        key = rate_date.isoformat()

        document = await self._store.read()
        stored = document.fx_rates.get(key)
        if stored is not None:
            logger.debug(f"Using stored FX rates for {key}")
            return stored

        return await self._deduplicated(key, lambda: self._fetch_for_date(rate_date))

    async def _fetch_for_date(self, rate_date: date) -> FXSnapshot:
        key = rate_date.isoformat()
        document = await self._store.read()

        try:
            provider_rates = await self._provider.fetch_for_date(self.PIVOT_CURRENCY, rate_date)
        except FXProviderError as e:
            fallback = self.find_closest_snapshot(rate_date, document.fx_rates)
            if fallback is None:
                logger.error(f"FX fetch for {key} failed and no stored dates exist: {e}")
                raise FXRateNotAvailableError(key, e.reason) from e

            fallback_key, snapshot = fallback
            logger.warning(f"FX fetch for {key} failed ({e.reason}); using rates from {fallback_key}")
            return snapshot

        snapshot = self._build_snapshot(provider_rates)
        document.fx_rates[key] = snapshot
        await self._store.write()

        logger.info(f"Fetched historical FX rates for {key} (provider date {snapshot.date})")
        return snapshot

    async def get_historical_rate(
            self,
            rate_date: date,
            from_currency: str,
            to_currency: str,
    ) -> Decimal:
        """
        Get the rate on a date such that to_amount = from_amount × rate.

        Returns:
            Decimal("1") when the currencies match, else the cross rate
        """
        from_currency = self._normalize_currency(from_currency)
        to_currency = self._normalize_currency(to_currency)

        if from_currency == to_currency:
            return Decimal("1")

        snapshot = await self.fetch_all_rates_for_date(rate_date)
        rate = self._cross_rate(snapshot, from_currency, to_currency)
        logger.debug(f"Historical rate {rate_date}: 1 {from_currency} = {rate} {to_currency}")
        return rate

    async def convert_with_historical_rate(
            self,
            amount: Decimal,
            from_currency: str,
            to_currency: str,
            rate_date: date,
    ) -> Decimal:
        """Convert an amount at the rate of `rate_date`; identity when currencies match."""
        rate = await self.get_historical_rate(rate_date, from_currency, to_currency)
        if rate == 1:
            return amount
        return amount * rate

    # =========================================================================
    # CACHE MANAGEMENT
    # =========================================================================

    def clear_cache(self) -> None:
        """Drop the in-memory live snapshot; the next call refetches."""
        self._live = None
        logger.info("FX cache cleared")

    @staticmethod
    def find_closest_snapshot(
            target: date,
            snapshots: dict[str, FXSnapshot],
    ) -> tuple[str, FXSnapshot] | None:
        """
        Find the stored dated snapshot nearest to a target date.

        The live snapshot and keys that are not ISO dates are ignored. On a
        tie the snapshot encountered first (insertion order) wins.

        Returns:
            (date key, snapshot), or None if no dated snapshot exists
        """
        best: tuple[str, FXSnapshot] | None = None
        best_diff: int | None = None

        for key, snapshot in snapshots.items():
            if key == LIVE_SNAPSHOT_KEY:
                continue
            stored_date = parse_iso_date(key)
            if stored_date is None:
                continue

            diff = abs((stored_date - target).days)
            if best_diff is None or diff < best_diff:
                best = (key, snapshot)
                best_diff = diff

        return best

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    async def _deduplicated(
            self,
            key: str,
            fetch: Callable[[], Awaitable[FXSnapshot]],
    ) -> FXSnapshot:
        """Run fetch() once per key at a time; concurrent callers await the same result."""
        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(fetch())
            self._pending[key] = pending
            pending.add_done_callback(lambda _: self._pending.pop(key, None))
        return await asyncio.shield(pending)

    def _is_fresh(self, snapshot: FXSnapshot) -> bool:
        return snapshot.cached_until is not None and self._clock() < snapshot.cached_until

    def _build_snapshot(self, provider_rates: ProviderRates) -> FXSnapshot:
        """Keep supported currencies only and pin the pivot to 1."""
        rates: dict[str, Decimal] = {self.PIVOT_CURRENCY: Decimal("1")}
        for code in self._supported:
            if code == self.PIVOT_CURRENCY:
                continue
            value = provider_rates.rates.get(code)
            if value:
                rates[code] = value

        return FXSnapshot(
            base=self.PIVOT_CURRENCY,
            rates=rates,
            date=provider_rates.date,
            fetched_at=self._clock(),
        )

    @staticmethod
    def _cross_rate(snapshot: FXSnapshot, from_currency: str, to_currency: str) -> Decimal:
        """
        Derive from→to via the pivot: rates[to] / rates[from].

        Raises:
            FXRateNotFoundError: Either currency is missing from the snapshot
        """
        from_rate = snapshot.rates.get(from_currency)
        to_rate = snapshot.rates.get(to_currency)

        if not from_rate or not to_rate:
            missing = from_currency if not from_rate else to_currency
            raise FXRateNotFoundError(
                from_currency,
                to_currency,
                snapshot.date,
                message=f"No rate for {missing} in FX snapshot of {snapshot.date}",
            )

        return (to_rate / from_rate).quantize(RATE_PRECISION)

    @staticmethod
    def _normalize_currency(code: str) -> str:
        normalized = (code or "").strip().upper()
        if not normalized:
            raise ValidationError("Currency code is required", field="currency")
        return normalized
