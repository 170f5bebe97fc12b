# stocktracker/dependencies.py
"""
Process-wide service instances for FastAPI's Depends().

Each getter builds its object on first call and returns the same one after
that, so the FX snapshot, quote cache and failure markers are shared by
every request.

Usage in routers:
    from stocktracker.dependencies import get_portfolio_service

    @router.get("/stats")
    async def get_stats(
        service: PortfolioService = Depends(get_portfolio_service),
    ):
        ...

Tests replace any getter through app.dependency_overrides.
"""

import logging
from functools import lru_cache

from stocktracker.config import settings
from stocktracker.services.fx_rate_service import FXRateService
from stocktracker.services.market_data.frankfurter import FrankfurterProvider
from stocktracker.services.market_data.yahoo import YahooFinanceProvider
from stocktracker.services.portfolio import PortfolioService
from stocktracker.services.price_service import PriceService
from stocktracker.services.store import JsonDocumentStore

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON SERVICE INSTANCES
# =============================================================================
# lru_cache(maxsize=1) turns each getter into a lazy singleton.
#
# 1. get_document_store, get_market_data_provider, get_fx_provider (no deps)
# 2. get_fx_rate_service (depends on fx provider, store)
# 3. get_price_service (depends on market data provider, store)
# 4. get_portfolio_service (depends on all of the above)


@lru_cache(maxsize=1)
def get_document_store() -> JsonDocumentStore:
    """
    One store per process so all services share the loaded document.
    """
    logger.debug(f"Opening document store at {settings.store_path}")
    return JsonDocumentStore(settings.store_path)


@lru_cache(maxsize=1)
def get_market_data_provider() -> YahooFinanceProvider:
    """Yahoo Finance, shared by the price service."""
    logger.debug("Creating YahooFinanceProvider")
    return YahooFinanceProvider(timeout=settings.http_timeout_seconds)


@lru_cache(maxsize=1)
def get_fx_provider() -> FrankfurterProvider:
    """Frankfurter client with the configured base URL and timeout."""
    logger.debug("Creating FrankfurterProvider")
    return FrankfurterProvider(
        base_url=settings.fx_api_base_url,
        timeout=settings.http_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_fx_rate_service() -> FXRateService:
    """
    FX service; shares the live snapshot and in-flight fetches across all requests.
    """
    logger.debug("Creating FXRateService")
    return FXRateService(
        provider=get_fx_provider(),
        store=get_document_store(),
        live_ttl_seconds=settings.fx_live_ttl_seconds,
    )


@lru_cache(maxsize=1)
def get_price_service() -> PriceService:
    """
    Price service; shares the quote cache and failure suppression across all requests.
    """
    logger.debug("Creating PriceService")
    return PriceService(
        provider=get_market_data_provider(),
        store=get_document_store(),
        cache_ttl_seconds=settings.price_cache_ttl_seconds,
        failure_suppression_seconds=settings.price_failure_suppression_seconds,
    )


@lru_cache(maxsize=1)
def get_portfolio_service() -> PortfolioService:
    """Portfolio service reporting in BASE_CURRENCY, or the stored currency when unset."""
    logger.debug("Creating PortfolioService")
    return PortfolioService(
        store=get_document_store(),
        fx_service=get_fx_rate_service(),
        price_service=get_price_service(),
        reporting_currency=settings.base_currency,
    )
