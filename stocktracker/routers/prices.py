# stocktracker/routers/prices.py
"""
Current price endpoints.

- GET    /api/prices/cache - Cache contents and suppressed tickers
- DELETE /api/prices/cache - Clear cached quotes and failure markers
- POST   /api/prices/refresh - Re-fetch prices for every open holding
- GET    /api/prices/{symbol} - Current price for one symbol
"""

import logging

from fastapi import APIRouter, Depends, Query, status

from stocktracker.dependencies import get_portfolio_service, get_price_service
from stocktracker.schemas.prices import (
    PriceCacheResponse,
    PriceQuoteResponse,
    PriceRefreshResponse,
)
from stocktracker.schemas.validators import normalize_exchange, validate_symbol
from stocktracker.services.exceptions import NotFoundError
from stocktracker.services.portfolio import PortfolioService
from stocktracker.services.price_service import PriceService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/prices",
    tags=["Prices"],
)


# =============================================================================
# CACHE
# =============================================================================

@router.get(
    "/cache",
    response_model=PriceCacheResponse,
    summary="Inspect the price cache",
)
async def get_price_cache(
        service: PriceService = Depends(get_price_service),
) -> PriceCacheResponse:
    info = service.cache_info()
    return PriceCacheResponse(
        cached_quotes=info.cached_quotes,
        oldest_fetched_at=info.oldest_fetched_at,
        newest_fetched_at=info.newest_fetched_at,
        suppressed_tickers=info.suppressed_tickers,
        last_known_prices=info.last_known_prices,
    )


@router.delete(
    "/cache",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear the price cache",
)
async def clear_price_cache(
        service: PriceService = Depends(get_price_service),
) -> None:
    """Forget cached quotes and failure markers. Last known prices are kept."""
    service.clear_cache()


@router.post(
    "/refresh",
    response_model=PriceRefreshResponse,
    summary="Refresh all holding prices",
)
async def refresh_prices(
        service: PortfolioService = Depends(get_portfolio_service),
) -> PriceRefreshResponse:
    """
    Refresh live FX rates and the price of every open holding, ignoring
    the cache, and store successful prices as last known prices.
    """
    result = await service.refresh_all_prices()
    return PriceRefreshResponse(
        holdings=result.holdings,
        fresh=result.fresh,
        stale=result.stale,
        missing=result.missing,
        persisted=result.persisted,
        fx_refreshed=result.fx_refreshed,
    )


# =============================================================================
# LOOKUP
# =============================================================================

@router.get(
    "/{symbol}",
    response_model=PriceQuoteResponse,
    summary="Get current price",
)
async def get_price(
        symbol: str,
        exchange: str | None = Query(
            default=None,
            description="Exchange code (e.g., LSE, TSX); omit for US listings",
        ),
        service: PriceService = Depends(get_price_service),
) -> PriceQuoteResponse:
    """
    Current price for a symbol.

    A **stale** quote is the last known price, served while the provider
    is failing. Raises **404** if no price has ever been obtained.
    """
    quote = await service.get_current_price(validate_symbol(symbol), normalize_exchange(exchange))
    if quote is None:
        raise NotFoundError(
            f"No price available for '{symbol}'",
            resource_type="price",
            resource_id=symbol,
        )

    return PriceQuoteResponse(
        symbol=quote.symbol,
        price=quote.price,
        currency=quote.currency,
        stale=quote.stale,
        as_of=quote.as_of,
        source=quote.source,
    )
