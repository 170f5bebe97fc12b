# stocktracker/main.py
"""
HTTP entry point for the portfolio tracker.

Sets up logging, middleware and error mapping, then mounts the portfolio,
transaction, account, prices and FX routers plus a /health check.

Run with:
    uvicorn stocktracker.main:app --reload
"""

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stocktracker import __version__
from stocktracker.config import settings
from stocktracker.dependencies import get_document_store
from stocktracker.middleware import CorrelationIdMiddleware
from stocktracker.routers import (
    accounts_router,
    fx_router,
    portfolio_router,
    prices_router,
    transactions_router,
)
from stocktracker.schemas.errors import ErrorDetail, ValidationErrorDetail
from stocktracker.services.exceptions import (
    FXProviderError,
    FXRateError,
    FXRateNotAvailableError,
    FXRateNotFoundError,
    MarketDataError,
    NotFoundError,
    ProviderUnavailableError,
    RateLimitError,
    ServiceError,
    StoreError,
    TickerNotFoundError,
    ValidationError,
)
from stocktracker.services.store import JsonDocumentStore
from stocktracker.utils import setup_logging

logger = logging.getLogger(__name__)

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()

# =============================================================================
# APPLICATION SETUP
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Multi-currency stock portfolio tracking API",
    version=__version__,
    debug=settings.debug,
)

# =============================================================================
# MIDDLEWARE (order matters: last added = first executed)
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add correlation ID tracking for request tracing
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================
# Service errors become ErrorDetail bodies. Starlette picks the handler for
# the most specific class in the exception's MRO.
# =============================================================================

def _error_response(status_code: int, exc: ServiceError, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details=details,
        ).model_dump(),
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Unknown account or unpriced symbol (404)."""
    logger.warning(f"Not found: {exc}")
    return _error_response(
        404, exc, {"resource_type": exc.resource_type, "resource_id": exc.resource_id}
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Bad currency, symbol or date (400)."""
    logger.warning(f"Rejected input: {exc}")
    return _error_response(400, exc, {"field": exc.field} if exc.field else None)


@app.exception_handler(TickerNotFoundError)
async def ticker_not_found_handler(request: Request, exc: TickerNotFoundError) -> JSONResponse:
    logger.warning(f"No listing for {exc.ticker}")
    return _error_response(404, exc, {"ticker": exc.ticker})


@app.exception_handler(ProviderUnavailableError)
async def provider_unavailable_handler(
        request: Request, exc: ProviderUnavailableError
) -> JSONResponse:
    logger.error(f"Price provider down: {exc}")
    return _error_response(503, exc)


@app.exception_handler(RateLimitError)
async def rate_limit_handler(request: Request, exc: RateLimitError) -> JSONResponse:
    logger.warning(f"Price provider throttled: {exc}")
    return _error_response(
        429, exc, {"retry_after": exc.retry_after} if exc.retry_after else None
    )


@app.exception_handler(MarketDataError)
async def market_data_error_handler(request: Request, exc: MarketDataError) -> JSONResponse:
    logger.error(f"Price provider error: {exc}")
    return _error_response(502, exc, {"provider": exc.provider} if exc.provider else None)


@app.exception_handler(FXRateNotAvailableError)
async def fx_not_available_handler(
        request: Request, exc: FXRateNotAvailableError
) -> JSONResponse:
    """FX provider failed and nothing stored could stand in (503)."""
    logger.error(f"FX rates not available: {exc}")
    return _error_response(503, exc, {"requested": exc.requested})


@app.exception_handler(FXRateNotFoundError)
async def fx_not_found_handler(request: Request, exc: FXRateNotFoundError) -> JSONResponse:
    """Snapshot lacks one side of the pair (404)."""
    logger.warning(f"FX pair missing: {exc}")
    return _error_response(404, exc, {
        "base_currency": exc.base_currency,
        "quote_currency": exc.quote_currency,
        "date": exc.date.isoformat() if exc.date else None,
    })


@app.exception_handler(FXProviderError)
async def fx_provider_error_handler(request: Request, exc: FXProviderError) -> JSONResponse:
    logger.error(f"FX provider error: {exc}")
    return _error_response(502, exc, {"provider": exc.provider})


@app.exception_handler(FXRateError)
async def fx_rate_error_handler(request: Request, exc: FXRateError) -> JSONResponse:
    logger.error(f"FX error: {exc}")
    return _error_response(502, exc)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Portfolio document unreadable or unwritable (500)."""
    logger.error(f"Store error: {exc}")
    return _error_response(500, exc, {"path": exc.path} if exc.path else None)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    logger.error(f"Unmapped service error ({type(exc).__name__}): {exc}")
    return _error_response(500, exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
        request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Reshape FastAPI's 422 body into ValidationErrorDetail."""
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=ValidationErrorDetail(details=errors).model_dump(),
    )

# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(portfolio_router)  # /api/portfolio/*
app.include_router(transactions_router)  # /api/transactions/*
app.include_router(accounts_router)  # /api/accounts/*
app.include_router(prices_router)  # /api/prices/*
app.include_router(fx_router)  # /api/fx/*


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@app.get("/health", tags=["Health"])
async def health_check(store: JsonDocumentStore = Depends(get_document_store)):
    """
    Health check endpoint.

    Reports whether the portfolio document exists. A missing document is
    not an error: it is created on first write.
    """
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "store": {
            "path": str(store.path),
            "exists": store.path.exists(),
        },
    }
