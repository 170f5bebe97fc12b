# stocktracker/services/__init__.py
"""
Service layer for business logic.

This package contains the service layer which encapsulates business logic
separate from the API (router) layer. Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive the store, providers and clock via their constructors
- Are easily testable via dependency injection

Usage:
    from stocktracker.services import FXRateService
    from stocktracker.services import PriceService
    from stocktracker.services import PortfolioService
    from stocktracker.services import (
        AccountNotFoundError,
        MarketDataError,
        FXRateNotAvailableError,
    )

Architecture:
    services/
    ├── __init__.py                  # This file - main exports
    ├── exceptions.py                # Domain exceptions
    ├── protocols.py                 # Service interfaces (Protocol classes)
    ├── circuit_breaker.py           # Per-ticker failure suppression
    ├── store.py                     # JSON portfolio document store
    ├── fx_rate_service.py           # Live and historical FX rates
    ├── price_service.py             # Current prices with fallbacks
    ├── market_data/                 # External providers
    │   ├── base.py                  # Abstract provider interfaces
    │   ├── yahoo.py                 # Yahoo Finance prices
    │   └── frankfurter.py           # Frankfurter (ECB) FX rates
    └── portfolio/                   # Portfolio performance
        ├── service.py               # Main portfolio orchestrator
        ├── types.py                 # Result data types
        └── calculators.py           # Holdings, cost, value, returns
"""

# Exceptions
from stocktracker.services.exceptions import (
    # Base exceptions
    ServiceError,
    ValidationError,
    NotFoundError,
    AccountNotFoundError,
    StoreError,
    # Market data exceptions
    MarketDataError,
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
    # FX rate exceptions
    FXRateError,
    FXRateNotFoundError,
    FXRateNotAvailableError,
    FXProviderError,
)
# FX Rate Service
from stocktracker.services.fx_rate_service import FXRateService
# Price Service
from stocktracker.services.price_service import PriceQuote, PriceService
# Store
from stocktracker.services.store import JsonDocumentStore
# Portfolio Service
from stocktracker.services.portfolio import PortfolioService

__all__ = [
    # ==========================================================================
    # Services
    # ==========================================================================
    "FXRateService",
    "PriceService",
    "PriceQuote",
    "PortfolioService",
    "JsonDocumentStore",

    # ==========================================================================
    # Exceptions
    # ==========================================================================
    # Base
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "AccountNotFoundError",
    "StoreError",
    # Market data
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    # FX rate
    "FXRateError",
    "FXRateNotFoundError",
    "FXRateNotAvailableError",
    "FXProviderError",
]
