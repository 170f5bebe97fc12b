# stocktracker/routers/__init__.py
"""
API routers for the Stock Tracker.

Each router handles a specific domain:
- portfolio: Holdings, performance, summaries and FX backfill
- transactions: Adding, updating and deleting transactions
- accounts: Creating and replacing accounts
- prices: Current prices and price cache maintenance
- fx: Live and historical exchange rates
"""

from stocktracker.routers.accounts import router as accounts_router
from stocktracker.routers.fx import router as fx_router
from stocktracker.routers.portfolio import router as portfolio_router
from stocktracker.routers.prices import router as prices_router
from stocktracker.routers.transactions import router as transactions_router

__all__ = [
    "accounts_router",
    "fx_router",
    "portfolio_router",
    "prices_router",
    "transactions_router",
]
