# stocktracker/middleware/__init__.py
"""
ASGI middleware for the Stock Tracker.

Usage:
    from stocktracker.middleware import CorrelationIdMiddleware

    app.add_middleware(CorrelationIdMiddleware)
"""

from stocktracker.middleware.correlation import CorrelationIdMiddleware

__all__ = ["CorrelationIdMiddleware"]
