# stocktracker/__init__.py
"""Stock Tracker: multi-currency portfolio valuation service."""

__version__ = "0.1.0"
