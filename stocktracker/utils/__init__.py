# stocktracker/utils/__init__.py
"""
Logging setup, request correlation IDs and date helpers.

Usage:
    from stocktracker.utils import setup_logging
    from stocktracker.utils import get_correlation_id, set_correlation_id
"""

from stocktracker.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
)
from stocktracker.utils.logging import setup_logging

__all__ = [
    # Logging
    "setup_logging",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
]
