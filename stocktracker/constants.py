# stocktracker/constants.py
"""
Centralized constants for the Stock Tracker services.

This module provides a single source of truth for the business constants
used across the application. Values that users may want to tune per
deployment (TTLs, base currency) are mirrored as Settings in config.py;
the values here are the defaults.

This module imports nothing from stocktracker, so config.py and utils can
use it without loading the service layer.

Usage:
    from stocktracker.constants import (
        FX_PIVOT_CURRENCY,
        SUPPORTED_CURRENCIES,
        DAYS_PER_YEAR,
    )
"""

from decimal import Decimal


# =============================================================================
# CURRENCY SETTINGS
# =============================================================================

# All snapshots are pivoted on USD; cross rates are derived as
# rate[to] / rate[from], so only one rate per currency is stored per date
FX_PIVOT_CURRENCY: str = "USD"

# Currencies kept from each provider response
SUPPORTED_CURRENCIES: tuple[str, ...] = ("CAD", "GBP", "USD", "EUR", "AUD", "CHF")

# Reporting currency when none is configured
DEFAULT_BASE_CURRENCY: str = "CAD"

# Store key reserved for the rolling live snapshot
LIVE_SNAPSHOT_KEY: str = "live"


# =============================================================================
# CACHE SETTINGS
# =============================================================================

# Live FX snapshot lifetime (1 hour)
FX_LIVE_TTL_SECONDS: int = 3600

# In-memory price quote lifetime (15 minutes)
PRICE_CACHE_TTL_SECONDS: int = 900

# After a failed price fetch, skip the provider for this key (5 minutes)
# The upstream quota is daily, so hammering a known-bad symbol wastes it
PRICE_FAILURE_SUPPRESSION_SECONDS: int = 300


# =============================================================================
# RETURN CALCULATION SETTINGS
# =============================================================================

# Calendar days per year for "years held", including leap years
DAYS_PER_YEAR: Decimal = Decimal("365.25")

# Floor for years held so ARR never divides by zero
MIN_YEARS_HELD: Decimal = Decimal("0.01")


# =============================================================================
# PRECISION
# =============================================================================

MONEY_PRECISION: Decimal = Decimal("0.01")
PERCENT_PRECISION: Decimal = Decimal("0.01")
RATE_PRECISION: Decimal = Decimal("0.00000001")
QUANTITY_PRECISION: Decimal = Decimal("0.00000001")


# =============================================================================
# EXTERNAL API TIMEOUT SETTINGS
# =============================================================================

# Default timeout for external API calls (FX provider)
EXTERNAL_API_TIMEOUT_SECONDS: int = 10
