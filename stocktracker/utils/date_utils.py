# stocktracker/utils/date_utils.py
"""
Date helpers shared by the FX, price and portfolio services.

Usage:
    from stocktracker.utils.date_utils import utc_now, years_between

    years = years_between(date(2023, 1, 1), utc_now().date())
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from stocktracker.constants import DAYS_PER_YEAR, MIN_YEARS_HELD


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def parse_iso_date(value: str) -> date | None:
    """
    Parse a YYYY-MM-DD string.

    Returns:
        The date, or None if the string is not an ISO date (e.g., "live")
    """
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def years_between(start: date, end: date) -> Decimal:
    """
    Years elapsed from start to end using 365.25-day years.

    Floored at MIN_YEARS_HELD so annualized figures never divide by zero;
    a start date in the future also yields the floor.

    Example:
        >>> years_between(date(2024, 1, 1), date(2024, 1, 1))
        Decimal('0.01')
    """
    years = Decimal((end - start).days) / DAYS_PER_YEAR
    return max(years, MIN_YEARS_HELD)


def month_key(d: date) -> str:
    """Calendar month bucket, e.g. date(2024, 1, 15) -> "2024-01"."""
    return f"{d.year:04d}-{d.month:02d}"
