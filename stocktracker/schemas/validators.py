# stocktracker/schemas/validators.py
"""
Reusable validation functions for request parameters.

This module provides:
- Currency code validation (ISO 4217 format, supported set)
- Symbol and exchange normalization

Validators raise the service-layer ValidationError so the global handler
returns a 400 with the offending field.
"""

import re

from stocktracker.constants import SUPPORTED_CURRENCIES
from stocktracker.services.exceptions import ValidationError

# Currency: ISO 4217 format (3 uppercase letters)
CURRENCY_PATTERN = re.compile(r'^[A-Z]{3}$')

# Symbol: 1-20 chars, alphanumeric + dots + dashes + carets (for indices like ^SPX)
SYMBOL_PATTERN = re.compile(r'^[\^]?[A-Z0-9][A-Z0-9.\-]{0,19}$')


def validate_currency(value: str | None, field: str = "base_currency") -> str | None:
    """
    Validate and normalize an optional currency code.

    Returns:
        Uppercase code, or None if no value was given

    Raises:
        ValidationError: If the code is malformed or not supported
    """
    if value is None:
        return None

    normalized = value.strip().upper()
    if not CURRENCY_PATTERN.match(normalized):
        raise ValidationError(
            f"Invalid currency code '{value}'. Must be 3 letters (e.g., CAD, USD)",
            field=field,
        )
    if normalized not in SUPPORTED_CURRENCIES:
        raise ValidationError(
            f"Unsupported currency '{normalized}'. Supported: {', '.join(SUPPORTED_CURRENCIES)}",
            field=field,
        )
    return normalized


def validate_symbol(value: str) -> str:
    """
    Validate and normalize a ticker symbol.

    Raises:
        ValidationError: If the symbol format is invalid
    """
    normalized = value.strip().upper()
    if not SYMBOL_PATTERN.match(normalized):
        raise ValidationError(f"Invalid symbol '{value}'", field="symbol")
    return normalized


def normalize_exchange(value: str | None) -> str | None:
    """Uppercase an exchange code; blank means none."""
    if value is None or not value.strip():
        return None
    return value.strip().upper()
