# stocktracker/schemas/__init__.py
"""
Pydantic schemas for the HTTP API.

- errors: ErrorDetail returned by the global exception handlers
- portfolio: holdings, performance, summaries, FX backfill
- prices: quotes, cache info, refresh results
- fx: rate snapshots and conversions
- transactions: transaction and account edits
"""

from stocktracker.schemas.errors import ErrorDetail, ValidationErrorDetail

__all__ = ["ErrorDetail", "ValidationErrorDetail"]
