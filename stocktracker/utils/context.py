# stocktracker/utils/context.py
"""
Request-scoped correlation ID storage.

Uses contextvars so the ID follows the request through every await,
including the per-holding tasks fanned out by the portfolio service
(asyncio copies the current context into each task it creates).

Usage:
    from stocktracker.utils.context import get_correlation_id, set_correlation_id

    set_correlation_id("abc-123")      # in middleware
    get_correlation_id()               # anywhere downstream -> "abc-123"
"""

from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the current request's correlation ID, or None outside a request."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current request."""
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    """Clear the correlation ID at the end of a request."""
    _correlation_id_var.set(None)
