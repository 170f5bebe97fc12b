# stocktracker/services/protocols.py
"""
Protocol interfaces for service dependency injection.

Using typing.Protocol enables structural subtyping:
- Existing classes satisfy protocols without modification
- Test fakes work without explicit inheritance
- Clear documentation of what each consumer needs
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from stocktracker.models import FXSnapshot, LastPrice, PortfolioDocument
    from stocktracker.services.price_service import PriceQuote


# Returns the current timezone-aware time; injected so tests can pin "now"
Clock = Callable[[], datetime]


class DocumentStore(Protocol):
    """Wholesale read/write access to the portfolio document."""

    async def read(self) -> PortfolioDocument:
        ...

    async def write(self, document: PortfolioDocument | None = None) -> None:
        ...


class FXRateServiceProtocol(Protocol):
    """Interface required by the portfolio calculators and service."""

    async def get_live_rates(self) -> FXSnapshot:
        ...

    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        ...

    async def get_historical_rate(
        self,
        rate_date: date,
        from_currency: str,
        to_currency: str,
    ) -> Decimal:
        ...

    async def convert_with_historical_rate(
        self,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
        rate_date: date,
    ) -> Decimal:
        ...

    async def convert_currency(
        self,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
    ) -> Decimal:
        ...

    def clear_cache(self) -> None:
        ...


class PriceServiceProtocol(Protocol):
    """Interface required by the portfolio service."""

    def normalize_symbol(self, symbol: str, exchange: str | None = None) -> str:
        ...

    async def get_current_price(
        self,
        symbol: str,
        exchange: str | None = None,
    ) -> PriceQuote | None:
        ...

    async def get_batch_prices(
        self,
        items: list[tuple[str, str | None]],
    ) -> list[PriceQuote | None]:
        ...

    def last_known(self, ticker: str) -> LastPrice | None:
        ...

    def clear_cache(self) -> None:
        ...
