# stocktracker/routers/fx.py
"""
Exchange rate endpoints.

- GET /api/fx/live - Live rate snapshot
- GET /api/fx/convert - Convert an amount (live or historical rate)
- GET /api/fx/{rate_date} - Historical rate snapshot
"""

import datetime as dt
from decimal import Decimal

from fastapi import APIRouter, Depends, Query

from stocktracker.dependencies import get_fx_rate_service
from stocktracker.schemas.fx import ConversionResponse, FXSnapshotResponse
from stocktracker.schemas.validators import validate_currency
from stocktracker.constants import MONEY_PRECISION
from stocktracker.services.fx_rate_service import FXRateService

router = APIRouter(
    prefix="/api/fx",
    tags=["Exchange Rates"],
)


def _map_snapshot(snapshot) -> FXSnapshotResponse:
    """Map stored FXSnapshot to Pydantic schema."""
    return FXSnapshotResponse(
        base=snapshot.base,
        date=snapshot.date,
        rates=snapshot.rates,
        fetched_at=snapshot.fetched_at,
        cached_until=snapshot.cached_until,
    )


@router.get(
    "/live",
    response_model=FXSnapshotResponse,
    summary="Get live rates",
)
async def get_live_rates(
        service: FXRateService = Depends(get_fx_rate_service),
) -> FXSnapshotResponse:
    """
    Current rates, refreshed at most once per cache period.

    Raises **503** if the provider is down and no snapshot was ever stored.
    """
    return _map_snapshot(await service.get_live_rates())


@router.get(
    "/convert",
    response_model=ConversionResponse,
    summary="Convert an amount",
)
async def convert(
        amount: Decimal = Query(..., description="Amount to convert"),
        from_currency: str = Query(..., alias="from", description="Source currency"),
        to_currency: str = Query(..., alias="to", description="Target currency"),
        rate_date: dt.date | None = Query(
            default=None,
            alias="date",
            description="Use the historical rate of this date (default: live rate)",
        ),
        service: FXRateService = Depends(get_fx_rate_service),
) -> ConversionResponse:
    source = validate_currency(from_currency, field="from")
    target = validate_currency(to_currency, field="to")

    if rate_date is None:
        rate = await service.get_rate(source, target)
    else:
        rate = await service.get_historical_rate(rate_date, source, target)

    return ConversionResponse(
        amount=amount,
        from_currency=source,
        to_currency=target,
        rate=rate,
        converted=(amount * rate).quantize(MONEY_PRECISION),
        rate_date=rate_date,
    )


@router.get(
    "/{rate_date}",
    response_model=FXSnapshotResponse,
    summary="Get rates for a date",
)
async def get_rates_for_date(
        rate_date: dt.date,
        service: FXRateService = Depends(get_fx_rate_service),
) -> FXSnapshotResponse:
    """
    Rates for a past date. Weekends and holidays return the provider's
    most recent business day.

    If the provider is down, the closest stored date is returned instead.
    """
    return _map_snapshot(await service.fetch_all_rates_for_date(rate_date))
