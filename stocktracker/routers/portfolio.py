# stocktracker/routers/portfolio.py
"""
Portfolio performance endpoints.

- GET  /api/portfolio/stats - Cost, value, gain/loss and ARR per holding
- GET  /api/portfolio/holdings - Open positions (optionally one account)
- GET  /api/portfolio/summary - Transactions, diversification, monthly
  activity and currency breakdown
- GET  /api/portfolio/accounts/{account_id} - One account's summary
- POST /api/portfolio/backfill-fx - Capture missing historical FX rates
"""

from fastapi import APIRouter, Depends, Query

from stocktracker.dependencies import get_portfolio_service
from stocktracker.schemas.portfolio import (
    AccountSummaryResponse,
    BackfillResponse,
    CurrencyBreakdownEntryResponse,
    DiversificationEntryResponse,
    HoldingPerformanceResponse,
    HoldingResponse,
    HoldingsListResponse,
    MonthlyActivityResponse,
    PortfolioStatsResponse,
    PortfolioSummaryResponse,
    TransactionSummaryResponse,
)
from stocktracker.schemas.validators import validate_currency
from stocktracker.services.portfolio import PortfolioService

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/api/portfolio",
    tags=["Portfolio"],
)


# =============================================================================
# MAPPER FUNCTIONS (Internal Types -> Pydantic Schemas)
# =============================================================================

def _map_holding(holding) -> HoldingResponse:
    """Map internal Holding to Pydantic schema."""
    return HoldingResponse(
        symbol=holding.symbol,
        company=holding.company,
        exchange=holding.exchange,
        account_id=holding.account_id,
        currency=holding.currency,
        quantity=holding.quantity,
        total_cost=holding.total_cost,
        avg_cost=holding.avg_cost,
        total_cost_reporting=holding.total_cost_reporting,
        reporting_currency=holding.reporting_currency,
        first_date=holding.first_date,
        warnings=holding.warnings,
    )


def _map_performance(perf) -> HoldingPerformanceResponse:
    """Map internal HoldingPerformance to Pydantic schema."""
    return HoldingPerformanceResponse(
        symbol=perf.holding.symbol,
        company=perf.holding.company,
        exchange=perf.holding.exchange,
        quantity=perf.holding.quantity,
        cost_basis=perf.cost_basis,
        current_price=perf.current_price,
        price_currency=perf.price_currency,
        price_stale=perf.price_stale,
        price_as_of=perf.price_as_of,
        current_value=perf.current_value,
        current_value_reporting=perf.current_value_reporting,
        gain_loss=perf.gain_loss,
        gain_loss_percent=perf.gain_loss_percent,
        years_held=perf.years_held,
        arr=perf.arr,
        fx_history_missing=perf.fx_history_missing,
        warnings=perf.warnings,
    )


def _map_stats(stats) -> PortfolioStatsResponse:
    """Map internal PortfolioStats to Pydantic schema."""
    return PortfolioStatsResponse(
        reporting_currency=stats.reporting_currency,
        total_positions=stats.total_positions,
        total_invested=stats.total_invested,
        total_current_value=stats.total_current_value,
        total_gain_loss=stats.total_gain_loss,
        total_gain_loss_percent=stats.total_gain_loss_percent,
        total_arr=stats.total_arr,
        holdings=[_map_performance(perf) for perf in stats.holdings],
        warnings=stats.warnings,
    )


def _map_account_summary(summary) -> AccountSummaryResponse:
    """Map internal AccountSummary to Pydantic schema."""
    return AccountSummaryResponse(
        account_id=summary.account_id,
        account_name=summary.account_name,
        account_currency=summary.account_currency,
        reporting_currency=summary.reporting_currency,
        total_positions=summary.total_positions,
        total_invested=summary.total_invested,
        total_fees=summary.total_fees,
        holdings=[_map_holding(h) for h in summary.holdings],
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "/stats",
    response_model=PortfolioStatsResponse,
    summary="Get portfolio performance",
)
async def get_portfolio_stats(
        base_currency: str | None = Query(
            default=None,
            description="Reporting currency (default: configured base currency)",
        ),
        service: PortfolioService = Depends(get_portfolio_service),
) -> PortfolioStatsResponse:
    """
    Evaluate every open holding in the reporting currency.

    - **cost_basis** uses each purchase's historical FX rate
    - **current_value** uses the live FX rate
    - **arr** is the simple annualized return since the first transaction

    Holdings without any price are reported at cost with null value fields.
    """
    stats = await service.calculate_portfolio_stats(validate_currency(base_currency))
    return _map_stats(stats)


@router.get(
    "/holdings",
    response_model=HoldingsListResponse,
    summary="List open positions",
)
async def get_holdings(
        account_id: str | None = Query(default=None, description="Only this account"),
        base_currency: str | None = Query(default=None, description="Reporting currency"),
        service: PortfolioService = Depends(get_portfolio_service),
) -> HoldingsListResponse:
    """
    Positions with quantity > 0, in order of first transaction.

    Raises **404** if account_id is unknown.
    """
    currency = await service.get_reporting_currency(validate_currency(base_currency))
    holdings = await service.get_holdings(account_id=account_id, reporting_currency=currency)
    return HoldingsListResponse(
        account_id=account_id,
        reporting_currency=currency,
        holdings=[_map_holding(h) for h in holdings],
        total=len(holdings),
    )


@router.get(
    "/summary",
    response_model=PortfolioSummaryResponse,
    summary="Get portfolio summaries",
)
async def get_portfolio_summary(
        base_currency: str | None = Query(default=None, description="Reporting currency"),
        service: PortfolioService = Depends(get_portfolio_service),
) -> PortfolioSummaryResponse:
    """Transaction counts, diversification, monthly activity and currency breakdown."""
    currency = validate_currency(base_currency)

    transactions = await service.get_transaction_summary(currency)
    diversification = await service.get_diversification(currency)
    monthly = await service.get_monthly_activity(currency)
    breakdown = await service.get_currency_breakdown()

    return PortfolioSummaryResponse(
        reporting_currency=transactions.reporting_currency,
        transactions=TransactionSummaryResponse(
            reporting_currency=transactions.reporting_currency,
            total_buys=transactions.total_buys,
            total_sells=transactions.total_sells,
            total_buy_value=transactions.total_buy_value,
            total_sell_value=transactions.total_sell_value,
            total_fees=transactions.total_fees,
        ),
        diversification=[
            DiversificationEntryResponse(
                symbol=entry.symbol,
                company=entry.company,
                value=entry.value,
                percentage=entry.percentage,
            )
            for entry in diversification
        ],
        monthly_activity=[
            MonthlyActivityResponse(
                month=activity.month,
                buys=activity.buys,
                sells=activity.sells,
                total_buy_value=activity.total_buy_value,
                total_sell_value=activity.total_sell_value,
            )
            for activity in monthly
        ],
        currency_breakdown=[
            CurrencyBreakdownEntryResponse(
                currency=entry.currency,
                total_invested=entry.total_invested,
                transactions=entry.transactions,
            )
            for entry in breakdown
        ],
    )


@router.get(
    "/accounts/{account_id}",
    response_model=AccountSummaryResponse,
    summary="Get account summary",
)
async def get_account_summary(
        account_id: str,
        base_currency: str | None = Query(default=None, description="Reporting currency"),
        service: PortfolioService = Depends(get_portfolio_service),
) -> AccountSummaryResponse:
    """
    Positions, amount invested and fees for one account.

    Raises **404** if the account is unknown.
    """
    summary = await service.get_account_summary(account_id, validate_currency(base_currency))
    return _map_account_summary(summary)


@router.post(
    "/backfill-fx",
    response_model=BackfillResponse,
    summary="Backfill missing FX rates",
)
async def backfill_fx_rates(
        base_currency: str | None = Query(
            default=None,
            description="Currency to convert into (default: stored base currency)",
        ),
        service: PortfolioService = Depends(get_portfolio_service),
) -> BackfillResponse:
    """
    Fetch the historical rate for every foreign-currency transaction that
    has none (or only a placeholder) and store the converted amounts.

    Transactions whose rate cannot be fetched are listed in **failed_ids**.
    """
    result = await service.backfill_missing_fx_rates(validate_currency(base_currency))
    return BackfillResponse(
        base_currency=result.base_currency,
        candidates=result.candidates,
        updated=result.updated,
        failed=result.failed,
        failed_ids=result.failed_ids,
    )
