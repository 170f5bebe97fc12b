# stocktracker/routers/accounts.py
"""
Account endpoints.

- PUT /api/accounts/{account_id} - Create or replace an account
"""

from fastapi import APIRouter, Depends

from stocktracker.dependencies import get_portfolio_service
from stocktracker.schemas.transactions import AccountResponse, AccountUpsertRequest
from stocktracker.schemas.validators import validate_currency
from stocktracker.services.portfolio import PortfolioService

router = APIRouter(
    prefix="/api/accounts",
    tags=["Accounts"],
)


@router.put(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Create or replace an account",
)
async def upsert_account(
        account_id: str,
        body: AccountUpsertRequest,
        service: PortfolioService = Depends(get_portfolio_service),
) -> AccountResponse:
    """
    Store the account under **account_id**, replacing any existing record.

    **created_at** survives a replace; **updated_at** is always set to now.
    """
    fields = body.model_dump()
    fields["default_currency"] = validate_currency(
        body.default_currency, field="default_currency"
    )
    account = await service.upsert_account(account_id, fields)
    return AccountResponse.model_validate(account)
