# stocktracker/routers/transactions.py
"""
Transaction editing endpoints.

- POST   /api/transactions - Record a new fill
- PATCH  /api/transactions/{transaction_id} - Change fields of a fill
- DELETE /api/transactions/{transaction_id} - Remove a fill
"""

from fastapi import APIRouter, Depends, status

from stocktracker.dependencies import get_portfolio_service
from stocktracker.schemas.transactions import (
    TransactionCreateRequest,
    TransactionResponse,
    TransactionUpdateRequest,
)
from stocktracker.schemas.validators import normalize_exchange, validate_currency, validate_symbol
from stocktracker.services.portfolio import PortfolioService

router = APIRouter(
    prefix="/api/transactions",
    tags=["Transactions"],
)


def _normalize(fields: dict) -> dict:
    """Uppercase and check symbol, exchange and currency where present."""
    if fields.get("symbol") is not None:
        fields["symbol"] = validate_symbol(fields["symbol"])
    if fields.get("exchange") is not None:
        fields["exchange"] = normalize_exchange(fields["exchange"])
    if fields.get("currency") is not None:
        fields["currency"] = validate_currency(fields["currency"], field="currency")
    return fields


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a transaction",
)
async def add_transaction(
        body: TransactionCreateRequest,
        service: PortfolioService = Depends(get_portfolio_service),
) -> TransactionResponse:
    """
    Store a new buy or sell. The response carries the generated **id** and
    **added_at**.

    A foreign-currency fill posted with **fx_rate** gets its converted
    amounts captured right away; otherwise run the FX backfill later.
    """
    txn = await service.add_transaction(_normalize(body.model_dump()))
    return TransactionResponse.model_validate(txn)


@router.patch(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Update a transaction",
)
async def update_transaction(
        transaction_id: str,
        body: TransactionUpdateRequest,
        service: PortfolioService = Depends(get_portfolio_service),
) -> TransactionResponse:
    """
    Change only the fields present in the body.

    Raises **404** if the transaction is unknown.
    """
    txn = await service.update_transaction(
        transaction_id, _normalize(body.model_dump(exclude_unset=True))
    )
    return TransactionResponse.model_validate(txn)


@router.delete(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Delete a transaction",
)
async def delete_transaction(
        transaction_id: str,
        service: PortfolioService = Depends(get_portfolio_service),
) -> TransactionResponse:
    """
    Remove a transaction and return what was removed.

    Raises **404** if the transaction is unknown.
    """
    txn = await service.delete_transaction(transaction_id)
    return TransactionResponse.model_validate(txn)
