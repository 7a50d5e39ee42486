"""/v1/transactions - ledger transaction create/update/delete"""

from fastapi import APIRouter, Depends, Query, Response

from finledger.api.dependencies import get_transaction_lifecycle
from finledger.api.v1.schemas import (
    TransactionCreateRequest,
    TransactionResponse,
    TransactionUpdateRequest,
)
from finledger.infrastructure.database.models import LedgerTransaction
from finledger.services.ledger import TransactionLifecycle
from finledger.utils.money import from_cents, to_cents

router = APIRouter()


def _transaction_response(transaction: LedgerTransaction) -> TransactionResponse:
    return TransactionResponse(
        transaction_id=transaction.id,
        account_id=transaction.account_id,
        type=transaction.type,
        amount=from_cents(transaction.amount_cents),
        description=transaction.description,
        transaction_date=transaction.transaction_date,
        account_balance=from_cents(transaction.account.balance_cents),
    )


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    body: TransactionCreateRequest,
    lifecycle: TransactionLifecycle = Depends(get_transaction_lifecycle),
):
    transaction = lifecycle.create_transaction(
        body.user_id,
        body.account_id,
        body.type,
        to_cents(body.amount),
        description=body.description,
        transaction_date=body.transaction_date,
    )
    return _transaction_response(transaction)


@router.patch("/transactions/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: int,
    body: TransactionUpdateRequest,
    lifecycle: TransactionLifecycle = Depends(get_transaction_lifecycle),
):
    changes = body.model_dump(exclude_unset=True, exclude={"user_id"})
    if "amount" in changes:
        changes["amount_cents"] = to_cents(changes.pop("amount"))
    transaction = lifecycle.update_transaction(body.user_id, transaction_id, **changes)
    return _transaction_response(transaction)


@router.delete("/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    user_id: str = Query(..., description="User identifier"),
    lifecycle: TransactionLifecycle = Depends(get_transaction_lifecycle),
):
    lifecycle.delete_transaction(user_id, transaction_id)
    return Response(status_code=204)
