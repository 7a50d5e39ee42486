"""/v1/accounts - account creation and balance lookup"""

from fastapi import APIRouter, Depends, Query

from finledger.api.dependencies import get_account_service
from finledger.api.v1.schemas import AccountCreateRequest, AccountResponse
from finledger.infrastructure.database.models import Account
from finledger.services.ledger import AccountService
from finledger.utils.money import from_cents, to_cents

router = APIRouter()


def _account_response(account: Account) -> AccountResponse:
    return AccountResponse(
        account_id=account.id,
        user_id=account.user_id,
        name=account.name,
        balance=from_cents(account.balance_cents),
    )


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def create_account(body: AccountCreateRequest, service: AccountService = Depends(get_account_service)):
    account = service.create_account(body.user_id, body.name, to_cents(body.initial_balance))
    return _account_response(account)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int,
    user_id: str = Query(..., description="User identifier"),
    service: AccountService = Depends(get_account_service),
):
    return _account_response(service.get_account(user_id, account_id))
