"""/v1/investments - buy/sell operations and positions"""

from fastapi import APIRouter, Depends, Query

from finledger.api.dependencies import get_investment_service
from finledger.api.v1.schemas import PositionResponse, PositionsResponse, TradeRequest, TradeResponse
from finledger.infrastructure.database.models import InvestmentOperation
from finledger.services.investments import InvestmentService
from finledger.utils.money import from_cents, to_cents, to_quantity_units

router = APIRouter()


def _trade_response(service: InvestmentService, operation: InvestmentOperation) -> TradeResponse:
    position = service.get_position(operation.user_id, operation.asset_name)
    return TradeResponse(
        operation_id=operation.id,
        operation_type=operation.operation_type,
        amount=from_cents(operation.amount_cents),
        position=PositionResponse.from_snapshot(position),
    )


@router.post("/investments/buy", response_model=TradeResponse, status_code=201)
def buy_asset(body: TradeRequest, service: InvestmentService = Depends(get_investment_service)):
    operation = service.buy_asset(
        body.user_id,
        body.asset_name,
        to_quantity_units(body.quantity),
        to_cents(body.unit_price),
        body.account_id,
        broker=body.broker,
        operation_date=body.operation_date,
        destination_account_id=body.destination_account_id,
    )
    return _trade_response(service, operation)


@router.post("/investments/sell", response_model=TradeResponse, status_code=201)
def sell_asset(body: TradeRequest, service: InvestmentService = Depends(get_investment_service)):
    operation = service.sell_asset(
        body.user_id,
        body.asset_name,
        to_quantity_units(body.quantity),
        to_cents(body.unit_price),
        body.account_id,
        broker=body.broker,
        operation_date=body.operation_date,
    )
    return _trade_response(service, operation)


@router.get("/investments/positions", response_model=PositionsResponse)
def list_positions(
    user_id: str = Query(..., description="User identifier"),
    service: InvestmentService = Depends(get_investment_service),
):
    positions = [PositionResponse.from_snapshot(p) for p in service.list_positions(user_id)]
    return PositionsResponse(user_id=user_id, positions=positions)


@router.get("/investments/positions/{asset_name}", response_model=PositionResponse)
def get_position(
    asset_name: str,
    user_id: str = Query(..., description="User identifier"),
    service: InvestmentService = Depends(get_investment_service),
):
    return PositionResponse.from_snapshot(service.get_position(user_id, asset_name))
