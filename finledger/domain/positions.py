"""Investment position engine - weighted average cost over buy/sell history"""

from typing import Iterable

from finledger.domain.exceptions import InsufficientQuantity, InvalidOperation, PositionNotFound
from finledger.domain.models import OperationType, PositionSnapshot, TradeRecord
from finledger.utils.money import cents_to_micros, divide_round_half_up, from_quantity_units


def validate_trade(quantity_units: int, unit_price_cents: int) -> None:
    if quantity_units <= 0:
        raise InvalidOperation(f"Quantity must be positive, got {from_quantity_units(quantity_units)}")
    if unit_price_cents <= 0:
        raise InvalidOperation(f"Unit price must be positive, got {unit_price_cents} cents")


def apply_buy(position: PositionSnapshot, quantity_units: int, unit_price_cents: int) -> PositionSnapshot:
    """
    Add quantity to the position and recompute the weighted average cost.

    new_avg = (old_qty × old_avg + qty × price) / (old_qty + qty)
    On an empty position the average is simply the unit price.
    """
    validate_trade(quantity_units, unit_price_cents)

    price_micros = cents_to_micros(unit_price_cents)
    new_quantity = position.quantity_units + quantity_units

    if position.quantity_units == 0:
        new_average = price_micros
    else:
        weighted_cost = position.quantity_units * position.average_cost_micros + quantity_units * price_micros
        new_average = divide_round_half_up(weighted_cost, new_quantity)

    return PositionSnapshot(
        asset_name=position.asset_name,
        quantity_units=new_quantity,
        average_cost_micros=new_average,
    )


def apply_sell(position: PositionSnapshot, quantity_units: int, unit_price_cents: int) -> PositionSnapshot:
    """Remove quantity from the position; the average cost of the remainder is unchanged"""
    validate_trade(quantity_units, unit_price_cents)

    if position.quantity_units == 0:
        raise PositionNotFound(f"No open position for {position.asset_name}")

    if quantity_units > position.quantity_units:
        raise InsufficientQuantity(
            position.asset_name,
            requested=from_quantity_units(quantity_units),
            available=from_quantity_units(position.quantity_units),
        )

    return PositionSnapshot(
        asset_name=position.asset_name,
        quantity_units=position.quantity_units - quantity_units,
        average_cost_micros=position.average_cost_micros,
    )


def apply_trade(position: PositionSnapshot, trade: TradeRecord) -> PositionSnapshot:
    if trade.operation_type == OperationType.BUY:
        return apply_buy(position, trade.quantity_units, trade.unit_price_cents)
    if trade.operation_type == OperationType.SELL:
        return apply_sell(position, trade.quantity_units, trade.unit_price_cents)
    raise InvalidOperation(f"Unsupported operation type: {trade.operation_type!r}")


def fold_position(asset_name: str, trades: Iterable[TradeRecord]) -> PositionSnapshot:
    """Rebuild a position from its ordered operation history"""
    position = PositionSnapshot(asset_name=asset_name)
    for trade in trades:
        position = apply_trade(position, trade)
    return position
