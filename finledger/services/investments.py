"""Investment buy/sell operations with weighted average cost positions"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from finledger.config import settings
from finledger.domain.exceptions import InvalidOperation, InvariantViolation, PositionNotFound
from finledger.domain.models import OperationType, PositionSnapshot, TradeRecord, TransactionType
from finledger.domain.positions import apply_buy, apply_sell, fold_position
from finledger.infrastructure.database.models import InvestmentOperation, InvestmentPosition
from finledger.infrastructure.database.repositories import InvestmentRepository
from finledger.infrastructure.database.session import unit_of_work
from finledger.infrastructure.observability.logging import log_operation
from finledger.infrastructure.observability.metrics import investment_operation_counter
from finledger.services.ledger import TransactionLifecycle
from finledger.utils.money import from_quantity_units, trade_amount_cents

logger = logging.getLogger(__name__)


def _snapshot(position: InvestmentPosition) -> PositionSnapshot:
    return PositionSnapshot(
        asset_name=position.asset_name,
        quantity_units=position.quantity_units,
        average_cost_micros=position.average_cost_micros,
    )


def _normalize_asset(asset_name: str) -> str:
    name = (asset_name or "").strip()
    if not name:
        raise InvalidOperation("Asset name is required")
    return name


class InvestmentService:
    """
    Buy and sell assets.

    Each operation row-locks the (user, asset) position, computes the new
    position with the pure engine in domain.positions, stores the operation,
    writes its ledger transaction(s) and updates the position, all in one
    unit of work.
    """

    def __init__(self, db: Session):
        self.db = db
        self.investments = InvestmentRepository(db)
        self.lifecycle = TransactionLifecycle(db)

    def _trade_amount(self, quantity_units: int, unit_price_cents: int) -> int:
        amount = trade_amount_cents(quantity_units, unit_price_cents)
        if amount <= 0:
            raise InvalidOperation("Trade amount rounds to zero")
        return amount

    def buy_asset(
        self,
        user_id: str,
        asset_name: str,
        quantity_units: int,
        unit_price_cents: int,
        account_id: int,
        broker: Optional[str] = None,
        operation_date: Optional[date] = None,
        destination_account_id: Optional[int] = None,
    ) -> InvestmentOperation:
        """
        Buy an asset paid from account_id.

        Emits one expense transaction on account_id; when destination_account_id
        is given (e.g. the broker cash account) a matching income transaction is
        recorded there as well.
        """
        asset_name = _normalize_asset(asset_name)
        operation_date = operation_date or date.today()

        with unit_of_work(self.db, "buy_asset", user_id=user_id, asset_name=asset_name):
            position = self.investments.lock_or_create_position(user_id, asset_name)
            updated = apply_buy(_snapshot(position), quantity_units, unit_price_cents)
            amount = self._trade_amount(quantity_units, unit_price_cents)

            operation = self.investments.add_operation(
                InvestmentOperation(
                    user_id=user_id,
                    asset_name=asset_name,
                    operation_type=OperationType.BUY.value,
                    quantity_units=quantity_units,
                    unit_price_cents=unit_price_cents,
                    amount_cents=amount,
                    broker=broker,
                    account_id=account_id,
                    destination_account_id=destination_account_id,
                    operation_date=operation_date,
                )
            )

            description = f"Buy {from_quantity_units(quantity_units)} {asset_name}"
            self.lifecycle.record(
                user_id,
                account_id,
                TransactionType.EXPENSE,
                amount,
                description=description,
                transaction_date=operation_date,
                investment_operation_id=operation.id,
                check_funds=settings.enforce_sufficient_funds,
            )
            if destination_account_id is not None:
                self.lifecycle.record(
                    user_id,
                    destination_account_id,
                    TransactionType.INCOME,
                    amount,
                    description=description,
                    transaction_date=operation_date,
                    investment_operation_id=operation.id,
                )

            position.quantity_units = updated.quantity_units
            position.average_cost_micros = updated.average_cost_micros
            self.db.flush()

        investment_operation_counter.labels(operation_type="buy").inc()
        log_operation(
            "buy_asset",
            user_id=user_id,
            operation_id=operation.id,
            asset_name=asset_name,
            quantity_units=quantity_units,
            unit_price_cents=unit_price_cents,
            amount_cents=amount,
        )
        return operation

    def sell_asset(
        self,
        user_id: str,
        asset_name: str,
        quantity_units: int,
        unit_price_cents: int,
        account_id: int,
        broker: Optional[str] = None,
        operation_date: Optional[date] = None,
    ) -> InvestmentOperation:
        """Sell part or all of a position; proceeds are an income transaction on account_id"""
        asset_name = _normalize_asset(asset_name)
        operation_date = operation_date or date.today()

        with unit_of_work(self.db, "sell_asset", user_id=user_id, asset_name=asset_name):
            position = self.investments.get_position(user_id, asset_name, for_update=True)
            if position is None:
                raise PositionNotFound(f"No open position for {asset_name}")

            updated = apply_sell(_snapshot(position), quantity_units, unit_price_cents)
            amount = self._trade_amount(quantity_units, unit_price_cents)

            operation = self.investments.add_operation(
                InvestmentOperation(
                    user_id=user_id,
                    asset_name=asset_name,
                    operation_type=OperationType.SELL.value,
                    quantity_units=quantity_units,
                    unit_price_cents=unit_price_cents,
                    amount_cents=amount,
                    broker=broker,
                    account_id=account_id,
                    operation_date=operation_date,
                )
            )

            self.lifecycle.record(
                user_id,
                account_id,
                TransactionType.INCOME,
                amount,
                description=f"Sell {from_quantity_units(quantity_units)} {asset_name}",
                transaction_date=operation_date,
                investment_operation_id=operation.id,
            )

            position.quantity_units = updated.quantity_units
            self.db.flush()

        investment_operation_counter.labels(operation_type="sell").inc()
        log_operation(
            "sell_asset",
            user_id=user_id,
            operation_id=operation.id,
            asset_name=asset_name,
            quantity_units=quantity_units,
            unit_price_cents=unit_price_cents,
            amount_cents=amount,
        )
        return operation

    def get_position(self, user_id: str, asset_name: str) -> PositionSnapshot:
        """Current position from the incrementally maintained row"""
        position = self.investments.get_position(user_id, _normalize_asset(asset_name))
        if position is None:
            raise PositionNotFound(f"No position for {asset_name}")
        return _snapshot(position)

    def rebuild_position(self, user_id: str, asset_name: str) -> PositionSnapshot:
        """Position folded from the full operation history"""
        asset_name = _normalize_asset(asset_name)
        operations = self.investments.list_operations(user_id, asset_name)
        if not operations:
            raise PositionNotFound(f"No position for {asset_name}")

        trades = [
            TradeRecord(
                operation_type=OperationType(op.operation_type),
                quantity_units=op.quantity_units,
                unit_price_cents=op.unit_price_cents,
            )
            for op in operations
        ]
        return fold_position(asset_name, trades)

    def verify_position(self, user_id: str, asset_name: str) -> PositionSnapshot:
        """Compare stored and folded positions; a mismatch is a defect"""
        stored = self.get_position(user_id, asset_name)
        folded = self.rebuild_position(user_id, asset_name)
        if stored != folded:
            logger.error(
                "Position drift detected",
                extra={"user_id": user_id, "asset_name": asset_name, "stored": repr(stored), "folded": repr(folded)},
            )
            raise InvariantViolation(f"Stored position for {asset_name} differs from its history")
        return stored

    def list_positions(self, user_id: str) -> List[PositionSnapshot]:
        """All open positions (quantity > 0)"""
        return [_snapshot(p) for p in self.investments.list_open_positions(user_id)]
