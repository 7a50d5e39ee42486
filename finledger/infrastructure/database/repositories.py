"""Data access layer for ledger, investment and financing entities"""

from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import case, func
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from finledger.infrastructure.database.models import (
    Account,
    FinancingContract,
    FinancingPayment,
    InvestmentOperation,
    InvestmentPosition,
    LedgerTransaction,
)

# Supported backends; both accept INSERT ... ON CONFLICT DO NOTHING
INSERT_BY_DIALECT = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


class AccountRepository:
    """Repository for accounts"""

    def __init__(self, db: Session):
        self.db = db

    def create_account(self, user_id: str, name: str) -> Account:
        """Persist an empty account; opening balances go through the ledger"""
        account = Account(user_id=user_id, name=name, balance_cents=0)
        self.db.add(account)
        self.db.flush()
        return account

    def get_account(self, account_id: int, user_id: Optional[str] = None) -> Optional[Account]:
        query = self.db.query(Account).filter(Account.id == account_id)
        if user_id is not None:
            query = query.filter(Account.user_id == user_id)
        return query.first()

    def lock_accounts(self, account_ids: Iterable[int]) -> List[Account]:
        """SELECT ... FOR UPDATE in ascending id order so concurrent writers cannot deadlock"""
        ids = sorted(set(account_ids))
        if not ids:
            return []
        return (
            self.db.query(Account)
            .filter(Account.id.in_(ids))
            .order_by(Account.id)
            .with_for_update()
            .all()
        )


class TransactionRepository:
    """Repository for ledger transactions"""

    def __init__(self, db: Session):
        self.db = db

    def add_transaction(self, transaction: LedgerTransaction) -> LedgerTransaction:
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def get_transaction(
        self, transaction_id: int, user_id: Optional[str] = None, for_update: bool = False
    ) -> Optional[LedgerTransaction]:
        query = self.db.query(LedgerTransaction).filter(LedgerTransaction.id == transaction_id)
        if user_id is not None:
            query = query.filter(LedgerTransaction.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def delete_transaction(self, transaction: LedgerTransaction) -> None:
        self.db.delete(transaction)
        self.db.flush()

    def list_by_account(self, account_id: int, limit: int = 100) -> List[LedgerTransaction]:
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.account_id == account_id)
            .order_by(LedgerTransaction.transaction_date.desc(), LedgerTransaction.id.desc())
            .limit(limit)
            .all()
        )

    def list_by_investment_operation(self, operation_id: int) -> List[LedgerTransaction]:
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.investment_operation_id == operation_id)
            .order_by(LedgerTransaction.id)
            .all()
        )

    def list_by_financing_payment(self, payment_id: int) -> List[LedgerTransaction]:
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.financing_payment_id == payment_id)
            .order_by(LedgerTransaction.id)
            .all()
        )

    def signed_total(self, account_id: int) -> int:
        """Sum of signed amounts of all transactions on an account"""
        signed = case(
            (LedgerTransaction.type == "income", LedgerTransaction.amount_cents),
            else_=-LedgerTransaction.amount_cents,
        )
        total = (
            self.db.query(func.coalesce(func.sum(signed), 0))
            .filter(LedgerTransaction.account_id == account_id)
            .scalar()
        )
        return int(total)


class InvestmentRepository:
    """Repository for investment operations and positions"""

    def __init__(self, db: Session):
        self.db = db

    def get_position(self, user_id: str, asset_name: str, for_update: bool = False) -> Optional[InvestmentPosition]:
        query = self.db.query(InvestmentPosition).filter(
            InvestmentPosition.user_id == user_id,
            InvestmentPosition.asset_name == asset_name,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def lock_or_create_position(self, user_id: str, asset_name: str) -> InvestmentPosition:
        """
        Row-locked position, created empty on first buy.

        Concurrent first buys of the same asset both try the insert; the
        loser's insert is a no-op and it then waits on the winner's row lock.
        """
        position = self.get_position(user_id, asset_name, for_update=True)
        if position is not None:
            return position

        insert = INSERT_BY_DIALECT[self.db.get_bind().dialect.name]
        self.db.execute(
            insert(InvestmentPosition)
            .values(user_id=user_id, asset_name=asset_name, quantity_units=0, average_cost_micros=0)
            .on_conflict_do_nothing(index_elements=["user_id", "asset_name"])
        )
        return self.get_position(user_id, asset_name, for_update=True)

    def list_open_positions(self, user_id: str) -> List[InvestmentPosition]:
        return (
            self.db.query(InvestmentPosition)
            .filter(InvestmentPosition.user_id == user_id, InvestmentPosition.quantity_units > 0)
            .order_by(InvestmentPosition.asset_name)
            .all()
        )

    def add_operation(self, operation: InvestmentOperation) -> InvestmentOperation:
        self.db.add(operation)
        self.db.flush()
        return operation

    def list_operations(self, user_id: str, asset_name: str) -> List[InvestmentOperation]:
        """Operation history in registration order, the order the stored position was built in"""
        return (
            self.db.query(InvestmentOperation)
            .filter(
                InvestmentOperation.user_id == user_id,
                InvestmentOperation.asset_name == asset_name,
            )
            .order_by(InvestmentOperation.id)
            .all()
        )


class FinancingRepository:
    """Repository for financing contracts and their payments"""

    def __init__(self, db: Session):
        self.db = db

    def create_contract(self, contract: FinancingContract) -> FinancingContract:
        self.db.add(contract)
        self.db.flush()
        return contract

    def get_contract(
        self, financing_id: int, user_id: Optional[str] = None, for_update: bool = False
    ) -> Optional[FinancingContract]:
        query = self.db.query(FinancingContract).filter(FinancingContract.id == financing_id)
        if user_id is not None:
            query = query.filter(FinancingContract.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def add_payment(self, payment: FinancingPayment) -> FinancingPayment:
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_payment(self, payment_id: int, user_id: Optional[str] = None) -> Optional[FinancingPayment]:
        query = self.db.query(FinancingPayment).filter(FinancingPayment.id == payment_id)
        if user_id is not None:
            query = query.filter(FinancingPayment.user_id == user_id)
        return query.first()

    def find_installment_payment(self, financing_id: int, installment_number: int) -> Optional[FinancingPayment]:
        return (
            self.db.query(FinancingPayment)
            .filter(
                FinancingPayment.financing_id == financing_id,
                FinancingPayment.installment_number == installment_number,
            )
            .first()
        )

    def list_payments(self, financing_id: int, until: Optional[date] = None) -> List[FinancingPayment]:
        query = self.db.query(FinancingPayment).filter(FinancingPayment.financing_id == financing_id)
        if until is not None:
            query = query.filter(FinancingPayment.payment_date <= until)
        return query.order_by(FinancingPayment.payment_date, FinancingPayment.id).all()

    def delete_payment(self, payment: FinancingPayment) -> None:
        self.db.delete(payment)
        self.db.flush()
