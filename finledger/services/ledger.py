"""Ledger writer and transaction lifecycle controller"""

import logging
from datetime import date
from typing import Dict, Optional

from sqlalchemy.orm import Session

from finledger.domain.exceptions import (
    AccountNotFound,
    InsufficientFunds,
    InvalidOperation,
    TransactionNotFound,
)
from finledger.domain.ledger import parse_transaction_type, plan_deltas, validate_amount
from finledger.domain.models import TransactionState, TransactionType
from finledger.infrastructure.database.models import Account, LedgerTransaction
from finledger.infrastructure.database.repositories import AccountRepository, TransactionRepository
from finledger.infrastructure.database.session import unit_of_work
from finledger.infrastructure.observability.logging import log_operation
from finledger.infrastructure.observability.metrics import ledger_transaction_counter

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"account_id", "type", "amount_cents", "description", "transaction_date"}
REQUIRED_FIELDS = {"account_id", "type", "amount_cents"}


def _state(transaction: LedgerTransaction) -> TransactionState:
    return TransactionState(
        account_id=transaction.account_id,
        type=TransactionType(transaction.type),
        amount_cents=transaction.amount_cents,
    )


class LedgerWriter:
    """The only code path that mutates Account.balance_cents"""

    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountRepository(db)

    def apply_delta(self, account: Account, delta_cents: int) -> Account:
        """Add a signed delta to the balance; zero is a valid no-op"""
        account.balance_cents = account.balance_cents + delta_cents
        self.db.flush()
        logger.debug(
            "Balance delta applied",
            extra={"account_id": account.id, "delta_cents": delta_cents, "balance_cents": account.balance_cents},
        )
        return account

    def lock_accounts(self, user_id: str, account_ids) -> Dict[int, Account]:
        """Row-lock every account involved, failing if any is missing or foreign"""
        locked = {account.id: account for account in self.accounts.lock_accounts(account_ids)}
        for account_id in account_ids:
            account = locked.get(account_id)
            if account is None or account.user_id != user_id:
                raise AccountNotFound(f"Account {account_id} not found")
        return locked

    def apply_deltas(self, user_id: str, deltas: Dict[int, int]) -> Dict[int, Account]:
        accounts = self.lock_accounts(user_id, list(deltas))
        for account_id, delta in deltas.items():
            self.apply_delta(accounts[account_id], delta)
        return accounts


class TransactionLifecycle:
    """
    Create, update and delete ledger transactions.

    Every state change is turned into per-account balance deltas by
    plan_deltas() and applied through the LedgerWriter inside the caller's
    unit of work. The record/revise/remove methods never commit, so investment
    and financing operations can compose them into one atomic write; the
    create_/update_/delete_transaction methods are standalone operations.
    """

    def __init__(self, db: Session):
        self.db = db
        self.writer = LedgerWriter(db)
        self.transactions = TransactionRepository(db)

    def record(
        self,
        user_id: str,
        account_id: int,
        type,
        amount_cents: int,
        description: Optional[str] = None,
        transaction_date: Optional[date] = None,
        investment_operation_id: Optional[int] = None,
        financing_payment_id: Optional[int] = None,
        check_funds: bool = False,
    ) -> LedgerTransaction:
        """Persist a transaction and apply its delta (no commit)"""
        transaction_type = parse_transaction_type(type)
        validate_amount(amount_cents)

        accounts = self.writer.lock_accounts(user_id, [account_id])
        account = accounts[account_id]

        if check_funds and transaction_type == TransactionType.EXPENSE and account.balance_cents < amount_cents:
            raise InsufficientFunds(
                f"Account {account_id} balance {account.balance_cents} is lower than {amount_cents}"
            )

        transaction = self.transactions.add_transaction(
            LedgerTransaction(
                user_id=user_id,
                account_id=account_id,
                type=transaction_type.value,
                amount_cents=amount_cents,
                description=description,
                transaction_date=transaction_date or date.today(),
                investment_operation_id=investment_operation_id,
                financing_payment_id=financing_payment_id,
            )
        )

        deltas = plan_deltas(None, _state(transaction))
        self.writer.apply_delta(account, deltas[account_id])
        return transaction

    def revise(self, transaction: LedgerTransaction, changes: Dict) -> LedgerTransaction:
        """Reverse the old delta and apply the new one, possibly on another account (no commit)"""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidOperation(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        nulled = sorted(name for name in REQUIRED_FIELDS if name in changes and changes[name] is None)
        if nulled:
            raise InvalidOperation(f"Fields cannot be null: {', '.join(nulled)}")

        old_state = _state(transaction)
        new_state = TransactionState(
            account_id=changes.get("account_id", transaction.account_id),
            type=parse_transaction_type(changes.get("type", transaction.type)),
            amount_cents=changes.get("amount_cents", transaction.amount_cents),
        )
        validate_amount(new_state.amount_cents)

        self.writer.apply_deltas(transaction.user_id, plan_deltas(old_state, new_state))

        transaction.account_id = new_state.account_id
        transaction.type = new_state.type.value
        transaction.amount_cents = new_state.amount_cents
        if "description" in changes:
            transaction.description = changes["description"]
        if changes.get("transaction_date") is not None:
            transaction.transaction_date = changes["transaction_date"]
        self.db.flush()
        return transaction

    def remove(self, transaction: LedgerTransaction) -> None:
        """Reverse the delta and delete the record (no commit)"""
        self.writer.apply_deltas(transaction.user_id, plan_deltas(_state(transaction), None))
        self.transactions.delete_transaction(transaction)

    def _get_standalone(self, user_id: str, transaction_id: int) -> LedgerTransaction:
        transaction = self.transactions.get_transaction(transaction_id, user_id=user_id, for_update=True)
        if transaction is None:
            raise TransactionNotFound(f"Transaction {transaction_id} not found")
        if transaction.investment_operation_id is not None or transaction.financing_payment_id is not None:
            raise InvalidOperation(
                f"Transaction {transaction_id} belongs to an investment operation or financing payment"
            )
        return transaction

    def create_transaction(
        self,
        user_id: str,
        account_id: int,
        type,
        amount_cents: int,
        description: Optional[str] = None,
        transaction_date: Optional[date] = None,
    ) -> LedgerTransaction:
        with unit_of_work(self.db, "create_transaction", user_id=user_id, account_id=account_id):
            transaction = self.record(
                user_id,
                account_id,
                type,
                amount_cents,
                description=description,
                transaction_date=transaction_date,
            )

        ledger_transaction_counter.labels(action="create", type=transaction.type).inc()
        log_operation(
            "create_transaction",
            user_id=user_id,
            transaction_id=transaction.id,
            account_id=account_id,
            type=transaction.type,
            amount_cents=amount_cents,
        )
        return transaction

    def update_transaction(self, user_id: str, transaction_id: int, **changes) -> LedgerTransaction:
        with unit_of_work(self.db, "update_transaction", user_id=user_id, transaction_id=transaction_id):
            transaction = self._get_standalone(user_id, transaction_id)
            self.revise(transaction, changes)

        ledger_transaction_counter.labels(action="update", type=transaction.type).inc()
        log_operation(
            "update_transaction",
            user_id=user_id,
            transaction_id=transaction_id,
            account_id=transaction.account_id,
            type=transaction.type,
            amount_cents=transaction.amount_cents,
        )
        return transaction

    def delete_transaction(self, user_id: str, transaction_id: int) -> None:
        with unit_of_work(self.db, "delete_transaction", user_id=user_id, transaction_id=transaction_id):
            transaction = self._get_standalone(user_id, transaction_id)
            transaction_type = transaction.type
            self.remove(transaction)

        ledger_transaction_counter.labels(action="delete", type=transaction_type).inc()
        log_operation("delete_transaction", user_id=user_id, transaction_id=transaction_id)


class AccountService:
    """Account creation and lookup; opening balances are ledger transactions"""

    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountRepository(db)
        self.lifecycle = TransactionLifecycle(db)

    def create_account(self, user_id: str, name: str, initial_balance_cents: int = 0) -> Account:
        if initial_balance_cents < 0:
            raise InvalidOperation("Initial balance must not be negative")

        with unit_of_work(self.db, "create_account", user_id=user_id):
            account = self.accounts.create_account(user_id, name)
            if initial_balance_cents > 0:
                self.lifecycle.record(
                    user_id,
                    account.id,
                    TransactionType.INCOME,
                    initial_balance_cents,
                    description="Opening balance",
                )

        log_operation("create_account", user_id=user_id, account_id=account.id, balance_cents=account.balance_cents)
        return account

    def get_account(self, user_id: str, account_id: int) -> Account:
        account = self.accounts.get_account(account_id, user_id=user_id)
        if account is None:
            raise AccountNotFound(f"Account {account_id} not found")
        return account
