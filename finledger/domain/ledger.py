"""Balance delta rules for ledger transactions"""

from typing import Dict, Optional

from finledger.domain.exceptions import InvalidOperation
from finledger.domain.models import TransactionState, TransactionType


def parse_transaction_type(value) -> TransactionType:
    try:
        return TransactionType(value)
    except ValueError:
        raise InvalidOperation(f"Unsupported transaction type: {value!r}")


def validate_amount(amount_cents: int, what: str = "amount") -> None:
    if amount_cents is None or amount_cents <= 0:
        raise InvalidOperation(f"{what} must be positive, got {amount_cents}")


def signed_amount(state: TransactionState) -> int:
    """Income adds to the account balance, expense subtracts"""
    if state.type == TransactionType.INCOME:
        return state.amount_cents
    return -state.amount_cents


def plan_deltas(old: Optional[TransactionState], new: Optional[TransactionState]) -> Dict[int, int]:
    """
    Balance deltas per account for a transaction state change.

    create: old is None → apply new
    delete: new is None → reverse old
    update: reverse old on its account, apply new on its account (may be the
            same account, in which case the two deltas are netted)

    Accounts whose net delta is zero are still listed so the caller touches
    (and locks) every account involved.
    """
    deltas: Dict[int, int] = {}
    if old is not None:
        deltas[old.account_id] = deltas.get(old.account_id, 0) - signed_amount(old)
    if new is not None:
        deltas[new.account_id] = deltas.get(new.account_id, 0) + signed_amount(new)
    return deltas
