"""Financing balance reconciliation against registered payments"""

import logging
from typing import Iterable, List

from finledger.domain.models import PaymentRecord, ReconciliationResult
from finledger.utils.money import percentage

logger = logging.getLogger(__name__)


def chronological(payments: Iterable[PaymentRecord]) -> List[PaymentRecord]:
    """Order payments by date, then installment number, then registration order"""
    return sorted(
        payments,
        key=lambda p: (p.payment_date, p.installment_number or 0, p.sequence),
    )


def reconcile_financing_balance(
    principal_cents: int,
    term_months: int,
    payments: Iterable[PaymentRecord],
) -> ReconciliationResult:
    """
    Recompute the outstanding state of a financing from real payments.

    Only principal portions reduce the balance; interest is tracked but never
    affects it. The result is independent of the theoretical schedule, so
    partial, skipped, early or out-of-order payments are reflected as they
    actually happened. The balance is clamped to [0, principal].
    """
    ordered = chronological(payments)

    remaining = principal_cents
    total_paid = 0
    total_interest = 0

    for payment in ordered:
        remaining -= payment.principal_cents
        total_paid += payment.payment_cents
        total_interest += payment.interest_cents

    current_balance = min(max(remaining, 0), principal_cents)
    if current_balance != remaining:
        logger.warning(
            "Reconciled balance clamped",
            extra={"raw_balance_cents": remaining, "principal_cents": principal_cents},
        )

    # early payments carry no installment number
    paid_installments = sum(1 for p in ordered if p.installment_number is not None)

    return ReconciliationResult(
        principal_cents=principal_cents,
        current_balance_cents=current_balance,
        paid_installments=paid_installments,
        remaining_installments=max(term_months - paid_installments, 0),
        total_paid_cents=total_paid,
        total_interest_paid_cents=total_interest,
        percentage_paid=percentage(principal_cents - current_balance, principal_cents),
    )
