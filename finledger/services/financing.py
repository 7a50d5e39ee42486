"""Financing contracts, payment registration and balance reconciliation"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from finledger.config import settings
from finledger.domain.amortization import (
    generate_amortization_schedule,
    parse_method,
    simulate_early_payment,
)
from finledger.domain.exceptions import (
    FinancingNotFound,
    FinancingPaymentNotFound,
    InstallmentAlreadyPaid,
    InvalidOperation,
    InvariantViolation,
    OverPayment,
)
from finledger.domain.models import (
    AmortizationSchedule,
    EarlyPaymentSimulation,
    FinancingStatus,
    PaymentRecord,
    PaymentType,
    ReconciliationResult,
    TransactionType,
)
from finledger.domain.reconciliation import reconcile_financing_balance
from finledger.infrastructure.database.models import FinancingContract, FinancingPayment
from finledger.infrastructure.database.repositories import FinancingRepository, TransactionRepository
from finledger.infrastructure.database.session import unit_of_work
from finledger.infrastructure.observability.logging import log_operation
from finledger.infrastructure.observability.metrics import (
    financing_payment_counter,
    schedule_generation_histogram,
)
from finledger.services.ledger import TransactionLifecycle
from finledger.utils.money import to_decimal

logger = logging.getLogger(__name__)

RATE_QUANTUM = Decimal("0.0000000001")


def _payment_records(payments: List[FinancingPayment]) -> List[PaymentRecord]:
    return [
        PaymentRecord(
            payment_date=p.payment_date,
            payment_cents=p.payment_cents,
            principal_cents=p.principal_cents,
            interest_cents=p.interest_cents,
            installment_number=p.installment_number,
            sequence=p.id,
        )
        for p in payments
    ]


class FinancingService:
    """
    Financing contracts and their real payment history.

    The outstanding balance stored on the contract is always the result of
    reconciling the registered payments; it is recomputed inside the same
    unit of work that adds or removes a payment and its ledger transaction.
    """

    def __init__(self, db: Session):
        self.db = db
        self.financings = FinancingRepository(db)
        self.transactions = TransactionRepository(db)
        self.lifecycle = TransactionLifecycle(db)

    def create_financing(
        self,
        user_id: str,
        principal_cents: int,
        periodic_rate,
        term_months: int,
        method,
        start_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> FinancingContract:
        method = parse_method(method)
        periodic_rate = to_decimal(periodic_rate).quantize(RATE_QUANTUM)

        if principal_cents <= 0:
            raise InvalidOperation(f"Principal must be positive, got {principal_cents} cents")
        if periodic_rate < 0:
            raise InvalidOperation(f"Interest rate must not be negative, got {periodic_rate}")
        if not 0 < term_months <= settings.max_term_months:
            raise InvalidOperation(f"Term must be between 1 and {settings.max_term_months} months")

        with unit_of_work(self.db, "create_financing", user_id=user_id):
            contract = self.financings.create_contract(
                FinancingContract(
                    user_id=user_id,
                    description=description,
                    principal_cents=principal_cents,
                    periodic_rate=periodic_rate,
                    term_months=term_months,
                    amortization_method=method.value,
                    start_date=start_date or date.today(),
                    current_balance_cents=principal_cents,
                    status=FinancingStatus.ACTIVE.value,
                )
            )

        log_operation(
            "create_financing",
            user_id=user_id,
            financing_id=contract.id,
            principal_cents=principal_cents,
            term_months=term_months,
            method=method.value,
        )
        return contract

    def get_financing(self, user_id: str, financing_id: int, for_update: bool = False) -> FinancingContract:
        contract = self.financings.get_contract(financing_id, user_id=user_id, for_update=for_update)
        if contract is None:
            raise FinancingNotFound(f"Financing {financing_id} not found")
        return contract

    def generate_schedule(self, user_id: str, financing_id: int) -> AmortizationSchedule:
        """Theoretical schedule of a stored contract"""
        contract = self.get_financing(user_id, financing_id)
        with schedule_generation_histogram.labels(method=contract.amortization_method).time():
            return generate_amortization_schedule(
                contract.principal_cents,
                Decimal(contract.periodic_rate),
                contract.term_months,
                contract.amortization_method,
                contract.start_date,
            )

    def _reconcile(self, contract: FinancingContract, until: Optional[date] = None) -> ReconciliationResult:
        payments = self.financings.list_payments(contract.id, until=until)
        return reconcile_financing_balance(contract.principal_cents, contract.term_months, _payment_records(payments))

    def reconcile_financing_balance(
        self, user_id: str, financing_id: int, as_of: Optional[date] = None
    ) -> ReconciliationResult:
        """Outstanding state from real payments, optionally only those made up to as_of"""
        return self._reconcile(self.get_financing(user_id, financing_id), until=as_of)

    def _refresh_contract(self, contract: FinancingContract) -> ReconciliationResult:
        result = self._reconcile(contract)
        if not 0 <= result.current_balance_cents <= contract.principal_cents:
            raise InvariantViolation(f"Financing {contract.id} reconciled to an impossible balance")

        contract.current_balance_cents = result.current_balance_cents
        contract.status = (FinancingStatus.PAID_OFF if result.is_paid_off else FinancingStatus.ACTIVE).value
        self.db.flush()
        return result

    def register_payment(
        self,
        user_id: str,
        financing_id: int,
        account_id: int,
        payment_cents: int,
        principal_cents: int,
        interest_cents: Optional[int] = None,
        payment_date: Optional[date] = None,
        installment_number: Optional[int] = None,
    ) -> FinancingPayment:
        """
        Register a real payment against a financing.

        Flow:
        1. Lock the contract and reconcile its current balance
        2. Validate portions and the installment number
        3. Reject payments retiring more principal than is outstanding
        4. Persist the payment and its expense transaction
        5. Recompute the contract balance and status

        A payment without installment_number is an early (extra principal) payment.
        """
        if interest_cents is None:
            interest_cents = payment_cents - principal_cents

        if payment_cents <= 0:
            raise InvalidOperation(f"Payment amount must be positive, got {payment_cents} cents")
        if principal_cents < 0 or interest_cents < 0:
            raise InvalidOperation("Principal and interest portions must not be negative")
        if principal_cents + interest_cents != payment_cents:
            raise InvalidOperation("Principal and interest portions must add up to the payment amount")

        payment_type = PaymentType.REGULAR if installment_number is not None else PaymentType.EARLY
        payment_date = payment_date or date.today()

        with unit_of_work(self.db, "register_financing_payment", user_id=user_id, financing_id=financing_id):
            contract = self.get_financing(user_id, financing_id, for_update=True)

            if installment_number is not None:
                if not 1 <= installment_number <= contract.term_months:
                    raise InvalidOperation(
                        f"Installment {installment_number} is outside 1..{contract.term_months}"
                    )
                if self.financings.find_installment_payment(contract.id, installment_number) is not None:
                    raise InstallmentAlreadyPaid(f"Installment {installment_number} is already paid")

            balance_before = self._reconcile(contract).current_balance_cents
            if principal_cents > balance_before:
                raise OverPayment(principal_cents, balance_before)

            payment = self.financings.add_payment(
                FinancingPayment(
                    financing_id=contract.id,
                    user_id=user_id,
                    account_id=account_id,
                    installment_number=installment_number,
                    payment_type=payment_type.value,
                    payment_cents=payment_cents,
                    principal_cents=principal_cents,
                    interest_cents=interest_cents,
                    balance_before_cents=balance_before,
                    balance_after_cents=balance_before - principal_cents,
                    payment_date=payment_date,
                )
            )

            if installment_number is not None:
                description = f"Financing {contract.id} installment {installment_number}"
            else:
                description = f"Financing {contract.id} early payment"
            self.lifecycle.record(
                user_id,
                account_id,
                TransactionType.EXPENSE,
                payment_cents,
                description=description,
                transaction_date=payment_date,
                financing_payment_id=payment.id,
                check_funds=settings.enforce_sufficient_funds,
            )

            result = self._refresh_contract(contract)
            if result.current_balance_cents != payment.balance_after_cents:
                raise InvariantViolation(
                    f"Financing {contract.id} balance {result.current_balance_cents} "
                    f"does not match payment balance_after {payment.balance_after_cents}"
                )

        financing_payment_counter.labels(payment_type=payment_type.value).inc()
        log_operation(
            "register_financing_payment",
            user_id=user_id,
            financing_id=financing_id,
            payment_id=payment.id,
            installment_number=installment_number,
            payment_cents=payment_cents,
            principal_cents=principal_cents,
            balance_after_cents=payment.balance_after_cents,
        )
        return payment

    def pay_installment(
        self,
        user_id: str,
        financing_id: int,
        installment_number: int,
        account_id: int,
        payment_date: Optional[date] = None,
    ) -> FinancingPayment:
        """Register a regular payment using the scheduled values of the installment"""
        schedule = self.generate_schedule(user_id, financing_id)
        row = schedule.row(installment_number)
        if row is None:
            raise InvalidOperation(f"Installment {installment_number} does not exist")

        return self.register_payment(
            user_id,
            financing_id,
            account_id,
            payment_cents=row.payment_cents,
            principal_cents=row.amortization_cents,
            interest_cents=row.interest_cents,
            payment_date=payment_date,
            installment_number=installment_number,
        )

    def delete_payment(self, user_id: str, payment_id: int) -> ReconciliationResult:
        """Remove a payment, reversing its ledger transaction, and reconcile the contract"""
        with unit_of_work(self.db, "delete_financing_payment", user_id=user_id, payment_id=payment_id):
            payment = self.financings.get_payment(payment_id, user_id=user_id)
            if payment is None:
                raise FinancingPaymentNotFound(f"Financing payment {payment_id} not found")

            contract = self.get_financing(user_id, payment.financing_id, for_update=True)
            for transaction in self.transactions.list_by_financing_payment(payment.id):
                self.lifecycle.remove(transaction)
            self.financings.delete_payment(payment)

            result = self._refresh_contract(contract)

        log_operation(
            "delete_financing_payment",
            user_id=user_id,
            payment_id=payment_id,
            financing_id=contract.id,
            balance_cents=result.current_balance_cents,
        )
        return result

    def simulate_early_payment(
        self, user_id: str, financing_id: int, early_payment_cents: int, preference
    ) -> EarlyPaymentSimulation:
        """Simulate an extra payment against the current outstanding balance"""
        contract = self.get_financing(user_id, financing_id)
        state = self._reconcile(contract)
        if state.is_paid_off:
            raise InvalidOperation(f"Financing {financing_id} is already paid off")

        return simulate_early_payment(
            state.current_balance_cents,
            Decimal(contract.periodic_rate),
            max(state.remaining_installments, 1),
            contract.amortization_method,
            early_payment_cents,
            preference,
        )
