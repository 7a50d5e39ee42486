"""Integration tests for financing contracts, payments and reconciliation"""

import pytest
from datetime import date
from decimal import Decimal
from finledger.domain.exceptions import (
    FinancingNotFound,
    FinancingPaymentNotFound,
    InstallmentAlreadyPaid,
    InvalidOperation,
    OverPayment,
)
from finledger.infrastructure.database.models import FinancingPayment, LedgerTransaction
from finledger.infrastructure.database.repositories import TransactionRepository

USER_ID = "user_ana"
OTHER_USER_ID = "user_bruno"


@pytest.fixture
def contract(financing_service, start_date):
    """10000.00 at 1% a month over 10 months, SAC"""
    return financing_service.create_financing(
        USER_ID, 1_000_000, Decimal("0.01"), 10, "SAC", start_date=start_date, description="Car"
    )


@pytest.fixture
def account(make_account):
    return make_account("Checking", 5_000_000)


def test_new_contract_has_full_balance(financing_service, contract):
    result = financing_service.reconcile_financing_balance(USER_ID, contract.id)

    assert contract.status == "active"
    assert contract.current_balance_cents == 1_000_000
    assert result.current_balance_cents == 1_000_000
    assert result.paid_installments == 0
    assert result.remaining_installments == 10
    assert result.percentage_paid == Decimal("0.00")


def test_stored_schedule(financing_service, contract, start_date):
    schedule = financing_service.generate_schedule(USER_ID, contract.id)

    assert len(schedule.rows) == 10
    assert schedule.rows[0].due_date == start_date
    assert schedule.rows[0].payment_cents == 110_000
    assert schedule.total_amortization_cents == 1_000_000


def test_create_financing_validation(financing_service):
    with pytest.raises(InvalidOperation):
        financing_service.create_financing(USER_ID, 0, Decimal("0.01"), 10, "SAC")
    with pytest.raises(InvalidOperation):
        financing_service.create_financing(USER_ID, 1_000, Decimal("0.01"), 601, "Price")
    with pytest.raises(InvalidOperation):
        financing_service.create_financing(USER_ID, 1_000, Decimal("-0.01"), 10, "Price")
    with pytest.raises(InvalidOperation):
        financing_service.create_financing(USER_ID, 1_000, Decimal("0.01"), 10, "Bullet")


def test_pay_installment_uses_schedule_row(db, financing_service, contract, account):
    payment = financing_service.pay_installment(USER_ID, contract.id, 1, account.id, payment_date=date(2024, 1, 15))

    assert payment.payment_type == "regular"
    assert payment.principal_cents == 100_000
    assert payment.interest_cents == 10_000
    assert payment.balance_before_cents == 1_000_000
    assert payment.balance_after_cents == 900_000
    assert contract.current_balance_cents == 900_000
    assert account.balance_cents == 5_000_000 - 110_000

    linked = TransactionRepository(db).list_by_financing_payment(payment.id)
    assert len(linked) == 1
    assert linked[0].type == "expense"
    assert linked[0].amount_cents == 110_000


def test_duplicate_installment_rejected(db, financing_service, contract, account):
    financing_service.pay_installment(USER_ID, contract.id, 1, account.id)

    with pytest.raises(InstallmentAlreadyPaid):
        financing_service.pay_installment(USER_ID, contract.id, 1, account.id)

    assert db.query(FinancingPayment).count() == 1
    assert contract.current_balance_cents == 900_000
    assert account.balance_cents == 5_000_000 - 110_000


def test_installment_number_out_of_range(financing_service, contract, account):
    with pytest.raises(InvalidOperation):
        financing_service.register_payment(
            USER_ID, contract.id, account.id, payment_cents=1_000, principal_cents=1_000, installment_number=11
        )
    with pytest.raises(InvalidOperation):
        financing_service.pay_installment(USER_ID, contract.id, 0, account.id)


def test_portions_must_add_up(financing_service, contract, account):
    with pytest.raises(InvalidOperation):
        financing_service.register_payment(
            USER_ID, contract.id, account.id, payment_cents=1_000, principal_cents=800, interest_cents=100
        )
    with pytest.raises(InvalidOperation):
        financing_service.register_payment(USER_ID, contract.id, account.id, payment_cents=0, principal_cents=0)
    with pytest.raises(InvalidOperation):
        # implied interest would be negative
        financing_service.register_payment(USER_ID, contract.id, account.id, payment_cents=500, principal_cents=800)


def test_overpayment_rejected(db, financing_service, contract, account):
    with pytest.raises(OverPayment):
        financing_service.register_payment(
            USER_ID, contract.id, account.id, payment_cents=1_000_001, principal_cents=1_000_001
        )

    assert db.query(FinancingPayment).count() == 0
    assert account.balance_cents == 5_000_000


def test_final_installment_with_interest_is_accepted(financing_service, account, start_date):
    """The last installment pays more than the outstanding balance because of interest"""
    contract = financing_service.create_financing(USER_ID, 100_000, Decimal("0.02"), 1, "Price", start_date)

    payment = financing_service.pay_installment(USER_ID, contract.id, 1, account.id)

    assert payment.payment_cents == 102_000
    assert payment.balance_after_cents == 0
    assert contract.status == "paid_off"


def test_early_payment_reduces_principal(financing_service, contract, account):
    payment = financing_service.register_payment(
        USER_ID, contract.id, account.id, payment_cents=250_000, principal_cents=250_000
    )

    result = financing_service.reconcile_financing_balance(USER_ID, contract.id)
    assert payment.payment_type == "early"
    assert payment.installment_number is None
    assert result.current_balance_cents == 750_000
    assert result.paid_installments == 0
    assert result.percentage_paid == Decimal("25.00")


def test_paying_every_installment_pays_off(financing_service, contract, account):
    for number in range(1, 11):
        financing_service.pay_installment(USER_ID, contract.id, number, account.id)

    result = financing_service.reconcile_financing_balance(USER_ID, contract.id)
    assert result.is_paid_off
    assert result.paid_installments == 10
    assert result.remaining_installments == 0
    assert result.percentage_paid == Decimal("100.00")
    assert contract.status == "paid_off"
    with pytest.raises(InvalidOperation):
        financing_service.simulate_early_payment(USER_ID, contract.id, 100, "reduce_term")


def test_out_of_order_payments_reconcile(financing_service, contract, account, start_date):
    schedule = financing_service.generate_schedule(USER_ID, contract.id)
    for number in (3, 1, 2):
        row = schedule.row(number)
        financing_service.register_payment(
            USER_ID,
            contract.id,
            account.id,
            payment_cents=row.payment_cents,
            principal_cents=row.amortization_cents,
            payment_date=row.due_date,
            installment_number=number,
        )

    result = financing_service.reconcile_financing_balance(USER_ID, contract.id)
    assert result.current_balance_cents == schedule.row(3).remaining_balance_cents
    assert result.paid_installments == 3


def test_reconcile_as_of_date(financing_service, contract, account):
    financing_service.pay_installment(USER_ID, contract.id, 1, account.id, payment_date=date(2024, 1, 15))
    financing_service.pay_installment(USER_ID, contract.id, 2, account.id, payment_date=date(2024, 2, 15))

    earlier = financing_service.reconcile_financing_balance(USER_ID, contract.id, as_of=date(2024, 1, 31))
    now = financing_service.reconcile_financing_balance(USER_ID, contract.id)

    assert earlier.current_balance_cents == 900_000
    assert earlier.paid_installments == 1
    assert now.current_balance_cents == 800_000


def test_delete_payment_restores_balances(db, financing_service, contract, account):
    payment = financing_service.pay_installment(USER_ID, contract.id, 1, account.id)
    payment_id = payment.id

    result = financing_service.delete_payment(USER_ID, payment_id)

    assert result.current_balance_cents == 1_000_000
    assert contract.current_balance_cents == 1_000_000
    assert account.balance_cents == 5_000_000
    assert db.query(LedgerTransaction).filter_by(financing_payment_id=payment_id).count() == 0
    with pytest.raises(FinancingPaymentNotFound):
        financing_service.delete_payment(USER_ID, payment_id)

    # installment can be paid again after its payment was removed
    financing_service.pay_installment(USER_ID, contract.id, 1, account.id)
    assert contract.current_balance_cents == 900_000


def test_delete_payment_reopens_paid_off_contract(financing_service, account, start_date):
    contract = financing_service.create_financing(USER_ID, 50_000, Decimal("0"), 1, "SAC", start_date)
    payment = financing_service.pay_installment(USER_ID, contract.id, 1, account.id)
    assert contract.status == "paid_off"

    financing_service.delete_payment(USER_ID, payment.id)

    assert contract.status == "active"


def test_payment_transaction_is_not_editable(db, financing_service, lifecycle, contract, account):
    payment = financing_service.pay_installment(USER_ID, contract.id, 1, account.id)
    transaction = TransactionRepository(db).list_by_financing_payment(payment.id)[0]

    with pytest.raises(InvalidOperation):
        lifecycle.delete_transaction(USER_ID, transaction.id)


def test_contract_scoped_by_user(financing_service, contract, make_account):
    other_account = make_account("Theirs", 100_000, user_id=OTHER_USER_ID)

    with pytest.raises(FinancingNotFound):
        financing_service.get_financing(OTHER_USER_ID, contract.id)
    with pytest.raises(FinancingNotFound):
        financing_service.pay_installment(OTHER_USER_ID, contract.id, 1, other_account.id)


def test_simulate_early_payment_on_outstanding_balance(financing_service, contract, account):
    financing_service.pay_installment(USER_ID, contract.id, 1, account.id)

    simulation = financing_service.simulate_early_payment(USER_ID, contract.id, 300_000, "reduce_term")

    assert simulation.original_principal_cents == 900_000
    assert simulation.new_principal_cents == 600_000
    assert simulation.original_term == 9
    assert simulation.new_term == 6
    assert simulation.interest_saved_cents > 0
