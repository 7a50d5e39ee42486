"""End-to-end scenarios across the ledger, investments and financing"""

import pytest
from datetime import date
from decimal import Decimal
from finledger.domain.exceptions import InsufficientQuantity
from finledger.domain.amortization import generate_amortization_schedule, monthly_rate_from_annual
from finledger.infrastructure.database.repositories import TransactionRepository
from finledger.utils.money import to_quantity_units

USER_ID = "user_ana"


def test_two_years_of_sac_installments(db, financing_service, make_account):
    """200000.00 at 1.5% a month over 120 months, 24 installments paid on schedule"""
    account = make_account("Checking", 10_000_000)
    contract = financing_service.create_financing(
        USER_ID, 20_000_000, Decimal("0.015"), 120, "SAC", start_date=date(2023, 3, 10)
    )
    schedule = financing_service.generate_schedule(USER_ID, contract.id)

    for number in range(1, 25):
        row = schedule.row(number)
        financing_service.register_payment(
            USER_ID,
            contract.id,
            account.id,
            payment_cents=row.payment_cents,
            principal_cents=row.amortization_cents,
            interest_cents=row.interest_cents,
            payment_date=row.due_date,
            installment_number=number,
        )

    result = financing_service.reconcile_financing_balance(USER_ID, contract.id)
    paid = schedule.rows[:24]
    assert result.paid_installments == 24
    assert result.remaining_installments == 96
    assert result.current_balance_cents == schedule.row(24).remaining_balance_cents
    assert result.total_paid_cents == sum(row.payment_cents for row in paid)
    assert result.total_interest_paid_cents == sum(row.interest_cents for row in paid)
    assert result.percentage_paid == Decimal("20.00")

    expected_balance = 10_000_000 - sum(row.payment_cents for row in paid)
    assert account.balance_cents == expected_balance
    assert TransactionRepository(db).signed_total(account.id) == expected_balance


def test_long_sac_and_price_schedules():
    """500000.00 at 12% a year over 30 years"""
    rate = monthly_rate_from_annual("0.12")

    sac = generate_amortization_schedule(50_000_000, rate, 360, "SAC", date(2024, 1, 1))
    price = generate_amortization_schedule(50_000_000, rate, 360, "Price", date(2024, 1, 1))

    assert sac.total_amortization_cents == 50_000_000
    assert price.total_amortization_cents == 50_000_000
    # Price pays more interest than SAC for the same terms
    assert price.total_interest_cents > sac.total_interest_cents
    assert len({row.payment_cents for row in price.rows[:-1]}) == 1
    assert sac.rows[-1].due_date == date(2053, 12, 1)


def test_portfolio_history_with_oversell_attempt(db, investment_service, make_account):
    """Buy 60, fail to sell 100, sell 60: position closes and cash adds up"""
    account = make_account("Broker", 1_000_000)

    investment_service.buy_asset(USER_ID, "BBAS3", to_quantity_units(60), 2500, account.id)
    with pytest.raises(InsufficientQuantity):
        investment_service.sell_asset(USER_ID, "BBAS3", to_quantity_units(100), 2600, account.id)

    investment_service.sell_asset(USER_ID, "BBAS3", to_quantity_units(60), 2600, account.id)

    assert investment_service.list_positions(USER_ID) == []
    assert account.balance_cents == 1_000_000 - 150_000 + 156_000
    assert TransactionRepository(db).signed_total(account.id) == account.balance_cents
