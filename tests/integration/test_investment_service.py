"""Integration tests for investment buy/sell operations"""

import pytest
from datetime import date
from decimal import Decimal
from finledger.config import settings
from finledger.domain.exceptions import (
    InsufficientFunds,
    InsufficientQuantity,
    InvalidOperation,
    InvariantViolation,
    PositionNotFound,
)
from finledger.infrastructure.database.models import InvestmentOperation, InvestmentPosition
from finledger.infrastructure.database.repositories import TransactionRepository
from finledger.utils.money import to_quantity_units

USER_ID = "user_ana"


def units(quantity) -> int:
    return to_quantity_units(quantity)


def test_buy_updates_position_and_ledger(db, investment_service, make_account):
    """100 @ 10.00 then 100 @ 20.00 → 200 @ 15.00, 3000.00 debited"""
    account = make_account("Broker", 500_000)

    first = investment_service.buy_asset(USER_ID, "PETR4", units(100), 1000, account.id, broker="XP")
    investment_service.buy_asset(USER_ID, "PETR4", units(100), 2000, account.id, operation_date=date(2024, 2, 1))

    position = investment_service.get_position(USER_ID, "PETR4")
    assert position.total_quantity == Decimal("200.0000")
    assert position.average_unit_cost == Decimal("15.00")
    assert account.balance_cents == 200_000

    linked = TransactionRepository(db).list_by_investment_operation(first.id)
    assert len(linked) == 1
    assert linked[0].type == "expense"
    assert linked[0].amount_cents == 100_000


def test_buy_with_destination_account(db, investment_service, make_account):
    checking = make_account("Checking", 100_000)
    broker = make_account("Broker cash")

    operation = investment_service.buy_asset(
        USER_ID, "IVVB11", units(10), 3000, checking.id, destination_account_id=broker.id
    )

    linked = TransactionRepository(db).list_by_investment_operation(operation.id)
    assert sorted(t.type for t in linked) == ["expense", "income"]
    assert checking.balance_cents == 70_000
    assert broker.balance_cents == 30_000


def test_sell_keeps_average_and_credits_proceeds(investment_service, make_account):
    account = make_account("Broker", 500_000)
    investment_service.buy_asset(USER_ID, "VALE3", units(100), 1000, account.id)

    operation = investment_service.sell_asset(USER_ID, "VALE3", units(40), 1500, account.id)

    position = investment_service.get_position(USER_ID, "VALE3")
    assert operation.amount_cents == 60_000
    assert position.total_quantity == Decimal("60.0000")
    assert position.average_unit_cost == Decimal("10.00")
    assert account.balance_cents == 500_000 - 100_000 + 60_000


def test_oversell_rejected_without_side_effects(db, investment_service, make_account):
    account = make_account("Broker", 500_000)
    investment_service.buy_asset(USER_ID, "BBAS3", units(60), 2500, account.id)
    balance = account.balance_cents

    with pytest.raises(InsufficientQuantity) as exc_info:
        investment_service.sell_asset(USER_ID, "BBAS3", units(100), 2600, account.id)

    assert exc_info.value.shortfall == Decimal("40")
    assert investment_service.get_position(USER_ID, "BBAS3").quantity_units == units(60)
    assert account.balance_cents == balance
    assert db.query(InvestmentOperation).count() == 1


def test_sell_unknown_or_closed_position(investment_service, make_account):
    account = make_account("Broker", 100_000)

    with pytest.raises(PositionNotFound):
        investment_service.sell_asset(USER_ID, "MGLU3", units(1), 100, account.id)

    investment_service.buy_asset(USER_ID, "MGLU3", units(5), 100, account.id)
    investment_service.sell_asset(USER_ID, "MGLU3", units(5), 120, account.id)

    with pytest.raises(PositionNotFound):
        investment_service.sell_asset(USER_ID, "MGLU3", units(1), 120, account.id)
    assert investment_service.list_positions(USER_ID) == []


def test_invalid_buy_rolls_back_new_position(db, investment_service, make_account):
    account = make_account("Broker", 100_000)

    with pytest.raises(InvalidOperation):
        investment_service.buy_asset(USER_ID, "WEGE3", units(10), 0, account.id)
    with pytest.raises(InvalidOperation):
        investment_service.buy_asset(USER_ID, "   ", units(10), 100, account.id)

    assert db.query(InvestmentPosition).count() == 0
    with pytest.raises(PositionNotFound):
        investment_service.get_position(USER_ID, "WEGE3")


def test_trade_amount_rounding_to_zero_rejected(investment_service, make_account):
    account = make_account("Broker", 100_000)

    # 0.0001 units × 0.01 = 0.000001, nothing to debit
    with pytest.raises(InvalidOperation):
        investment_service.buy_asset(USER_ID, "PENNY", 1, 1, account.id)


def test_insufficient_funds_when_enforced(monkeypatch, investment_service, make_account):
    account = make_account("Broker", 5_000)
    monkeypatch.setattr(settings, "enforce_sufficient_funds", True)

    with pytest.raises(InsufficientFunds):
        investment_service.buy_asset(USER_ID, "ITUB4", units(10), 1000, account.id)

    assert account.balance_cents == 5_000
    with pytest.raises(PositionNotFound):
        investment_service.get_position(USER_ID, "ITUB4")


def test_linked_transaction_cannot_be_edited(db, investment_service, lifecycle, make_account):
    account = make_account("Broker", 100_000)
    operation = investment_service.buy_asset(USER_ID, "TAEE11", units(1), 3500, account.id)
    transaction = TransactionRepository(db).list_by_investment_operation(operation.id)[0]

    with pytest.raises(InvalidOperation):
        lifecycle.update_transaction(USER_ID, transaction.id, amount_cents=1)
    with pytest.raises(InvalidOperation):
        lifecycle.delete_transaction(USER_ID, transaction.id)


def test_rebuild_and_verify_position(db, investment_service, make_account):
    account = make_account("Broker", 1_000_000)
    investment_service.buy_asset(USER_ID, "PETR4", units(100), 1000, account.id)
    investment_service.buy_asset(USER_ID, "PETR4", units(50), 1333, account.id)
    investment_service.sell_asset(USER_ID, "PETR4", units(75), 1400, account.id)
    investment_service.buy_asset(USER_ID, "PETR4", units("12.5"), 987, account.id)

    assert investment_service.rebuild_position(USER_ID, "PETR4") == investment_service.get_position(USER_ID, "PETR4")
    assert investment_service.verify_position(USER_ID, "PETR4").quantity_units == units("87.5")


def test_verify_position_detects_drift(db, investment_service, make_account):
    account = make_account("Broker", 100_000)
    investment_service.buy_asset(USER_ID, "SANB11", units(10), 2800, account.id)

    row = db.query(InvestmentPosition).filter_by(user_id=USER_ID, asset_name="SANB11").one()
    row.quantity_units += 1
    db.commit()

    with pytest.raises(InvariantViolation):
        investment_service.verify_position(USER_ID, "SANB11")


def test_list_positions_only_open(investment_service, make_account):
    account = make_account("Broker", 1_000_000)
    investment_service.buy_asset(USER_ID, "AAA", units(1), 100, account.id)
    investment_service.buy_asset(USER_ID, "BBB", units(2), 200, account.id)
    investment_service.sell_asset(USER_ID, "AAA", units(1), 100, account.id)

    positions = investment_service.list_positions(USER_ID)
    assert [p.asset_name for p in positions] == ["BBB"]
    assert investment_service.list_positions("someone_else") == []


def test_first_buy_race_reuses_existing_position(db, monkeypatch, investment_service, make_account):
    """A position inserted by a concurrent first buy is locked and reused, not duplicated"""
    account = make_account("Broker", 100_000)
    db.add(InvestmentPosition(user_id=USER_ID, asset_name="KLBN11", quantity_units=units(10), average_cost_micros=20_000_000))
    db.commit()

    repository = investment_service.investments
    real_get_position = repository.get_position
    calls = []

    def stale_first_read(user_id, asset_name, for_update=False):
        calls.append(asset_name)
        if len(calls) == 1:
            return None
        return real_get_position(user_id, asset_name, for_update=for_update)

    monkeypatch.setattr(repository, "get_position", stale_first_read)

    investment_service.buy_asset(USER_ID, "KLBN11", units(10), 4000, account.id)

    assert db.query(InvestmentPosition).count() == 1
    position = real_get_position(USER_ID, "KLBN11")
    assert position.quantity_units == units(20)
    assert position.average_cost_micros == 30_000_000
