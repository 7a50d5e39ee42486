"""Amortization schedule generation for SAC and Price financing"""

import math
from datetime import date
from decimal import Decimal, localcontext
from typing import List, Optional

from finledger.domain.exceptions import InvalidOperation, OverPayment
from finledger.domain.models import (
    AmortizationMethod,
    AmortizationRow,
    AmortizationSchedule,
    EarlyPaymentPreference,
    EarlyPaymentSimulation,
)
from finledger.utils.date_utils import installment_due_date
from finledger.utils.money import apply_rate, round_half_up, split_evenly, to_decimal

MONTHS_PER_YEAR = 12


def monthly_rate_from_annual(annual_rate) -> Decimal:
    """Nominal annual rate → monthly periodic rate (12% a year → 1% a month)"""
    return to_decimal(annual_rate) / MONTHS_PER_YEAR


def parse_method(method) -> AmortizationMethod:
    try:
        return AmortizationMethod(method)
    except ValueError:
        raise InvalidOperation(f"Unsupported amortization method: {method!r}")


def _validate_terms(principal_cents: int, periodic_rate: Decimal, term_months: int) -> None:
    if principal_cents <= 0:
        raise InvalidOperation(f"Principal must be positive, got {principal_cents} cents")
    if periodic_rate < 0:
        raise InvalidOperation(f"Interest rate must not be negative, got {periodic_rate}")
    if term_months <= 0:
        raise InvalidOperation(f"Term must be positive, got {term_months} months")


def price_installment_cents(principal_cents: int, periodic_rate: Decimal, term_months: int) -> int:
    """
    Constant installment of the French system.

    payment = P × r / (1 − (1 + r)^−n), or P / n without interest
    """
    if periodic_rate == 0:
        return split_evenly(principal_cents, term_months)[0]

    with localcontext() as ctx:
        ctx.prec = 40
        discount = (1 + periodic_rate) ** -term_months
        payment = Decimal(principal_cents) * periodic_rate / (1 - discount)
    return round_half_up(payment)


def _sac_rows(principal_cents: int, periodic_rate: Decimal, term_months: int, start_date: date) -> List[AmortizationRow]:
    rows = []
    balance = principal_cents

    for number, amortization in enumerate(split_evenly(principal_cents, term_months), start=1):
        interest = round_half_up(apply_rate(balance, periodic_rate))
        balance -= amortization
        rows.append(
            AmortizationRow(
                installment_number=number,
                due_date=installment_due_date(start_date, number),
                payment_cents=amortization + interest,
                amortization_cents=amortization,
                interest_cents=interest,
                remaining_balance_cents=balance,
            )
        )

    return rows


def _price_rows(principal_cents: int, periodic_rate: Decimal, term_months: int, start_date: date) -> List[AmortizationRow]:
    if periodic_rate == 0:
        # no interest: constant installment is the even split
        return _sac_rows(principal_cents, periodic_rate, term_months, start_date)

    rows = []
    balance = principal_cents
    installment = price_installment_cents(principal_cents, periodic_rate, term_months)

    for number in range(1, term_months + 1):
        interest = round_half_up(apply_rate(balance, periodic_rate))
        if number == term_months:
            # last row absorbs the rounding drift
            amortization = balance
        else:
            amortization = min(installment - interest, balance)
        balance -= amortization
        rows.append(
            AmortizationRow(
                installment_number=number,
                due_date=installment_due_date(start_date, number),
                payment_cents=amortization + interest,
                amortization_cents=amortization,
                interest_cents=interest,
                remaining_balance_cents=balance,
            )
        )

    return rows


def generate_amortization_schedule(
    principal_cents: int,
    periodic_rate,
    term_months: int,
    method,
    start_date: Optional[date] = None,
) -> AmortizationSchedule:
    """
    Generate the theoretical installment schedule of a financing.

    Requirements:
    - SAC: constant amortization, remainder cents on the last row
    - Price: constant installment, last row reconciles the balance to zero
    - Sum of amortizations equals the principal exactly for both methods

    Args:
        principal_cents: Financed amount
        periodic_rate: Interest rate per period (monthly), e.g. Decimal("0.01")
        term_months: Number of installments
        method: "SAC" or "Price"
        start_date: Due date of the first installment (default: today)

    Returns:
        AmortizationSchedule with term_months rows
    """
    periodic_rate = to_decimal(periodic_rate)
    method = parse_method(method)
    _validate_terms(principal_cents, periodic_rate, term_months)

    if start_date is None:
        start_date = date.today()

    if method == AmortizationMethod.SAC:
        rows = _sac_rows(principal_cents, periodic_rate, term_months, start_date)
    else:
        rows = _price_rows(principal_cents, periodic_rate, term_months, start_date)

    return AmortizationSchedule(
        principal_cents=principal_cents,
        periodic_rate=periodic_rate,
        method=method,
        rows=rows,
    )


def _price_term_for_installment(principal_cents: int, periodic_rate: Decimal, installment_cents: int) -> int:
    """Number of constant installments needed to repay principal: n = ln(A / (A − P·r)) / ln(1 + r)"""
    if periodic_rate == 0:
        return -(-principal_cents // max(installment_cents, 1))

    with localcontext() as ctx:
        ctx.prec = 40
        interest_share = Decimal(principal_cents) * periodic_rate
        denominator = Decimal(installment_cents) - interest_share
        if denominator <= 0:
            raise InvalidOperation("Installment does not cover the interest of the remaining principal")
        periods = (Decimal(installment_cents) / denominator).ln() / (1 + periodic_rate).ln()
    return math.ceil(periods)


def simulate_early_payment(
    outstanding_cents: int,
    periodic_rate,
    remaining_months: int,
    method,
    early_payment_cents: int,
    preference,
    start_date: Optional[date] = None,
) -> EarlyPaymentSimulation:
    """
    Simulate an extra principal payment on the remaining balance.

    reduce_installment keeps the remaining term and lowers the installment;
    reduce_term keeps the installment (Price) or the amortization (SAC) and
    shortens the term. Interest saved is the difference of total interest
    between the current and the recomputed schedules.
    """
    periodic_rate = to_decimal(periodic_rate)
    method = parse_method(method)
    try:
        preference = EarlyPaymentPreference(preference)
    except ValueError:
        raise InvalidOperation(f"Unsupported early payment preference: {preference!r}")

    if early_payment_cents <= 0:
        raise InvalidOperation(f"Early payment must be positive, got {early_payment_cents} cents")
    if early_payment_cents >= outstanding_cents:
        raise OverPayment(early_payment_cents, outstanding_cents)

    current = generate_amortization_schedule(outstanding_cents, periodic_rate, remaining_months, method, start_date)
    new_principal = outstanding_cents - early_payment_cents
    first = current.rows[0]

    if preference == EarlyPaymentPreference.REDUCE_INSTALLMENT:
        new_term = remaining_months
    elif method == AmortizationMethod.SAC:
        new_term = -(-new_principal // max(first.amortization_cents, 1))
    else:
        new_term = _price_term_for_installment(new_principal, periodic_rate, first.payment_cents)

    new_term = max(1, min(new_term, remaining_months))
    recomputed = generate_amortization_schedule(new_principal, periodic_rate, new_term, method, start_date)

    return EarlyPaymentSimulation(
        original_principal_cents=outstanding_cents,
        early_payment_cents=early_payment_cents,
        new_principal_cents=new_principal,
        original_payment_cents=first.payment_cents,
        new_payment_cents=recomputed.rows[0].payment_cents,
        original_term=remaining_months,
        new_term=new_term,
        interest_saved_cents=current.total_interest_cents - recomputed.total_interest_cents,
    )
