"""/v1/financings - contracts, schedules, payments and reconciliation"""

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query

from finledger.api.dependencies import get_financing_service
from finledger.api.v1.schemas import (
    BalanceResponse,
    EarlyPaymentRequest,
    EarlyPaymentResponse,
    FinancingCreateRequest,
    FinancingResponse,
    FinancingTerms,
    PayInstallmentRequest,
    PaymentRequest,
    PaymentResponse,
    ScheduleResponse,
)
from finledger.domain.amortization import generate_amortization_schedule, monthly_rate_from_annual
from finledger.infrastructure.database.models import FinancingContract, FinancingPayment
from finledger.services.financing import FinancingService
from finledger.utils.money import from_cents, to_cents

router = APIRouter()


def _monthly_rate(terms: FinancingTerms) -> Decimal:
    if terms.monthly_rate is not None:
        return terms.monthly_rate
    return monthly_rate_from_annual(terms.annual_rate)


def _financing_response(contract: FinancingContract) -> FinancingResponse:
    return FinancingResponse(
        financing_id=contract.id,
        principal=from_cents(contract.principal_cents),
        monthly_rate=Decimal(contract.periodic_rate),
        term_months=contract.term_months,
        method=contract.amortization_method,
        start_date=contract.start_date,
        current_balance=from_cents(contract.current_balance_cents),
        status=contract.status,
    )


def _payment_response(payment: FinancingPayment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=payment.id,
        financing_id=payment.financing_id,
        installment_number=payment.installment_number,
        payment_type=payment.payment_type,
        payment_amount=from_cents(payment.payment_cents),
        principal_amount=from_cents(payment.principal_cents),
        interest_amount=from_cents(payment.interest_cents),
        balance_before=from_cents(payment.balance_before_cents),
        balance_after=from_cents(payment.balance_after_cents),
        payment_date=payment.payment_date,
    )


@router.post("/financings/schedule", response_model=ScheduleResponse)
def preview_schedule(terms: FinancingTerms):
    """Compute a schedule for arbitrary terms without storing anything"""
    schedule = generate_amortization_schedule(
        to_cents(terms.principal),
        _monthly_rate(terms),
        terms.term_months,
        terms.method,
        terms.start_date,
    )
    return ScheduleResponse.from_schedule(schedule)


@router.post("/financings", response_model=FinancingResponse, status_code=201)
def create_financing(body: FinancingCreateRequest, service: FinancingService = Depends(get_financing_service)):
    contract = service.create_financing(
        body.user_id,
        to_cents(body.principal),
        _monthly_rate(body),
        body.term_months,
        body.method,
        start_date=body.start_date,
        description=body.description,
    )
    return _financing_response(contract)


@router.get("/financings/{financing_id}", response_model=FinancingResponse)
def get_financing(
    financing_id: int,
    user_id: str = Query(..., description="User identifier"),
    service: FinancingService = Depends(get_financing_service),
):
    return _financing_response(service.get_financing(user_id, financing_id))


@router.get("/financings/{financing_id}/schedule", response_model=ScheduleResponse)
def get_schedule(
    financing_id: int,
    user_id: str = Query(..., description="User identifier"),
    service: FinancingService = Depends(get_financing_service),
):
    return ScheduleResponse.from_schedule(service.generate_schedule(user_id, financing_id))


@router.get("/financings/{financing_id}/balance", response_model=BalanceResponse)
def get_balance(
    financing_id: int,
    user_id: str = Query(..., description="User identifier"),
    as_of: Optional[date] = Query(None, description="Only count payments made up to this date"),
    service: FinancingService = Depends(get_financing_service),
):
    return BalanceResponse.from_result(service.reconcile_financing_balance(user_id, financing_id, as_of=as_of))


@router.post("/financings/{financing_id}/payments", response_model=PaymentResponse, status_code=201)
def register_payment(
    financing_id: int,
    body: PaymentRequest,
    service: FinancingService = Depends(get_financing_service),
):
    payment = service.register_payment(
        body.user_id,
        financing_id,
        body.account_id,
        payment_cents=to_cents(body.payment_amount),
        principal_cents=to_cents(body.principal_amount),
        interest_cents=to_cents(body.interest_amount) if body.interest_amount is not None else None,
        payment_date=body.payment_date,
        installment_number=body.installment_number,
    )
    return _payment_response(payment)


@router.post(
    "/financings/{financing_id}/installments/{installment_number}/pay",
    response_model=PaymentResponse,
    status_code=201,
)
def pay_installment(
    financing_id: int,
    installment_number: int,
    body: PayInstallmentRequest,
    service: FinancingService = Depends(get_financing_service),
):
    payment = service.pay_installment(
        body.user_id,
        financing_id,
        installment_number,
        body.account_id,
        payment_date=body.payment_date,
    )
    return _payment_response(payment)


@router.delete("/financings/payments/{payment_id}", response_model=BalanceResponse)
def delete_payment(
    payment_id: int,
    user_id: str = Query(..., description="User identifier"),
    service: FinancingService = Depends(get_financing_service),
):
    return BalanceResponse.from_result(service.delete_payment(user_id, payment_id))


@router.post("/financings/{financing_id}/early-payment-simulation", response_model=EarlyPaymentResponse)
def simulate_early_payment(
    financing_id: int,
    body: EarlyPaymentRequest,
    service: FinancingService = Depends(get_financing_service),
):
    simulation = service.simulate_early_payment(body.user_id, financing_id, to_cents(body.amount), body.preference)
    return EarlyPaymentResponse(
        new_principal=from_cents(simulation.new_principal_cents),
        original_payment=from_cents(simulation.original_payment_cents),
        new_payment=from_cents(simulation.new_payment_cents),
        original_term=simulation.original_term,
        new_term=simulation.new_term,
        interest_saved=from_cents(simulation.interest_saved_cents),
    )
