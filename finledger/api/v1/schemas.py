"""Pydantic schemas for API request/response validation"""

from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from finledger.domain.models import AmortizationSchedule, PositionSnapshot, ReconciliationResult
from finledger.utils.money import from_cents


class AccountCreateRequest(BaseModel):
    """Request body for POST /v1/accounts"""

    user_id: str = Field(..., min_length=1, description="User identifier")
    name: str = Field(..., min_length=1)
    initial_balance: Decimal = Field(Decimal("0"), ge=0, description="Opening balance in currency units")


class AccountResponse(BaseModel):
    account_id: int
    user_id: str
    name: str
    balance: Decimal


class TransactionCreateRequest(BaseModel):
    """Request body for POST /v1/transactions"""

    user_id: str = Field(..., min_length=1)
    account_id: int
    type: Literal["income", "expense"]
    amount: Decimal = Field(..., gt=0, description="Amount in currency units")
    description: Optional[str] = None
    transaction_date: Optional[date] = None


class TransactionUpdateRequest(BaseModel):
    """Request body for PATCH /v1/transactions/{transaction_id}; omitted fields keep their value"""

    user_id: str = Field(..., min_length=1)
    account_id: Optional[int] = None
    type: Optional[Literal["income", "expense"]] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None
    transaction_date: Optional[date] = None

    @model_validator(mode="after")
    def check_required_not_null(self):
        nulled = sorted(
            name for name in ("account_id", "type", "amount")
            if name in self.model_fields_set and getattr(self, name) is None
        )
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return self


class TransactionResponse(BaseModel):
    transaction_id: int
    account_id: int
    type: str
    amount: Decimal
    description: Optional[str] = None
    transaction_date: date
    account_balance: Decimal


class TradeRequest(BaseModel):
    """Request body for POST /v1/investments/buy and /sell"""

    user_id: str = Field(..., min_length=1)
    asset_name: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., gt=0, description="Price per unit in currency units")
    account_id: int
    destination_account_id: Optional[int] = None
    broker: Optional[str] = None
    operation_date: Optional[date] = None


class PositionResponse(BaseModel):
    asset_name: str
    total_quantity: Decimal
    average_unit_cost: Decimal

    @classmethod
    def from_snapshot(cls, snapshot: PositionSnapshot) -> "PositionResponse":
        return cls(
            asset_name=snapshot.asset_name,
            total_quantity=snapshot.total_quantity,
            average_unit_cost=snapshot.average_unit_cost,
        )


class TradeResponse(BaseModel):
    operation_id: int
    operation_type: str
    amount: Decimal
    position: PositionResponse


class PositionsResponse(BaseModel):
    user_id: str
    positions: List[PositionResponse]


class FinancingTerms(BaseModel):
    """Contract parameters; give either a monthly or a nominal annual rate"""

    principal: Decimal = Field(..., gt=0)
    monthly_rate: Optional[Decimal] = Field(None, ge=0)
    annual_rate: Optional[Decimal] = Field(None, ge=0)
    term_months: int = Field(..., gt=0)
    method: Literal["SAC", "Price"]
    start_date: Optional[date] = None

    @model_validator(mode="after")
    def check_rate(self):
        if (self.monthly_rate is None) == (self.annual_rate is None):
            raise ValueError("Provide exactly one of monthly_rate or annual_rate")
        return self


class FinancingCreateRequest(FinancingTerms):
    """Request body for POST /v1/financings"""

    user_id: str = Field(..., min_length=1)
    description: Optional[str] = None


class FinancingResponse(BaseModel):
    financing_id: int
    principal: Decimal
    monthly_rate: Decimal
    term_months: int
    method: str
    start_date: date
    current_balance: Decimal
    status: str


class ScheduleRowSchema(BaseModel):
    installment_number: int
    due_date: date
    payment: Decimal
    amortization: Decimal
    interest: Decimal
    remaining_balance: Decimal


class ScheduleResponse(BaseModel):
    method: str
    rows: List[ScheduleRowSchema]
    total_interest: Decimal
    total_payments: Decimal
    total_amortization: Decimal

    @classmethod
    def from_schedule(cls, schedule: AmortizationSchedule) -> "ScheduleResponse":
        return cls(
            method=schedule.method.value,
            rows=[ScheduleRowSchema(**row.as_dict()) for row in schedule.rows],
            total_interest=from_cents(schedule.total_interest_cents),
            total_payments=from_cents(schedule.total_payments_cents),
            total_amortization=from_cents(schedule.total_amortization_cents),
        )


class PaymentRequest(BaseModel):
    """Request body for POST /v1/financings/{financing_id}/payments"""

    user_id: str = Field(..., min_length=1)
    account_id: int
    payment_amount: Decimal = Field(..., gt=0)
    principal_amount: Decimal = Field(..., ge=0)
    interest_amount: Optional[Decimal] = Field(None, ge=0)
    installment_number: Optional[int] = Field(None, gt=0, description="Omit for an early payment")
    payment_date: Optional[date] = None


class PayInstallmentRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    account_id: int
    payment_date: Optional[date] = None


class PaymentResponse(BaseModel):
    payment_id: int
    financing_id: int
    installment_number: Optional[int] = None
    payment_type: str
    payment_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    payment_date: date


class BalanceResponse(BaseModel):
    current_balance: Decimal
    paid_installments: int
    remaining_installments: int
    percentage_paid: Decimal
    total_paid: Decimal
    total_interest_paid: Decimal

    @classmethod
    def from_result(cls, result: ReconciliationResult) -> "BalanceResponse":
        return cls(
            current_balance=from_cents(result.current_balance_cents),
            paid_installments=result.paid_installments,
            remaining_installments=result.remaining_installments,
            percentage_paid=result.percentage_paid,
            total_paid=from_cents(result.total_paid_cents),
            total_interest_paid=from_cents(result.total_interest_paid_cents),
        )


class EarlyPaymentRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    preference: Literal["reduce_term", "reduce_installment"]


class EarlyPaymentResponse(BaseModel):
    new_principal: Decimal
    original_payment: Decimal
    new_payment: Decimal
    original_term: int
    new_term: int
    interest_saved: Decimal
