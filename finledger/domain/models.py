"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from finledger.utils.money import from_cents, from_quantity_units, micros_to_decimal


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class OperationType(str, Enum):
    BUY = "buy"
    SELL = "sell"


class AmortizationMethod(str, Enum):
    SAC = "SAC"
    PRICE = "Price"


class PaymentType(str, Enum):
    REGULAR = "regular"
    EARLY = "early"


class FinancingStatus(str, Enum):
    ACTIVE = "active"
    PAID_OFF = "paid_off"


class EarlyPaymentPreference(str, Enum):
    REDUCE_TERM = "reduce_term"
    REDUCE_INSTALLMENT = "reduce_installment"


@dataclass(frozen=True)
class TransactionState:
    """The balance-relevant fields of a ledger transaction"""

    account_id: int
    type: TransactionType
    amount_cents: int


@dataclass(frozen=True)
class PositionSnapshot:
    """Quantity held and weighted average unit cost for one asset"""

    asset_name: str
    quantity_units: int = 0
    average_cost_micros: int = 0

    @property
    def total_quantity(self) -> Decimal:
        return from_quantity_units(self.quantity_units)

    @property
    def average_unit_cost(self) -> Decimal:
        return micros_to_decimal(self.average_cost_micros)

    @property
    def has_position(self) -> bool:
        return self.quantity_units > 0


@dataclass(frozen=True)
class TradeRecord:
    """One buy/sell operation as seen by the position fold"""

    operation_type: OperationType
    quantity_units: int
    unit_price_cents: int


@dataclass
class AmortizationRow:
    """Single installment in an amortization schedule"""

    installment_number: int
    due_date: date
    payment_cents: int
    amortization_cents: int
    interest_cents: int
    remaining_balance_cents: int

    def as_dict(self) -> dict:
        return {
            "installment_number": self.installment_number,
            "due_date": self.due_date.isoformat(),
            "payment": from_cents(self.payment_cents),
            "amortization": from_cents(self.amortization_cents),
            "interest": from_cents(self.interest_cents),
            "remaining_balance": from_cents(self.remaining_balance_cents),
        }


@dataclass
class AmortizationSchedule:
    """Full schedule plus totals"""

    principal_cents: int
    periodic_rate: Decimal
    method: AmortizationMethod
    rows: List[AmortizationRow] = field(default_factory=list)

    @property
    def total_interest_cents(self) -> int:
        return sum(row.interest_cents for row in self.rows)

    @property
    def total_amortization_cents(self) -> int:
        return sum(row.amortization_cents for row in self.rows)

    @property
    def total_payments_cents(self) -> int:
        return sum(row.payment_cents for row in self.rows)

    def row(self, installment_number: int) -> Optional[AmortizationRow]:
        if 1 <= installment_number <= len(self.rows):
            return self.rows[installment_number - 1]
        return None


@dataclass(frozen=True)
class PaymentRecord:
    """A registered financing payment as seen by reconciliation"""

    payment_date: date
    payment_cents: int
    principal_cents: int
    interest_cents: int
    installment_number: Optional[int] = None
    sequence: int = 0


@dataclass
class ReconciliationResult:
    """Outstanding state of a financing derived from real payments"""

    principal_cents: int
    current_balance_cents: int
    paid_installments: int
    remaining_installments: int
    total_paid_cents: int
    total_interest_paid_cents: int
    percentage_paid: Decimal

    @property
    def is_paid_off(self) -> bool:
        return self.current_balance_cents == 0


@dataclass
class EarlyPaymentSimulation:
    """Effect of an extra principal payment on the remaining schedule"""

    original_principal_cents: int
    early_payment_cents: int
    new_principal_cents: int
    original_payment_cents: int
    new_payment_cents: int
    original_term: int
    new_term: int
    interest_saved_cents: int
