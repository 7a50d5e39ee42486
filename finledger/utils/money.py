"""Integer-scaled money and quantity arithmetic.

Currency amounts are stored as integer cents, asset quantities as integer
ten-thousandths of a unit and unit costs as integer micro-units (1e-6 of the
currency unit). Intermediate results are carried as Decimal and rounded
half-up exactly once, when the value is stored or reported.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation as DecimalError
from typing import List, Union

CURRENCY_PLACES = 2
QUANTITY_PLACES = 4
COST_PLACES = 6

CENTS_PER_UNIT = 10 ** CURRENCY_PLACES
QUANTITY_SCALE = 10 ** QUANTITY_PLACES
MICROS_PER_UNIT = 10 ** COST_PLACES
MICROS_PER_CENT = MICROS_PER_UNIT // CENTS_PER_UNIT

Numeric = Union[Decimal, int, str, float]


def to_decimal(value: Numeric) -> Decimal:
    """Convert input to Decimal without going through binary float repr"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    try:
        return Decimal(value)
    except (DecimalError, TypeError) as e:
        raise ValueError(f"Not a decimal number: {value!r}") from e


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, ties away from zero"""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def divide_round_half_up(numerator: int, denominator: int) -> int:
    """Exact integer division rounded half-up"""
    if denominator == 0:
        raise ZeroDivisionError("division by zero")
    return round_half_up(Decimal(numerator) / Decimal(denominator))


def to_cents(amount: Numeric) -> int:
    """Currency units (e.g. "1234.565") → integer cents, half-up"""
    return round_half_up(to_decimal(amount) * CENTS_PER_UNIT)


def from_cents(cents: int) -> Decimal:
    """Integer cents → Decimal with two places"""
    return (Decimal(cents) / CENTS_PER_UNIT).quantize(Decimal("0.01"))


def to_quantity_units(quantity: Numeric) -> int:
    """Asset quantity → integer ten-thousandths, half-up"""
    return round_half_up(to_decimal(quantity) * QUANTITY_SCALE)


def from_quantity_units(units: int) -> Decimal:
    return (Decimal(units) / QUANTITY_SCALE).quantize(Decimal("0.0001"))


def cents_to_micros(cents: int) -> int:
    return cents * MICROS_PER_CENT


def micros_to_decimal(micros: int) -> Decimal:
    """Unit cost in micro-units → Decimal currency value rounded to cents"""
    return (Decimal(micros) / MICROS_PER_UNIT).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def trade_amount_cents(quantity_units: int, unit_price_cents: int) -> int:
    """Cash amount of a trade: quantity × unit price, rounded to cents"""
    return divide_round_half_up(quantity_units * unit_price_cents, QUANTITY_SCALE)


def apply_rate(amount_cents: int, rate: Decimal) -> Decimal:
    """Amount × rate in cents, unrounded"""
    return Decimal(amount_cents) * rate


def split_evenly(total_cents: int, parts: int) -> List[int]:
    """
    Split an amount into equal parts.

    The last part absorbs the remainder so the parts always sum to the total:
    100003 cents / 4 → [25000, 25000, 25000, 25003]
    """
    if parts <= 0:
        raise ValueError("parts must be positive")

    base_amount = total_cents // parts
    remainder = total_cents % parts

    return [base_amount + (remainder if i == parts - 1 else 0) for i in range(parts)]


def percentage(part_cents: int, whole_cents: int) -> Decimal:
    """part / whole × 100, rounded half-up to two places"""
    if whole_cents == 0:
        return Decimal("0.00")
    value = Decimal(part_cents) * 100 / Decimal(whole_cents)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
