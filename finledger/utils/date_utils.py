"""Date manipulation utilities"""

import calendar
from datetime import date


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the target month"""
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(from_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def installment_due_date(start_date: date, installment_number: int) -> date:
    """Due date of the n-th installment; the first one falls on the start date"""
    return add_months(start_date, installment_number - 1)
