"""Date manipulation utilities"""

import calendar
from datetime import date
from typing import Tuple


def days_in_month(year: int, month: int) -> int:
    """Number of days in the given month (1-12)"""
    return calendar.monthrange(year, month)[1]


def add_months(year: int, month: int, months: int) -> Tuple[int, int]:
    """Shift a (year, month) pair by a number of whole months"""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def month_index(value: date) -> int:
    """Absolute month number (year*12 + month) used for month deltas"""
    return value.year * 12 + value.month


def end_of_month(year: int, month: int) -> date:
    """Last calendar day of the given month"""
    return date(year, month, days_in_month(year, month))
