"""
Numeric helpers shared by the pricing and revenue modules.
"""

import math
from datetime import date, timedelta
from typing import Iterator


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves going up (2.5 -> 3, -2.5 -> -2).

    Revenue figures are reconciled against the dashboard, which rounds
    this way; Python's round() would send 2.5 to 2.
    """
    return int(math.floor(value + 0.5))


def round_money(value: float) -> float:
    """Round half up to cents."""
    return math.floor(value * 100 + 0.5) / 100


def date_range(start: date, end: date) -> Iterator[date]:
    """Yield each date in [start, end)."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)


def month_bounds(day: date) -> tuple:
    """First and last date of the month containing `day`."""
    first = day.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    return first, next_first - timedelta(days=1)


def shift_years(day: date, years: int) -> date:
    """Same calendar day `years` later (Feb 29 falls back to Feb 28)."""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)
