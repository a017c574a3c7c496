"""Standardized (monthly / quarterly) expiration rule."""

from collections.abc import Iterable
from datetime import date, timedelta
from typing import TypeVar

from hedgeflow.models.options import Contract

QUARTER_END_MONTHS = frozenset({3, 6, 9, 12})
FRIDAY = 4  # date.weekday()

C = TypeVar("C", bound=Contract)


def is_monthly_expiration(d: date) -> bool:
    if d.weekday() != FRIDAY:
        return False
    if 15 <= d.day <= 21:
        return True
    return 22 <= d.day <= 28 and d.month not in QUARTER_END_MONTHS


def is_quarterly_expiration(d: date) -> bool:
    return d.month in QUARTER_END_MONTHS and d.weekday() == FRIDAY and d.day >= 25


def is_standard_expiration(d: date) -> bool:
    return is_monthly_expiration(d) or is_quarterly_expiration(d)


def expiration_label(d: date) -> str:
    if is_quarterly_expiration(d):
        return "Quarterly"
    if is_monthly_expiration(d):
        return "Monthly"
    return "Other"


def expiration_date(expiration_days: int, today: date | None = None) -> date:
    return (today or date.today()) + timedelta(days=expiration_days)


def filter_standard_expirations(contracts: Iterable[C], today: date) -> list[C]:
    """Keep contracts whose day offset from *today* lands on a standard date."""
    return [
        c
        for c in contracts
        if is_standard_expiration(expiration_date(c.expiration_days, today))
    ]


def upcoming_standard_expirations(today: date, days: int = 90) -> list[date]:
    return [
        today + timedelta(days=i)
        for i in range(days + 1)
        if is_standard_expiration(today + timedelta(days=i))
    ]
