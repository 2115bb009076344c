"""Calendar arithmetic and day-count conventions.

The functions here answer three questions for the rest of the engine: how
many days of interest a span is worth under a convention, what year length
those days are divided by, and on which dates installments fall.

Conventions
-----------
``30/360``
    US bond basis: every month counts as 30 days. A start on the 31st counts
    as the 30th; an end on the 31st counts as the 30th only when the start day
    is already the 30th or 31st (so Jan 1 to Jan 31 is 30 days).
``actual/360`` and ``actual/365``
    Calendar-day difference over a fixed 360 or 365 day year.
``actual/actual``
    Calendar-day difference over 366 when the span's year is a leap year,
    otherwise 365.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Iterator, Optional

from .data_models import DayCountConvention, PaymentFrequency

_MONTH_STEPS = {
    PaymentFrequency.MONTHLY: 1,
    PaymentFrequency.QUARTERLY: 3,
    PaymentFrequency.SEMI_ANNUALLY: 6,
    PaymentFrequency.ANNUALLY: 12,
}

_DAY_STEPS = {
    PaymentFrequency.WEEKLY: 7,
    PaymentFrequency.BI_WEEKLY: 14,
}

_PERIODS_PER_YEAR = {
    PaymentFrequency.WEEKLY: 52,
    PaymentFrequency.BI_WEEKLY: 26,
    PaymentFrequency.SEMI_MONTHLY: 24,
    PaymentFrequency.MONTHLY: 12,
    PaymentFrequency.QUARTERLY: 4,
    PaymentFrequency.SEMI_ANNUALLY: 2,
    PaymentFrequency.ANNUALLY: 1,
}


def is_leap_year(year: int) -> bool:
    return calendar.isleap(year)


def is_end_of_month(dt: date) -> bool:
    return dt.day == calendar.monthrange(dt.year, dt.month)[1]


def day_count(start: date, end: date, convention: DayCountConvention) -> int:
    """Return the number of interest days between ``start`` and ``end``."""
    convention = DayCountConvention(convention)
    if convention is DayCountConvention.THIRTY_360:
        return _thirty_360_days(start, end)
    return (end - start).days


def _thirty_360_days(start: date, end: date) -> int:
    d1 = start.day
    d2 = end.day
    if d1 == 31:
        d1 = 30
    if d2 == 31 and d1 >= 30:
        d2 = 30
    return (end.year - start.year) * 360 + (end.month - start.month) * 30 + (d2 - d1)


def day_count_denominator(convention: DayCountConvention, year: Optional[int] = None) -> int:
    """Return the year length interest days are divided by.

    For ``actual/actual`` the length depends on ``year``; without one a
    365-day year is assumed.
    """
    convention = DayCountConvention(convention)
    if convention in (DayCountConvention.THIRTY_360, DayCountConvention.ACTUAL_360):
        return 360
    if convention is DayCountConvention.ACTUAL_365:
        return 365
    if year is not None and is_leap_year(year):
        return 366
    return 365


def add_months_preserving_end_of_month(dt: date, months: int) -> date:
    """Return a date ``months`` months after ``dt``.

    A source date on the last day of its month lands on the last day of the
    target month (Jan 31 + 1 -> Feb 29 in a leap year, Feb 29 + 1 -> Mar 31).
    Other days are clamped to the target month's length (Jan 30 + 1 -> Feb 28
    or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    if is_end_of_month(dt):
        return date(year, month, last_day)
    return date(year, month, min(dt.day, last_day))


def next_payment_date(dt: date, frequency: PaymentFrequency) -> date:
    """Return the installment date following ``dt``.

    Semi-monthly loans pay on the 1st and the 15th: a date before the 15th
    moves to the 15th of the same month, anything later to the 1st of the
    next month.
    """
    frequency = PaymentFrequency(frequency)
    if frequency in _MONTH_STEPS:
        return add_months_preserving_end_of_month(dt, _MONTH_STEPS[frequency])
    if frequency in _DAY_STEPS:
        return dt + timedelta(days=_DAY_STEPS[frequency])
    if dt.day < 15:
        return dt.replace(day=15)
    return add_months_preserving_end_of_month(dt.replace(day=1), 1)


def payment_dates(first_due: date, frequency: PaymentFrequency, count: int) -> Iterator[date]:
    """Yield ``count`` installment dates starting at ``first_due``.

    Month-based frequencies are offset from ``first_due`` itself rather than
    from the previous date, so a schedule starting on the 30th returns to the
    30th after passing through February.
    """
    frequency = PaymentFrequency(frequency)
    if frequency in _MONTH_STEPS:
        step = _MONTH_STEPS[frequency]
        for i in range(count):
            yield add_months_preserving_end_of_month(first_due, i * step)
        return
    current = first_due
    for _ in range(count):
        yield current
        current = next_payment_date(current, frequency)


def number_of_payments(term_months: int, frequency: PaymentFrequency) -> int:
    """Return the installment count for a term.

    Weekly and bi-weekly counts scale the month count (x4 and x2) instead of
    counting calendar weeks. The simplification is kept for compatibility
    with existing schedules.
    """
    frequency = PaymentFrequency(frequency)
    if frequency is PaymentFrequency.MONTHLY:
        return term_months
    if frequency in (PaymentFrequency.SEMI_MONTHLY, PaymentFrequency.BI_WEEKLY):
        return term_months * 2
    if frequency is PaymentFrequency.WEEKLY:
        return term_months * 4
    step = _MONTH_STEPS[frequency]
    return -(-term_months // step)


def periods_per_year(frequency: PaymentFrequency) -> int:
    return _PERIODS_PER_YEAR[PaymentFrequency(frequency)]
