"""Point-in-time interest calculations.

:func:`calculate_interest` is the primitive every other component builds on:
simple interest on a balance between two dates under a day-count convention,
rounded with an explicit :class:`RoundingConfig`. The schedule generator uses
it for each period, the payoff calculator for interest accrued since the last
due date and the prepayment recalculator for periods split by a prepayment.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Union

from .data_models import DayCountConvention, InterestResult, RoundingConfig
from .dates import day_count, day_count_denominator
from .rounding import ZERO, financial_context, round_money

Number = Union[Decimal, int]

HUNDRED = Decimal(100)


@financial_context
def daily_rate(annual_rate: Number, convention: DayCountConvention, year: Optional[int] = None) -> Decimal:
    """Return the unrounded daily rate as a fraction (not percent)."""
    return Decimal(annual_rate) / (HUNDRED * day_count_denominator(convention, year))


@financial_context
def calculate_interest(
    principal: Number,
    annual_rate: Number,
    start_date: date,
    end_date: date,
    day_count_convention: DayCountConvention,
    rounding_config: Optional[RoundingConfig] = None,
) -> InterestResult:
    """Return simple interest on ``principal`` from ``start_date`` to ``end_date``.

    interest = principal x (annual_rate / 100) x days / denominator

    The denominator is taken from the span's start year (it only matters for
    ``actual/actual``). A zero-length span short-circuits to no interest.
    """
    rate_per_day = daily_rate(annual_rate, day_count_convention, start_date.year)
    if start_date == end_date:
        return InterestResult(interest_amount=round_money(ZERO, rounding_config), day_count=0, daily_rate=rate_per_day)
    if end_date < start_date:
        raise ValueError(f"Interest period ends ({end_date}) before it starts ({start_date})")

    days = day_count(start_date, end_date, day_count_convention)
    denominator = day_count_denominator(day_count_convention, start_date.year)
    raw = Decimal(principal) * Decimal(annual_rate) * days / (HUNDRED * denominator)
    return InterestResult(
        interest_amount=round_money(raw, rounding_config),
        day_count=days,
        daily_rate=rate_per_day,
    )


def calculate_accrued_interest(
    balance: Number,
    annual_rate: Number,
    since: date,
    as_of: date,
    day_count_convention: DayCountConvention,
    rounding_config: Optional[RoundingConfig] = None,
) -> Decimal:
    """Interest accrued on ``balance`` from a reference event up to ``as_of``.

    Nothing has accrued when ``as_of`` is on or before ``since``.
    """
    if as_of <= since:
        return round_money(ZERO, rounding_config)
    return calculate_interest(
        balance, annual_rate, since, as_of, day_count_convention, rounding_config
    ).interest_amount


@financial_context
def calculate_daily_interest(
    balance: Number,
    annual_rate: Number,
    day_count_convention: DayCountConvention,
    on_date: Optional[date] = None,
    rounding_config: Optional[RoundingConfig] = None,
) -> Decimal:
    """Per diem interest: one day of interest on ``balance``."""
    year = on_date.year if on_date is not None else None
    return round_money(Decimal(balance) * daily_rate(annual_rate, day_count_convention, year), rounding_config)


@financial_context
def calculate_compound_interest(
    principal: Number,
    annual_rate: Number,
    periods: Number,
    compounding_frequency: int = 12,
    rounding_config: Optional[RoundingConfig] = None,
) -> Decimal:
    """Interest earned when compounding ``periods`` times: P(1 + r)^n - P."""
    if compounding_frequency <= 0:
        raise ValueError("compounding_frequency must be positive")
    period_rate = Decimal(annual_rate) / (HUNDRED * compounding_frequency)
    growth = (1 + period_rate) ** Decimal(periods)
    return round_money(Decimal(principal) * growth - Decimal(principal), rounding_config)


@financial_context
def effective_annual_rate(nominal_rate: Number, compounding_frequency: int = 12) -> Decimal:
    """Convert a nominal annual rate (percent) to its effective annual rate."""
    if compounding_frequency <= 0:
        raise ValueError("compounding_frequency must be positive")
    period_rate = Decimal(nominal_rate) / (HUNDRED * compounding_frequency)
    return ((1 + period_rate) ** compounding_frequency - 1) * HUNDRED


@financial_context
def nominal_annual_rate(effective_rate: Number, compounding_frequency: int = 12) -> Decimal:
    """Convert an effective annual rate (percent) back to a nominal rate."""
    if compounding_frequency <= 0:
        raise ValueError("compounding_frequency must be positive")
    growth = 1 + Decimal(effective_rate) / HUNDRED
    if growth <= 0:
        raise ValueError("effective rate must be greater than -100%")
    n = Decimal(compounding_frequency)
    return n * (growth ** (1 / n) - 1) * HUNDRED
