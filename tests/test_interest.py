from datetime import date
from decimal import Context, Decimal, localcontext

import pytest

from loan_engine.data_models import DayCountConvention, RoundingConfig, RoundingMethod
from loan_engine.engine import generate_schedule
from loan_engine.interest import (
    calculate_accrued_interest,
    calculate_compound_interest,
    calculate_daily_interest,
    calculate_interest,
    daily_rate,
    effective_annual_rate,
    nominal_annual_rate,
)

JAN_1 = date(2024, 1, 1)
JAN_31 = date(2024, 1, 31)


@pytest.mark.parametrize(
    "convention,expected",
    [
        (DayCountConvention.THIRTY_360, "41.67"),
        (DayCountConvention.ACTUAL_360, "41.67"),
        (DayCountConvention.ACTUAL_365, "41.10"),
        (DayCountConvention.ACTUAL_ACTUAL, "40.98"),
    ],
)
def test_interest_for_january(convention, expected):
    result = calculate_interest(Decimal("10000"), Decimal("5"), JAN_1, JAN_31, convention)
    assert result.interest_amount == Decimal(expected)
    assert result.day_count == 30


def test_same_day_yields_no_interest():
    result = calculate_interest(Decimal("10000"), Decimal("5"), JAN_1, JAN_1, DayCountConvention.ACTUAL_365)
    assert result.interest_amount == Decimal("0")
    assert result.day_count == 0


def test_reversed_dates_are_rejected():
    with pytest.raises(ValueError):
        calculate_interest(Decimal("10000"), Decimal("5"), JAN_31, JAN_1, DayCountConvention.ACTUAL_365)


def test_daily_rate_is_reported_unrounded():
    result = calculate_interest(Decimal("10000"), Decimal("6"), JAN_1, JAN_31, DayCountConvention.THIRTY_360)
    assert round(result.daily_rate, 10) == Decimal("0.0001666667")


def test_rounding_config_is_applied():
    down = RoundingConfig(RoundingMethod.DOWN, 2)
    result = calculate_interest(Decimal("10000"), Decimal("5"), JAN_1, JAN_31, DayCountConvention.THIRTY_360, down)
    assert result.interest_amount == Decimal("41.66")


def test_accrued_interest():
    accrued = calculate_accrued_interest(
        Decimal("9189.34"), Decimal("6"), date(2024, 2, 1), date(2024, 2, 16), DayCountConvention.THIRTY_360
    )
    assert accrued == Decimal("22.97")


def test_no_accrual_on_or_before_reference_date():
    since = date(2024, 2, 1)
    convention = DayCountConvention.THIRTY_360
    assert calculate_accrued_interest(Decimal("1000"), Decimal("6"), since, since, convention) == 0
    assert calculate_accrued_interest(Decimal("1000"), Decimal("6"), since, date(2024, 1, 1), convention) == 0


def test_daily_interest():
    per_diem = calculate_daily_interest(Decimal("10000"), Decimal("3.65"), DayCountConvention.ACTUAL_365)
    assert per_diem == Decimal("1.00")


def test_compound_interest():
    assert calculate_compound_interest(Decimal("1000"), Decimal("12"), 12, 12) == Decimal("126.83")


def test_rate_conversions():
    effective = effective_annual_rate(Decimal("12"), 12)
    assert round(effective, 4) == Decimal("12.6825")
    assert abs(nominal_annual_rate(effective, 12) - Decimal("12")) < Decimal("1E-12")


def test_conversion_rejects_non_positive_frequency():
    with pytest.raises(ValueError):
        effective_annual_rate(Decimal("5"), 0)


def test_irregular_first_period_accrues_over_its_span(make_terms):
    terms = make_terms(start_date=date(2024, 1, 15), first_payment_date=date(2024, 3, 1))
    schedule = generate_schedule(terms)
    first, second = schedule.payments[0], schedule.payments[1]
    assert first.due_date == date(2024, 3, 1)
    assert second.due_date == date(2024, 4, 1)
    assert first.interest > second.interest


def test_daily_rate_ignores_caller_precision():
    with localcontext(Context(prec=4)):
        rate = daily_rate(Decimal("6"), DayCountConvention.ACTUAL_365)
    assert len(rate.as_tuple().digits) > 20
    assert round(rate, 12) == Decimal("0.000164383562")
