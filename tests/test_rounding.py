from decimal import Decimal, getcontext, localcontext

import pytest

from loan_engine.data_models import RoundingConfig, RoundingMethod
from loan_engine.payment import calculate_payment
from loan_engine.rounding import round_money


@pytest.mark.parametrize(
    "method,value,expected",
    [
        (RoundingMethod.HALF_UP, "2.345", "2.35"),
        (RoundingMethod.HALF_UP, "-2.345", "-2.34"),
        (RoundingMethod.HALF_DOWN, "2.345", "2.34"),
        (RoundingMethod.HALF_DOWN, "-2.345", "-2.35"),
        (RoundingMethod.BANKERS, "2.345", "2.34"),
        (RoundingMethod.BANKERS, "2.355", "2.36"),
        (RoundingMethod.UP, "2.341", "2.35"),
        (RoundingMethod.UP, "-2.349", "-2.34"),
        (RoundingMethod.DOWN, "2.349", "2.34"),
        (RoundingMethod.DOWN, "-2.341", "-2.35"),
        (RoundingMethod.HALF_AWAY, "2.345", "2.35"),
        (RoundingMethod.HALF_AWAY, "-2.345", "-2.35"),
        (RoundingMethod.HALF_TOWARD, "2.345", "2.34"),
        (RoundingMethod.HALF_TOWARD, "-2.345", "-2.34"),
    ],
)
def test_rounding_methods(method, value, expected):
    assert round_money(Decimal(value), RoundingConfig(method, 2)) == Decimal(expected)


def test_default_is_half_up_to_cents():
    result = round_money(Decimal("1.005"))
    assert result == Decimal("1.01")
    assert result.as_tuple().exponent == -2


def test_zero_decimal_places():
    assert round_money(Decimal("2.5"), RoundingConfig(RoundingMethod.HALF_UP, 0)) == Decimal("3")
    assert round_money(Decimal("2.5"), RoundingConfig(RoundingMethod.BANKERS, 0)) == Decimal("2")


def test_results_ignore_caller_decimal_context(terms):
    expected = calculate_payment(terms)
    with localcontext() as ctx:
        ctx.prec = 3
        assert calculate_payment(terms) == expected
        assert getcontext().prec == 3
