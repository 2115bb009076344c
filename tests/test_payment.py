from decimal import Decimal

import pytest

from loan_engine.data_models import InterestType, PaymentFrequency
from loan_engine.exceptions import InvalidLoanTermsError
from loan_engine.payment import amortizing_payment, calculate_payment, periodic_rate


def test_thirty_year_mortgage(make_terms):
    result = calculate_payment(
        make_terms(principal=Decimal("200000"), annual_interest_rate=Decimal("4.5"), term_months=360)
    )
    assert result.periodic_payment == Decimal("1013.37")
    assert result.total_interest == Decimal("164813.42")
    assert result.total_payments == Decimal("364813.42")
    assert result.number_of_payments == 360


def test_one_year_loan(terms):
    result = calculate_payment(terms)
    assert result.periodic_payment == Decimal("860.66")
    assert result.number_of_payments == 12
    assert result.total_payments - result.total_interest == terms.principal


def test_zero_rate_divides_principal_evenly(make_terms):
    result = calculate_payment(make_terms(principal=Decimal("12000"), annual_interest_rate=Decimal("0")))
    assert result.periodic_payment == Decimal("1000.00")
    assert result.total_interest == Decimal("0")
    assert result.total_payments == Decimal("12000.00")


def test_interest_only(make_terms):
    result = calculate_payment(
        make_terms(principal=Decimal("50000"), annual_interest_rate=Decimal("4"), interest_type=InterestType.SIMPLE)
    )
    assert result.periodic_payment == Decimal("166.67")
    assert result.total_payments == Decimal("52000.00")
    assert result.total_interest == Decimal("2000.00")


def test_balloon_amortizes_only_the_non_balloon_part(make_terms):
    full = calculate_payment(make_terms(principal=Decimal("100000"), term_months=60))
    balloon = calculate_payment(
        make_terms(
            principal=Decimal("100000"),
            term_months=60,
            interest_type=InterestType.BALLOON,
            balloon_payment=Decimal("20000"),
        )
    )
    assert full.periodic_payment == Decimal("1933.28")
    assert balloon.periodic_payment == Decimal("1646.62")
    assert balloon.periodic_payment < full.periodic_payment


def test_positive_balloon_on_amortized_loan_is_honoured(make_terms):
    typed = calculate_payment(
        make_terms(interest_type=InterestType.BALLOON, balloon_payment=Decimal("2000"))
    )
    implied = calculate_payment(make_terms(balloon_payment=Decimal("2000")))
    assert typed == implied


def test_zero_rate_balloon(make_terms):
    result = calculate_payment(
        make_terms(
            principal=Decimal("12000"),
            annual_interest_rate=Decimal("0"),
            term_months=10,
            balloon_payment=Decimal("2000"),
        )
    )
    assert result.periodic_payment == Decimal("1000.00")
    assert result.total_payments == Decimal("12000.00")


def test_quarterly_payment_count(make_terms):
    result = calculate_payment(make_terms(payment_frequency=PaymentFrequency.QUARTERLY, term_months=13))
    assert result.number_of_payments == 5


def test_periodic_rate():
    assert periodic_rate(Decimal("12"), PaymentFrequency.MONTHLY) == Decimal("0.01")
    assert periodic_rate(Decimal("5.2"), PaymentFrequency.WEEKLY) == Decimal("0.001")


def test_amortizing_payment_needs_payments():
    with pytest.raises(ValueError):
        amortizing_payment(Decimal("1000"), Decimal("5"), 0, PaymentFrequency.MONTHLY)


def test_uncomputable_terms_raise(make_terms):
    with pytest.raises(InvalidLoanTermsError):
        calculate_payment(make_terms(term_months=0))


def test_business_ceiling_does_not_block_calculation(make_terms):
    result = calculate_payment(make_terms(annual_interest_rate=Decimal("150")))
    assert result.periodic_payment > Decimal("860.66")
