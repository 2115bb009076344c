from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from loan_engine.balloon import (
    BalloonStrategy,
    detect_balloon_payments,
    extend_balloon_term,
    find_largest_balloon_payment,
    is_payment_balloon,
    regular_payment_amount,
    resolve_balloon,
    split_balloon_payment,
    validate_balloon_compliance,
)
from loan_engine.config import EngineConfig
from loan_engine.data_models import InterestType
from loan_engine.engine import generate_schedule
from loan_engine.serialization import balloon_to_dict, strategy_result_to_dict

PERCENT_ONLY = EngineConfig(balloon_percentage_threshold=Decimal("10"), balloon_absolute_threshold=Decimal("10000"))


@pytest.fixture
def interest_only(make_terms):
    return generate_schedule(make_terms(interest_type=InterestType.SIMPLE))


@pytest.fixture
def make_balloon_schedule(make_terms):
    def _factory(amount):
        return generate_schedule(make_terms(interest_type=InterestType.BALLOON, balloon_payment=Decimal(amount)))

    return _factory


def _with_extra_principal(schedule, extras):
    records = list(schedule.payments)
    for index, extra in extras.items():
        records[index] = replace(records[index], principal=records[index].principal + Decimal(extra))
    return replace(schedule, payments=tuple(records))


# -------- Detection --------
def test_level_schedule_has_no_balloon(schedule):
    assert regular_payment_amount(schedule) == Decimal("860.66")
    assert detect_balloon_payments(schedule) == []
    assert find_largest_balloon_payment(schedule) is None


def test_interest_only_principal_is_a_balloon(interest_only):
    (balloon,) = detect_balloon_payments(interest_only)
    assert balloon.payment_number == 12
    assert balloon.due_date == date(2025, 1, 1)
    assert balloon.amount == Decimal("10050.00")
    assert balloon.regular_payment == Decimal("50.00")
    assert balloon.excess_amount == Decimal("10000.00")
    assert balloon.excess_percentage == Decimal("20000.00")
    assert balloon.meets_percentage and balloon.meets_absolute


def test_contract_balloon_is_detected(make_balloon_schedule):
    (balloon,) = detect_balloon_payments(make_balloon_schedule("5000"))
    assert balloon.payment_number == 12
    assert Decimal("4990") < balloon.excess_amount < Decimal("5010")
    assert balloon.meets_absolute


@pytest.mark.parametrize(
    "amount, regular, expected",
    [
        ("1500", "1000", (True, Decimal("500.00"), Decimal("50.00"))),
        ("1400", "1000", (False, Decimal("400.00"), Decimal("40.00"))),
        ("600", "0", (True, Decimal("600.00"), Decimal("0.00"))),
    ],
)
def test_is_payment_balloon(amount, regular, expected):
    assert is_payment_balloon(Decimal(amount), Decimal(regular)) == expected


def test_threshold_logic(interest_only):
    both = EngineConfig(balloon_absolute_threshold=Decimal("20000"), balloon_threshold_logic="AND")
    assert detect_balloon_payments(interest_only, both) == []

    either = replace(both, balloon_threshold_logic="OR")
    (balloon,) = detect_balloon_payments(interest_only, either)
    assert balloon.meets_percentage is True
    assert balloon.meets_absolute is False

    with pytest.raises(ValueError):
        detect_balloon_payments(interest_only, replace(both, balloon_threshold_logic="XOR"))


def test_detection_can_be_disabled(interest_only):
    assert detect_balloon_payments(interest_only, EngineConfig(balloon_detection_enabled=False)) == []


def test_largest_balloon_wins(schedule):
    bumped = _with_extra_principal(schedule, {3: "1000", 7: "2000"})
    assert [b.payment_number for b in detect_balloon_payments(bumped)] == [4, 8]
    assert find_largest_balloon_payment(bumped).payment_number == 8

    tied = _with_extra_principal(schedule, {3: "1000", 7: "1000"})
    assert find_largest_balloon_payment(tied).payment_number == 4


def test_compliance(interest_only):
    balloon = find_largest_balloon_payment(interest_only)
    violations = validate_balloon_compliance(balloon)
    assert len(violations) == 1
    assert "maximum of 200%" in violations[0]

    strict = EngineConfig(max_balloon_amount=Decimal("5000"))
    assert len(validate_balloon_compliance(balloon, strict)) == 2

    relaxed = EngineConfig(max_balloon_percentage=None)
    assert validate_balloon_compliance(balloon, relaxed) == []


def test_balloon_to_dict(interest_only):
    data = balloon_to_dict(find_largest_balloon_payment(interest_only))
    assert data["payment_number"] == 12
    assert data["due_date"] == "2025-01-01"
    assert data["excess_amount"] == "10000.00"
    assert data["meets_absolute"] is True


# -------- Split --------
def test_split_spreads_small_balloon(make_balloon_schedule):
    original = make_balloon_schedule("300")
    (balloon,) = detect_balloon_payments(original, PERCENT_ONLY)
    result = split_balloon_payment(original, balloon)

    assert result.success, result.message
    assert result.strategy == BalloonStrategy.SPLIT_PAYMENTS
    split = result.schedule
    assert len(split) == 12
    assert split.payments[:9] == original.payments[:9]
    tail = split.payments[9:]
    assert tail[0].total_payment == tail[1].total_payment
    assert tail[0].total_payment > original.payments[9].total_payment
    assert tail[-1].total_payment < original.payments[-1].total_payment
    assert tail[-1].remaining_balance == 0
    assert sum(r.principal for r in split.payments) == Decimal("10000")
    assert split.total_interest == sum(r.interest for r in split.payments)
    assert tail[-1].cumulative_principal == Decimal("10000")


def test_split_respects_payment_increase_limit(make_balloon_schedule):
    original = make_balloon_schedule("5000")
    result = split_balloon_payment(original, find_largest_balloon_payment(original))
    assert not result.success
    assert result.schedule is None
    assert "above the 25.00% limit" in result.message


def test_split_needs_two_installments(make_balloon_schedule):
    original = make_balloon_schedule("5000")
    result = split_balloon_payment(original, find_largest_balloon_payment(original), number_of_payments=1)
    assert not result.success
    assert result.message == "Not enough installments to split the balloon"


def test_split_only_handles_final_installment(schedule):
    bumped = _with_extra_principal(schedule, {3: "1000"})
    result = split_balloon_payment(bumped, find_largest_balloon_payment(bumped))
    assert not result.success
    assert result.message == "Only the final installment of a schedule can be split"


# -------- Extension --------
def test_extension_retires_balloon(make_balloon_schedule):
    original = make_balloon_schedule("5000")
    result = extend_balloon_term(original, find_largest_balloon_payment(original))

    assert result.success, result.message
    assert result.strategy == BalloonStrategy.EXTEND_CONTRACT
    assert 12 < result.term_months <= 36
    extended = result.schedule
    assert len(extended) == result.term_months
    assert extended.loan_terms.interest_type == InterestType.AMORTIZED
    assert extended.loan_terms.balloon_payment is None
    assert detect_balloon_payments(extended) == []
    assert result.warnings == ()


def test_extension_failures(interest_only, make_balloon_schedule):
    balloon = find_largest_balloon_payment(interest_only)

    result = extend_balloon_term(interest_only, balloon, target_payment_increase=Decimal("0"))
    assert not result.success
    assert "does not cover the interest" in result.message

    result = extend_balloon_term(interest_only, balloon)
    assert not result.success
    assert result.message == "Cannot retire the balloon within 24 months"

    original = make_balloon_schedule("5000")
    result = extend_balloon_term(original, find_largest_balloon_payment(original), max_extension_months=0)
    assert result.message == "Cannot retire the balloon within 0 months"


def test_extension_past_term_limit_warns(make_balloon_schedule):
    original = make_balloon_schedule("5000")
    config = EngineConfig(max_term_months=12)
    result = extend_balloon_term(original, find_largest_balloon_payment(original), config=config)
    assert result.success
    assert len(result.warnings) == 1
    assert "exceeds the maximum of 12" in result.warnings[0]


# -------- Choosing a strategy --------
def test_small_balloon_is_split(make_balloon_schedule):
    original = make_balloon_schedule("300")
    (balloon,) = detect_balloon_payments(original, PERCENT_ONLY)
    result = resolve_balloon(original, balloon)
    assert result.strategy == BalloonStrategy.SPLIT_PAYMENTS
    assert result.success


def test_medium_balloon_is_left_to_borrower(make_balloon_schedule):
    original = make_balloon_schedule("2000")
    result = resolve_balloon(original, find_largest_balloon_payment(original))
    assert result.strategy == BalloonStrategy.HYBRID
    assert result.success
    assert result.schedule is None
    assert result.warnings == ("Borrower must select a restructuring option",)


def test_large_balloon_extends_term(make_balloon_schedule):
    original = make_balloon_schedule("5000")
    result = resolve_balloon(original, find_largest_balloon_payment(original), large_threshold=Decimal("3000"))
    assert result.strategy == BalloonStrategy.EXTEND_CONTRACT
    assert result.success, result.message
    assert result.term_months <= 24
    assert "This extension requires underwriting approval" in result.warnings

    data = strategy_result_to_dict(result)
    assert data["strategy"] == "EXTEND_CONTRACT"
    assert data["term_months"] == result.term_months
    assert data["schedule"]["number_of_payments"] == result.term_months
