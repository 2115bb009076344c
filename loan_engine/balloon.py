"""Balloon installment detection and restructuring.

A balloon is an installment that stands out from the loan's regular
installment, either because the contract says so (balloon and interest-only
loans) or because of rounding and day-count effects piling up in the final
period. Detection compares every installment with the median installment of
the schedule using the thresholds held by :class:`~loan_engine.config.EngineConfig`.

Two restructurings are offered for a detected balloon:

* splitting it, which re-amortizes the last few installments at a higher
  level payment so the final one shrinks;
* extending the term, which adds months until a modestly higher installment
  retires the whole balance, and regenerates the schedule as a fully
  amortizing loan.

:func:`resolve_balloon` picks between them by the size of the balloon.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .config import DEFAULT_CONFIG, EngineConfig
from .data_models import InterestType, LoanTerms, Schedule
from .dates import periods_per_year
from .engine import accrual_spans, amortize_periods, build_schedule, generate_schedule
from .payment import amortizing_payment, periodic_rate
from .rounding import ZERO, financial_context, round_money

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


class ThresholdLogic(str, Enum):
    OR = "OR"  # either threshold
    AND = "AND"  # both thresholds


class BalloonStrategy(str, Enum):
    SPLIT_PAYMENTS = "SPLIT_PAYMENTS"
    EXTEND_CONTRACT = "EXTEND_CONTRACT"
    HYBRID = "HYBRID"


@dataclass(frozen=True)
class BalloonPayment:
    """An installment that exceeds the regular installment by a threshold.

    ``excess_amount`` and ``excess_percentage`` are rounded to cents;
    ``meets_percentage`` and ``meets_absolute`` tell which of the two
    thresholds the installment crossed.
    """

    payment_number: int
    due_date: date
    amount: Decimal
    regular_payment: Decimal
    excess_amount: Decimal
    excess_percentage: Decimal
    meets_percentage: bool
    meets_absolute: bool


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of a balloon restructuring.

    ``schedule`` is the restructured schedule when the strategy produced one;
    ``term_months`` is set when the term changed.
    """

    strategy: BalloonStrategy
    success: bool
    message: str
    schedule: Optional[Schedule] = None
    term_months: Optional[int] = None
    warnings: Tuple[str, ...] = ()


def _median(values: Sequence[Decimal]) -> Decimal:
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    return (ordered[middle - 1] + ordered[middle]) / 2


@financial_context
def regular_payment_amount(schedule: Schedule) -> Optional[Decimal]:
    """Median installment over the periods that pay principal or interest."""
    amounts = [r.principal + r.interest for r in schedule.payments if r.principal > 0 or r.interest > 0]
    if not amounts:
        return None
    return _median(amounts)


@financial_context
def is_payment_balloon(
    amount: Decimal,
    regular_payment: Decimal,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Tuple[bool, Decimal, Decimal]:
    """Compare ``amount`` with ``regular_payment``.

    Returns
    -------
    (bool, Decimal, Decimal)
        Whether the thresholds flag a balloon, the excess amount and the
        excess as a percentage of the regular installment, both rounded to
        cents.
    """
    logic = ThresholdLogic(config.balloon_threshold_logic)
    excess = amount - regular_payment
    percentage = excess / regular_payment * HUNDRED if regular_payment > 0 else ZERO
    excess = round_money(excess)
    percentage = round_money(percentage)
    meets_percentage = percentage >= config.balloon_percentage_threshold
    meets_absolute = excess >= config.balloon_absolute_threshold
    if logic is ThresholdLogic.OR:
        return meets_percentage or meets_absolute, excess, percentage
    return meets_percentage and meets_absolute, excess, percentage


@financial_context
def detect_balloon_payments(schedule: Schedule, config: EngineConfig = DEFAULT_CONFIG) -> List[BalloonPayment]:
    """Return every installment of ``schedule`` that qualifies as a balloon."""
    if not config.balloon_detection_enabled or not schedule.payments:
        return []
    regular = regular_payment_amount(schedule)
    if regular is None:
        return []

    balloons: List[BalloonPayment] = []
    for record in schedule.payments:
        amount = record.principal + record.interest
        flagged, excess, percentage = is_payment_balloon(amount, regular, config)
        if not flagged:
            continue
        balloons.append(
            BalloonPayment(
                payment_number=record.payment_number,
                due_date=record.due_date,
                amount=amount,
                regular_payment=regular,
                excess_amount=excess,
                excess_percentage=percentage,
                meets_percentage=percentage >= config.balloon_percentage_threshold,
                meets_absolute=excess >= config.balloon_absolute_threshold,
            )
        )
    logger.debug("Found %d balloon installments against a regular installment of %s", len(balloons), regular)
    return balloons


def find_largest_balloon_payment(
    schedule: Schedule, config: EngineConfig = DEFAULT_CONFIG
) -> Optional[BalloonPayment]:
    """The detected balloon with the largest excess (the earliest on ties)."""
    balloons = detect_balloon_payments(schedule, config)
    if not balloons:
        return None
    return max(balloons, key=lambda b: b.excess_amount)


def validate_balloon_compliance(balloon: BalloonPayment, config: EngineConfig = DEFAULT_CONFIG) -> List[str]:
    """Return the configured balloon limits ``balloon`` breaks (empty when compliant)."""
    violations: List[str] = []
    if config.max_balloon_percentage is not None and balloon.excess_percentage > config.max_balloon_percentage:
        violations.append(
            f"Balloon installment exceeds the regular installment by {balloon.excess_percentage}%, "
            f"above the maximum of {config.max_balloon_percentage}%"
        )
    if config.max_balloon_amount is not None and balloon.amount > config.max_balloon_amount:
        violations.append(f"Balloon installment of {balloon.amount} exceeds the maximum of {config.max_balloon_amount}")
    return violations


def _position(schedule: Schedule, balloon: BalloonPayment) -> Optional[int]:
    for index, record in enumerate(schedule.payments):
        if record.payment_number == balloon.payment_number:
            return index
    return None


def _fully_amortizing(terms: LoanTerms, term_months: Optional[int] = None) -> LoanTerms:
    return replace(
        terms,
        term_months=terms.term_months if term_months is None else term_months,
        interest_type=InterestType.AMORTIZED,
        balloon_payment=None,
    )


@financial_context
def split_balloon_payment(
    schedule: Schedule,
    balloon: BalloonPayment,
    number_of_payments: int = 3,
    max_payment_increase: Decimal = Decimal("0.25"),
) -> StrategyResult:
    """Spread a final balloon over the last ``number_of_payments`` installments.

    The balance outstanding before the first of those installments is
    re-amortized over them at a level payment. The split fails when any of
    the raised installments grows by more than ``max_payment_increase`` (a
    fraction, ``0.25`` is 25 %). Earlier installments are left untouched.
    """

    def failed(message: str) -> StrategyResult:
        return StrategyResult(BalloonStrategy.SPLIT_PAYMENTS, False, message)

    payments = schedule.payments
    index = _position(schedule, balloon)
    if index is None:
        return failed("Balloon installment not found in schedule")
    if index != len(payments) - 1:
        return failed("Only the final installment of a schedule can be split")
    count = min(number_of_payments, index + 1)
    if count < 2:
        return failed("Not enough installments to split the balloon")

    first = index - count + 1
    terms = _fully_amortizing(schedule.loan_terms)
    start = payments[first - 1].due_date if first else terms.start_date
    if any(p.date > start for p in schedule.prepayments):
        return failed("Cannot split a balloon across periods holding a prepayment")

    balance = payments[first].beginning_balance
    installment = round_money(
        amortizing_payment(balance, terms.annual_interest_rate, count, terms.payment_frequency),
        terms.rounding_config,
    )
    previous = payments[first - 1] if first else None
    records = amortize_periods(
        terms,
        accrual_spans(start, [r.due_date for r in payments[first:]]),
        installment,
        balance,
        first_number=payments[first].payment_number,
        cumulative_interest=previous.cumulative_interest if previous else ZERO,
        cumulative_principal=previous.cumulative_principal if previous else ZERO,
    )

    for new, old in zip(records[:-1], payments[first:index]):
        if old.total_payment <= 0:
            continue
        increase = (new.total_payment - old.total_payment) / old.total_payment
        if increase > max_payment_increase:
            return failed(
                f"Installment {new.payment_number} would rise by {round_money(increase * HUNDRED)}%, "
                f"above the {round_money(max_payment_increase * HUNDRED)}% limit"
            )

    result = build_schedule(
        schedule.loan_terms,
        payments[:first] + tuple(records),
        schedule.periodic_payment,
        schedule.prepaid_principal,
        prepayments=schedule.prepayments,
    )
    logger.debug("Split balloon %s over installments %d-%d", balloon.excess_amount, first + 1, index + 1)
    return StrategyResult(
        BalloonStrategy.SPLIT_PAYMENTS,
        True,
        f"Balloon of {balloon.excess_amount} spread across the last {count} installments",
        schedule=result,
    )


@financial_context
def extend_balloon_term(
    schedule: Schedule,
    balloon: BalloonPayment,
    max_extension_months: Optional[int] = None,
    target_payment_increase: Decimal = Decimal("0.10"),
    config: EngineConfig = DEFAULT_CONFIG,
) -> StrategyResult:
    """Lengthen the term until the balloon is retired by regular installments.

    The extension is the number of months an installment raised by
    ``target_payment_increase`` needs to pay off the balloon amount. The
    loan is then regenerated as a fully amortizing loan over the longer term;
    prepayments recorded on ``schedule`` are not carried over.
    """

    def failed(message: str) -> StrategyResult:
        return StrategyResult(BalloonStrategy.EXTEND_CONTRACT, False, message)

    limit = config.max_extension_months if max_extension_months is None else max_extension_months
    if _position(schedule, balloon) is None:
        return failed("Balloon installment not found in schedule")

    terms = schedule.loan_terms
    rate = periodic_rate(terms.annual_interest_rate, terms.payment_frequency)
    per_year = periods_per_year(terms.payment_frequency)
    target = balloon.regular_payment * (1 + target_payment_increase)
    balance = balloon.amount
    periods = 0
    months = 0
    while balance > 0 and months < limit:
        principal = target - balance * rate
        if principal <= 0:
            return failed(f"An installment of {round_money(target)} does not cover the interest on the balloon")
        balance -= principal
        periods += 1
        months = -(-periods * 12 // per_year)

    if balance > 0 or months > limit:
        return failed(f"Cannot retire the balloon within {limit} months")

    new_term = terms.term_months + months
    extended = generate_schedule(_fully_amortizing(terms, new_term))
    warnings: Tuple[str, ...] = ()
    if config.max_term_months is not None and new_term > config.max_term_months:
        warnings = (f"Extended term of {new_term} months exceeds the maximum of {config.max_term_months}",)
    logger.debug("Extended term by %d months to retire balloon %s", months, balloon.excess_amount)
    return StrategyResult(
        BalloonStrategy.EXTEND_CONTRACT,
        True,
        f"Term extended by {months} months to retire the balloon",
        schedule=extended,
        term_months=new_term,
        warnings=warnings,
    )


def resolve_balloon(
    schedule: Schedule,
    balloon: BalloonPayment,
    small_threshold: Decimal = Decimal("1000"),
    large_threshold: Decimal = Decimal("5000"),
    config: EngineConfig = DEFAULT_CONFIG,
) -> StrategyResult:
    """Split small balloons, extend the term for large ones.

    Balloons between the two thresholds are left for the borrower to decide;
    the result then carries no schedule.
    """
    excess = balloon.excess_amount
    if excess <= small_threshold:
        return split_balloon_payment(schedule, balloon, 3, Decimal("0.25"))
    if excess >= large_threshold:
        result = extend_balloon_term(schedule, balloon, 12, Decimal("0.10"), config)
        if result.success:
            result = replace(result, warnings=result.warnings + ("This extension requires underwriting approval",))
        return result
    return StrategyResult(
        BalloonStrategy.HYBRID,
        True,
        f"A balloon of {excess} needs the borrower to choose between a split and a term extension",
        warnings=("Borrower must select a restructuring option",),
    )
