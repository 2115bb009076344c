"""Core calculation engine for the loan calculation engine.

This module builds amortization schedules. Each period accrues interest over
its actual span (start date to first due date, then due date to due date)
through :func:`loan_engine.interest.calculate_interest`, applies the level
installment and carries the balance forward. The final period absorbs
whatever balance is left, so rounding drift, balloons and interest-only
principal all land there and the schedule always closes at exactly zero.

The period loop lives in :func:`amortize_periods` so the prepayment
recalculator can regenerate the tail of a schedule with the same rules.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from .data_models import InterestType, LoanTerms, PaymentRecord, PrepaymentEvent, Schedule
from .dates import next_payment_date, number_of_payments, payment_dates
from .interest import calculate_interest
from .payment import installment_amount
from .rounding import ZERO, financial_context, round_money
from .validator import require_computable

logger = logging.getLogger(__name__)

Span = Tuple[date, date]


def first_due_date(terms: LoanTerms) -> date:
    """Return the first installment date (explicit or one period after start)."""
    if terms.first_payment_date is not None:
        return terms.first_payment_date
    return next_payment_date(terms.start_date, terms.payment_frequency)


def accrual_spans(start: date, due_dates: Sequence[date]) -> List[Span]:
    """Pair every due date with the date its interest starts accruing."""
    spans: List[Span] = []
    previous = start
    for due in due_dates:
        spans.append((previous, due))
        previous = due
    return spans


def amortize_periods(
    terms: LoanTerms,
    spans: Sequence[Span],
    installment: Decimal,
    balance: Decimal,
    first_number: int = 1,
    cumulative_interest: Decimal = ZERO,
    cumulative_principal: Decimal = ZERO,
    carried_interest: Decimal = ZERO,
) -> List[PaymentRecord]:
    """Run the period loop over ``spans`` starting from ``balance``.

    Parameters
    ----------
    terms: LoanTerms
        Supplies the rate, day-count convention, interest type and rounding.
    spans: Sequence[(date, date)]
        ``(accrual_start, due_date)`` for each remaining period. The last span
        is the final period and retires the whole remaining balance.
    installment: Decimal
        Rounded level payment applied to amortizing periods.
    balance: Decimal
        Outstanding principal at the start of the first span.
    carried_interest: Decimal
        Interest already accrued before the first span (e.g. on a balance
        that was reduced mid-period); added to the first period's interest.

    Returns
    -------
    List[PaymentRecord]
        One record per period, stopping early once the balance is zero.
    """
    rounding = terms.rounding_config
    interest_only = terms.interest_type == InterestType.SIMPLE
    zero = round_money(ZERO, rounding)
    records: List[PaymentRecord] = []
    last_index = len(spans) - 1

    for index, (accrual_start, due) in enumerate(spans):
        beginning_balance = balance
        interest = calculate_interest(
            balance,
            terms.annual_interest_rate,
            accrual_start,
            due,
            terms.day_count_convention,
            rounding,
        ).interest_amount
        if index == 0:
            interest += carried_interest

        if index == last_index:
            principal = balance
        elif interest_only:
            principal = zero
        else:
            principal = min(balance, max(zero, installment - interest))

        balance -= principal
        cumulative_interest += interest
        cumulative_principal += principal
        records.append(
            PaymentRecord(
                payment_number=first_number + index,
                due_date=due,
                principal=principal,
                interest=interest,
                total_payment=principal + interest,
                beginning_balance=beginning_balance,
                remaining_balance=balance,
                cumulative_interest=cumulative_interest,
                cumulative_principal=cumulative_principal,
            )
        )
        if balance == 0:
            break

    return records


def build_schedule(
    terms: LoanTerms,
    records: Sequence[PaymentRecord],
    periodic_payment: Decimal,
    prepaid_principal: Decimal = ZERO,
    last_payment_date: Optional[date] = None,
    prepayments: Sequence[PrepaymentEvent] = (),
) -> Schedule:
    """Assemble a :class:`Schedule` and its totals from ``records``."""
    total_interest = sum((r.interest for r in records), ZERO)
    scheduled = sum((r.total_payment for r in records), ZERO)
    if last_payment_date is None:
        last_payment_date = records[-1].due_date if records else terms.start_date
    return Schedule(
        payments=tuple(records),
        total_principal=Decimal(terms.principal),
        total_interest=total_interest,
        total_payments=scheduled + prepaid_principal,
        last_payment_date=last_payment_date,
        periodic_payment=periodic_payment,
        loan_terms=terms,
        prepaid_principal=prepaid_principal,
        prepayments=tuple(prepayments),
    )


@financial_context
def generate_schedule(terms: LoanTerms) -> Schedule:
    """Compute the full amortization schedule for ``terms``.

    Raises
    ------
    InvalidLoanTermsError
        If the terms are structurally uncomputable.
    """
    require_computable(terms)
    count = number_of_payments(terms.term_months, terms.payment_frequency)
    installment = round_money(installment_amount(terms, count), terms.rounding_config)
    due_dates = list(payment_dates(first_due_date(terms), terms.payment_frequency, count))

    logger.debug(
        "Generating %d %s payments of %s on %s",
        count,
        terms.payment_frequency,
        installment,
        terms.principal,
    )
    records = amortize_periods(
        terms,
        accrual_spans(terms.start_date, due_dates),
        installment,
        Decimal(terms.principal),
    )
    schedule = build_schedule(terms, records, installment)
    logger.debug(
        "Schedule complete: %d payments, total interest %s, last payment %s",
        len(schedule),
        schedule.total_interest,
        schedule.last_payment_date,
    )
    return schedule


@financial_context
def generate_partial_schedule(
    terms: LoanTerms,
    starting_balance: Decimal,
    starting_payment_number: int,
    count: int,
) -> List[PaymentRecord]:
    """Return ``count`` payment records re-amortizing ``starting_balance``.

    The balance is amortized over exactly ``count`` periods from the terms'
    start date; records are numbered from ``starting_payment_number``.
    """
    if count < 1:
        raise ValueError("count must be at least 1")
    if starting_payment_number < 1:
        raise ValueError("starting_payment_number must be at least 1")
    partial_terms = replace(terms, principal=Decimal(starting_balance))
    require_computable(partial_terms)
    installment = round_money(installment_amount(partial_terms, count), terms.rounding_config)
    due_dates = list(payment_dates(first_due_date(terms), terms.payment_frequency, count))
    return amortize_periods(
        partial_terms,
        accrual_spans(terms.start_date, due_dates),
        installment,
        partial_terms.principal,
        first_number=starting_payment_number,
    )


def get_remaining_balance(schedule: Schedule, payment_number: int) -> Decimal:
    """Balance after installment ``payment_number`` (0 when there is none)."""
    for record in schedule.payments:
        if record.payment_number == payment_number:
            return record.remaining_balance
    return ZERO


def get_total_interest_paid(schedule: Schedule, payment_number: int) -> Decimal:
    """Cumulative interest through installment ``payment_number``."""
    for record in schedule.payments:
        if record.payment_number == payment_number:
            return record.cumulative_interest
    return ZERO
