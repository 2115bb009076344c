"""Life-cycle events applied to an existing schedule or contract.

* :func:`apply_prepayment` reduces the balance on a given date and
  regenerates the rest of the schedule with the original installment, so the
  loan finishes earlier and costs less interest.
* :func:`apply_modification` derives new terms (rate, term, principal) taking
  effect from a date; the caller regenerates a schedule from them.
* :func:`get_payoff_amount` answers "how much retires the loan today".

None of these mutate their inputs. Every result is a new value.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from .data_models import (
    LoanTerms,
    ModificationEvent,
    PaymentRecord,
    PrepaymentEvent,
    Schedule,
    ValidationCode,
    ValidationError,
)
from .engine import accrual_spans, amortize_periods, build_schedule
from .exceptions import InvalidEventError
from .interest import calculate_accrued_interest
from .rounding import ZERO, financial_context, round_money
from .validator import validate_prepayment

logger = logging.getLogger(__name__)


def _anchor(schedule: Schedule, on: date) -> Tuple[int, date, Decimal]:
    """Locate the last installment due on or before ``on``.

    Returns ``(index, anchor_date, balance)`` where ``index`` is -1 when no
    installment has fallen due yet (the anchor is then loan origination).
    """
    index = -1
    for i, record in enumerate(schedule.payments):
        if record.due_date > on:
            break
        index = i
    if index < 0:
        terms = schedule.loan_terms
        return index, terms.start_date, Decimal(terms.principal)
    record = schedule.payments[index]
    return index, record.due_date, record.remaining_balance


def _prepayments_between(schedule: Schedule, since: date, on: date) -> List[PrepaymentEvent]:
    """Prepayments not yet reflected in the balance anchored at ``since``.

    A prepayment dated on a due date is applied after that installment, so
    the anchor's own date is included.
    """
    return sorted((p for p in schedule.prepayments if since <= p.date <= on), key=lambda p: p.date)


def _accrue(terms: LoanTerms, balance: Decimal, since: date, on: date) -> Decimal:
    if balance <= 0:
        return ZERO
    return calculate_accrued_interest(
        balance,
        terms.annual_interest_rate,
        since,
        on,
        terms.day_count_convention,
        terms.rounding_config,
    )


def _position(schedule: Schedule, on: date) -> Tuple[int, Decimal, Decimal]:
    """Return ``(anchor index, balance on on, interest accrued since the anchor)``.

    Prepayments made after the anchor reduce the balance from their own date;
    interest accrues piecewise on each balance for the days it was
    outstanding.
    """
    terms = schedule.loan_terms
    index, since, balance = _anchor(schedule, on)
    accrued = ZERO
    for prepayment in _prepayments_between(schedule, since, on):
        accrued += _accrue(terms, balance, since, prepayment.date)
        balance = max(ZERO, balance - prepayment.amount)
        since = prepayment.date
    accrued += _accrue(terms, balance, since, on)
    return index, balance, accrued


def _is_retired_early(schedule: Schedule) -> bool:
    return not schedule.payments or schedule.payments[-1].remaining_balance > 0


@financial_context
def apply_prepayment(schedule: Schedule, event: PrepaymentEvent) -> Schedule:
    """Return the schedule that results from ``event``.

    Raises
    ------
    InvalidEventError
        If the amount is not positive, the date precedes the loan start or a
        prepayment already applied to ``schedule``.
    """
    errors = validate_prepayment(schedule, event)
    if errors:
        raise InvalidEventError(errors)

    if not schedule.payments or event.date >= schedule.payments[-1].due_date:
        logger.debug("Prepayment on %s is after the final installment; schedule unchanged", event.date)
        return schedule
    if not event.apply_to_principal:
        # Held as a credit against upcoming installments.
        return schedule

    terms = schedule.loan_terms
    amount = Decimal(event.amount)
    index, balance, carried = _position(schedule, event.date)
    kept: List[PaymentRecord] = list(schedule.payments[: index + 1])

    if amount >= balance:
        logger.debug("Prepayment of %s on %s retires the loan (balance %s)", amount, event.date, balance)
        return build_schedule(
            terms,
            kept,
            schedule.periodic_payment,
            prepaid_principal=schedule.prepaid_principal + balance,
            last_payment_date=event.date,
            prepayments=schedule.prepayments + (PrepaymentEvent(balance, event.date),),
        )

    reduced = balance - amount
    remaining_dates = [r.due_date for r in schedule.payments[index + 1:]]
    spans = accrual_spans(event.date, remaining_dates)
    last = kept[-1] if kept else None
    regenerated = amortize_periods(
        terms,
        spans,
        schedule.periodic_payment,
        reduced,
        first_number=(last.payment_number + 1) if last else 1,
        cumulative_interest=last.cumulative_interest if last else ZERO,
        cumulative_principal=last.cumulative_principal if last else ZERO,
        carried_interest=carried,
    )
    logger.debug(
        "Prepayment of %s on %s: %d installments regenerated (was %d)",
        amount,
        event.date,
        len(regenerated),
        len(remaining_dates),
    )
    return build_schedule(
        terms,
        kept + regenerated,
        schedule.periodic_payment,
        prepaid_principal=schedule.prepaid_principal + amount,
        prepayments=schedule.prepayments + (PrepaymentEvent(amount, event.date),),
    )


@financial_context
def apply_modification(terms: LoanTerms, event: ModificationEvent, current_balance: Decimal) -> LoanTerms:
    """Return new terms for the loan from ``event.effective_date`` on.

    The new principal is ``current_balance`` plus the (signed) principal
    adjustment. Rate and term are replaced only when the event sets them.
    """
    principal = Decimal(current_balance)
    if event.principal_adjustment is not None:
        principal += Decimal(event.principal_adjustment)

    errors: List[ValidationError] = []
    if principal <= 0:
        errors.append(
            ValidationError(
                "principal_adjustment",
                ValidationCode.OUT_OF_RANGE,
                "Modified principal must be greater than zero",
            )
        )
    if event.new_rate is not None and event.new_rate < 0:
        errors.append(ValidationError("new_rate", ValidationCode.OUT_OF_RANGE, "Rate cannot be negative"))
    if event.new_term_months is not None and event.new_term_months < 1:
        errors.append(
            ValidationError("new_term_months", ValidationCode.OUT_OF_RANGE, "Term must be at least one month")
        )
    if errors:
        raise InvalidEventError(errors)

    first_payment_date: Optional[date] = terms.first_payment_date
    if first_payment_date is not None and first_payment_date < event.effective_date:
        first_payment_date = None

    return replace(
        terms,
        principal=principal,
        annual_interest_rate=(
            event.new_rate if event.new_rate is not None else terms.annual_interest_rate
        ),
        term_months=(
            event.new_term_months if event.new_term_months is not None else terms.term_months
        ),
        start_date=event.effective_date,
        first_payment_date=first_payment_date,
    )


@financial_context
def get_payoff_amount(schedule: Schedule, as_of: date, include_accrued_interest: bool = True) -> Decimal:
    """Amount that retires the loan on ``as_of``.

    The latest balance at or before ``as_of`` (the original principal before
    the first installment), less prepayments made since then, plus interest
    accrued since that point when ``include_accrued_interest`` is set.
    """
    rounding = schedule.loan_terms.rounding_config
    if _is_retired_early(schedule) and as_of >= schedule.last_payment_date:
        return round_money(ZERO, rounding)

    _, balance, accrued = _position(schedule, as_of)
    if include_accrued_interest:
        balance += accrued
    return round_money(balance, rounding)
