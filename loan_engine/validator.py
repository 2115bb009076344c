"""Structural and business-rule checks for loan terms and events.

``validate`` never raises and never stops at the first problem: it returns
every violation it finds so a caller can surface them all at once. Limits
that are business policy rather than arithmetic necessity (rate ceiling,
maximum principal and term, whether 0 % loans are allowed) come from an
:class:`~loan_engine.config.EngineConfig`.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Type

from .config import DEFAULT_CONFIG, STRUCTURAL_LIMITS, EngineConfig
from .data_models import (
    DayCountConvention,
    InterestType,
    LoanTerms,
    PaymentFrequency,
    PrepaymentEvent,
    RoundingMethod,
    Schedule,
    ValidationCode,
    ValidationError,
)
from .exceptions import InvalidLoanTermsError

MAX_DECIMAL_PLACES = 10


def _is_member(value: Any, enum_cls: Type[Enum]) -> bool:
    try:
        return value in {member.value for member in enum_cls}
    except TypeError:  # unhashable input
        return False


def _choices(enum_cls: Type[Enum]) -> str:
    return ", ".join(member.value for member in enum_cls)


def _is_exact_number(value: Any) -> bool:
    return isinstance(value, (Decimal, int)) and not isinstance(value, bool) and (
        not isinstance(value, Decimal) or value.is_finite()
    )


def validate(terms: LoanTerms, config: Optional[EngineConfig] = None) -> List[ValidationError]:
    """Return all rule violations found in ``terms`` (empty when valid)."""
    config = config or DEFAULT_CONFIG
    errors: List[ValidationError] = []

    def add(field_name: str, code: ValidationCode, message: str) -> None:
        errors.append(ValidationError(field=field_name, code=code, message=message))

    principal = terms.principal
    principal_ok = False
    if principal is None:
        add("principal", ValidationCode.REQUIRED_FIELD, "Principal amount is required")
    elif not _is_exact_number(principal):
        add("principal", ValidationCode.INVALID_VALUE, "Principal must be an exact decimal amount")
    elif principal <= 0:
        add("principal", ValidationCode.INVALID_VALUE, "Principal amount must be greater than zero")
    elif config.max_principal is not None and principal > config.max_principal:
        add(
            "principal",
            ValidationCode.OUT_OF_RANGE,
            f"Principal amount exceeds the maximum of {config.max_principal}",
        )
    else:
        principal_ok = True

    rate = terms.annual_interest_rate
    if rate is None:
        add("annual_interest_rate", ValidationCode.REQUIRED_FIELD, "Annual interest rate is required")
    elif not _is_exact_number(rate):
        add("annual_interest_rate", ValidationCode.INVALID_VALUE, "Annual interest rate must be an exact decimal")
    elif rate < 0 or (rate == 0 and not config.allow_zero_rate):
        add("annual_interest_rate", ValidationCode.OUT_OF_RANGE, "Annual interest rate must be greater than zero")
    elif config.rate_ceiling is not None and rate > config.rate_ceiling:
        add(
            "annual_interest_rate",
            ValidationCode.OUT_OF_RANGE,
            f"Annual interest rate cannot exceed {config.rate_ceiling}%",
        )

    term = terms.term_months
    if term is None:
        add("term_months", ValidationCode.REQUIRED_FIELD, "Term is required")
    elif not isinstance(term, int) or isinstance(term, bool):
        add("term_months", ValidationCode.INVALID_VALUE, "Term must be a whole number of months")
    elif term < 1:
        add("term_months", ValidationCode.OUT_OF_RANGE, "Term must be at least one month")
    elif config.max_term_months is not None and term > config.max_term_months:
        add("term_months", ValidationCode.OUT_OF_RANGE, f"Term cannot exceed {config.max_term_months} months")

    if not _is_member(terms.payment_frequency, PaymentFrequency):
        add(
            "payment_frequency",
            ValidationCode.INVALID_VALUE,
            f"Payment frequency must be one of: {_choices(PaymentFrequency)}",
        )
    if not _is_member(terms.interest_type, InterestType):
        add(
            "interest_type",
            ValidationCode.INVALID_VALUE,
            f"Interest type must be one of: {_choices(InterestType)}",
        )
    if not _is_member(terms.day_count_convention, DayCountConvention):
        add(
            "day_count_convention",
            ValidationCode.INVALID_VALUE,
            f"Day count convention must be one of: {_choices(DayCountConvention)}",
        )

    start = terms.start_date
    if not isinstance(start, date):
        add("start_date", ValidationCode.REQUIRED_FIELD, "Start date is required")
    first = terms.first_payment_date
    if first is not None:
        if not isinstance(first, date):
            add("first_payment_date", ValidationCode.INVALID_VALUE, "First payment date is not a date")
        elif isinstance(start, date) and first < start:
            add(
                "first_payment_date",
                ValidationCode.INCONSISTENT_DATE,
                "First payment date cannot be before the start date",
            )

    balloon = terms.balloon_payment
    if balloon is not None:
        if not _is_exact_number(balloon):
            add("balloon_payment", ValidationCode.INVALID_VALUE, "Balloon payment must be an exact decimal")
        elif balloon < 0:
            add("balloon_payment", ValidationCode.INVALID_VALUE, "Balloon payment cannot be negative")
        elif principal_ok and balloon > principal:
            add("balloon_payment", ValidationCode.OUT_OF_RANGE, "Balloon payment cannot exceed the principal")
        elif balloon > 0 and terms.interest_type == InterestType.SIMPLE:
            add(
                "balloon_payment",
                ValidationCode.INVALID_VALUE,
                "Interest-only loans repay the whole principal at maturity and take no balloon payment",
            )
    elif terms.interest_type == InterestType.BALLOON:
        add("balloon_payment", ValidationCode.REQUIRED_FIELD, "Balloon loans require a balloon payment")

    rounding = terms.rounding_config
    if rounding is None:
        add("rounding_config", ValidationCode.REQUIRED_FIELD, "Rounding configuration is required")
    else:
        if not _is_member(rounding.method, RoundingMethod):
            add(
                "rounding_config.method",
                ValidationCode.INVALID_VALUE,
                f"Rounding method must be one of: {_choices(RoundingMethod)}",
            )
        places = rounding.decimal_places
        if not isinstance(places, int) or isinstance(places, bool) or not 0 <= places <= MAX_DECIMAL_PLACES:
            add(
                "rounding_config.decimal_places",
                ValidationCode.OUT_OF_RANGE,
                f"Decimal places must be a whole number between 0 and {MAX_DECIMAL_PLACES}",
            )

    return errors


def is_valid(terms: LoanTerms, config: Optional[EngineConfig] = None) -> bool:
    return not validate(terms, config)


def require_computable(terms: LoanTerms) -> None:
    """Raise :class:`InvalidLoanTermsError` if ``terms`` cannot be calculated.

    Only structural problems are checked here; business ceilings are the
    caller's concern through :func:`validate`.
    """
    errors = validate(terms, STRUCTURAL_LIMITS)
    if errors:
        raise InvalidLoanTermsError(errors)


def validate_prepayment(schedule: Schedule, event: PrepaymentEvent) -> List[ValidationError]:
    """Check a prepayment against the schedule it will be applied to."""
    errors: List[ValidationError] = []
    amount = event.amount
    if not _is_exact_number(amount):
        errors.append(
            ValidationError("amount", ValidationCode.INVALID_VALUE, "Prepayment amount must be an exact decimal")
        )
    elif amount <= 0:
        errors.append(
            ValidationError("amount", ValidationCode.INVALID_VALUE, "Prepayment amount must be greater than zero")
        )
    if not isinstance(event.date, date):
        errors.append(ValidationError("date", ValidationCode.REQUIRED_FIELD, "Prepayment date is required"))
    elif event.date < schedule.loan_terms.start_date:
        errors.append(
            ValidationError(
                "date",
                ValidationCode.INCONSISTENT_DATE,
                "Prepayment date cannot be before the loan start date",
            )
        )
    elif schedule.prepayments and event.date < max(p.date for p in schedule.prepayments):
        errors.append(
            ValidationError(
                "date",
                ValidationCode.INCONSISTENT_DATE,
                "Prepayment date cannot precede a prepayment already applied to the schedule",
            )
        )
    return errors


def format_validation_errors(errors: List[ValidationError]) -> str:
    """Render errors one per line as ``field [CODE]: message``."""
    return "\n".join(f"{e.field} [{ValidationCode(e.code).value}]: {e.message}" for e in errors)
