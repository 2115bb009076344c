"""Data models for the loan calculation engine.

This module defines the immutable values passed into and returned from the
engine: the loan contract (:class:`LoanTerms`), the rounding policy, the
amortization schedule and its records, life-cycle events and validation
errors. All models are frozen dataclasses so a schedule handed to a caller can
never drift away from the terms that produced it; every change produces a new
value.

Enumerations subclass ``str`` so that raw strings coming from JSON or the
command line compare equal to the corresponding members.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple


class PaymentFrequency(str, Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    SEMI_MONTHLY = "semi-monthly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUALLY = "semi-annually"
    ANNUALLY = "annually"


class InterestType(str, Enum):
    AMORTIZED = "amortized"
    SIMPLE = "simple"  # interest-only, principal due on the final period
    BALLOON = "balloon"


class DayCountConvention(str, Enum):
    THIRTY_360 = "30/360"
    ACTUAL_360 = "actual/360"
    ACTUAL_365 = "actual/365"
    ACTUAL_ACTUAL = "actual/actual"


class RoundingMethod(str, Enum):
    BANKERS = "BANKERS"  # half to even
    HALF_UP = "HALF_UP"  # ties toward +infinity
    HALF_DOWN = "HALF_DOWN"  # ties toward -infinity
    UP = "UP"  # ceiling
    DOWN = "DOWN"  # floor
    HALF_AWAY = "HALF_AWAY"  # ties away from zero
    HALF_TOWARD = "HALF_TOWARD"  # ties toward zero


class ValidationCode(str, Enum):
    REQUIRED_FIELD = "REQUIRED_FIELD"
    INVALID_VALUE = "INVALID_VALUE"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    INCONSISTENT_DATE = "INCONSISTENT_DATE"


@dataclass(frozen=True)
class RoundingConfig:
    """How monetary results are rounded.

    Attributes
    ----------
    method: RoundingMethod
        Tie-breaking / direction rule.
    decimal_places: int
        Number of decimal places kept (2 for cents).
    """

    method: RoundingMethod = RoundingMethod.HALF_UP
    decimal_places: int = 2


@dataclass(frozen=True)
class LoanTerms:
    """Immutable description of an installment loan contract.

    ``annual_interest_rate`` is expressed in percent (``Decimal("4.5")`` is
    4.5 %). ``first_payment_date`` may be set to create an irregular first
    period; when omitted the first payment falls one regular period after
    ``start_date``.
    """

    principal: Decimal
    annual_interest_rate: Decimal
    term_months: int
    start_date: date
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    interest_type: InterestType = InterestType.AMORTIZED
    day_count_convention: DayCountConvention = DayCountConvention.THIRTY_360
    first_payment_date: Optional[date] = None
    balloon_payment: Optional[Decimal] = None
    rounding_config: RoundingConfig = field(default_factory=RoundingConfig)

    @property
    def has_balloon(self) -> bool:
        if self.interest_type == InterestType.SIMPLE:
            return False
        if self.interest_type == InterestType.BALLOON:
            return True
        return self.balloon_payment is not None and self.balloon_payment > 0


@dataclass(frozen=True)
class PaymentRecord:
    """One scheduled installment.

    ``beginning_balance`` is the balance the period's interest accrued on
    (after any prepayment inside the period) and ``remaining_balance`` is the
    balance once this installment's principal is applied.
    """

    payment_number: int
    due_date: date
    principal: Decimal
    interest: Decimal
    total_payment: Decimal
    beginning_balance: Decimal
    remaining_balance: Decimal
    cumulative_interest: Decimal
    cumulative_principal: Decimal


@dataclass(frozen=True)
class Schedule:
    """An amortization schedule and its aggregates.

    ``prepaid_principal`` is principal retired by prepayments rather than by
    scheduled installments; the sum of ``payments[i].principal`` plus
    ``prepaid_principal`` always equals ``total_principal``. ``prepayments``
    lists the principal reductions applied so far, in the order they were
    applied, each with the amount actually taken off the balance.
    """

    payments: Tuple[PaymentRecord, ...]
    total_principal: Decimal
    total_interest: Decimal
    total_payments: Decimal
    last_payment_date: date
    periodic_payment: Decimal
    loan_terms: LoanTerms
    prepaid_principal: Decimal = Decimal(0)
    prepayments: Tuple[PrepaymentEvent, ...] = ()

    def __len__(self) -> int:
        return len(self.payments)


@dataclass(frozen=True)
class PaymentCalculation:
    periodic_payment: Decimal
    total_interest: Decimal
    total_payments: Decimal
    number_of_payments: int


@dataclass(frozen=True)
class InterestResult:
    interest_amount: Decimal
    day_count: int
    daily_rate: Decimal


@dataclass(frozen=True)
class PrepaymentEvent:
    """An unscheduled payment.

    When ``apply_to_principal`` is false the amount is treated as a credit
    toward upcoming installments and does not change the amortization.
    """

    amount: Decimal
    date: date
    apply_to_principal: bool = True


@dataclass(frozen=True)
class ModificationEvent:
    """A change of principal, rate or term effective from ``effective_date``."""

    effective_date: date
    principal_adjustment: Optional[Decimal] = None
    new_rate: Optional[Decimal] = None
    new_term_months: Optional[int] = None


@dataclass(frozen=True)
class ValidationError:
    """A single rule violation returned by the validator (never raised)."""

    field: str
    code: ValidationCode
    message: str
