"""Output helpers for the loan engine CLI.

Schedules, payment calculations and validation results are rendered as plain
tab-separated text with built-in printing.
"""

from __future__ import annotations

from typing import Iterable, List

from .data_models import LoanTerms, PaymentCalculation, PaymentRecord, Schedule, ValidationError
from .validator import format_validation_errors


def _label(value) -> str:
    return getattr(value, "value", value)


def print_terms(terms: LoanTerms) -> None:
    print("Loan terms")
    print("-" * 72)
    print(f"Principal          : {terms.principal}")
    print(f"Annual rate        : {terms.annual_interest_rate}%")
    print(f"Term               : {terms.term_months} months")
    print(f"Start date         : {terms.start_date.isoformat()}")
    if terms.first_payment_date is not None:
        print(f"First payment      : {terms.first_payment_date.isoformat()}")
    print(f"Frequency          : {_label(terms.payment_frequency)}")
    print(f"Interest type      : {_label(terms.interest_type)}")
    print(f"Day count          : {_label(terms.day_count_convention)}")
    if terms.balloon_payment:
        print(f"Balloon payment    : {terms.balloon_payment}")


def print_payment(calculation: PaymentCalculation) -> None:
    """Print the level payment and lifetime totals."""
    print("Payment")
    print("-" * 72)
    print(f"Periodic payment   : {calculation.periodic_payment}")
    print(f"Number of payments : {calculation.number_of_payments}")
    print(f"Total interest     : {calculation.total_interest}")
    print(f"Total payments     : {calculation.total_payments}")
    print("-" * 72)


def print_summary(schedule: Schedule) -> None:
    """Print the aggregates of a schedule in a human-readable format."""
    print("Summary")
    print("-" * 72)
    print(f"Periodic payment   : {schedule.periodic_payment}")
    print(f"Total principal    : {schedule.total_principal}")
    print(f"Total interest     : {schedule.total_interest}")
    if schedule.prepaid_principal:
        print(f"Prepaid principal  : {schedule.prepaid_principal}")
    print(f"Total payments     : {schedule.total_payments}")
    print(f"Payments           : {len(schedule)}")
    print(f"Last payment date  : {schedule.last_payment_date.isoformat()}")
    print("-" * 72)


def print_schedule(records: Iterable[PaymentRecord]) -> None:
    """Print schedule records as a simple table."""
    headers = ["No", "Due", "StartBal", "Payment", "Principal", "Interest", "EndBal"]
    print("\t".join(headers))
    for r in records:
        row = [
            str(r.payment_number),
            r.due_date.isoformat(),
            str(r.beginning_balance),
            str(r.total_payment),
            str(r.principal),
            str(r.interest),
            str(r.remaining_balance),
        ]
        print("\t".join(row))


def print_validation(errors: List[ValidationError]) -> None:
    if not errors:
        print("Loan terms are valid")
        return
    print(format_validation_errors(errors))
