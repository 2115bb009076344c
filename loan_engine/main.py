"""Command-line interface for the loan calculation engine.

This module uses ``click`` to implement a multi-command interface over the
engine. Every command accepts the same loan options; amounts accept ``k``/``m``
shorthand (``250k``) and are parsed straight into ``Decimal``. Schedules can
be printed to the terminal or exported to JSON/CSV files.
"""

from __future__ import annotations

import functools
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click

from .apr import calculate_loan_apr
from .balloon import detect_balloon_payments, find_largest_balloon_payment, resolve_balloon, validate_balloon_compliance
from .config import EngineConfig
from .data_models import (
    DayCountConvention,
    InterestType,
    LoanTerms,
    PaymentFrequency,
    PrepaymentEvent,
    RoundingConfig,
    RoundingMethod,
)
from .engine import generate_schedule
from .events import apply_prepayment, get_payoff_amount
from .exceptions import ConvergenceError, InvalidEventError
from .formatter import print_payment, print_schedule, print_summary, print_terms, print_validation
from .interest import calculate_interest
from .payment import calculate_payment
from .serialization import write_schedule_csv, write_schedule_json
from .utils import parse_amount, parse_iso_date, parse_percent
from .validator import validate

logger = logging.getLogger(__name__)

MAX_PRINTED_ROWS = 120


def _choice(enum_cls) -> click.Choice:
    return click.Choice([member.value for member in enum_cls])


def _parse(parser, value: str, name: str):
    try:
        return parser(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint=name)


def loan_options(func):
    """Attach the shared loan-term options to a command."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Loan amount (accepts 250k, 1.2m)"),
        click.option("--rate", "-r", "rate", required=True, help="Annual interest rate in percent"),
        click.option("--term", "-t", "term", required=True, type=int, help="Loan term in months"),
        click.option("--start-date", "-s", "start_date", required=True, help="Origination date (YYYY-MM-DD)"),
        click.option(
            "--frequency",
            "frequency",
            type=_choice(PaymentFrequency),
            default=PaymentFrequency.MONTHLY.value,
            show_default=True,
            help="Payment frequency",
        ),
        click.option(
            "--interest-type",
            "interest_type",
            type=_choice(InterestType),
            default=InterestType.AMORTIZED.value,
            show_default=True,
            help="amortized, simple (interest-only) or balloon",
        ),
        click.option(
            "--day-count",
            "day_count",
            type=_choice(DayCountConvention),
            default=DayCountConvention.THIRTY_360.value,
            show_default=True,
            help="Day-count convention",
        ),
        click.option("--first-payment-date", "first_payment_date", help="First due date (YYYY-MM-DD)"),
        click.option("--balloon", "balloon", help="Balloon amount due with the last payment"),
        click.option(
            "--rounding",
            "rounding",
            type=_choice(RoundingMethod),
            default=RoundingMethod.HALF_UP.value,
            show_default=True,
            help="Rounding method",
        ),
        click.option("--decimal-places", "decimal_places", type=int, default=2, show_default=True),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_terms_from_options(
    principal: str,
    rate: str,
    term: int,
    start_date: str,
    frequency: str = PaymentFrequency.MONTHLY.value,
    interest_type: str = InterestType.AMORTIZED.value,
    day_count: str = DayCountConvention.THIRTY_360.value,
    first_payment_date: Optional[str] = None,
    balloon: Optional[str] = None,
    rounding: str = RoundingMethod.HALF_UP.value,
    decimal_places: int = 2,
) -> LoanTerms:
    return LoanTerms(
        principal=_parse(parse_amount, principal, "--principal"),
        annual_interest_rate=_parse(parse_percent, rate, "--rate"),
        term_months=term,
        start_date=_parse(parse_iso_date, start_date, "--start-date"),
        payment_frequency=PaymentFrequency(frequency),
        interest_type=InterestType(interest_type),
        day_count_convention=DayCountConvention(day_count),
        first_payment_date=(
            _parse(parse_iso_date, first_payment_date, "--first-payment-date") if first_payment_date else None
        ),
        balloon_payment=_parse(parse_amount, balloon, "--balloon") if balloon else None,
        rounding_config=RoundingConfig(RoundingMethod(rounding), decimal_places),
    )


def parse_prepayment_strings(values: Tuple[str, ...]) -> List[PrepaymentEvent]:
    prepayments: List[PrepaymentEvent] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 2:
            raise click.BadParameter(
                f"Prepayment must be in YYYY-MM-DD:AMOUNT format; got {item}", param_hint="--prepayment"
            )
        on, amount = parts
        prepayments.append(
            PrepaymentEvent(_parse(parse_amount, amount, "--prepayment"), _parse(parse_iso_date, on, "--prepayment"))
        )
    return sorted(prepayments, key=lambda p: p.date)


def _valid_terms(ctx: click.Context, **options) -> LoanTerms:
    """Build terms from options, printing every violation and exiting 1 if invalid."""
    terms = build_terms_from_options(**options)
    errors = validate(terms, ctx.obj["config"])
    if errors:
        logger.debug("Rejected loan terms with %d validation errors", len(errors))
        print_validation(errors)
        sys.exit(1)
    return terms


def export_schedule(path: Path, result) -> None:
    if path.suffix.lower() == ".json":
        write_schedule_json(path, result)
    elif path.suffix.lower() == ".csv":
        write_schedule_csv(path, result)
    else:
        raise click.BadParameter("Unsupported output format; use .json or .csv", param_hint="--output")
    click.echo(f"Schedule exported to {path}")


def solver_errors(func):
    """Turn solver failures into click errors."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ConvergenceError as exc:
            raise click.ClickException(str(exc))

    return wrapper


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """A command-line loan calculation engine."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = EngineConfig.from_env()


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.pass_context
def schedule(ctx: click.Context, output: Optional[str], **options) -> None:
    """Compute and print the full amortization schedule."""
    terms = _valid_terms(ctx, **options)
    result = generate_schedule(terms)
    if output:
        export_schedule(Path(output), result)
        return

    print_summary(result)
    if len(result) > MAX_PRINTED_ROWS:
        click.echo(f"Schedule has {len(result)} rows; showing first {MAX_PRINTED_ROWS} rows.")
        print_schedule(result.payments[:MAX_PRINTED_ROWS])
    else:
        print_schedule(result.payments)


@cli.command()
@loan_options
@click.pass_context
def payment(ctx: click.Context, **options) -> None:
    """Print the periodic payment and lifetime totals."""
    terms = _valid_terms(ctx, **options)
    print_terms(terms)
    print_payment(calculate_payment(terms))


@cli.command(name="validate")
@loan_options
@click.pass_context
def validate_command(ctx: click.Context, **options) -> None:
    """Check loan terms and list every problem found."""
    terms = build_terms_from_options(**options)
    errors = validate(terms, ctx.obj["config"])
    print_validation(errors)
    if errors:
        sys.exit(1)


@cli.command()
@click.option("--principal", "-p", "principal", required=True, help="Balance interest accrues on")
@click.option("--rate", "-r", "rate", required=True, help="Annual interest rate in percent")
@click.option("--from", "start", required=True, help="Start date (YYYY-MM-DD)")
@click.option("--to", "end", required=True, help="End date (YYYY-MM-DD)")
@click.option(
    "--day-count",
    "day_count",
    type=_choice(DayCountConvention),
    default=DayCountConvention.THIRTY_360.value,
    show_default=True,
)
@click.option("--rounding", "rounding", type=_choice(RoundingMethod), default=RoundingMethod.HALF_UP.value)
@click.option("--decimal-places", "decimal_places", type=int, default=2, show_default=True)
def interest(principal: str, rate: str, start: str, end: str, day_count: str, rounding: str, decimal_places: int) -> None:
    """Simple interest on a balance between two dates."""
    start_date = _parse(parse_iso_date, start, "--from")
    end_date = _parse(parse_iso_date, end, "--to")
    if end_date < start_date:
        raise click.BadParameter("End date is before start date", param_hint="--to")
    result = calculate_interest(
        _parse(parse_amount, principal, "--principal"),
        _parse(parse_percent, rate, "--rate"),
        start_date,
        end_date,
        DayCountConvention(day_count),
        RoundingConfig(RoundingMethod(rounding), decimal_places),
    )
    click.echo(f"Interest   : {result.interest_amount}")
    click.echo(f"Days       : {result.day_count}")
    click.echo(f"Daily rate : {result.daily_rate}")


@cli.command()
@loan_options
@click.option("--fees", "fees", default="0", show_default=True, help="Upfront fees paid at origination")
@click.pass_context
@solver_errors
def apr(ctx: click.Context, fees: str, **options) -> None:
    """Annual percentage rate including upfront fees."""
    terms = _valid_terms(ctx, **options)
    value = calculate_loan_apr(terms, _parse(parse_amount, fees, "--fees"), ctx.obj["config"])
    click.echo(f"APR: {value}%")


@cli.command()
@loan_options
@click.option("--as-of", "as_of", required=True, help="Payoff date (YYYY-MM-DD)")
@click.option("--accrued/--no-accrued", "accrued", default=True, show_default=True, help="Include accrued interest")
@click.option("--prepayment", "prepayment", multiple=True, help="Earlier prepayment in YYYY-MM-DD:AMOUNT format")
@click.pass_context
def payoff(ctx: click.Context, as_of: str, accrued: bool, prepayment: Tuple[str, ...], **options) -> None:
    """Amount required to retire the loan on a date."""
    terms = _valid_terms(ctx, **options)
    result = generate_schedule(terms)
    for event in parse_prepayment_strings(prepayment):
        try:
            result = apply_prepayment(result, event)
        except InvalidEventError as exc:
            raise click.BadParameter(str(exc), param_hint="--prepayment")
    amount = get_payoff_amount(result, _parse(parse_iso_date, as_of, "--as-of"), accrued)
    click.echo(f"Payoff amount: {amount}")


@cli.command()
@loan_options
@click.option("--amount", "amount", required=True, help="Prepayment amount")
@click.option("--on", "on", required=True, help="Prepayment date (YYYY-MM-DD)")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.pass_context
def prepay(ctx: click.Context, amount: str, on: str, output: Optional[str], **options) -> None:
    """Show the effect of a principal prepayment."""
    terms = _valid_terms(ctx, **options)
    original = generate_schedule(terms)
    event = PrepaymentEvent(_parse(parse_amount, amount, "--amount"), _parse(parse_iso_date, on, "--on"))
    try:
        result = apply_prepayment(original, event)
    except InvalidEventError as exc:
        raise click.BadParameter(str(exc))

    if output:
        export_schedule(Path(output), result)
        return

    print_summary(result)
    click.echo(f"Interest saved     : {original.total_interest - result.total_interest}")
    click.echo(f"Payments saved     : {len(original) - len(result)}")


@cli.command()
@loan_options
@click.pass_context
def balloons(ctx: click.Context, **options) -> None:
    """List balloon installments and propose a restructuring."""
    terms = _valid_terms(ctx, **options)
    config = ctx.obj["config"]
    result = generate_schedule(terms)
    found = detect_balloon_payments(result, config)
    if not found:
        click.echo("No balloon installments")
        return

    for balloon in found:
        click.echo(
            f"Payment {balloon.payment_number} on {balloon.due_date.isoformat()}: {balloon.amount} "
            f"(regular {balloon.regular_payment}, +{balloon.excess_amount}, +{balloon.excess_percentage}%)"
        )
    largest = find_largest_balloon_payment(result, config)
    for violation in validate_balloon_compliance(largest, config):
        click.echo(f"Violation: {violation}")
    resolution = resolve_balloon(result, largest, config=config)
    click.echo(f"Proposal: {resolution.message}")
    for warning in resolution.warnings:
        click.echo(f"Warning: {warning}")


if __name__ == "__main__":
    cli()
