"""Annual percentage rate solver.

The APR is the annual rate at which the present value of the installment
stream equals the amount the borrower actually receives (principal less
upfront fees). There is no closed form, so the rate is isolated by bisection
over ``[0, rate ceiling]``. Present value falls as the rate rises, which makes
the bracket update a simple sign test.

The solver either returns a rate within tolerance or raises
:class:`~loan_engine.exceptions.AprConvergenceError`; it never hands back the
last midpoint as if it were an answer.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from .config import DEFAULT_CONFIG, EngineConfig
from .data_models import InterestType, LoanTerms, RoundingConfig
from .dates import periods_per_year as frequency_periods
from .exceptions import AprConvergenceError
from .payment import calculate_payment
from .rounding import ZERO, financial_context, round_money

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)
APR_DECIMAL_PLACES = 6
DEFAULT_BRACKET_CEILING = Decimal(100)


def present_value(payment: Decimal, periodic_rate: Decimal, n: int, balloon: Decimal = ZERO) -> Decimal:
    """Present value of ``n`` level payments plus a final ``balloon``.

    ``periodic_rate`` is a fraction per period (not percent).
    """
    payment = Decimal(payment)
    balloon = Decimal(balloon)
    if periodic_rate == 0:
        return payment * n + balloon
    discount = (1 + periodic_rate) ** -n
    return payment * (1 - discount) / periodic_rate + balloon * discount


@financial_context
def calculate_apr(
    principal: Decimal,
    periodic_payment: Decimal,
    number_of_periods: int,
    upfront_fees: Decimal = ZERO,
    *,
    periods_per_year: int = 12,
    balloon_payment: Decimal = ZERO,
    rounding_config: Optional[RoundingConfig] = None,
    config: Optional[EngineConfig] = None,
) -> Decimal:
    """Return the APR in percent, quantized to six decimal places.

    Parameters
    ----------
    principal: Decimal
        Face amount of the loan.
    periodic_payment: Decimal
        Level installment paid every period.
    number_of_periods: int
        Count of installments.
    upfront_fees: Decimal
        Finance charges deducted at origination.
    periods_per_year: int
        Installments per year (12 for monthly).
    balloon_payment: Decimal
        Lump sum due together with the last installment.

    Raises
    ------
    AprConvergenceError
        When the net amount financed is not positive, no rate inside the
        bracket reproduces it, or the iteration cap is reached first.
    """
    config = config or DEFAULT_CONFIG
    rounding_config = rounding_config or RoundingConfig()
    if number_of_periods < 1:
        raise ValueError("number_of_periods must be at least 1")
    if periods_per_year < 1:
        raise ValueError("periods_per_year must be at least 1")
    if Decimal(periodic_payment) <= 0:
        raise ValueError("periodic_payment must be greater than zero")

    net = Decimal(principal) - Decimal(upfront_fees)
    if net <= 0:
        raise _convergence_error("Upfront fees consume the whole principal", 0, net=str(net))

    ceiling = config.rate_ceiling if config.rate_ceiling is not None else DEFAULT_BRACKET_CEILING

    def residual(annual_rate: Decimal) -> Decimal:
        rate = annual_rate / (HUNDRED * periods_per_year)
        return present_value(periodic_payment, rate, number_of_periods, balloon_payment) - net

    low, high = ZERO, Decimal(ceiling)
    if residual(low) < 0:
        raise _convergence_error(
            "Payments do not repay the amount financed at any non-negative rate", 0, net=str(net)
        )
    if residual(high) > 0:
        raise _convergence_error(
            f"APR exceeds the bracket ceiling of {ceiling}%", 0, net=str(net), ceiling=str(ceiling)
        )

    target_half_width = config.apr_tolerance / 10
    for iteration in range(1, config.apr_max_iterations + 1):
        mid = (low + high) / 2
        value = residual(mid)
        logger.debug("APR iteration %d: rate=%s residual=%s", iteration, mid, value)
        if value == 0:
            return _quantize(mid, rounding_config)
        if value > 0:
            low = mid
        else:
            high = mid
        if (high - low) / 2 <= target_half_width:
            return _quantize((low + high) / 2, rounding_config)

    raise _convergence_error(
        "APR did not converge within the iteration limit",
        config.apr_max_iterations,
        low=str(low),
        high=str(high),
    )


def calculate_loan_apr(
    terms: LoanTerms,
    upfront_fees: Decimal = ZERO,
    config: Optional[EngineConfig] = None,
) -> Decimal:
    """APR of ``terms`` as scheduled, with ``upfront_fees`` paid at origination."""
    calculation = calculate_payment(terms)
    balloon = ZERO
    if terms.interest_type == InterestType.SIMPLE:
        balloon = Decimal(terms.principal)
    elif terms.has_balloon:
        balloon = terms.balloon_payment or ZERO
    return calculate_apr(
        terms.principal,
        calculation.periodic_payment,
        calculation.number_of_payments,
        upfront_fees,
        periods_per_year=frequency_periods(terms.payment_frequency),
        balloon_payment=balloon,
        rounding_config=terms.rounding_config,
        config=config,
    )


def _quantize(value: Decimal, rounding_config: RoundingConfig) -> Decimal:
    return round_money(value, RoundingConfig(rounding_config.method, APR_DECIMAL_PLACES))


def _convergence_error(message: str, iterations: int, **details) -> AprConvergenceError:
    logger.warning("APR solver failed: %s (%s)", message, details)
    return AprConvergenceError(message, iterations, details)
