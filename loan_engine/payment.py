"""Level-payment calculations.

This module solves for the installment amount of a loan. Three shapes are
supported:

* fully amortizing loans use the annuity formula

      payment = P * (r * (1 + r)^n) / ((1 + r)^n - 1)

  where ``r`` is the per-period rate (annual rate / periods per year) and
  ``n`` the number of payments; a zero rate simplifies to ``P / n``;
* balloon loans amortize only ``P - B`` and add the interest carried by the
  un-amortized balloon ``B``, so the installment still covers interest on the
  full outstanding balance;
* interest-only (``simple``) loans pay ``P * r`` each period and repay the
  principal with the last installment.

Installments are returned unrounded by the helpers; :func:`calculate_payment`
rounds once at the end so that totals are not built from rounded pieces.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from .data_models import InterestType, LoanTerms, PaymentCalculation, PaymentFrequency
from .dates import number_of_payments, periods_per_year
from .rounding import ZERO, financial_context, round_money
from .validator import require_computable

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


def periodic_rate(annual_rate: Decimal, frequency: PaymentFrequency) -> Decimal:
    """Per-period rate as a fraction: annual percent / (periods per year x 100)."""
    return Decimal(annual_rate) / (HUNDRED * periods_per_year(frequency))


def amortizing_payment(
    principal: Decimal,
    annual_rate: Decimal,
    payments: int,
    frequency: PaymentFrequency,
) -> Decimal:
    """Return the unrounded level payment that retires ``principal``."""
    if payments <= 0:
        raise ValueError("Number of payments must be positive")
    principal = Decimal(principal)
    if annual_rate == 0:
        return principal / payments
    rate = periodic_rate(annual_rate, frequency)
    factor = (1 + rate) ** payments
    return principal * (rate * factor) / (factor - 1)


def interest_only_payment(principal: Decimal, annual_rate: Decimal, frequency: PaymentFrequency) -> Decimal:
    return Decimal(principal) * periodic_rate(annual_rate, frequency)


def balloon_amortizing_payment(
    principal: Decimal,
    annual_rate: Decimal,
    payments: int,
    balloon: Decimal,
    frequency: PaymentFrequency,
) -> Decimal:
    """Installment for a loan whose last payment includes ``balloon``.

    Only ``principal - balloon`` amortizes; the balloon portion still bears
    interest every period.
    """
    amortizing_base = Decimal(principal) - Decimal(balloon)
    payment = amortizing_payment(amortizing_base, annual_rate, payments, frequency)
    return payment + Decimal(balloon) * periodic_rate(annual_rate, frequency)


def installment_amount(terms: LoanTerms, payments: Optional[int] = None) -> Decimal:
    """Return the unrounded regular installment for ``terms``."""
    if payments is None:
        payments = number_of_payments(terms.term_months, terms.payment_frequency)
    if terms.interest_type == InterestType.SIMPLE:
        return interest_only_payment(terms.principal, terms.annual_interest_rate, terms.payment_frequency)
    if terms.has_balloon:
        return balloon_amortizing_payment(
            terms.principal,
            terms.annual_interest_rate,
            payments,
            terms.balloon_payment or ZERO,
            terms.payment_frequency,
        )
    return amortizing_payment(terms.principal, terms.annual_interest_rate, payments, terms.payment_frequency)


@financial_context
def calculate_payment(terms: LoanTerms) -> PaymentCalculation:
    """Return the periodic payment and lifetime totals for ``terms``.

    Raises
    ------
    InvalidLoanTermsError
        If the terms are structurally uncomputable (see
        :func:`loan_engine.validator.require_computable`).
    """
    require_computable(terms)
    payments = number_of_payments(terms.term_months, terms.payment_frequency)
    payment = installment_amount(terms, payments)

    total = payment * payments
    if terms.interest_type == InterestType.SIMPLE:
        total += Decimal(terms.principal)
    elif terms.has_balloon:
        total += terms.balloon_payment or ZERO
    total_interest = total - Decimal(terms.principal)

    rounding = terms.rounding_config
    result = PaymentCalculation(
        periodic_payment=round_money(payment, rounding),
        total_interest=round_money(total_interest, rounding),
        total_payments=round_money(total, rounding),
        number_of_payments=payments,
    )
    logger.debug(
        "Calculated %s payment %s over %d periods",
        terms.payment_frequency,
        result.periodic_payment,
        payments,
    )
    return result
