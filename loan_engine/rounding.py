"""Rounding policy and decimal context for money arithmetic.

Every primitive in the engine receives a :class:`RoundingConfig` and rounds
through :func:`round_money`; there is no process-wide default that a caller
could change underneath another caller.

Intermediate arithmetic runs in :data:`FINANCIAL_CONTEXT` (34 significant
digits). Public entry points are wrapped with :func:`financial_context`, which
opens a *local* copy of that context, so the caller's thread-local decimal
context is neither consulted nor modified.
"""

from __future__ import annotations

import functools
from decimal import (
    ROUND_CEILING,
    ROUND_FLOOR,
    ROUND_HALF_DOWN,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    Context,
    Decimal,
    localcontext,
)
from typing import Callable, Optional, TypeVar

from .data_models import RoundingConfig, RoundingMethod

F = TypeVar("F", bound=Callable)

FINANCIAL_CONTEXT = Context(prec=34, rounding=ROUND_HALF_EVEN)

ZERO = Decimal(0)


def financial_context(func: F) -> F:
    """Run ``func`` inside a private copy of :data:`FINANCIAL_CONTEXT`."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with localcontext(FINANCIAL_CONTEXT):
            return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def decimal_rounding_mode(method: RoundingMethod, value: Decimal) -> str:
    """Return the ``decimal`` rounding constant for ``method`` at ``value``.

    The ``decimal`` module only knows ties away from / toward zero, so the
    signed tie rules (HALF_UP toward +inf, HALF_DOWN toward -inf) depend on
    the sign of the value being rounded.
    """
    method = RoundingMethod(method)
    negative = value.is_signed()
    if method is RoundingMethod.BANKERS:
        return ROUND_HALF_EVEN
    if method is RoundingMethod.HALF_UP:
        return ROUND_HALF_DOWN if negative else ROUND_HALF_UP
    if method is RoundingMethod.HALF_DOWN:
        return ROUND_HALF_UP if negative else ROUND_HALF_DOWN
    if method is RoundingMethod.UP:
        return ROUND_CEILING
    if method is RoundingMethod.DOWN:
        return ROUND_FLOOR
    if method is RoundingMethod.HALF_AWAY:
        return ROUND_HALF_UP
    return ROUND_HALF_DOWN  # HALF_TOWARD


def quantum(decimal_places: int) -> Decimal:
    """Smallest representable step at ``decimal_places`` (``2`` -> ``0.01``)."""
    return Decimal(1).scaleb(-decimal_places)


def round_money(value: Decimal, config: Optional[RoundingConfig] = None) -> Decimal:
    """Round ``value`` according to ``config`` (HALF_UP to cents by default)."""
    config = config or RoundingConfig()
    mode = decimal_rounding_mode(config.method, value)
    with localcontext(FINANCIAL_CONTEXT):
        return value.quantize(quantum(config.decimal_places), rounding=mode)
