"""Engine configuration.

Business limits used by the validator and the APR solver live in a single
immutable :class:`EngineConfig`. The engine never reads configuration on its
own: callers pass a config explicitly (or accept :data:`DEFAULT_CONFIG`).
Outer layers such as the web app build one from environment variables with
:meth:`EngineConfig.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional

from .utils import decimal_from_str

ENV_PREFIX = "LOAN_ENGINE_"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class EngineConfig:
    """Limits and solver settings.

    Attributes
    ----------
    rate_ceiling: Decimal | None
        Highest accepted annual rate in percent. ``None`` disables the check.
        Also the upper end of the APR solver's bracket.
    max_principal: Decimal | None
        Largest accepted principal. ``None`` disables the check.
    max_term_months: int | None
        Longest accepted term. ``None`` disables the check.
    allow_zero_rate: bool
        Whether ``validate`` accepts a 0 % rate (promotional loans).
    apr_tolerance: Decimal
        Required APR precision in percentage points.
    apr_max_iterations: int
        Hard cap on bisection steps.
    balloon_detection_enabled: bool
        Whether schedules are scanned for balloon installments at all.
    balloon_percentage_threshold: Decimal
        Percent above the regular installment that marks a balloon.
    balloon_absolute_threshold: Decimal
        Amount above the regular installment that marks a balloon.
    balloon_threshold_logic: str
        ``"OR"`` (either threshold) or ``"AND"`` (both thresholds).
    max_balloon_percentage: Decimal | None
        Largest compliant excess over the regular installment, in percent.
    max_balloon_amount: Decimal | None
        Largest compliant balloon installment.
    max_extension_months: int
        Longest term extension offered to retire a balloon.
    """

    rate_ceiling: Optional[Decimal] = Decimal("100")
    max_principal: Optional[Decimal] = Decimal("100000000")
    max_term_months: Optional[int] = 600
    allow_zero_rate: bool = False
    apr_tolerance: Decimal = Decimal("0.0001")
    apr_max_iterations: int = 200
    balloon_detection_enabled: bool = True
    balloon_percentage_threshold: Decimal = Decimal("50")
    balloon_absolute_threshold: Decimal = Decimal("500")
    balloon_threshold_logic: str = "OR"
    max_balloon_percentage: Optional[Decimal] = Decimal("200")
    max_balloon_amount: Optional[Decimal] = None
    max_extension_months: int = 24

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Build a config from ``LOAN_ENGINE_*`` environment variables.

        Unset variables keep their defaults. An empty string for one of the
        optional limits disables that limit.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def optional_decimal(name: str, default: Optional[Decimal]) -> Optional[Decimal]:
            raw = env.get(ENV_PREFIX + name)
            if raw is None:
                return default
            raw = raw.strip()
            return decimal_from_str(raw) if raw else None

        def optional_int(name: str, default: Optional[int]) -> Optional[int]:
            raw = env.get(ENV_PREFIX + name)
            if raw is None:
                return default
            raw = raw.strip()
            return int(raw) if raw else None

        allow_zero = env.get(ENV_PREFIX + "ALLOW_ZERO_RATE")
        tolerance = env.get(ENV_PREFIX + "APR_TOLERANCE")
        iterations = env.get(ENV_PREFIX + "APR_MAX_ITERATIONS")
        detection = env.get(ENV_PREFIX + "BALLOON_DETECTION")
        percentage = env.get(ENV_PREFIX + "BALLOON_PERCENTAGE_THRESHOLD")
        absolute = env.get(ENV_PREFIX + "BALLOON_ABSOLUTE_THRESHOLD")
        logic = env.get(ENV_PREFIX + "BALLOON_THRESHOLD_LOGIC")
        extension = env.get(ENV_PREFIX + "MAX_EXTENSION_MONTHS")
        return cls(
            rate_ceiling=optional_decimal("RATE_CEILING", defaults.rate_ceiling),
            max_principal=optional_decimal("MAX_PRINCIPAL", defaults.max_principal),
            max_term_months=optional_int("MAX_TERM_MONTHS", defaults.max_term_months),
            allow_zero_rate=(
                allow_zero.strip().lower() in _TRUTHY if allow_zero is not None else defaults.allow_zero_rate
            ),
            apr_tolerance=decimal_from_str(tolerance) if tolerance else defaults.apr_tolerance,
            apr_max_iterations=int(iterations) if iterations else defaults.apr_max_iterations,
            balloon_detection_enabled=(
                detection.strip().lower() in _TRUTHY if detection is not None else defaults.balloon_detection_enabled
            ),
            balloon_percentage_threshold=(
                decimal_from_str(percentage) if percentage else defaults.balloon_percentage_threshold
            ),
            balloon_absolute_threshold=decimal_from_str(absolute) if absolute else defaults.balloon_absolute_threshold,
            balloon_threshold_logic=logic.strip().upper() if logic else defaults.balloon_threshold_logic,
            max_balloon_percentage=optional_decimal("MAX_BALLOON_PERCENTAGE", defaults.max_balloon_percentage),
            max_balloon_amount=optional_decimal("MAX_BALLOON_AMOUNT", defaults.max_balloon_amount),
            max_extension_months=int(extension) if extension else defaults.max_extension_months,
        )


DEFAULT_CONFIG = EngineConfig()

# Limits applied before a calculation runs: only what keeps the arithmetic
# meaningful, leaving business ceilings and the zero-rate policy to validate().
STRUCTURAL_LIMITS = EngineConfig(
    rate_ceiling=None,
    max_principal=None,
    max_term_months=None,
    allow_zero_rate=True,
)
