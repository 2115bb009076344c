"""Parsing helpers shared by the engine's outer layers.

These functions turn user or transport input (CLI options, JSON fields,
environment variables) into exact Python values: ``Decimal`` for money and
rates and ``datetime.date`` for dates. Floats are never used as an
intermediate step, so ``"0.1"`` stays exactly one tenth.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any


def decimal_from_str(value: Any) -> Decimal:
    """Convert a numeric string (or int/Decimal) into a ``Decimal``.

    Thousands separators are stripped. Floats are rejected because they
    cannot represent most decimal amounts exactly. Raises ``ValueError`` if
    conversion fails.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Invalid numeric value: {value!r} (use a string or Decimal)")
    if isinstance(value, (Decimal, int)):
        return Decimal(value)
    try:
        cleaned = str(value).strip().replace(",", "").replace("_", "")
        result = Decimal(cleaned)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def parse_amount(value: str) -> Decimal:
    """Parse a money amount with optional ``k``/``m`` shorthand.

    ``"500k"`` means 500 000 and ``"1.2m"`` means 1 200 000.
    """
    text = str(value).strip().lower().replace(",", "")
    factor = Decimal(1)
    if text.endswith("k"):
        factor = Decimal(1_000)
        text = text[:-1]
    elif text.endswith("m"):
        factor = Decimal(1_000_000)
        text = text[:-1]
    return decimal_from_str(text) * factor


def parse_percent(value: str) -> Decimal:
    """Parse an annual rate in percent (``"4.5"`` or ``"4.5%"``)."""
    text = str(value).strip()
    if text.endswith("%"):
        text = text[:-1]
    return decimal_from_str(text)


def parse_iso_date(value: Any) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date``.

    ``date`` instances pass through unchanged.
    """
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value}") from exc
