"""Conversion between engine values and JSON-friendly structures.

Decimals are written as strings and dates as ISO ``YYYY-MM-DD`` strings so a
round trip through JSON or CSV never loses a cent. Reading goes through
:mod:`loan_engine.utils`, which refuses floats for the same reason.
"""

from __future__ import annotations

import csv
import json
from dataclasses import asdict
from datetime import date
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type

from .balloon import BalloonPayment, StrategyResult
from .data_models import (
    DayCountConvention,
    InterestType,
    LoanTerms,
    ModificationEvent,
    PaymentCalculation,
    PaymentFrequency,
    PaymentRecord,
    PrepaymentEvent,
    RoundingConfig,
    RoundingMethod,
    Schedule,
    ValidationError,
)
from .utils import decimal_from_str, parse_iso_date

SCHEDULE_CSV_HEADER = [
    "Payment",
    "Due_Date",
    "Beginning_Balance",
    "Total_Payment",
    "Principal",
    "Interest",
    "Remaining_Balance",
    "Cumulative_Interest",
    "Cumulative_Principal",
]


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _enum(enum_cls: Type[Enum], raw: Any, default: Enum) -> Any:
    """Return the member for a known value; unknown values pass through for the validator."""
    if raw is None or raw == "":
        return default
    for member in enum_cls:
        if member.value == raw:
            return member
    return raw


def _optional(data: Mapping[str, Any], key: str, parse) -> Any:
    raw = data.get(key)
    if raw is None or raw == "":
        return None
    return parse(raw)


def _required(data: Mapping[str, Any], key: str) -> Any:
    if key not in data or data[key] is None:
        raise ValueError(f"Missing required field: {key}")
    return data[key]


def parse_int(value: Any) -> int:
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Invalid integer: {value!r}")
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid integer: {value}") from exc


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no"):
        return False
    raise ValueError(f"Invalid boolean: {value}")


def rounding_config_to_dict(config: RoundingConfig) -> Dict[str, Any]:
    return {"method": _plain(config.method), "decimal_places": config.decimal_places}


def rounding_config_from_dict(data: Optional[Mapping[str, Any]]) -> RoundingConfig:
    if not data:
        return RoundingConfig()
    if not isinstance(data, Mapping):
        raise ValueError("rounding_config must be an object")
    defaults = RoundingConfig()
    method = _enum(RoundingMethod, data.get("method"), defaults.method)
    places = data.get("decimal_places", defaults.decimal_places)
    return RoundingConfig(method=method, decimal_places=parse_int(places))


def terms_to_dict(terms: LoanTerms) -> Dict[str, Any]:
    return {
        "principal": _plain(terms.principal),
        "annual_interest_rate": _plain(terms.annual_interest_rate),
        "term_months": terms.term_months,
        "start_date": _plain(terms.start_date),
        "payment_frequency": _plain(terms.payment_frequency),
        "interest_type": _plain(terms.interest_type),
        "day_count_convention": _plain(terms.day_count_convention),
        "first_payment_date": _plain(terms.first_payment_date),
        "balloon_payment": _plain(terms.balloon_payment),
        "rounding_config": rounding_config_to_dict(terms.rounding_config),
    }


def terms_from_dict(data: Mapping[str, Any]) -> LoanTerms:
    """Build :class:`LoanTerms` from a JSON-style mapping.

    Raises ``ValueError`` for missing or unparsable fields. Enumeration values
    are passed through as given so that the validator can report unknown
    ones together with any other problem.
    """
    return LoanTerms(
        principal=decimal_from_str(_required(data, "principal")),
        annual_interest_rate=decimal_from_str(_required(data, "annual_interest_rate")),
        term_months=parse_int(_required(data, "term_months")),
        start_date=parse_iso_date(_required(data, "start_date")),
        payment_frequency=_enum(PaymentFrequency, data.get("payment_frequency"), PaymentFrequency.MONTHLY),
        interest_type=_enum(InterestType, data.get("interest_type"), InterestType.AMORTIZED),
        day_count_convention=_enum(
            DayCountConvention, data.get("day_count_convention"), DayCountConvention.THIRTY_360
        ),
        first_payment_date=_optional(data, "first_payment_date", parse_iso_date),
        balloon_payment=_optional(data, "balloon_payment", decimal_from_str),
        rounding_config=rounding_config_from_dict(data.get("rounding_config")),
    )


def payment_record_to_dict(record: PaymentRecord) -> Dict[str, Any]:
    return {key: _plain(value) for key, value in asdict(record).items()}


def schedule_to_dict(schedule: Schedule) -> Dict[str, Any]:
    return {
        "loan_terms": terms_to_dict(schedule.loan_terms),
        "periodic_payment": _plain(schedule.periodic_payment),
        "total_principal": _plain(schedule.total_principal),
        "total_interest": _plain(schedule.total_interest),
        "total_payments": _plain(schedule.total_payments),
        "prepaid_principal": _plain(schedule.prepaid_principal),
        "prepayments": [prepayment_to_dict(p) for p in schedule.prepayments],
        "last_payment_date": _plain(schedule.last_payment_date),
        "number_of_payments": len(schedule),
        "payments": [payment_record_to_dict(r) for r in schedule.payments],
    }


def schedule_from_dict(data: Mapping[str, Any]) -> Schedule:
    """Rebuild a :class:`Schedule` written by :func:`schedule_to_dict`."""
    records = []
    for item in _required(data, "payments"):
        records.append(
            PaymentRecord(
                payment_number=parse_int(item["payment_number"]),
                due_date=parse_iso_date(item["due_date"]),
                principal=decimal_from_str(item["principal"]),
                interest=decimal_from_str(item["interest"]),
                total_payment=decimal_from_str(item["total_payment"]),
                beginning_balance=decimal_from_str(item["beginning_balance"]),
                remaining_balance=decimal_from_str(item["remaining_balance"]),
                cumulative_interest=decimal_from_str(item["cumulative_interest"]),
                cumulative_principal=decimal_from_str(item["cumulative_principal"]),
            )
        )
    return Schedule(
        payments=tuple(records),
        total_principal=decimal_from_str(_required(data, "total_principal")),
        total_interest=decimal_from_str(_required(data, "total_interest")),
        total_payments=decimal_from_str(_required(data, "total_payments")),
        last_payment_date=parse_iso_date(_required(data, "last_payment_date")),
        periodic_payment=decimal_from_str(_required(data, "periodic_payment")),
        loan_terms=terms_from_dict(_required(data, "loan_terms")),
        prepaid_principal=decimal_from_str(data.get("prepaid_principal") or "0"),
        prepayments=tuple(prepayment_from_dict(p) for p in data.get("prepayments") or ()),
    )


def payment_calculation_to_dict(calculation: PaymentCalculation) -> Dict[str, Any]:
    return {key: _plain(value) for key, value in asdict(calculation).items()}


def validation_errors_to_list(errors: Iterable[ValidationError]) -> List[Dict[str, str]]:
    return [{"field": e.field, "code": _plain(e.code), "message": e.message} for e in errors]


def prepayment_to_dict(event: PrepaymentEvent) -> Dict[str, Any]:
    return {
        "amount": _plain(event.amount),
        "date": _plain(event.date),
        "apply_to_principal": event.apply_to_principal,
    }


def balloon_to_dict(balloon: BalloonPayment) -> Dict[str, Any]:
    return {key: _plain(value) for key, value in asdict(balloon).items()}


def strategy_result_to_dict(result: StrategyResult) -> Dict[str, Any]:
    return {
        "strategy": _plain(result.strategy),
        "success": result.success,
        "message": result.message,
        "term_months": result.term_months,
        "warnings": list(result.warnings),
        "schedule": schedule_to_dict(result.schedule) if result.schedule is not None else None,
    }


def prepayment_from_dict(data: Mapping[str, Any]) -> PrepaymentEvent:
    apply = data.get("apply_to_principal")
    return PrepaymentEvent(
        amount=decimal_from_str(_required(data, "amount")),
        date=parse_iso_date(_required(data, "date")),
        apply_to_principal=True if apply is None else parse_bool(apply),
    )


def modification_from_dict(data: Mapping[str, Any]) -> ModificationEvent:
    return ModificationEvent(
        effective_date=parse_iso_date(_required(data, "effective_date")),
        principal_adjustment=_optional(data, "principal_adjustment", decimal_from_str),
        new_rate=_optional(data, "new_rate", decimal_from_str),
        new_term_months=_optional(data, "new_term_months", parse_int),
    )


def event_from_dict(data: Mapping[str, Any]):
    """Dispatch on ``data["type"]`` (``prepayment`` or ``modification``)."""
    kind = str(data.get("type", "")).strip().lower()
    if kind == "prepayment":
        return prepayment_from_dict(data)
    if kind == "modification":
        return modification_from_dict(data)
    raise ValueError(f"Unknown event type: {data.get('type')!r} (expected 'prepayment' or 'modification')")


def write_schedule_json(path: Path, schedule: Schedule) -> None:
    """Export a schedule and its totals to a JSON file."""
    with Path(path).open("w", encoding="utf-8") as f:
        json.dump(schedule_to_dict(schedule), f, indent=2)


def write_schedule_csv(path: Path, schedule: Schedule) -> None:
    """Export the schedule rows to a CSV file."""
    with Path(path).open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(SCHEDULE_CSV_HEADER)
        for r in schedule.payments:
            writer.writerow(
                [
                    r.payment_number,
                    r.due_date.isoformat(),
                    str(r.beginning_balance),
                    str(r.total_payment),
                    str(r.principal),
                    str(r.interest),
                    str(r.remaining_balance),
                    str(r.cumulative_interest),
                    str(r.cumulative_principal),
                ]
            )
