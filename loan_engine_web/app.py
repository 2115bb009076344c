"""JSON calculation API over the loan engine.

Every endpoint is stateless: the request body carries the loan terms (and
event, where relevant) and the response carries the result. Amounts are
exchanged as strings; JSON numbers are read as ``Decimal`` so that ``4.5``
stays exact.
"""

import json
import logging
import os
from decimal import Decimal

from flask import Flask, jsonify, request

from loan_engine.apr import calculate_apr, calculate_loan_apr
from loan_engine.balloon import (
    detect_balloon_payments,
    find_largest_balloon_payment,
    regular_payment_amount,
    resolve_balloon,
    validate_balloon_compliance,
)
from loan_engine.config import EngineConfig
from loan_engine.data_models import DayCountConvention
from loan_engine.engine import generate_schedule
from loan_engine.events import apply_modification, apply_prepayment, get_payoff_amount
from loan_engine.exceptions import AprConvergenceError, InvalidEventError, InvalidLoanTermsError
from loan_engine.interest import calculate_interest
from loan_engine.payment import calculate_payment
from loan_engine.serialization import (
    balloon_to_dict,
    modification_from_dict,
    parse_bool,
    parse_int,
    payment_calculation_to_dict,
    prepayment_from_dict,
    rounding_config_from_dict,
    schedule_to_dict,
    strategy_result_to_dict,
    terms_from_dict,
    terms_to_dict,
    validation_errors_to_list,
)
from loan_engine.utils import decimal_from_str, parse_iso_date
from loan_engine.validator import validate

app = Flask(__name__)
app.config["ENGINE_CONFIG"] = EngineConfig.from_env()
app.logger.setLevel(os.environ.get("LOAN_ENGINE_LOG_LEVEL", "INFO").upper())


class BadRequest(ValueError):
    """Malformed request body."""


def _body() -> dict:
    raw = request.get_data(as_text=True)
    if not raw:
        raise BadRequest("Request body must be a JSON object")
    try:
        data = json.loads(raw, parse_float=Decimal)
    except json.JSONDecodeError as exc:
        raise BadRequest(f"Invalid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


def _section(data: dict, key: str) -> dict:
    value = data.get(key)
    if not isinstance(value, dict):
        raise BadRequest(f"'{key}' must be a JSON object")
    return value


def _checked_terms(data: dict):
    """Parse and validate ``data["terms"]``; invalid terms abort with 422."""
    terms = terms_from_dict(_section(data, "terms"))
    errors = validate(terms, app.config["ENGINE_CONFIG"])
    if errors:
        raise InvalidLoanTermsError(errors)
    return terms


@app.errorhandler(InvalidLoanTermsError)
def handle_invalid_terms(exc: InvalidLoanTermsError):
    app.logger.info("Rejected loan terms: %s", exc)
    return jsonify({"error": "INVALID_LOAN_TERMS", "errors": validation_errors_to_list(exc.errors)}), 422


@app.errorhandler(InvalidEventError)
def handle_invalid_event(exc: InvalidEventError):
    return jsonify({"error": "INVALID_EVENT", "errors": validation_errors_to_list(exc.errors)}), 422


@app.errorhandler(AprConvergenceError)
def handle_apr_failure(exc: AprConvergenceError):
    app.logger.warning("APR solver failed: %s", exc)
    return jsonify({"error": "APR_NOT_CONVERGED", "message": exc.message, "details": exc.details}), 422


@app.errorhandler(ValueError)
def handle_bad_input(exc: ValueError):
    return jsonify({"error": "BAD_REQUEST", "message": str(exc)}), 400


@app.get("/health")
def health():
    return jsonify({"status": "ok"})


@app.post("/api/validate")
def validate_terms():
    terms = terms_from_dict(_section(_body(), "terms"))
    errors = validate(terms, app.config["ENGINE_CONFIG"])
    return jsonify({"valid": not errors, "errors": validation_errors_to_list(errors)})


@app.post("/api/payment")
def payment():
    terms = _checked_terms(_body())
    return jsonify(payment_calculation_to_dict(calculate_payment(terms)))


@app.post("/api/schedule")
def schedule():
    terms = _checked_terms(_body())
    return jsonify(schedule_to_dict(generate_schedule(terms)))


@app.post("/api/interest")
def interest():
    data = _body()
    for key in ("principal", "annual_interest_rate", "start_date", "end_date"):
        if data.get(key) is None:
            raise BadRequest(f"Missing required field: {key}")
    convention = data.get("day_count_convention") or DayCountConvention.THIRTY_360.value
    result = calculate_interest(
        decimal_from_str(data["principal"]),
        decimal_from_str(data["annual_interest_rate"]),
        parse_iso_date(data["start_date"]),
        parse_iso_date(data["end_date"]),
        DayCountConvention(convention),
        rounding_config_from_dict(data.get("rounding_config")),
    )
    return jsonify(
        {
            "interest_amount": str(result.interest_amount),
            "day_count": result.day_count,
            "daily_rate": str(result.daily_rate),
        }
    )


@app.post("/api/apr")
def apr():
    """APR either for full loan terms or for a bare payment stream."""
    data = _body()
    fees = decimal_from_str(data.get("upfront_fees") or "0")
    config = app.config["ENGINE_CONFIG"]
    if "terms" in data:
        value = calculate_loan_apr(_checked_terms(data), fees, config)
    else:
        for key in ("principal", "periodic_payment", "number_of_periods"):
            if data.get(key) is None:
                raise BadRequest(f"Missing required field: {key}")
        value = calculate_apr(
            decimal_from_str(data["principal"]),
            decimal_from_str(data["periodic_payment"]),
            parse_int(data["number_of_periods"]),
            fees,
            periods_per_year=parse_int(data.get("periods_per_year") or 12),
            rounding_config=rounding_config_from_dict(data.get("rounding_config")),
            config=config,
        )
    return jsonify({"apr": str(value)})


@app.post("/api/prepayment")
def prepayment():
    data = _body()
    terms = _checked_terms(data)
    event = prepayment_from_dict(_section(data, "event"))
    original = generate_schedule(terms)
    result = apply_prepayment(original, event)
    payload = schedule_to_dict(result)
    payload["interest_saved"] = str(original.total_interest - result.total_interest)
    return jsonify(payload)


@app.post("/api/modification")
def modification():
    """New terms (and their schedule) after a rate, term or principal change."""
    data = _body()
    terms = _checked_terms(data)
    event = modification_from_dict(_section(data, "event"))
    if data.get("current_balance") is not None:
        balance = decimal_from_str(data["current_balance"])
    else:
        balance = get_payoff_amount(generate_schedule(terms), event.effective_date, False)
    modified = apply_modification(terms, event, balance)
    errors = validate(modified, app.config["ENGINE_CONFIG"])
    if errors:
        raise InvalidLoanTermsError(errors)
    return jsonify({"terms": terms_to_dict(modified), "schedule": schedule_to_dict(generate_schedule(modified))})


@app.post("/api/payoff")
def payoff():
    data = _body()
    terms = _checked_terms(data)
    if data.get("as_of") is None:
        raise BadRequest("Missing required field: as_of")
    include = data.get("include_accrued_interest")
    schedule = generate_schedule(terms)
    for item in data.get("prepayments") or ():
        if not isinstance(item, dict):
            raise BadRequest("'prepayments' must be a list of JSON objects")
        schedule = apply_prepayment(schedule, prepayment_from_dict(item))
    amount = get_payoff_amount(
        schedule,
        parse_iso_date(data["as_of"]),
        True if include is None else parse_bool(include),
    )
    return jsonify({"payoff_amount": str(amount)})


@app.post("/api/balloons")
def balloons():
    """Balloon installments of a schedule and a proposed restructuring."""
    data = _body()
    terms = _checked_terms(data)
    config = app.config["ENGINE_CONFIG"]
    schedule = generate_schedule(terms)
    regular = regular_payment_amount(schedule)
    largest = find_largest_balloon_payment(schedule, config)
    payload = {
        "regular_payment": str(regular) if regular is not None else None,
        "balloons": [balloon_to_dict(b) for b in detect_balloon_payments(schedule, config)],
        "violations": validate_balloon_compliance(largest, config) if largest else [],
        "resolution": None,
    }
    if largest is not None:
        payload["resolution"] = strategy_result_to_dict(resolve_balloon(schedule, largest, config=config))
    return jsonify(payload)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.logger.info("Starting loan engine API...")
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", "8710")), debug=os.environ.get("FLASK_DEBUG") == "1")
