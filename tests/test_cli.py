import json
from decimal import Decimal

import pytest
from click.testing import CliRunner

from loan_engine.main import cli

LOAN = ["-p", "10000", "-r", "6", "-t", "12", "-s", "2024-01-01"]


@pytest.fixture
def runner():
    return CliRunner()


def test_payment(runner):
    result = runner.invoke(cli, ["payment", "-p", "200k", "-r", "4.5%", "-t", "360", "-s", "2024-01-01"])
    assert result.exit_code == 0, result.output
    assert "Periodic payment   : 1013.37" in result.output
    assert "Total interest     : 164813.42" in result.output
    assert "Number of payments : 360" in result.output


def test_schedule_prints_table(runner):
    result = runner.invoke(cli, ["schedule", *LOAN])
    assert result.exit_code == 0, result.output
    assert "Periodic payment   : 860.66" in result.output
    assert "1\t2024-02-01\t10000\t860.66\t810.66\t50.00\t9189.34" in result.output
    assert "12\t2025-01-01" in result.output


def test_long_schedule_is_truncated(runner):
    result = runner.invoke(cli, ["schedule", "-p", "200000", "-r", "4.5", "-t", "360", "-s", "2024-01-01"])
    assert result.exit_code == 0, result.output
    assert "Schedule has 360 rows; showing first 120 rows." in result.output


def test_schedule_json_export(runner, tmp_path):
    path = tmp_path / "out.json"
    result = runner.invoke(cli, ["schedule", *LOAN, "--output", str(path)])
    assert result.exit_code == 0, result.output
    assert f"Schedule exported to {path}" in result.output
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["number_of_payments"] == 12
    assert data["payments"][-1]["remaining_balance"] == "0.00"


def test_schedule_csv_export(runner, tmp_path):
    path = tmp_path / "out.csv"
    result = runner.invoke(cli, ["schedule", *LOAN, "--output", str(path)])
    assert result.exit_code == 0, result.output
    assert len(path.read_text(encoding="utf-8").splitlines()) == 13


def test_unsupported_export_format(runner, tmp_path):
    result = runner.invoke(cli, ["schedule", *LOAN, "--output", str(tmp_path / "out.xlsx")])
    assert result.exit_code == 2
    assert "Unsupported output format" in result.output


def test_validate_ok(runner):
    result = runner.invoke(cli, ["validate", *LOAN])
    assert result.exit_code == 0
    assert "Loan terms are valid" in result.output


def test_validate_reports_every_problem(runner):
    result = runner.invoke(
        cli,
        ["validate", "-p", "0", "-r", "-1", "-t", "12", "-s", "2024-01-01", "--first-payment-date", "2023-12-01"],
    )
    assert result.exit_code == 1
    assert "principal [INVALID_VALUE]" in result.output
    assert "annual_interest_rate [OUT_OF_RANGE]" in result.output
    assert "first_payment_date [INCONSISTENT_DATE]" in result.output


def test_invalid_terms_stop_calculations(runner):
    result = runner.invoke(cli, ["payment", "-p", "10000", "-r", "6", "-t", "0", "-s", "2024-01-01"])
    assert result.exit_code == 1
    assert "term_months [OUT_OF_RANGE]" in result.output


def test_unparsable_amount(runner):
    result = runner.invoke(cli, ["payment", "-p", "ten", "-r", "6", "-t", "12", "-s", "2024-01-01"])
    assert result.exit_code == 2
    assert "--principal" in result.output


@pytest.mark.parametrize("day_count,expected", [("30/360", "41.67"), ("actual/365", "41.10")])
def test_interest(runner, day_count, expected):
    result = runner.invoke(
        cli,
        ["interest", "-p", "10000", "-r", "5", "--from", "2024-01-01", "--to", "2024-01-31", "--day-count", day_count],
    )
    assert result.exit_code == 0, result.output
    assert f"Interest   : {expected}" in result.output
    assert "Days       : 30" in result.output


def test_interest_rejects_reversed_dates(runner):
    result = runner.invoke(cli, ["interest", "-p", "10000", "-r", "5", "--from", "2024-02-01", "--to", "2024-01-01"])
    assert result.exit_code == 2


def test_apr(runner):
    result = runner.invoke(cli, ["apr", *LOAN])
    assert result.exit_code == 0, result.output
    value = Decimal(result.output.strip().split("APR: ")[1].rstrip("%"))
    assert abs(value - Decimal("6")) < Decimal("0.01")


def test_apr_with_fees_consuming_principal(runner):
    result = runner.invoke(cli, ["apr", *LOAN, "--fees", "10000"])
    assert result.exit_code == 1
    assert "Upfront fees consume the whole principal" in result.output


def test_payoff(runner):
    result = runner.invoke(cli, ["payoff", *LOAN, "--as-of", "2024-02-16"])
    assert result.exit_code == 0, result.output
    assert "Payoff amount: 9212.31" in result.output

    result = runner.invoke(cli, ["payoff", *LOAN, "--as-of", "2024-02-16", "--no-accrued"])
    assert "Payoff amount: 9189.34" in result.output


def test_prepay(runner):
    result = runner.invoke(cli, ["prepay", *LOAN, "--amount", "2000", "--on", "2024-03-01"])
    assert result.exit_code == 0, result.output
    assert "Prepaid principal  : 2000" in result.output
    assert "Interest saved" in result.output
    assert "Payments saved     : 0" not in result.output


def test_prepay_rejects_negative_amount(runner):
    result = runner.invoke(cli, ["prepay", *LOAN, "--amount", "-5", "--on", "2024-03-01"])
    assert result.exit_code == 2


def test_verbose_flag(runner):
    result = runner.invoke(cli, ["-v", "payment", *LOAN])
    assert result.exit_code == 0, result.output
    assert "Periodic payment   : 860.66" in result.output


def test_payoff_after_prepayment(runner):
    result = runner.invoke(
        cli, ["payoff", *LOAN, "--as-of", "2024-02-20", "--no-accrued", "--prepayment", "2024-02-16:1000"]
    )
    assert result.exit_code == 0, result.output
    assert "Payoff amount: 8189.34" in result.output


def test_payoff_rejects_malformed_prepayment(runner):
    result = runner.invoke(cli, ["payoff", *LOAN, "--as-of", "2024-02-20", "--prepayment", "1000"])
    assert result.exit_code == 2
    assert "YYYY-MM-DD:AMOUNT" in result.output


def test_balloons(runner):
    result = runner.invoke(cli, ["balloons", *LOAN])
    assert result.exit_code == 0, result.output
    assert "No balloon installments" in result.output

    result = runner.invoke(cli, ["balloons", *LOAN, "--interest-type", "simple"])
    assert result.exit_code == 0, result.output
    assert "Payment 12 on 2025-01-01: 10050.00 (regular 50.00, +10000.00, +20000.00%)" in result.output
    assert "Violation: " in result.output
    assert "Proposal: Cannot retire the balloon within 12 months" in result.output
