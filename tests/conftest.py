# tests/conftest.py
from __future__ import annotations

import random
from datetime import date
from decimal import Decimal

import pytest

from loan_engine.data_models import LoanTerms
from loan_engine.engine import generate_schedule


# -------- Global deterministic seed --------
@pytest.fixture(autouse=True, scope="session")
def _seed_session():
    random.seed(1337)
    yield


# -------- Loan fixtures --------
@pytest.fixture
def make_terms():
    """Factory for loan terms: 10 000 at 6 % over 12 months from 2024-01-01 unless overridden."""

    def _factory(**overrides):
        values = dict(
            principal=Decimal("10000"),
            annual_interest_rate=Decimal("6"),
            term_months=12,
            start_date=date(2024, 1, 1),
        )
        values.update(overrides)
        return LoanTerms(**values)

    return _factory


@pytest.fixture
def terms(make_terms):
    return make_terms()


@pytest.fixture
def schedule(terms):
    return generate_schedule(terms)


@pytest.fixture
def terms_payload():
    """JSON body fragment matching the default ``terms`` fixture."""
    return {
        "principal": "10000",
        "annual_interest_rate": "6",
        "term_months": 12,
        "start_date": "2024-01-01",
    }
