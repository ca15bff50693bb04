"""
Pytest configuration and shared fixtures.
"""

import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from underwriter.main import app
from underwriter.calculations.proforma import ProformaAssumptions
from underwriter.calculations.t12 import T12Month


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def flat_deal():
    """8% cap deal with no growth, no ramp, exit at purchase cap."""
    return ProformaAssumptions(
        current_noi=500000,
        current_occupancy=0.85,
        purchase_price=6250000,
        down_payment_pct=0.30,
        interest_rate=0.08,
        loan_term_years=25,
        annual_rent_growth=0.0,
        annual_expense_inflation=0.0,
        target_occupancy=0.85,
        occupancy_ramp_years=0,
        hold_years=5,
        refi_year=None,
        refi_interest_rate=None,
        refi_loan_to_value=0.75,
        exit_year=5,
        exit_cap_rate=0.08,
    )


@pytest.fixture
def value_add_deal():
    """Lease-up deal with a year-2 refinance and a year-5 sale."""
    return ProformaAssumptions(
        current_noi=500000,
        current_occupancy=0.80,
        purchase_price=6250000,
        down_payment_pct=0.30,
        interest_rate=0.08,
        loan_term_years=25,
        annual_rent_growth=0.03,
        annual_expense_inflation=0.025,
        target_occupancy=0.93,
        occupancy_ramp_years=2,
        hold_years=5,
        refi_year=2,
        refi_interest_rate=0.065,
        refi_loan_to_value=0.75,
        exit_year=5,
        exit_cap_rate=0.085,
    )


def make_month(label: str, **overrides) -> T12Month:
    """$100k revenue, $70k expense month at 90% occupancy."""
    values = dict(
        month=label,
        room_rent=90000,
        loc_fees=8000,
        other_income=2000,
        occupied_units=45,
        total_units=50,
        payroll=40000,
        utilities=10000,
        other_expenses=20000,
    )
    values.update(overrides)
    return T12Month(**values)


@pytest.fixture
def t12_months():
    """Twelve consecutive months of 2024 actuals."""
    return [make_month(f"2024-{m:02d}") for m in range(1, 13)]
