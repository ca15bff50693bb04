"""
Proforma assumption defaults.

Resolves a complete ProformaAssumptions from what is known about a deal
(asking price, loan terms, T12 actuals) and whatever growth and exit
parameters the user chose. Anything not supplied falls back to house
defaults.
"""

from dataclasses import dataclass
from typing import Optional

from underwriter.calculations.napkin import calculate_cap_rate
from underwriter.calculations.proforma import BalanceMethod, ProformaAssumptions
from underwriter.calculations.t12 import T12Totals

DEFAULT_OCCUPANCY = 0.85
DEFAULT_PURCHASE_CAP_RATE = 0.08
DEFAULT_TARGET_OCCUPANCY = 0.93
DEFAULT_RENT_GROWTH = 0.03
DEFAULT_EXPENSE_INFLATION = 0.025
DEFAULT_REFI_YEAR = 2
DEFAULT_REFI_LTV = 0.75
DEFAULT_HOLD_YEARS = 5


@dataclass(frozen=True)
class DealTerms:
    """Deal-level facts kept alongside the T12."""

    asking_price: Optional[float] = None
    noi_current: Optional[float] = None
    down_payment_pct: float = 0.30
    interest_rate: float = 0.08
    loan_term_years: int = 25


@dataclass(frozen=True)
class ProjectionInputs:
    """User-chosen projection parameters; None means use the default."""

    hold_years: int = DEFAULT_HOLD_YEARS
    annual_rent_growth: Optional[float] = None
    annual_expense_inflation: Optional[float] = None
    target_occupancy: Optional[float] = None
    occupancy_ramp_years: Optional[int] = None
    refi_year: Optional[int] = None
    refi_interest_rate: Optional[float] = None
    refi_loan_to_value: float = DEFAULT_REFI_LTV
    exit_year: Optional[int] = None
    exit_cap_rate: Optional[float] = None
    use_observed_expense_ratio: bool = False
    balance_method: BalanceMethod = BalanceMethod.AMORTIZED


def default_ramp_years(current_occupancy: float) -> int:
    """Two years to stabilise a property below 85% occupancy, one otherwise."""
    return 2 if current_occupancy < DEFAULT_OCCUPANCY else 1


def build_assumptions(
    deal: DealTerms,
    t12: Optional[T12Totals] = None,
    inputs: Optional[ProjectionInputs] = None,
) -> ProformaAssumptions:
    """
    Build full proforma assumptions for a deal.

    Current NOI comes from the T12 when it has one, otherwise from the
    deal record. Occupancy falls back to 85% without T12 data. The exit
    defaults to the last hold year at a cap rate 10% above purchase. An unset
    refi year refinances in year two when that falls before the exit, and
    a refi year of 0 means no refinance.
    """
    inputs = inputs or ProjectionInputs()

    current_noi = (t12.total_noi if t12 else 0.0) or deal.noi_current or 0.0
    current_occupancy = (t12.avg_occupancy_rate if t12 else 0.0) or DEFAULT_OCCUPANCY
    purchase_price = deal.asking_price or 0.0

    purchase_cap_rate = calculate_cap_rate(current_noi, purchase_price) or DEFAULT_PURCHASE_CAP_RATE

    observed = inputs.use_observed_expense_ratio and t12 is not None and t12.total_gross_revenue > 0
    exit_year = _or_default(inputs.exit_year, inputs.hold_years)
    refi_year = inputs.refi_year
    if refi_year is None and exit_year > DEFAULT_REFI_YEAR:
        refi_year = DEFAULT_REFI_YEAR

    return ProformaAssumptions(
        current_noi=current_noi,
        current_occupancy=current_occupancy,
        purchase_price=purchase_price,
        down_payment_pct=deal.down_payment_pct,
        interest_rate=deal.interest_rate,
        loan_term_years=deal.loan_term_years,
        annual_rent_growth=_or_default(inputs.annual_rent_growth, DEFAULT_RENT_GROWTH),
        annual_expense_inflation=_or_default(
            inputs.annual_expense_inflation, DEFAULT_EXPENSE_INFLATION
        ),
        target_occupancy=_or_default(inputs.target_occupancy, DEFAULT_TARGET_OCCUPANCY),
        occupancy_ramp_years=_or_default(
            inputs.occupancy_ramp_years, default_ramp_years(current_occupancy)
        ),
        hold_years=inputs.hold_years,
        refi_year=refi_year,
        refi_interest_rate=inputs.refi_interest_rate,
        refi_loan_to_value=inputs.refi_loan_to_value,
        exit_year=exit_year,
        exit_cap_rate=_or_default(inputs.exit_cap_rate, purchase_cap_rate * 1.1),
        current_gross_revenue=t12.total_gross_revenue if observed else None,
        current_total_expenses=t12.total_expenses if observed else None,
        balance_method=inputs.balance_method,
    )


def _or_default(value, default):
    return default if value is None else value
