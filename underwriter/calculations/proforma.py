"""
Proforma Calculations

Projects a property's operations year by year under growth, occupancy
ramp, refinance and exit assumptions, then rolls the projection up into
investor return metrics.

Each year depends only on the assumptions and the year before it. The
refinance and exit are one-shot events overlaid on the ordinary year.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from underwriter.calculations.irr import solve_irr
from underwriter.calculations.loan import (
    approximate_remaining_balance,
    calculate_annual_debt_service,
    calculate_down_payment,
    calculate_loan_amount,
    calculate_remaining_balance,
)
from underwriter.calculations.napkin import (
    calculate_cap_rate,
    calculate_cash_flow,
    calculate_noi,
    calculate_value_at_cap_rate,
)

logger = logging.getLogger(__name__)

# Expense ratio assumed when only NOI is known
BASELINE_EXPENSE_RATIO = 0.73


class BalanceMethod(str, enum.Enum):
    """How the outstanding loan balance is estimated at refinance and exit."""

    AMORTIZED = "amortized"
    APPROXIMATE = "approximate"


@dataclass(frozen=True)
class ProformaAssumptions:
    """Inputs for one projection run."""

    # Current state
    current_noi: float
    current_occupancy: float
    purchase_price: float

    # Acquisition loan
    down_payment_pct: float
    interest_rate: float
    loan_term_years: int

    # Growth
    annual_rent_growth: float
    annual_expense_inflation: float

    # Occupancy ramp
    target_occupancy: float
    occupancy_ramp_years: int

    hold_years: int

    # Exit
    exit_year: int
    exit_cap_rate: float

    # Refinance
    refi_year: Optional[int] = None
    refi_interest_rate: Optional[float] = None
    refi_loan_to_value: float = 0.75

    # Fees
    acquisition_fee_pct: float = 0.02
    asset_mgmt_fee_pct: float = 0.02
    refi_fee_pct: float = 0.01
    exit_fee_pct: float = 0.02

    # Observed baseline; replaces the fixed expense ratio when both are set
    current_gross_revenue: Optional[float] = None
    current_total_expenses: Optional[float] = None

    balance_method: BalanceMethod = BalanceMethod.AMORTIZED

    @property
    def has_refi(self) -> bool:
        return self.refi_year is not None and self.refi_year >= 1

    @property
    def loan_amount(self) -> float:
        return calculate_loan_amount(self.purchase_price, self.down_payment_pct)

    @property
    def equity_invested(self) -> float:
        return calculate_down_payment(self.purchase_price, self.down_payment_pct)

    @property
    def purchase_cap_rate(self) -> float:
        return calculate_cap_rate(self.current_noi, self.purchase_price)

    @property
    def uses_observed_baseline(self) -> bool:
        return self.current_gross_revenue is not None and self.current_total_expenses is not None

    @property
    def baseline_revenue(self) -> float:
        if self.uses_observed_baseline:
            return self.current_gross_revenue
        return self.current_noi / (1 - BASELINE_EXPENSE_RATIO)

    @property
    def baseline_expenses(self) -> float:
        if self.uses_observed_baseline:
            return self.current_total_expenses
        return self.current_noi / (1 - BASELINE_EXPENSE_RATIO) * BASELINE_EXPENSE_RATIO


@dataclass(frozen=True)
class ProformaYear:
    """One projected year."""

    year: int
    occupancy: float
    gross_revenue: float
    total_expenses: float
    noi: float
    debt_service: float
    cash_flow: float

    is_refi_year: bool
    refi_loan_amount: Optional[float]
    refi_distribution: Optional[float]

    is_exit_year: bool
    exit_sale_price: Optional[float]
    exit_proceeds: Optional[float]
    capital_returned: Optional[float]

    # Principal of the loan serving this year's debt service
    loan_amount: float
    # Debt outstanding at year end, after any refinance or sale
    loan_balance: float

    @property
    def total_distribution(self) -> float:
        """Operating cash flow plus any refinance or sale proceeds."""
        return self.cash_flow + (self.refi_distribution or 0.0) + (self.exit_proceeds or 0.0)


@dataclass(frozen=True)
class ProformaMetrics:
    """Return metrics for a whole projection."""

    total_equity_invested: float
    total_distributions: float
    total_operating_cash_flow: float
    refi_distribution: float
    exit_proceeds: float
    equity_multiple: float
    irr: float
    average_cash_on_cash: float

    irr_converged: bool
    irr_iterations: int

    # Informational only; exit fees are the only fee deducted from cash flow
    acquisition_fee: float = 0.0
    asset_management_fees: float = 0.0
    refi_fee: float = 0.0
    exit_fee: float = 0.0


@dataclass(frozen=True)
class ProformaResult:
    years: List[ProformaYear]
    metrics: ProformaMetrics


def calculate_occupancy_for_year(
    year: int,
    current_occupancy: float,
    target_occupancy: float,
    ramp_years: int,
) -> float:
    """
    Calculate occupancy for a given year with a linear ramp-up.

    Occupancy moves in equal steps from current to target over ramp_years
    and stays at target afterwards. It never exceeds the target.
    """
    if year > ramp_years:
        return target_occupancy

    yearly_gain = (target_occupancy - current_occupancy) / ramp_years
    return min(current_occupancy + yearly_gain * year, target_occupancy)


def _remaining_balance(
    assumptions: ProformaAssumptions,
    principal: float,
    annual_rate: float,
    year: int,
    years_on_loan: int,
) -> float:
    if assumptions.balance_method == BalanceMethod.APPROXIMATE:
        return approximate_remaining_balance(principal, year)
    return calculate_remaining_balance(
        principal, annual_rate, assumptions.loan_term_years, years_on_loan * 12
    )


def calculate_proforma_year(
    year: int,
    assumptions: ProformaAssumptions,
    previous_year: Optional[ProformaYear],
) -> ProformaYear:
    """
    Calculate a single proforma year.

    Args:
        year: Projection year, starting at 1
        assumptions: Projection inputs
        previous_year: The year before, or None for year 1

    Returns:
        The projected year
    """
    a = assumptions

    occupancy = calculate_occupancy_for_year(
        year, a.current_occupancy, a.target_occupancy, a.occupancy_ramp_years
    )

    # Revenue and expenses scale with occupancy relative to today
    if a.current_occupancy > 0:
        occupancy_multiplier = occupancy / a.current_occupancy
    else:
        occupancy_multiplier = 1.0

    gross_revenue = a.baseline_revenue * (1 + a.annual_rent_growth) ** year * occupancy_multiplier
    total_expenses = (
        a.baseline_expenses * (1 + a.annual_expense_inflation) ** year * occupancy_multiplier
    )
    noi = calculate_noi(gross_revenue, total_expenses)

    # Financing switches to the refinanced loan the year after the refi
    loan_amount = a.loan_amount
    interest_rate = a.interest_rate
    loan_start_year = 0

    if previous_year is not None and a.has_refi and year > a.refi_year:
        if previous_year.is_refi_year:
            loan_amount = previous_year.refi_loan_amount
        else:
            loan_amount = previous_year.loan_amount
        if a.refi_interest_rate is not None:
            interest_rate = a.refi_interest_rate
        loan_start_year = a.refi_year

    debt_service = calculate_annual_debt_service(loan_amount, interest_rate, a.loan_term_years)
    cash_flow = calculate_cash_flow(noi, debt_service)

    loan_balance = _remaining_balance(
        a, loan_amount, interest_rate, year, year - loan_start_year
    )
    outstanding = loan_balance

    is_refi_year = a.has_refi and a.refi_year == year
    refi_loan_amount = None
    refi_distribution = None

    if is_refi_year:
        estimated_value = calculate_value_at_cap_rate(noi, a.exit_cap_rate)
        refi_loan_amount = estimated_value * a.refi_loan_to_value
        refi_distribution = refi_loan_amount - loan_balance
        outstanding = refi_loan_amount

    is_exit_year = a.exit_year == year
    exit_sale_price = None
    exit_proceeds = None
    capital_returned = None

    if is_exit_year:
        exit_sale_price = calculate_value_at_cap_rate(noi, a.exit_cap_rate)
        exit_fees = exit_sale_price * a.exit_fee_pct
        exit_proceeds = exit_sale_price - loan_balance - exit_fees
        capital_returned = exit_proceeds
        outstanding = 0.0

    return ProformaYear(
        year=year,
        occupancy=occupancy,
        gross_revenue=gross_revenue,
        total_expenses=total_expenses,
        noi=noi,
        debt_service=debt_service,
        cash_flow=cash_flow,
        is_refi_year=is_refi_year,
        refi_loan_amount=refi_loan_amount,
        refi_distribution=refi_distribution,
        is_exit_year=is_exit_year,
        exit_sale_price=exit_sale_price,
        exit_proceeds=exit_proceeds,
        capital_returned=capital_returned,
        loan_amount=loan_amount,
        loan_balance=outstanding,
    )


def check_assumptions(assumptions: ProformaAssumptions) -> List[str]:
    """
    List assumption combinations the engine tolerates but rarely intends.

    The projection still runs with any of these; callers decide whether
    to block or just surface them.
    """
    a = assumptions
    warnings = []

    if a.exit_year > a.hold_years:
        warnings.append(
            f"Exit year {a.exit_year} is after the {a.hold_years}-year hold; no sale is modeled"
        )
    if a.has_refi and a.refi_year > a.hold_years:
        warnings.append(
            f"Refinance year {a.refi_year} is after the {a.hold_years}-year hold; "
            "no refinance is modeled"
        )
    if a.has_refi and a.refi_year >= a.exit_year:
        warnings.append(f"Refinance year {a.refi_year} is not before exit year {a.exit_year}")
    if a.exit_cap_rate <= 0:
        warnings.append("Exit cap rate must be positive; sale and refinance values are zero")
    elif a.purchase_cap_rate > 0 and a.exit_cap_rate < a.purchase_cap_rate:
        warnings.append(
            f"Exit cap rate {a.exit_cap_rate:.2%} is below the purchase cap rate "
            f"{a.purchase_cap_rate:.2%}"
        )

    return warnings


def generate_proforma(assumptions: ProformaAssumptions) -> ProformaResult:
    """
    Generate the full proforma for all hold years and its return metrics.

    IRR is solved on the series [-equity, year 1 distributions, ...,
    year n distributions] where each year's distribution includes any
    refinance or sale proceeds.
    """
    for warning in check_assumptions(assumptions):
        logger.warning(warning)

    years: List[ProformaYear] = []
    previous_year = None

    for year in range(1, assumptions.hold_years + 1):
        previous_year = calculate_proforma_year(year, assumptions, previous_year)
        years.append(previous_year)

    equity_invested = assumptions.equity_invested
    total_operating_cash_flow = sum(y.cash_flow for y in years)

    refi = next((y for y in years if y.is_refi_year), None)
    sale = next((y for y in years if y.is_exit_year), None)
    refi_distribution = refi.refi_distribution if refi else 0.0
    exit_proceeds = sale.exit_proceeds if sale else 0.0

    total_distributions = total_operating_cash_flow + refi_distribution + exit_proceeds

    if equity_invested > 0:
        equity_multiple = total_distributions / equity_invested
    else:
        equity_multiple = 0.0

    if equity_invested > 0 and assumptions.hold_years > 0:
        average_cash_on_cash = total_operating_cash_flow / assumptions.hold_years / equity_invested
    else:
        average_cash_on_cash = 0.0

    irr_result = solve_irr([-equity_invested] + [y.total_distribution for y in years])

    metrics = ProformaMetrics(
        total_equity_invested=equity_invested,
        total_distributions=total_distributions,
        total_operating_cash_flow=total_operating_cash_flow,
        refi_distribution=refi_distribution,
        exit_proceeds=exit_proceeds,
        equity_multiple=equity_multiple,
        irr=irr_result.rate,
        average_cash_on_cash=average_cash_on_cash,
        irr_converged=irr_result.converged,
        irr_iterations=irr_result.iterations,
        acquisition_fee=assumptions.purchase_price * assumptions.acquisition_fee_pct,
        asset_management_fees=sum(y.gross_revenue for y in years) * assumptions.asset_mgmt_fee_pct,
        refi_fee=(refi.refi_loan_amount * assumptions.refi_fee_pct) if refi else 0.0,
        exit_fee=(sale.exit_sale_price * assumptions.exit_fee_pct) if sale else 0.0,
    )

    logger.debug(
        "Generated %d-year proforma: irr=%.4f multiple=%.2f",
        len(years),
        metrics.irr,
        metrics.equity_multiple,
    )

    return ProformaResult(years=years, metrics=metrics)


def proforma_records(deal_id: int, years: List[ProformaYear]) -> List[Dict]:
    """
    Shape projected years into storage rows.

    Numeric columns are stored as decimal strings.
    """
    return [
        {
            "deal_id": deal_id,
            "year": y.year,
            "target_occupancy": str(y.occupancy),
            "projected_revenue": str(y.gross_revenue),
            "projected_expenses": str(y.total_expenses),
            "projected_noi": str(y.noi),
            "debt_service": str(y.debt_service),
            "cash_flow": str(y.cash_flow),
            "is_refi_year": y.is_refi_year,
            "is_exit_year": y.is_exit_year,
            "capital_returned": str(y.capital_returned) if y.capital_returned is not None else None,
        }
        for y in years
    ]
