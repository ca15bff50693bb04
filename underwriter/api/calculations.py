"""
Financial calculation API endpoints.

These endpoints accept inputs and return calculated results. The proforma
endpoint is cheap enough to call on every assumption change for live
what-if exploration.
"""

import logging
from dataclasses import asdict
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, model_validator

from underwriter.calculations import irr, loan, napkin, t12
from underwriter.calculations.assumptions import (
    DealTerms,
    ProjectionInputs,
    build_assumptions,
)
from underwriter.calculations.proforma import (
    BalanceMethod,
    ProformaAssumptions,
    check_assumptions,
    generate_proforma,
)
from underwriter.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


class ProformaInput(BaseModel):
    """Input for a proforma projection."""

    # Current state
    current_noi: float
    current_occupancy: float = Field(0.85, ge=0, le=1)
    purchase_price: float = Field(ge=0)

    # Loan terms
    down_payment_pct: float = Field(0.30, ge=0, le=1)
    interest_rate: float = Field(0.08, ge=0, le=1)
    loan_term_years: int = Field(25, gt=0)

    # Growth
    annual_rent_growth: float = Field(0.03, ge=0, le=0.15)
    annual_expense_inflation: float = Field(0.025, ge=0, le=0.10)

    # Occupancy ramp
    target_occupancy: float = Field(0.93, ge=0, le=0.93)
    occupancy_ramp_years: int = Field(1, ge=0, le=5)

    hold_years: int = Field(5, ge=1, le=15)

    # Refinance
    refi_year: Optional[int] = Field(None, ge=0, le=15)
    refi_interest_rate: Optional[float] = Field(None, ge=0, le=0.2)
    refi_loan_to_value: float = Field(0.75, ge=0, le=1)

    # Exit
    exit_year: Optional[int] = Field(None, ge=1, le=15)
    exit_cap_rate: float = Field(gt=0, le=0.2)

    # Fees
    acquisition_fee_pct: float = Field(0.02, ge=0, le=1)
    asset_mgmt_fee_pct: float = Field(0.02, ge=0, le=1)
    refi_fee_pct: float = Field(0.01, ge=0, le=1)
    exit_fee_pct: float = Field(0.02, ge=0, le=1)

    # Observed baseline (optional)
    current_gross_revenue: Optional[float] = Field(None, ge=0)
    current_total_expenses: Optional[float] = Field(None, ge=0)

    balance_method: Optional[BalanceMethod] = None

    @model_validator(mode="after")
    def check_event_years(self):
        exit_year = self.exit_year or self.hold_years
        if exit_year > self.hold_years:
            raise ValueError("exit_year must fall within the hold period")
        if self.refi_year and self.refi_year >= exit_year:
            raise ValueError("refi_year must come before exit_year")
        return self

    def to_assumptions(self) -> ProformaAssumptions:
        settings = get_settings()
        data = self.model_dump()
        data["exit_year"] = self.exit_year or self.hold_years
        data["balance_method"] = self.balance_method or BalanceMethod(
            settings.default_balance_method
        )
        return ProformaAssumptions(**data)


class ProformaResponse(BaseModel):
    """Projected years, return metrics and any assumption warnings."""

    years: List[dict]
    metrics: dict
    warnings: List[str] = []


def _run_proforma(assumptions: ProformaAssumptions) -> ProformaResponse:
    settings = get_settings()
    result = generate_proforma(assumptions)
    warnings = check_assumptions(assumptions)

    if not result.metrics.irr_converged:
        warnings.append("IRR did not converge; the reported rate is approximate")
    elif abs(result.metrics.irr) > settings.irr_divergence_threshold:
        warnings.append("IRR is outside a plausible range; the cash flows may not be conventional")

    return ProformaResponse(
        years=[asdict(y) for y in result.years],
        metrics=asdict(result.metrics),
        warnings=warnings,
    )


@router.post("/proforma", response_model=ProformaResponse)
async def calculate_proforma(inputs: ProformaInput):
    """Project yearly cash flows and return metrics."""
    return _run_proforma(inputs.to_assumptions())


class T12MonthInput(BaseModel):
    """One month of operating actuals."""

    month: str
    room_rent: float = 0.0
    loc_fees: float = 0.0
    other_income: float = 0.0
    occupied_units: int = Field(0, ge=0)
    total_units: int = Field(0, ge=0)
    payroll: float = 0.0
    dietary: float = 0.0
    utilities: float = 0.0
    insurance: float = 0.0
    management_fee: float = 0.0
    maintenance: float = 0.0
    marketing: float = 0.0
    admin: float = 0.0
    other_expenses: float = 0.0

    def to_month(self) -> t12.T12Month:
        return t12.T12Month(**self.model_dump())


class DealInput(BaseModel):
    """Deal record fields used to seed a projection."""

    asking_price: Optional[float] = Field(None, gt=0)
    noi_current: Optional[float] = None
    down_payment_pct: float = Field(0.30, ge=0, le=1)
    interest_rate: float = Field(0.08, ge=0, le=1)
    loan_term_years: int = Field(25, gt=0)


class ProjectionOverrides(BaseModel):
    """User-chosen growth and exit parameters."""

    hold_years: int = Field(5, ge=1, le=15)
    annual_rent_growth: Optional[float] = Field(None, ge=0, le=0.15)
    annual_expense_inflation: Optional[float] = Field(None, ge=0, le=0.10)
    target_occupancy: Optional[float] = Field(None, ge=0, le=0.93)
    occupancy_ramp_years: Optional[int] = Field(None, ge=0, le=5)
    refi_year: Optional[int] = Field(None, ge=0, le=15)
    refi_interest_rate: Optional[float] = Field(None, ge=0, le=0.2)
    exit_cap_rate: Optional[float] = Field(None, gt=0, le=0.2)
    use_observed_expense_ratio: bool = False

    @model_validator(mode="after")
    def check_refi_year(self):
        if self.refi_year and self.refi_year >= self.hold_years:
            raise ValueError("refi_year must come before the end of the hold")
        return self


class DealProformaInput(BaseModel):
    """Input for a proforma built from deal and T12 data."""

    deal: DealInput
    t12_months: List[T12MonthInput] = []
    overrides: ProjectionOverrides = ProjectionOverrides()


@router.post("/proforma/from-deal", response_model=ProformaResponse)
async def calculate_deal_proforma(inputs: DealProformaInput):
    """Resolve assumptions from deal and T12 data, then project."""
    settings = get_settings()

    totals = None
    if inputs.t12_months:
        totals = t12.calculate_t12_totals([m.to_month() for m in inputs.t12_months])

    projection = ProjectionInputs(
        **inputs.overrides.model_dump(),
        balance_method=BalanceMethod(settings.default_balance_method),
    )
    assumptions = build_assumptions(DealTerms(**inputs.deal.model_dump()), totals, projection)

    logger.info(
        "Projecting deal: noi=%.2f price=%.2f hold=%d",
        assumptions.current_noi,
        assumptions.purchase_price,
        assumptions.hold_years,
    )
    return _run_proforma(assumptions)


class IRRInput(BaseModel):
    """Input for IRR calculation."""

    cash_flows: List[float] = Field(min_length=2)
    guess: Optional[float] = None


class IRRResponse(BaseModel):
    """Response with IRR calculation."""

    irr: float
    converged: bool
    iterations: int
    multiple: float
    profit: float
    npv_at_10_percent: float


@router.post("/irr", response_model=IRRResponse)
async def calculate_irr_endpoint(inputs: IRRInput):
    """Calculate IRR for given cash flows."""
    settings = get_settings()

    result = irr.solve_irr(
        inputs.cash_flows,
        guess=settings.irr_guess if inputs.guess is None else inputs.guess,
        max_iterations=settings.irr_max_iterations,
        tolerance=settings.irr_tolerance,
    )

    return IRRResponse(
        irr=result.rate,
        converged=result.converged,
        iterations=result.iterations,
        multiple=irr.calculate_multiple(inputs.cash_flows),
        profit=irr.calculate_profit(inputs.cash_flows),
        npv_at_10_percent=irr.calculate_npv(inputs.cash_flows, 0.10),
    )


class NapkinInput(BaseModel):
    """Input for a napkin analysis."""

    gross_revenue: float = Field(gt=0)
    total_expenses: float = Field(gt=0)
    purchase_price: float = Field(0.0, ge=0)
    down_payment_pct: float = Field(0.30, ge=0, le=1)
    interest_rate: float = Field(0.08, ge=0, le=1)
    loan_term_years: int = Field(25, gt=0)
    target_equity_multiple: float = Field(3.0, gt=0)


@router.post("/napkin")
async def calculate_napkin(inputs: NapkinInput):
    """Run a first-pass deal screen."""
    result = napkin.run_napkin_analysis(napkin.NapkinInputs(**inputs.model_dump()))
    return asdict(result)


class T12Input(BaseModel):
    """Input for T12 roll-up."""

    months: List[T12MonthInput] = Field(min_length=1)


class T12Response(BaseModel):
    totals: dict
    expense_breakdown: Dict[str, float]
    is_complete: bool
    missing_months: List[str]
    duplicate_months: List[str]


@router.post("/t12", response_model=T12Response)
async def calculate_t12(inputs: T12Input):
    """Roll monthly actuals into T12 totals."""
    months = [m.to_month() for m in inputs.months]

    try:
        window = t12.validate_t12_window(months)
    except t12.T12ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    totals = t12.calculate_t12_totals(months)

    return T12Response(
        totals=asdict(totals),
        expense_breakdown=t12.get_expense_breakdown(totals),
        is_complete=window.is_complete,
        missing_months=[m.isoformat() for m in window.missing_months],
        duplicate_months=[m.isoformat() for m in window.duplicate_months],
    )


class AmortizationInput(BaseModel):
    """Input for loan calculation."""

    principal: float = Field(ge=0)
    annual_rate: float = Field(ge=0, le=1)
    term_years: int = Field(gt=0)
    years: int = Field(5, ge=1, le=40)


@router.post("/amortization")
async def calculate_amortization(inputs: AmortizationInput):
    """Payment, debt service and year-end balances for a loan."""
    balances = [
        {
            "year": year,
            "ending_balance": loan.calculate_remaining_balance(
                inputs.principal, inputs.annual_rate, inputs.term_years, year * 12
            ),
        }
        for year in range(1, inputs.years + 1)
    ]

    return {
        "monthly_payment": loan.calculate_monthly_payment(
            inputs.principal, inputs.annual_rate, inputs.term_years
        ),
        "annual_debt_service": loan.calculate_annual_debt_service(
            inputs.principal, inputs.annual_rate, inputs.term_years
        ),
        "loan_constant": loan.calculate_loan_constant(
            inputs.principal, inputs.annual_rate, inputs.term_years
        ),
        "balances": balances,
    }
