"""
Napkin Calculations

Single-period underwriting metrics used for a first-pass look at a deal.
Every ratio returns 0 instead of dividing by zero: early-stage deals often
have no asking price or revenue entered yet.
"""

from dataclasses import dataclass

from underwriter.calculations.loan import (
    calculate_annual_debt_service,
    calculate_dscr,
    calculate_loan_amount,
)

NAPKIN_HOLD_YEARS = 5
NAPKIN_NOI_GROWTH = 0.02
NAPKIN_REMAINING_LOAN_PCT = 0.85
DEFAULT_EXIT_CAP_RATE = 0.09


def calculate_noi(gross_revenue: float, total_expenses: float) -> float:
    return gross_revenue - total_expenses


def calculate_cap_rate(noi: float, purchase_price: float) -> float:
    if purchase_price == 0:
        return 0.0
    return noi / purchase_price


def calculate_expense_ratio(total_expenses: float, gross_revenue: float) -> float:
    if gross_revenue == 0:
        return 0.0
    return total_expenses / gross_revenue


def calculate_cash_flow(noi: float, debt_service: float) -> float:
    return noi - debt_service


def calculate_cash_on_cash(cash_flow: float, equity_invested: float) -> float:
    if equity_invested == 0:
        return 0.0
    return cash_flow / equity_invested


def calculate_equity_multiple(total_distributions: float, total_invested: float) -> float:
    if total_invested == 0:
        return 0.0
    return total_distributions / total_invested


def calculate_value_at_cap_rate(noi: float, cap_rate: float) -> float:
    """Direct capitalization value; 0 for a non-positive cap rate."""
    if cap_rate <= 0:
        return 0.0
    return noi / cap_rate


def calculate_max_offer_price(
    noi: float,
    target_equity_multiple: float,
    down_payment_pct: float,
    interest_rate: float,
    loan_term_years: int,
    exit_cap_rate: float,
    hold_years: int = NAPKIN_HOLD_YEARS,
    max_steps: int = 20,
) -> float:
    """
    Search for the price at which a simplified hold hits a target multiple.

    Starts from an 8% cap rate price and nudges it 5% per step until the
    estimated equity multiple is within 0.1 of the target. NOI is grown at
    2% to exit and 85% of the loan is assumed outstanding at sale.

    Returns:
        Best price found after at most max_steps adjustments
    """
    exit_noi = noi * (1 + NAPKIN_NOI_GROWTH) ** hold_years
    exit_value = calculate_value_at_cap_rate(exit_noi, exit_cap_rate)

    test_price = noi / 0.08

    for _ in range(max_steps):
        equity = test_price * down_payment_pct
        loan_amount = test_price * (1 - down_payment_pct)
        debt_service = calculate_annual_debt_service(loan_amount, interest_rate, loan_term_years)

        total_cash_flow = calculate_cash_flow(noi, debt_service) * hold_years
        exit_proceeds = exit_value - loan_amount * NAPKIN_REMAINING_LOAN_PCT
        multiple = calculate_equity_multiple(total_cash_flow + exit_proceeds, equity)

        if abs(multiple - target_equity_multiple) < 0.1:
            return test_price

        if multiple > target_equity_multiple:
            test_price *= 1.05
        else:
            test_price *= 0.95

    return test_price


@dataclass(frozen=True)
class NapkinInputs:
    """Inputs for a first-pass deal screen."""

    gross_revenue: float
    total_expenses: float
    purchase_price: float
    down_payment_pct: float = 0.30
    interest_rate: float = 0.08
    loan_term_years: int = 25
    target_equity_multiple: float = 3.0


@dataclass(frozen=True)
class NapkinResult:
    noi: float
    cap_rate: float
    expense_ratio: float
    loan_amount: float
    annual_debt_service: float
    cash_flow: float
    equity_invested: float
    cash_on_cash: float
    dscr: float
    exit_cap_rate: float
    estimated_equity_multiple: float
    max_offer_price: float


def run_napkin_analysis(inputs: NapkinInputs) -> NapkinResult:
    """
    Screen a deal from a single year of operations.

    The exit cap rate is set 10% above the purchase cap rate (9% when no
    price is known) and the equity multiple is estimated over a flat
    five-year hold.
    """
    noi = calculate_noi(inputs.gross_revenue, inputs.total_expenses)
    cap_rate = calculate_cap_rate(noi, inputs.purchase_price)
    expense_ratio = calculate_expense_ratio(inputs.total_expenses, inputs.gross_revenue)

    loan_amount = calculate_loan_amount(inputs.purchase_price, inputs.down_payment_pct)
    debt_service = calculate_annual_debt_service(
        loan_amount, inputs.interest_rate, inputs.loan_term_years
    )
    cash_flow = calculate_cash_flow(noi, debt_service)
    equity = inputs.purchase_price * inputs.down_payment_pct

    exit_cap_rate = cap_rate * 1.1 if cap_rate > 0 else DEFAULT_EXIT_CAP_RATE

    exit_noi = noi * (1 + NAPKIN_NOI_GROWTH) ** NAPKIN_HOLD_YEARS
    exit_value = calculate_value_at_cap_rate(exit_noi, exit_cap_rate)
    exit_proceeds = exit_value - loan_amount * NAPKIN_REMAINING_LOAN_PCT
    total_distributions = cash_flow * NAPKIN_HOLD_YEARS + exit_proceeds

    max_offer = calculate_max_offer_price(
        noi=noi,
        target_equity_multiple=inputs.target_equity_multiple,
        down_payment_pct=inputs.down_payment_pct,
        interest_rate=inputs.interest_rate,
        loan_term_years=inputs.loan_term_years,
        exit_cap_rate=exit_cap_rate,
    )

    return NapkinResult(
        noi=noi,
        cap_rate=cap_rate,
        expense_ratio=expense_ratio,
        loan_amount=loan_amount,
        annual_debt_service=debt_service,
        cash_flow=cash_flow,
        equity_invested=equity,
        cash_on_cash=calculate_cash_on_cash(cash_flow, equity),
        dscr=calculate_dscr(noi, debt_service),
        exit_cap_rate=exit_cap_rate,
        estimated_equity_multiple=calculate_equity_multiple(total_distributions, equity),
        max_offer_price=max_offer,
    )
