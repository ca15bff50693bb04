"""
Loan Calculations

Acquisition and refinance loan arithmetic: sizing, level payments,
debt service and remaining balances.
"""


def calculate_loan_amount(purchase_price: float, down_payment_pct: float) -> float:
    """Loan principal funded at acquisition."""
    return purchase_price * (1 - down_payment_pct)


def calculate_down_payment(purchase_price: float, down_payment_pct: float) -> float:
    """Equity funded at acquisition."""
    return purchase_price * down_payment_pct


def calculate_monthly_payment(principal: float, annual_rate: float, years: int) -> float:
    """
    Calculate the level monthly payment that fully amortizes a loan.

    Matches Excel's PMT() function (sign flipped).

    Args:
        principal: Loan principal amount
        annual_rate: Annual interest rate as decimal (e.g., 0.08 for 8%)
        years: Amortization period in years, must be positive

    Returns:
        Monthly payment amount
    """
    monthly_rate = annual_rate / 12
    num_payments = years * 12

    if monthly_rate == 0:
        return principal / num_payments

    factor = (1 + monthly_rate) ** num_payments
    return principal * monthly_rate * factor / (factor - 1)


def calculate_annual_debt_service(principal: float, annual_rate: float, years: int) -> float:
    """Twelve level monthly payments."""
    return calculate_monthly_payment(principal, annual_rate, years) * 12


def calculate_remaining_balance(
    principal: float,
    annual_rate: float,
    years: int,
    payments_completed: int,
) -> float:
    """Calculate remaining loan balance after N monthly payments."""
    monthly_rate = annual_rate / 12
    payment = calculate_monthly_payment(principal, annual_rate, years)

    if monthly_rate == 0:
        return max(0.0, principal - payment * payments_completed)

    growth = (1 + monthly_rate) ** payments_completed
    balance = principal * growth - payment * ((growth - 1) / monthly_rate)

    return max(0.0, balance)


def approximate_remaining_balance(principal: float, year: int) -> float:
    """
    Straight-line paydown estimate: 15% of principal retired every 5 years.

    Kept for output compatibility with projections built before exact
    amortization was available.
    """
    return principal * (1 - 0.15 * (year / 5))


def calculate_loan_constant(principal: float, annual_rate: float, years: int) -> float:
    """Calculate loan constant (annual debt service / loan amount)."""
    if principal <= 0:
        return 0.0
    return calculate_annual_debt_service(principal, annual_rate, years) / principal


def calculate_dscr(noi: float, debt_service: float) -> float:
    """
    Calculate Debt Service Coverage Ratio (DSCR).

    Returns 0 for an unlevered year rather than infinity.
    """
    if debt_service == 0:
        return 0.0
    return noi / debt_service
