"""
IRR and NPV Calculations

Implements IRR using Newton-Raphson method on periodic (annual) cash flows.
The solver never raises: it reports whether it converged alongside the
last estimate so callers can decide how to surface an uncertain rate.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 100
TOLERANCE = 1e-5
DEFAULT_GUESS = 0.1


@dataclass(frozen=True)
class IRRResult:
    """Outcome of an IRR search."""

    rate: float
    converged: bool
    iterations: int


def calculate_npv(cash_flows: Sequence[float], discount_rate: float) -> float:
    """
    Calculate NPV (Net Present Value) of cash flows.

    Args:
        cash_flows: Periodic cash flows, index 0 is undiscounted
        discount_rate: Periodic discount rate (e.g., 0.10 for 10%)

    Returns:
        NPV value
    """
    cf = np.asarray(cash_flows, dtype=float)
    periods = np.arange(cf.size)
    return float(np.sum(cf / (1 + discount_rate) ** periods))


def _npv_derivative(cash_flows: Sequence[float], rate: float) -> float:
    """Calculate derivative of NPV with respect to rate (for Newton-Raphson)."""
    cf = np.asarray(cash_flows, dtype=float)
    periods = np.arange(cf.size)
    return float(np.sum(-periods * cf / (1 + rate) ** (periods + 1)))


def solve_irr(
    cash_flows: Sequence[float],
    guess: float = DEFAULT_GUESS,
    max_iterations: int = MAX_ITERATIONS,
    tolerance: float = TOLERANCE,
) -> IRRResult:
    """
    Find the rate at which the NPV of cash_flows is zero.

    Newton-Raphson from guess, stopping when the step is below tolerance
    or after max_iterations. A flat NPV curve or a step that leaves the
    real line ends the search early with converged=False.
    """
    rate = guess

    with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
        for iteration in range(1, max_iterations + 1):
            npv = calculate_npv(cash_flows, rate)
            dnpv = _npv_derivative(cash_flows, rate)

            if dnpv == 0 or not np.isfinite(dnpv):
                logger.warning("IRR search stalled at iteration %d (rate=%s)", iteration, rate)
                return IRRResult(rate=rate, converged=False, iterations=iteration)

            new_rate = rate - npv / dnpv

            if not np.isfinite(new_rate):
                logger.warning("IRR search diverged at iteration %d (rate=%s)", iteration, rate)
                return IRRResult(rate=rate, converged=False, iterations=iteration)

            if abs(new_rate - rate) < tolerance:
                return IRRResult(rate=new_rate, converged=True, iterations=iteration)

            rate = new_rate

    logger.warning("IRR did not converge after %d iterations (rate=%s)", max_iterations, rate)
    return IRRResult(rate=rate, converged=False, iterations=max_iterations)


def calculate_irr(cash_flows: Sequence[float], guess: float = DEFAULT_GUESS) -> float:
    """
    Calculate IRR (Internal Rate of Return) as a best-effort number.

    Returns:
        Periodic IRR as decimal (e.g., 0.15 for 15%); the last Newton
        estimate when the search did not converge
    """
    return solve_irr(cash_flows, guess).rate


def calculate_multiple(cash_flows: List[float]) -> float:
    """
    Calculate equity multiple of a cash flow series.

    Returns:
        Total inflows over total outflows, 0 when there are no outflows
    """
    total_inflows = sum(cf for cf in cash_flows if cf > 0)
    total_outflows = abs(sum(cf for cf in cash_flows if cf < 0))

    if total_outflows == 0:
        return 0.0

    return total_inflows / total_outflows


def calculate_profit(cash_flows: List[float]) -> float:
    """Calculate profit (total inflows minus total outflows)."""
    return float(sum(cash_flows))
