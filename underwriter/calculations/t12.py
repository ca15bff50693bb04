"""
T12 Calculations

Rolls twelve months of actual operating statements up into the totals
that seed a proforma.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

EXPENSE_CATEGORIES = (
    "payroll",
    "dietary",
    "utilities",
    "insurance",
    "management_fee",
    "maintenance",
    "marketing",
    "admin",
    "other_expenses",
)


class T12ValidationError(ValueError):
    """Raised when monthly statements cannot be placed on a calendar."""


@dataclass(frozen=True)
class T12Month:
    """One month of operating actuals."""

    month: str

    # Revenue
    room_rent: float = 0.0
    loc_fees: float = 0.0
    other_income: float = 0.0

    # Occupancy
    occupied_units: int = 0
    total_units: int = 0

    # Expenses
    payroll: float = 0.0
    dietary: float = 0.0
    utilities: float = 0.0
    insurance: float = 0.0
    management_fee: float = 0.0
    maintenance: float = 0.0
    marketing: float = 0.0
    admin: float = 0.0
    other_expenses: float = 0.0

    @property
    def gross_revenue(self) -> float:
        return self.room_rent + self.loc_fees + self.other_income

    @property
    def total_expenses(self) -> float:
        return sum(getattr(self, name) for name in EXPENSE_CATEGORIES)

    @property
    def noi(self) -> float:
        return self.gross_revenue - self.total_expenses

    @property
    def occupancy_rate(self) -> float:
        if self.total_units == 0:
            return 0.0
        return self.occupied_units / self.total_units

    @property
    def expense_ratio(self) -> float:
        if self.gross_revenue == 0:
            return 0.0
        return self.total_expenses / self.gross_revenue


@dataclass(frozen=True)
class T12Totals:
    """Trailing-twelve totals across all supplied months."""

    total_gross_revenue: float = 0.0
    total_room_rent: float = 0.0
    total_loc_fees: float = 0.0
    total_other_income: float = 0.0
    total_expenses: float = 0.0
    total_payroll: float = 0.0
    total_dietary: float = 0.0
    total_utilities: float = 0.0
    total_insurance: float = 0.0
    total_management_fee: float = 0.0
    total_maintenance: float = 0.0
    total_marketing: float = 0.0
    total_admin: float = 0.0
    total_other_expenses: float = 0.0
    total_noi: float = 0.0
    avg_occupancy_rate: float = 0.0
    avg_expense_ratio: float = 0.0
    month_count: int = 0


@dataclass(frozen=True)
class T12WindowReport:
    """How well the supplied months cover a trailing-twelve window."""

    first_month: date
    last_month: date
    missing_months: List[date] = field(default_factory=list)
    duplicate_months: List[date] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        span = relativedelta(self.last_month, self.first_month)
        return (
            span.years * 12 + span.months == 11
            and not self.missing_months
            and not self.duplicate_months
        )


def calculate_t12_totals(months: List[T12Month]) -> T12Totals:
    """
    Calculate T12 totals from monthly data.

    Occupancy is the simple average of monthly rates; the expense ratio is
    computed on the summed totals, not averaged month by month.
    """
    if not months:
        return T12Totals()

    sums = {
        "room_rent": 0.0,
        "loc_fees": 0.0,
        "other_income": 0.0,
        **{name: 0.0 for name in EXPENSE_CATEGORIES},
    }
    total_occupancy = 0.0

    for month in months:
        for name in sums:
            sums[name] += getattr(month, name)
        total_occupancy += month.occupancy_rate

    gross_revenue = sums["room_rent"] + sums["loc_fees"] + sums["other_income"]
    expenses = sum(sums[name] for name in EXPENSE_CATEGORIES)

    return T12Totals(
        total_gross_revenue=gross_revenue,
        total_expenses=expenses,
        total_noi=gross_revenue - expenses,
        avg_occupancy_rate=total_occupancy / len(months),
        avg_expense_ratio=expenses / gross_revenue if gross_revenue > 0 else 0.0,
        month_count=len(months),
        **{f"total_{name}": value for name, value in sums.items()},
    )


def get_expense_breakdown(totals: T12Totals) -> Dict[str, float]:
    """Each expense category as a share of gross revenue."""
    revenue = totals.total_gross_revenue
    return {
        name: (getattr(totals, f"total_{name}") / revenue if revenue else 0.0)
        for name in EXPENSE_CATEGORIES
    }


def parse_month(label: str) -> date:
    """
    Parse a month label ("2024-01", "Jan 2024") to its first day.

    The label must name both a year and a month. A part missing from the
    label would otherwise be filled from the parser default, so the label
    is parsed against two different defaults and both results must agree.

    Raises:
        T12ValidationError: If the label is not a recognisable month
    """
    try:
        first = date_parser.parse(label, default=datetime(2000, 1, 1))
        second = date_parser.parse(label, default=datetime(2001, 2, 1))
    except (ValueError, OverflowError) as e:
        raise T12ValidationError(f"Unrecognised month label: {label!r}") from e
    if (first.year, first.month) != (second.year, second.month):
        raise T12ValidationError(f"Month label needs a year and a month: {label!r}")
    return date(first.year, first.month, 1)


def validate_t12_window(months: List[T12Month]) -> T12WindowReport:
    """
    Check that monthly statements cover consecutive calendar months.

    Raises:
        T12ValidationError: If no months are given or a label cannot be parsed
    """
    if not months:
        raise T12ValidationError("No monthly statements supplied")

    parsed = [parse_month(m.month) for m in months]
    first, last = min(parsed), max(parsed)

    seen = set()
    duplicates = []
    for month_start in parsed:
        if month_start in seen and month_start not in duplicates:
            duplicates.append(month_start)
        seen.add(month_start)

    missing = []
    cursor = first
    while cursor <= last:
        if cursor not in seen:
            missing.append(cursor)
        cursor += relativedelta(months=1)

    return T12WindowReport(
        first_month=first,
        last_month=last,
        missing_months=missing,
        duplicate_months=sorted(duplicates),
    )
