"""
Tests for the proforma engine and assumption defaults.
"""

from dataclasses import replace

import pytest

from underwriter.calculations.assumptions import (
    DealTerms,
    ProjectionInputs,
    build_assumptions,
    default_ramp_years,
)
from underwriter.calculations.irr import calculate_npv
from underwriter.calculations.loan import (
    calculate_annual_debt_service,
    calculate_remaining_balance,
)
from underwriter.calculations.proforma import (
    BalanceMethod,
    calculate_occupancy_for_year,
    calculate_proforma_year,
    check_assumptions,
    generate_proforma,
    proforma_records,
)
from underwriter.calculations.t12 import calculate_t12_totals


class TestOccupancyRamp:
    """Test the linear occupancy ramp."""

    def test_ramp_midpoint_then_flat(self):
        assert calculate_occupancy_for_year(1, 0.80, 0.93, 2) == pytest.approx(0.865)
        assert calculate_occupancy_for_year(2, 0.80, 0.93, 2) == pytest.approx(0.93)
        assert calculate_occupancy_for_year(3, 0.80, 0.93, 2) == 0.93

    def test_no_ramp(self):
        assert calculate_occupancy_for_year(1, 0.80, 0.93, 0) == 0.93

    def test_never_exceeds_target(self):
        for year in range(1, 4):
            assert calculate_occupancy_for_year(year, 0.80, 0.93, 3) <= 0.93

    def test_engine_applies_ramp(self, value_add_deal):
        years = generate_proforma(value_add_deal).years
        assert years[0].occupancy == pytest.approx(0.865)
        for year in years[1:]:
            assert year.occupancy == pytest.approx(0.93)


class TestProformaShape:
    """Test structural invariants of the projection."""

    def test_deterministic(self, value_add_deal):
        assert generate_proforma(value_add_deal) == generate_proforma(value_add_deal)

    @pytest.mark.parametrize("hold_years", [1, 3, 5, 10])
    def test_length_and_numbering(self, flat_deal, hold_years):
        assumptions = replace(flat_deal, hold_years=hold_years, exit_year=hold_years)
        years = generate_proforma(assumptions).years
        assert len(years) == hold_years
        assert [y.year for y in years] == list(range(1, hold_years + 1))

    def test_single_refi_and_exit(self, value_add_deal):
        years = generate_proforma(value_add_deal).years
        assert [y.year for y in years if y.is_refi_year] == [2]
        assert [y.year for y in years if y.is_exit_year] == [5]

    def test_no_refi_year(self, flat_deal):
        years = generate_proforma(flat_deal).years
        assert not any(y.is_refi_year for y in years)
        assert all(y.refi_loan_amount is None for y in years)

    def test_refi_year_zero_means_no_refi(self, flat_deal):
        years = generate_proforma(replace(flat_deal, refi_year=0)).years
        assert not any(y.is_refi_year for y in years)

    def test_event_fields_only_on_event_years(self, value_add_deal):
        for year in generate_proforma(value_add_deal).years:
            assert (year.refi_distribution is not None) == year.is_refi_year
            assert (year.exit_proceeds is not None) == year.is_exit_year
            assert year.capital_returned == year.exit_proceeds


class TestFlatDeal:
    """No growth and exit at the purchase cap rate."""

    def test_noi_stays_flat(self, flat_deal):
        years = generate_proforma(flat_deal).years
        assert years[0].noi == pytest.approx(500000)
        assert years[4].noi == pytest.approx(years[0].noi)

    def test_baseline_expense_ratio(self, flat_deal):
        year = generate_proforma(flat_deal).years[0]
        assert year.total_expenses / year.gross_revenue == pytest.approx(0.73)

    def test_exit_price_matches_purchase(self, flat_deal):
        exit_year = generate_proforma(flat_deal).years[4]
        assert exit_year.exit_sale_price == pytest.approx(flat_deal.purchase_price)

    def test_debt_service(self, flat_deal):
        years = generate_proforma(flat_deal).years
        expected = calculate_annual_debt_service(4375000, 0.08, 25)
        for year in years:
            assert year.debt_service == pytest.approx(expected)
            assert year.cash_flow == pytest.approx(year.noi - year.debt_service)

    def test_exit_proceeds_with_amortized_balance(self, flat_deal):
        exit_year = generate_proforma(flat_deal).years[4]
        balance = calculate_remaining_balance(4375000, 0.08, 25, 60)
        sale = exit_year.exit_sale_price
        assert exit_year.exit_proceeds == pytest.approx(sale - balance - sale * 0.02)
        assert exit_year.loan_balance == 0

    def test_exit_proceeds_with_approximate_balance(self, flat_deal):
        assumptions = replace(flat_deal, balance_method=BalanceMethod.APPROXIMATE)
        exit_year = generate_proforma(assumptions).years[4]
        sale = exit_year.exit_sale_price
        assert exit_year.exit_proceeds == pytest.approx(sale - 4375000 * 0.85 - sale * 0.02)

    def test_metrics(self, flat_deal):
        result = generate_proforma(flat_deal)
        metrics = result.metrics
        operating = sum(y.cash_flow for y in result.years)

        assert metrics.total_equity_invested == pytest.approx(1875000)
        assert metrics.total_operating_cash_flow == pytest.approx(operating)
        assert metrics.refi_distribution == 0
        assert metrics.exit_proceeds == pytest.approx(result.years[4].exit_proceeds)
        assert metrics.total_distributions == pytest.approx(operating + metrics.exit_proceeds)
        assert metrics.equity_multiple == pytest.approx(metrics.total_distributions / 1875000)
        assert metrics.average_cash_on_cash == pytest.approx(operating / 5 / 1875000)

    def test_irr_solves_distribution_series(self, flat_deal):
        result = generate_proforma(flat_deal)
        series = [-result.metrics.total_equity_invested] + [
            y.total_distribution for y in result.years
        ]
        assert result.metrics.irr_converged
        assert 0 < result.metrics.irr < 1
        assert calculate_npv(series, result.metrics.irr) == pytest.approx(0, abs=1)

    def test_only_exit_fee_reduces_cash(self, flat_deal):
        metrics = generate_proforma(flat_deal).metrics
        assert metrics.acquisition_fee == pytest.approx(6250000 * 0.02)
        assert metrics.exit_fee == pytest.approx(6250000 * 0.02)
        assert metrics.refi_fee == 0
        assert metrics.asset_management_fees > 0


class TestRefinance:
    """Test the refinance event and the financing regime change."""

    def test_refi_distribution_positive(self, value_add_deal):
        refi_year = generate_proforma(value_add_deal).years[1]
        assert refi_year.is_refi_year
        assert refi_year.refi_distribution > 0

    def test_refi_loan_sized_on_exit_cap(self, value_add_deal):
        refi_year = generate_proforma(value_add_deal).years[1]
        assert refi_year.refi_loan_amount == pytest.approx(refi_year.noi / 0.085 * 0.75)

    def test_refi_distribution_against_old_balance(self, value_add_deal):
        refi_year = generate_proforma(value_add_deal).years[1]
        old_balance = calculate_remaining_balance(4375000, 0.08, 25, 24)
        assert refi_year.refi_distribution == pytest.approx(
            refi_year.refi_loan_amount - old_balance
        )

    def test_legacy_refi_balance(self, value_add_deal):
        assumptions = replace(value_add_deal, balance_method=BalanceMethod.APPROXIMATE)
        refi_year = generate_proforma(assumptions).years[1]
        assert refi_year.refi_distribution == pytest.approx(
            refi_year.refi_loan_amount - 4375000 * (1 - 0.15 * 2 / 5)
        )

    def test_financing_changes_after_refi(self, value_add_deal):
        years = generate_proforma(value_add_deal).years
        new_loan = years[1].refi_loan_amount
        new_service = calculate_annual_debt_service(new_loan, 0.065, 25)

        assert years[0].debt_service == pytest.approx(years[1].debt_service)
        for year in years[2:]:
            assert year.loan_amount == pytest.approx(new_loan)
            assert year.debt_service == pytest.approx(new_service)

    def test_refi_rate_falls_back_to_original(self, value_add_deal):
        assumptions = replace(value_add_deal, refi_interest_rate=None)
        years = generate_proforma(assumptions).years
        expected = calculate_annual_debt_service(years[1].refi_loan_amount, 0.08, 25)
        assert years[2].debt_service == pytest.approx(expected)

    def test_exit_repays_refinanced_loan(self, value_add_deal):
        years = generate_proforma(value_add_deal).years
        exit_year = years[4]
        balance = calculate_remaining_balance(years[1].refi_loan_amount, 0.065, 25, 36)
        sale = exit_year.exit_sale_price
        assert exit_year.exit_proceeds == pytest.approx(sale - balance - sale * 0.02)

    def test_metrics_include_refi(self, value_add_deal):
        result = generate_proforma(value_add_deal)
        metrics = result.metrics
        assert metrics.refi_distribution == pytest.approx(result.years[1].refi_distribution)
        assert metrics.total_distributions == pytest.approx(
            metrics.total_operating_cash_flow + metrics.refi_distribution + metrics.exit_proceeds
        )
        assert metrics.refi_fee == pytest.approx(result.years[1].refi_loan_amount * 0.01)


class TestEdgeCases:
    """Inputs the engine tolerates without raising."""

    def test_zero_purchase_price(self, flat_deal):
        metrics = generate_proforma(replace(flat_deal, purchase_price=0)).metrics
        assert metrics.equity_multiple == 0
        assert metrics.average_cash_on_cash == 0

    def test_zero_down_payment(self, flat_deal):
        metrics = generate_proforma(replace(flat_deal, down_payment_pct=0)).metrics
        assert metrics.total_equity_invested == 0
        assert metrics.equity_multiple == 0
        assert metrics.average_cash_on_cash == 0

    def test_exit_after_hold(self, flat_deal):
        result = generate_proforma(replace(flat_deal, exit_year=7))
        assert not any(y.is_exit_year for y in result.years)
        assert result.metrics.exit_proceeds == 0

    def test_refi_and_exit_same_year(self, value_add_deal):
        years = generate_proforma(replace(value_add_deal, refi_year=5)).years
        assert years[4].is_refi_year and years[4].is_exit_year
        assert years[4].loan_balance == 0

    def test_refi_after_exit(self, value_add_deal):
        """A refinance scheduled after the sale still fires in its own year."""
        years = generate_proforma(
            replace(value_add_deal, hold_years=7, exit_year=5, refi_year=6)
        ).years
        assert len(years) == 7
        assert [y.year for y in years if y.is_refi_year] == [6]
        assert [y.year for y in years if y.is_exit_year] == [5]

    def test_zero_current_occupancy(self, flat_deal):
        years = generate_proforma(replace(flat_deal, current_occupancy=0)).years
        assert years[0].noi == pytest.approx(500000)

    def test_zero_exit_cap_rate(self, flat_deal):
        exit_year = generate_proforma(replace(flat_deal, exit_cap_rate=0)).years[4]
        assert exit_year.exit_sale_price == 0

    def test_observed_baseline(self, flat_deal):
        assumptions = replace(
            flat_deal,
            current_gross_revenue=2000000,
            current_total_expenses=1500000,
            annual_rent_growth=0.03,
            annual_expense_inflation=0.02,
        )
        year = generate_proforma(assumptions).years[0]
        assert year.gross_revenue == pytest.approx(2000000 * 1.03)
        assert year.total_expenses == pytest.approx(1500000 * 1.02)

    def test_partial_observed_baseline_is_ignored(self, flat_deal):
        year = generate_proforma(replace(flat_deal, current_gross_revenue=2000000)).years[0]
        assert year.gross_revenue == pytest.approx(500000 / 0.27)

    def test_first_year_without_previous(self, value_add_deal):
        year = calculate_proforma_year(1, value_add_deal, None)
        assert year.loan_amount == pytest.approx(4375000)


class TestAssumptionChecks:
    """Test assumption warnings."""

    def test_clean_assumptions(self, value_add_deal):
        assert check_assumptions(value_add_deal) == []

    def test_exit_after_hold(self, flat_deal):
        warnings = check_assumptions(replace(flat_deal, exit_year=7))
        assert any("after the 5-year hold" in w for w in warnings)

    def test_refi_not_before_exit(self, value_add_deal):
        warnings = check_assumptions(replace(value_add_deal, refi_year=5))
        assert any("not before exit year" in w for w in warnings)

    def test_exit_cap_below_purchase(self, flat_deal):
        warnings = check_assumptions(replace(flat_deal, exit_cap_rate=0.07))
        assert any("below the purchase cap rate" in w for w in warnings)

    def test_non_positive_exit_cap(self, flat_deal):
        warnings = check_assumptions(replace(flat_deal, exit_cap_rate=0))
        assert any("must be positive" in w for w in warnings)


class TestProformaRecords:
    """Test the storage row shape."""

    def test_rows_use_decimal_strings(self, flat_deal):
        years = generate_proforma(flat_deal).years
        rows = proforma_records(42, years)

        assert len(rows) == 5
        assert rows[0]["deal_id"] == 42
        assert rows[0]["year"] == 1
        assert float(rows[0]["cash_flow"]) == years[0].cash_flow
        assert float(rows[0]["projected_noi"]) == years[0].noi
        assert rows[0]["capital_returned"] is None
        assert rows[4]["is_exit_year"] is True
        assert float(rows[4]["capital_returned"]) == years[4].capital_returned


class TestBuildAssumptions:
    """Test assumption defaults resolved from deal data."""

    def test_defaults_from_deal(self):
        assumptions = build_assumptions(DealTerms(asking_price=6250000, noi_current=500000))
        assert assumptions.current_noi == 500000
        assert assumptions.current_occupancy == 0.85
        assert assumptions.occupancy_ramp_years == 1
        assert assumptions.exit_year == 5
        assert assumptions.exit_cap_rate == pytest.approx(0.088)
        assert assumptions.refi_year == 2
        assert assumptions.refi_loan_to_value == 0.75
        assert assumptions.target_occupancy == 0.93
        assert assumptions.exit_fee_pct == 0.02

    def test_short_hold_has_no_default_refi(self):
        deal = DealTerms(asking_price=6250000, noi_current=500000)
        for hold_years in (1, 2):
            assumptions = build_assumptions(deal, inputs=ProjectionInputs(hold_years=hold_years))
            assert assumptions.refi_year is None
            assert not assumptions.has_refi

    def test_refi_year_zero_opts_out_of_default(self):
        assumptions = build_assumptions(
            DealTerms(asking_price=6250000, noi_current=500000),
            inputs=ProjectionInputs(refi_year=0),
        )
        assert assumptions.refi_year == 0
        assert not any(y.is_refi_year for y in generate_proforma(assumptions).years)

    def test_t12_takes_precedence(self, t12_months):
        totals = calculate_t12_totals(t12_months)
        assumptions = build_assumptions(
            DealTerms(asking_price=4500000, noi_current=250000), totals
        )
        assert assumptions.current_noi == pytest.approx(360000)
        assert assumptions.current_occupancy == pytest.approx(0.9)
        assert assumptions.current_gross_revenue is None

    def test_missing_price_uses_default_cap(self):
        assumptions = build_assumptions(DealTerms(noi_current=500000))
        assert assumptions.purchase_price == 0
        assert assumptions.exit_cap_rate == pytest.approx(0.088)

    def test_overrides(self, t12_months):
        totals = calculate_t12_totals(t12_months)
        inputs = ProjectionInputs(
            hold_years=7,
            annual_rent_growth=0.04,
            refi_year=0,
            exit_cap_rate=0.09,
            use_observed_expense_ratio=True,
            balance_method=BalanceMethod.APPROXIMATE,
        )
        assumptions = build_assumptions(DealTerms(asking_price=4500000), totals, inputs)
        assert assumptions.hold_years == 7
        assert assumptions.exit_year == 7
        assert assumptions.annual_rent_growth == 0.04
        assert not assumptions.has_refi
        assert assumptions.exit_cap_rate == 0.09
        assert assumptions.current_gross_revenue == pytest.approx(1200000)
        assert assumptions.current_total_expenses == pytest.approx(840000)
        assert assumptions.balance_method == BalanceMethod.APPROXIMATE

    def test_default_ramp_years(self):
        assert default_ramp_years(0.80) == 2
        assert default_ramp_years(0.85) == 1
