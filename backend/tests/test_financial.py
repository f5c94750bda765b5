"""
Tests for the financial metrics engine.

Covers savings, payback, NPV (including the r = 0 boundary), IRR round trips,
a cross-check against scipy's brentq, undefined IRR cases, cash flows,
sensitivity rows, escalation, O&M, battery replacement and LCOE.
"""

import pytest
from scipy.optimize import brentq

from solarsim.engine.financial import (
    annual_savings,
    build_cashflows,
    compute_financial_metrics,
    irr,
    lcoe,
    lcoe_by_horizon,
    npv,
    sensitivity_table,
    simple_payback,
)
from solarsim.models.financial import CashflowDrivers


def approx(value: float, rel_tol: float = 1e-6, abs_tol: float = 0.01):
    return pytest.approx(value, rel=rel_tol, abs=abs_tol)


def annuity_savings(capex: float, rate: float, years: int) -> float:
    """Level savings whose NPV at `rate` is exactly zero."""
    return capex * rate / (1 - (1 + rate) ** -years)


class TestAnnualSavings:
    def test_energy_and_export(self):
        result = annual_savings(1_000, 500, 0.10, export_credit_ratio=0.5)
        assert result.energy_savings == approx(100)
        assert result.export_credit == approx(25)
        assert result.annual_savings == approx(125)

    def test_demand_capped_by_peak(self):
        result = annual_savings(0, 0, 0.10, demand_rate=17.573, battery_power_kw=50, peak_demand_kw=30)
        assert result.demand_reduction_kw == 30
        assert result.demand_savings == approx(round(30 * 17.573 * 12, 2))

    def test_no_battery_no_demand_savings(self):
        result = annual_savings(1_000, 0, 0.10, demand_rate=17.573)
        assert result.demand_savings == 0.0


class TestSimplePayback:
    def test_payback(self):
        assert simple_payback(100_000, 10_000) == approx(10)

    def test_zero_savings_undefined(self):
        assert simple_payback(100_000, 0) is None

    def test_negative_savings_undefined(self):
        assert simple_payback(100_000, -5) is None


class TestNPV:
    def test_zero_rate(self):
        assert npv(100_000, 10_000, 0.0, 25) == approx(25 * 10_000 - 100_000)

    def test_single_year(self):
        assert npv(1_000, 1_100, 0.10, 1) == approx(0)

    def test_decreasing_in_rate(self):
        values = [npv(100_000, 10_000, r, 25) for r in (0.0, 0.03, 0.07, 0.12)]
        assert values == sorted(values, reverse=True)

    def test_degradation_lowers_npv(self):
        flat = npv(100_000, 10_000, 0.07, 25)
        degraded = npv(100_000, 10_000, 0.07, 25, degradation_rate=0.005)
        assert degraded < flat


class TestIRR:
    @pytest.mark.parametrize("rate", [0.02, 0.05, 0.08, 0.15, 0.30])
    def test_round_trip(self, rate):
        capex = 1_000_000
        savings = annuity_savings(capex, rate, 25)
        result = irr(capex, savings, 25)
        assert result.converged
        assert abs(result.value - rate) < 1e-3

    def test_matches_brentq(self):
        capex, savings, years = 1_961_536.5, 175_961.44, 25
        result = irr(capex, savings, years)
        reference = brentq(lambda r: npv(capex, savings, r, years), 1e-6, 0.999)
        assert result.converged
        assert abs(result.value - reference) < 1e-4

    def test_matches_brentq_with_degradation(self):
        capex, savings, years = 500_000, 60_000, 20
        result = irr(capex, savings, years, degradation_rate=0.01)
        reference = brentq(lambda r: npv(capex, savings, r, years, 0.01), 1e-6, 0.999)
        assert abs(result.value - reference) < 1e-4

    def test_npv_zero_at_irr(self):
        result = irr(250_000, 30_000, 25)
        assert abs(npv(250_000, 30_000, result.value, 25)) < 1.0

    def test_zero_savings_undefined(self):
        result = irr(100_000, 0, 25)
        assert result.value is None
        assert not result.converged

    def test_zero_capex_undefined(self):
        assert irr(0, 10_000, 25).value is None

    def test_never_pays_back_undefined(self):
        # Undiscounted savings below capex: IRR is negative, outside (0, 0.999)
        result = irr(1_000_000, 10_000, 25)
        assert result.value is None
        assert result.iterations <= 50

    def test_extreme_return_undefined(self):
        result = irr(1_000, 100_000, 25)
        assert result.value is None
        assert not result.converged


class TestFinancialMetrics:
    def setup_method(self):
        self.metrics = compute_financial_metrics(100_000, 12_000, 0.07, 25)

    def test_payback(self):
        assert self.metrics.simple_payback_years == approx(8.33)

    def test_npv(self):
        assert self.metrics.npv == approx(round(npv(100_000, 12_000, 0.07, 25), 2))

    def test_horizons(self):
        assert set(self.metrics.npv_by_horizon) == {10, 20, 25}
        assert self.metrics.npv_by_horizon[25] == approx(self.metrics.npv)
        assert self.metrics.npv_by_horizon[10] < self.metrics.npv_by_horizon[20]

    def test_irr(self):
        assert self.metrics.irr_converged
        assert 0.10 < self.metrics.irr < 0.12

    def test_undefined_payback(self):
        metrics = compute_financial_metrics(100_000, 0, 0.07, 25)
        assert metrics.simple_payback_years is None
        assert metrics.irr is None
        assert metrics.npv == approx(-100_000)


class TestCashflows:
    def setup_method(self):
        self.entries = build_cashflows(100_000, 10_000, 0.07, 25)

    def test_length(self):
        assert len(self.entries) == 26

    def test_year_zero(self):
        assert self.entries[0].net_cashflow == approx(-100_000)
        assert self.entries[0].investment == approx(100_000)

    def test_cumulative(self):
        assert self.entries[-1].cumulative_cashflow == approx(150_000)

    def test_discounted_cumulative_is_npv(self):
        assert self.entries[-1].cumulative_discounted == approx(npv(100_000, 10_000, 0.07, 25), abs_tol=0.5)


class TestSensitivity:
    def setup_method(self):
        self.rows = sensitivity_table(100_000, 12_000, 0.07, 25)
        self.base = npv(100_000, 12_000, 0.07, 25)

    def test_row_count(self):
        assert len(self.rows) == 10

    def test_zero_change_is_base(self):
        for row in self.rows:
            if row.change_percent == 0:
                assert row.npv == approx(self.base)

    def test_energy_rate_direction(self):
        rows = {r.change_percent: r for r in self.rows if r.parameter == "energy_rate"}
        assert rows[20.0].npv > self.base > rows[-20.0].npv

    def test_capex_direction(self):
        rows = {r.change_percent: r for r in self.rows if r.parameter == "capex"}
        assert rows[20.0].npv < self.base < rows[-20.0].npv

    def test_demand_savings_fixed(self):
        rows = sensitivity_table(100_000, 12_000, 0.07, 25, demand_savings=12_000)
        energy_rows = [r for r in rows if r.parameter == "energy_rate"]
        assert all(r.npv == approx(self.base) for r in energy_rows)


class TestCashflowDrivers:
    """Zero discount rate so every NPV is a plain sum of the yearly flows."""

    def test_default_drivers_match_flat_savings(self):
        assert npv(100_000, 10_000, 0.07, 25, drivers=CashflowDrivers()) == approx(npv(100_000, 10_000, 0.07, 25))

    def test_tariff_escalation(self):
        value = npv(100_000, 10_000, 0.0, 3, drivers=CashflowDrivers(escalation_rate=0.10))
        assert value == approx(-100_000 + 10_000 + 11_000 + 12_100)

    def test_escalation_on_top_of_degradation(self):
        drivers = CashflowDrivers(escalation_rate=0.10)
        value = npv(100_000, 10_000, 0.0, 2, degradation_rate=0.5, drivers=drivers)
        assert value == approx(-100_000 + 10_000 + 10_000 * 0.5 * 1.1)

    def test_escalating_opex(self):
        drivers = CashflowDrivers(opex_base=1_000, opex_escalation=0.5)
        value = npv(100_000, 10_000, 0.0, 3, drivers=drivers)
        assert value == approx(-100_000 + 30_000 - (1_000 + 1_500 + 2_250))

    def test_battery_replacement(self):
        drivers = CashflowDrivers(
            battery_capex=10_000,
            replacement_years=(2, 5),
            replacement_cost_factor=0.6,
            battery_price_decline=0.05,
        )
        # Year 5 falls outside a 3-year horizon
        value = npv(100_000, 10_000, 0.0, 3, drivers=drivers)
        assert value == approx(-100_000 + 30_000 - 10_000 * 0.6 * 0.95 ** 2)

    def test_replacement_needs_battery_capex(self):
        drivers = CashflowDrivers(replacement_years=(2,), replacement_cost_factor=0.6)
        assert npv(100_000, 10_000, 0.0, 3, drivers=drivers) == approx(-70_000)

    def test_irr_matches_brentq_with_drivers(self):
        capex, savings, years = 500_000, 60_000, 25
        drivers = CashflowDrivers(escalation_rate=0.03, opex_base=5_000, opex_escalation=0.02)
        result = irr(capex, savings, years, drivers=drivers)
        reference = brentq(lambda r: npv(capex, savings, r, years, drivers=drivers), 1e-6, 0.999)
        assert result.converged
        assert abs(result.value - reference) < 1e-4

    def test_opex_consuming_savings_leaves_irr_undefined(self):
        result = irr(100_000, 10_000, 25, drivers=CashflowDrivers(opex_base=10_000))
        assert result.value is None
        assert not result.converged

    def test_payback_net_of_opex(self):
        assert simple_payback(100_000, 12_000, opex=2_000) == approx(10)
        assert simple_payback(100_000, 2_000, opex=2_000) is None

    def test_metrics_report_opex(self):
        metrics = compute_financial_metrics(100_000, 12_000, 0.07, 25, drivers=CashflowDrivers(opex_base=2_000))
        assert metrics.first_year_opex == approx(2_000)
        assert metrics.simple_payback_years == approx(10)
        assert metrics.npv < compute_financial_metrics(100_000, 12_000, 0.07, 25).npv

    def test_cashflow_rows(self):
        drivers = CashflowDrivers(
            opex_base=500,
            battery_capex=10_000,
            replacement_years=(2,),
            replacement_cost_factor=0.6,
        )
        entries = build_cashflows(100_000, 10_000, 0.0, 3, drivers=drivers)
        assert entries[1].opex == approx(500)
        assert entries[1].investment == 0.0
        assert entries[2].investment == approx(10_000 * 0.6)
        assert entries[2].net_cashflow == approx(10_000 - 500 - 6_000)
        assert entries[-1].cumulative_cashflow == approx(-100_000 + 30_000 - 1_500 - 6_000)


class TestLCOE:
    def test_flat(self):
        assert lcoe(100_000, 10_000, 25) == approx(0.4, abs_tol=1e-9)

    def test_with_opex(self):
        assert lcoe(100_000, 10_000, 25, opex_base=1_000) == approx(0.5, abs_tol=1e-9)

    def test_degradation_raises_cost(self):
        assert lcoe(100_000, 10_000, 25, degradation_rate=0.005) > lcoe(100_000, 10_000, 25)

    def test_no_production(self):
        assert lcoe(100_000, 0, 25) is None

    def test_horizons(self):
        values = lcoe_by_horizon(100_000, 10_000)
        assert set(values) == {25, 30}
        assert values[30] < values[25]
