"""
Financial metrics engine.

Pure functions of (net capex, first-year savings, discount rate, horizon). The
net flow for year y = 1..N is

    f_y = s · (1 − d)^(y − 1) · (1 + e)^(y − 1) − opex · (1 + g)^(y − 1) − R_y

with d the degradation rate, e the energy tariff escalation, g the O&M
escalation and R_y the battery replacement cost in a replacement year. With
the default CashflowDrivers every term but the first is zero and e = 0.

NPV:
    NPV(r) = −capex + Σ f_y / (1 + r)^y

IRR is the r with NPV(r) = 0, found by Newton-Raphson:
    dNPV/dr = Σ −y · f_y / (1 + r)^(y + 1)

The iteration starts at 10%, stops once |NPV| < 1 currency unit and is capped
at a fixed number of steps. The rate is clamped to (0, 0.999) after every
step, so a non-convergent case reports IRR as undefined instead of raising.
"""

from typing import Optional, Sequence

import numpy as np

from solarsim.config import (
    EXPORT_CREDIT_RATIO,
    IRR_INITIAL_GUESS,
    IRR_TOLERANCE,
    IRR_MAX_ITERATIONS,
    IRR_LOWER_BOUND,
    IRR_UPPER_BOUND,
    LCOE_HORIZONS,
    NPV_REPORT_HORIZONS,
    SENSITIVITY_STEPS,
)
from solarsim.errors import ValidationError
from solarsim.models.financial import (
    CashflowDrivers,
    CashflowEntry,
    FinancialMetrics,
    IRRResult,
    SavingsBreakdown,
    SensitivityRow,
)


def annual_savings(
    self_consumed_kwh: float,
    exported_kwh: float,
    energy_rate: float,
    demand_rate: float = 0.0,
    battery_power_kw: float = 0.0,
    peak_demand_kw: Optional[float] = None,
    export_credit_ratio: float = EXPORT_CREDIT_RATIO,
) -> SavingsBreakdown:
    """
    First-year bill savings.

    Self-consumed energy is valued at the retail energy rate, exports at the
    retail rate times the credit ratio. A battery shaves the monthly peak by
    its power rating (never more than the peak itself).
    """
    if energy_rate < 0 or demand_rate < 0:
        raise ValidationError("Energy and demand rates must be non-negative")

    energy_savings = self_consumed_kwh * energy_rate
    export_credit = exported_kwh * energy_rate * export_credit_ratio

    reduction_kw = max(0.0, battery_power_kw)
    if peak_demand_kw is not None:
        reduction_kw = min(reduction_kw, max(0.0, peak_demand_kw))
    demand_savings = reduction_kw * demand_rate * 12

    return SavingsBreakdown(
        self_consumed_kwh=round(self_consumed_kwh, 2),
        exported_kwh=round(exported_kwh, 2),
        energy_savings=round(energy_savings, 2),
        export_credit=round(export_credit, 2),
        demand_reduction_kw=reduction_kw,
        demand_savings=round(demand_savings, 2),
        annual_savings=round(energy_savings + export_credit + demand_savings, 2),
    )


def simple_payback(net_capex: float, savings: float, opex: float = 0.0) -> Optional[float]:
    """Years to recover net capex; None when savings never pay it back."""
    benefit = savings - opex
    if benefit <= 0:
        return None
    return max(0.0, net_capex) / benefit


def _validate(discount_rate: float, horizon_years: int) -> None:
    if discount_rate <= -1:
        raise ValidationError(f"discount_rate must be > -1, got {discount_rate}")
    if horizon_years < 1:
        raise ValidationError(f"horizon_years must be at least 1, got {horizon_years}")


def savings_series(
    savings: float,
    horizon_years: int,
    degradation_rate: float = 0.0,
    escalation_rate: float = 0.0,
) -> np.ndarray:
    """Savings for years 1..N."""
    years = np.arange(horizon_years)
    return savings * (1.0 - degradation_rate) ** years * (1.0 + escalation_rate) ** years


def yearly_flows(
    savings: float,
    horizon_years: int,
    degradation_rate: float = 0.0,
    drivers: Optional[CashflowDrivers] = None,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Savings, O&M cost and battery replacement cost for years 1..N.

    A replacement in year y costs battery_capex × cost factor ×
    (1 + escalation − price decline)^y. Replacement years past the horizon are
    ignored.
    """
    drivers = drivers or CashflowDrivers()
    years = np.arange(horizon_years)

    gross = savings_series(savings, horizon_years, degradation_rate, drivers.escalation_rate)
    opex = drivers.opex_base * (1.0 + drivers.opex_escalation) ** years

    replacement = np.zeros(horizon_years)
    if drivers.battery_capex > 0:
        price_change = 1.0 + drivers.escalation_rate - drivers.battery_price_decline
        for year in drivers.replacement_years:
            if 1 <= year <= horizon_years:
                replacement[year - 1] = (
                    drivers.battery_capex * drivers.replacement_cost_factor * price_change ** year
                )

    return gross, opex, replacement


def net_flows(
    savings: float,
    horizon_years: int,
    degradation_rate: float = 0.0,
    drivers: Optional[CashflowDrivers] = None,
) -> np.ndarray:
    gross, opex, replacement = yearly_flows(savings, horizon_years, degradation_rate, drivers)
    return gross - opex - replacement


def npv(
    net_capex: float,
    savings: float,
    discount_rate: float,
    horizon_years: int,
    degradation_rate: float = 0.0,
    drivers: Optional[CashflowDrivers] = None,
) -> float:
    _validate(discount_rate, horizon_years)
    flows = net_flows(savings, horizon_years, degradation_rate, drivers)
    years = np.arange(1, horizon_years + 1)
    return float(-net_capex + np.sum(flows / (1.0 + discount_rate) ** years))


def irr(
    net_capex: float,
    savings: float,
    horizon_years: int,
    degradation_rate: float = 0.0,
    drivers: Optional[CashflowDrivers] = None,
) -> IRRResult:
    """Internal rate of return by bounded Newton-Raphson."""
    if horizon_years < 1:
        raise ValidationError(f"horizon_years must be at least 1, got {horizon_years}")
    if net_capex <= 0:
        return IRRResult(converged=False, iterations=0, reason="net capex is not positive")
    if savings <= 0:
        return IRRResult(converged=False, iterations=0, reason="savings are not positive")

    flows = net_flows(savings, horizon_years, degradation_rate, drivers)
    # Undiscounted flows at or below capex put the root at r <= 0
    if flows.sum() <= net_capex:
        return IRRResult(converged=False, iterations=0, reason="cash flows never recover net capex")

    years = np.arange(1, horizon_years + 1)

    rate = IRR_INITIAL_GUESS
    for iteration in range(1, IRR_MAX_ITERATIONS + 1):
        growth = (1.0 + rate) ** years
        value = -net_capex + float(np.sum(flows / growth))
        if abs(value) < IRR_TOLERANCE:
            return IRRResult(value=rate, converged=True, iterations=iteration)

        derivative = float(np.sum(-years * flows / (growth * (1.0 + rate))))
        if derivative == 0:
            return IRRResult(converged=False, iterations=iteration, reason="zero derivative")

        rate = min(max(rate - value / derivative, IRR_LOWER_BOUND), IRR_UPPER_BOUND)

    return IRRResult(
        converged=False,
        iterations=IRR_MAX_ITERATIONS,
        reason=f"no convergence within {IRR_MAX_ITERATIONS} iterations",
    )


def npv_by_horizon(
    net_capex: float,
    savings: float,
    discount_rate: float,
    degradation_rate: float = 0.0,
    horizons: Sequence[int] = NPV_REPORT_HORIZONS,
    drivers: Optional[CashflowDrivers] = None,
) -> dict[int, float]:
    return {
        h: round(npv(net_capex, savings, discount_rate, h, degradation_rate, drivers), 2)
        for h in horizons
    }


def lcoe(
    net_capex: float,
    annual_production_kwh: float,
    horizon_years: int,
    degradation_rate: float = 0.0,
    opex_base: float = 0.0,
) -> Optional[float]:
    """
    Levelized cost of energy in $/kWh.

    (net capex + opex × N) / lifetime production, production degrading each
    year. None when the system produces nothing.
    """
    if horizon_years < 1:
        raise ValidationError(f"horizon_years must be at least 1, got {horizon_years}")
    lifetime_kwh = float(np.sum(savings_series(annual_production_kwh, horizon_years, degradation_rate)))
    if lifetime_kwh <= 0:
        return None
    return (net_capex + opex_base * horizon_years) / lifetime_kwh


def lcoe_by_horizon(
    net_capex: float,
    annual_production_kwh: float,
    degradation_rate: float = 0.0,
    opex_base: float = 0.0,
    horizons: Sequence[int] = LCOE_HORIZONS,
) -> dict[int, Optional[float]]:
    values = {}
    for h in horizons:
        value = lcoe(net_capex, annual_production_kwh, h, degradation_rate, opex_base)
        values[h] = round(value, 5) if value is not None else None
    return values


def compute_financial_metrics(
    net_capex: float,
    savings: float,
    discount_rate: float,
    horizon_years: int,
    degradation_rate: float = 0.0,
    drivers: Optional[CashflowDrivers] = None,
) -> FinancialMetrics:
    """Payback, NPV at the analysis horizon and the reporting horizons, and IRR."""
    drivers = drivers or CashflowDrivers()
    payback = simple_payback(net_capex, savings, drivers.opex_base)
    irr_result = irr(net_capex, savings, horizon_years, degradation_rate, drivers)

    return FinancialMetrics(
        net_capex=round(net_capex, 2),
        annual_savings=round(savings, 2),
        discount_rate=discount_rate,
        horizon_years=horizon_years,
        simple_payback_years=round(payback, 2) if payback is not None else None,
        npv=round(npv(net_capex, savings, discount_rate, horizon_years, degradation_rate, drivers), 2),
        irr=round(irr_result.value, 6) if irr_result.value is not None else None,
        irr_converged=irr_result.converged,
        npv_by_horizon=npv_by_horizon(
            net_capex, savings, discount_rate, degradation_rate, drivers=drivers
        ),
        first_year_opex=round(drivers.opex_base, 2),
    )


def build_cashflows(
    net_capex: float,
    savings: float,
    discount_rate: float,
    horizon_years: int,
    degradation_rate: float = 0.0,
    drivers: Optional[CashflowDrivers] = None,
) -> list[CashflowEntry]:
    """Year-by-year cash flow series, year 0 being the net investment."""
    _validate(discount_rate, horizon_years)
    gross, opex, replacement = yearly_flows(savings, horizon_years, degradation_rate, drivers)

    entries = [
        CashflowEntry(
            year=0,
            savings=0.0,
            investment=round(net_capex, 2),
            net_cashflow=round(-net_capex, 2),
            discounted_cashflow=round(-net_capex, 2),
            cumulative_cashflow=round(-net_capex, 2),
            cumulative_discounted=round(-net_capex, 2),
        )
    ]

    cumulative = -net_capex
    cumulative_discounted = -net_capex
    for year in range(1, horizon_years + 1):
        flow = float(gross[year - 1] - opex[year - 1] - replacement[year - 1])
        discounted = flow / (1.0 + discount_rate) ** year
        cumulative += flow
        cumulative_discounted += discounted
        entries.append(CashflowEntry(
            year=year,
            savings=round(float(gross[year - 1]), 2),
            opex=round(float(opex[year - 1]), 2),
            investment=round(float(replacement[year - 1]), 2),
            net_cashflow=round(flow, 2),
            discounted_cashflow=round(discounted, 2),
            cumulative_cashflow=round(cumulative, 2),
            cumulative_discounted=round(cumulative_discounted, 2),
        ))
    return entries


def sensitivity_table(
    net_capex: float,
    savings: float,
    discount_rate: float,
    horizon_years: int,
    degradation_rate: float = 0.0,
    demand_savings: float = 0.0,
    steps: Sequence[float] = SENSITIVITY_STEPS,
    drivers: Optional[CashflowDrivers] = None,
) -> list[SensitivityRow]:
    """
    NPV, payback and IRR under relative changes to energy rate and capex.

    An energy rate change scales only the energy part of the savings; demand
    charge savings stay fixed.
    """
    energy_part = savings - demand_savings
    rows = []

    for step in steps:
        adjusted = energy_part * (1.0 + step) + demand_savings
        rows.append(_sensitivity_row(
            "energy_rate", step, net_capex, adjusted,
            discount_rate, horizon_years, degradation_rate, drivers,
        ))

    for step in steps:
        rows.append(_sensitivity_row(
            "capex", step, net_capex * (1.0 + step), savings,
            discount_rate, horizon_years, degradation_rate, drivers,
        ))

    return rows


def _sensitivity_row(
    parameter: str,
    step: float,
    net_capex: float,
    savings: float,
    discount_rate: float,
    horizon_years: int,
    degradation_rate: float,
    drivers: Optional[CashflowDrivers],
) -> SensitivityRow:
    opex = drivers.opex_base if drivers else 0.0
    payback = simple_payback(net_capex, savings, opex)
    irr_result = irr(net_capex, savings, horizon_years, degradation_rate, drivers)
    return SensitivityRow(
        parameter=parameter,
        change_percent=round(step * 100.0, 1),
        npv=round(npv(net_capex, savings, discount_rate, horizon_years, degradation_rate, drivers), 2),
        simple_payback_years=round(payback, 2) if payback is not None else None,
        irr=round(irr_result.value, 6) if irr_result.value is not None else None,
    )
