"""
Analysis pipeline.

Chains sizing -> production -> energy balance -> costs -> incentives ->
financial metrics. compute_quick_potential is the area-ratio estimate used
before any consumption data exists; build_run produces the persisted
SimulationRun + SimulationPayload for full analyses and variants.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from solarsim.config import DEFAULT_TARIFF_CODE, ENGINE_CONFIG_VERSION, RunType
from solarsim.engine.costs import compute_capex, compute_incentives
from solarsim.engine.financial import (
    annual_savings,
    build_cashflows,
    compute_financial_metrics,
    lcoe_by_horizon,
    sensitivity_table,
)
from solarsim.engine.production import annual_production, energy_balance, resolve_yield
from solarsim.engine.sizing import resolve_roof_area, size_system
from solarsim.engine.tariffs import calculate_annual_cost, get_simplified_rates
from solarsim.errors import ValidationError
from solarsim.models.assumptions import AnalysisAssumptions
from solarsim.models.financial import CapexBreakdown, CashflowDrivers
from solarsim.models.production import HourlyPoint, YieldEstimate, YieldStrategy
from solarsim.models.roof import RoofInput
from solarsim.models.simulation import (
    QuickPotentialResult,
    SimulationPayload,
    SimulationRun,
)

logger = logging.getLogger(__name__)


def resolve_rates(
    assumptions: AnalysisAssumptions,
    detected_code: Optional[str] = None,
) -> tuple[str, float, float]:
    """
    Tariff code plus effective energy and demand rates for a run.

    Explicit code on the assumptions wins over a detected one, then the default
    code. Explicit rate overrides win over the tariff's simplified rates.
    """
    code = assumptions.tariff_code or detected_code or DEFAULT_TARIFF_CODE
    energy_rate, demand_rate = get_simplified_rates(code)
    if assumptions.energy_rate is not None:
        energy_rate = assumptions.energy_rate
    if assumptions.demand_rate is not None:
        demand_rate = assumptions.demand_rate
    return code, energy_rate, demand_rate


def cashflow_drivers(assumptions: AnalysisAssumptions, capex: CapexBreakdown) -> CashflowDrivers:
    """O&M, tariff escalation and battery replacement inputs for one run."""
    replace_battery = assumptions.battery_replacement_enabled and capex.capex_battery > 0
    return CashflowDrivers(
        escalation_rate=assumptions.tariff_escalation_rate,
        opex_base=(
            capex.capex_pv * assumptions.om_pv_percent
            + capex.capex_battery * assumptions.om_battery_percent
        ),
        opex_escalation=assumptions.om_escalation_rate,
        battery_capex=capex.capex_battery if replace_battery else 0.0,
        replacement_years=assumptions.battery_replacement_years if replace_battery else (),
        replacement_cost_factor=assumptions.battery_replacement_cost_factor,
        battery_price_decline=assumptions.battery_price_decline_rate,
    )


def annual_bill(
    tariff_code: str,
    annual_consumption_kwh: Optional[float],
    peak_demand_kw: Optional[float],
    annual_savings: float,
) -> tuple[Optional[float], Optional[float]]:
    """
    Yearly bill before and after the system.

    The before bill prices the metered consumption on the run's tariff; the
    after bill is that minus first-year savings. (None, None) without consumption.
    """
    if not annual_consumption_kwh:
        return None, None
    before = calculate_annual_cost(tariff_code, annual_consumption_kwh, peak_demand_kw or 0.0)
    return before.annual_total, round(before.annual_total - annual_savings, 2)


def compute_quick_potential(
    roof: RoofInput,
    constraint_factor: Optional[float] = None,
    assumptions: Optional[AnalysisAssumptions] = None,
    yield_estimate: Optional[YieldEstimate] = None,
    site_area_sqm: Optional[float] = None,
    detected_tariff: Optional[str] = None,
) -> QuickPotentialResult:
    """Size, price and value a roof from its geometry alone."""
    assumptions = assumptions or AnalysisAssumptions()
    cf = constraint_factor if constraint_factor is not None else assumptions.constraint_factor

    if roof.manual_area is None and assumptions.roof_area_override is not None:
        roof = roof.model_copy(update={
            "manual_area": assumptions.roof_area_override,
            "manual_area_unit": assumptions.roof_area_unit,
        })

    area = resolve_roof_area(roof, site_area_sqm)
    sizing = size_system(area.total_area_sqm, cf, assumptions.panel_wattage_w, roof.layout)
    strategy = resolve_yield(assumptions, yield_estimate)
    production = annual_production(sizing.capacity_kw, strategy.effective_yield)

    code, energy_rate, _ = resolve_rates(assumptions, detected_tariff)

    capex = compute_capex(sizing.capacity_kw)
    incentives = compute_incentives(
        sizing.capacity_kw,
        capex,
        rate_per_w=assumptions.incentive_rate_per_w,
        cap_ratio=assumptions.incentive_cap_ratio,
        federal_rate=assumptions.federal_itc_rate,
        max_eligible_kw=assumptions.incentive_max_eligible_kw,
    )

    # No consumption curve yet: all production offsets purchased energy
    savings = annual_savings(production, 0.0, energy_rate)
    drivers = cashflow_drivers(assumptions, capex)
    financial = compute_financial_metrics(
        incentives.capex_net,
        savings.annual_savings,
        assumptions.discount_rate,
        assumptions.analysis_years,
        assumptions.degradation_rate,
        drivers,
    )

    return QuickPotentialResult(
        roof=area,
        sizing=sizing,
        yield_strategy=strategy,
        annual_production_kwh=round(production, 2),
        tariff_code=code,
        energy_rate=energy_rate,
        capex=capex,
        incentives=incentives,
        savings=savings,
        financial=financial,
        lcoe_by_horizon=lcoe_by_horizon(
            incentives.capex_net, production, assumptions.degradation_rate, drivers.opex_base
        ),
    )


def quick_run(
    site_id: str,
    result: QuickPotentialResult,
    assumptions: AnalysisAssumptions,
    label: Optional[str] = None,
) -> tuple[SimulationRun, SimulationPayload]:
    """Persistable QUICK run from a quick-potential result."""
    run_id = uuid.uuid4().hex
    run = SimulationRun(
        id=run_id,
        site_id=site_id,
        type=RunType.QUICK,
        label=label or "Quick potential",
        created_at=datetime.now(timezone.utc),
        pv_size_kw=result.sizing.capacity_kw,
        panel_count=result.sizing.panel_count,
        annual_production_kwh=result.annual_production_kwh,
        yield_kwh_per_kwp=result.yield_strategy.effective_yield,
        yield_source=result.yield_strategy.source,
        self_consumed_kwh=result.savings.self_consumed_kwh,
        tariff_code=result.tariff_code,
        energy_rate=result.energy_rate,
        capex_pv=result.capex.capex_pv,
        capex_battery=result.capex.capex_battery,
        capex_gross=result.capex.capex_gross,
        utility_incentive=result.incentives.utility_incentive,
        federal_credit=result.incentives.federal_credit,
        capex_net=result.incentives.capex_net,
        annual_savings=result.financial.annual_savings,
        simple_payback_years=result.financial.simple_payback_years,
        discount_rate=result.financial.discount_rate,
        horizon_years=result.financial.horizon_years,
        npv=result.financial.npv,
        npv_by_horizon=result.financial.npv_by_horizon,
        irr=result.financial.irr,
        annual_opex=result.financial.first_year_opex,
        lcoe=result.lcoe_by_horizon.get(25),
        lcoe_30=result.lcoe_by_horizon.get(30),
        assumptions=assumptions,
        config_version=ENGINE_CONFIG_VERSION,
    )
    payload = SimulationPayload(
        run_id=run_id,
        cashflows=build_cashflows(
            result.incentives.capex_net,
            result.financial.annual_savings,
            assumptions.discount_rate,
            assumptions.analysis_years,
            assumptions.degradation_rate,
            cashflow_drivers(assumptions, result.capex),
        ),
    )
    return run, payload


def build_run(
    site_id: str,
    assumptions: AnalysisAssumptions,
    pv_size_kw: float,
    yield_strategy: YieldStrategy,
    tariff_code: str,
    energy_rate: float,
    demand_rate: float = 0.0,
    battery_energy_kwh: float = 0.0,
    battery_power_kw: float = 0.0,
    panel_count: Optional[int] = None,
    peak_demand_kw: Optional[float] = None,
    hourly_profile: Optional[list[HourlyPoint]] = None,
    label: Optional[str] = None,
    base_run_id: Optional[str] = None,
) -> tuple[SimulationRun, SimulationPayload]:
    """Full SCENARIO analysis for an explicit PV / battery size."""
    if pv_size_kw <= 0 and battery_energy_kwh <= 0:
        raise ValidationError("A scenario needs a PV size or a battery size")

    production = annual_production(pv_size_kw, yield_strategy.effective_yield)
    balance = energy_balance(
        production,
        assumptions.monthly_consumption_kwh,
        battery_energy_kwh,
        hourly_profile,
        battery_power_kw,
    )

    savings = annual_savings(
        balance.self_consumed_kwh,
        balance.exported_kwh,
        energy_rate,
        demand_rate,
        battery_power_kw,
        peak_demand_kw,
        assumptions.export_credit_ratio,
    )

    capex = compute_capex(
        pv_size_kw,
        battery_energy_kwh,
        battery_power_kw,
        assumptions.battery_energy_cost_per_kwh,
        assumptions.battery_power_cost_per_kw,
    )
    incentives = compute_incentives(
        pv_size_kw,
        capex,
        rate_per_w=assumptions.incentive_rate_per_w,
        cap_ratio=assumptions.incentive_cap_ratio,
        federal_rate=assumptions.federal_itc_rate,
        max_eligible_kw=assumptions.incentive_max_eligible_kw,
    )

    drivers = cashflow_drivers(assumptions, capex)
    metrics = compute_financial_metrics(
        incentives.capex_net,
        savings.annual_savings,
        assumptions.discount_rate,
        assumptions.analysis_years,
        assumptions.degradation_rate,
        drivers,
    )
    if not metrics.irr_converged:
        logger.info("IRR undefined for site %s at %.1f kW", site_id, pv_size_kw)
    lcoe = lcoe_by_horizon(
        incentives.capex_net,
        balance.annual_production_kwh,
        assumptions.degradation_rate,
        drivers.opex_base,
    )
    cost_before, cost_after = annual_bill(
        tariff_code, balance.annual_consumption_kwh, peak_demand_kw, savings.annual_savings
    )

    run_id = uuid.uuid4().hex
    run = SimulationRun(
        id=run_id,
        site_id=site_id,
        type=RunType.SCENARIO,
        label=label,
        base_run_id=base_run_id,
        created_at=datetime.now(timezone.utc),
        pv_size_kw=pv_size_kw,
        battery_energy_kwh=battery_energy_kwh,
        battery_power_kw=battery_power_kw,
        panel_count=panel_count,
        annual_production_kwh=round(balance.annual_production_kwh, 2),
        yield_kwh_per_kwp=yield_strategy.effective_yield,
        yield_source=yield_strategy.source,
        annual_consumption_kwh=balance.annual_consumption_kwh,
        self_consumed_kwh=round(balance.self_consumed_kwh, 2),
        self_sufficiency_percent=balance.self_sufficiency_percent,
        tariff_code=tariff_code,
        energy_rate=energy_rate,
        demand_rate=demand_rate,
        capex_pv=capex.capex_pv,
        capex_battery=capex.capex_battery,
        capex_gross=capex.capex_gross,
        utility_incentive=incentives.utility_incentive,
        federal_credit=incentives.federal_credit,
        capex_net=incentives.capex_net,
        annual_savings=metrics.annual_savings,
        demand_savings=savings.demand_savings,
        simple_payback_years=metrics.simple_payback_years,
        discount_rate=metrics.discount_rate,
        horizon_years=metrics.horizon_years,
        npv=metrics.npv,
        npv_by_horizon=metrics.npv_by_horizon,
        irr=metrics.irr,
        annual_opex=metrics.first_year_opex,
        lcoe=lcoe.get(25),
        lcoe_30=lcoe.get(30),
        annual_cost_before=cost_before,
        annual_cost_after=cost_after,
        assumptions=assumptions,
        config_version=ENGINE_CONFIG_VERSION,
    )

    payload = SimulationPayload(
        run_id=run_id,
        monthly_profile=balance.months,
        hourly_profile=hourly_profile,
        cashflows=build_cashflows(
            incentives.capex_net,
            savings.annual_savings,
            assumptions.discount_rate,
            assumptions.analysis_years,
            assumptions.degradation_rate,
            drivers,
        ),
        sensitivity=sensitivity_table(
            incentives.capex_net,
            savings.annual_savings,
            assumptions.discount_rate,
            assumptions.analysis_years,
            assumptions.degradation_rate,
            demand_savings=savings.demand_savings,
            drivers=drivers,
        ),
    )
    return run, payload
