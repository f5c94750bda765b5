"""
Pydantic models for simulation runs, quick-potential results and scenario comparison.

A SimulationRun carries only summary fields so list/compare views work without
the heavy SimulationPayload, which is loaded lazily per run id.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from solarsim.config import OptimizationTarget, RunType, SelectionPhase, YieldSource
from solarsim.models.assumptions import AnalysisAssumptions
from solarsim.models.financial import (
    CapexBreakdown,
    CashflowEntry,
    FinancialMetrics,
    IncentiveBreakdown,
    SavingsBreakdown,
    SensitivityRow,
)
from solarsim.models.production import HourlyPoint, MonthlyEnergy, YieldStrategy
from solarsim.models.roof import RoofArea, RoofInput, SizingResult


class SimulationRun(BaseModel):
    """Immutable run summary. Re-analysis creates a new run."""

    model_config = ConfigDict(frozen=True)

    id: str
    site_id: str
    type: RunType
    label: Optional[str] = None
    base_run_id: Optional[str] = None  # set on variants
    created_at: datetime

    # Sizing
    pv_size_kw: Optional[float] = None
    battery_energy_kwh: Optional[float] = None
    battery_power_kw: Optional[float] = None
    panel_count: Optional[int] = None

    # Production / consumption
    annual_production_kwh: float = 0.0
    yield_kwh_per_kwp: float = 0.0
    yield_source: YieldSource = YieldSource.DEFAULT
    annual_consumption_kwh: Optional[float] = None
    self_consumed_kwh: Optional[float] = None
    self_sufficiency_percent: Optional[float] = None

    # Tariff
    tariff_code: str
    energy_rate: float
    demand_rate: float = 0.0

    # Capital cost and incentives
    capex_pv: float = 0.0
    capex_battery: float = 0.0
    capex_gross: float = 0.0
    utility_incentive: float = 0.0
    federal_credit: float = 0.0
    capex_net: float = 0.0

    # Financial metrics
    annual_savings: float = 0.0
    demand_savings: float = 0.0
    simple_payback_years: Optional[float] = None
    discount_rate: float
    horizon_years: int
    npv: Optional[float] = None
    npv_by_horizon: dict[int, float] = Field(default_factory=dict)
    irr: Optional[float] = None
    annual_opex: float = 0.0
    lcoe: Optional[float] = Field(None, description="$/kWh over 25 years")
    lcoe_30: Optional[float] = Field(None, description="$/kWh over 30 years")

    # Bill before and after the system, when consumption is known
    annual_cost_before: Optional[float] = None
    annual_cost_after: Optional[float] = None

    assumptions: AnalysisAssumptions
    config_version: str


class SimulationPayload(BaseModel):
    """Heavy per-run data, owned exclusively by one run."""

    run_id: str
    monthly_profile: list[MonthlyEnergy] = Field(default_factory=list)
    hourly_profile: Optional[list[HourlyPoint]] = None
    cashflows: list[CashflowEntry] = Field(default_factory=list)
    sensitivity: list[SensitivityRow] = Field(default_factory=list)


class SizingOverrides(BaseModel):
    """Explicit system size layered on top of unchanged assumptions."""

    pv_size_kw: Optional[float] = Field(None, ge=0)
    battery_energy_kwh: Optional[float] = Field(None, ge=0)
    battery_power_kw: Optional[float] = Field(None, ge=0)
    label: Optional[str] = None


class QuickPotentialRequest(BaseModel):
    roof: RoofInput
    constraint_factor: Optional[float] = None
    assumptions: AnalysisAssumptions = Field(default_factory=AnalysisAssumptions)


class SiteQuickPotentialRequest(BaseModel):
    constraint_factor: Optional[float] = None
    assumptions: AnalysisAssumptions = Field(default_factory=AnalysisAssumptions)
    save: bool = False


class FullAnalysisRequest(BaseModel):
    assumptions: AnalysisAssumptions = Field(default_factory=AnalysisAssumptions)
    sizing: Optional[SizingOverrides] = None
    label: Optional[str] = None


class QuickPotentialResult(BaseModel):
    """Sizing + production + financial summary without consumption data."""

    roof: RoofArea
    sizing: SizingResult
    yield_strategy: YieldStrategy
    annual_production_kwh: float
    tariff_code: str
    energy_rate: float
    capex: CapexBreakdown
    incentives: IncentiveBreakdown
    savings: SavingsBreakdown
    financial: FinancialMetrics
    lcoe_by_horizon: dict[int, Optional[float]] = Field(default_factory=dict)
    saved_run_id: Optional[str] = None


class SelectionState(BaseModel):
    site_id: str
    run_id: str
    phase: SelectionPhase


class SelectRunRequest(BaseModel):
    run_id: Optional[str] = None


class RankedScenario(BaseModel):
    rank: int
    run: SimulationRun
    target_value: Optional[float] = None
    is_best: bool = False


class ScenarioComparison(BaseModel):
    site_id: str
    target: OptimizationTarget
    best_run_id: Optional[str] = None
    scenarios: list[RankedScenario] = Field(default_factory=list)
