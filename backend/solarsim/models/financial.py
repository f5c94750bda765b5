"""
Pydantic models for capital cost, incentives and financial metrics.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CapexBreakdown(BaseModel):
    """Gross capital cost split by component."""

    cost_per_w: float
    pricing_tier: str
    capex_pv: float
    capex_battery: float
    capex_gross: float


class IncentiveBreakdown(BaseModel):
    """Incentives applied to a gross capital cost."""

    capex_gross: float
    utility_incentive: float
    federal_credit: float
    capex_net: float
    incentive_binding: str = Field(
        ..., description="Bound that set the utility incentive: 'per_watt' or 'cost_cap'"
    )

    @property
    def total_incentives(self) -> float:
        return self.utility_incentive + self.federal_credit


class IRRResult(BaseModel):
    """Outcome of the IRR root-finder. value is None when undefined."""

    value: Optional[float] = None
    converged: bool
    iterations: int
    reason: str = ""


class SavingsBreakdown(BaseModel):
    self_consumed_kwh: float
    exported_kwh: float
    energy_savings: float
    export_credit: float
    demand_reduction_kw: float
    demand_savings: float
    annual_savings: float


class CashflowDrivers(BaseModel):
    """
    Year-over-year adjustments layered on first-year savings.

    All zero by default, which leaves a flat (or purely degrading) savings
    stream with no operating costs.
    """

    model_config = ConfigDict(frozen=True)

    escalation_rate: float = 0.0   # energy tariff growth applied to savings
    opex_base: float = 0.0         # first-year O&M cost
    opex_escalation: float = 0.0
    battery_capex: float = 0.0
    replacement_years: tuple[int, ...] = ()
    replacement_cost_factor: float = 0.0
    battery_price_decline: float = 0.0


class FinancialMetrics(BaseModel):
    """Financial return for one (net capex, annual savings, rate, horizon) tuple."""

    net_capex: float
    annual_savings: float
    discount_rate: float
    horizon_years: int
    simple_payback_years: Optional[float] = Field(
        None, description="None when savings <= 0 (payback undefined)"
    )
    npv: float
    irr: Optional[float] = Field(None, description="None when the root-finder did not converge")
    irr_converged: bool = False
    npv_by_horizon: dict[int, float] = Field(default_factory=dict)
    first_year_opex: float = 0.0


class CashflowEntry(BaseModel):
    year: int
    savings: float
    opex: float = 0.0
    investment: float  # net capex in year 0, battery replacement afterwards
    net_cashflow: float
    discounted_cashflow: float
    cumulative_cashflow: float
    cumulative_discounted: float


class SensitivityRow(BaseModel):
    parameter: str  # "energy_rate" or "capex"
    change_percent: float
    npv: float
    simple_payback_years: Optional[float] = None
    irr: Optional[float] = None
