"""
Pydantic model for per-run analysis assumptions.

Every field defaults to the value in solarsim.config, so an empty
AnalysisAssumptions() reproduces the engine's canonical configuration.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from solarsim.config import (
    AreaUnit,
    DEFAULT_ANALYSIS_YEARS,
    DEFAULT_CONSTRAINT_FACTOR,
    DEFAULT_DISCOUNT_RATE,
    DEFAULT_PANEL_WATTAGE_W,
    FEDERAL_ITC_RATE,
    UTILITY_INCENTIVE_PER_W,
    UTILITY_INCENTIVE_CAP_RATIO,
    EXPORT_CREDIT_RATIO,
    BATTERY_ENERGY_COST_PER_KWH,
    BATTERY_POWER_COST_PER_KW,
    BATTERY_REPLACEMENT_YEARS,
    BATTERY_REPLACEMENT_COST_FACTOR,
    BATTERY_PRICE_DECLINE_RATE,
)


class AnalysisAssumptions(BaseModel):
    """Immutable configuration record for one analysis run."""

    model_config = ConfigDict(frozen=True)

    # Tariff: None means infer from metering, falling back to the default code
    tariff_code: Optional[str] = None
    energy_rate: Optional[float] = Field(None, ge=0, description="$/kWh override")
    demand_rate: Optional[float] = Field(None, ge=0, description="$/kW-month override")

    discount_rate: float = Field(DEFAULT_DISCOUNT_RATE, ge=0, lt=1)
    analysis_years: int = Field(DEFAULT_ANALYSIS_YEARS, ge=1, le=50)
    degradation_rate: float = Field(
        0.0, ge=0, lt=1, description="Annual production loss; 0 = flat savings"
    )
    federal_itc_rate: float = Field(FEDERAL_ITC_RATE, ge=0, le=1)

    # Sizing
    panel_wattage_w: float = Field(DEFAULT_PANEL_WATTAGE_W, gt=0)
    constraint_factor: float = DEFAULT_CONSTRAINT_FACTOR
    roof_area_override: Optional[float] = None
    roof_area_unit: AreaUnit = AreaUnit.SQM

    # Production: None = default or irradiance-refined yield, value = manual yield
    yield_factor: Optional[float] = Field(None, ge=0, description="kWh/kWp/year")
    orientation_factor: float = 1.0
    bifacial_enabled: bool = False

    # User-edited consumption curve, Jan..Dec
    monthly_consumption_kwh: Optional[list[float]] = None

    # Incentives and storage costs
    incentive_rate_per_w: float = Field(UTILITY_INCENTIVE_PER_W, ge=0)
    incentive_cap_ratio: float = Field(UTILITY_INCENTIVE_CAP_RATIO, ge=0, le=1)
    incentive_max_eligible_kw: Optional[float] = Field(None, gt=0)
    export_credit_ratio: float = Field(EXPORT_CREDIT_RATIO, ge=0, le=1)
    battery_energy_cost_per_kwh: float = Field(BATTERY_ENERGY_COST_PER_KWH, ge=0)
    battery_power_cost_per_kw: float = Field(BATTERY_POWER_COST_PER_KW, ge=0)

    # Operating costs and escalation; zero leaves savings flat
    tariff_escalation_rate: float = Field(
        0.0, ge=0, lt=1, description="Annual energy tariff growth applied to savings"
    )
    om_pv_percent: float = Field(0.0, ge=0, le=1, description="Yearly O&M as a share of PV capex")
    om_battery_percent: float = Field(
        0.0, ge=0, le=1, description="Yearly O&M as a share of battery capex"
    )
    om_escalation_rate: float = Field(0.0, ge=0, lt=1)

    battery_replacement_enabled: bool = False
    battery_replacement_years: tuple[int, ...] = BATTERY_REPLACEMENT_YEARS
    battery_replacement_cost_factor: float = Field(BATTERY_REPLACEMENT_COST_FACTOR, ge=0)
    battery_price_decline_rate: float = Field(BATTERY_PRICE_DECLINE_RATE, ge=0, lt=1)

    @field_validator("monthly_consumption_kwh")
    @classmethod
    def _twelve_non_negative_months(cls, v: Optional[list[float]]) -> Optional[list[float]]:
        if v is None:
            return v
        if len(v) != 12:
            raise ValueError("monthly_consumption_kwh must have 12 values (Jan..Dec)")
        if any(m < 0 for m in v):
            raise ValueError("monthly_consumption_kwh values must be non-negative")
        return v

    def with_overrides(self, **updates) -> "AnalysisAssumptions":
        """Return a validated copy with the given fields replaced. None clears an optional field."""
        data = self.model_dump()
        data.update(updates)
        return AnalysisAssumptions.model_validate(data)
