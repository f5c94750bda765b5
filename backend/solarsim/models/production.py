"""
Pydantic models for production estimates and energy balance.
"""

from typing import Optional

from pydantic import BaseModel, Field

from solarsim.config import YieldSource


class YieldEstimate(BaseModel):
    """Irradiance-service production estimate for a reference system."""

    yearly_energy_kwh: float = Field(..., ge=0)
    system_size_kw: float = Field(..., ge=0)


class YieldStrategy(BaseModel):
    """Resolved yield and how it was obtained."""

    base_yield: float
    effective_yield: float  # kWh/kWp/year after bifacial and orientation
    source: YieldSource
    bifacial_boost: float = 1.0
    orientation_factor: float = 1.0


class HourlyPoint(BaseModel):
    """One hour from the external hourly simulation service."""

    month: int = Field(..., ge=1, le=12)
    hour: int = Field(..., ge=0, le=23)
    consumption_kwh: float
    production_kwh: float


class MonthlyEnergy(BaseModel):
    month: int
    production_kwh: float
    consumption_kwh: Optional[float] = None
    self_consumed_kwh: Optional[float] = None
    exported_kwh: Optional[float] = None


class EnergyBalance(BaseModel):
    """Split of annual production into self-consumption and export."""

    annual_production_kwh: float
    annual_consumption_kwh: Optional[float] = None
    self_consumed_kwh: float
    exported_kwh: float
    self_sufficiency_percent: Optional[float] = None
    source: str  # "hourly", "monthly" or "production_only"
    months: list[MonthlyEnergy] = Field(default_factory=list)
