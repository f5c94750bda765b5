"""
Pydantic models for utility rate schedules.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class EnergyRateTier(BaseModel):
    """One block of a tiered energy charge."""

    tier: int
    rate: float = Field(..., description="$/kWh")
    threshold_kwh: Optional[float] = Field(
        None, description="Block size; None for the last (open) tier"
    )
    threshold_type: Optional[Literal["daily", "monthly"]] = None


class AccessFee(BaseModel):
    type: Literal["daily", "monthly"]
    amount: float  # $ per day or per month


class PowerPremium(BaseModel):
    per_kw: float  # $/kW per month
    threshold_kw: Optional[float] = None  # only demand above this is billed


class MonthlyMinimum(BaseModel):
    single_phase: float
    three_phase: float


class Tariff(BaseModel):
    """A utility rate schedule."""

    code: str
    name: str
    description: str
    min_demand_kw: Optional[float] = None
    max_demand_kw: Optional[float] = None
    access_fee: AccessFee
    power_premium: Optional[PowerPremium] = None
    energy_rates: list[EnergyRateTier]
    minimum_monthly: Optional[MonthlyMinimum] = None
    peak_event_rate: Optional[float] = None  # flex tariffs only


class MonthlyCost(BaseModel):
    access_fee: float
    power_charge: float
    energy_charge: float
    total: float


class AnnualCost(BaseModel):
    tariff_code: str
    monthly_breakdown: list[MonthlyCost]
    annual_total: float
    average_rate: float  # effective $/kWh


class TariffDetection(BaseModel):
    """Tariff inferred from pre-commissioning metering."""

    detected_tariff: str
    confidence: Literal["high", "medium", "low"]
    reason: str
    suggested_tariffs: list[str]
    peak_demand_kw: float
    annual_consumption_kwh: float
    load_factor: float
