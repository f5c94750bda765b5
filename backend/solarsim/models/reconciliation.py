"""
Pydantic models for post-commissioning bill reconciliation.
"""

from typing import Optional

from pydantic import BaseModel, Field

from solarsim.config import AchievementBand


class ReconciliationMonth(BaseModel):
    year: int
    month: int
    label: str
    historical_kwh: float
    predicted_savings_kwh: float
    actual_consumption_kwh: float
    savings_kwh: float
    achievement_percent: Optional[float] = None
    band: Optional[AchievementBand] = None


class ReconciliationSummary(BaseModel):
    total_historical_kwh: float
    total_predicted_savings_kwh: float
    total_actual_kwh: float
    total_savings_kwh: float
    achievement_percent: Optional[float] = None
    band: Optional[AchievementBand] = None
    energy_rate: float
    cost_savings: float


class ReconciliationResult(BaseModel):
    site_id: str
    has_data: bool
    simulation_run_id: Optional[str] = None
    months: list[ReconciliationMonth] = Field(default_factory=list)
    summary: Optional[ReconciliationSummary] = None
    message: Optional[str] = None
