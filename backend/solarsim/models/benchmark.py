"""
Pydantic models for third-party simulation benchmarks.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from solarsim.config import DeltaBand


class BenchmarkInput(BaseModel):
    """Figures entered manually from a third-party simulation report."""

    tool_name: str = Field(..., min_length=1)
    analyst: Optional[str] = None
    report_date: Optional[date] = None
    simulation_run_id: Optional[str] = Field(
        None, description="Run to compare against; defaults to the selected run"
    )

    sim_pv_size_kw: Optional[float] = None
    sim_annual_production_kwh: Optional[float] = None
    sim_yield_kwh_per_kwp: Optional[float] = None
    sim_performance_ratio: Optional[float] = Field(None, description="Fraction 0-1")
    sim_specific_yield_p50: Optional[float] = None
    sim_specific_yield_p90: Optional[float] = None
    sim_capex_total: Optional[float] = None
    sim_dc_ac_ratio: Optional[float] = None
    sim_payback_years: Optional[float] = None
    sim_npv: Optional[float] = None
    sim_irr: Optional[float] = None

    notes: Optional[str] = None


class Benchmark(BenchmarkInput):
    id: str
    site_id: str
    created_at: datetime


class ComparisonRow(BaseModel):
    metric: str
    label: str
    unit: Optional[str] = None
    own_value: Optional[float] = None
    external_value: Optional[float] = None
    delta: Optional[float] = None
    delta_percent: Optional[float] = None
    band: DeltaBand = DeltaBand.UNAVAILABLE


class BenchmarkComparison(BaseModel):
    site_id: str
    has_data: bool
    benchmark: Optional[Benchmark] = None
    simulation_run_id: Optional[str] = None
    rows: list[ComparisonRow] = Field(default_factory=list)
