"""
Benchmark comparison against third-party simulation tools.

    delta         = external − own
    delta_percent = delta / own × 100

A metric present on only one side is unavailable (None), never zero.
"""

from typing import Callable, Optional

from solarsim.config import DeltaBand, DELTA_ALIGNED_PERCENT, DELTA_REVIEW_PERCENT
from solarsim.models.benchmark import Benchmark, BenchmarkInput, ComparisonRow
from solarsim.models.simulation import SimulationRun

# (metric, label, unit, own value getter, external attribute)
BENCHMARK_METRICS: list[tuple[str, str, str, Callable[[SimulationRun], Optional[float]], str]] = [
    ("pv_size_kw", "PV capacity", "kWc", lambda r: r.pv_size_kw, "sim_pv_size_kw"),
    ("annual_production_kwh", "Annual production", "kWh",
     lambda r: r.annual_production_kwh, "sim_annual_production_kwh"),
    ("yield_kwh_per_kwp", "Specific yield", "kWh/kWc",
     lambda r: r.yield_kwh_per_kwp, "sim_yield_kwh_per_kwp"),
    ("performance_ratio", "Performance ratio", "%", lambda r: None, "sim_performance_ratio"),
    ("specific_yield_p50", "Specific yield P50", "kWh/kWc",
     lambda r: r.yield_kwh_per_kwp, "sim_specific_yield_p50"),
    ("specific_yield_p90", "Specific yield P90", "kWh/kWc", lambda r: None, "sim_specific_yield_p90"),
    ("capex_total", "Total CAPEX", "$", lambda r: r.capex_gross, "sim_capex_total"),
    ("dc_ac_ratio", "DC/AC ratio", "", lambda r: None, "sim_dc_ac_ratio"),
    ("payback_years", "Simple payback", "years", lambda r: r.simple_payback_years, "sim_payback_years"),
    ("npv", "NPV", "$", lambda r: r.npv, "sim_npv"),
    ("irr", "IRR", "", lambda r: r.irr, "sim_irr"),
]


def delta_band(delta_percent: Optional[float]) -> DeltaBand:
    if delta_percent is None:
        return DeltaBand.UNAVAILABLE
    magnitude = abs(delta_percent)
    if magnitude <= DELTA_ALIGNED_PERCENT:
        return DeltaBand.ALIGNED
    if magnitude <= DELTA_REVIEW_PERCENT:
        return DeltaBand.REVIEW
    return DeltaBand.DIVERGENT


def comparison_row(
    metric: str,
    label: str,
    unit: str,
    own: Optional[float],
    external: Optional[float],
) -> ComparisonRow:
    delta = None
    delta_percent = None
    if own is not None and external is not None:
        delta = external - own
        if own != 0:
            delta_percent = round(delta / own * 100.0, 2)
    return ComparisonRow(
        metric=metric,
        label=label,
        unit=unit or None,
        own_value=own,
        external_value=external,
        delta=round(delta, 4) if delta is not None else None,
        delta_percent=delta_percent,
        band=delta_band(delta_percent),
    )


def compare_benchmark(
    benchmark: BenchmarkInput,
    run: Optional[SimulationRun],
) -> list[ComparisonRow]:
    """One row per metric; own values are unavailable without a run."""
    rows = []
    for metric, label, unit, own_getter, external_attr in BENCHMARK_METRICS:
        own = own_getter(run) if run is not None else None
        rows.append(comparison_row(metric, label, unit, own, getattr(benchmark, external_attr)))
    return rows


def latest_benchmark(benchmarks: list[Benchmark]) -> Optional[Benchmark]:
    if not benchmarks:
        return None
    return max(enumerate(benchmarks), key=lambda pair: (pair[1].created_at, pair[0]))[1]
