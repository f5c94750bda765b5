"""
Post-commissioning reconciliation.

For each metered month after commissioning:

    historical  = pre-commissioning consumption for the same calendar month
    predicted   = selected run annual production × monthly solar ratio
    savings     = historical − actual
    achievement = savings / predicted × 100   (None when predicted is 0)

Bands (display only): >= 90 good, >= 70 fair, below that needs attention.
"""

from collections import defaultdict
from typing import Optional

from solarsim.config import (
    AchievementBand,
    ACHIEVEMENT_FAIR_PERCENT,
    ACHIEVEMENT_GOOD_PERCENT,
    MONTH_LABELS,
    MONTHLY_SOLAR_RATIO,
)
from solarsim.models.reconciliation import (
    ReconciliationMonth,
    ReconciliationResult,
    ReconciliationSummary,
)
from solarsim.models.simulation import SimulationRun
from solarsim.models.site import MeterHistory, MeterMonth

NO_DATA_MESSAGE = "Reconciliation available after commissioning"


def achievement_band(achievement_percent: Optional[float]) -> Optional[AchievementBand]:
    if achievement_percent is None:
        return None
    if achievement_percent >= ACHIEVEMENT_GOOD_PERCENT:
        return AchievementBand.GOOD
    if achievement_percent >= ACHIEVEMENT_FAIR_PERCENT:
        return AchievementBand.FAIR
    return AchievementBand.NEEDS_ATTENTION


def achievement(savings_kwh: float, predicted_kwh: float) -> Optional[float]:
    if predicted_kwh == 0:
        return None
    return round(savings_kwh / predicted_kwh * 100.0, 1)


def baseline_by_month(baseline: list[MeterMonth]) -> dict[int, float]:
    """Average pre-commissioning consumption per calendar month."""
    buckets: dict[int, list[float]] = defaultdict(list)
    for m in baseline:
        buckets[m.month].append(m.consumption_kwh)
    return {month: sum(values) / len(values) for month, values in buckets.items()}


def reconcile_month(
    year: int,
    month: int,
    historical_kwh: float,
    predicted_savings_kwh: float,
    actual_kwh: float,
) -> ReconciliationMonth:
    savings = historical_kwh - actual_kwh
    pct = achievement(savings, predicted_savings_kwh)
    return ReconciliationMonth(
        year=year,
        month=month,
        label=f"{MONTH_LABELS[month - 1]} {year}",
        historical_kwh=round(historical_kwh, 2),
        predicted_savings_kwh=round(predicted_savings_kwh, 2),
        actual_consumption_kwh=round(actual_kwh, 2),
        savings_kwh=round(savings, 2),
        achievement_percent=pct,
        band=achievement_band(pct),
    )


def compute_reconciliation(
    site_id: str,
    history: MeterHistory,
    run: Optional[SimulationRun],
) -> ReconciliationResult:
    """Compare metered savings with the selected run's predicted production."""
    if run is None or not history.post_commissioning:
        return ReconciliationResult(
            site_id=site_id,
            has_data=False,
            simulation_run_id=run.id if run is not None else None,
            message=NO_DATA_MESSAGE,
        )

    baseline = baseline_by_month(history.baseline)
    actuals = sorted(history.post_commissioning, key=lambda m: (m.year, m.month))

    months = []
    for m in actuals:
        if m.month not in baseline:
            # no pre-commissioning reference for this calendar month
            continue
        predicted = run.annual_production_kwh * MONTHLY_SOLAR_RATIO[m.month - 1]
        months.append(reconcile_month(m.year, m.month, baseline[m.month], predicted, m.consumption_kwh))

    if not months:
        return ReconciliationResult(
            site_id=site_id,
            has_data=False,
            simulation_run_id=run.id,
            message="No pre-commissioning baseline for the metered months",
        )

    total_historical = sum(m.historical_kwh for m in months)
    total_predicted = sum(m.predicted_savings_kwh for m in months)
    total_actual = sum(m.actual_consumption_kwh for m in months)
    total_savings = sum(m.savings_kwh for m in months)
    overall = achievement(total_savings, total_predicted)

    summary = ReconciliationSummary(
        total_historical_kwh=round(total_historical, 2),
        total_predicted_savings_kwh=round(total_predicted, 2),
        total_actual_kwh=round(total_actual, 2),
        total_savings_kwh=round(total_savings, 2),
        achievement_percent=overall,
        band=achievement_band(overall),
        energy_rate=run.energy_rate,
        cost_savings=round(total_savings * run.energy_rate, 2),
    )

    return ReconciliationResult(
        site_id=site_id,
        has_data=True,
        simulation_run_id=run.id,
        months=months,
        summary=summary,
    )
