"""
Production estimator.

annual_production_kWh = capacity_kW × yield_factor (kWh/kWp/year).

The yield factor defaults to a regional constant, may be refined by the
irradiance service, or set manually by the analyst. When an hourly profile from
the hourly simulation service is available it is preferred for the
self-consumption / export split; otherwise a monthly balance is used.
"""

from typing import Optional

import numpy as np

from solarsim.config import (
    YieldSource,
    DEFAULT_YIELD_KWH_PER_KWP,
    BIFACIAL_BOOST,
    ORIENTATION_FACTOR_MIN,
    ORIENTATION_FACTOR_MAX,
    MONTHLY_SOLAR_RATIO,
    DAYS_PER_MONTH,
    BATTERY_ROUND_TRIP_EFFICIENCY,
)
from solarsim.errors import ValidationError
from solarsim.models.assumptions import AnalysisAssumptions
from solarsim.models.production import (
    EnergyBalance,
    HourlyPoint,
    MonthlyEnergy,
    YieldEstimate,
    YieldStrategy,
)


def resolve_yield(
    assumptions: AnalysisAssumptions,
    estimate: Optional[YieldEstimate] = None,
) -> YieldStrategy:
    """
    Decide the effective yield for a run.

    Priority: manual yield on the assumptions, then an irradiance-service
    estimate, then the regional default. Orientation derating only applies to
    the default yield since the other two already account for the roof.
    """
    if assumptions.yield_factor is not None:
        base_yield = assumptions.yield_factor
        source = YieldSource.MANUAL
    elif estimate is not None and estimate.yearly_energy_kwh > 0 and estimate.system_size_kw > 0:
        base_yield = round(estimate.yearly_energy_kwh / estimate.system_size_kw)
        source = YieldSource.IRRADIANCE
    else:
        base_yield = DEFAULT_YIELD_KWH_PER_KWP
        source = YieldSource.DEFAULT

    bifacial_boost = BIFACIAL_BOOST if assumptions.bifacial_enabled else 1.0

    orientation = 1.0
    if source == YieldSource.DEFAULT:
        orientation = min(
            ORIENTATION_FACTOR_MAX,
            max(ORIENTATION_FACTOR_MIN, assumptions.orientation_factor),
        )

    return YieldStrategy(
        base_yield=base_yield,
        effective_yield=base_yield * bifacial_boost * orientation,
        source=source,
        bifacial_boost=bifacial_boost,
        orientation_factor=orientation,
    )


def annual_production(capacity_kw: float, yield_factor: float) -> float:
    """Annual energy yield in kWh."""
    if capacity_kw < 0:
        raise ValidationError(f"capacity_kw must be non-negative, got {capacity_kw}")
    if yield_factor < 0:
        raise ValidationError(f"yield_factor must be non-negative, got {yield_factor}")
    return capacity_kw * yield_factor


def monthly_production(annual_kwh: float) -> list[float]:
    """Split annual production into calendar months (Jan..Dec)."""
    return (annual_kwh * np.asarray(MONTHLY_SOLAR_RATIO)).tolist()


def energy_balance(
    annual_production_kwh: float,
    monthly_consumption_kwh: Optional[list[float]] = None,
    battery_energy_kwh: float = 0.0,
    hourly_profile: Optional[list[HourlyPoint]] = None,
    battery_power_kw: float = 0.0,
) -> EnergyBalance:
    """
    Split production into self-consumed and exported energy.

    Hourly data wins when present and drives an hour-by-hour battery dispatch.
    The monthly fallback lets a battery shift up to one full cycle per day of
    surplus into the same month's deficit.
    """
    if hourly_profile:
        return _hourly_balance(hourly_profile, battery_energy_kwh, battery_power_kw)

    production = np.asarray(monthly_production(annual_production_kwh))

    if monthly_consumption_kwh is None:
        return EnergyBalance(
            annual_production_kwh=annual_production_kwh,
            self_consumed_kwh=annual_production_kwh,
            exported_kwh=0.0,
            source="production_only",
            months=[
                MonthlyEnergy(month=i + 1, production_kwh=round(float(p), 2))
                for i, p in enumerate(production)
            ],
        )

    consumption = np.asarray(monthly_consumption_kwh, dtype=float)
    direct = np.minimum(production, consumption)
    surplus = production - direct
    deficit = consumption - direct

    shifted = np.zeros(12)
    if battery_energy_kwh > 0:
        capacity = battery_energy_kwh * np.asarray(DAYS_PER_MONTH) * BATTERY_ROUND_TRIP_EFFICIENCY
        shifted = np.minimum(np.minimum(surplus, deficit), capacity)

    self_consumed = direct + shifted
    exported = production - self_consumed
    total_consumption = float(consumption.sum())

    months = [
        MonthlyEnergy(
            month=i + 1,
            production_kwh=round(float(production[i]), 2),
            consumption_kwh=round(float(consumption[i]), 2),
            self_consumed_kwh=round(float(self_consumed[i]), 2),
            exported_kwh=round(float(exported[i]), 2),
        )
        for i in range(12)
    ]

    return EnergyBalance(
        annual_production_kwh=annual_production_kwh,
        annual_consumption_kwh=total_consumption,
        self_consumed_kwh=float(self_consumed.sum()),
        exported_kwh=float(exported.sum()),
        self_sufficiency_percent=_percent(float(self_consumed.sum()), total_consumption),
        source="monthly",
        months=months,
    )


def dispatch_battery(
    production: np.ndarray,
    consumption: np.ndarray,
    battery_energy_kwh: float,
    battery_power_kw: float = 0.0,
    efficiency: float = BATTERY_ROUND_TRIP_EFFICIENCY,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Greedy hourly dispatch: charge from surplus, discharge into later deficit.

    Returns (charged, discharged) kWh per hour. Round-trip losses are taken on
    charge. A power rating of 0 leaves the battery limited by energy only.
    Hours are assumed to be in chronological order, starting empty.
    """
    charged = np.zeros(len(production))
    discharged = np.zeros(len(production))
    if battery_energy_kwh <= 0:
        return charged, discharged

    limit = battery_power_kw if battery_power_kw > 0 else np.inf
    stored = 0.0
    for i, (p, c) in enumerate(zip(production, consumption)):
        if p > c:
            charge = min(p - c, limit, (battery_energy_kwh - stored) / efficiency)
            stored += charge * efficiency
            charged[i] = charge
        elif c > p:
            release = min(c - p, limit, stored)
            stored -= release
            discharged[i] = release
    return charged, discharged


def _hourly_balance(
    hourly_profile: list[HourlyPoint],
    battery_energy_kwh: float,
    battery_power_kw: float,
) -> EnergyBalance:
    production = np.array([h.production_kwh for h in hourly_profile], dtype=float)
    consumption = np.array([h.consumption_kwh for h in hourly_profile], dtype=float)
    direct = np.minimum(production, consumption)
    charged, discharged = dispatch_battery(
        production, consumption, battery_energy_kwh, battery_power_kw
    )
    self_consumed = direct + discharged
    # Energy lost in the battery is neither self-consumed nor exported
    exported = production - direct - charged

    total_consumption = float(consumption.sum())
    months = np.array([h.month for h in hourly_profile])
    return EnergyBalance(
        annual_production_kwh=float(production.sum()),
        annual_consumption_kwh=total_consumption,
        self_consumed_kwh=float(self_consumed.sum()),
        exported_kwh=float(exported.sum()),
        self_sufficiency_percent=_percent(float(self_consumed.sum()), total_consumption),
        source="hourly",
        months=[
            MonthlyEnergy(
                month=m,
                production_kwh=round(float(production[months == m].sum()), 2),
                consumption_kwh=round(float(consumption[months == m].sum()), 2),
                self_consumed_kwh=round(float(self_consumed[months == m].sum()), 2),
                exported_kwh=round(float(exported[months == m].sum()), 2),
            )
            for m in range(1, 13)
        ],
    )


def _percent(part: float, whole: float) -> Optional[float]:
    if whole <= 0:
        return None
    return round(part / whole * 100.0, 2)
