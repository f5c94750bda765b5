"""
Cost and incentive model.

Gross capital cost comes from a $/W tier table keyed by PV capacity (larger
systems get better pricing) plus optional battery energy/power costs.

Incentive ordering:
    utility_incentive = min(eligible_kW × 1000 × rate_per_W, capex_pv × cap_ratio)
    federal_credit    = (capex_gross − utility_incentive) × federal_rate
    capex_net         = capex_gross − utility_incentive − federal_credit

The federal credit base is always reduced by the utility incentive first.
"""

from typing import Optional

from solarsim.config import (
    SOLAR_COST_TIERS,
    BATTERY_ENERGY_COST_PER_KWH,
    BATTERY_POWER_COST_PER_KW,
    UTILITY_INCENTIVE_PER_W,
    UTILITY_INCENTIVE_CAP_RATIO,
    FEDERAL_ITC_RATE,
)
from solarsim.errors import ValidationError
from solarsim.models.financial import CapexBreakdown, IncentiveBreakdown


def _tier_for(capacity_kw: float) -> tuple[float, float, str]:
    if capacity_kw < 0:
        raise ValidationError(f"capacity_kw must be non-negative, got {capacity_kw}")
    for min_kw, cost_per_w, label in SOLAR_COST_TIERS:
        if capacity_kw >= min_kw:
            return min_kw, cost_per_w, label
    return SOLAR_COST_TIERS[-1]


def cost_per_watt(capacity_kw: float) -> float:
    """Installed $/W for a PV system of this size."""
    return _tier_for(capacity_kw)[1]


def pricing_tier_label(capacity_kw: float) -> str:
    return _tier_for(capacity_kw)[2]


def compute_capex(
    capacity_kw: float,
    battery_energy_kwh: float = 0.0,
    battery_power_kw: float = 0.0,
    battery_energy_cost: float = BATTERY_ENERGY_COST_PER_KWH,
    battery_power_cost: float = BATTERY_POWER_COST_PER_KW,
) -> CapexBreakdown:
    _, per_w, label = _tier_for(capacity_kw)
    if battery_energy_kwh < 0 or battery_power_kw < 0:
        raise ValidationError("Battery energy and power must be non-negative")

    capex_pv = capacity_kw * 1000.0 * per_w
    capex_battery = battery_energy_kwh * battery_energy_cost + battery_power_kw * battery_power_cost

    return CapexBreakdown(
        cost_per_w=per_w,
        pricing_tier=label,
        capex_pv=round(capex_pv, 2),
        capex_battery=round(capex_battery, 2),
        capex_gross=round(capex_pv + capex_battery, 2),
    )


def utility_incentive(
    capacity_kw: float,
    capex_pv: float,
    rate_per_w: float = UTILITY_INCENTIVE_PER_W,
    cap_ratio: float = UTILITY_INCENTIVE_CAP_RATIO,
    max_eligible_kw: Optional[float] = None,
) -> tuple[float, str]:
    """Per-watt incentive bounded by a share of PV cost; returns (amount, binding bound)."""
    eligible_kw = capacity_kw if max_eligible_kw is None else min(capacity_kw, max_eligible_kw)
    per_watt = eligible_kw * 1000.0 * rate_per_w
    cost_cap = capex_pv * cap_ratio
    if per_watt <= cost_cap:
        return per_watt, "per_watt"
    return cost_cap, "cost_cap"


def apply_incentives(
    capex_gross: float,
    utility_amount: float,
    federal_rate: float = FEDERAL_ITC_RATE,
    binding: str = "per_watt",
) -> IncentiveBreakdown:
    """Apply the federal credit on the incentive-adjusted base."""
    if utility_amount > capex_gross:
        raise ValidationError("Utility incentive cannot exceed gross capital cost")
    federal_credit = (capex_gross - utility_amount) * federal_rate
    capex_net = capex_gross - utility_amount - federal_credit
    return IncentiveBreakdown(
        capex_gross=round(capex_gross, 2),
        utility_incentive=round(utility_amount, 2),
        federal_credit=round(federal_credit, 2),
        capex_net=round(capex_net, 2),
        incentive_binding=binding,
    )


def compute_incentives(
    capacity_kw: float,
    capex: CapexBreakdown,
    rate_per_w: float = UTILITY_INCENTIVE_PER_W,
    cap_ratio: float = UTILITY_INCENTIVE_CAP_RATIO,
    federal_rate: float = FEDERAL_ITC_RATE,
    max_eligible_kw: Optional[float] = None,
) -> IncentiveBreakdown:
    amount, binding = utility_incentive(
        capacity_kw, capex.capex_pv, rate_per_w, cap_ratio, max_eligible_kw
    )
    return apply_incentives(capex.capex_gross, amount, federal_rate, binding)
