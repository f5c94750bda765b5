"""
Utility tariff table.

Loads the bundled rate schedules, exposes simplified energy/demand rates for the
financial model, computes tiered monthly and annual bills, and infers a tariff
from pre-commissioning metering.
"""

import json
import os
from functools import lru_cache

from solarsim.config import DAYS_PER_BILLING_MONTH, HOURS_PER_MONTH
from solarsim.errors import ValidationError
from solarsim.models.tariff import AnnualCost, MonthlyCost, Tariff, TariffDetection

_DATA_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "tariffs.json")


@lru_cache(maxsize=1)
def load_tariffs() -> dict[str, Tariff]:
    """Load and cache the rate schedules, keyed by tariff code."""
    with open(_DATA_PATH, "r") as f:
        raw = json.load(f)
    return {entry["code"]: Tariff.model_validate(entry) for entry in raw}


def list_tariffs() -> list[Tariff]:
    return list(load_tariffs().values())


def get_tariff(code: str) -> Tariff:
    tariff = load_tariffs().get(code)
    if tariff is None:
        raise ValidationError(f"Unknown tariff code: {code}")
    return tariff


def get_simplified_rates(code: str) -> tuple[float, float]:
    """
    Energy ($/kWh) and demand ($/kW-month) rates used by the financial model.

    The first energy tier is used as the effective rate since most commercial
    consumption falls inside it.
    """
    tariff = get_tariff(code)
    energy_rate = tariff.energy_rates[0].rate
    demand_rate = tariff.power_premium.per_kw if tariff.power_premium else 0.0
    return energy_rate, demand_rate


def calculate_monthly_cost(
    tariff: Tariff,
    monthly_consumption_kwh: float,
    peak_demand_kw: float,
    three_phase: bool = True,
) -> MonthlyCost:
    """Bill one month: access fee + power premium + tiered energy, floored at the minimum."""
    if tariff.access_fee.type == "daily":
        access_fee = tariff.access_fee.amount * DAYS_PER_BILLING_MONTH
    else:
        access_fee = tariff.access_fee.amount

    power_charge = 0.0
    if tariff.power_premium:
        threshold = tariff.power_premium.threshold_kw
        billable_kw = max(0.0, peak_demand_kw - threshold) if threshold else peak_demand_kw
        power_charge = billable_kw * tariff.power_premium.per_kw

    energy_charge = 0.0
    remaining = monthly_consumption_kwh
    for block in tariff.energy_rates:
        if block.threshold_kwh and block.threshold_type:
            limit = block.threshold_kwh
            if block.threshold_type == "daily":
                limit *= DAYS_PER_BILLING_MONTH
            used = min(remaining, limit)
        else:
            used = remaining
        energy_charge += used * block.rate
        remaining -= used
        if remaining <= 0:
            break

    total = access_fee + power_charge + energy_charge
    if tariff.minimum_monthly:
        minimum = (
            tariff.minimum_monthly.three_phase
            if three_phase
            else tariff.minimum_monthly.single_phase
        )
        total = max(total, minimum)

    return MonthlyCost(
        access_fee=round(access_fee, 2),
        power_charge=round(power_charge, 2),
        energy_charge=round(energy_charge, 2),
        total=round(total, 2),
    )


def calculate_annual_cost(
    tariff_code: str,
    annual_consumption_kwh: float,
    peak_demand_kw: float,
    three_phase: bool = True,
) -> AnnualCost:
    """Annual bill assuming consumption is spread evenly over twelve months."""
    tariff = get_tariff(tariff_code)
    monthly_kwh = annual_consumption_kwh / 12.0

    breakdown = [
        calculate_monthly_cost(tariff, monthly_kwh, peak_demand_kw, three_phase)
        for _ in range(12)
    ]
    annual_total = sum(m.total for m in breakdown)

    return AnnualCost(
        tariff_code=tariff_code,
        monthly_breakdown=breakdown,
        annual_total=round(annual_total, 2),
        average_rate=(
            round(annual_total / annual_consumption_kwh, 5)
            if annual_consumption_kwh > 0 else 0.0
        ),
    )


def detect_tariff(
    peak_demand_kw: float,
    annual_consumption_kwh: float,
    has_power_data: bool = True,
) -> TariffDetection:
    """Infer the applicable rate from peak demand and load factor."""
    monthly_kwh = annual_consumption_kwh / 12.0
    load_factor = (
        monthly_kwh / (peak_demand_kw * HOURS_PER_MONTH) if peak_demand_kw > 0 else 0.0
    )

    if not has_power_data or peak_demand_kw < 10:
        detected = "D"
        confidence = "high" if has_power_data else "medium"
        reason = (
            "Peak demand < 10 kW indicates residential use"
            if has_power_data
            else "No power data suggests residential rate"
        )
        suggested = ["D", "Flex D"]
    elif peak_demand_kw < 65:
        detected = "G"
        confidence = "high"
        reason = f"Peak demand of {peak_demand_kw:.0f} kW < 65 kW"
        suggested = ["G", "Flex G"]
    elif peak_demand_kw < 5000:
        detected = "M"
        confidence = "high"
        reason = f"Peak demand of {peak_demand_kw:.0f} kW between 65 kW and 5 MW"
        # intermittent loads are usually cheaper on G9
        if load_factor < 0.3:
            suggested = ["G9", "M", "Flex M"]
        else:
            suggested = ["M", "Flex M", "G9"]
    else:
        detected = "L"
        confidence = "high"
        reason = f"Peak demand of {peak_demand_kw / 1000:.1f} MW > 5 MW"
        suggested = ["L"]

    return TariffDetection(
        detected_tariff=detected,
        confidence=confidence,
        reason=reason,
        suggested_tariffs=suggested,
        peak_demand_kw=peak_demand_kw,
        annual_consumption_kwh=annual_consumption_kwh,
        load_factor=round(load_factor, 4),
    )
