"""
Capacity sizing model.

Converts drawn roof polygons (or a manual area override) into usable area,
panel count and DC capacity:

    usable_area = total_area × BASE_UTILIZATION × (1 − constraint_factor)
    panel_count = floor(usable_area × PANEL_DENSITY)
    capacity_kW = panel_count × panel_wattage / 1000

A refined panel layout, when one exists, always replaces the area-ratio estimate.
"""

import math
from typing import Optional

from solarsim.config import (
    AreaUnit,
    SizingMethod,
    BASE_UTILIZATION_RATIO,
    PANEL_DENSITY_PER_SQM,
    CONSTRAINT_FACTOR_MIN,
    CONSTRAINT_FACTOR_MAX,
    EXCLUDED_POLYGON_COLOR,
    EXCLUDED_LABEL_KEYWORDS,
    SQFT_PER_SQM,
)
from solarsim.errors import ValidationError
from solarsim.models.roof import PanelLayout, RoofArea, RoofInput, RoofPolygon, SizingResult


def is_excluded(polygon: RoofPolygon) -> bool:
    """True for constraint / obstacle / HVAC polygons."""
    if polygon.color and polygon.color.lower() == EXCLUDED_POLYGON_COLOR:
        return True
    label = (polygon.label or "").lower()
    return any(keyword in label for keyword in EXCLUDED_LABEL_KEYWORDS)


def usable_polygons(polygons: list[RoofPolygon]) -> list[RoofPolygon]:
    for p in polygons:
        if p.area_sqm < 0:
            raise ValidationError(f"Roof polygon area must be non-negative, got {p.area_sqm}")
    return [p for p in polygons if not is_excluded(p)]


def total_roof_area(polygons: list[RoofPolygon]) -> float:
    """Sum of non-excluded polygon areas, m²."""
    return sum(p.area_sqm for p in usable_polygons(polygons))


def to_square_meters(area: float, unit: AreaUnit) -> float:
    if unit == AreaUnit.SQFT:
        return area / SQFT_PER_SQM
    return area


def resolve_roof_area(
    roof: RoofInput,
    site_area_sqm: Optional[float] = None,
) -> RoofArea:
    """
    Pick the roof area for sizing.

    Priority: explicit manual override, then drawn polygons, then the area on
    the site record. No source at all, or a negative value, is rejected.
    """
    if roof.manual_area is not None:
        if roof.manual_area < 0:
            raise ValidationError(f"Roof area override must be non-negative, got {roof.manual_area}")
        return RoofArea(
            total_area_sqm=to_square_meters(roof.manual_area, roof.manual_area_unit),
            polygon_count=0,
            source="override",
        )

    if roof.polygons:
        solar = usable_polygons(roof.polygons)
        area = sum(p.area_sqm for p in solar)
        if area > 0 or site_area_sqm is None:
            return RoofArea(total_area_sqm=area, polygon_count=len(solar), source="polygons")

    if site_area_sqm is not None:
        if site_area_sqm < 0:
            raise ValidationError(f"Site roof area must be non-negative, got {site_area_sqm}")
        return RoofArea(total_area_sqm=site_area_sqm, polygon_count=0, source="site")

    raise ValidationError("No roof area available. Draw roof areas or provide an override.")


def validate_constraint_factor(constraint_factor: float) -> None:
    if not (CONSTRAINT_FACTOR_MIN <= constraint_factor <= CONSTRAINT_FACTOR_MAX):
        raise ValidationError(
            f"constraint_factor must be between {CONSTRAINT_FACTOR_MIN} and "
            f"{CONSTRAINT_FACTOR_MAX}, got {constraint_factor}"
        )


def size_system(
    total_area_sqm: float,
    constraint_factor: float,
    panel_wattage_w: float,
    layout: Optional[PanelLayout] = None,
) -> SizingResult:
    """Size the PV array from roof area, falling back from layout to area ratio."""
    if total_area_sqm is None or total_area_sqm < 0:
        raise ValidationError(f"Roof area must be non-negative, got {total_area_sqm}")
    if panel_wattage_w <= 0:
        raise ValidationError(f"panel_wattage_w must be positive, got {panel_wattage_w}")
    validate_constraint_factor(constraint_factor)

    utilization = BASE_UTILIZATION_RATIO * (1.0 - constraint_factor)
    usable_area = total_area_sqm * utilization

    if layout is not None and layout.panel_count > 0:
        wattage = layout.panel_wattage_w or panel_wattage_w
        panel_count = layout.panel_count
        method = SizingMethod.LAYOUT
    else:
        wattage = panel_wattage_w
        # small epsilon keeps exact products (e.g. 3825.0) from flooring down
        panel_count = math.floor(usable_area * PANEL_DENSITY_PER_SQM + 1e-9)
        method = SizingMethod.AREA_RATIO

    capacity_kw = panel_count * wattage / 1000.0

    return SizingResult(
        total_area_sqm=round(total_area_sqm, 2),
        usable_area_sqm=round(usable_area, 2),
        utilization_ratio=round(utilization, 6),
        constraint_factor=constraint_factor,
        panel_count=panel_count,
        panel_wattage_w=wattage,
        capacity_kw=round(capacity_kw, 4),
        method=method,
    )
