"""
Pydantic models for roof geometry and capacity sizing.
"""

from typing import Optional

from pydantic import BaseModel, Field

from solarsim.config import AreaUnit, SizingMethod


class RoofPolygon(BaseModel):
    """A drawn roof area. Excluded polygons (constraints, HVAC, obstacles) carry no panels."""

    vertices: list[tuple[float, float]] = Field(
        default_factory=list, description="Ordered (lat, lng) vertices"
    )
    area_sqm: float
    label: Optional[str] = None
    color: Optional[str] = None


class PanelLayout(BaseModel):
    """Refined panel placement from the layout service."""

    panel_count: int = Field(..., ge=0)
    panel_wattage_w: Optional[float] = Field(None, gt=0)
    source: str = "layout"


class RoofInput(BaseModel):
    """Roof geometry supplied to a sizing request."""

    polygons: list[RoofPolygon] = Field(default_factory=list)
    manual_area: Optional[float] = Field(
        None, description="Manual roof area override, in manual_area_unit"
    )
    manual_area_unit: AreaUnit = AreaUnit.SQM
    layout: Optional[PanelLayout] = None


class RoofArea(BaseModel):
    total_area_sqm: float
    polygon_count: int
    source: str  # "override", "polygons" or "site"


class SizingResult(BaseModel):
    """Output of the capacity sizing model."""

    total_area_sqm: float
    usable_area_sqm: float
    utilization_ratio: float
    constraint_factor: float
    panel_count: int
    panel_wattage_w: float
    capacity_kw: float
    method: SizingMethod
