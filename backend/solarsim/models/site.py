"""
Pydantic models for site records and metered consumption.

Both are supplied by external collaborators (site records, utility-data ingestion).
"""

from typing import Optional

from pydantic import BaseModel, Field


class Site(BaseModel):
    id: str
    name: str = ""
    address: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    roof_validated: bool = False
    roof_area_sqm: Optional[float] = Field(
        None, description="Roof area on the site record, used when no polygons are drawn"
    )


class MeterMonth(BaseModel):
    """Monthly metered consumption."""

    year: int
    month: int = Field(..., ge=1, le=12)
    consumption_kwh: float = Field(..., ge=0)
    peak_demand_kw: Optional[float] = Field(None, ge=0)


class MeterHistory(BaseModel):
    """Metering split around the commissioning date."""

    baseline: list[MeterMonth] = Field(default_factory=list)  # pre-commissioning
    post_commissioning: list[MeterMonth] = Field(default_factory=list)
