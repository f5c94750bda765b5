"""
API routes for utility tariffs.
"""

from fastapi import APIRouter, HTTPException, Query

from solarsim.engine.tariffs import detect_tariff, get_tariff, list_tariffs
from solarsim.models.tariff import Tariff, TariffDetection

router = APIRouter(prefix="/api/v1", tags=["tariffs"])


@router.get("/tariffs", response_model=list[Tariff])
def get_all_tariffs():
    """List every bundled rate schedule."""
    return list_tariffs()


@router.get("/tariffs/detect", response_model=TariffDetection)
def detect_site_tariff(
    peak_demand_kw: float = Query(..., ge=0),
    annual_consumption_kwh: float = Query(..., ge=0),
    has_power_data: bool = True,
):
    """Infer the applicable tariff from peak demand and consumption."""
    try:
        return detect_tariff(peak_demand_kw, annual_consumption_kwh, has_power_data)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")


@router.get("/tariffs/{code}", response_model=Tariff)
def get_tariff_by_code(code: str):
    try:
        return get_tariff(code)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
