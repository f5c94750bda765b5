"""
API routes for quick solar potential estimates.
"""

from fastapi import APIRouter, Depends, HTTPException

from solarsim.api.deps import get_engine
from solarsim.engine.analysis import compute_quick_potential
from solarsim.engine.service import SolarEngine
from solarsim.errors import NotFoundError, UpstreamServiceError
from solarsim.models.simulation import (
    QuickPotentialRequest,
    QuickPotentialResult,
    SiteQuickPotentialRequest,
)

router = APIRouter(prefix="/api/v1", tags=["quick-potential"])


@router.post("/quick-potential", response_model=QuickPotentialResult)
async def quick_potential(body: QuickPotentialRequest) -> QuickPotentialResult:
    """
    Estimate PV capacity, production and financial return from roof geometry.

    Uses the area-ratio sizing unless a panel layout is supplied; no
    consumption data is needed.
    """
    try:
        return compute_quick_potential(body.roof, body.constraint_factor, body.assumptions)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")


@router.post("/sites/{site_id}/quick-potential", response_model=QuickPotentialResult)
async def site_quick_potential(
    site_id: str,
    body: SiteQuickPotentialRequest,
    engine: SolarEngine = Depends(get_engine),
) -> QuickPotentialResult:
    """Quick potential from the site's drawn roof, optionally saved as a QUICK run."""
    try:
        return await engine.quick_potential_for_site(
            site_id, body.constraint_factor, body.assumptions, save=body.save
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")
