"""
API routes for post-commissioning reconciliation.
"""

from fastapi import APIRouter, Depends, HTTPException

from solarsim.api.deps import get_engine
from solarsim.engine.service import SolarEngine
from solarsim.errors import NotFoundError, UpstreamServiceError
from solarsim.models.reconciliation import ReconciliationResult

router = APIRouter(prefix="/api/v1", tags=["reconciliation"])


@router.get("/sites/{site_id}/reconciliation", response_model=ReconciliationResult)
async def get_reconciliation(
    site_id: str,
    engine: SolarEngine = Depends(get_engine),
) -> ReconciliationResult:
    """
    Monthly predicted vs. metered savings for the selected run.

    has_data is false until post-commissioning metering exists.
    """
    try:
        return await engine.compute_reconciliation(site_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")
