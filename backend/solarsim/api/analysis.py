"""
API routes for full analyses and design variants.
"""

from fastapi import APIRouter, Depends, HTTPException

from solarsim.api.deps import get_engine
from solarsim.engine.service import SolarEngine
from solarsim.errors import NotFoundError, UpstreamServiceError
from solarsim.models.simulation import FullAnalysisRequest, SimulationRun, SizingOverrides

router = APIRouter(prefix="/api/v1", tags=["analysis"])


@router.post("/sites/{site_id}/analyses", response_model=SimulationRun, status_code=201)
async def create_analysis(
    site_id: str,
    body: FullAnalysisRequest,
    engine: SolarEngine = Depends(get_engine),
) -> SimulationRun:
    """
    Run a full sizing and financial analysis and store it as a SCENARIO run.

    The new run becomes the site's selected run.
    """
    try:
        return await engine.run_full_analysis(site_id, body.assumptions, body.sizing, body.label)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")


@router.post("/simulation-runs/{run_id}/variants", response_model=SimulationRun, status_code=201)
async def create_variant(
    run_id: str,
    body: SizingOverrides,
    engine: SolarEngine = Depends(get_engine),
) -> SimulationRun:
    """Re-run a stored analysis with a different PV / battery size."""
    try:
        return await engine.create_variant(run_id, body)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")
