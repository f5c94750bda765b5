"""
API routes for simulation runs, selection and scenario comparison.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from solarsim.api.deps import get_engine
from solarsim.config import OptimizationTarget
from solarsim.engine.service import SolarEngine
from solarsim.errors import NotFoundError, UpstreamServiceError
from solarsim.models.simulation import (
    ScenarioComparison,
    SelectionState,
    SelectRunRequest,
    SimulationPayload,
    SimulationRun,
)

router = APIRouter(prefix="/api/v1", tags=["scenarios"])


@router.get("/sites/{site_id}/simulation-runs", response_model=list[SimulationRun])
async def list_simulation_runs(site_id: str, engine: SolarEngine = Depends(get_engine)):
    try:
        return await engine.list_runs(site_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")


@router.get("/sites/{site_id}/selected-run", response_model=Optional[SimulationRun])
async def get_selected_run(site_id: str, engine: SolarEngine = Depends(get_engine)):
    """Currently selected run; null when the site has no runs."""
    try:
        return await engine.selected_run(site_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")


@router.put("/sites/{site_id}/selected-run", response_model=Optional[SelectionState])
async def put_selected_run(
    site_id: str,
    body: SelectRunRequest,
    engine: SolarEngine = Depends(get_engine),
):
    """Select a run, or pass run_id=null to fall back to the most recent scenario."""
    try:
        return await engine.select_scenario(site_id, body.run_id)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")


@router.get("/sites/{site_id}/scenarios/compare", response_model=ScenarioComparison)
async def compare_scenarios(
    site_id: str,
    target: OptimizationTarget = Query(OptimizationTarget.NPV),
    engine: SolarEngine = Depends(get_engine),
):
    try:
        return await engine.compare_scenarios(site_id, target)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")


@router.get("/simulation-runs/{run_id}/payload", response_model=SimulationPayload)
async def get_run_payload(run_id: str, engine: SolarEngine = Depends(get_engine)):
    """Monthly profile, cash flows and sensitivity table for one run."""
    try:
        return await engine.get_run_payload(run_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")


@router.delete("/simulation-runs/{run_id}", status_code=204)
async def delete_run(run_id: str, engine: SolarEngine = Depends(get_engine)):
    try:
        await engine.delete_run(run_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")
