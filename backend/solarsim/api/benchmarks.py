"""
API routes for third-party simulation benchmarks.
"""

from fastapi import APIRouter, Depends, HTTPException

from solarsim.api.deps import get_engine
from solarsim.engine.service import SolarEngine
from solarsim.errors import NotFoundError, UpstreamServiceError
from solarsim.models.benchmark import Benchmark, BenchmarkComparison, BenchmarkInput

router = APIRouter(prefix="/api/v1", tags=["benchmarks"])


@router.post("/sites/{site_id}/benchmarks", response_model=BenchmarkComparison, status_code=201)
async def add_benchmark(
    site_id: str,
    body: BenchmarkInput,
    engine: SolarEngine = Depends(get_engine),
) -> BenchmarkComparison:
    """Store figures from an external tool and compare them with our run."""
    try:
        return await engine.add_benchmark(site_id, body)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")


@router.get("/sites/{site_id}/benchmarks", response_model=list[Benchmark])
async def list_benchmarks(site_id: str, engine: SolarEngine = Depends(get_engine)):
    try:
        return await engine.list_benchmarks(site_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/sites/{site_id}/benchmarks/comparison", response_model=BenchmarkComparison)
async def benchmark_comparison(site_id: str, engine: SolarEngine = Depends(get_engine)):
    """Latest benchmark against its run; has_data is false when none exists."""
    try:
        return await engine.benchmark_comparison(site_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Calculation error: {str(e)}")
