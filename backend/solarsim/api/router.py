"""
Top-level API router that aggregates all sub-routers.
"""

from fastapi import APIRouter

from solarsim.api.tariffs import router as tariffs_router
from solarsim.api.quick_potential import router as quick_potential_router
from solarsim.api.analysis import router as analysis_router
from solarsim.api.scenarios import router as scenarios_router
from solarsim.api.benchmarks import router as benchmarks_router
from solarsim.api.reconciliation import router as reconciliation_router

router = APIRouter()
router.include_router(tariffs_router)
router.include_router(quick_potential_router)
router.include_router(analysis_router)
router.include_router(scenarios_router)
router.include_router(benchmarks_router)
router.include_router(reconciliation_router)
