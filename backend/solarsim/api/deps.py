"""
Engine dependency for the route handlers.

Routes receive the engine through Depends(get_engine), so tests and
deployments can swap collaborators with app.dependency_overrides.
"""

from solarsim.engine.service import SolarEngine

_engine = SolarEngine.in_memory()


def get_engine() -> SolarEngine:
    return _engine
