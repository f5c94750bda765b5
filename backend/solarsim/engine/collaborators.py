"""
External collaborators of the engine.

Geometry capture, irradiance, hourly simulation, metering and persistence live
outside the engine. Each is an async protocol; the in-memory implementations
below back the default application and the tests.
"""

import logging
from typing import Awaitable, Optional, Protocol, TypeVar

from solarsim.errors import (
    DataUnavailableError,
    NotFoundError,
    UpstreamServiceError,
    ValidationError,
)
from solarsim.models.benchmark import Benchmark
from solarsim.models.production import HourlyPoint, YieldEstimate
from solarsim.models.roof import PanelLayout, RoofPolygon
from solarsim.models.simulation import SimulationPayload, SimulationRun
from solarsim.models.site import MeterHistory, Site

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_upstream(service: str, pending: Awaitable[T]) -> T:
    """
    Await a collaborator call.

    Engine exceptions pass through unchanged; anything else becomes an
    UpstreamServiceError so callers never substitute a default outcome.
    """
    try:
        return await pending
    except (NotFoundError, ValidationError, DataUnavailableError):
        raise
    except Exception as e:
        logger.warning("%s call failed: %s", service, e)
        raise UpstreamServiceError(service, str(e)) from e


class SiteDirectory(Protocol):
    async def get_site(self, site_id: str) -> Site: ...


class RoofGeometryService(Protocol):
    async def get_polygons(self, site_id: str) -> list[RoofPolygon]: ...

    async def get_layout(self, site_id: str) -> Optional[PanelLayout]: ...


class IrradianceService(Protocol):
    async def estimate_yield(self, site: Site, system_size_kw: float) -> Optional[YieldEstimate]: ...


class HourlySimulationService(Protocol):
    async def simulate(
        self,
        site_id: str,
        pv_size_kw: float,
        battery_energy_kwh: float,
        battery_power_kw: float,
    ) -> Optional[list[HourlyPoint]]: ...


class MeterDataService(Protocol):
    async def get_history(self, site_id: str) -> MeterHistory: ...


class RunStore(Protocol):
    async def save(self, run: SimulationRun, payload: SimulationPayload) -> None: ...

    async def get_run(self, run_id: str) -> Optional[SimulationRun]: ...

    async def list_runs(self, site_id: str) -> list[SimulationRun]: ...

    async def load_payload(self, run_id: str) -> Optional[SimulationPayload]: ...

    async def delete_run(self, run_id: str) -> bool: ...


class BenchmarkStore(Protocol):
    async def add(self, benchmark: Benchmark) -> None: ...

    async def list_for_site(self, site_id: str) -> list[Benchmark]: ...


# ── In-memory implementations ──


class InMemorySiteDirectory:
    def __init__(self, sites: Optional[list[Site]] = None):
        self._sites = {s.id: s for s in sites or []}

    def add(self, site: Site) -> None:
        self._sites[site.id] = site

    async def get_site(self, site_id: str) -> Site:
        site = self._sites.get(site_id)
        if site is None:
            raise NotFoundError("site", site_id)
        return site


class InMemoryRoofGeometry:
    def __init__(self):
        self._polygons: dict[str, list[RoofPolygon]] = {}
        self._layouts: dict[str, PanelLayout] = {}

    def set_polygons(self, site_id: str, polygons: list[RoofPolygon]) -> None:
        self._polygons[site_id] = list(polygons)

    def set_layout(self, site_id: str, layout: PanelLayout) -> None:
        self._layouts[site_id] = layout

    async def get_polygons(self, site_id: str) -> list[RoofPolygon]:
        return list(self._polygons.get(site_id, []))

    async def get_layout(self, site_id: str) -> Optional[PanelLayout]:
        return self._layouts.get(site_id)


class StaticIrradianceService:
    """Returns a fixed specific yield, or nothing (default yield applies)."""

    def __init__(self, yield_kwh_per_kwp: Optional[float] = None):
        self.yield_kwh_per_kwp = yield_kwh_per_kwp

    async def estimate_yield(self, site: Site, system_size_kw: float) -> Optional[YieldEstimate]:
        if self.yield_kwh_per_kwp is None or system_size_kw <= 0:
            return None
        return YieldEstimate(
            yearly_energy_kwh=self.yield_kwh_per_kwp * system_size_kw,
            system_size_kw=system_size_kw,
        )


class NullHourlySimulation:
    """No hourly service configured; the monthly balance is used."""

    async def simulate(
        self,
        site_id: str,
        pv_size_kw: float,
        battery_energy_kwh: float,
        battery_power_kw: float,
    ) -> Optional[list[HourlyPoint]]:
        return None


class InMemoryMeterData:
    def __init__(self):
        self._histories: dict[str, MeterHistory] = {}

    def set_history(self, site_id: str, history: MeterHistory) -> None:
        self._histories[site_id] = history

    async def get_history(self, site_id: str) -> MeterHistory:
        return self._histories.get(site_id, MeterHistory())


class InMemoryRunStore:
    """Runs in insertion order; payloads kept apart from summaries."""

    def __init__(self):
        self._runs: dict[str, SimulationRun] = {}
        self._payloads: dict[str, SimulationPayload] = {}

    async def save(self, run: SimulationRun, payload: SimulationPayload) -> None:
        self._runs[run.id] = run
        self._payloads[run.id] = payload

    async def get_run(self, run_id: str) -> Optional[SimulationRun]:
        return self._runs.get(run_id)

    async def list_runs(self, site_id: str) -> list[SimulationRun]:
        return [r for r in self._runs.values() if r.site_id == site_id]

    async def load_payload(self, run_id: str) -> Optional[SimulationPayload]:
        return self._payloads.get(run_id)

    async def delete_run(self, run_id: str) -> bool:
        self._payloads.pop(run_id, None)
        return self._runs.pop(run_id, None) is not None


class InMemoryBenchmarkStore:
    def __init__(self):
        self._benchmarks: list[Benchmark] = []

    async def add(self, benchmark: Benchmark) -> None:
        self._benchmarks.append(benchmark)

    async def list_for_site(self, site_id: str) -> list[Benchmark]:
        return [b for b in self._benchmarks if b.site_id == site_id]
