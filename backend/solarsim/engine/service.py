"""
SolarEngine: async facade over the engine.

Pulls inputs from the external collaborators (site directory, roof geometry,
irradiance, hourly simulation, metering, persistence), runs the pure
computation modules and routes every run through the ScenarioManager.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from solarsim.config import OptimizationTarget
from solarsim.engine.analysis import build_run, compute_quick_potential, quick_run, resolve_rates
from solarsim.engine.benchmark import compare_benchmark, latest_benchmark
from solarsim.engine.collaborators import (
    BenchmarkStore,
    HourlySimulationService,
    InMemoryBenchmarkStore,
    InMemoryMeterData,
    InMemoryRoofGeometry,
    InMemoryRunStore,
    InMemorySiteDirectory,
    IrradianceService,
    MeterDataService,
    NullHourlySimulation,
    RoofGeometryService,
    RunStore,
    SiteDirectory,
    StaticIrradianceService,
    call_upstream,
)
from solarsim.engine.production import resolve_yield
from solarsim.engine.reconciliation import compute_reconciliation as reconcile
from solarsim.engine.scenarios import ScenarioManager
from solarsim.engine.sizing import resolve_roof_area, size_system
from solarsim.engine.tariffs import detect_tariff
from solarsim.errors import DataUnavailableError, NotFoundError, ValidationError
from solarsim.models.assumptions import AnalysisAssumptions
from solarsim.models.benchmark import Benchmark, BenchmarkComparison, BenchmarkInput
from solarsim.models.reconciliation import ReconciliationResult
from solarsim.models.roof import RoofInput
from solarsim.models.simulation import (
    QuickPotentialResult,
    ScenarioComparison,
    SelectionState,
    SimulationPayload,
    SimulationRun,
    SizingOverrides,
)
from solarsim.models.site import MeterHistory, Site

logger = logging.getLogger(__name__)


class SolarEngine:
    def __init__(
        self,
        sites: SiteDirectory,
        roofs: RoofGeometryService,
        irradiance: IrradianceService,
        hourly: HourlySimulationService,
        meters: MeterDataService,
        runs: RunStore,
        benchmarks: BenchmarkStore,
    ):
        self.sites = sites
        self.roofs = roofs
        self.irradiance = irradiance
        self.hourly = hourly
        self.meters = meters
        self.benchmarks = benchmarks
        self.scenarios = ScenarioManager(runs)

    @classmethod
    def in_memory(cls, sites: Optional[list[Site]] = None) -> "SolarEngine":
        """Engine wired to in-memory collaborators."""
        return cls(
            sites=InMemorySiteDirectory(sites),
            roofs=InMemoryRoofGeometry(),
            irradiance=StaticIrradianceService(),
            hourly=NullHourlySimulation(),
            meters=InMemoryMeterData(),
            runs=InMemoryRunStore(),
            benchmarks=InMemoryBenchmarkStore(),
        )

    # ── Inputs ──

    async def _site(self, site_id: str) -> Site:
        return await call_upstream("site directory", self.sites.get_site(site_id))

    async def _meter_history(self, site_id: str) -> MeterHistory:
        return await call_upstream("meter data", self.meters.get_history(site_id))

    async def _roof_input(self, site_id: str, assumptions: AnalysisAssumptions) -> RoofInput:
        polygons = await call_upstream("roof geometry", self.roofs.get_polygons(site_id))
        layout = await call_upstream("roof geometry", self.roofs.get_layout(site_id))
        return RoofInput(
            polygons=polygons,
            manual_area=assumptions.roof_area_override,
            manual_area_unit=assumptions.roof_area_unit,
            layout=layout,
        )

    @staticmethod
    def _baseline_profile(history: MeterHistory) -> tuple[Optional[float], Optional[float]]:
        """Peak demand and annualized consumption from pre-commissioning data."""
        if not history.baseline:
            return None, None
        peaks = [m.peak_demand_kw for m in history.baseline if m.peak_demand_kw is not None]
        consumption = sum(m.consumption_kwh for m in history.baseline)
        annual = consumption / len(history.baseline) * 12
        return (max(peaks) if peaks else None), annual

    def _detected_tariff(self, history: MeterHistory) -> Optional[str]:
        peak, annual = self._baseline_profile(history)
        if annual is None:
            return None
        if peak is None:
            return detect_tariff(0.0, annual, has_power_data=False).detected_tariff
        return detect_tariff(peak, annual).detected_tariff

    # ── Quick potential ──

    async def quick_potential_for_site(
        self,
        site_id: str,
        constraint_factor: Optional[float] = None,
        assumptions: Optional[AnalysisAssumptions] = None,
        save: bool = False,
    ) -> QuickPotentialResult:
        assumptions = assumptions or AnalysisAssumptions()
        site = await self._site(site_id)
        roof = await self._roof_input(site_id, assumptions)
        detected = self._detected_tariff(await self._meter_history(site_id))

        result = compute_quick_potential(
            roof,
            constraint_factor,
            assumptions,
            site_area_sqm=site.roof_area_sqm,
            detected_tariff=detected,
        )

        # irradiance refinement needs the system size, so it is a second pass
        estimate = await call_upstream(
            "irradiance", self.irradiance.estimate_yield(site, result.sizing.capacity_kw)
        )
        if estimate is not None:
            result = compute_quick_potential(
                roof,
                constraint_factor,
                assumptions,
                yield_estimate=estimate,
                site_area_sqm=site.roof_area_sqm,
                detected_tariff=detected,
            )

        if save:
            run, payload = quick_run(site_id, result, assumptions)
            await self.scenarios.register_run(run, payload)
            result = result.model_copy(update={"saved_run_id": run.id})
        return result

    # ── Full analysis and variants ──

    async def run_full_analysis(
        self,
        site_id: str,
        assumptions: Optional[AnalysisAssumptions] = None,
        sizing: Optional[SizingOverrides] = None,
        label: Optional[str] = None,
        base_run_id: Optional[str] = None,
    ) -> SimulationRun:
        """Size (or take the given size), analyse and persist a SCENARIO run."""
        assumptions = assumptions or AnalysisAssumptions()
        sizing = sizing or SizingOverrides()
        site = await self._site(site_id)
        history = await self._meter_history(site_id)

        panel_count = None
        if sizing.pv_size_kw is not None:
            pv_size_kw = sizing.pv_size_kw
        else:
            roof = await self._roof_input(site_id, assumptions)
            area = resolve_roof_area(roof, site.roof_area_sqm)
            result = size_system(
                area.total_area_sqm,
                assumptions.constraint_factor,
                assumptions.panel_wattage_w,
                roof.layout,
            )
            pv_size_kw = result.capacity_kw
            panel_count = result.panel_count

        battery_energy_kwh = sizing.battery_energy_kwh or 0.0
        battery_power_kw = sizing.battery_power_kw or 0.0

        estimate = None
        if pv_size_kw > 0:
            estimate = await call_upstream(
                "irradiance", self.irradiance.estimate_yield(site, pv_size_kw)
            )
        strategy = resolve_yield(assumptions, estimate)

        hourly_profile = await call_upstream(
            "hourly simulation",
            self.hourly.simulate(site_id, pv_size_kw, battery_energy_kwh, battery_power_kw),
        )

        peak_kw, _ = self._baseline_profile(history)
        code, energy_rate, demand_rate = resolve_rates(assumptions, self._detected_tariff(history))

        run, payload = build_run(
            site_id,
            assumptions,
            pv_size_kw,
            strategy,
            code,
            energy_rate,
            demand_rate,
            battery_energy_kwh=battery_energy_kwh,
            battery_power_kw=battery_power_kw,
            panel_count=panel_count,
            peak_demand_kw=peak_kw,
            hourly_profile=hourly_profile,
            label=label or sizing.label,
            base_run_id=base_run_id,
        )
        return await self.scenarios.register_run(run, payload)

    async def create_variant(self, base_run_id: str, overrides: SizingOverrides) -> SimulationRun:
        """New run with PV / battery sizes layered over the base run's assumptions."""
        base = await self.scenarios.get_run(base_run_id)

        pv = overrides.pv_size_kw if overrides.pv_size_kw is not None else base.pv_size_kw
        battery_kwh = (
            overrides.battery_energy_kwh
            if overrides.battery_energy_kwh is not None
            else base.battery_energy_kwh
        )
        battery_kw = (
            overrides.battery_power_kw
            if overrides.battery_power_kw is not None
            else base.battery_power_kw
        )
        if not pv and not battery_kwh:
            raise ValidationError("A variant needs a PV size or a battery size")

        sizing = SizingOverrides(
            pv_size_kw=pv or 0.0,
            battery_energy_kwh=battery_kwh or 0.0,
            battery_power_kw=battery_kw or 0.0,
        )
        return await self.run_full_analysis(
            base.site_id,
            base.assumptions,
            sizing,
            label=overrides.label or f"Variant of {base.label or base.id[:8]}",
            base_run_id=base.id,
        )

    # ── Scenarios ──

    async def list_runs(self, site_id: str) -> list[SimulationRun]:
        await self._site(site_id)
        return await self.scenarios.list_runs(site_id)

    async def select_scenario(self, site_id: str, run_id: Optional[str]) -> Optional[SelectionState]:
        await self._site(site_id)
        return await self.scenarios.select_scenario(site_id, run_id)

    async def selected_run(self, site_id: str) -> Optional[SimulationRun]:
        await self._site(site_id)
        return await self.scenarios.selected_run(site_id)

    async def compare_scenarios(
        self,
        site_id: str,
        target: OptimizationTarget = OptimizationTarget.NPV,
    ) -> ScenarioComparison:
        await self._site(site_id)
        return await self.scenarios.compare_scenarios(site_id, target)

    async def get_run_payload(self, run_id: str) -> SimulationPayload:
        return await self.scenarios.get_payload(run_id)

    async def delete_run(self, run_id: str) -> None:
        await self.scenarios.delete_run(run_id)

    # ── Benchmarks ──

    async def add_benchmark(self, site_id: str, tool_data: BenchmarkInput) -> BenchmarkComparison:
        await self._site(site_id)
        if tool_data.simulation_run_id is not None:
            run = await self.scenarios.get_run(tool_data.simulation_run_id)
            if run.site_id != site_id:
                raise NotFoundError("simulation run", tool_data.simulation_run_id)

        benchmark = Benchmark(
            **tool_data.model_dump(),
            id=uuid.uuid4().hex,
            site_id=site_id,
            created_at=datetime.now(timezone.utc),
        )
        await call_upstream("benchmark store", self.benchmarks.add(benchmark))
        logger.info("Added %s benchmark %s for site %s", benchmark.tool_name, benchmark.id, site_id)
        return await self._comparison(site_id, benchmark)

    async def list_benchmarks(self, site_id: str) -> list[Benchmark]:
        await self._site(site_id)
        return await call_upstream("benchmark store", self.benchmarks.list_for_site(site_id))

    async def benchmark_comparison(self, site_id: str) -> BenchmarkComparison:
        """Latest benchmark against its linked run (or the selected run)."""
        try:
            benchmarks = await self.list_benchmarks(site_id)
        except DataUnavailableError:
            benchmarks = []
        benchmark = latest_benchmark(benchmarks)
        if benchmark is None:
            return BenchmarkComparison(site_id=site_id, has_data=False)
        return await self._comparison(site_id, benchmark)

    async def _comparison(self, site_id: str, benchmark: Benchmark) -> BenchmarkComparison:
        if benchmark.simulation_run_id is not None:
            run = await self.scenarios.find_run(benchmark.simulation_run_id)
        else:
            run = await self.scenarios.selected_run(site_id)
        return BenchmarkComparison(
            site_id=site_id,
            has_data=True,
            benchmark=benchmark,
            simulation_run_id=run.id if run is not None else None,
            rows=compare_benchmark(benchmark, run),
        )

    # ── Reconciliation ──

    async def compute_reconciliation(self, site_id: str) -> ReconciliationResult:
        await self._site(site_id)
        try:
            history = await self._meter_history(site_id)
        except DataUnavailableError:
            history = MeterHistory()
        run = await self.scenarios.selected_run(site_id)
        return reconcile(site_id, history, run)
