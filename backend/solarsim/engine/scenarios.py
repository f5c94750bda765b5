"""
Scenario manager.

Owns run persistence (through a RunStore), per-site selection, lazy payload
loading and scenario ranking.

Selection is a two-phase state per site. register_run saves the run, then
emits a run-created event whose handler moves the selection straight from
CREATED to SELECTED without yielding to the event loop, so no reader can
observe a saved-but-unselected run. When nothing has been selected, or the
selected run no longer exists, the policy falls back to the most recent
SCENARIO run, then the most recent run of any type.
"""

import asyncio
import logging
from typing import Callable, Optional

from solarsim.config import OptimizationTarget, RunType, SelectionPhase
from solarsim.engine.collaborators import RunStore, call_upstream
from solarsim.errors import NotFoundError
from solarsim.models.simulation import (
    RankedScenario,
    ScenarioComparison,
    SelectionState,
    SimulationPayload,
    SimulationRun,
)

logger = logging.getLogger(__name__)

RunListener = Callable[[SimulationRun], None]


def is_valid_scenario(run: SimulationRun) -> bool:
    """A run can be ranked when it has a system size and an NPV."""
    has_system = bool(run.pv_size_kw) or bool(run.battery_energy_kwh)
    return has_system and run.npv is not None


def target_value(run: SimulationRun, target: OptimizationTarget) -> Optional[float]:
    if target == OptimizationTarget.NPV:
        return run.npv
    if target == OptimizationTarget.IRR:
        return run.irr
    return run.self_sufficiency_percent


def most_recent(runs: list[SimulationRun]) -> Optional[SimulationRun]:
    """Latest by created_at; among equal timestamps the later-stored run wins."""
    if not runs:
        return None
    return max(enumerate(runs), key=lambda pair: (pair[1].created_at, pair[0]))[1]


def fallback_selection(runs: list[SimulationRun]) -> Optional[SimulationRun]:
    scenarios = [r for r in runs if r.type == RunType.SCENARIO]
    return most_recent(scenarios) or most_recent(runs)


class ScenarioManager:
    def __init__(self, store: RunStore):
        self._store = store
        self._selection: dict[str, SelectionState] = {}
        self._payloads: dict[str, asyncio.Future] = {}
        self._listeners: list[RunListener] = [self._on_run_created]

    def subscribe(self, listener: RunListener) -> None:
        """Register a synchronous run-created handler."""
        self._listeners.append(listener)

    # ── Persistence ──

    async def register_run(self, run: SimulationRun, payload: SimulationPayload) -> SimulationRun:
        """Persist a run and make it the site's selected run."""
        await call_upstream("run store", self._store.save(run, payload))
        self._selection[run.site_id] = SelectionState(
            site_id=run.site_id, run_id=run.id, phase=SelectionPhase.CREATED
        )
        for listener in self._listeners:
            listener(run)
        logger.info("Registered %s run %s for site %s", run.type.value, run.id, run.site_id)
        return run

    def _on_run_created(self, run: SimulationRun) -> None:
        state = self._selection.get(run.site_id)
        if state is not None and state.run_id == run.id and state.phase == SelectionPhase.CREATED:
            self._selection[run.site_id] = SelectionState(
                site_id=run.site_id, run_id=run.id, phase=SelectionPhase.SELECTED
            )

    async def find_run(self, run_id: str) -> Optional[SimulationRun]:
        return await call_upstream("run store", self._store.get_run(run_id))

    async def get_run(self, run_id: str) -> SimulationRun:
        run = await self.find_run(run_id)
        if run is None:
            raise NotFoundError("simulation run", run_id)
        return run

    async def list_runs(self, site_id: str) -> list[SimulationRun]:
        return await call_upstream("run store", self._store.list_runs(site_id))

    async def delete_run(self, run_id: str) -> None:
        deleted = await call_upstream("run store", self._store.delete_run(run_id))
        if not deleted:
            raise NotFoundError("simulation run", run_id)
        self._payloads.pop(run_id, None)

    # ── Selection ──

    def selection_state(self, site_id: str) -> Optional[SelectionState]:
        return self._selection.get(site_id)

    async def select_scenario(self, site_id: str, run_id: Optional[str]) -> Optional[SelectionState]:
        """
        Select a run explicitly, or with run_id=None re-apply the fallback policy.
        """
        if run_id is None:
            self._selection.pop(site_id, None)
            run = await self.selected_run(site_id)
            return self._selection.get(site_id) if run is not None else None

        run = await self.get_run(run_id)
        if run.site_id != site_id:
            raise NotFoundError("simulation run", run_id)
        state = SelectionState(site_id=site_id, run_id=run_id, phase=SelectionPhase.SELECTED)
        self._selection[site_id] = state
        return state

    async def selected_run(self, site_id: str) -> Optional[SimulationRun]:
        """The site's selected run, healing a stale or missing selection."""
        runs = await self.list_runs(site_id)
        state = self._selection.get(site_id)

        if state is not None:
            run = next((r for r in runs if r.id == state.run_id), None)
            if run is None:
                # may have been registered after the listing above
                run = await self.find_run(state.run_id)
            if run is not None and run.site_id == site_id:
                return run
            logger.warning(
                "Selected run %s for site %s no longer exists; re-applying fallback",
                state.run_id, site_id,
            )

        if self._selection.get(site_id) is not state:
            # selection changed while the store was being read
            return await self.selected_run(site_id)

        chosen = fallback_selection(runs)
        if chosen is None:
            self._selection.pop(site_id, None)
            return None

        self._selection[site_id] = SelectionState(
            site_id=site_id, run_id=chosen.id, phase=SelectionPhase.SELECTED
        )
        return chosen

    # ── Payloads ──

    async def get_payload(self, run_id: str) -> SimulationPayload:
        """
        Load a run's payload once; concurrent callers share the in-flight load.

        Failed loads are dropped from the cache so the next call retries.
        """
        future = self._payloads.get(run_id)
        if future is None:
            future = asyncio.ensure_future(self._load_payload(run_id))
            self._payloads[run_id] = future
        try:
            return await asyncio.shield(future)
        except Exception:
            if self._payloads.get(run_id) is future:
                del self._payloads[run_id]
            raise

    async def _load_payload(self, run_id: str) -> SimulationPayload:
        payload = await call_upstream("run store", self._store.load_payload(run_id))
        if payload is None:
            raise NotFoundError("simulation payload", run_id)
        return payload

    # ── Comparison ──

    async def compare_scenarios(
        self,
        site_id: str,
        target: OptimizationTarget = OptimizationTarget.NPV,
    ) -> ScenarioComparison:
        """Rank valid runs by target, best first; runs without a value sort last."""
        runs = await self.list_runs(site_id)
        indexed = [(i, r) for i, r in enumerate(runs) if is_valid_scenario(r)]

        def sort_key(pair):
            index, run = pair
            value = target_value(run, target)
            return (
                value is None,
                -(value if value is not None else 0.0),
                -run.created_at.timestamp(),
                -index,
            )

        ranked = []
        best_id = None
        for rank, (_, run) in enumerate(sorted(indexed, key=sort_key), start=1):
            value = target_value(run, target)
            is_best = best_id is None and value is not None
            if is_best:
                best_id = run.id
            ranked.append(RankedScenario(rank=rank, run=run, target_value=value, is_best=is_best))

        return ScenarioComparison(
            site_id=site_id, target=target, best_run_id=best_id, scenarios=ranked
        )
