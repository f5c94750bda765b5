"""
Tests for the scenario manager: run registration, selection policy with
self-healing, payload memoization and scenario ranking.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from solarsim.config import OptimizationTarget, RunType, SelectionPhase
from solarsim.engine.collaborators import InMemoryRunStore
from solarsim.engine.scenarios import ScenarioManager, fallback_selection, is_valid_scenario
from solarsim.errors import NotFoundError, UpstreamServiceError
from solarsim.models.assumptions import AnalysisAssumptions
from solarsim.models.simulation import SimulationPayload, SimulationRun

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_run(
    run_id: str,
    run_type: RunType = RunType.SCENARIO,
    minutes: int = 0,
    site_id: str = "site-1",
    npv=100_000.0,
    irr=0.08,
    self_sufficiency=None,
    pv_size_kw=100.0,
    battery_energy_kwh=None,
) -> SimulationRun:
    return SimulationRun(
        id=run_id,
        site_id=site_id,
        type=run_type,
        created_at=T0 + timedelta(minutes=minutes),
        pv_size_kw=pv_size_kw,
        battery_energy_kwh=battery_energy_kwh,
        tariff_code="M",
        energy_rate=0.06061,
        discount_rate=0.07,
        horizon_years=25,
        npv=npv,
        irr=irr,
        self_sufficiency_percent=self_sufficiency,
        assumptions=AnalysisAssumptions(),
        config_version="test",
    )


def register(manager: ScenarioManager, *runs: SimulationRun) -> None:
    async def _go():
        for run in runs:
            await manager.register_run(run, SimulationPayload(run_id=run.id))
    asyncio.run(_go())


class CountingRunStore(InMemoryRunStore):
    def __init__(self):
        super().__init__()
        self.payload_loads = 0

    async def load_payload(self, run_id):
        self.payload_loads += 1
        await asyncio.sleep(0.01)
        return await super().load_payload(run_id)


class FlakyRunStore(CountingRunStore):
    async def load_payload(self, run_id):
        self.payload_loads += 1
        if self.payload_loads == 1:
            raise RuntimeError("connection reset")
        return await InMemoryRunStore.load_payload(self, run_id)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

class TestRegisterAndSelect:
    def setup_method(self):
        self.manager = ScenarioManager(InMemoryRunStore())

    def test_new_run_selected(self):
        register(self.manager, make_run("a"))
        state = self.manager.selection_state("site-1")
        assert state.run_id == "a"
        assert state.phase == SelectionPhase.SELECTED

    def test_newest_registration_wins(self):
        register(self.manager, make_run("a"), make_run("b", minutes=1))
        assert asyncio.run(self.manager.selected_run("site-1")).id == "b"

    def test_quick_run_created_is_selected(self):
        # a just-created run is selected even when it is not a SCENARIO
        register(self.manager, make_run("a"), make_run("q", RunType.QUICK, minutes=1))
        assert asyncio.run(self.manager.selected_run("site-1")).id == "q"

    def test_listener_sees_created_run(self):
        seen = []
        self.manager.subscribe(lambda run: seen.append(run.id))
        register(self.manager, make_run("a"))
        assert seen == ["a"]

    def test_explicit_selection(self):
        register(self.manager, make_run("a"), make_run("b", minutes=1))
        asyncio.run(self.manager.select_scenario("site-1", "a"))
        assert asyncio.run(self.manager.selected_run("site-1")).id == "a"

    def test_select_unknown_run(self):
        with pytest.raises(NotFoundError):
            asyncio.run(self.manager.select_scenario("site-1", "missing"))

    def test_select_run_of_other_site(self):
        register(self.manager, make_run("x", site_id="site-2"))
        with pytest.raises(NotFoundError):
            asyncio.run(self.manager.select_scenario("site-1", "x"))

    def test_no_runs(self):
        assert asyncio.run(self.manager.selected_run("site-1")) is None


class TestSelfHealingSelection:
    """A and B are SCENARIO runs, C is a newer QUICK run that gets deleted."""

    def setup_method(self):
        self.manager = ScenarioManager(InMemoryRunStore())
        register(
            self.manager,
            make_run("A", minutes=0),
            make_run("B", minutes=1),
            make_run("C", RunType.QUICK, minutes=2),
        )

    def test_c_selected_initially(self):
        assert asyncio.run(self.manager.selected_run("site-1")).id == "C"

    def test_stale_selection_falls_back_to_latest_scenario(self):
        asyncio.run(self.manager.delete_run("C"))
        assert asyncio.run(self.manager.selected_run("site-1")).id == "B"
        assert self.manager.selection_state("site-1").run_id == "B"

    def test_clear_selection_reapplies_policy(self):
        state = asyncio.run(self.manager.select_scenario("site-1", None))
        assert state.run_id == "B"

    def test_quick_only_site(self):
        manager = ScenarioManager(InMemoryRunStore())
        register(manager, make_run("q1", RunType.QUICK), make_run("q2", RunType.QUICK, minutes=5))
        asyncio.run(manager.delete_run("q2"))
        assert asyncio.run(manager.selected_run("site-1")).id == "q1"


class TestFallbackPolicy:
    def test_prefers_scenario(self):
        runs = [make_run("s", minutes=0), make_run("q", RunType.QUICK, minutes=9)]
        assert fallback_selection(runs).id == "s"

    def test_same_timestamp_later_wins(self):
        runs = [make_run("first"), make_run("second")]
        assert fallback_selection(runs).id == "second"

    def test_empty(self):
        assert fallback_selection([]) is None


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------

class TestPayloadCache:
    def test_concurrent_requests_share_one_load(self):
        store = CountingRunStore()
        manager = ScenarioManager(store)

        async def _go():
            run = make_run("a")
            await manager.register_run(run, SimulationPayload(run_id="a"))
            results = await asyncio.gather(*(manager.get_payload("a") for _ in range(5)))
            again = await manager.get_payload("a")
            return results, again

        results, again = asyncio.run(_go())
        assert store.payload_loads == 1
        assert all(p.run_id == "a" for p in results)
        assert again.run_id == "a"

    def test_failure_not_cached(self):
        store = FlakyRunStore()
        manager = ScenarioManager(store)

        async def _go():
            await manager.register_run(make_run("a"), SimulationPayload(run_id="a"))
            with pytest.raises(UpstreamServiceError):
                await manager.get_payload("a")
            return await manager.get_payload("a")

        payload = asyncio.run(_go())
        assert payload.run_id == "a"
        assert store.payload_loads == 2

    def test_missing_payload(self):
        manager = ScenarioManager(InMemoryRunStore())
        with pytest.raises(NotFoundError):
            asyncio.run(manager.get_payload("missing"))


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

class TestValidScenario:
    def test_requires_npv(self):
        assert not is_valid_scenario(make_run("a", npv=None))

    def test_requires_system(self):
        assert not is_valid_scenario(make_run("a", pv_size_kw=None))

    def test_battery_only(self):
        assert is_valid_scenario(make_run("a", pv_size_kw=None, battery_energy_kwh=200))


class TestCompareScenarios:
    def setup_method(self):
        self.manager = ScenarioManager(InMemoryRunStore())
        register(
            self.manager,
            make_run("low", npv=50_000, irr=0.12, self_sufficiency=40, minutes=0),
            make_run("high", npv=200_000, irr=0.06, self_sufficiency=20, minutes=1),
            make_run("tie", npv=200_000, irr=None, self_sufficiency=None, minutes=2),
            make_run("no-npv", npv=None, minutes=3),
            make_run("empty", pv_size_kw=0, minutes=4),
        )

    def compare(self, target):
        return asyncio.run(self.manager.compare_scenarios("site-1", target))

    def test_invalid_runs_excluded(self):
        ids = [s.run.id for s in self.compare(OptimizationTarget.NPV).scenarios]
        assert set(ids) == {"low", "high", "tie"}

    def test_npv_ranking_tie_goes_to_most_recent(self):
        result = self.compare(OptimizationTarget.NPV)
        assert [s.run.id for s in result.scenarios] == ["tie", "high", "low"]
        assert result.best_run_id == "tie"
        assert [s.rank for s in result.scenarios] == [1, 2, 3]

    def test_irr_none_sorts_last(self):
        result = self.compare(OptimizationTarget.IRR)
        assert [s.run.id for s in result.scenarios] == ["low", "high", "tie"]
        assert result.best_run_id == "low"

    def test_self_sufficiency(self):
        result = self.compare(OptimizationTarget.SELF_SUFFICIENCY)
        assert result.best_run_id == "low"
        assert result.scenarios[0].is_best
        assert sum(s.is_best for s in result.scenarios) == 1

    def test_empty_site(self):
        result = asyncio.run(self.manager.compare_scenarios("site-9", OptimizationTarget.NPV))
        assert result.best_run_id is None
        assert result.scenarios == []
