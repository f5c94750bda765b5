"""
API-level tests for the /api/v1 routes.
"""

import pytest
from fastapi.testclient import TestClient

from solarsim.api.deps import get_engine
from solarsim.engine.service import SolarEngine
from solarsim.main import app
from solarsim.models.roof import RoofPolygon
from solarsim.models.site import Site

client = TestClient(app)

ROOF = {
    "polygons": [
        {"area_sqm": 6000, "label": "Roof A"},
        {"area_sqm": 4000, "label": "Roof B"},
        {"area_sqm": 300, "color": "#f97316"},
    ]
}
ASSUMPTIONS = {"tariff_code": "M", "panel_wattage_w": 660, "yield_factor": 1150}


class FailingRoofGeometry:
    async def get_polygons(self, site_id):
        raise TimeoutError("geometry service timed out")

    async def get_layout(self, site_id):
        return None


@pytest.fixture
def engine():
    engine = SolarEngine.in_memory([Site(id="site-1", name="Warehouse")])
    engine.roofs.set_polygons("site-1", [RoofPolygon(**p) for p in ROOF["polygons"]])
    app.dependency_overrides[get_engine] = lambda: engine
    yield engine
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestTariffEndpoints:
    def test_list(self):
        resp = client.get("/api/v1/tariffs")
        assert resp.status_code == 200
        assert len(resp.json()) == 10

    def test_get(self):
        resp = client.get("/api/v1/tariffs/M")
        assert resp.status_code == 200
        assert resp.json()["energy_rates"][0]["rate"] == pytest.approx(0.06061)

    def test_flex_code(self):
        assert client.get("/api/v1/tariffs/Flex%20M").status_code == 200

    def test_unknown(self):
        assert client.get("/api/v1/tariffs/XYZ").status_code == 404

    def test_detect(self):
        resp = client.get("/api/v1/tariffs/detect?peak_demand_kw=500&annual_consumption_kwh=2500000")
        assert resp.status_code == 200
        assert resp.json()["detected_tariff"] == "M"


class TestQuickPotentialEndpoint:
    def test_reference_roof(self):
        resp = client.post("/api/v1/quick-potential", json={
            "roof": ROOF, "constraint_factor": 0.10, "assumptions": ASSUMPTIONS,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["sizing"]["panel_count"] == 3825
        assert data["sizing"]["capacity_kw"] == pytest.approx(2524.5)
        assert data["annual_production_kwh"] == pytest.approx(2903175)
        assert data["incentives"]["incentive_binding"] == "cost_cap"

    def test_bad_constraint_factor(self):
        resp = client.post("/api/v1/quick-potential", json={"roof": ROOF, "constraint_factor": 0.9})
        assert resp.status_code == 422

    def test_no_roof(self):
        resp = client.post("/api/v1/quick-potential", json={"roof": {}})
        assert resp.status_code == 422

    def test_site_quick_potential_saved(self, engine):
        resp = client.post("/api/v1/sites/site-1/quick-potential", json={
            "constraint_factor": 0.10, "assumptions": ASSUMPTIONS, "save": True,
        })
        assert resp.status_code == 200
        run_id = resp.json()["saved_run_id"]
        selected = client.get("/api/v1/sites/site-1/selected-run").json()
        assert selected["id"] == run_id
        assert selected["type"] == "QUICK"

    def test_unknown_site(self, engine):
        resp = client.post("/api/v1/sites/nope/quick-potential", json={})
        assert resp.status_code == 404


class TestAnalysisEndpoints:
    def test_full_analysis(self, engine):
        resp = client.post("/api/v1/sites/site-1/analyses", json={"assumptions": ASSUMPTIONS})
        assert resp.status_code == 201
        data = resp.json()
        assert data["type"] == "SCENARIO"
        assert data["pv_size_kw"] == pytest.approx(2524.5)

        runs = client.get("/api/v1/sites/site-1/simulation-runs").json()
        assert [r["id"] for r in runs] == [data["id"]]

    def test_payload(self, engine):
        run = client.post("/api/v1/sites/site-1/analyses", json={"assumptions": ASSUMPTIONS}).json()
        resp = client.get(f"/api/v1/simulation-runs/{run['id']}/payload")
        assert resp.status_code == 200
        assert len(resp.json()["cashflows"]) == 26

    def test_payload_unknown_run(self, engine):
        assert client.get("/api/v1/simulation-runs/missing/payload").status_code == 404

    def test_variant(self, engine):
        base = client.post("/api/v1/sites/site-1/analyses", json={"assumptions": ASSUMPTIONS}).json()
        resp = client.post(f"/api/v1/simulation-runs/{base['id']}/variants", json={"pv_size_kw": 400})
        assert resp.status_code == 201
        assert resp.json()["base_run_id"] == base["id"]

    def test_variant_without_system(self, engine):
        base = client.post("/api/v1/sites/site-1/analyses", json={"assumptions": ASSUMPTIONS}).json()
        resp = client.post(f"/api/v1/simulation-runs/{base['id']}/variants", json={"pv_size_kw": 0})
        assert resp.status_code == 422

    def test_upstream_failure(self, engine):
        engine.roofs = FailingRoofGeometry()
        resp = client.post("/api/v1/sites/site-1/analyses", json={})
        assert resp.status_code == 502


class TestScenarioEndpoints:
    def test_selection_and_compare(self, engine):
        a = client.post("/api/v1/sites/site-1/analyses", json={"assumptions": ASSUMPTIONS}).json()
        b = client.post(
            "/api/v1/sites/site-1/analyses",
            json={"assumptions": ASSUMPTIONS, "sizing": {"pv_size_kw": 300}},
        ).json()
        assert client.get("/api/v1/sites/site-1/selected-run").json()["id"] == b["id"]

        resp = client.put("/api/v1/sites/site-1/selected-run", json={"run_id": a["id"]})
        assert resp.status_code == 200
        assert resp.json()["phase"] == "selected"
        assert client.get("/api/v1/sites/site-1/selected-run").json()["id"] == a["id"]

        comparison = client.get("/api/v1/sites/site-1/scenarios/compare?target=npv").json()
        assert len(comparison["scenarios"]) == 2
        assert comparison["scenarios"][0]["is_best"]

    def test_delete_heals_selection(self, engine):
        a = client.post("/api/v1/sites/site-1/analyses", json={"assumptions": ASSUMPTIONS}).json()
        b = client.post("/api/v1/sites/site-1/analyses", json={"assumptions": ASSUMPTIONS}).json()
        assert client.delete(f"/api/v1/simulation-runs/{b['id']}").status_code == 204
        assert client.get("/api/v1/sites/site-1/selected-run").json()["id"] == a["id"]

    def test_select_unknown_run(self, engine):
        resp = client.put("/api/v1/sites/site-1/selected-run", json={"run_id": "missing"})
        assert resp.status_code == 404

    def test_unknown_site(self, engine):
        assert client.get("/api/v1/sites/nope/simulation-runs").status_code == 404
        assert client.get("/api/v1/sites/nope/selected-run").status_code == 404
        assert client.get("/api/v1/sites/nope/scenarios/compare").status_code == 404

    def test_delete_unknown_run(self, engine):
        assert client.delete("/api/v1/simulation-runs/missing").status_code == 404

    def test_bad_target(self, engine):
        resp = client.get("/api/v1/sites/site-1/scenarios/compare?target=profit")
        assert resp.status_code == 422


class TestBenchmarkEndpoints:
    def test_add_and_compare(self, engine):
        client.post("/api/v1/sites/site-1/analyses", json={"assumptions": ASSUMPTIONS})
        resp = client.post("/api/v1/sites/site-1/benchmarks", json={
            "tool_name": "PVsyst",
            "sim_annual_production_kwh": 3048333.75,
        })
        assert resp.status_code == 201
        rows = {r["metric"]: r for r in resp.json()["rows"]}
        assert rows["annual_production_kwh"]["band"] == "aligned"

        listed = client.get("/api/v1/sites/site-1/benchmarks").json()
        assert len(listed) == 1
        comparison = client.get("/api/v1/sites/site-1/benchmarks/comparison").json()
        assert comparison["has_data"]

    def test_comparison_without_benchmark(self, engine):
        resp = client.get("/api/v1/sites/site-1/benchmarks/comparison")
        assert resp.status_code == 200
        assert resp.json()["has_data"] is False

    def test_missing_tool_name(self, engine):
        resp = client.post("/api/v1/sites/site-1/benchmarks", json={"tool_name": ""})
        assert resp.status_code == 422


class TestReconciliationEndpoint:
    def test_no_data(self, engine):
        resp = client.get("/api/v1/sites/site-1/reconciliation")
        assert resp.status_code == 200
        assert resp.json()["has_data"] is False

    def test_unknown_site(self, engine):
        assert client.get("/api/v1/sites/nope/reconciliation").status_code == 404
