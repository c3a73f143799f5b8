"""
Tests for api/app.py and api/routes — the dashboard service end to end.

The app is built with create_app() around a FakeApiClient; each test runs
inside a ``with TestClient(app)`` block so the lifespan-owned runtime (and
its cache) lives for the whole test.
"""
import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from client.errors import ClientRequestError

from conftest import FakeApiClient, sample_routes

API = "/api/v1"

VALID_CONTRATO = {
    "descripcion": "Toner para impresoras", "tipo_objeto": "BIEN",
    "categoria": "SUMINISTROS", "ue_id": 1, "meta_id": 4, "monto_estimado": 3500,
}


@pytest.fixture()
def backend():
    routes = sample_routes()
    routes[("POST", "/contratos-menores/")] = (
        lambda body: {"id": 2, "codigo": "CM-2026-002", **body})
    routes[("GET", "/contratos-menores/1")] = {"id": 1, "codigo": "CM-2026-001"}
    return FakeApiClient(routes)


@pytest.fixture()
def client(config, backend):
    app = create_app(config, client=backend)
    with TestClient(app) as c:
        yield c


class TestMeta:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert len(body["modules"]) == 6

    def test_health_detailed_reports_cache(self, client):
        body = client.get("/health/detailed").json()
        assert body["cache"]["size"] == 0
        assert body["request_count"] >= 1

    def test_request_id_header(self, client):
        resp = client.get("/health")
        assert len(resp.headers["X-Request-ID"]) == 8

    def test_runtime_closed_on_shutdown(self, config, backend):
        app = create_app(config, client=backend)
        with TestClient(app):
            pass
        assert backend.closed


class TestDashboards:
    def test_list_modules(self, client):
        modules = client.get(f"{API}/dashboards").json()["modules"]
        assert "presupuesto" in modules
        assert "contratos-menores" in modules

    def test_get_dashboard(self, client):
        resp = client.get(f"{API}/dashboards/presupuesto")
        assert resp.status_code == 200
        body = resp.json()
        assert body["filters"]["committed"] == {"anio": 2026}
        assert body["operations"]["kpis"]["status"] == "success"
        assert body["table"]["summary"] == "Mostrando 1 a 2 de 2"

    def test_get_without_wait_reports_loading(self, client):
        body = client.get(f"{API}/dashboards/presupuesto", params={"wait": "false"}).json()
        assert body["operations"]["kpis"]["status"] == "loading"
        assert body["operations"]["kpis"]["is_fetching"]

    def test_unknown_module(self, client):
        resp = client.get(f"{API}/dashboards/nope")
        assert resp.status_code == 404

    def test_second_get_served_from_cache(self, client, backend):
        client.get(f"{API}/dashboards/presupuesto")
        client.get(f"{API}/dashboards/presupuesto")
        assert backend.count("GET", "/presupuesto/kpis") == 1

    def test_apply_and_clear_filters(self, client):
        client.get(f"{API}/dashboards/presupuesto")
        body = client.post(f"{API}/dashboards/presupuesto/filters",
                           json={"filters": {"ue_id": "5"}}).json()
        assert body["filters"]["committed"] == {"anio": 2026, "ue_id": "5"}
        assert body["page"] == 1
        body = client.delete(f"{API}/dashboards/presupuesto/filters").json()
        assert body["filters"]["committed"] == {}
        body = client.post(f"{API}/dashboards/presupuesto/filters/reset").json()
        assert body["filters"]["committed"] == {"anio": 2026}

    def test_set_page(self, client, backend):
        body = client.post(f"{API}/dashboards/presupuesto/page", json={"page": 2}).json()
        assert body["page"] == 2
        _, _, params = backend.calls[-1]
        assert ("page", "2") in params

    def test_set_page_validation(self, client):
        resp = client.post(f"{API}/dashboards/presupuesto/page", json={"page": 0})
        assert resp.status_code == 422

    def test_operation_error_isolated(self, client, backend):
        backend.routes[("GET", "/presupuesto/grafico-ejecucion")] = ClientRequestError(
            "GET /presupuesto/grafico-ejecucion returned HTTP 400", status_code=400)
        body = client.get(f"{API}/dashboards/presupuesto").json()
        assert body["operations"]["grafico-ejecucion"]["status"] == "error"
        assert body["operations"]["kpis"]["status"] == "success"

    def test_retry_operation(self, client, backend):
        client.get(f"{API}/dashboards/presupuesto")
        body = client.post(f"{API}/dashboards/presupuesto/operations/kpis/retry").json()
        assert body["operations"]["kpis"]["status"] == "success"
        assert backend.count("GET", "/presupuesto/kpis") == 2

    def test_retry_unknown_operation(self, client):
        resp = client.post(f"{API}/dashboards/presupuesto/operations/nope/retry")
        assert resp.status_code == 404


class TestTable:
    def test_sort(self, client):
        client.get(f"{API}/dashboards/presupuesto")
        body = client.post(f"{API}/dashboards/presupuesto/table/sort",
                           json={"column": "ejecucion", "direction": "desc"}).json()
        assert body["sort"] == ["ejecucion", "desc"]
        assert [r["ue"] for r in body["rows"]] == ["UGEL Sur", "UGEL Norte"]

    def test_sort_toggle(self, client):
        client.get(f"{API}/dashboards/presupuesto")
        body = client.post(f"{API}/dashboards/presupuesto/table/sort",
                           json={"column": "pim"}).json()
        assert body["sort"] == ["pim", "asc"]

    def test_sort_unknown_column(self, client):
        resp = client.post(f"{API}/dashboards/presupuesto/table/sort",
                           json={"column": "nope"})
        assert resp.status_code == 400
        assert "nope" in resp.json()["detail"]

    def test_navigation_out_of_range_is_noop(self, client):
        client.get(f"{API}/dashboards/presupuesto")
        body = client.post(f"{API}/dashboards/presupuesto/table/page",
                           json={"action": "go_to", "page_index": 3}).json()
        assert body["page_index"] == 0
        body = client.post(f"{API}/dashboards/presupuesto/table/page",
                           json={"action": "next"}).json()
        assert body["page_index"] == 0

    def test_go_to_requires_index(self, client):
        resp = client.post(f"{API}/dashboards/presupuesto/table/page",
                           json={"action": "go_to"})
        assert resp.status_code == 400


class TestRecords:
    def test_create_contrato(self, client, backend):
        client.get(f"{API}/dashboards/contratos-menores")
        resp = client.post(f"{API}/contratos-menores", json=VALID_CONTRATO)
        assert resp.status_code == 201
        assert resp.json()["codigo"] == "CM-2026-002"
        client.get(f"{API}/dashboards/contratos-menores")
        assert backend.count("GET", "/contratos-menores/tabla") == 2

    def test_create_contrato_above_8_uit(self, client, backend):
        resp = client.post(f"{API}/contratos-menores",
                           json={**VALID_CONTRATO, "monto_estimado": 44001})
        assert resp.status_code == 400
        assert resp.json()["error"] == "ClientRequestError"
        assert backend.count("POST", "/contratos-menores/") == 0

    def test_detalle(self, client):
        resp = client.get(f"{API}/contratos-menores/1")
        assert resp.status_code == 200
        assert resp.json()["codigo"] == "CM-2026-001"

    def test_create_proceso(self, client, backend):
        backend.routes[("POST", "/contratos-menores/1/procesos")] = (
            lambda body: {"id": 5, "orden": 1, **body})
        resp = client.post(f"{API}/contratos-menores/1/procesos", json={
            "hito": "Cotizacion", "area_responsable": "Logistica",
            "fecha_inicio": "2026-03-02"})
        assert resp.status_code == 201
        assert resp.json()["orden"] == 1

    def test_update_proceso_rejects_unknown_fields(self, client, backend):
        resp = client.put(f"{API}/adquisiciones/7/procesos/40", json={"orden": 2})
        assert resp.status_code == 400
        assert backend.count("PUT", "/adquisiciones/7/procesos/40") == 0

    def test_leer_todas(self, client, backend):
        backend.routes[("PUT", "/alertas/1/leer")] = {"id": 1, "leida": True}
        resp = client.put(f"{API}/alertas/leer-todas")
        assert resp.status_code == 200
        assert resp.json() == {"marcadas": 1}
        assert backend.count("PUT", "/alertas/1/leer") == 1

    def test_plantilla_download(self, client, backend):
        backend.routes[("GET", "/importacion/plantilla/formato_1")] = b"xlsx-bytes"
        resp = client.get(f"{API}/importacion/plantilla/formato_1")
        assert resp.status_code == 200
        assert resp.content == b"xlsx-bytes"
        assert "spreadsheetml" in resp.headers["content-type"]
        assert "plantilla_formato_1.xlsx" in resp.headers["content-disposition"]

    def test_detalle_not_found(self, client):
        resp = client.get(f"{API}/contratos-menores/99")
        assert resp.status_code == 404
        assert resp.json()["status_code"] == 404


class TestCache:
    def test_stats_and_invalidate(self, client):
        client.get(f"{API}/dashboards/presupuesto")
        stats = client.get(f"{API}/cache/stats").json()
        assert stats["size"] == 5
        assert stats["stale"] == 0
        resp = client.post(f"{API}/cache/invalidate",
                           json={"namespace": "presupuesto", "operation": "kpis"})
        assert resp.json() == {"invalidated": 1}
        resp = client.post(f"{API}/cache/invalidate", json={"namespace": "presupuesto"})
        assert resp.json() == {"invalidated": 5}
        assert client.get(f"{API}/cache/stats").json()["stale"] == 5
