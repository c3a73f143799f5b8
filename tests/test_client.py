"""
Tests for client/ — ApiClient error classification and endpoint modules.

The HTTP layer is exercised against a mocked requests session; endpoint
modules run against the FakeApiClient from conftest.
"""
import asyncio
from unittest.mock import MagicMock

import pytest
import requests

from client import adquisiciones, contratos_menores, importacion, presupuesto
from client import alertas as alertas_api
from client.base import ApiClient
from client.errors import (
    ClientRequestError,
    ContractViolationError,
    TransientFetchError,
    is_retryable,
)
from client.models import KpiPresupuesto, TablaResponse, parse_contract, parse_list
from utils.http import SessionManager

from conftest import FakeApiClient


def _response(status=200, json_body=None, content=b"{}", text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.content = content
    resp.text = text
    if isinstance(json_body, Exception):
        resp.json.side_effect = json_body
    else:
        resp.json.return_value = json_body
    return resp


def _client(response=None, side_effect=None, **kwargs):
    sm = SessionManager()
    sm._session = MagicMock()
    if side_effect is not None:
        sm._session.request.side_effect = side_effect
    else:
        sm._session.request.return_value = response
    return ApiClient("http://api.test/api/", session_manager=sm, **kwargs), sm._session


# ── ApiClient ─────────────────────────────────────────────────────────────────

class TestApiClient:
    def test_url_join(self):
        client, _ = _client(_response(json_body={}))
        assert client._url("/presupuesto/kpis") == "http://api.test/api/presupuesto/kpis"

    def test_bearer_header(self):
        client, _ = _client(_response(json_body={}), token="secret")
        assert client._sessions.headers["Authorization"] == "Bearer secret"

    def test_get_passes_params_and_timeout(self):
        client, session = _client(_response(json_body={"ok": True}), timeout=5)
        result = client.request_sync("GET", "/alertas/", params=[("nivel", "critica")])
        assert result == {"ok": True}
        _, kwargs = session.request.call_args
        assert kwargs["params"] == [("nivel", "critica")]
        assert kwargs["timeout"] == 5

    def test_connection_error_is_transient(self):
        client, _ = _client(side_effect=requests.ConnectionError("refused"))
        with pytest.raises(TransientFetchError) as exc_info:
            client.request_sync("GET", "/presupuesto/kpis")
        assert is_retryable(exc_info.value)

    def test_timeout_is_transient(self):
        client, _ = _client(side_effect=requests.Timeout("slow"))
        with pytest.raises(TransientFetchError):
            client.request_sync("GET", "/presupuesto/kpis")

    def test_503_is_transient(self):
        client, _ = _client(_response(status=503, json_body={"detail": "down"}))
        with pytest.raises(TransientFetchError) as exc_info:
            client.request_sync("GET", "/presupuesto/kpis")
        assert exc_info.value.status_code == 503
        assert exc_info.value.detail == "down"

    def test_429_is_transient(self):
        client, _ = _client(_response(status=429, json_body={}))
        with pytest.raises(TransientFetchError):
            client.request_sync("GET", "/presupuesto/kpis")

    def test_404_is_client_error(self):
        client, _ = _client(_response(status=404, json_body={"detail": "No encontrado"}))
        with pytest.raises(ClientRequestError) as exc_info:
            client.request_sync("GET", "/contratos-menores/99")
        assert not exc_info.value.retryable
        assert exc_info.value.detail == "No encontrado"

    def test_non_json_body_is_contract_violation(self):
        client, _ = _client(_response(json_body=ValueError("no json"), content=b"<html>"))
        with pytest.raises(ContractViolationError):
            client.request_sync("GET", "/presupuesto/kpis")

    def test_empty_body_returns_none(self):
        client, _ = _client(_response(status=204, content=b""))
        assert client.request_sync("PUT", "/alertas/1/leer") is None

    def test_raw_returns_bytes(self):
        client, _ = _client(_response(content=b"PK\x03\x04"))
        assert client.request_sync("GET", "/importacion/plantilla/f1", raw=True) == b"PK\x03\x04"

    def test_async_get_runs_in_thread(self):
        client, _ = _client(_response(json_body=[1, 2]))
        assert asyncio.run(client.get("/x")) == [1, 2]

    def test_upload_missing_file(self, tmp_path):
        client, session = _client(_response(json_body={}))
        with pytest.raises(ClientRequestError):
            asyncio.run(client.upload("/importacion/siaf", tmp_path / "nope.xlsx"))
        session.request.assert_not_called()

    def test_upload_sends_multipart(self, tmp_path):
        path = tmp_path / "siaf.xlsx"
        path.write_bytes(b"data")
        client, session = _client(_response(json_body={"ok": 1}))
        assert asyncio.run(client.upload("/importacion/siaf", path)) == {"ok": 1}
        _, kwargs = session.request.call_args
        assert kwargs["files"]["file"][0] == "siaf.xlsx"

    def test_close(self):
        client, session = _client(_response(json_body={}))
        client.close()
        session.close.assert_called_once()


# ── Contracts ─────────────────────────────────────────────────────────────────

class TestContracts:
    def test_tabla_valid(self):
        tabla = parse_contract(TablaResponse, {"rows": [], "total": 0, "page": 1, "page_size": 20})
        assert tabla.page_count == 1

    def test_tabla_page_count(self):
        tabla = TablaResponse(rows=[], total=41, page=1, page_size=20)
        assert tabla.page_count == 3

    @pytest.mark.parametrize("payload", [
        {"items": [], "total": 0, "page": 1, "page_size": 20},
        {"rows": [], "total": 0, "page": 1, "pageSize": 20},
        {"rows": [], "total": 0, "page": 1, "page_size": 20, "totalPages": 1},
        {"rows": [], "total": 0, "page": 0, "page_size": 20},
    ])
    def test_tabla_alternate_shapes_rejected(self, payload):
        with pytest.raises(ContractViolationError):
            parse_contract(TablaResponse, payload, source="/x/tabla")

    def test_kpi_missing_field(self):
        with pytest.raises(ContractViolationError):
            parse_contract(KpiPresupuesto, {"total_ues": 1})

    def test_kpi_extra_fields_allowed(self):
        kpi = parse_contract(KpiPresupuesto, {
            "total_ues": 1, "total_metas": 2, "pim_total": 1.0,
            "certificado_total": 1.0, "devengado_total": 1.0,
            "ejecucion_porcentaje": 100.0, "nuevo_campo": "x",
        })
        assert kpi.total_ues == 1

    def test_parse_list_rejects_object(self):
        with pytest.raises(ContractViolationError):
            parse_list({"rows": []})


# ── Endpoint modules ──────────────────────────────────────────────────────────

class TestEndpoints:
    def test_presupuesto_tabla_params(self, fake_client):
        tabla = asyncio.run(presupuesto.get_tabla(
            fake_client, {"anio": 2026, "ue_id": ["1", "2"], "otro": "x"}, page=2, page_size=20))
        assert isinstance(tabla, TablaResponse)
        _, path, params = fake_client.calls[-1]
        assert path == "/presupuesto/tabla"
        assert params == [("anio", "2026"), ("ue_id", "1"), ("ue_id", "2"),
                          ("page", "2"), ("page_size", "20")]

    def test_tabla_contract_violation(self):
        client = FakeApiClient({("GET", "/presupuesto/tabla"): {"items": [], "total": 0}})
        with pytest.raises(ContractViolationError):
            asyncio.run(presupuesto.get_tabla(client, {}))

    def test_contrato_above_8_uit_rejected_locally(self, fake_client):
        data = {"descripcion": "Laptops", "tipo_objeto": "BIEN", "categoria": "TIC",
                "ue_id": 1, "meta_id": 2, "monto_estimado": 44000.01}
        with pytest.raises(ClientRequestError) as exc_info:
            asyncio.run(contratos_menores.create_contrato(fake_client, data))
        assert not exc_info.value.retryable
        assert fake_client.calls == []

    def test_contrato_at_8_uit_accepted(self):
        client = FakeApiClient({("POST", "/contratos-menores/"): lambda body: {"id": 9, **body}})
        data = {"descripcion": "Laptops", "tipo_objeto": "BIEN", "categoria": "TIC",
                "ue_id": 1, "meta_id": 2, "monto_estimado": 44000}
        created = asyncio.run(contratos_menores.create_contrato(client, data))
        assert created["id"] == 9

    def test_contrato_missing_fields(self, fake_client):
        with pytest.raises(ClientRequestError, match="descripcion"):
            asyncio.run(contratos_menores.create_contrato(fake_client, {"monto_estimado": 10}))

    def test_update_rejects_unknown_fields(self, fake_client):
        with pytest.raises(ClientRequestError, match="codigo"):
            asyncio.run(contratos_menores.update_contrato(fake_client, 1, {"codigo": "X"}))

    def test_fraccionamiento_requires_anio(self, fake_client):
        with pytest.raises(ClientRequestError):
            asyncio.run(contratos_menores.get_fraccionamiento(fake_client, {}))

    def test_split_graficos(self):
        series = contratos_menores.split_graficos([
            {"label": "PENDIENTE", "value": 2},
            {"label": "SERVICIO", "value": 1},
            {"label": "DESCONOCIDO", "value": 5},
        ])
        assert [i["label"] for i in series["por_estado"]] == ["PENDIENTE"]
        assert [i["label"] for i in series["por_tipo_objeto"]] == ["SERVICIO"]

    def test_alertas_mutations_use_put(self):
        client = FakeApiClient({("PUT", "/alertas/4/leer"): {"id": 4, "leida": True}})
        assert asyncio.run(alertas_api.marcar_leida(client, 4))["leida"] is True

    def test_upload_unknown_kind(self, fake_client, tmp_path):
        with pytest.raises(ClientRequestError, match="Unknown upload kind"):
            asyncio.run(importacion.upload(fake_client, "pdf", tmp_path / "a.xlsx"))

    def test_upload_rejects_non_excel(self, fake_client, tmp_path):
        with pytest.raises(ClientRequestError):
            asyncio.run(importacion.upload(fake_client, "siaf", tmp_path / "a.csv"))

    def test_upload_failure_is_not_masked(self, tmp_path):
        client = FakeApiClient({
            ("POST", "/importacion/siaf"): ClientRequestError("bad file", status_code=422),
        })
        with pytest.raises(ClientRequestError) as exc_info:
            asyncio.run(importacion.upload(client, "siaf", tmp_path / "siaf.xlsx"))
        assert exc_info.value.status_code == 422

    def test_get_plantilla(self):
        client = FakeApiClient({("GET", "/importacion/plantilla/formato_1"): b"xlsx-bytes"})
        assert asyncio.run(importacion.get_plantilla(client, "formato_1")) == b"xlsx-bytes"

    def test_marcar_todas_leidas_puts_each_id(self):
        client = FakeApiClient({
            ("PUT", "/alertas/1/leer"): {"id": 1, "leida": True},
            ("PUT", "/alertas/3/leer"): {"id": 3, "leida": True},
        })
        marcadas = asyncio.run(alertas_api.marcar_todas_leidas(client, [1, 3]))
        assert [a["id"] for a in marcadas] == [1, 3]
        assert client.count("PUT", "/alertas/1/leer") == 1
        assert client.count("PUT", "/alertas/3/leer") == 1


class TestProcesos:
    def test_adquisicion_proceso_requires_orden_and_hito(self, fake_client):
        with pytest.raises(ClientRequestError, match="orden"):
            asyncio.run(adquisiciones.create_proceso(fake_client, 7, {"hito": "Convocatoria"}))
        assert fake_client.calls == []

    def test_adquisicion_proceso_posts(self):
        client = FakeApiClient({
            ("POST", "/adquisiciones/7/procesos"): lambda body: {"id": 40, **body},
        })
        created = asyncio.run(adquisiciones.create_proceso(
            client, 7, {"orden": 1, "hito": "Convocatoria"}))
        assert created == {"id": 40, "orden": 1, "hito": "Convocatoria"}

    def test_adquisicion_proceso_update_rejects_orden(self, fake_client):
        with pytest.raises(ClientRequestError, match="orden"):
            asyncio.run(adquisiciones.update_proceso(fake_client, 7, 40, {"orden": 2}))

    def test_contrato_proceso_payload_drops_orden(self):
        client = FakeApiClient({
            ("POST", "/contratos-menores/1/procesos"): lambda body: {"id": 5, **body},
        })
        data = {"hito": "Cotizacion", "area_responsable": "Logistica",
                "fecha_inicio": "2026-03-02", "orden": 9}
        created = asyncio.run(contratos_menores.create_proceso(client, 1, data))
        assert "orden" not in created
        assert created["hito"] == "Cotizacion"

    def test_contrato_proceso_missing_fields(self, fake_client):
        with pytest.raises(ClientRequestError, match="area_responsable"):
            asyncio.run(contratos_menores.create_proceso(
                fake_client, 1, {"hito": "Cotizacion", "fecha_inicio": "2026-03-02"}))

    def test_contrato_proceso_update(self):
        client = FakeApiClient({
            ("PUT", "/contratos-menores/1/procesos/5"): lambda body: {"id": 5, **body},
        })
        updated = asyncio.run(contratos_menores.update_proceso(
            client, 1, 5, {"estado": "COMPLETADO"}))
        assert updated["estado"] == "COMPLETADO"
