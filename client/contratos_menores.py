"""
Contratos menores (<= 8 UIT) endpoints.

GET  /contratos-menores/kpis
GET  /contratos-menores/graficos          flat list covering estado AND tipo_objeto
GET  /contratos-menores/tabla             TablaResponse
GET  /contratos-menores/fraccionamiento   requires anio
GET  /contratos-menores/{id}
POST /contratos-menores/                  backend assigns codigo and estado=PENDIENTE
PUT  /contratos-menores/{id}
POST /contratos-menores/{id}/procesos     backend assigns orden
PUT  /contratos-menores/{id}/procesos/{pid}
"""

from __future__ import annotations

from typing import Any, Mapping

from client.base import ApiClient
from client.errors import ClientRequestError
from client.models import KpiContratosMenores, TablaResponse, parse_contract, parse_list
from utils.config import UMBRAL_8_UIT
from utils.query import flatten_params, select_params

NAMESPACE = "contratos-menores"

FILTER_KEYS = ("anio", "ue_id", "meta_id", "estado", "tipo_objeto", "mes")

ESTADOS = ("PENDIENTE", "EN_PROCESO", "ORDEN_EMITIDA", "EJECUTADO", "PAGADO")
TIPOS_OBJETO = ("BIEN", "SERVICIO", "OBRA", "CONSULTORIA")

_CREATE_REQUIRED = ("descripcion", "tipo_objeto", "categoria", "ue_id", "meta_id", "monto_estimado")
_UPDATE_ALLOWED = ("estado", "monto_ejecutado", "proveedor_id", "n_orden", "n_cotizaciones")


def _params(filters: Mapping[str, Any] | None, **kwargs) -> list[tuple[str, str]]:
    return flatten_params(select_params(filters, FILTER_KEYS), **kwargs)


async def get_kpis(client: ApiClient, filters=None) -> KpiContratosMenores:
    path = "/contratos-menores/kpis"
    return parse_contract(KpiContratosMenores, await client.get(path, _params(filters)), source=path)


async def get_graficos(client: ApiClient, filters=None) -> list[dict]:
    path = "/contratos-menores/graficos"
    return parse_list(await client.get(path, _params(filters)), source=path)


def split_graficos(items: list[dict]) -> dict[str, list[dict]]:
    """Separate the flat graficos list into its two series by label value."""
    return {
        "por_estado": [i for i in items if i.get("label") in ESTADOS],
        "por_tipo_objeto": [i for i in items if i.get("label") in TIPOS_OBJETO],
    }


async def get_tabla(client: ApiClient, filters=None, page: int = 1, page_size: int = 20) -> TablaResponse:
    path = "/contratos-menores/tabla"
    payload = await client.get(path, _params(filters, page=page, page_size=page_size))
    return parse_contract(TablaResponse, payload, source=path)


async def get_fraccionamiento(client: ApiClient, filters=None) -> list[dict]:
    """Possible contract splitting alerts; the backend requires ``anio``."""
    anio = (filters or {}).get("anio")
    if anio in (None, "", []):
        raise ClientRequestError("fraccionamiento requires the 'anio' filter")
    path = "/contratos-menores/fraccionamiento"
    return parse_list(await client.get(path, flatten_params({"anio": anio})), source=path)


async def get_detalle(client: ApiClient, contrato_id: int) -> dict:
    """Flat contract detail; ``procesos`` holds the 9-step timeline."""
    return await client.get(f"/contratos-menores/{int(contrato_id)}")


async def create_contrato(client: ApiClient, data: Mapping[str, Any]) -> dict:
    missing = [k for k in _CREATE_REQUIRED if data.get(k) in (None, "")]
    if missing:
        raise ClientRequestError(f"Missing required fields: {', '.join(missing)}")
    if float(data["monto_estimado"]) > UMBRAL_8_UIT:
        raise ClientRequestError(
            f"monto_estimado exceeds the 8 UIT ceiling (S/ {UMBRAL_8_UIT:,})"
        )
    payload = {k: data[k] for k in _CREATE_REQUIRED}
    return await client.post("/contratos-menores/", payload)


async def update_contrato(client: ApiClient, contrato_id: int, data: Mapping[str, Any]) -> dict:
    unknown = sorted(set(data) - set(_UPDATE_ALLOWED))
    if unknown:
        raise ClientRequestError(f"Fields not accepted on update: {', '.join(unknown)}")
    return await client.put(f"/contratos-menores/{int(contrato_id)}", dict(data))


# ── Procesos (9-step stepper) ─────────────────────────────────────────────────

_PROCESO_REQUIRED = ("hito", "area_responsable", "fecha_inicio")
_PROCESO_FIELDS = _PROCESO_REQUIRED + ("dias_planificados",)
_PROCESO_UPDATE_ALLOWED = ("fecha_fin", "estado")


async def create_proceso(client: ApiClient, contrato_id: int, data: Mapping[str, Any]) -> dict:
    """Add a step to a contrato menor; the backend assigns ``orden``."""
    missing = [k for k in _PROCESO_REQUIRED if data.get(k) in (None, "")]
    if missing:
        raise ClientRequestError(f"Missing required fields: {', '.join(missing)}")
    payload = {k: data[k] for k in _PROCESO_FIELDS if k in data}
    return await client.post(f"/contratos-menores/{int(contrato_id)}/procesos", payload)


async def update_proceso(client: ApiClient, contrato_id: int, proceso_id: int,
                         data: Mapping[str, Any]) -> dict:
    unknown = sorted(set(data) - set(_PROCESO_UPDATE_ALLOWED))
    if unknown:
        raise ClientRequestError(f"Fields not accepted on update: {', '.join(unknown)}")
    return await client.put(
        f"/contratos-menores/{int(contrato_id)}/procesos/{int(proceso_id)}", dict(data))
