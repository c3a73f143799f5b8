"""
Adquisiciones (> 8 UIT procurement) endpoints.

Only the keys the backend's ``_filter_params`` understands are forwarded:
anio, ue_id, meta_id, estado, tipo_procedimiento, fase.  Updates use PUT.
"""

from __future__ import annotations

from typing import Any, Mapping

from client.base import ApiClient
from client.errors import ClientRequestError
from client.models import KpiAdquisiciones, TablaResponse, parse_contract, parse_list
from utils.query import flatten_params, select_params

NAMESPACE = "adquisiciones"

FILTER_KEYS = ("anio", "ue_id", "meta_id", "estado", "tipo_procedimiento", "fase")

_CREATE_REQUIRED = ("descripcion", "tipo_objeto", "tipo_procedimiento", "ue_id", "meta_id")


def _params(filters: Mapping[str, Any] | None, **kwargs) -> list[tuple[str, str]]:
    return flatten_params(select_params(filters, FILTER_KEYS), **kwargs)


async def get_kpis(client: ApiClient, filters=None) -> KpiAdquisiciones:
    path = "/adquisiciones/kpis"
    return parse_contract(KpiAdquisiciones, await client.get(path, _params(filters)), source=path)


async def get_graficos(client: ApiClient, filters=None) -> list[dict]:
    path = "/adquisiciones/graficos"
    return parse_list(await client.get(path, _params(filters)), source=path)


async def get_tabla(client: ApiClient, filters=None, page: int = 1, page_size: int = 20) -> TablaResponse:
    path = "/adquisiciones/tabla"
    payload = await client.get(path, _params(filters, page=page, page_size=page_size))
    return parse_contract(TablaResponse, payload, source=path)


async def get_detalle(client: ApiClient, adquisicion_id: int) -> dict:
    """Full detail including the 22-step process timeline."""
    return await client.get(f"/adquisiciones/{int(adquisicion_id)}")


async def create_adquisicion(client: ApiClient, data: Mapping[str, Any]) -> dict:
    missing = [k for k in _CREATE_REQUIRED if data.get(k) in (None, "")]
    if missing:
        raise ClientRequestError(f"Missing required fields: {', '.join(missing)}")
    return await client.post("/adquisiciones/", dict(data))


async def update_adquisicion(client: ApiClient, adquisicion_id: int, data: Mapping[str, Any]) -> dict:
    return await client.put(f"/adquisiciones/{int(adquisicion_id)}", dict(data))


# ── Procesos (22-step timeline) ───────────────────────────────────────────────

_PROCESO_REQUIRED = ("orden", "hito")
_PROCESO_UPDATE_ALLOWED = ("fecha_fin", "fecha_real_inicio", "fecha_real_fin", "estado", "observacion")


async def create_proceso(client: ApiClient, adquisicion_id: int, data: Mapping[str, Any]) -> dict:
    """Add a milestone to an adquisicion's timeline."""
    missing = [k for k in _PROCESO_REQUIRED if data.get(k) in (None, "")]
    if missing:
        raise ClientRequestError(f"Missing required fields: {', '.join(missing)}")
    return await client.post(f"/adquisiciones/{int(adquisicion_id)}/procesos", dict(data))


async def update_proceso(client: ApiClient, adquisicion_id: int, proceso_id: int,
                         data: Mapping[str, Any]) -> dict:
    unknown = sorted(set(data) - set(_PROCESO_UPDATE_ALLOWED))
    if unknown:
        raise ClientRequestError(f"Fields not accepted on update: {', '.join(unknown)}")
    return await client.put(
        f"/adquisiciones/{int(adquisicion_id)}/procesos/{int(proceso_id)}", dict(data))
