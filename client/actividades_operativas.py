"""Actividades operativas (CEPLAN operational activities) endpoints."""

from __future__ import annotations

from client.base import ApiClient
from client.models import KpiActividadesOperativas, TablaResponse, parse_contract, parse_list
from utils.query import flatten_params, select_params

NAMESPACE = "actividades-operativas"

FILTER_KEYS = ("anio", "ue_id", "meta_id", "semaforo", "mes")


def _params(filters, **kwargs):
    return flatten_params(select_params(filters, FILTER_KEYS), **kwargs)


async def get_kpis(client: ApiClient, filters=None) -> KpiActividadesOperativas:
    path = "/actividades-operativas/kpis"
    return parse_contract(KpiActividadesOperativas, await client.get(path, _params(filters)), source=path)


async def get_programado_vs_ejecutado(client: ApiClient, filters=None) -> list[dict]:
    path = "/actividades-operativas/programado-vs-ejecutado"
    return parse_list(await client.get(path, _params(filters)), source=path)


async def get_tabla(client: ApiClient, filters=None, page: int = 1, page_size: int = 20) -> TablaResponse:
    path = "/actividades-operativas/tabla"
    payload = await client.get(path, _params(filters, page=page, page_size=page_size))
    return parse_contract(TablaResponse, payload, source=path)


async def get_drill_down(client: ApiClient, ao_id: int) -> dict:
    return await client.get(f"/actividades-operativas/{int(ao_id)}/drill-down")
