"""
Presupuesto (budget execution) endpoints.

GET /presupuesto/kpis                       → KpiPresupuesto
GET /presupuesto/grafico-pim-certificado    → [{nombre, pim, certificado, devengado, ejecucion_porcentaje}]
GET /presupuesto/grafico-ejecucion          → same shape, ranked by ejecucion_porcentaje
GET /presupuesto/grafico-devengado-mensual  → 12 × {mes, programado, ejecutado}
GET /presupuesto/tabla                      → TablaResponse
"""

from __future__ import annotations

from typing import Any, Mapping

from client.base import ApiClient
from client.models import KpiPresupuesto, TablaResponse, parse_contract, parse_list
from utils.query import flatten_params, select_params

NAMESPACE = "presupuesto"

FILTER_KEYS = ("anio", "ue_id", "meta_id", "fuente", "ddnntt", "clasificador", "mes")


def _params(filters: Mapping[str, Any] | None, **kwargs) -> list[tuple[str, str]]:
    return flatten_params(select_params(filters, FILTER_KEYS), **kwargs)


async def get_kpis(client: ApiClient, filters: Mapping[str, Any] | None = None) -> KpiPresupuesto:
    path = "/presupuesto/kpis"
    return parse_contract(KpiPresupuesto, await client.get(path, _params(filters)), source=path)


async def get_grafico_pim_certificado(client: ApiClient, filters=None) -> list[dict]:
    path = "/presupuesto/grafico-pim-certificado"
    return parse_list(await client.get(path, _params(filters)), source=path)


async def get_grafico_ejecucion(client: ApiClient, filters=None) -> list[dict]:
    path = "/presupuesto/grafico-ejecucion"
    return parse_list(await client.get(path, _params(filters)), source=path)


async def get_grafico_devengado_mensual(client: ApiClient, filters=None) -> list[dict]:
    """Twelve monthly points (Ene–Dic); months without data come back as zeros."""
    path = "/presupuesto/grafico-devengado-mensual"
    return parse_list(await client.get(path, _params(filters)), source=path)


async def get_tabla(client: ApiClient, filters=None, page: int = 1, page_size: int = 20) -> TablaResponse:
    path = "/presupuesto/tabla"
    payload = await client.get(path, _params(filters, page=page, page_size=page_size))
    return parse_contract(TablaResponse, payload, source=path)
