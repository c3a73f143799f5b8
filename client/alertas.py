"""Alertas endpoints: list, summary and read/resolve mutations."""

from __future__ import annotations

import asyncio
from typing import Iterable

from client.base import ApiClient
from client.models import AlertaResumen, parse_contract, parse_list
from utils.query import flatten_params, select_params

NAMESPACE = "alertas"

FILTER_KEYS = ("nivel", "estado", "modulo", "ue_id", "anio")

NIVELES = ("critica", "advertencia", "informativa")
ESTADOS = ("no_leida", "leida", "resuelta")


async def get_alertas(client: ApiClient, filters=None) -> list[dict]:
    path = "/alertas/"
    payload = await client.get(path, flatten_params(select_params(filters, FILTER_KEYS)))
    return parse_list(payload, source=path)


async def get_resumen(client: ApiClient, filters=None) -> AlertaResumen:
    path = "/alertas/resumen"
    return parse_contract(AlertaResumen, await client.get(path), source=path)


async def marcar_leida(client: ApiClient, alerta_id: int) -> dict:
    return await client.put(f"/alertas/{int(alerta_id)}/leer")


async def marcar_resuelta(client: ApiClient, alerta_id: int) -> dict:
    return await client.put(f"/alertas/{int(alerta_id)}/resolver")


async def marcar_todas_leidas(client: ApiClient, alerta_ids: Iterable[int]) -> list[dict]:
    """Mark every alert in *alerta_ids* as read, concurrently."""
    return list(await asyncio.gather(*(marcar_leida(client, i) for i in alerta_ids)))
