"""
Record-level endpoints: detail lookups and mutations.

Mutations go through the module controller, so a successful create or
update invalidates the module's cached queries and refreshes its view.
Client-side validation failures (e.g. a contrato menor above 8 UIT) come
back as 400 without touching the remote API.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import Response

from api.runtime import DashboardRuntime, get_runtime
from dashboard.modules import (
    ActividadesOperativasController,
    AdquisicionesController,
    AlertasController,
    ContratosMenoresController,
    ImportacionController,
)

router = APIRouter(tags=["records"])


def _adquisiciones(runtime: DashboardRuntime = Depends(get_runtime)) -> AdquisicionesController:
    return runtime.controller("adquisiciones")


def _contratos(runtime: DashboardRuntime = Depends(get_runtime)) -> ContratosMenoresController:
    return runtime.controller("contratos-menores")


def _actividades(runtime: DashboardRuntime = Depends(get_runtime)) -> ActividadesOperativasController:
    return runtime.controller("actividades-operativas")


def _alertas(runtime: DashboardRuntime = Depends(get_runtime)) -> AlertasController:
    return runtime.controller("alertas")


def _importacion(runtime: DashboardRuntime = Depends(get_runtime)) -> ImportacionController:
    return runtime.controller("importacion")


# ── Adquisiciones ─────────────────────────────────────────────────────────────

@router.get("/adquisiciones/{adquisicion_id}", summary="Adquisicion detail")
async def adquisicion_detalle(adquisicion_id: int,
                              ctrl: AdquisicionesController = Depends(_adquisiciones)) -> dict:
    return await ctrl.detalle(adquisicion_id)


@router.post("/adquisiciones", status_code=201, summary="Create adquisicion")
async def adquisicion_create(data: dict[str, Any] = Body(...),
                             ctrl: AdquisicionesController = Depends(_adquisiciones)) -> dict:
    return await ctrl.create(data)


@router.put("/adquisiciones/{adquisicion_id}", summary="Update adquisicion")
async def adquisicion_update(adquisicion_id: int, data: dict[str, Any] = Body(...),
                             ctrl: AdquisicionesController = Depends(_adquisiciones)) -> dict:
    return await ctrl.update(adquisicion_id, data)


@router.post("/adquisiciones/{adquisicion_id}/procesos", status_code=201,
             summary="Add a timeline step")
async def adquisicion_proceso_create(adquisicion_id: int, data: dict[str, Any] = Body(...),
                                     ctrl: AdquisicionesController = Depends(_adquisiciones)) -> dict:
    return await ctrl.create_proceso(adquisicion_id, data)


@router.put("/adquisiciones/{adquisicion_id}/procesos/{proceso_id}",
            summary="Update a timeline step")
async def adquisicion_proceso_update(adquisicion_id: int, proceso_id: int,
                                     data: dict[str, Any] = Body(...),
                                     ctrl: AdquisicionesController = Depends(_adquisiciones)) -> dict:
    return await ctrl.update_proceso(adquisicion_id, proceso_id, data)


# ── Contratos menores ─────────────────────────────────────────────────────────

@router.get("/contratos-menores/{contrato_id}", summary="Contrato menor detail")
async def contrato_detalle(contrato_id: int,
                           ctrl: ContratosMenoresController = Depends(_contratos)) -> dict:
    return await ctrl.detalle(contrato_id)


@router.post("/contratos-menores", status_code=201, summary="Create contrato menor")
async def contrato_create(data: dict[str, Any] = Body(...),
                          ctrl: ContratosMenoresController = Depends(_contratos)) -> dict:
    return await ctrl.create(data)


@router.put("/contratos-menores/{contrato_id}", summary="Update contrato menor")
async def contrato_update(contrato_id: int, data: dict[str, Any] = Body(...),
                          ctrl: ContratosMenoresController = Depends(_contratos)) -> dict:
    return await ctrl.update(contrato_id, data)


@router.post("/contratos-menores/{contrato_id}/procesos", status_code=201,
             summary="Add a process step")
async def contrato_proceso_create(contrato_id: int, data: dict[str, Any] = Body(...),
                                  ctrl: ContratosMenoresController = Depends(_contratos)) -> dict:
    return await ctrl.create_proceso(contrato_id, data)


@router.put("/contratos-menores/{contrato_id}/procesos/{proceso_id}",
            summary="Update a process step")
async def contrato_proceso_update(contrato_id: int, proceso_id: int,
                                  data: dict[str, Any] = Body(...),
                                  ctrl: ContratosMenoresController = Depends(_contratos)) -> dict:
    return await ctrl.update_proceso(contrato_id, proceso_id, data)


# ── Actividades operativas ────────────────────────────────────────────────────

@router.get("/actividades-operativas/{ao_id}/drill-down", summary="AO drill-down")
async def actividad_drill_down(ao_id: int,
                               ctrl: ActividadesOperativasController = Depends(_actividades)) -> dict:
    return await ctrl.drill_down(ao_id)


# ── Alertas ───────────────────────────────────────────────────────────────────

@router.put("/alertas/{alerta_id}/leer", summary="Mark alert as read")
async def alerta_leer(alerta_id: int, ctrl: AlertasController = Depends(_alertas)) -> dict:
    return await ctrl.marcar_leida(alerta_id)


@router.put("/alertas/{alerta_id}/resolver", summary="Mark alert as resolved")
async def alerta_resolver(alerta_id: int, ctrl: AlertasController = Depends(_alertas)) -> dict:
    return await ctrl.marcar_resuelta(alerta_id)


@router.put("/alertas/leer-todas", summary="Mark every listed alert as read")
async def alertas_leer_todas(ctrl: AlertasController = Depends(_alertas)) -> dict:
    ctrl.refresh()
    await ctrl.settled()
    marcadas = await ctrl.marcar_todas_leidas()
    return {"marcadas": len(marcadas)}


# ── Importacion ───────────────────────────────────────────────────────────────

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/importacion/plantilla/{formato}", summary="Download an import template")
async def importacion_plantilla(formato: str,
                                ctrl: ImportacionController = Depends(_importacion)) -> Response:
    content = await ctrl.plantilla(formato)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="plantilla_{formato}.xlsx"'},
    )
