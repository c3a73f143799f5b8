"""
Per-module dashboard controllers.

Each builder wires one module's endpoint fetchers (client/<module>.py) into a
DashboardController with its table columns and fetch policies.  KPI cards
use the configured default policy (three-minute stale time, one retry);
charts and tables allow two retries.

    build_controllers(client, orchestrator, config) -> {namespace: controller}
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from client import actividades_operativas as ao_api
from client import adquisiciones as adq_api
from client import alertas as alertas_api
from client import contratos_menores as cm_api
from client import importacion as imp_api
from client import presupuesto as pres_api
from client.base import ApiClient
from client.errors import DashboardError
from client.models import ImportResult
from dashboard.controller import DashboardController, Operation
from dashboard.orchestrator import FetchPolicy, Invalidate, QueryOrchestrator
from dashboard.table import Column
from utils.config import ANIO_ACTUAL, AppConfig
from utils.formatting import (
    format_fecha_hora,
    format_monto,
    format_monto_completo,
    format_number,
    format_percent,
    truncate_text,
)

logger = logging.getLogger(__name__)

DATA_NAMESPACES = (
    pres_api.NAMESPACE,
    adq_api.NAMESPACE,
    cm_api.NAMESPACE,
    ao_api.NAMESPACE,
    alertas_api.NAMESPACE,
)


def _policies(config: AppConfig) -> tuple[FetchPolicy, FetchPolicy]:
    kpi = FetchPolicy(max_retries=config.max_retries, stale_time_ms=config.stale_time_ms)
    data = FetchPolicy(max_retries=2, stale_time_ms=config.stale_time_ms)
    return kpi, data


def _label(value: Any) -> str:
    """LICITACION_PUBLICA -> Licitacion Publica."""
    if value in (None, ""):
        return "—"
    return str(value).replace("_", " ").title()


# ── Presupuesto ───────────────────────────────────────────────────────────────

PRESUPUESTO_COLUMNS = [
    Column("ue", "UE"),
    Column("meta", "Meta"),
    Column("clasificador", "Clasificador"),
    Column("descripcion", "Descripcion", formatter=truncate_text),
    Column("pim", "PIM", formatter=format_monto_completo),
    Column("certificado", "Certificado", formatter=format_monto_completo),
    Column("devengado", "Devengado", formatter=format_monto_completo),
    Column("saldo", "Saldo", formatter=format_monto_completo),
    Column("ejecucion", "% Ejec.", formatter=format_percent),
]


def build_presupuesto(client: ApiClient, orchestrator: QueryOrchestrator,
                      config: AppConfig) -> DashboardController:
    kpi, data = _policies(config)
    operations = [
        Operation("kpis", pres_api.get_kpis, policy=kpi),
        Operation("grafico-pim-certificado", pres_api.get_grafico_pim_certificado, policy=data),
        Operation("grafico-ejecucion", pres_api.get_grafico_ejecucion, policy=data),
        Operation("grafico-devengado-mensual", pres_api.get_grafico_devengado_mensual, policy=data),
        Operation("tabla", pres_api.get_tabla, paginated=True, policy=data),
    ]
    return DashboardController(
        pres_api.NAMESPACE, operations, client, orchestrator,
        columns=PRESUPUESTO_COLUMNS,
        initial_filters={"anio": ANIO_ACTUAL},
        page_size=config.table_page_size,
        view_page_size=config.view_page_size,
    )


# ── Adquisiciones ─────────────────────────────────────────────────────────────

ADQUISICIONES_COLUMNS = [
    Column("codigo", "Codigo"),
    Column("descripcion", "Descripcion", formatter=truncate_text),
    Column("ue_sigla", "UE"),
    Column("tipo_objeto", "Tipo Objeto"),
    Column("tipo_procedimiento", "Procedimiento", formatter=_label),
    Column("estado", "Estado", formatter=_label),
    Column("fase_actual", "Fase", formatter=_label),
    Column("monto_referencial", "Monto Ref.", formatter=format_monto),
]


class AdquisicionesController(DashboardController):

    async def create(self, data: Mapping[str, Any]) -> dict:
        return await self.mutate(adq_api.create_adquisicion, data)

    async def update(self, adquisicion_id: int, data: Mapping[str, Any]) -> dict:
        return await self.mutate(adq_api.update_adquisicion, adquisicion_id, data)

    async def create_proceso(self, adquisicion_id: int, data: Mapping[str, Any]) -> dict:
        return await self.mutate(adq_api.create_proceso, adquisicion_id, data)

    async def update_proceso(self, adquisicion_id: int, proceso_id: int,
                             data: Mapping[str, Any]) -> dict:
        return await self.mutate(adq_api.update_proceso, adquisicion_id, proceso_id, data)

    async def detalle(self, adquisicion_id: int) -> dict:
        async def _fetch() -> dict:
            return await adq_api.get_detalle(self.client, adquisicion_id)
        return await self.lookup("detalle", _fetch, id=adquisicion_id)


def build_adquisiciones(client: ApiClient, orchestrator: QueryOrchestrator,
                        config: AppConfig) -> AdquisicionesController:
    kpi, data = _policies(config)
    operations = [
        Operation("kpis", adq_api.get_kpis, policy=kpi),
        Operation("graficos", adq_api.get_graficos, policy=data),
        Operation("tabla", adq_api.get_tabla, paginated=True, policy=data),
    ]
    return AdquisicionesController(
        adq_api.NAMESPACE, operations, client, orchestrator,
        columns=ADQUISICIONES_COLUMNS,
        initial_filters={"anio": ANIO_ACTUAL},
        page_size=config.table_page_size,
        view_page_size=config.view_page_size,
    )


# ── Contratos menores ─────────────────────────────────────────────────────────

CONTRATOS_MENORES_COLUMNS = [
    Column("codigo", "Codigo"),
    Column("descripcion", "Descripcion", formatter=truncate_text),
    Column("ue_sigla", "DDNNTT"),
    Column("tipo_objeto", "Tipo"),
    Column("estado", "Estado", formatter=_label),
    Column("monto_estimado", "Monto Estim. (S/)", formatter=format_monto_completo),
    Column("proveedor_razon_social", "Proveedor", formatter=truncate_text),
    Column("n_orden", "N. Orden"),
    Column("n_cotizaciones", "Cotizaciones", formatter=format_number),
]


async def _graficos_por_serie(client: ApiClient, filters: Mapping[str, Any]) -> dict:
    return cm_api.split_graficos(await cm_api.get_graficos(client, filters))


class ContratosMenoresController(DashboardController):

    async def create(self, data: Mapping[str, Any]) -> dict:
        return await self.mutate(cm_api.create_contrato, data)

    async def update(self, contrato_id: int, data: Mapping[str, Any]) -> dict:
        return await self.mutate(cm_api.update_contrato, contrato_id, data)

    async def create_proceso(self, contrato_id: int, data: Mapping[str, Any]) -> dict:
        return await self.mutate(cm_api.create_proceso, contrato_id, data)

    async def update_proceso(self, contrato_id: int, proceso_id: int,
                             data: Mapping[str, Any]) -> dict:
        return await self.mutate(cm_api.update_proceso, contrato_id, proceso_id, data)

    async def detalle(self, contrato_id: int) -> dict:
        async def _fetch() -> dict:
            return await cm_api.get_detalle(self.client, contrato_id)
        return await self.lookup("detalle", _fetch, id=contrato_id)


def build_contratos_menores(client: ApiClient, orchestrator: QueryOrchestrator,
                            config: AppConfig) -> ContratosMenoresController:
    kpi, data = _policies(config)
    operations = [
        Operation("kpis", cm_api.get_kpis, policy=kpi),
        Operation("graficos", _graficos_por_serie, policy=data),
        Operation("tabla", cm_api.get_tabla, paginated=True, policy=data),
        Operation("fraccionamiento", cm_api.get_fraccionamiento, policy=data,
                  requires=("anio",)),
    ]
    return ContratosMenoresController(
        cm_api.NAMESPACE, operations, client, orchestrator,
        columns=CONTRATOS_MENORES_COLUMNS,
        initial_filters={"anio": ANIO_ACTUAL},
        page_size=config.table_page_size,
        view_page_size=config.view_page_size,
    )


# ── Actividades operativas ────────────────────────────────────────────────────

ACTIVIDADES_COLUMNS = [
    Column("codigo_ceplan", "Codigo CEPLAN"),
    Column("nombre", "Nombre AO", formatter=truncate_text),
    Column("ue_sigla", "UE"),
    Column("programado_total", "Programado (S/)", formatter=format_monto_completo),
    Column("ejecutado_total", "Ejecutado (S/)", formatter=format_monto_completo),
    Column("ejecucion_porcentaje", "% Ejecucion", formatter=format_percent),
    Column("semaforo", "Estado", formatter=_label),
]


class ActividadesOperativasController(DashboardController):

    async def drill_down(self, ao_id: int) -> dict:
        async def _fetch() -> dict:
            return await ao_api.get_drill_down(self.client, ao_id)
        return await self.lookup("drill-down", _fetch, id=ao_id)


def build_actividades_operativas(client: ApiClient, orchestrator: QueryOrchestrator,
                                 config: AppConfig) -> ActividadesOperativasController:
    kpi, data = _policies(config)
    operations = [
        Operation("kpis", ao_api.get_kpis, policy=kpi),
        Operation("programado-vs-ejecutado", ao_api.get_programado_vs_ejecutado, policy=data),
        Operation("tabla", ao_api.get_tabla, paginated=True, policy=data),
    ]
    return ActividadesOperativasController(
        ao_api.NAMESPACE, operations, client, orchestrator,
        columns=ACTIVIDADES_COLUMNS,
        initial_filters={"anio": ANIO_ACTUAL},
        page_size=config.table_page_size,
        view_page_size=config.view_page_size,
    )


# ── Alertas ───────────────────────────────────────────────────────────────────

ALERTAS_COLUMNS = [
    Column("nivel", "Nivel", formatter=_label),
    Column("titulo", "Titulo", formatter=truncate_text),
    Column("modulo", "Modulo", formatter=_label),
    Column("ue_sigla", "UE"),
    Column("fecha_generacion", "Fecha", formatter=format_fecha_hora),
    Column("resuelta", "Resuelta", formatter=lambda v: "Si" if v else "No"),
]


class AlertasController(DashboardController):

    async def marcar_leida(self, alerta_id: int) -> dict:
        return await self.mutate(alertas_api.marcar_leida, alerta_id)

    async def marcar_resuelta(self, alerta_id: int) -> dict:
        return await self.mutate(alertas_api.marcar_resuelta, alerta_id)

    async def marcar_todas_leidas(self) -> list[dict]:
        """Mark every unread alert in the current list as read.

        The per-alert calls run concurrently; the namespace is invalidated
        once, after all of them succeed.
        """
        alertas = self.slots["lista"].result.data or []
        unread = [a["id"] for a in alertas if not a.get("leida")]
        if not unread:
            return []
        return await self.mutate(alertas_api.marcar_todas_leidas, unread)


def build_alertas(client: ApiClient, orchestrator: QueryOrchestrator,
                  config: AppConfig) -> AlertasController:
    kpi, data = _policies(config)
    operations = [
        Operation("lista", alertas_api.get_alertas, policy=data),
        Operation("resumen", alertas_api.get_resumen, policy=kpi),
    ]
    return AlertasController(
        alertas_api.NAMESPACE, operations, client, orchestrator,
        columns=ALERTAS_COLUMNS,
        table_operation="lista",
        view_page_size=config.view_page_size,
    )


# ── Importacion ───────────────────────────────────────────────────────────────

IMPORTACION_COLUMNS = [
    Column("fecha", "Fecha", formatter=format_fecha_hora),
    Column("archivo", "Archivo", formatter=truncate_text),
    Column("formato", "Formato"),
    Column("registros_validos", "Validos", formatter=format_number),
    Column("registros_error", "Errores", formatter=format_number),
    Column("estado", "Estado", formatter=_label),
]


class ImportacionController(DashboardController):
    """Import history plus uploads.

    A successful upload makes every dashboard's data suspect, so it
    invalidates the importacion namespace and all data namespaces.  A failed
    upload is recorded and re-raised as-is.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.last_upload: dict[str, Any] | None = None

    async def upload(self, kind: str, file_path: Path | str) -> ImportResult:
        try:
            result = await self.mutate(imp_api.upload, kind, file_path,
                                       also_invalidate=DATA_NAMESPACES)
        except DashboardError as exc:
            logger.warning("upload of %s (%s) failed: %s", file_path, kind, exc)
            self.last_upload = {"kind": kind, "ok": False, "error": exc.to_dict()}
            raise
        logger.info("uploaded %s as %s: %d valid, %d with errors",
                    file_path, result.formato_detectado,
                    result.registros_validos, result.registros_error)
        self.last_upload = {"kind": kind, "ok": True,
                            "result": result.model_dump(mode="json")}
        return result

    async def limpiar_formato(self, formato: str) -> dict:
        return await self.mutate(imp_api.limpiar_formato, formato,
                                 also_invalidate=DATA_NAMESPACES)

    async def plantilla(self, formato: str) -> bytes:
        return await imp_api.get_plantilla(self.client, formato)

    def state(self) -> dict[str, Any]:
        state = super().state()
        state["last_upload"] = self.last_upload
        return state


def build_importacion(client: ApiClient, orchestrator: QueryOrchestrator,
                      config: AppConfig) -> ImportacionController:
    _, data = _policies(config)
    operations = [
        Operation("historial", imp_api.get_historial, policy=data),
        Operation("estado-formatos", imp_api.get_estado_formatos, policy=data),
        Operation("formatos-catalogo", imp_api.get_formatos_catalogo, policy=data),
    ]
    return ImportacionController(
        imp_api.NAMESPACE, operations, client, orchestrator,
        columns=IMPORTACION_COLUMNS,
        table_operation="historial",
        view_page_size=config.view_page_size,
    )


MODULES = {
    pres_api.NAMESPACE: build_presupuesto,
    adq_api.NAMESPACE: build_adquisiciones,
    cm_api.NAMESPACE: build_contratos_menores,
    ao_api.NAMESPACE: build_actividades_operativas,
    alertas_api.NAMESPACE: build_alertas,
    imp_api.NAMESPACE: build_importacion,
}


def build_controllers(client: ApiClient, orchestrator: QueryOrchestrator,
                      config: AppConfig) -> dict[str, DashboardController]:
    """Instantiate one controller per module, all sharing *orchestrator*."""
    return {name: builder(client, orchestrator, config) for name, builder in MODULES.items()}


def invalidate_all(orchestrator: QueryOrchestrator, reason: str = "") -> int:
    """Mark every data namespace stale (used after bulk imports)."""
    return sum(orchestrator.handle(Invalidate(ns, reason=reason))
               for ns in (*DATA_NAMESPACES, imp_api.NAMESPACE))
