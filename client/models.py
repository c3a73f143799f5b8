"""
Pydantic response contracts for the remote reporting API.

The paginated envelope is strict: exactly ``rows``, ``total``, ``page``
(1-based) and ``page_size``.  Payloads using other names (``items``,
``pageSize``, ``totalPages``) fail validation and surface as
ContractViolationError via ``parse_contract``.

KPI and summary models allow extra fields so backend additions do not break
the dashboards; the fields the dashboards read are required.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from client.errors import ContractViolationError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# ── Paginated envelope ────────────────────────────────────────────────────────

class TablaResponse(BaseModel):
    """Generic paginated list wrapper (backend snake_case)."""
    model_config = ConfigDict(extra="forbid")

    rows: list[dict[str, Any]] = Field(..., description="Rows for this page")
    total: int = Field(..., ge=0, description="Total matching rows (before pagination)")
    page: int = Field(..., ge=1, description="1-based page number")
    page_size: int = Field(..., ge=1, description="Page size used")

    @property
    def page_count(self) -> int:
        """Server-side page count; at least 1 so "page 1 of 1" is shown when empty."""
        return max(1, -(-self.total // self.page_size))


# ── KPI models ────────────────────────────────────────────────────────────────

class _Kpi(BaseModel):
    model_config = ConfigDict(extra="allow")


class KpiPresupuesto(_Kpi):
    total_ues: int
    total_metas: int
    pim_total: float
    certificado_total: float
    devengado_total: float
    ejecucion_porcentaje: float


class KpiAdquisiciones(_Kpi):
    total: int
    monto_pim: float
    monto_adjudicado: float
    avance_porcentaje: float
    culminados: int
    en_proceso: int
    by_estado: dict[str, int] = Field(default_factory=dict)


class KpiContratosMenores(_Kpi):
    total: int
    monto_total: float
    completados: int
    en_proceso: int
    porcentaje_avance: float
    alerta_fraccionamiento: int


class KpiActividadesOperativas(_Kpi):
    total_aos: int
    verdes: int
    amarillos: int
    rojos: int
    porcentaje_verde: float
    porcentaje_amarillo: float
    porcentaje_rojo: float


# ── Alertas / importacion ─────────────────────────────────────────────────────

class AlertaResumen(_Kpi):
    total: int
    no_leidas: int
    rojas: int
    amarillas: int
    by_modulo: dict[str, int] = Field(default_factory=dict)


class ImportResult(BaseModel):
    """Result of an Excel upload (formato detectado + row accounting)."""
    formato_detectado: str
    registros_validos: int
    registros_error: int
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ── Contract parsing ──────────────────────────────────────────────────────────

def parse_contract(model: type[M], payload: Any, *, source: str = "") -> M:
    """Validate *payload* against *model*, raising ContractViolationError.

    Args:
        model: Pydantic model class describing the expected shape.
        payload: Decoded JSON body.
        source: Endpoint path, used in the error message.
    """
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        logger.error("contract violation from %s: %s", source or model.__name__,
                     exc.errors(include_url=False))
        raise ContractViolationError(
            f"Response from {source or 'API'} does not match {model.__name__}",
            detail=str(exc),
        ) from exc


def parse_list(payload: Any, *, source: str = "") -> list[dict[str, Any]]:
    """Require a JSON array of objects (chart series, alert lists)."""
    if not isinstance(payload, list) or not all(isinstance(i, dict) for i in payload):
        logger.error("contract violation from %s: expected list of objects, got %s",
                     source, type(payload).__name__)
        raise ContractViolationError(
            f"Response from {source or 'API'} is not a list of objects",
        )
    return payload
