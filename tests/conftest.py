"""
Pytest fixtures for the dashboard tests.

Provides a controllable clock, a cache/orchestrator pair wired to it, an
in-memory stand-in for ApiClient that answers from a route table, and
sample payloads for every module endpoint.

Async code is driven with ``asyncio.run`` from synchronous tests; retry
back-off sleeps are recorded instead of awaited.
"""

import asyncio
import copy
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from client.errors import ClientRequestError  # noqa: E402
from dashboard.orchestrator import FetchPolicy, QueryOrchestrator  # noqa: E402
from utils.cache import QueryCache  # noqa: E402
from utils.config import AppConfig  # noqa: E402


# ── Clock and sleep ───────────────────────────────────────────────────────────

class FakeClock:
    """Monotonic clock in seconds that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Replacement for asyncio.sleep that records delays and yields once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


# ── Fake API client ───────────────────────────────────────────────────────────

class FakeApiClient:
    """Answers ApiClient calls from a ``{(method, path): response}`` table.

    A response may be a payload (deep-copied on every call), an exception
    instance (raised), or a callable taking the params/body and returning a
    payload.  Unknown routes raise a 404 ClientRequestError.
    """

    def __init__(self, routes: dict | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, str, object]] = []
        self.closed = False

    async def _dispatch(self, method: str, path: str, arg):
        self.calls.append((method, path, arg))
        handler = self.routes.get((method, path))
        if handler is None:
            raise ClientRequestError(f"{method} {path} returned HTTP 404", status_code=404)
        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            return handler(arg)
        return copy.deepcopy(handler)

    async def get(self, path, params=None):
        return await self._dispatch("GET", path, params)

    async def post(self, path, payload=None):
        return await self._dispatch("POST", path, payload)

    async def put(self, path, payload=None):
        return await self._dispatch("PUT", path, payload)

    async def delete(self, path):
        return await self._dispatch("DELETE", path, None)

    async def download(self, path, params=None):
        return await self._dispatch("GET", path, params)

    async def upload(self, path, file_path):
        return await self._dispatch("POST", path, Path(file_path).name)

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p, _ in self.calls if m == method and p == path)

    def close(self) -> None:
        self.closed = True


# ── Sample payloads ───────────────────────────────────────────────────────────

def _tabla(rows, total=None, page=1, page_size=20):
    return {"rows": rows, "total": len(rows) if total is None else total,
            "page": page, "page_size": page_size}


PRESUPUESTO_ROWS = [
    {"ue": "UGEL Norte", "meta": "0012", "clasificador": "2.3.1.5.1.2",
     "descripcion": "Papeleria", "pim": 120000.0, "certificado": 90000.0,
     "devengado": 80000.0, "saldo": 40000.0, "ejecucion": 66.7},
    {"ue": "UGEL Sur", "meta": "0015", "clasificador": "2.3.2.7.11.99",
     "descripcion": "Servicios diversos", "pim": 50000.0, "certificado": 50000.0,
     "devengado": 47500.0, "saldo": 2500.0, "ejecucion": 95.0},
]

CONTRATOS_ROWS = [
    {"id": 1, "codigo": "CM-2026-001", "descripcion": "Toner", "ue_sigla": "UGEL-N",
     "tipo_objeto": "BIEN", "estado": "PENDIENTE", "monto_estimado": 3500.0,
     "proveedor_razon_social": None, "n_orden": None, "n_cotizaciones": 0},
]


def sample_routes() -> dict:
    """Successful responses for every GET the module controllers issue."""
    return {
        # presupuesto
        ("GET", "/presupuesto/kpis"): {
            "total_ues": 4, "total_metas": 12, "pim_total": 170000.0,
            "certificado_total": 140000.0, "devengado_total": 127500.0,
            "ejecucion_porcentaje": 75.0,
        },
        ("GET", "/presupuesto/grafico-pim-certificado"): [
            {"nombre": "UGEL Norte", "pim": 120000.0, "certificado": 90000.0,
             "devengado": 80000.0, "ejecucion_porcentaje": 66.7},
        ],
        ("GET", "/presupuesto/grafico-ejecucion"): [
            {"nombre": "UGEL Sur", "pim": 50000.0, "certificado": 50000.0,
             "devengado": 47500.0, "ejecucion_porcentaje": 95.0},
        ],
        ("GET", "/presupuesto/grafico-devengado-mensual"): [
            {"mes": m, "programado": 0.0, "ejecutado": 0.0}
            for m in ("Ene", "Feb", "Mar", "Abr", "May", "Jun",
                      "Jul", "Ago", "Sep", "Oct", "Nov", "Dic")
        ],
        ("GET", "/presupuesto/tabla"): _tabla(PRESUPUESTO_ROWS),
        # adquisiciones
        ("GET", "/adquisiciones/kpis"): {
            "total": 3, "monto_pim": 900000.0, "monto_adjudicado": 450000.0,
            "avance_porcentaje": 50.0, "culminados": 1, "en_proceso": 2,
            "by_estado": {"EN_PROCESO": 2, "CULMINADO": 1},
        },
        ("GET", "/adquisiciones/graficos"): [{"label": "EN_PROCESO", "value": 2}],
        ("GET", "/adquisiciones/tabla"): _tabla([
            {"id": 7, "codigo": "ADQ-2026-007", "descripcion": "Mobiliario",
             "ue_sigla": "UGEL-S", "tipo_objeto": "BIEN",
             "tipo_procedimiento": "LICITACION_PUBLICA", "estado": "EN_PROCESO",
             "fase_actual": "SELECCION", "monto_referencial": 250000.0},
        ]),
        # contratos menores
        ("GET", "/contratos-menores/kpis"): {
            "total": 1, "monto_total": 3500.0, "completados": 0, "en_proceso": 1,
            "porcentaje_avance": 0.0, "alerta_fraccionamiento": 0,
        },
        ("GET", "/contratos-menores/graficos"): [
            {"label": "PENDIENTE", "value": 1},
            {"label": "BIEN", "value": 1},
        ],
        ("GET", "/contratos-menores/tabla"): _tabla(CONTRATOS_ROWS),
        ("GET", "/contratos-menores/fraccionamiento"): [],
        # actividades operativas
        ("GET", "/actividades-operativas/kpis"): {
            "total_aos": 10, "verdes": 6, "amarillos": 3, "rojos": 1,
            "porcentaje_verde": 60.0, "porcentaje_amarillo": 30.0,
            "porcentaje_rojo": 10.0,
        },
        ("GET", "/actividades-operativas/programado-vs-ejecutado"): [
            {"mes": "Ene", "programado": 100.0, "ejecutado": 90.0},
        ],
        ("GET", "/actividades-operativas/tabla"): _tabla([
            {"id": 3, "codigo_ceplan": "AOI00001", "nombre": "Monitoreo",
             "ue_sigla": "UGEL-N", "programado_total": 1000.0,
             "ejecutado_total": 950.0, "ejecucion_porcentaje": 95.0,
             "semaforo": "VERDE"},
        ]),
        # alertas
        ("GET", "/alertas/"): [
            {"id": 1, "tipo": "sub_ejecucion", "nivel": "critica",
             "titulo": "Ejecucion baja", "descripcion": None, "ue_sigla": "UGEL-N",
             "modulo": "presupuesto", "entidad_id": None, "entidad_tipo": None,
             "leida": False, "resuelta": False,
             "fecha_generacion": "2026-03-01T10:00:00"},
        ],
        ("GET", "/alertas/resumen"): {
            "total": 1, "no_leidas": 1, "rojas": 1, "amarillas": 0,
            "by_modulo": {"presupuesto": 1},
        },
        # importacion
        ("GET", "/importacion/historial"): [
            {"id": 1, "fecha": "2026-02-01T09:00:00", "archivo": "siaf.xlsx",
             "formato": "SIAF", "registros_validos": 100, "registros_error": 0,
             "estado": "EXITOSO"},
        ],
        ("GET", "/importacion/estado-formatos"): {"formato_1": {"cargado": True}},
        ("GET", "/importacion/formatos-catalogo"): [{"key": "formato_1", "nombre": "Formato 1"}],
    }


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def sleep():
    return RecordingSleep()


@pytest.fixture()
def cache(clock):
    return QueryCache(clock=clock)


@pytest.fixture()
def orchestrator(cache, sleep):
    return QueryOrchestrator(cache, default_policy=FetchPolicy(), sleep=sleep)


@pytest.fixture()
def fake_client():
    return FakeApiClient(sample_routes())


@pytest.fixture()
def config(monkeypatch):
    """AppConfig built from a clean environment (all defaults)."""
    for name in ("APP_API_BASE_URL", "APP_API_TOKEN", "APP_API_TIMEOUT", "APP_HOST",
                 "APP_PORT", "APP_LOG_FORMAT", "APP_LOG_LEVEL", "APP_CORS_ORIGINS",
                 "APP_STALE_TIME_MS", "APP_MAX_RETRIES", "APP_TABLE_PAGE_SIZE",
                 "APP_VIEW_PAGE_SIZE"):
        monkeypatch.delenv(name, raising=False)
    return AppConfig.from_env()
