"""
Importacion endpoints: Excel uploads, history and format status.

Uploads return an ImportResult.  A failed upload raises the classified
client error; no placeholder result is ever produced.
"""

from __future__ import annotations

from pathlib import Path

from client.base import ApiClient
from client.errors import ClientRequestError
from client.models import ImportResult, parse_contract, parse_list
from utils.query import flatten_params

NAMESPACE = "importacion"

UPLOAD_PATHS = {
    "formatos": "/importacion/formatos",
    "datos-maestros": "/importacion/datos-maestros",
    "siaf": "/importacion/siaf",
    "siga": "/importacion/siga",
}

_EXCEL_SUFFIXES = (".xlsx", ".xls", ".xlsm")


async def upload(client: ApiClient, kind: str, file_path: Path | str) -> ImportResult:
    """Upload *file_path* to the endpoint for *kind*.

    Raises:
        ClientRequestError: unknown kind or non-Excel file.
    """
    try:
        path = UPLOAD_PATHS[kind]
    except KeyError:
        raise ClientRequestError(
            f"Unknown upload kind '{kind}'; expected one of {sorted(UPLOAD_PATHS)}"
        ) from None
    file_path = Path(file_path)
    if file_path.suffix.lower() not in _EXCEL_SUFFIXES:
        raise ClientRequestError(f"{file_path.name} is not an Excel file")
    return parse_contract(ImportResult, await client.upload(path, file_path), source=path)


async def get_historial(client: ApiClient, filters=None) -> list[dict]:
    path = "/importacion/historial"
    anio = (filters or {}).get("anio")
    params = flatten_params({"anio": anio}) if anio else None
    return parse_list(await client.get(path, params), source=path)


async def get_formatos_catalogo(client: ApiClient, filters=None) -> list[dict]:
    path = "/importacion/formatos-catalogo"
    return parse_list(await client.get(path), source=path)


async def get_estado_formatos(client: ApiClient, filters=None) -> dict:
    return await client.get("/importacion/estado-formatos")


async def limpiar_formato(client: ApiClient, formato: str) -> dict:
    return await client.delete(f"/importacion/limpiar-formato/{formato}")


async def get_plantilla(client: ApiClient, formato_key: str) -> bytes:
    """Raw bytes of the Excel template for *formato_key*."""
    return await client.download(f"/importacion/plantilla/{formato_key}")
