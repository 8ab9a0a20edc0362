"""Taxpayer lookup against the public economic activity API.

This endpoint lives outside the recepcion API: it has its own host, takes
no bearer token and is not throttled or retried by the HttpClient pipeline.
"""

import logging
from typing import Any, Mapping

import httpx

from hacienda.core.exceptions import ApiError
from hacienda.domain.models.taxpayer import ActividadEconomica, TaxpayerInfo
from hacienda.infrastructure.config.environments import ECONOMIC_ACTIVITY_API_URL
from hacienda.infrastructure.http.http_client import decode_body

logger = logging.getLogger(__name__)


def parse_taxpayer(identificacion: str, data: Any, status: int) -> TaxpayerInfo:
    """Turns an ActividadEconomicaResponse body into TaxpayerInfo.

    Raises:
        ApiError: The body is not the expected object.
    """
    try:
        if not isinstance(data, Mapping):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        actividades = tuple(
            ActividadEconomica(
                codigo=str(item["codigo"]),
                descripcion=str(item["descripcion"]),
                estado=str(item["estado"]),
            )
            for item in data.get("actividades") or []
        )
        return TaxpayerInfo(
            nombre=str(data["nombre"]),
            tipo_identificacion=str(data["tipoIdentificacion"]),
            actividades=actividades,
        )
    except (KeyError, TypeError) as exc:
        raise ApiError(
            f"Invalid response from economic activity API for {identificacion}: {exc}",
            status,
            data,
        ) from exc


async def lookup_taxpayer(
    http: httpx.AsyncClient,
    identificacion: str,
    *,
    url: str = ECONOMIC_ACTIVITY_API_URL,
) -> TaxpayerInfo:
    """Looks up a taxpayer's name and economic activities by cedula.

    Args:
        http: Transport to use; no Authorization header is sent.
        identificacion: Cedula of the taxpayer.
        url: Endpoint override.

    Raises:
        ApiError: 404 for an unknown cedula, the HTTP status for any other
            failure, or no status for a network error.
    """
    logger.info(f"Looking up taxpayer {identificacion}")
    try:
        response = await http.get(
            url,
            params={"identificacion": identificacion},
            headers={"Accept": "application/json"},
        )
    except httpx.HTTPError as exc:
        logger.warning(f"Network error looking up taxpayer {identificacion}: {exc}")
        raise ApiError(f"Network error looking up taxpayer {identificacion}: {exc}") from exc

    data = decode_body(response)
    if response.status_code == 404:
        raise ApiError(f"Taxpayer not found for identification: {identificacion}", 404, data)
    if not response.is_success:
        raise ApiError(
            f"Taxpayer lookup failed ({response.status_code}): {identificacion}",
            response.status_code,
            data,
        )
    return parse_taxpayer(identificacion, data, response.status_code)
