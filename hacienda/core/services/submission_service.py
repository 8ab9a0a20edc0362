"""Document submission (POST /recepcion), status lookup (GET /recepcion/{clave})
and comprobante queries (GET /comprobantes).
"""

import base64
import binascii
import logging
import re
from typing import Any, Mapping, Optional
from urllib.parse import quote

from hacienda.core.exceptions import ApiError, DuplicateSubmissionError
from hacienda.domain.models.common import (
    ComprobantesQueryParams,
    HaciendaStatus,
    SubmissionRequest,
    TERMINAL_STATUSES,
)
from hacienda.domain.models.submission import ParsedStatusResponse, StatusValue, SubmissionResponse
from hacienda.infrastructure.http.error_codes import get_rejection_description
from hacienda.infrastructure.http.http_client import HttpClient

logger = logging.getLogger(__name__)

RECEPCION_PATH = "/recepcion"
COMPROBANTES_PATH = "/comprobantes"

_DETALLE_RE = re.compile(r"<DetalleMensaje>(.*?)</DetalleMensaje>", re.DOTALL)
_CODIGO_RE = re.compile(r"<Codigo>(\d+)</Codigo>", re.DOTALL)


async def submit_document(http_client: HttpClient, request: SubmissionRequest) -> SubmissionResponse:
    """Submits a signed, base64-encoded document.

    Raises:
        DuplicateSubmissionError: The clave was already submitted (HTTP 409).
        ApiError: Any other failure.
    """
    clave = request["clave"]
    logger.info(f"Submitting document {clave}")
    try:
        response = await http_client.post(RECEPCION_PATH, request)
    except ApiError as exc:
        if exc.status_code == 409:
            raise DuplicateSubmissionError(clave, exc.response_body) from exc
        raise
    logger.info(f"Document {clave} accepted for processing (HTTP {response.status})")
    return SubmissionResponse(status=response.status, location=response.headers.get("location"))


def _parse_status(value: Any) -> StatusValue:
    text = str(value or "").strip().lower()
    try:
        return HaciendaStatus(text)
    except ValueError:
        return text


def _decode_response_xml(encoded: Optional[str]) -> Optional[str]:
    if not encoded:
        return None
    try:
        return base64.b64decode(encoded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.warning("Could not decode respuesta-xml; leaving it empty")
        return None


async def get_status(http_client: HttpClient, clave: str) -> ParsedStatusResponse:
    """Fetches the processing status of a submitted document."""
    response = await http_client.get(f"{RECEPCION_PATH}/{quote(clave, safe='')}")
    data = response.data
    if not isinstance(data, Mapping):
        raise ApiError(
            f"Unexpected status response for clave {clave}: expected a JSON object",
            response.status,
            data,
        )
    return ParsedStatusResponse(
        clave=data.get("clave") or clave,
        status=_parse_status(data.get("ind-estado")),
        date=data.get("fecha"),
        response_xml=_decode_response_xml(data.get("respuesta-xml")),
        raw=dict(data),  # type: ignore[arg-type]
    )


def is_terminal_status(status: StatusValue) -> bool:
    """True for aceptado, rechazado and error; in-progress and unknown values are not terminal."""
    try:
        return HaciendaStatus(status) in TERMINAL_STATUSES
    except ValueError:
        return False


def extract_rejection_reason(response_xml: str) -> Optional[str]:
    """Pulls a readable reason out of a MensajeHacienda XML.

    Returns something like ``"[Code 05] Duplicate clave... - detail"``, or
    None when neither a Codigo nor a DetalleMensaje element is present.
    """
    parts = []
    codigo = _CODIGO_RE.search(response_xml)
    if codigo:
        code = codigo.group(1)
        parts.append(f"[Code {code}] {get_rejection_description(code)}")
    detalle = _DETALLE_RE.search(response_xml)
    if detalle and detalle.group(1).strip():
        parts.append(detalle.group(1).strip())
    return " - ".join(parts) if parts else None


async def list_comprobantes(http_client: HttpClient, params: Optional[ComprobantesQueryParams] = None) -> Any:
    """Lists comprobantes, dropping filters that are None."""
    query = {k: str(v) for k, v in (params or {}).items() if v is not None}
    response = await http_client.get(COMPROBANTES_PATH, params=query or None)
    return response.data


async def get_comprobante(http_client: HttpClient, clave: str) -> Any:
    response = await http_client.get(f"{COMPROBANTES_PATH}/{quote(clave, safe='')}")
    return response.data
