"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or wire shapes like document keys,
tokens, submission payloads and status responses, ensuring consistency
and type safety.
"""

from enum import Enum
from typing import NewType, Any, Dict, TypedDict, Optional

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
Clave = NewType("Clave", str)                  # 50-digit document key
AccessToken = NewType("AccessToken", str)      # JWT bearer token
ApiPath = NewType("ApiPath", str)              # Path relative to the API base URL, e.g. '/recepcion'

# === Processing Status ===

class HaciendaStatus(str, Enum):
    """Processing status values reported by GET /recepcion/{clave}."""
    RECIBIDO = "recibido"      # Received, queued for processing
    PROCESANDO = "procesando"  # Currently being validated
    ACEPTADO = "aceptado"
    RECHAZADO = "rechazado"
    ERROR = "error"            # System error on the backend

    def __str__(self) -> str:
        return self.value

TERMINAL_STATUSES = frozenset({
    HaciendaStatus.ACEPTADO,
    HaciendaStatus.RECHAZADO,
    HaciendaStatus.ERROR,
})

# --- Wire Shapes (opaque to the core) ---

class Identificacion(TypedDict):
    """Taxpayer identification as sent in the submission payload."""
    tipoIdentificacion: str
    numeroIdentificacion: str

class _SubmissionRequestBase(TypedDict):
    clave: str
    fecha: str                 # ISO 8601 with offset, e.g. "2025-07-27T10:30:00-06:00"
    emisor: Identificacion
    comprobanteXml: str        # Base64 of the signed XML

class SubmissionRequest(_SubmissionRequestBase, total=False):
    """Request payload for POST /recepcion."""
    receptor: Identificacion
    callbackUrl: str

# The status payload uses hyphenated keys, so it needs the functional syntax.
StatusResponse = TypedDict(
    "StatusResponse",
    {
        "clave": str,
        "ind-estado": str,
        "fecha": str,
        "respuesta-xml": str,  # Base64 of the MensajeHacienda XML
    },
    total=False,
)

class TokenResponse(TypedDict):
    """Raw token payload returned by the identity provider."""
    access_token: str
    refresh_token: str
    expires_in: float          # Access token TTL in seconds (~300)
    refresh_expires_in: float  # Refresh token TTL in seconds (~36000)
    token_type: str

class ComprobantesQueryParams(TypedDict, total=False):
    """Filters accepted by GET /comprobantes."""
    offset: int
    limit: int
    fechaEmisionDesde: str
    fechaEmisionHasta: str
    emisorIdentificacion: str
    receptorIdentificacion: str

JsonBody = Optional[Any]
Headers = Dict[str, str]
