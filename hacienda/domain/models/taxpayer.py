"""Value Objects for the public economic activity (taxpayer) lookup."""

from dataclasses import dataclass
from typing import List, Tuple, TypedDict


class ActividadEconomicaPayload(TypedDict):
    codigo: str
    descripcion: str
    estado: str  # 'A' active, 'I' inactive


class ActividadEconomicaResponse(TypedDict):
    """Raw body of GET /fe/ae?identificacion=..."""
    nombre: str
    tipoIdentificacion: str
    actividades: List[ActividadEconomicaPayload]


@dataclass(frozen=True)
class ActividadEconomica:
    codigo: str
    descripcion: str
    estado: str


@dataclass(frozen=True)
class TaxpayerInfo:
    """Registered name, identification type and economic activities of a taxpayer."""
    nombre: str
    tipo_identificacion: str
    actividades: Tuple[ActividadEconomica, ...] = ()
