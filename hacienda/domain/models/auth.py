"""Domain models for the authenticated session.

Environment descriptors, resolved credentials and the token state owned
by the TokenManager.
"""

from dataclasses import dataclass, field
from enum import Enum


class Environment(str, Enum):
    """Hacienda API environments."""
    SANDBOX = "sandbox"
    PRODUCTION = "production"

    def __str__(self) -> str:
        return self.value


class IdType(str, Enum):
    """Identification type codes used by Hacienda."""
    PERSONA_FISICA = "01"
    PERSONA_JURIDICA = "02"
    DIMEX = "03"
    NITE = "04"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class EnvironmentConfig:
    """Everything needed to talk to one Hacienda environment."""
    name: str          # Human-readable name, e.g. 'Sandbox'
    api_base_url: str  # Base URL for the recepcion REST API
    idp_token_url: str # OAuth2 token endpoint of the IDP
    client_id: str


@dataclass(frozen=True)
class AuthCredentials:
    """Resolved credentials ready for a password grant."""
    username: str  # e.g. 'cpj-02-3101234567'
    password: str = field(repr=False)


@dataclass(frozen=True)
class TokenState:
    """Tokens plus absolute expiry instants, expressed in clock seconds."""
    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    access_expires_at: float
    refresh_expires_at: float
    token_type: str = "bearer"

    def access_expires_within(self, now: float, buffer_seconds: float) -> bool:
        return now >= self.access_expires_at - buffer_seconds

    def refresh_expired(self, now: float) -> bool:
        return now >= self.refresh_expires_at
