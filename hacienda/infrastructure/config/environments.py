"""URLs and OAuth client ids for the Hacienda Sandbox and Production environments."""

from typing import Dict, Union

from hacienda.core.exceptions import ValidationError
from hacienda.domain.models.auth import Environment, EnvironmentConfig

SANDBOX_CONFIG = EnvironmentConfig(
    name="Sandbox",
    api_base_url="https://api.comprobanteselectronicos.go.cr/recepcion-sandbox/v1",
    idp_token_url="https://idp.comprobanteselectronicos.go.cr/auth/realms/rut-stag/protocol/openid-connect/token",
    client_id="api-stag",
)

PRODUCTION_CONFIG = EnvironmentConfig(
    name="Production",
    api_base_url="https://api.comprobanteselectronicos.go.cr/recepcion/v1",
    idp_token_url="https://idp.comprobanteselectronicos.go.cr/auth/realms/rut/protocol/openid-connect/token",
    client_id="api-prod",
)

# Public taxpayer lookup; the same for both environments and needs no token.
ECONOMIC_ACTIVITY_API_URL = "https://api.hacienda.go.cr/fe/ae"

_ENVIRONMENT_CONFIGS: Dict[Environment, EnvironmentConfig] = {
    Environment.SANDBOX: SANDBOX_CONFIG,
    Environment.PRODUCTION: PRODUCTION_CONFIG,
}


def resolve_environment(env: Union[Environment, str]) -> Environment:
    """Accepts an Environment or its name ('sandbox', 'production'), case-insensitive."""
    if isinstance(env, Environment):
        return env
    try:
        return Environment(str(env).strip().lower())
    except ValueError as exc:
        raise ValidationError(
            f'environment must be "sandbox" or "production", got {env!r}'
        ) from exc


def get_environment_config(env: Union[Environment, str]) -> EnvironmentConfig:
    return _ENVIRONMENT_CONFIGS[resolve_environment(env)]
