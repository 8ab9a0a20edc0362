"""HaciendaClient: the composition root of the SDK.

Wires one shared ``httpx.AsyncClient``, a TokenManager and an HttpClient
for a single environment and taxpayer, and exposes the high level
operations (authenticate, submit, poll, query).
"""

import logging
from typing import Any, Optional, Union

import httpx

from hacienda.core.exceptions import AuthError, ValidationError
from hacienda.core.services import orchestrator, submission_service, taxpayer_service
from hacienda.domain.events import EventListener
from hacienda.domain.interfaces.clock import Clock
from hacienda.domain.models.auth import AuthCredentials, Environment, IdType
from hacienda.domain.models.common import ComprobantesQueryParams, SubmissionRequest
from hacienda.domain.models.resilience import RateLimiterOptions, RetryOptions
from hacienda.domain.models.submission import (
    ParsedStatusResponse,
    SubmissionResponse,
    SubmitAndWaitOptions,
    SubmitAndWaitResult,
)
from hacienda.domain.models.taxpayer import TaxpayerInfo
from hacienda.infrastructure.auth.credentials import load_credentials
from hacienda.infrastructure.auth.token_manager import TokenManager
from hacienda.infrastructure.config import settings
from hacienda.infrastructure.config.environments import get_environment_config, resolve_environment
from hacienda.infrastructure.http.http_client import DEFAULT_TIMEOUT_SECONDS, HttpClient
from hacienda.infrastructure.resilience.clock import SystemClock

logger = logging.getLogger(__name__)


class HaciendaClient:
    """High level client for one environment and one taxpayer.

    Example:
        async with HaciendaClient("sandbox", id_type="02", id_number="3101234567",
                                  password=secret) as client:
            await client.authenticate()
            result = await client.submit_and_wait(request)
    """

    def __init__(
        self,
        environment: Union[Environment, str],
        *,
        id_type: Union[IdType, str],
        id_number: str,
        password: str,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Clock] = None,
        retry_options: Optional[RetryOptions] = None,
        rate_limiter_options: Optional[RateLimiterOptions] = None,
        enable_rate_limiter: bool = True,
        submit_options: Optional[SubmitAndWaitOptions] = None,
        on_event: Optional[EventListener] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """Initializes the client.

        Raises:
            ValidationError: Unknown environment or malformed credentials.
        """
        self.environment = resolve_environment(environment)
        try:
            self._credentials: AuthCredentials = load_credentials(id_type, id_number, password)
        except AuthError as exc:
            raise ValidationError(str(exc)) from exc

        self.env_config = get_environment_config(self.environment)
        self.clock = clock or SystemClock()
        self.submit_options = submit_options or SubmitAndWaitOptions()
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self.token_manager = TokenManager(self.env_config, http_client=self._http, clock=self.clock, on_event=on_event)
        self.http_client = HttpClient(
            self.env_config,
            self.token_manager,
            http_client=self._http,
            clock=self.clock,
            retry_options=retry_options,
            rate_limiter_options=rate_limiter_options,
            enable_rate_limiter=enable_rate_limiter,
            on_event=on_event,
        )
        logger.info(f"HaciendaClient ready for {self.env_config.name} as {self._credentials.username}")

    @classmethod
    def from_config(cls, **overrides: Any) -> "HaciendaClient":
        """Builds a client from the settings layer (YAML, .env, environment).

        Keyword arguments override the values read from configuration.
        """
        settings.load_configuration()
        credentials = settings.get_credential_fields()
        kwargs: dict = {
            "id_type": credentials["id_type"],
            "id_number": credentials["id_number"],
            "password": credentials["password"],
            "retry_options": settings.get_retry_options(),
            "rate_limiter_options": settings.get_rate_limiter_options(),
            "submit_options": settings.get_submit_options(),
            "timeout": settings.get_http_timeout(),
        }
        kwargs.update(overrides)
        environment = kwargs.pop("environment", None) or settings.get_environment_name()
        return cls(environment, **kwargs)

    # --- Auth ---

    async def authenticate(self) -> None:
        await self.token_manager.authenticate(self._credentials)

    @property
    def is_authenticated(self) -> bool:
        return self.token_manager.is_authenticated

    async def get_access_token(self) -> str:
        return await self.token_manager.get_access_token()

    def invalidate(self) -> None:
        self.token_manager.invalidate()

    # --- Documents ---

    async def submit_document(self, request: SubmissionRequest) -> SubmissionResponse:
        return await submission_service.submit_document(self.http_client, request)

    async def get_status(self, clave: str) -> ParsedStatusResponse:
        return await submission_service.get_status(self.http_client, clave)

    async def submit_and_wait(
        self,
        request: SubmissionRequest,
        options: Optional[SubmitAndWaitOptions] = None,
    ) -> SubmitAndWaitResult:
        return await orchestrator.submit_and_wait(
            self.http_client, request, options or self.submit_options, clock=self.clock
        )

    async def list_comprobantes(self, params: Optional[ComprobantesQueryParams] = None) -> Any:
        return await submission_service.list_comprobantes(self.http_client, params)

    async def get_comprobante(self, clave: str) -> Any:
        return await submission_service.get_comprobante(self.http_client, clave)

    async def lookup_taxpayer(self, identificacion: str) -> TaxpayerInfo:
        """Public economic activity lookup; works without authenticate()."""
        return await taxpayer_service.lookup_taxpayer(self._http, identificacion)

    # --- Lifecycle ---

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "HaciendaClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
