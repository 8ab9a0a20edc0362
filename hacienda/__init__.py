"""Async client for the Costa Rica Hacienda electronic invoicing API.

Maintains an OAuth2 ROPC session, throttles and retries outbound calls,
and submits documents, polling them until a terminal status.
"""

import logging

from hacienda.core.client import HaciendaClient
from hacienda.core.exceptions import (
    ApiError,
    AuthError,
    AuthErrorCode,
    DuplicateSubmissionError,
    HaciendaError,
    HaciendaErrorCode,
    SubmissionTimeoutError,
    ValidationError,
)
from hacienda.core.services.orchestrator import submit_and_wait
from hacienda.core.services.submission_service import (
    extract_rejection_reason,
    get_comprobante,
    get_status,
    is_terminal_status,
    list_comprobantes,
    submit_document,
)
from hacienda.core.services.taxpayer_service import lookup_taxpayer
from hacienda.domain.models.auth import AuthCredentials, Environment, EnvironmentConfig, IdType, TokenState
from hacienda.domain.models.common import HaciendaStatus, StatusResponse, SubmissionRequest
from hacienda.domain.models.resilience import RateLimiterOptions, RetryOptions
from hacienda.domain.models.submission import (
    HttpResponse,
    ParsedStatusResponse,
    SubmissionResponse,
    SubmitAndWaitOptions,
    SubmitAndWaitResult,
)
from hacienda.domain.models.taxpayer import ActividadEconomica, TaxpayerInfo
from hacienda.infrastructure.auth.credentials import build_username, load_credentials
from hacienda.infrastructure.auth.token_manager import TokenManager
from hacienda.infrastructure.config.environments import get_environment_config
from hacienda.infrastructure.http.http_client import HttpClient
from hacienda.infrastructure.resilience.api_retry import RetryPolicy, should_retry
from hacienda.infrastructure.resilience.rate_limiter import RateLimiter

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "HaciendaClient",
    "ApiError",
    "AuthError",
    "AuthErrorCode",
    "DuplicateSubmissionError",
    "HaciendaError",
    "HaciendaErrorCode",
    "SubmissionTimeoutError",
    "ValidationError",
    "submit_and_wait",
    "extract_rejection_reason",
    "get_comprobante",
    "get_status",
    "is_terminal_status",
    "list_comprobantes",
    "submit_document",
    "lookup_taxpayer",
    "AuthCredentials",
    "Environment",
    "EnvironmentConfig",
    "IdType",
    "TokenState",
    "HaciendaStatus",
    "StatusResponse",
    "SubmissionRequest",
    "RateLimiterOptions",
    "RetryOptions",
    "HttpResponse",
    "ParsedStatusResponse",
    "SubmissionResponse",
    "SubmitAndWaitOptions",
    "SubmitAndWaitResult",
    "ActividadEconomica",
    "TaxpayerInfo",
    "build_username",
    "load_credentials",
    "TokenManager",
    "get_environment_config",
    "HttpClient",
    "RetryPolicy",
    "should_retry",
    "RateLimiter",
]
