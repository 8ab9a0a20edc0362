"""Typed errors raised by the hacienda client.

Every error surfaced by the public API derives from ``HaciendaError`` so
callers can catch SDK failures generically, or branch on the subclass to
pick a remedy: re-login for ``AuthError``, retry later for ``ApiError``,
investigate the backend for ``SubmissionTimeoutError``.
"""

from enum import Enum
from typing import Any, Optional


class HaciendaErrorCode(str, Enum):
    """Broad error categories."""
    VALIDATION_FAILED = "VALIDATION_FAILED"
    API_ERROR = "API_ERROR"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    TIMEOUT = "TIMEOUT"


class AuthErrorCode(str, Enum):
    """Failure modes of the token lifecycle."""
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_REQUEST_FAILED = "TOKEN_REQUEST_FAILED"
    INVALID_TOKEN_RESPONSE = "INVALID_TOKEN_RESPONSE"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    REFRESH_TOKEN_EXPIRED = "REFRESH_TOKEN_EXPIRED"
    TOKEN_REFRESH_FAILED = "TOKEN_REFRESH_FAILED"


class HaciendaError(Exception):
    """Base class for all SDK errors."""

    def __init__(self, code: HaciendaErrorCode, message: str):
        self.code = code
        super().__init__(message)


class ValidationError(HaciendaError):
    """Raised when input data fails validation.

    ``details`` carries the individual problems, when known.
    """

    def __init__(self, message: str, details: Any = None):
        self.details = details
        super().__init__(HaciendaErrorCode.VALIDATION_FAILED, message)


class AuthError(HaciendaError):
    """Raised when authentication or token management fails."""

    def __init__(self, auth_code: AuthErrorCode, message: str):
        self.auth_code = auth_code
        super().__init__(HaciendaErrorCode.AUTHENTICATION_FAILED, message)


class ApiError(HaciendaError):
    """Raised when a request to the REST API fails.

    Attributes:
        status_code: HTTP status, or None for network-level failures.
        response_body: Decoded response body (JSON or text), if any.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Any = None):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(HaciendaErrorCode.API_ERROR, message)


class DuplicateSubmissionError(ApiError):
    """Raised when POST /recepcion answers 409: the clave was already submitted."""

    def __init__(self, clave: str, response_body: Any = None):
        self.clave = clave
        super().__init__(
            f"Duplicate submission: a document with clave {clave} has already been submitted.",
            409,
            response_body,
        )


class SubmissionTimeoutError(HaciendaError):
    """Raised when polling does not reach a terminal status before the deadline."""

    def __init__(self, clave: str, poll_attempts: int, timeout: float, last_status: Optional[str] = None):
        self.clave = clave
        self.poll_attempts = poll_attempts
        self.timeout = timeout
        self.last_status = last_status
        super().__init__(
            HaciendaErrorCode.TIMEOUT,
            f"Polling timed out after {timeout:g}s ({poll_attempts} attempts). "
            f"Last status for clave {clave} was {last_status or 'unknown'}, not terminal.",
        )
