"""HTTP client for the Hacienda REST API with automatic auth header injection.

Every request goes through the same pipeline:

    retry policy -> (token lookup -> rate limiter -> send) per attempt

so retries are throttled like first attempts, and a token that goes stale
during a backoff is refreshed before the next attempt. Non-2xx responses
and transport failures are normalized into ``ApiError``.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from hacienda.core.exceptions import ApiError
from hacienda.domain.events import EventListener
from hacienda.domain.interfaces.clock import Clock
from hacienda.domain.models.auth import EnvironmentConfig
from hacienda.domain.models.resilience import RateLimiterOptions, RetryOptions
from hacienda.domain.models.submission import HttpResponse
from hacienda.infrastructure.auth.token_manager import TokenManager
from hacienda.infrastructure.http.error_codes import get_http_status_description
from hacienda.infrastructure.resilience.api_retry import RetryPolicy
from hacienda.infrastructure.resilience.clock import SystemClock
from hacienda.infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def decode_body(response: httpx.Response) -> Any:
    """Decodes a response body.

    JSON is parsed when the content type says so, and also when the body
    simply parses as JSON (the API is not consistent about its headers).
    Anything else is returned as text; an empty body yields None.
    """
    if response.status_code == 204:
        return None
    text = response.text
    if not text:
        return None
    content_type = response.headers.get("content-type", "")
    try:
        return json.loads(text)
    except ValueError:
        if "json" in content_type:
            logger.debug(f"Response declared {content_type} but is not valid JSON; returning text")
        return text


class HttpClient:
    """Authenticated HTTP client for the Hacienda REST API.

    Example:
        client = HttpClient(env_config, token_manager)
        response = await client.post("/recepcion", submission_request)
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        token_manager: TokenManager,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Clock] = None,
        retry_options: Optional[RetryOptions] = None,
        rate_limiter_options: Optional[RateLimiterOptions] = None,
        enable_rate_limiter: bool = True,
        on_event: Optional[EventListener] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """Initializes the HttpClient.

        Args:
            env_config: Environment providing the API base URL.
            token_manager: Source of bearer tokens.
            http_client: Transport; one is created (and owned) when omitted.
            clock: Time source shared by the rate limiter and retry policy.
            retry_options: Backoff configuration (defaults to RetryOptions()).
            rate_limiter_options: Throttle configuration (defaults to 10 req/s).
            enable_rate_limiter: Set to False to send without throttling.
            on_event: Optional listener for resilience events.
            timeout: Request timeout for an owned transport, in seconds.
        """
        self.env_config = env_config
        self.base_url = env_config.api_base_url.rstrip("/")
        self.token_manager = token_manager
        self.clock = clock or SystemClock()
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self.retry_policy = RetryPolicy(retry_options, clock=self.clock, on_event=on_event)
        self.rate_limiter: Optional[RateLimiter] = None
        if enable_rate_limiter:
            self.rate_limiter = RateLimiter.from_options(
                rate_limiter_options or RateLimiterOptions(), clock=self.clock, on_event=on_event
            )

    # --- Convenience methods ---

    async def get(
        self,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        skip_auth: bool = False,
        skip_retry: bool = False,
    ) -> HttpResponse:
        """Sends a GET request to ``path`` (relative to the API base URL)."""
        return await self.request("GET", path, params=params, headers=headers, skip_auth=skip_auth, skip_retry=skip_retry)

    async def post(
        self,
        path: str,
        body: Any = None,
        *,
        headers: Optional[Mapping[str, str]] = None,
        skip_auth: bool = False,
        skip_retry: bool = False,
    ) -> HttpResponse:
        """Sends a POST request with ``body`` serialized as JSON."""
        return await self.request("POST", path, body=body, headers=headers, skip_auth=skip_auth, skip_retry=skip_retry)

    # --- Core request method ---

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        skip_auth: bool = False,
        skip_retry: bool = False,
    ) -> HttpResponse:
        """Sends a request with auth injection, throttling and retries.

        Raises:
            ApiError: Non-2xx response (with status and decoded body) or
                network failure (no status).
            AuthError: No usable token could be obtained.
        """
        description = f"{method} {path}"

        async def attempt() -> HttpResponse:
            return await self._send_once(method, path, body, params, headers, skip_auth)

        if skip_retry:
            return await attempt()
        return await self.retry_policy.execute(attempt, description=description)

    async def _send_once(
        self,
        method: str,
        path: str,
        body: Any,
        params: Optional[Mapping[str, Any]],
        extra_headers: Optional[Mapping[str, str]],
        skip_auth: bool,
    ) -> HttpResponse:
        url = f"{self.base_url}{path}"
        headers: Dict[str, str] = {"Accept": "application/json"}
        if extra_headers:
            headers.update(extra_headers)

        if not skip_auth:
            token = await self.token_manager.get_access_token()
            headers["Authorization"] = f"Bearer {token}"

        content: Optional[bytes] = None
        if body is not None:
            headers.setdefault("Content-Type", "application/json")
            content = json.dumps(body).encode("utf-8")

        async def send() -> httpx.Response:
            return await self._http.request(method, url, content=content, params=params, headers=headers)

        try:
            if self.rate_limiter is not None:
                response = await self.rate_limiter.execute(send)
            else:
                response = await send()
        except httpx.HTTPError as exc:
            logger.warning(f"Network error calling {method} {path}: {exc}")
            raise ApiError(f"Network error calling {method} {path}: {exc}") from exc

        data = decode_body(response)

        if not response.is_success:
            description = get_http_status_description(response.status_code)
            logger.debug(f"{method} {path} failed ({response.status_code}): {description}")
            raise ApiError(
                f"{method} {path} failed ({response.status_code}): {description}",
                response.status_code,
                data,
            )

        logger.debug(f"{method} {path} -> {response.status_code}")
        return HttpResponse(status=response.status_code, headers=response.headers, data=data)

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
