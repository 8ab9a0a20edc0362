"""OAuth2 ROPC token manager with auto-refresh for the Hacienda IDP.

Handles the full token lifecycle:
- Initial authentication via the Resource Owner Password Credentials grant
- In-memory token caching
- Refresh 30 seconds before the access token expires, deduplicated across
  concurrent callers
- Fallback to a password grant when the refresh token is expired or the
  refresh grant is refused
- Invalidation
"""

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from hacienda.core.exceptions import AuthError, AuthErrorCode
from hacienda.domain.events import EventListener, TokenAcquired, TokenRefreshFallback, dispatch_event
from hacienda.domain.interfaces.clock import Clock
from hacienda.domain.models.auth import AuthCredentials, EnvironmentConfig, TokenState
from hacienda.infrastructure.resilience.clock import SystemClock

logger = logging.getLogger(__name__)

# Seconds before access token expiry at which a refresh is triggered.
REFRESH_BUFFER_SECONDS = 30.0

PASSWORD_GRANT = "password"
REFRESH_GRANT = "refresh_token"


def parse_token_response(data: Any, now: float) -> TokenState:
    """Validates an IDP token payload and turns it into a TokenState.

    Raises:
        AuthError: INVALID_TOKEN_RESPONSE when the payload has the wrong shape.
    """
    if not isinstance(data, Mapping):
        raise AuthError(AuthErrorCode.INVALID_TOKEN_RESPONSE, "Invalid token response from IDP: expected a JSON object")

    problems = []
    for key in ("access_token", "refresh_token"):
        value = data.get(key)
        if not isinstance(value, str) or not value:
            problems.append(f"{key} must be a non-empty string")
    for key in ("expires_in", "refresh_expires_in"):
        value = data.get(key)
        # bool is an int subclass; a JSON true is not a TTL.
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            problems.append(f"{key} must be a positive number")
    if not isinstance(data.get("token_type"), str):
        problems.append("token_type must be a string")

    if problems:
        raise AuthError(
            AuthErrorCode.INVALID_TOKEN_RESPONSE,
            f"Invalid token response from IDP: {'; '.join(problems)}",
        )

    return TokenState(
        access_token=data["access_token"],
        refresh_token=data["refresh_token"],
        access_expires_at=now + float(data["expires_in"]),
        refresh_expires_at=now + float(data["refresh_expires_in"]),
        token_type=data["token_type"],
    )


class TokenManager:
    """Manages the OAuth2 ROPC token lifecycle against the Hacienda IDP.

    Example:
        manager = TokenManager(get_environment_config("sandbox"))
        await manager.authenticate(load_credentials("02", "3101234567", password))
        token = await manager.get_access_token()  # cached, auto-refreshes
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Clock] = None,
        on_event: Optional[EventListener] = None,
        timeout: float = 30.0,
    ):
        """Initializes the TokenManager.

        Args:
            env_config: Environment providing the IDP URL and client id.
            http_client: Transport for token requests. One is created (and
                owned) when omitted.
            clock: Time source for expiry bookkeeping.
            on_event: Optional listener for token lifecycle events.
            timeout: Request timeout for an owned transport, in seconds.
        """
        self.env_config = env_config
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._clock = clock or SystemClock()
        self._on_event = on_event
        self._token_state: Optional[TokenState] = None
        self._credentials: Optional[AuthCredentials] = None
        self._refresh_task: Optional["asyncio.Task[None]"] = None
        # Bumped by invalidate(); results of requests started earlier are discarded.
        self._generation = 0

    # --- Public API ---

    @property
    def is_authenticated(self) -> bool:
        """True if a token state is installed (it may be expired)."""
        return self._token_state is not None

    async def authenticate(self, credentials: AuthCredentials) -> None:
        """Authenticates with the password grant.

        The credentials are kept for later re-authentication. Existing state
        is only replaced when the request succeeds.

        Raises:
            AuthError: TOKEN_REQUEST_FAILED or INVALID_TOKEN_RESPONSE.
        """
        logger.info(f"Authenticating {credentials.username} against {self.env_config.name} IDP")
        generation = self._generation
        state = await self._request_token(self._password_form(credentials), PASSWORD_GRANT)
        if generation != self._generation:
            raise AuthError(AuthErrorCode.NOT_AUTHENTICATED, "Session was invalidated during authentication.")
        self._install(state, credentials)

    async def get_access_token(self) -> str:
        """Returns a valid access token, refreshing it when needed.

        No network call is made while more than REFRESH_BUFFER_SECONDS of
        lifetime remain. Concurrent callers that find the token stale share
        a single refresh request.

        Raises:
            AuthError: NOT_AUTHENTICATED, REFRESH_TOKEN_EXPIRED or
                TOKEN_REFRESH_FAILED.
        """
        state = self._token_state
        if state is None:
            raise AuthError(AuthErrorCode.NOT_AUTHENTICATED, "No token available. Call authenticate() first.")

        if not state.access_expires_within(self._clock.now(), REFRESH_BUFFER_SECONDS):
            return state.access_token

        await self._refresh()

        state = self._token_state
        if state is None:
            raise AuthError(AuthErrorCode.NOT_AUTHENTICATED, "Token was invalidated during refresh.")
        return state.access_token

    def invalidate(self) -> None:
        """Clears tokens and stored credentials.

        get_access_token() raises NOT_AUTHENTICATED until authenticate() is
        called again.
        """
        self._generation += 1
        self._token_state = None
        self._credentials = None
        self._refresh_task = None
        logger.info("Token state invalidated")

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    # --- Refresh ---

    async def _refresh(self) -> None:
        """Joins the in-flight refresh, or starts one if there is none."""
        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(self._do_refresh(self._generation))
            self._refresh_task = task
            task.add_done_callback(self._clear_refresh_task)
        else:
            logger.debug("Joining in-flight token refresh")
        # Shielded so one caller's cancellation does not abort the shared request.
        await asyncio.shield(task)

    def _clear_refresh_task(self, task: "asyncio.Future[None]") -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _do_refresh(self, generation: int) -> None:
        state = self._token_state
        credentials = self._credentials
        if state is None:
            raise AuthError(AuthErrorCode.NOT_AUTHENTICATED, "Cannot refresh: no token state.")

        if state.refresh_expired(self._clock.now()):
            if credentials is None:
                if generation == self._generation:
                    self._token_state = None
                raise AuthError(
                    AuthErrorCode.REFRESH_TOKEN_EXPIRED,
                    "Refresh token has expired and no credentials are stored for re-authentication.",
                )
            logger.info("Refresh token expired; re-authenticating with stored credentials")
            new_state = await self._request_token(self._password_form(credentials), PASSWORD_GRANT)
            self._install_if_current(generation, new_state, credentials)
            return

        refresh_form = {
            "grant_type": REFRESH_GRANT,
            "client_id": self.env_config.client_id,
            "refresh_token": state.refresh_token,
        }
        try:
            new_state = await self._request_token(refresh_form, REFRESH_GRANT)
        except AuthError as refresh_error:
            if credentials is None:
                raise AuthError(AuthErrorCode.TOKEN_REFRESH_FAILED, f"Token refresh failed: {refresh_error}") from refresh_error
            logger.warning(f"Token refresh failed ({refresh_error}); falling back to password grant")
            dispatch_event(TokenRefreshFallback(reason=str(refresh_error)), self._on_event)
            try:
                new_state = await self._request_token(self._password_form(credentials), PASSWORD_GRANT)
            except AuthError as reauth_error:
                logger.error(f"Re-authentication after failed refresh also failed: {reauth_error}")
                raise AuthError(AuthErrorCode.TOKEN_REFRESH_FAILED, f"Token refresh failed: {refresh_error}") from refresh_error
        self._install_if_current(generation, new_state, credentials)

    # --- Internal helpers ---

    def _password_form(self, credentials: AuthCredentials) -> Dict[str, str]:
        return {
            "grant_type": PASSWORD_GRANT,
            "client_id": self.env_config.client_id,
            "username": credentials.username,
            "password": credentials.password,
        }

    def _install(self, state: TokenState, credentials: Optional[AuthCredentials]) -> None:
        self._token_state = state
        if credentials is not None:
            self._credentials = credentials

    def _install_if_current(self, generation: int, state: TokenState, credentials: Optional[AuthCredentials]) -> None:
        if generation != self._generation:
            logger.debug("Discarding token obtained for an invalidated session")
            return
        self._install(state, credentials)

    async def _request_token(self, form: Mapping[str, str], grant_type: str) -> TokenState:
        """Sends a token request to the IDP and returns the resulting state."""
        try:
            response = await self._http.post(
                self.env_config.idp_token_url,
                data=dict(form),
                headers={"Content-Type": "application/x-www-form-urlencoded", "Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.error(f"Token request ({grant_type}) failed: network error: {exc}")
            raise AuthError(AuthErrorCode.TOKEN_REQUEST_FAILED, f"Token request failed: network error ({exc})") from exc

        if not response.is_success:
            detail = response.reason_phrase
            try:
                body = response.json()
                if isinstance(body, Mapping):
                    detail = body.get("error_description") or body.get("error") or detail
            except ValueError:
                pass
            logger.error(f"Token request ({grant_type}) rejected with status {response.status_code}")
            raise AuthError(
                AuthErrorCode.TOKEN_REQUEST_FAILED,
                f"Token request failed with status {response.status_code}: {detail}",
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise AuthError(AuthErrorCode.INVALID_TOKEN_RESPONSE, "Invalid token response from IDP: body is not JSON") from exc

        state = parse_token_response(data, self._clock.now())
        dispatch_event(TokenAcquired(grant_type=grant_type, expires_in=float(data["expires_in"])), self._on_event)
        logger.debug(f"Token acquired via {grant_type} grant; expires in {data['expires_in']}s")
        return state
