import asyncio

import httpx
import pytest

from hacienda.core.exceptions import AuthError, AuthErrorCode
from hacienda.domain.events import TokenAcquired, TokenRefreshFallback
from hacienda.infrastructure.auth.token_manager import REFRESH_BUFFER_SECONDS, parse_token_response


@pytest.mark.asyncio
async def test_authenticate_sends_password_grant(token_manager, fake_hacienda, credentials, events):
    await token_manager.authenticate(credentials)

    assert token_manager.is_authenticated
    assert fake_hacienda.token_requests == [{
        "grant_type": "password",
        "client_id": "api-stag",
        "username": "cpj-02-3101234567",
        "password": "s3cret",
    }]
    assert isinstance(events[-1], TokenAcquired)
    assert events[-1].grant_type == "password"


@pytest.mark.asyncio
async def test_get_access_token_requires_authentication(token_manager):
    with pytest.raises(AuthError) as exc_info:
        await token_manager.get_access_token()
    assert exc_info.value.auth_code == AuthErrorCode.NOT_AUTHENTICATED


@pytest.mark.asyncio
async def test_fresh_token_makes_no_network_calls(token_manager, fake_hacienda, credentials, clock):
    await token_manager.authenticate(credentials)

    for _ in range(5):
        assert await token_manager.get_access_token() == "access-1"
    clock.advance(300 - REFRESH_BUFFER_SECONDS - 1)  # 31 s of lifetime left
    assert await token_manager.get_access_token() == "access-1"

    assert fake_hacienda.grants == ["password"]


@pytest.mark.asyncio
async def test_token_inside_refresh_buffer_is_refreshed_once(token_manager, fake_hacienda, credentials, clock):
    """A 5-minute token read 4 min 35 s later triggers exactly one refresh."""
    await token_manager.authenticate(credentials)
    clock.advance(4 * 60 + 35)

    token = await token_manager.get_access_token()

    assert token == "access-2"
    assert fake_hacienda.grants == ["password", "refresh_token"]
    assert fake_hacienda.token_requests[1]["refresh_token"] == "refresh-1"
    # The new token is cached again.
    assert await token_manager.get_access_token() == "access-2"
    assert len(fake_hacienda.token_requests) == 2


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh(token_manager, fake_hacienda, credentials, clock):
    await token_manager.authenticate(credentials)
    clock.advance(280)

    tokens = await asyncio.gather(*(token_manager.get_access_token() for _ in range(10)))

    assert tokens == ["access-2"] * 10
    assert fake_hacienda.grants == ["password", "refresh_token"]


@pytest.mark.asyncio
async def test_failed_refresh_falls_back_to_one_password_grant(token_manager, fake_hacienda, credentials, clock, events):
    await token_manager.authenticate(credentials)
    fake_hacienda.token_responses["refresh_token"].append(
        httpx.Response(400, json={"error": "invalid_grant", "error_description": "Token is not active"})
    )
    clock.advance(280)

    token = await token_manager.get_access_token()

    assert token == "access-2"
    assert fake_hacienda.grants == ["password", "refresh_token", "password"]
    fallbacks = [e for e in events if isinstance(e, TokenRefreshFallback)]
    assert len(fallbacks) == 1
    assert "Token is not active" in fallbacks[0].reason


@pytest.mark.asyncio
async def test_refresh_and_fallback_both_failing_raises(token_manager, fake_hacienda, credentials, clock):
    await token_manager.authenticate(credentials)
    fake_hacienda.token_responses["refresh_token"].append(httpx.Response(400, json={"error": "invalid_grant"}))
    fake_hacienda.token_responses["password"].append(httpx.Response(401, json={"error": "invalid_grant"}))
    clock.advance(280)

    with pytest.raises(AuthError, match="Token refresh failed") as exc_info:
        await token_manager.get_access_token()

    assert exc_info.value.auth_code == AuthErrorCode.TOKEN_REFRESH_FAILED
    assert isinstance(exc_info.value.__cause__, AuthError)
    assert fake_hacienda.grants == ["password", "refresh_token", "password"]


@pytest.mark.asyncio
async def test_expired_refresh_token_reauthenticates(token_manager, fake_hacienda, credentials, clock):
    fake_hacienda.refresh_ttl = 60
    await token_manager.authenticate(credentials)
    clock.advance(280)

    assert await token_manager.get_access_token() == "access-2"
    assert fake_hacienda.grants == ["password", "password"]


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_reauthentication(token_manager, fake_hacienda, credentials, clock):
    fake_hacienda.refresh_ttl = 60
    await token_manager.authenticate(credentials)
    clock.advance(280)

    tokens = await asyncio.gather(*(token_manager.get_access_token() for _ in range(10)))

    assert tokens == ["access-2"] * 10
    assert fake_hacienda.grants == ["password", "password"]


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_failed_refresh(token_manager, fake_hacienda, credentials, clock):
    await token_manager.authenticate(credentials)
    fake_hacienda.token_responses["refresh_token"].append(httpx.Response(400, json={"error": "invalid_grant"}))
    fake_hacienda.token_responses["password"].append(httpx.Response(401, json={"error": "invalid_grant"}))
    clock.advance(280)

    results = await asyncio.gather(
        *(token_manager.get_access_token() for _ in range(5)), return_exceptions=True
    )

    assert all(isinstance(r, AuthError) for r in results)
    assert {r.auth_code for r in results} == {AuthErrorCode.TOKEN_REFRESH_FAILED}
    assert fake_hacienda.grants == ["password", "refresh_token", "password"]


@pytest.mark.asyncio
async def test_expired_refresh_without_credentials_clears_session(token_manager, fake_hacienda, credentials, clock):
    fake_hacienda.refresh_ttl = 60
    await token_manager.authenticate(credentials)
    token_manager._credentials = None
    clock.advance(280)

    with pytest.raises(AuthError) as exc_info:
        await token_manager.get_access_token()

    assert exc_info.value.auth_code == AuthErrorCode.REFRESH_TOKEN_EXPIRED
    assert not token_manager.is_authenticated


@pytest.mark.asyncio
async def test_stale_expired_refresh_keeps_newer_session(token_manager, fake_hacienda, credentials, clock):
    fake_hacienda.refresh_ttl = 60
    await token_manager.authenticate(credentials)
    token_manager._credentials = None
    clock.advance(280)
    stale_generation = token_manager._generation - 1

    with pytest.raises(AuthError) as exc_info:
        await token_manager._do_refresh(stale_generation)

    assert exc_info.value.auth_code == AuthErrorCode.REFRESH_TOKEN_EXPIRED
    assert token_manager.is_authenticated


@pytest.mark.asyncio
async def test_invalidate_clears_state(token_manager, credentials):
    await token_manager.authenticate(credentials)
    token_manager.invalidate()

    assert not token_manager.is_authenticated
    with pytest.raises(AuthError) as exc_info:
        await token_manager.get_access_token()
    assert exc_info.value.auth_code == AuthErrorCode.NOT_AUTHENTICATED


@pytest.mark.asyncio
async def test_invalidate_during_refresh_discards_result(token_manager, fake_hacienda, credentials, clock, make_token):
    await token_manager.authenticate(credentials)

    def invalidate_then_answer(request):
        token_manager.invalidate()
        return httpx.Response(200, json=make_token(access="stale", refresh="stale"))

    fake_hacienda.token_responses["refresh_token"].append(invalidate_then_answer)
    clock.advance(280)

    with pytest.raises(AuthError) as exc_info:
        await token_manager.get_access_token()

    assert exc_info.value.auth_code == AuthErrorCode.NOT_AUTHENTICATED
    assert not token_manager.is_authenticated


@pytest.mark.asyncio
async def test_rejected_credentials(token_manager, fake_hacienda, credentials):
    fake_hacienda.token_responses["password"].append(
        httpx.Response(401, json={"error": "invalid_grant", "error_description": "Invalid user credentials"})
    )

    with pytest.raises(AuthError, match="status 401: Invalid user credentials") as exc_info:
        await token_manager.authenticate(credentials)

    assert exc_info.value.auth_code == AuthErrorCode.TOKEN_REQUEST_FAILED
    assert not token_manager.is_authenticated


@pytest.mark.asyncio
async def test_network_failure_on_token_request(token_manager, fake_hacienda, credentials):
    fake_hacienda.token_responses["password"].append(httpx.ConnectError("connection refused"))

    with pytest.raises(AuthError, match="network error") as exc_info:
        await token_manager.authenticate(credentials)

    assert exc_info.value.auth_code == AuthErrorCode.TOKEN_REQUEST_FAILED
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"access_token": "only-this"}),
        httpx.Response(200, text="<html>maintenance</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
async def test_malformed_token_response(token_manager, fake_hacienda, credentials, response):
    fake_hacienda.token_responses["password"].append(response)

    with pytest.raises(AuthError) as exc_info:
        await token_manager.authenticate(credentials)

    assert exc_info.value.auth_code == AuthErrorCode.INVALID_TOKEN_RESPONSE


@pytest.mark.asyncio
async def test_failed_reauthentication_keeps_previous_session(token_manager, fake_hacienda, credentials):
    await token_manager.authenticate(credentials)
    fake_hacienda.token_responses["password"].append(httpx.Response(503, text="Service Unavailable"))

    with pytest.raises(AuthError):
        await token_manager.authenticate(credentials)

    assert token_manager.is_authenticated
    assert await token_manager.get_access_token() == "access-1"


def test_parse_token_response_computes_expiry(make_token):
    state = parse_token_response(make_token(expires_in=300, refresh_expires_in=1800), now=100.0)
    assert state.access_expires_at == 400.0
    assert state.refresh_expires_at == 1900.0
    assert state.token_type == "bearer"


@pytest.mark.parametrize(
    "overrides, problem",
    [
        ({"expires_in": True}, "expires_in must be a positive number"),
        ({"expires_in": 0}, "expires_in must be a positive number"),
        ({"refresh_token": ""}, "refresh_token must be a non-empty string"),
        ({"token_type": None}, "token_type must be a string"),
    ],
)
def test_parse_token_response_rejects_bad_fields(make_token, overrides, problem):
    payload = {**make_token(), **overrides}
    with pytest.raises(AuthError, match=problem) as exc_info:
        parse_token_response(payload, now=0.0)
    assert exc_info.value.auth_code == AuthErrorCode.INVALID_TOKEN_RESPONSE
