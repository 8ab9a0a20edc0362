import asyncio
import base64
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl

import httpx
import pytest

from hacienda.domain.interfaces.clock import Clock
from hacienda.infrastructure.auth.credentials import load_credentials
from hacienda.infrastructure.auth.token_manager import TokenManager
from hacienda.infrastructure.config import settings
from hacienda.infrastructure.config.environments import SANDBOX_CONFIG
from hacienda.infrastructure.http.http_client import HttpClient

CLAVE = "50601012400310123456700100001010000000001100000001"


class FakeClock(Clock):
    """Virtual time. sleep() yields to the loop once, then jumps forward."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        target = self._now + max(0.0, seconds)
        await asyncio.sleep(0)
        self._now = max(self._now, target)

    def advance(self, seconds: float) -> None:
        self._now += seconds


def token_payload(access: str = "access-1", refresh: str = "refresh-1",
                  expires_in: float = 300, refresh_expires_in: float = 36000) -> Dict[str, Any]:
    return {
        "access_token": access,
        "refresh_token": refresh,
        "expires_in": expires_in,
        "refresh_expires_in": refresh_expires_in,
        "token_type": "bearer",
    }


def status_body(status: str, xml: Optional[str] = None, clave: str = CLAVE) -> Dict[str, Any]:
    body: Dict[str, Any] = {"clave": clave, "ind-estado": status, "fecha": "2024-01-01T10:00:00-06:00"}
    if xml is not None:
        body["respuesta-xml"] = base64.b64encode(xml.encode("utf-8")).decode("ascii")
    return body


class FakeHacienda:
    """IDP and REST API stand-in served through httpx.MockTransport.

    Queued responses are consumed in order. An item may be an httpx.Response,
    an exception to raise, or a callable taking the request. The IDP issues
    fresh numbered tokens once its queue is empty; the API answers 404.
    """

    def __init__(self):
        self.token_requests: List[Dict[str, str]] = []
        self.api_requests: List[httpx.Request] = []
        self.token_responses: Dict[str, List[Any]] = {"password": [], "refresh_token": []}
        self.api_responses: List[Any] = []
        self.token_ttl = 300
        self.refresh_ttl = 36000
        self._issued = 0

    @property
    def grants(self) -> List[str]:
        return [form["grant_type"] for form in self.token_requests]

    @staticmethod
    def _resolve(item: Any, request: httpx.Request) -> httpx.Response:
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/openid-connect/token"):
            form = dict(parse_qsl(request.content.decode("utf-8")))
            self.token_requests.append(form)
            queue = self.token_responses.setdefault(form["grant_type"], [])
            if queue:
                return self._resolve(queue.pop(0), request)
            self._issued += 1
            return httpx.Response(200, json=token_payload(
                access=f"access-{self._issued}",
                refresh=f"refresh-{self._issued}",
                expires_in=self.token_ttl,
                refresh_expires_in=self.refresh_ttl,
            ))

        self.api_requests.append(request)
        if self.api_responses:
            return self._resolve(self.api_responses.pop(0), request)
        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_hacienda():
    return FakeHacienda()


@pytest.fixture
def async_http(fake_hacienda):
    """httpx.AsyncClient whose transport is the in-memory backend."""
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_hacienda.handler))


@pytest.fixture
def sandbox_config():
    return SANDBOX_CONFIG


@pytest.fixture
def credentials():
    return load_credentials("02", "3101234567", "s3cret")


@pytest.fixture
def events():
    """Collects dispatched domain events."""
    return []


@pytest.fixture
def token_manager(sandbox_config, async_http, clock, events):
    return TokenManager(sandbox_config, http_client=async_http, clock=clock, on_event=events.append)


@pytest.fixture
def http_client(sandbox_config, token_manager, async_http, clock, events):
    return HttpClient(sandbox_config, token_manager, http_client=async_http, clock=clock, on_event=events.append)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep tests away from ~/.hacienda and .env files, and reset overrides."""
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_loaded", True)
    yield
    settings.clear_test_config()


@pytest.fixture
def clave():
    return CLAVE


@pytest.fixture
def make_status():
    """Factory for GET /recepcion/{clave} bodies."""
    return status_body


@pytest.fixture
def make_token():
    """Factory for IDP token payloads."""
    return token_payload
