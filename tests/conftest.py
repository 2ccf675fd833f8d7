import os
from typing import Callable, Dict, List, Optional

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from sftooling.config import SalesforceConfig
from sftooling.services.auth import CliOrg
from sftooling.services.exceptions import CliSessionUnavailable

INSTANCE_URL = "https://example.my.salesforce.com"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep developer SF_* variables out of every test."""
    for key in list(os.environ):
        if key.upper().startswith("SF_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_config() -> Callable[..., SalesforceConfig]:
    def factory(**overrides) -> SalesforceConfig:
        return SalesforceConfig(_env_file=None, **overrides)
    return factory


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class FakeSessionSource:
    """In-memory stand-in for the SF CLI."""

    def __init__(
        self,
        orgs: Optional[List[CliOrg]] = None,
        error: Optional[Exception] = None,
        displayed: Optional[Dict[str, CliOrg]] = None,
    ):
        self.orgs = orgs or []
        self.error = error
        self.displayed = displayed or {}
        self.list_calls = 0
        self.display_calls: List[str] = []

    async def list_orgs(self) -> List[CliOrg]:
        self.list_calls += 1
        if self.error is not None:
            raise self.error
        return list(self.orgs)

    async def display_org(self, username: str) -> CliOrg:
        self.display_calls.append(username)
        return self.displayed[username]


@pytest.fixture
def no_cli() -> FakeSessionSource:
    return FakeSessionSource(error=CliSessionUnavailable("sf: command not found"))


@pytest.fixture
def cli_session() -> FakeSessionSource:
    return FakeSessionSource(orgs=[
        CliOrg(
            username="dev@example.com",
            aliases=("dev",),
            access_token="CLI_TOKEN",
            instance_url=INSTANCE_URL,
            connected_status="Connected",
            is_default=True,
        )
    ])


class RecordingTransport:
    """httpx.MockTransport wrapper that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: List[httpx.Request] = []
        self.client = httpx.AsyncClient(transport=httpx.MockTransport(self._handle))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], RecordingTransport]:
    return RecordingTransport


@pytest.fixture(scope="session")
def rsa_keys():
    """(private PEM, public PEM) pair for signing JWT assertions"""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem
