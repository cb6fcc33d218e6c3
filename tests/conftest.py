"""
TaskDesk Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Optional

import jwt
import pytest
from jwt.algorithms import RSAAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from taskdesk.api.app import create_app
from taskdesk.engine.config import TaskDeskConfig
from taskdesk.engine.context import Principal, clear_request_context
from taskdesk.engine.errors import UnauthorizedError
from taskdesk.engine.rate_limit import RateLimiter
from taskdesk.engine.security import AnonymousGate, AuthGate, extract_bearer_token
from taskdesk.storage.memory import MemoryTaskStore

TEST_KID = "test-key-1"
TEST_AUDIENCE = "api://test-client"
TEST_ISSUER = "https://issuer.test/tenant/v2.0"


# ---------------------------------------------------------------------------
# Isolation - reset global singletons between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_globals():
    import taskdesk.engine.config as cfg_mod
    import taskdesk.engine.logging as log_mod

    cfg_mod._config = None
    yield
    cfg_mod._config = None
    if log_mod._global_queue is not None:
        log_mod.shutdown_logging()
    clear_request_context()


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------

class StaticTokenGate(AuthGate):
    """Accepts a fixed token → subject table. Exercises owner scoping without JWKS."""

    provider = "static"

    def __init__(self, tokens: Dict[str, str]):
        self._tokens = tokens

    def authenticate(self, authorization: Optional[str]) -> Principal:
        token = extract_bearer_token(authorization)
        if token not in self._tokens:
            raise UnauthorizedError(reason="invalid_token")
        return Principal(subject=self._tokens[token], provider=self.provider)


@pytest.fixture
def config():
    return TaskDeskConfig()


@pytest.fixture
def store():
    return MemoryTaskStore()


@pytest.fixture
def make_client(config, store) -> Callable[..., TestClient]:
    """Build a TestClient over a fresh app; override gate / limiter per test."""

    def _make(auth_gate: Optional[AuthGate] = None, rate_limiter: Optional[RateLimiter] = None) -> TestClient:
        app = create_app(
            config,
            store=store,
            auth_gate=auth_gate or AnonymousGate(),
            rate_limiter=rate_limiter or RateLimiter(max_requests=10_000, window_seconds=60),
        )
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture
def auth_client(make_client) -> TestClient:
    return make_client(auth_gate=StaticTokenGate({"alice-token": "alice", "bob-token": "bob"}))


# ---------------------------------------------------------------------------
# JWT fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def public_jwk(private_key, kid: str = TEST_KID) -> Dict[str, Any]:
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


@pytest.fixture
def jwks(rsa_private_key) -> Dict[str, Any]:
    return {"keys": [public_jwk(rsa_private_key)]}


@pytest.fixture
def make_token(rsa_private_key) -> Callable[..., str]:
    """Sign an RS256 token; claims default to a valid one for TEST_AUDIENCE / TEST_ISSUER."""

    def _make(key=None, kid: str = TEST_KID, algorithm: str = "RS256", **overrides: Any) -> str:
        now = int(time.time())
        claims: Dict[str, Any] = {
            "sub": "user-123",
            "aud": TEST_AUDIENCE,
            "iss": TEST_ISSUER,
            "iat": now,
            "exp": now + 300,
        }
        for name, value in overrides.items():
            if value is None:
                claims.pop(name, None)
            else:
                claims[name] = value
        return jwt.encode(claims, key or rsa_private_key, algorithm=algorithm, headers={"kid": kid})

    return _make
