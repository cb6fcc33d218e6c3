"""
Integration test fixtures — require running infrastructure (Redis).
Mark with @pytest.mark.integration to skip in unit-only runs.

Run: pytest tests/integration/ -v -m integration
"""

from __future__ import annotations

import os

import pytest
import redis


# Custom marker for integration tests
def pytest_configure(config):
    config.addinivalue_line("markers", "integration: requires live infrastructure (Redis)")


@pytest.fixture
def redis_url() -> str:
    return os.environ.get("TASKDESK_TEST_REDIS_URL", "redis://localhost:6379/15")


@pytest.fixture
def redis_client(redis_url):
    """Live Redis on a scratch DB; skipped when unreachable."""
    client = redis.Redis.from_url(redis_url, decode_responses=True, socket_connect_timeout=1)
    try:
        client.ping()
    except redis.RedisError:
        pytest.skip(f"Redis not reachable at {redis_url}")
    client.flushdb()
    yield client
    client.flushdb()
    client.close()
