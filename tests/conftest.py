"""
ChannelHarvest Test Configuration

Shared fixtures and configuration for all tests.
"""

import os
from collections.abc import Callable
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio

import channelharvest.config as config_module
from channelharvest.config import HarvestConfig
from channelharvest.events import FailureCollector
from channelharvest.sources.transport import HttpTransport

from tests.fixtures.factories import ConfigFactory

Handler = Callable[[httpx.Request], httpx.Response]


# ============ Config Fixtures ============


@pytest.fixture
def harvest_config() -> HarvestConfig:
    """Offline config: every directory disabled, short timeouts."""
    return ConfigFactory.create()


@pytest.fixture
def failures() -> FailureCollector:
    return FailureCollector()


@pytest.fixture(scope="function")
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_file = tmp_path / "channelharvest.yaml"
    config_file.write_text(
        """
run:
  mode: minimal
  minimal_limit: 5
filters:
  country: DE
sources:
  radioss:
    enabled: true
logging:
  level: "DEBUG"
"""
    )
    return config_file


# ============ HTTP Fixtures ============


@pytest_asyncio.fixture
async def make_transport():
    """
    Build HttpTransport instances served by ``httpx.MockTransport``.

    Usage: ``transport = make_transport(handler)`` where ``handler`` maps
    an ``httpx.Request`` to an ``httpx.Response`` (or raises).
    """
    clients: list[httpx.AsyncClient] = []

    def _make(handler: Handler, user_agent: str = "ChannelHarvest-Test/1.0") -> HttpTransport:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            follow_redirects=True,
        )
        clients.append(client)
        return HttpTransport(user_agent=user_agent, client=client)

    yield _make

    for client in clients:
        await client.aclose()


@pytest.fixture
def no_sleep() -> Generator[AsyncMock, None, None]:
    """Skip retry backoff delays."""
    with patch("channelharvest.sources.retry.asyncio.sleep", new_callable=AsyncMock) as mock:
        yield mock


# ============ Environment Fixtures ============


@pytest.fixture(autouse=True)
def clean_environment():
    """Clean environment variables and the cached config for each test."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("CHANNELHARVEST_"):
            del os.environ[key]
    config_module._config = None

    yield

    config_module._config = None
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def mock_env_vars():
    """Set up mock environment variables."""
    env_vars = {
        "CHANNELHARVEST_MODE": "minimal",
        "CHANNELHARVEST_MINIMAL_LIMIT": "7",
        "CHANNELHARVEST_SKIP_VALIDATION": "true",
        "CHANNELHARVEST_DATABASE_URL": "sqlite:///:memory:",
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


# ============ Markers ============


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
    config.addinivalue_line("markers", "network: Network access required")
