"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides test settings, mock capability backends, the application, and an
HTTP client bound to it.
"""

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from pydantic_settings import SettingsConfigDict

from sse_bridge.api.main import create_app
from sse_bridge.api.sse.bridge import TransportBridge
from sse_bridge.config.settings import Settings

from tests.utils.mocks import MockBackendFactory


# Test settings override
class TestSettings(Settings):
    """Test-specific settings."""

    environment: str = "testing"
    debug: bool = True
    log_level: str = "DEBUG"
    sse_heartbeat_interval_seconds: float = 0.5
    backend_construction_timeout_seconds: float = 2.0
    invocation_timeout_seconds: float = 2.0
    session_close_grace_seconds: float = 0.1
    exit_on_unhandled_error: bool = False

    model_config = SettingsConfigDict(env_file=".env.test")


@pytest.fixture
def test_settings() -> TestSettings:
    """Test settings fixture (multi-tenant)."""
    return TestSettings()


@pytest.fixture
def single_tenant_settings() -> TestSettings:
    """Test settings fixture with a static credential."""
    return TestSettings(tenant_mode="single", api_key="static-key")


@pytest.fixture
def backend_factory() -> MockBackendFactory:
    """Counting in-memory backend factory."""
    return MockBackendFactory()


@pytest.fixture
def app(test_settings: TestSettings, backend_factory: MockBackendFactory) -> FastAPI:
    """Application wired to the mock backend factory."""
    return create_app(test_settings, backend_factory=backend_factory)


@pytest_asyncio.fixture
async def bridge(app: FastAPI) -> AsyncGenerator[TransportBridge, None]:
    """The application's transport bridge, shut down after the test."""
    bridge = app.state.bridge
    yield bridge
    await bridge.aclose()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP client talking to the application in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
