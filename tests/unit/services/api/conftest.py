"""Shared fixtures and helpers for services.api test package."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from hostprobe.services.api.service import Api, ApiConfig
from hostprobe.services.troubleshoot import TroubleshootManager


@pytest.fixture
def api_config() -> ApiConfig:
    """Minimal API config for testing."""
    return ApiConfig(interval=60.0, host="127.0.0.1", port=9999, request_timeout=12.0)


@pytest.fixture
def mock_manager() -> MagicMock:
    """Manager stub whose ``test_host`` is configured per test."""
    manager = MagicMock(spec=TroubleshootManager)
    manager.test_host = AsyncMock()
    manager.start = AsyncMock()
    manager.shutdown = AsyncMock()
    return manager


@pytest.fixture
def api_service(api_config: ApiConfig, mock_manager: MagicMock) -> Api:
    """Api service serving the mocked manager."""
    return Api(api_config, manager=mock_manager)


@pytest.fixture
def test_client(api_service: Api) -> TestClient:
    """FastAPI TestClient from the Api service."""
    return TestClient(api_service.build_app())
