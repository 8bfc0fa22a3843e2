"""Shared fixtures for the Integration Engine tests."""

import pytest
from unittest.mock import AsyncMock, Mock

from integration_engine.client.backend_client import BackendClient
from integration_engine.core.session import SessionContext
from integration_engine.providers.registry import reset_registry


@pytest.fixture(autouse=True)
def clean_registry():
    """Reset the adapter registry before each test."""
    reset_registry()
    yield
    reset_registry()


@pytest.fixture
def session():
    """Create an authenticated session."""
    return SessionContext(token="session-token-123", user_id="user-1")


@pytest.fixture
def mock_client():
    """Create a mock backend client with async endpoint methods."""
    client = Mock(spec=BackendClient)
    client.get_providers = AsyncMock()
    client.get_integrations = AsyncMock(return_value={"integrations": []})
    client.test_credentials = AsyncMock()
    client.save_integration = AsyncMock()
    client.probe_capability = AsyncMock()
    client.delete_integration = AsyncMock(return_value=None)
    client.get_sync_progress = AsyncMock(return_value={"sync_progress": {}})
    client.get_data_points_stats = AsyncMock(
        return_value={"total_data_points": 0, "breakdown_by_integration": {}}
    )
    client.aclose = AsyncMock()
    return client
