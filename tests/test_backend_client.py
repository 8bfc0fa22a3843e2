"""Tests for the backend client."""

import pytest
import httpx
from unittest.mock import AsyncMock, Mock

from integration_engine.client.backend_client import BackendClient
from integration_engine.core.errors import (
    ConflictError,
    NetworkError,
    ServerError,
    Timeout,
    Unauthenticated,
)
from integration_engine.core.session import SessionContext


def make_response(status_code, json_body=None, content=None):
    """Build a real httpx.Response."""
    request = httpx.Request("GET", "http://backend.test/api/v1/integrations")
    if json_body is not None:
        return httpx.Response(status_code, json=json_body, request=request)
    return httpx.Response(status_code, content=content or b"", request=request)


@pytest.fixture
def mock_http_client():
    """Create a mock async HTTP client."""
    http_client = Mock(spec=httpx.AsyncClient)
    http_client.request = AsyncMock()
    http_client.aclose = AsyncMock()
    return http_client


@pytest.fixture
def backend(mock_http_client):
    """Create a backend client for testing."""
    return BackendClient(
        api_base_url="http://backend.test/api/v1",
        http_client=mock_http_client,
    )


# ===== Construction and Lifecycle Tests =====

def test_client_initialization():
    """Test that client initializes correctly."""
    client = BackendClient()

    assert client.api_base_url == "http://localhost:8000/api/v1"
    assert client.timeout_seconds == 15.0
    assert client.poll_timeout_seconds == 10.0
    assert client._owns_client is True


def test_client_with_custom_http_client(backend, mock_http_client):
    """Test that client uses provided HTTP client."""
    assert backend.http_client is mock_http_client
    assert backend._owns_client is False


@pytest.mark.asyncio
async def test_aclose_only_closes_owned_client(backend, mock_http_client):
    """Test aclose() leaves an injected HTTP client open."""
    await backend.aclose()
    mock_http_client.aclose.assert_not_called()

    owned = BackendClient()
    owned.http_client = Mock()
    owned.http_client.aclose = AsyncMock()
    async with owned:
        pass
    owned.http_client.aclose.assert_awaited_once()


# ===== URL Building Tests =====

def test_build_url_strips_slashes(backend):
    """Test that URL building handles extra slashes."""
    backend.api_base_url = "http://backend.test/api/v1/"
    assert backend._build_url("/integrations") == "http://backend.test/api/v1/integrations"


def test_substitute_path_params(backend):
    """Test path parameter substitution."""
    assert backend._substitute_path_params("/integrations/{integrationId}", integrationId=7) == "/integrations/7"


# ===== HTTP Request Tests =====

@pytest.mark.asyncio
async def test_request_sends_bearer_token(backend, mock_http_client, session):
    """Test requests carry the session token and JSON body."""
    mock_http_client.request.return_value = make_response(200, {"valid": True})

    body = await backend.test_credentials(
        session, "/integrations/facebook-ads/test-credentials", {"accessToken": "abc"}
    )

    assert body == {"valid": True}
    call = mock_http_client.request.call_args
    assert call.kwargs["method"] == "POST"
    assert call.kwargs["url"] == "http://backend.test/api/v1/integrations/facebook-ads/test-credentials"
    assert call.kwargs["headers"]["Authorization"] == "Bearer session-token-123"
    assert call.kwargs["json"] == {"accessToken": "abc"}
    assert call.kwargs["timeout"] == 15.0


@pytest.mark.asyncio
async def test_missing_session_makes_no_request(backend, mock_http_client):
    """Test a blank session fails before any network call."""
    with pytest.raises(Unauthenticated):
        await backend.get_integrations(SessionContext(token="  "))
    with pytest.raises(Unauthenticated):
        await backend.get_integrations(None)

    mock_http_client.request.assert_not_called()


@pytest.mark.asyncio
async def test_poll_uses_poll_timeout(backend, mock_http_client, session):
    """Test sync-progress ticks use the shorter poll timeout."""
    mock_http_client.request.return_value = make_response(200, {"sync_progress": {}})

    await backend.get_sync_progress(session)

    call = mock_http_client.request.call_args
    assert call.kwargs["url"].endswith("/integrations/sync-progress")
    assert call.kwargs["timeout"] == 10.0


@pytest.mark.asyncio
async def test_delete_substitutes_id(backend, mock_http_client, session):
    """Test delete targets the integration path and accepts an empty body."""
    mock_http_client.request.return_value = make_response(204)

    assert await backend.delete_integration(session, "42") is None

    call = mock_http_client.request.call_args
    assert call.kwargs["method"] == "DELETE"
    assert call.kwargs["url"] == "http://backend.test/api/v1/integrations/42"


@pytest.mark.asyncio
async def test_timeout_maps_to_timeout(backend, mock_http_client, session):
    """Test httpx timeouts raise Timeout."""
    mock_http_client.request.side_effect = httpx.ReadTimeout("timed out")

    with pytest.raises(Timeout) as exc_info:
        await backend.get_providers(session)

    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_connection_failure_maps_to_network_error(backend, mock_http_client, session):
    """Test transport failures raise NetworkError."""
    mock_http_client.request.side_effect = httpx.ConnectError("connection refused")

    with pytest.raises(NetworkError):
        await backend.get_providers(session)


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403])
async def test_auth_failure_maps_to_unauthenticated(backend, mock_http_client, session, status_code):
    """Test 401/403 raise Unauthenticated."""
    mock_http_client.request.return_value = make_response(status_code, {"detail": "Token expired"})

    with pytest.raises(Unauthenticated) as exc_info:
        await backend.get_integrations(session)

    assert exc_info.value.status_code == status_code
    assert "Token expired" in str(exc_info.value)


@pytest.mark.asyncio
async def test_conflict_maps_to_conflict_error(backend, mock_http_client, session):
    """Test 409 raises ConflictError with the server's message."""
    mock_http_client.request.return_value = make_response(409, {"message": "Integration already exists"})

    with pytest.raises(ConflictError) as exc_info:
        await backend.save_integration(session, "/integrations/hubspot/save", {})

    assert str(exc_info.value) == "Integration already exists"


@pytest.mark.asyncio
async def test_server_error_is_not_retried(backend, mock_http_client, session):
    """Test 5xx raises ServerError after a single attempt."""
    mock_http_client.request.return_value = make_response(500, content=b"Internal Server Error")

    with pytest.raises(ServerError) as exc_info:
        await backend.get_data_points_stats(session)

    assert exc_info.value.status_code == 500
    assert "Internal Server Error" in str(exc_info.value)
    assert mock_http_client.request.await_count == 1


@pytest.mark.asyncio
async def test_undecodable_body_maps_to_server_error(backend, mock_http_client, session):
    """Test a 2xx response that is not JSON raises ServerError."""
    mock_http_client.request.return_value = make_response(200, content=b"<html>oops</html>")

    with pytest.raises(ServerError):
        await backend.get_providers(session)
