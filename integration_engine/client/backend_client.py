"""
Backend Client Implementation

Async client for the analytics backend's integration endpoints. Every
request goes through one funnel that attaches the session's bearer token
and classifies failures into the engine's error taxonomy.
"""

import logging
from typing import Any

import httpx

from ..core.config_store import DEFAULT_API_BASE_URL
from ..core.errors import (
    ConflictError,
    NetworkError,
    ServerError,
    Timeout,
    Unauthenticated,
)
from ..core.session import SessionContext, require_session

logger = logging.getLogger(__name__)

PROVIDERS_PATH = "/integrations/providers"
INTEGRATIONS_PATH = "/integrations"
INTEGRATION_PATH = "/integrations/{integrationId}"
SYNC_PROGRESS_PATH = "/integrations/sync-progress"
DATA_POINTS_STATS_PATH = "/integrations/data-points-stats"


def _error_detail(response: httpx.Response) -> str:
    """Pull the server-provided message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if value:
                return str(value)

    text = response.text.strip() if response.content else ""
    if text:
        return f"HTTP {response.status_code}: {text[:200]}"
    return f"HTTP {response.status_code}"


class BackendClient:
    """
    Client for the integration endpoints of the analytics backend.

    Features:
    - Bearer authentication from an explicit SessionContext
    - Per-call timeouts (poll ticks use a shorter one)
    - Failure classification into NetworkError, Timeout, ServerError,
      ConflictError and Unauthenticated
    - No automatic retries; callers decide what a failure means
    """

    def __init__(
        self,
        api_base_url: str = DEFAULT_API_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 15.0,
        poll_timeout_seconds: float = 10.0,
    ):
        """
        Initialize the backend client.

        Args:
            api_base_url: Base URL of the backend API (e.g., ".../api/v1")
            http_client: Optional httpx async client (created if None)
            timeout_seconds: Timeout for test, save and list requests
            poll_timeout_seconds: Timeout for sync-progress poll ticks
        """
        self.api_base_url = api_base_url
        self.timeout_seconds = timeout_seconds
        self.poll_timeout_seconds = poll_timeout_seconds

        # Track if we own the HTTP client (for cleanup)
        self._owns_client = http_client is None

        if http_client is None:
            self.http_client = httpx.AsyncClient(timeout=timeout_seconds)
        else:
            self.http_client = http_client

    async def aclose(self) -> None:
        """Close the HTTP client if we created it."""
        if self._owns_client and self.http_client:
            await self.http_client.aclose()

    async def __aenter__(self):
        """Async context manager support."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager cleanup."""
        await self.aclose()
        return False

    def _build_url(self, path: str) -> str:
        """
        Build full URL from base URL and path.

        Args:
            path: API path (e.g., "/integrations/providers")

        Returns:
            Full URL
        """
        base_url = self.api_base_url.rstrip("/")
        path = path.lstrip("/")
        return f"{base_url}/{path}"

    def _substitute_path_params(self, path: str, **params) -> str:
        """
        Substitute path parameters like {integrationId} with actual values.

        Args:
            path: Path template (e.g., "/integrations/{integrationId}")
            **params: Parameter values

        Returns:
            Path with substituted values
        """
        result = path
        for key, value in params.items():
            result = result.replace(f"{{{key}}}", str(value))
        return result

    async def _request(
        self,
        method: str,
        path: str,
        session: SessionContext | None,
        json_body: dict[str, Any] | None = None,
        path_params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Make an authenticated HTTP request.

        Args:
            method: HTTP method (GET, POST, DELETE)
            path: API path
            session: Caller session providing the bearer token
            json_body: JSON request body
            path_params: Path parameter substitutions
            timeout: Override for the default timeout

        Returns:
            Decoded JSON body, or {} for an empty response

        Raises:
            Unauthenticated: If the session is missing or rejected (401/403)
            Timeout: If the request times out
            NetworkError: If no HTTP response was received
            ConflictError: On a 409 response
            ServerError: On any other non-2xx response or an undecodable body
        """
        # Fail before touching the network when there is no session
        require_session(session)

        if path_params:
            path = self._substitute_path_params(path, **path_params)

        url = self._build_url(path)

        headers = session.auth_headers()
        headers["Content-Type"] = "application/json"

        if timeout is None:
            timeout = self.timeout_seconds

        logger.debug(f"{method} {url}")

        try:
            response = await self.http_client.request(
                method=method,
                url=url,
                headers=headers,
                json=json_body,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise Timeout(f"Request to {path} timed out after {timeout:g}s") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Could not reach the server: {e}") from e

        status = response.status_code

        if 200 <= status < 300:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise ServerError(
                    f"Server returned an invalid response for {path}", status_code=status
                ) from e

        detail = _error_detail(response)

        if status in (401, 403):
            raise Unauthenticated(detail, status_code=status)
        if status == 409:
            raise ConflictError(detail, status_code=status)
        raise ServerError(detail, status_code=status)

    # ===== CATALOG & LIST METHODS =====

    async def get_providers(self, session: SessionContext | None) -> Any:
        """Fetch the provider catalog, grouped by category."""
        return await self._request("GET", PROVIDERS_PATH, session)

    async def get_integrations(self, session: SessionContext | None) -> Any:
        """Fetch the caller's persisted integrations."""
        return await self._request("GET", INTEGRATIONS_PATH, session)

    # ===== CONNECT FLOW METHODS =====

    async def test_credentials(
        self, session: SessionContext | None, path: str, payload: dict[str, Any]
    ) -> Any:
        """
        Ask the backend to test credentials against the provider.

        Args:
            session: Caller session
            path: Provider test endpoint path
            payload: Provider-shaped credential body

        Returns:
            Response body with ``valid`` and permission fields
        """
        return await self._request("POST", path, session, json_body=payload)

    async def save_integration(
        self, session: SessionContext | None, path: str, payload: dict[str, Any]
    ) -> Any:
        """Create or update the integration record for the provider account."""
        return await self._request("POST", path, session, json_body=payload)

    async def probe_capability(
        self, session: SessionContext | None, path: str, payload: dict[str, Any]
    ) -> Any:
        """Run the optional analytics-events capability probe."""
        return await self._request("POST", path, session, json_body=payload)

    async def delete_integration(self, session: SessionContext | None, integration_id: str) -> None:
        """Delete an integration; the backend answers 204 or an empty body."""
        await self._request(
            "DELETE",
            INTEGRATION_PATH,
            session,
            path_params={"integrationId": integration_id},
        )

    # ===== SYNC STATUS METHODS =====

    async def get_sync_progress(self, session: SessionContext | None) -> Any:
        """Fetch sync progress for every integration in one request."""
        return await self._request(
            "GET", SYNC_PROGRESS_PATH, session, timeout=self.poll_timeout_seconds
        )

    async def get_data_points_stats(self, session: SessionContext | None) -> Any:
        """Fetch the authoritative data-point totals."""
        return await self._request("GET", DATA_POINTS_STATS_PATH, session)
