"""Credential testing against a provider's test endpoint."""

import logging
from typing import Any

from integration_engine.client.backend_client import BackendClient
from integration_engine.providers.base import TEST_CREDENTIALS, ProviderAdapter
from integration_engine.providers.registry import get_adapter
from .errors import InvalidCredentials, ServerError
from .models import CredentialSet, CredentialTestResult
from .session import SessionContext, require_session

logger = logging.getLogger(__name__)


def interpret_test_response(adapter: ProviderAdapter, body: Any) -> CredentialTestResult:
    """
    Turn a test-credentials response into a CredentialTestResult.

    A valid result may still carry missing permission flags and warnings;
    those are a partial success, not a failure.

    Raises:
        ServerError: If the body is not a JSON object
    """
    if not isinstance(body, dict):
        raise ServerError(f"Unexpected test response from {adapter.display_name}")

    if body.get("valid") is not True:
        error = body.get("error") or body.get("detail") or "Invalid credentials"
        return CredentialTestResult(valid=False, error=str(error), details=dict(body))

    flags = adapter.extract_permission_flags(body)
    warnings = adapter.extract_warnings(body)
    result = CredentialTestResult(
        valid=True,
        permission_flags=flags,
        warnings=warnings,
        details=dict(body),
    )

    if result.has_reduced_access:
        logger.warning(
            f"{adapter.display_name} credentials are valid with limited access: "
            f"missing={list(result.missing_permissions)} warnings={list(warnings)}"
        )
    return result


def require_valid(result: CredentialTestResult) -> CredentialTestResult:
    """
    Raise InvalidCredentials unless the test passed.

    Raises:
        InvalidCredentials: If result.valid is False
    """
    if not result.valid:
        raise InvalidCredentials(result.error or "Invalid credentials")
    return result


class CredentialValidator:
    """
    Tests user-entered credentials with one round trip, never retried.

    Client-side checks run first so obviously bad input never costs a
    provider API call.
    """

    def __init__(self, client: BackendClient):
        self.client = client

    async def test_credentials(
        self,
        session: SessionContext | None,
        provider_id: str,
        credentials: CredentialSet,
        name: str | None = None,
    ) -> CredentialTestResult:
        """
        Test credentials for a provider.

        Args:
            session: Caller session
            provider_id: Provider identifier (e.g., "facebook_ads")
            credentials: User-entered credentials
            name: Integration name sent with the test body

        Returns:
            CredentialTestResult; ``valid`` is False when the backend rejects
            the credentials

        Raises:
            Unauthenticated: If there is no valid session
            AdapterNotFoundError: If the provider is not supported
            ValidationError: If a client-side check fails (no request is made)
            NetworkError, Timeout, ServerError: On transport or server failure
        """
        require_session(session)
        adapter = get_adapter(provider_id)
        adapter.validate(credentials)

        name = name or adapter.default_integration_name()
        payload = adapter.build_test_payload(credentials, name)

        logger.info(f"Testing {adapter.display_name} credentials")
        body = await self.client.test_credentials(
            session, adapter.endpoint(TEST_CREDENTIALS), payload
        )

        result = interpret_test_response(adapter, body)
        if result.valid:
            logger.info(f"{adapter.display_name} credentials are valid")
        else:
            logger.info(f"{adapter.display_name} credentials rejected: {result.error}")
        return result
