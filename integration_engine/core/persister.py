"""Saving integrations and running the optional capability probe."""

import logging
from typing import Any

from integration_engine.client.backend_client import BackendClient
from integration_engine.providers.base import ANALYTICS_EVENTS, SAVE, ProviderAdapter
from integration_engine.providers.registry import get_adapter
from .errors import (
    ConflictError,
    IntegrationEngineError,
    ServerError,
    Unauthenticated,
    ValidationError,
)
from .models import (
    CredentialSet,
    CredentialTestResult,
    Integration,
    ProbeResult,
    SaveResult,
)
from .session import SessionContext, require_session

logger = logging.getLogger(__name__)


def _string_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if item)


def _count(value: Any) -> int:
    """Count events reported either as a list or as a number."""
    if isinstance(value, list):
        return len(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return max(value, 0)
    return 0


def parse_save_response(adapter: ProviderAdapter, body: Any) -> SaveResult:
    """
    Build a SaveResult from the save endpoint's body.

    The backend returns the integration either at the top level or nested
    under "integration", alongside capability and limitation lists.

    Raises:
        ServerError: If no integration id can be found
    """
    if not isinstance(body, dict):
        raise ServerError(f"Unexpected save response from {adapter.display_name}")

    nested = body.get("integration")
    record = dict(nested) if isinstance(nested, dict) else dict(body)
    record.setdefault("id", body.get("integration_id"))
    if not record.get("provider"):
        record["provider"] = adapter.provider_id
    if not record.get("integration_type"):
        record["integration_type"] = adapter.category.value

    if record.get("id") in (None, ""):
        raise ServerError(f"{adapter.display_name} save response did not include an integration id")

    try:
        integration = Integration.from_dict(record)
    except (KeyError, TypeError, ValueError) as e:
        raise ServerError(f"Could not read saved integration: {e}") from e

    return SaveResult(
        integration=integration,
        capabilities=_string_list(body.get("capabilities")),
        limitations=_string_list(body.get("limitations")),
        permission_flags=adapter.extract_permission_flags(body),
        warnings=adapter.extract_warnings(body),
    )


def parse_probe_response(body: Any) -> ProbeResult:
    """
    Build a ProbeResult from the analytics-events body.

    Raises:
        ServerError: If the body is not a JSON object
    """
    if not isinstance(body, dict):
        raise ServerError("Unexpected analytics events response")

    return ProbeResult(
        success=True,
        real_time_events=_count(body.get("real_time_events")),
        historical_events=_count(body.get("events")),
        conversion_events=_count(body.get("conversions")),
        errors=_string_list(body.get("errors")),
    )


class IntegrationPersister:
    """Creates or updates integration records after a passing credential test."""

    def __init__(self, client: BackendClient):
        self.client = client

    async def save_integration(
        self,
        session: SessionContext | None,
        provider_id: str,
        credentials: CredentialSet,
        name: str,
        test_result: CredentialTestResult | None,
    ) -> SaveResult:
        """
        Save an integration for a provider account.

        The backend keys records on (provider, account field), so saving the
        same account twice updates the existing record.

        Args:
            session: Caller session
            provider_id: Provider identifier
            credentials: The credentials that passed the test
            name: Integration display name
            test_result: Result of the immediately preceding credential test

        Returns:
            SaveResult with the saved Integration

        Raises:
            ValidationError: If test_result is missing or not valid (no
                             request is made)
            ConflictError: If the backend rejects the save as a duplicate
            Unauthenticated, NetworkError, Timeout, ServerError: As raised by
                             the backend client
        """
        require_session(session)

        if test_result is None or not test_result.valid:
            raise ValidationError(
                "Credentials must pass a connection test before the integration can be saved."
            )

        adapter = get_adapter(provider_id)
        payload = adapter.build_save_payload(credentials, name)
        account = adapter.account_identifier(credentials)

        logger.info(
            f"Saving {adapter.display_name} integration '{name}'"
            + (f" for account {account}" if account else "")
        )

        try:
            body = await self.client.save_integration(session, adapter.endpoint(SAVE), payload)
        except ConflictError as e:
            logger.error(f"Save conflict for {adapter.display_name}: {e}")
            raise

        result = parse_save_response(adapter, body)
        logger.info(f"Saved integration {result.integration.id} ({adapter.display_name})")
        return result

    async def probe_capability(
        self,
        session: SessionContext | None,
        provider_id: str,
        credentials: CredentialSet,
        name: str,
    ) -> ProbeResult | None:
        """
        Run the provider's optional capability probe.

        The probe only runs when the provider has one and its optional field
        was supplied. Its failure is reported in the result and never undoes
        the save that preceded it.

        Returns:
            ProbeResult, or None when no probe applies

        Raises:
            Unauthenticated: If the session is rejected
        """
        require_session(session)
        adapter = get_adapter(provider_id)

        if not adapter.wants_probe(credentials):
            return None

        logger.info(f"Testing analytics events access for {adapter.display_name}")
        payload = adapter.build_probe_payload(credentials, name)

        try:
            body = await self.client.probe_capability(
                session, adapter.endpoint(ANALYTICS_EVENTS), payload
            )
            result = parse_probe_response(body)
        except Unauthenticated:
            raise
        except IntegrationEngineError as e:
            logger.warning(f"Analytics probe failed for {adapter.display_name}: {e}")
            return ProbeResult(success=False, error=f"Analytics test failed: {e.message}")

        if result.errors:
            logger.warning(f"Analytics probe reported errors: {list(result.errors)}")
        return result
