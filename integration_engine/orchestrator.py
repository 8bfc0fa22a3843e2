"""
Integration Connection & Synchronization Orchestrator

Ties the catalog, credential test, save, capability probe, summary, sync
progress polling and data-point aggregation into one object whose lifetime
bounds the background poll loop.
"""

import logging
from typing import Any

from .client.backend_client import BackendClient
from .core.aggregator import DataPointsAggregator, resolve
from .core.catalog import ProviderCatalog
from .core.config_store import EngineSettings
from .core.errors import (
    ConflictError,
    IntegrationEngineError,
    ServerError,
    Step,
    Unauthenticated,
)
from .core.models import (
    ConnectionSummary,
    CredentialSet,
    DataPointsStats,
    DataPointsView,
    Integration,
    IntegrationStatus,
    Provider,
    ProviderCategory,
    SyncProgress,
)
from .core.persister import IntegrationPersister
from .core.poller import PollState, SyncProgressPoller
from .core.presenter import build_summary
from .core.session import SessionContext, require_session
from .core.store import IntegrationStore
from .core.validator import CredentialValidator, require_valid
from .providers.registry import get_adapter

logger = logging.getLogger(__name__)


def parse_integrations(body: Any) -> list[Integration]:
    """
    Parse the integrations list body.

    Raises:
        ServerError: If the body has no integrations list
    """
    records = body.get("integrations") if isinstance(body, dict) else None
    if not isinstance(records, list):
        raise ServerError("Integrations response is malformed")

    integrations = []
    for record in records:
        try:
            integrations.append(Integration.from_dict(record))
        except (AttributeError, KeyError, TypeError) as e:
            logger.warning(f"Skipping malformed integration record: {e}")
    return integrations


class IntegrationOrchestrator:
    """
    Operator-facing entry point for connecting and monitoring integrations.

    Usage:
        async with IntegrationOrchestrator(session) as engine:
            summary = await engine.connect("facebook_ads", credentials)
            progress = engine.current_progress(summary.integration.id)
    """

    def __init__(
        self,
        session: SessionContext,
        settings: EngineSettings | None = None,
        client: BackendClient | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            session: Operator session used for every backend call
            settings: Engine settings (defaults used if None)
            client: Optional backend client (created from settings if None)
        """
        self.session = session
        self.settings = settings or EngineSettings()

        # Track if we own the backend client (for cleanup)
        self._owns_client = client is None
        self.client = client or BackendClient(
            api_base_url=self.settings.api_base_url,
            timeout_seconds=self.settings.request_timeout,
            poll_timeout_seconds=self.settings.poll_timeout,
        )

        self.catalog = ProviderCatalog(self.client)
        self.validator = CredentialValidator(self.client)
        self.persister = IntegrationPersister(self.client)
        self.aggregator = DataPointsAggregator(self.client)
        self.store = IntegrationStore()
        self.poller = SyncProgressPoller(
            self.client,
            session,
            interval=self.settings.poll_interval,
            on_terminal=self._on_sync_finished,
        )
        self._stats: DataPointsStats | None = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def start(self) -> None:
        """
        Load integrations and stats, then start the sync progress poller.

        Raises:
            Unauthenticated: If there is no valid session
            IntegrationEngineError: If the integrations list cannot be loaded
        """
        require_session(self.session)
        await self.refresh_integrations()
        await self.refresh_data_points()
        await self.poller.start()
        logger.info(f"Integration engine started with {len(self.store.snapshot())} integrations")

    async def close(self) -> None:
        """Stop the poller and release the backend client if we created it."""
        await self.poller.close()
        if self._owns_client:
            await self.client.aclose()

    def _fail(self, error: IntegrationEngineError, step: Step) -> IntegrationEngineError:
        error.at_step(step)
        if isinstance(error, (ServerError, ConflictError)):
            logger.error(f"{error.step.value.capitalize()} failed: {error}")
        return error

    # ===== CATALOG & LIST METHODS =====

    async def list_providers(
        self, category: str | ProviderCategory | None = None
    ) -> tuple[Provider, ...]:
        """List connectable providers, optionally for one category."""
        try:
            return await self.catalog.list_providers(self.session, category)
        except IntegrationEngineError as e:
            raise self._fail(e, Step.LOADING)

    async def _load_integrations(self) -> tuple[Integration, ...]:
        seq = self.store.next_seq()
        body = await self.client.get_integrations(self.session)
        self.store.replace_all(parse_integrations(body), seq)
        integrations = self.store.snapshot()
        for integration in integrations:
            if (
                integration.status is IntegrationStatus.SYNCING
                and self.poller.state(integration.id) in (None, PollState.IDLE)
            ):
                self.poller.track(integration.id)
        return integrations

    async def refresh_integrations(self) -> tuple[Integration, ...]:
        """Re-read the integration list from the backend."""
        try:
            return await self._load_integrations()
        except IntegrationEngineError as e:
            raise self._fail(e, Step.LOADING)

    async def refresh_data_points(self) -> bool:
        """
        Re-query data-point stats.

        A failure is logged and clears the confirmed stats so that counts
        fall back to estimates.

        Returns:
            True if confirmed stats were loaded

        Raises:
            Unauthenticated: If the session was rejected
        """
        try:
            self._stats = await self.aggregator.get_data_points_stats(self.session)
            return True
        except Unauthenticated:
            raise
        except IntegrationEngineError as e:
            logger.warning(f"Data points stats unavailable, using estimates: {e}")
            self._stats = None
            return False

    # ===== CONNECT FLOW METHODS =====

    async def connect(
        self,
        provider_id: str,
        credentials: CredentialSet,
        name: str | None = None,
    ) -> ConnectionSummary:
        """
        Test, save and summarize a new connection.

        Each step runs only after the previous one succeeded. The saved
        record goes into the integration list straight away and its sync
        job is tracked by the poller. Credentials are cleared once the
        connection is made; on failure they are kept so the form can be
        corrected and resubmitted.

        Args:
            provider_id: Provider identifier (e.g., "facebook_ads")
            credentials: User-entered credentials
            name: Integration name (provider default if None)

        Returns:
            ConnectionSummary for the new connection

        Raises:
            IntegrationEngineError: With ``step`` set to testing or saving
        """
        require_session(self.session)

        try:
            adapter = get_adapter(provider_id)
            name = name or adapter.default_integration_name()
            test_result = await self.validator.test_credentials(
                self.session, provider_id, credentials, name
            )
            require_valid(test_result)
        except IntegrationEngineError as e:
            raise self._fail(e, Step.TESTING)

        seq = self.store.next_seq()
        try:
            save_result = await self.persister.save_integration(
                self.session, provider_id, credentials, name, test_result
            )
            integration = save_result.integration
            self.store.upsert(integration, seq)
            # The backend starts the sync job on save
            self.poller.track(integration.id)
            probe_result = await self.persister.probe_capability(
                self.session, provider_id, credentials, name
            )
        except IntegrationEngineError as e:
            raise self._fail(e, Step.SAVING)

        summary = build_summary(adapter, test_result, save_result, probe_result)
        await self.refresh_data_points()

        credentials.clear()
        return summary

    async def disconnect(self, integration_id: str) -> None:
        """
        Delete an integration and drop its local state.

        Raises:
            IntegrationEngineError: With ``step`` set to disconnecting
        """
        require_session(self.session)
        seq = self.store.next_seq()

        try:
            await self.client.delete_integration(self.session, integration_id)
        except IntegrationEngineError as e:
            raise self._fail(e, Step.DISCONNECTING)

        self.store.remove(integration_id, seq)
        self.poller.forget(integration_id)
        logger.info(f"Disconnected integration {integration_id}")
        await self.refresh_data_points()

    async def _on_sync_finished(self, integration_id: str, progress: SyncProgress) -> None:
        try:
            await self._load_integrations()
        except IntegrationEngineError as e:
            raise e.at_step(Step.SYNCING)
        await self.refresh_data_points()

    # ===== STATUS METHODS =====

    def current_integrations(self) -> tuple[Integration, ...]:
        return self.store.snapshot()

    def current_progress(self, integration_id: str) -> SyncProgress | None:
        """Latest sync progress, or None for an unknown or disconnected id."""
        if integration_id not in self.store:
            return None
        return self.poller.progress(integration_id)

    def current_data_points(self) -> DataPointsView:
        integrations = self.store.snapshot()
        progress = {}
        for integration in integrations:
            snapshot = self.poller.progress(integration.id)
            if snapshot is not None:
                progress[integration.id] = snapshot
        return resolve(integrations, progress, self._stats)
