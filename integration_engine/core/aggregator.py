"""Data-point counts with tiered fallback estimates."""

import logging
from typing import Iterable, Mapping

from integration_engine.client.backend_client import BackendClient
from .errors import ServerError
from .models import (
    DataPointsCount,
    DataPointsSource,
    DataPointsStats,
    DataPointsView,
    Integration,
    SyncProgress,
)
from .session import SessionContext, require_session

logger = logging.getLogger(__name__)

# Most authoritative first
SOURCE_RANK = {
    DataPointsSource.CONFIRMED: 0,
    DataPointsSource.PHASE_ESTIMATE: 1,
    DataPointsSource.CACHED_ESTIMATE: 2,
}


def _count_for(
    integration: Integration,
    progress: SyncProgress | None,
    stats: DataPointsStats | None,
) -> DataPointsCount:
    if stats is not None and integration.id in stats.breakdown_by_integration:
        return DataPointsCount(stats.breakdown_by_integration[integration.id], DataPointsSource.CONFIRMED)

    if progress is not None and progress.processed_items is not None:
        return DataPointsCount(progress.processed_items, DataPointsSource.PHASE_ESTIMATE)

    return DataPointsCount(integration.data_points_synced, DataPointsSource.CACHED_ESTIMATE)


def resolve(
    integrations: Iterable[Integration],
    progress: Mapping[str, SyncProgress],
    stats: DataPointsStats | None,
) -> DataPointsView:
    """
    Combine confirmed stats and fallback estimates into one view.

    Each integration takes its count from the stats breakdown, then from the
    sum of its phases' processed items, then from its cached
    ``data_points_synced``. The total is the confirmed stats total when every
    integration is confirmed; otherwise it is the sum of per-integration
    counts tagged with the least authoritative tier used.

    Args:
        integrations: Current integrations
        progress: Latest sync progress by integration id
        stats: Confirmed stats, or None when unavailable

    Returns:
        DataPointsView
    """
    by_integration = {
        integration.id: _count_for(integration, progress.get(integration.id), stats)
        for integration in integrations
    }

    sources = {count.source for count in by_integration.values()}
    if stats is not None and sources <= {DataPointsSource.CONFIRMED}:
        return DataPointsView(
            total=DataPointsCount(stats.total, DataPointsSource.CONFIRMED),
            by_integration=by_integration,
        )

    weakest = max(sources, key=SOURCE_RANK.__getitem__, default=DataPointsSource.CACHED_ESTIMATE)
    total = sum(count.value for count in by_integration.values())
    return DataPointsView(total=DataPointsCount(total, weakest), by_integration=by_integration)


class DataPointsAggregator:
    """Reads authoritative data-point stats from the backend."""

    def __init__(self, client: BackendClient):
        self.client = client

    async def get_data_points_stats(self, session: SessionContext | None) -> DataPointsStats:
        """
        Fetch the data-point stats.

        Raises:
            ServerError: If the body has no total_data_points
        """
        require_session(session)
        body = await self.client.get_data_points_stats(session)

        if not isinstance(body, dict):
            raise ServerError("Data points stats response is malformed")
        try:
            stats = DataPointsStats.from_dict(body)
        except (AttributeError, KeyError) as e:
            raise ServerError(f"Data points stats response is missing {e}") from e

        logger.debug(
            f"Loaded data points stats: total={stats.total} "
            f"integrations={len(stats.breakdown_by_integration)}"
        )
        return stats
