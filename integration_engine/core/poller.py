"""Shared periodic polling of backend sync-job progress."""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from integration_engine.client.backend_client import BackendClient
from .errors import IntegrationEngineError, Unauthenticated
from .models import Phase, SyncProgress, SyncStatus, parse_timestamp
from .session import SessionContext

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0

STATUS_ALIASES = {
    "running": SyncStatus.RUNNING,
    "syncing": SyncStatus.RUNNING,
    "in_progress": SyncStatus.RUNNING,
    "pending": SyncStatus.RUNNING,
    "started": SyncStatus.RUNNING,
    "partial": SyncStatus.PARTIAL,
    "completed": SyncStatus.COMPLETED,
    "complete": SyncStatus.COMPLETED,
    "success": SyncStatus.COMPLETED,
    "failed": SyncStatus.FAILED,
    "error": SyncStatus.FAILED,
}

PROGRESS_KEYS = ("overall_progress", "progress", "percentage")
PHASE_PROGRESS_KEYS = ("progress_percentage", "progress", "percentage")

TerminalCallback = Callable[[str, SyncProgress], Awaitable[None]]


class PollState(Enum):
    """Per-integration poll state."""
    IDLE = "idle"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"


class MalformedProgress(ValueError):
    """Raised internally when a progress record cannot be read."""


def _percentage(data: dict[str, Any], keys: tuple[str, ...]) -> float | None:
    for key in keys:
        if key in data and data[key] is not None:
            value = data[key]
            if isinstance(value, bool):
                raise MalformedProgress(f"{key} is not a number")
            try:
                number = float(value)
            except (TypeError, ValueError):
                raise MalformedProgress(f"{key} is not a number: {value!r}")
            return min(max(number, 0.0), 100.0)
    return None


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _normalize_status(value: Any) -> SyncStatus:
    if not isinstance(value, str) or value.strip().lower() not in STATUS_ALIASES:
        raise MalformedProgress(f"Unknown sync status {value!r}")
    return STATUS_ALIASES[value.strip().lower()]


def _normalize_phase(raw: Any, type_hint: str | None = None) -> Phase:
    if not isinstance(raw, dict):
        raise MalformedProgress("Phase is not an object")

    phase_type = raw.get("type") or raw.get("phase") or type_hint
    if not phase_type:
        raise MalformedProgress("Phase has no type")

    return Phase(
        type=str(phase_type),
        status=str(raw.get("status") or "pending"),
        progress_percentage=_percentage(raw, PHASE_PROGRESS_KEYS) or 0.0,
        total_items=_optional_int(raw.get("total_items")),
        processed_items=_optional_int(raw.get("processed_items")),
        started_at=parse_timestamp(raw.get("started_at")),
        completed_at=parse_timestamp(raw.get("completed_at")),
        error_message=raw.get("error_message") or raw.get("error"),
    )


def _legacy_phases(results: dict[str, Any], status: SyncStatus) -> list[Phase]:
    """Turn a legacy ``results`` block of ``*_synced`` counters into phases."""
    phases = []
    for key, value in results.items():
        if not key.endswith("_synced"):
            continue
        done = status is SyncStatus.COMPLETED
        phases.append(
            Phase(
                type=key[: -len("_synced")],
                status="completed" if done else "running",
                progress_percentage=100.0 if done else 0.0,
                processed_items=_optional_int(value),
            )
        )
    return phases


def _parse_phases(raw: dict[str, Any], status: SyncStatus) -> list[Phase]:
    phases = raw.get("phases")
    if isinstance(phases, list):
        return [_normalize_phase(phase) for phase in phases]
    if isinstance(phases, dict):
        return [_normalize_phase(phase, type_hint=key) for key, phase in phases.items()]
    if phases is not None:
        raise MalformedProgress("phases is neither a list nor a mapping")

    results = raw.get("results")
    if isinstance(results, dict):
        return _legacy_phases(results, status)
    return []


def normalize_sync_progress(raw: Any) -> SyncProgress | None:
    """
    Normalize one integration's progress record.

    Accepts the shapes the backend has produced over time: status aliases,
    progress under several keys, phases as a list or a mapping keyed by
    phase type, and a legacy ``results`` block of counters.

    Args:
        raw: Progress record from the sync-progress endpoint

    Returns:
        SyncProgress, or None if the record is malformed
    """
    if not isinstance(raw, dict):
        return None

    try:
        status = _normalize_status(raw.get("overall_status") or raw.get("status"))
        phases = _parse_phases(raw, status)
        progress = _percentage(raw, PROGRESS_KEYS)
    except MalformedProgress as e:
        logger.debug(f"Malformed sync progress: {e}")
        return None

    if progress is None:
        if phases:
            progress = sum(p.progress_percentage for p in phases) / len(phases)
        else:
            progress = 0.0

    if status is SyncStatus.COMPLETED:
        progress = 100.0

    return SyncProgress(
        overall_status=status,
        overall_progress=progress,
        current_stage=raw.get("current_stage") or raw.get("current_phase"),
        progress_message=str(raw.get("progress_message") or raw.get("message") or ""),
        phases=tuple(phases),
    )


class SyncProgressPoller:
    """
    Polls sync progress for every integration with one shared request.

    A discovery tick runs once at start; after that the next tick starts
    ``interval`` seconds after the previous one finished, but only while at
    least one integration is polling. Any integration a tick reports as
    running or partial moves into polling, whoever started its sync. Ticks
    never overlap and no request is made after close().
    """

    def __init__(
        self,
        client: BackendClient,
        session: SessionContext,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_terminal: TerminalCallback | None = None,
    ):
        """
        Initialize the poller.

        Args:
            client: Backend client used for the sync-progress request
            session: Session used for every tick
            interval: Seconds between ticks while anything is polling
            on_terminal: Called once per integration when its sync reaches
                         completed or failed, before it returns to idle
        """
        self.client = client
        self.session = session
        self.interval = interval
        self.on_terminal = on_terminal
        self.running = False
        self._task: asyncio.Task | None = None
        self._wake = asyncio.Event()
        self._in_flight = False
        self._states: dict[str, PollState] = {}
        self._progress: dict[str, SyncProgress] = {}

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def has_active(self) -> bool:
        return any(state is PollState.POLLING for state in self._states.values())

    def state(self, integration_id: str) -> PollState | None:
        return self._states.get(integration_id)

    def progress(self, integration_id: str) -> SyncProgress | None:
        return self._progress.get(integration_id)

    def track(self, integration_id: str) -> None:
        """Start polling an integration whose sync job was just started."""
        self._states[integration_id] = PollState.POLLING
        self._wake.set()
        logger.debug(f"Tracking sync progress for integration {integration_id}")

    def forget(self, integration_id: str) -> None:
        """Drop all state for an integration."""
        self._states.pop(integration_id, None)
        self._progress.pop(integration_id, None)

    async def start(self) -> None:
        """Start the background poll loop."""
        if self.running:
            logger.warning("Sync progress poller is already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.debug(f"Sync progress poller started ({self.interval}s between ticks)")

    async def close(self) -> None:
        """Stop the poll loop and wait for it to finish."""
        self.running = False
        self._wake.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.debug("Sync progress poll task cancelled")
            self._task = None
        logger.debug("Sync progress poller stopped")

    async def _poll_loop(self) -> None:
        try:
            await self.poll_once(discover=True)

            while self.running:
                if not self.has_active:
                    self._wake.clear()
                    await self._wake.wait()
                    continue

                await asyncio.sleep(self.interval)
                if not self.running:
                    break
                await self.poll_once()
        except Unauthenticated as e:
            self.running = False
            logger.error(f"Stopping sync progress polling: {e}")

    async def poll_once(self, discover: bool = False) -> bool:
        """
        Run one tick.

        Args:
            discover: Also pick up integrations that are syncing but not yet
                      tracked

        Returns:
            True if a response was applied, False if the tick was skipped or
            failed

        Raises:
            Unauthenticated: If the session was rejected
        """
        if self._in_flight:
            logger.debug("Previous sync progress tick still in flight, skipping")
            return False

        self._in_flight = True
        try:
            try:
                body = await self.client.get_sync_progress(self.session)
            except Unauthenticated:
                raise
            except IntegrationEngineError as e:
                logger.warning(f"Sync progress tick failed, keeping last known state: {e}")
                return False

            records = body.get("sync_progress") if isinstance(body, dict) else None
            if not isinstance(records, dict):
                logger.warning("Sync progress response is malformed, keeping last known state")
                return False

            finished = self._apply(records, discover)
        finally:
            self._in_flight = False

        for integration_id, progress in finished:
            await self._finish(integration_id, progress)
        return True

    def _apply(self, records: dict[str, Any], discover: bool) -> list[tuple[str, SyncProgress]]:
        finished = []
        records = {str(integration_id): raw for integration_id, raw in records.items()}

        for integration_id, state in self._states.items():
            if state is PollState.POLLING and integration_id not in records:
                logger.debug(f"No sync progress reported for integration {integration_id}")

        for integration_id, raw in records.items():
            state = self._states.get(integration_id)
            progress = normalize_sync_progress(raw)

            if state is not PollState.POLLING:
                if progress is None:
                    continue
                if progress.overall_status.is_active:
                    self._states[integration_id] = PollState.POLLING
                    self._progress[integration_id] = progress
                    logger.info(f"Picked up running sync for integration {integration_id}")
                elif discover and state is None:
                    self._states[integration_id] = PollState.IDLE
                    self._progress[integration_id] = progress
                continue

            if progress is None:
                logger.warning(
                    f"Malformed sync progress for integration {integration_id}, keeping prior progress"
                )
                continue

            prior = self._progress.get(integration_id)
            if (
                prior is not None
                and progress.overall_status.is_active
                and prior.overall_status.is_active
                and progress.overall_progress < prior.overall_progress
            ):
                progress = progress.with_progress(prior.overall_progress)

            self._progress[integration_id] = progress

            if progress.overall_status is SyncStatus.COMPLETED:
                self._states[integration_id] = PollState.COMPLETED
                finished.append((integration_id, progress))
            elif progress.overall_status is SyncStatus.FAILED:
                self._states[integration_id] = PollState.FAILED
                finished.append((integration_id, progress))

        return finished

    async def _finish(self, integration_id: str, progress: SyncProgress) -> None:
        logger.info(
            f"Sync for integration {integration_id} {progress.overall_status.value}"
            + (f": {progress.progress_message}" if progress.progress_message else "")
        )
        if self.on_terminal is not None:
            try:
                await self.on_terminal(integration_id, progress)
            except Unauthenticated:
                raise
            except IntegrationEngineError as e:
                logger.warning(f"Could not refresh integration {integration_id} after sync: {e}")
        if integration_id in self._states:
            self._states[integration_id] = PollState.IDLE
