"""Core data models for the Integration Engine."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any


class ProviderCategory(Enum):
    """Category a connectable provider belongs to."""
    AD_INTELLIGENCE = "ad_intelligence"
    CUSTOMER_INTELLIGENCE = "customer_intelligence"
    BEHAVIOR_INTELLIGENCE = "behavior_intelligence"


class SetupComplexity(Enum):
    """How much effort a provider takes to connect."""
    SIMPLE = "simple"
    MODERATE = "moderate"
    ADVANCED = "advanced"


class IntegrationStatus(Enum):
    """Connection status of a persisted integration."""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    SYNCING = "syncing"
    ERROR = "error"


class SyncStatus(Enum):
    """Overall status of a backend sync job."""
    RUNNING = "running"
    PARTIAL = "partial"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in (SyncStatus.RUNNING, SyncStatus.PARTIAL)

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStatus.COMPLETED, SyncStatus.FAILED)


class PermissionLevel(Enum):
    """How much of a provider's capability surface a connection unlocks."""
    FULL = "full"
    BUSINESS = "business"
    LIMITED = "limited"


class DataPointsSource(Enum):
    """Where a data-point count came from, most authoritative first."""
    CONFIRMED = "confirmed"
    PHASE_ESTIMATE = "phase_estimate"
    CACHED_ESTIMATE = "cached_estimate"


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse an ISO-8601 timestamp from the backend.

    Args:
        value: String timestamp, datetime, or None

    Returns:
        datetime or None when the value is missing or unparseable
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Provider:
    """A connectable third-party platform listed by the backend catalog."""
    id: str
    name: str
    category: ProviderCategory
    capabilities: frozenset[str] = frozenset()
    setup_complexity: SetupComplexity = SetupComplexity.SIMPLE
    data_types: frozenset[str] = frozenset()
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert Provider to a dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "capabilities": sorted(self.capabilities),
            "setup_complexity": self.setup_complexity.value,
            "data_types": sorted(self.data_types),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], category: str | None = None) -> "Provider":
        """
        Create Provider from a catalog entry.

        Args:
            data: Provider entry as returned by the backend
            category: Category key the entry was listed under, used when the
                      entry does not carry its own category

        Raises:
            KeyError: If the entry has no id
            ValueError: If category or setup complexity are unknown
        """
        provider_id = data.get("id") or data["provider"]
        return cls(
            id=provider_id,
            name=data.get("name") or provider_id,
            category=ProviderCategory(data.get("category") or category),
            capabilities=frozenset(data.get("capabilities") or ()),
            setup_complexity=SetupComplexity(data.get("setup_complexity") or "simple"),
            data_types=frozenset(data.get("data_types") or ()),
            description=data.get("description") or "",
        )


class CredentialSet:
    """
    User-entered secrets for one connection attempt.

    Values are keyed by snake_case field name (``access_token``,
    ``ad_account_id``, ``property_id`` ...). The repr never shows values, and
    clear() drops them once the form that owns them is done.
    """

    def __init__(self, values: dict[str, str] | None = None, **kwargs: str):
        merged = dict(values or {})
        merged.update(kwargs)
        self._values = {
            key: value.strip() if isinstance(value, str) else value
            for key, value in merged.items()
            if value is not None
        }

    def get(self, key: str, default: str | None = None) -> str | None:
        value = self._values.get(key)
        if value in (None, ""):
            return default
        return value

    def fields(self) -> dict[str, str]:
        """Return a copy of the non-empty fields."""
        return {k: v for k, v in self._values.items() if v not in (None, "")}

    def clear(self) -> None:
        self._values = {}

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CredentialSet):
            return NotImplemented
        return self.fields() == other.fields()

    def __repr__(self) -> str:
        masked = ", ".join(f"{key}=***" for key in sorted(self.fields()))
        return f"CredentialSet({masked})"


@dataclass(frozen=True)
class CredentialTestResult:
    """Outcome of one credential test round trip."""
    valid: bool
    error: str | None = None
    permission_flags: dict[str, bool] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def missing_permissions(self) -> tuple[str, ...]:
        """Names of permission flags the server reported as not granted."""
        return tuple(name for name, granted in self.permission_flags.items() if not granted)

    @property
    def has_reduced_access(self) -> bool:
        return bool(self.missing_permissions or self.warnings)


@dataclass(frozen=True)
class Integration:
    """A persisted connection between a business account and one provider."""
    id: str
    provider: str
    name: str
    status: IntegrationStatus = IntegrationStatus.CONNECTED
    last_sync: datetime | None = None
    data_points_synced: int = 0
    health_score: int = 0
    integration_type: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    sync_frequency: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert Integration to a dictionary."""
        return {
            "id": self.id,
            "provider": self.provider,
            "name": self.name,
            "status": self.status.value,
            "last_sync": _format_timestamp(self.last_sync),
            "data_points_synced": self.data_points_synced,
            "health_score": self.health_score,
            "integration_type": self.integration_type,
            "created_at": _format_timestamp(self.created_at),
            "updated_at": _format_timestamp(self.updated_at),
            "sync_frequency": self.sync_frequency,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Integration":
        """
        Create Integration from a backend record.

        Unknown status strings are treated as ``error`` so a record the client
        does not understand is never shown as healthy.

        Raises:
            KeyError: If the record has no id or provider
        """
        try:
            status = IntegrationStatus(data.get("status") or "connected")
        except ValueError:
            status = IntegrationStatus.ERROR

        return cls(
            id=str(data["id"]),
            provider=data["provider"],
            name=data.get("name") or data["provider"],
            status=status,
            last_sync=parse_timestamp(data.get("last_sync")),
            data_points_synced=_as_int(data.get("data_points_synced")),
            health_score=_as_int(data.get("health_score")),
            integration_type=data.get("integration_type"),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            sync_frequency=data.get("sync_frequency"),
        )


@dataclass(frozen=True)
class Phase:
    """One named stage of a sync job."""
    type: str
    status: str
    progress_percentage: float = 0.0
    total_items: int | None = None
    processed_items: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class SyncProgress:
    """Snapshot of one integration's sync job, rebuilt on every poll."""
    overall_status: SyncStatus
    overall_progress: float = 0.0
    current_stage: str | None = None
    progress_message: str = ""
    phases: tuple[Phase, ...] = ()

    @property
    def processed_items(self) -> int | None:
        """Sum of processed items across phases, or None if no phase reports any."""
        counts = [p.processed_items for p in self.phases if p.processed_items is not None]
        if not counts:
            return None
        return sum(counts)

    def with_progress(self, value: float) -> "SyncProgress":
        return replace(self, overall_progress=value)


@dataclass(frozen=True)
class NextSteps:
    """Actionable follow-ups shown after a connection is made."""
    immediate: tuple[str, ...] = ()
    recommended: tuple[str, ...] = ()
    advanced: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "immediate": list(self.immediate),
            "recommended": list(self.recommended),
            "advanced": list(self.advanced),
        }


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of the optional analytics capability probe."""
    success: bool
    real_time_events: int = 0
    historical_events: int = 0
    conversion_events: int = 0
    errors: tuple[str, ...] = ()
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.success:
            data.update(
                real_time_events=self.real_time_events,
                historical_events=self.historical_events,
                conversion_events=self.conversion_events,
                errors=list(self.errors),
            )
        else:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class SaveResult:
    """Saved integration plus the capability report returned with it."""
    integration: Integration
    capabilities: tuple[str, ...] = ()
    limitations: tuple[str, ...] = ()
    permission_flags: dict[str, bool] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConnectionSummary:
    """One-shot report produced by a successful connect flow."""
    provider: str
    permission_level: PermissionLevel
    capabilities: tuple[str, ...] = ()
    limitations: tuple[str, ...] = ()
    next_steps: NextSteps = NextSteps()
    integration: Integration | None = None
    analytics_test: ProbeResult | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert ConnectionSummary to a dictionary."""
        data: dict[str, Any] = {
            "provider": self.provider,
            "permission_level": self.permission_level.value,
            "capabilities": list(self.capabilities),
            "limitations": list(self.limitations),
            "next_steps": self.next_steps.to_dict(),
        }
        if self.integration is not None:
            data["integration"] = self.integration.to_dict()
        if self.analytics_test is not None:
            data["analytics_test"] = self.analytics_test.to_dict()
        return data


@dataclass(frozen=True)
class DataPointsStats:
    """Authoritative data-point counts from the backend."""
    total: int
    breakdown_by_integration: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DataPointsStats":
        """
        Create DataPointsStats from the stats endpoint body.

        Raises:
            KeyError: If total_data_points is missing
        """
        breakdown = data.get("breakdown_by_integration") or {}
        return cls(
            total=_as_int(data["total_data_points"]),
            breakdown_by_integration={str(k): _as_int(v) for k, v in breakdown.items()},
        )


@dataclass(frozen=True)
class DataPointsCount:
    """A data-point count tagged with how authoritative it is."""
    value: int
    source: DataPointsSource

    @property
    def is_estimate(self) -> bool:
        return self.source is not DataPointsSource.CONFIRMED


@dataclass(frozen=True)
class DataPointsView:
    """Operator-facing data-point totals."""
    total: DataPointsCount
    by_integration: dict[str, DataPointsCount] = field(default_factory=dict)
