"""Core components for the Integration Engine."""

from .models import (
    ProviderCategory,
    SetupComplexity,
    IntegrationStatus,
    SyncStatus,
    PermissionLevel,
    DataPointsSource,
    Provider,
    CredentialSet,
    CredentialTestResult,
    Integration,
    Phase,
    SyncProgress,
    NextSteps,
    ProbeResult,
    SaveResult,
    ConnectionSummary,
    DataPointsStats,
    DataPointsCount,
    DataPointsView,
)
from .errors import (
    Step,
    IntegrationEngineError,
    ValidationError,
    InvalidCredentials,
    NetworkError,
    Timeout,
    ServerError,
    ConflictError,
    Unauthenticated,
    CatalogUnavailable,
    AdapterNotFoundError,
    ConfigError,
)
from .session import SessionContext, require_session
from .config_store import (
    EngineSettings,
    get_base_dir,
    config_path,
    save_json,
    load_json,
    load_settings,
    save_settings,
    save_session,
    load_session,
    clear_session,
)

__all__ = [
    "ProviderCategory",
    "SetupComplexity",
    "IntegrationStatus",
    "SyncStatus",
    "PermissionLevel",
    "DataPointsSource",
    "Provider",
    "CredentialSet",
    "CredentialTestResult",
    "Integration",
    "Phase",
    "SyncProgress",
    "NextSteps",
    "ProbeResult",
    "SaveResult",
    "ConnectionSummary",
    "DataPointsStats",
    "DataPointsCount",
    "DataPointsView",
    "Step",
    "IntegrationEngineError",
    "ValidationError",
    "InvalidCredentials",
    "NetworkError",
    "Timeout",
    "ServerError",
    "ConflictError",
    "Unauthenticated",
    "CatalogUnavailable",
    "AdapterNotFoundError",
    "ConfigError",
    "SessionContext",
    "require_session",
    "EngineSettings",
    "get_base_dir",
    "config_path",
    "save_json",
    "load_json",
    "load_settings",
    "save_settings",
    "save_session",
    "load_session",
    "clear_session",
]
