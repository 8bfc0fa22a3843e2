"""Tests for core data models."""

import pytest
from datetime import datetime, timezone
from dataclasses import FrozenInstanceError

from integration_engine.core.models import (
    ConnectionSummary,
    CredentialSet,
    CredentialTestResult,
    DataPointsCount,
    DataPointsSource,
    DataPointsStats,
    Integration,
    IntegrationStatus,
    NextSteps,
    PermissionLevel,
    Phase,
    ProbeResult,
    Provider,
    ProviderCategory,
    SetupComplexity,
    SyncProgress,
    SyncStatus,
    parse_timestamp,
)


def test_provider_from_catalog_entry():
    """Test Provider is built from a catalog entry and its category key."""
    provider = Provider.from_dict(
        {
            "provider": "facebook_ads",
            "name": "Facebook Ads",
            "capabilities": ["campaigns", "insights"],
            "setup_complexity": "moderate",
            "data_types": ["spend"],
        },
        category="ad_intelligence",
    )

    assert provider.id == "facebook_ads"
    assert provider.category == ProviderCategory.AD_INTELLIGENCE
    assert provider.capabilities == frozenset({"campaigns", "insights"})
    assert provider.setup_complexity == SetupComplexity.MODERATE
    assert provider.to_dict()["capabilities"] == ["campaigns", "insights"]


def test_provider_unknown_category_raises():
    """Test Provider rejects an unknown category."""
    with pytest.raises(ValueError):
        Provider.from_dict({"id": "x", "name": "X"}, category="not_a_category")


def test_provider_is_immutable():
    """Test Provider records are frozen."""
    provider = Provider(id="hubspot", name="HubSpot", category=ProviderCategory.CUSTOMER_INTELLIGENCE)
    with pytest.raises(FrozenInstanceError):
        provider.name = "Other"


def test_credential_set_strips_and_drops_empty():
    """Test CredentialSet trims values and ignores blanks."""
    creds = CredentialSet({"access_token": "  abc  ", "ad_account_id": ""}, pixel_id=None)

    assert creds.get("access_token") == "abc"
    assert "ad_account_id" not in creds
    assert "pixel_id" not in creds
    assert creds.fields() == {"access_token": "abc"}


def test_credential_set_repr_masks_values():
    """Test CredentialSet never shows secret values."""
    creds = CredentialSet(access_token="super-secret", ad_account_id="act_1")
    text = repr(creds)

    assert "super-secret" not in text
    assert "act_1" not in text
    assert "access_token=***" in text


def test_credential_set_clear():
    """Test clear() drops every value."""
    creds = CredentialSet(access_token="secret")
    creds.clear()

    assert creds.fields() == {}
    assert creds.get("access_token") is None


def test_credential_test_result_missing_permissions():
    """Test missing permissions are derived from false flags."""
    result = CredentialTestResult(
        valid=True,
        permission_flags={"ad_access": False, "pages_access": True},
    )

    assert result.missing_permissions == ("ad_access",)
    assert result.has_reduced_access is True


def test_integration_from_dict():
    """Test Integration parses backend records."""
    integration = Integration.from_dict({
        "id": 42,
        "provider": "google_ads",
        "name": "Google Ads - Main Account",
        "status": "syncing",
        "last_sync": "2024-05-01T10:00:00Z",
        "data_points_synced": "1500",
        "health_score": 90,
    })

    assert integration.id == "42"
    assert integration.status == IntegrationStatus.SYNCING
    assert integration.last_sync == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert integration.data_points_synced == 1500
    assert integration.to_dict()["last_sync"] == "2024-05-01T10:00:00+00:00"


def test_integration_unknown_status_is_error():
    """Test an unrecognized status is never shown as healthy."""
    integration = Integration.from_dict({"id": "1", "provider": "hubspot", "status": "weird"})
    assert integration.status == IntegrationStatus.ERROR


def test_parse_timestamp_handles_bad_values():
    """Test parse_timestamp returns None for missing or invalid input."""
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(12345) is None


def test_sync_status_flags():
    """Test active and terminal status properties."""
    assert SyncStatus.RUNNING.is_active
    assert SyncStatus.PARTIAL.is_active
    assert SyncStatus.COMPLETED.is_terminal
    assert SyncStatus.FAILED.is_terminal
    assert not SyncStatus.RUNNING.is_terminal


def test_sync_progress_processed_items():
    """Test processed items are summed across phases that report them."""
    progress = SyncProgress(
        overall_status=SyncStatus.RUNNING,
        phases=(
            Phase(type="campaigns", status="completed", processed_items=120),
            Phase(type="insights", status="running", processed_items=30),
            Phase(type="audiences", status="pending"),
        ),
    )
    assert progress.processed_items == 150

    empty = SyncProgress(overall_status=SyncStatus.RUNNING)
    assert empty.processed_items is None


def test_probe_result_to_dict():
    """Test probe results serialize like the connection modal expects."""
    ok = ProbeResult(success=True, real_time_events=3, historical_events=10, errors=("quota",))
    assert ok.to_dict() == {
        "success": True,
        "real_time_events": 3,
        "historical_events": 10,
        "conversion_events": 0,
        "errors": ["quota"],
    }

    failed = ProbeResult(success=False, error="Analytics test failed: boom")
    assert failed.to_dict() == {"success": False, "error": "Analytics test failed: boom"}


def test_connection_summary_to_dict():
    """Test ConnectionSummary serialization."""
    summary = ConnectionSummary(
        provider="hubspot",
        permission_level=PermissionLevel.BUSINESS,
        capabilities=("Contacts",),
        limitations=("Missing permission: deals access",),
        next_steps=NextSteps(immediate=("View synced data",)),
    )
    data = summary.to_dict()

    assert data["permission_level"] == "business"
    assert data["next_steps"] == {"immediate": ["View synced data"], "recommended": [], "advanced": []}
    assert "integration" not in data


def test_data_points_stats_from_dict():
    """Test stats parsing requires total_data_points."""
    stats = DataPointsStats.from_dict({
        "total_data_points": 900,
        "breakdown_by_integration": {1: 400, "2": "500"},
    })
    assert stats.total == 900
    assert stats.breakdown_by_integration == {"1": 400, "2": 500}

    with pytest.raises(KeyError):
        DataPointsStats.from_dict({"breakdown_by_integration": {}})


def test_data_points_count_is_estimate():
    """Test only confirmed counts are not estimates."""
    assert not DataPointsCount(1, DataPointsSource.CONFIRMED).is_estimate
    assert DataPointsCount(1, DataPointsSource.PHASE_ESTIMATE).is_estimate
    assert DataPointsCount(1, DataPointsSource.CACHED_ESTIMATE).is_estimate
