"""Tests for the provider catalog."""

import pytest

from integration_engine.core.catalog import ProviderCatalog, parse_providers
from integration_engine.core.errors import CatalogUnavailable, ServerError, Unauthenticated
from integration_engine.core.models import ProviderCategory


@pytest.fixture
def catalog_body():
    """Create a sample catalog response."""
    return {
        "providers": {
            "ad_intelligence": [
                {"provider": "facebook_ads", "name": "Facebook Ads", "capabilities": ["campaigns"]},
                {"provider": "google_ads", "name": "Google Ads", "setup_complexity": "moderate"},
            ],
            "customer_intelligence": [
                {"provider": "hubspot", "name": "HubSpot"},
                {"provider": "gohighlevel", "name": "GoHighLevel"},
            ],
        }
    }


def test_parse_providers(catalog_body):
    """Test catalog entries become Providers in backend order."""
    providers = parse_providers(catalog_body)

    assert [p.id for p in providers] == ["facebook_ads", "google_ads", "hubspot", "gohighlevel"]
    assert providers[2].category == ProviderCategory.CUSTOMER_INTELLIGENCE


def test_parse_providers_skips_malformed_entries(caplog):
    """Test bad entries are skipped with a warning."""
    body = {
        "providers": {
            "ad_intelligence": [
                {"name": "No id"},
                {"provider": "facebook_ads", "name": "Facebook Ads"},
                {"provider": "facebook_ads", "name": "Duplicate"},
                {"provider": "x", "setup_complexity": "impossible"},
            ],
            "unknown_category": [{"provider": "y"}],
            "behavior_intelligence": "not a list",
        }
    }

    providers = parse_providers(body)

    assert [p.id for p in providers] == ["facebook_ads"]
    assert providers[0].name == "Facebook Ads"
    assert "Skipping" in caplog.text


@pytest.mark.parametrize("body", [None, [], {}, {"providers": []}])
def test_parse_providers_malformed_body(body):
    """Test a body without a providers mapping raises ServerError."""
    with pytest.raises(ServerError):
        parse_providers(body)


@pytest.mark.asyncio
async def test_list_providers(mock_client, session, catalog_body):
    """Test listing every provider."""
    mock_client.get_providers.return_value = catalog_body

    providers = await ProviderCatalog(mock_client).list_providers(session)

    assert isinstance(providers, tuple)
    assert len(providers) == 4
    mock_client.get_providers.assert_awaited_once_with(session)


@pytest.mark.asyncio
async def test_list_providers_by_category(mock_client, session, catalog_body):
    """Test filtering by category."""
    mock_client.get_providers.return_value = catalog_body
    catalog = ProviderCatalog(mock_client)

    crm = await catalog.list_providers(session, "customer_intelligence")
    behavior = await catalog.list_providers(session, ProviderCategory.BEHAVIOR_INTELLIGENCE)

    assert [p.id for p in crm] == ["hubspot", "gohighlevel"]
    assert behavior == ()


@pytest.mark.asyncio
async def test_list_providers_unknown_category(mock_client, session):
    """Test an unknown category raises ValueError before any request."""
    with pytest.raises(ValueError):
        await ProviderCatalog(mock_client).list_providers(session, "social")

    mock_client.get_providers.assert_not_called()


@pytest.mark.asyncio
async def test_list_providers_empty_catalog(mock_client, session):
    """Test an empty catalog raises CatalogUnavailable, no hardcoded fallback."""
    mock_client.get_providers.return_value = {"providers": {}}

    with pytest.raises(CatalogUnavailable):
        await ProviderCatalog(mock_client).list_providers(session)


@pytest.mark.asyncio
async def test_list_providers_requires_session(mock_client):
    """Test a missing session fails before any request."""
    with pytest.raises(Unauthenticated):
        await ProviderCatalog(mock_client).list_providers(None)

    mock_client.get_providers.assert_not_called()
