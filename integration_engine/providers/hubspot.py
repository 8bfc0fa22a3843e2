"""HubSpot CRM adapter."""

from integration_engine.core.models import ProviderCategory
from .base import ProviderAdapter

# Private app tokens ("pat-na1-...") are about 44 characters
HUBSPOT = ProviderAdapter(
    provider_id="hubspot",
    display_name="HubSpot",
    endpoint_slug="hubspot",
    category=ProviderCategory.CUSTOMER_INTELLIGENCE,
    account_field="portal_id",
    min_secret_length=40,
    permission_paths=(
        ("contacts_access", "scopes.crm_objects_contacts_read"),
        ("deals_access", "scopes.crm_objects_deals_read"),
    ),
    secret_label="private app token",
)
