"""GoHighLevel CRM adapter."""

from integration_engine.core.models import ProviderCategory
from .base import ProviderAdapter

GOHIGHLEVEL = ProviderAdapter(
    provider_id="gohighlevel",
    display_name="GoHighLevel",
    endpoint_slug="gohighlevel",
    category=ProviderCategory.CUSTOMER_INTELLIGENCE,
    account_field="location_id",
    min_secret_length=30,
    permission_paths=(
        ("contacts_access", "accessSummary.contacts_access"),
        ("location_access", "accessSummary.location_access"),
    ),
    warning_paths=("accessSummary.location_error",),
    default_name_suffix="CRM Integration",
)
