"""Google Ads & Analytics adapter."""

from integration_engine.core.models import ProviderCategory
from .base import ProviderAdapter

# property_id unlocks the GA4 analytics-events probe
GOOGLE_ADS = ProviderAdapter(
    provider_id="google_ads",
    display_name="Google Ads",
    endpoint_slug="google",
    category=ProviderCategory.AD_INTELLIGENCE,
    account_field="customer_id",
    probe_field="property_id",
    min_secret_length=50,
    permission_paths=(
        ("ads_access", "userInfo.has_ads_access"),
        ("analytics_access", "userInfo.has_analytics_access"),
    ),
    warning_paths=("userInfo.ads_access_error", "userInfo.analytics_access_error"),
)
