"""Facebook Ads and Facebook Conversions API adapters."""

from integration_engine.core.models import ProviderCategory
from .base import ProviderAdapter

# Facebook Business tokens run well past 100 characters
FACEBOOK_MIN_TOKEN_LENGTH = 50

FACEBOOK_ADS = ProviderAdapter(
    provider_id="facebook_ads",
    display_name="Facebook Ads",
    endpoint_slug="facebook-ads",
    category=ProviderCategory.AD_INTELLIGENCE,
    account_field="ad_account_id",
    min_secret_length=FACEBOOK_MIN_TOKEN_LENGTH,
    permission_paths=(("ad_access", "userInfo.has_ad_access"),),
    warning_paths=("userInfo.ad_access_error",),
    secret_label="Business access token",
)

# A valid Conversions API response reports reduced access through "error"
FACEBOOK_CONVERSIONS = ProviderAdapter(
    provider_id="facebook_conversions",
    display_name="Facebook Conversions API",
    endpoint_slug="facebook-conversions",
    category=ProviderCategory.AD_INTELLIGENCE,
    account_field="pixel_id",
    min_secret_length=FACEBOOK_MIN_TOKEN_LENGTH,
    permission_paths=(("conversion_api_access", "conversionApiAccess"),),
    warning_paths=("error",),
)
