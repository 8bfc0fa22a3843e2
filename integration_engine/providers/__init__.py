"""Provider adapters for the platforms the engine can connect."""

from .base import ProviderAdapter
from .facebook import FACEBOOK_ADS, FACEBOOK_CONVERSIONS
from .gohighlevel import GOHIGHLEVEL
from .google import GOOGLE_ADS
from .hubspot import HUBSPOT
from .registry import get_adapter, list_adapters, register_adapter, reset_registry

__all__ = [
    "ProviderAdapter",
    "FACEBOOK_ADS",
    "FACEBOOK_CONVERSIONS",
    "GOOGLE_ADS",
    "GOHIGHLEVEL",
    "HUBSPOT",
    "get_adapter",
    "list_adapters",
    "register_adapter",
    "reset_registry",
]
