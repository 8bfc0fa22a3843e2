"""Adapter registry dispatching provider ids to their ProviderAdapter."""

import logging

from integration_engine.core.errors import AdapterNotFoundError
from .base import ProviderAdapter
from .facebook import FACEBOOK_ADS, FACEBOOK_CONVERSIONS
from .gohighlevel import GOHIGHLEVEL
from .google import GOOGLE_ADS
from .hubspot import HUBSPOT

logger = logging.getLogger(__name__)

BUILTIN_ADAPTERS = (
    FACEBOOK_ADS,
    FACEBOOK_CONVERSIONS,
    GOOGLE_ADS,
    GOHIGHLEVEL,
    HUBSPOT,
)

# In-memory storage for registered adapters
_ADAPTERS: dict[str, ProviderAdapter] = {a.provider_id: a for a in BUILTIN_ADAPTERS}


def register_adapter(adapter: ProviderAdapter) -> ProviderAdapter:
    """
    Register an adapter for its provider id.

    Args:
        adapter: Adapter to register

    Returns:
        The registered adapter

    Note:
        If the provider id already has an adapter, it will be overwritten.
    """
    if adapter.provider_id in _ADAPTERS:
        logger.warning(f"Adapter for '{adapter.provider_id}' already exists. Overwriting.")

    _ADAPTERS[adapter.provider_id] = adapter
    logger.info(f"Registered adapter: {adapter.provider_id} ({adapter.display_name})")
    return adapter


def get_adapter(provider_id: str) -> ProviderAdapter:
    """
    Retrieve the adapter for a provider.

    Args:
        provider_id: Provider identifier (e.g., "facebook_ads")

    Returns:
        The ProviderAdapter for the given provider_id

    Raises:
        AdapterNotFoundError: If no adapter is registered for the provider
    """
    adapter = _ADAPTERS.get(provider_id.lower())
    if adapter is None:
        supported = ", ".join(sorted(_ADAPTERS))
        raise AdapterNotFoundError(
            f"No adapter available for provider '{provider_id}'. "
            f"Supported providers: {supported}"
        )
    return adapter


def list_adapters() -> list[ProviderAdapter]:
    """
    List all registered adapters.

    Returns:
        List of ProviderAdapter objects sorted by provider_id
    """
    return sorted(_ADAPTERS.values(), key=lambda a: a.provider_id)


def reset_registry() -> None:
    """
    Restore the registry to the built-in adapters.

    This is primarily intended for testing.
    """
    global _ADAPTERS
    _ADAPTERS = {a.provider_id: a for a in BUILTIN_ADAPTERS}
    logger.debug("Adapter registry reset")
