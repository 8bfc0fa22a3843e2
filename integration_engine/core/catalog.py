"""Provider catalog backed by the integrations providers endpoint."""

import logging
from typing import Any

from integration_engine.client.backend_client import BackendClient
from .errors import CatalogUnavailable, ServerError
from .models import Provider, ProviderCategory
from .session import SessionContext, require_session

logger = logging.getLogger(__name__)


def parse_providers(body: Any) -> list[Provider]:
    """
    Parse the catalog body into Provider records.

    Entries that cannot be parsed are skipped with a warning so a single bad
    entry does not hide the rest of the catalog.

    Args:
        body: Response body, expected as {"providers": {category: [entry, ...]}}

    Returns:
        Providers in backend order

    Raises:
        ServerError: If the body does not have the expected shape
    """
    if not isinstance(body, dict) or not isinstance(body.get("providers"), dict):
        raise ServerError("Provider catalog response is malformed")

    providers: list[Provider] = []
    seen: set[str] = set()

    for category, entries in body["providers"].items():
        if not isinstance(entries, list):
            logger.warning(f"Skipping catalog category '{category}': expected a list")
            continue
        for entry in entries:
            try:
                provider = Provider.from_dict(entry, category=category)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed provider in '{category}': {e}")
                continue
            if provider.id in seen:
                logger.debug(f"Duplicate provider '{provider.id}' in catalog, keeping first")
                continue
            seen.add(provider.id)
            providers.append(provider)

    return providers


class ProviderCatalog:
    """Reads the list of connectable providers from the backend."""

    def __init__(self, client: BackendClient):
        self.client = client

    async def list_providers(
        self,
        session: SessionContext | None,
        category: str | ProviderCategory | None = None,
    ) -> tuple[Provider, ...]:
        """
        List connectable providers.

        Args:
            session: Caller session
            category: Optional category filter (e.g., "ad_intelligence")

        Returns:
            Tuple of providers, filtered by category when given

        Raises:
            ValueError: If category is not a known category
            CatalogUnavailable: If the backend returns no providers
        """
        require_session(session)

        wanted = None
        if category is not None:
            wanted = category if isinstance(category, ProviderCategory) else ProviderCategory(category)

        body = await self.client.get_providers(session)
        providers = parse_providers(body)

        if not providers:
            raise CatalogUnavailable("The backend returned no connectable providers.")

        logger.info(f"Loaded {len(providers)} providers from catalog")

        if wanted is not None:
            providers = [p for p in providers if p.category is wanted]

        return tuple(providers)
