# src/services/sync_context.py

"""Explicitly constructed owner of the fetch client and query cache."""

import logging

from src.api.products_client import ProductsClient
from src.services.query_synchronizer import PageFetcher, QuerySynchronizer

logger = logging.getLogger("catalog_browser.context")


class SyncContext:
    """Created once at app start and handed to the pagination controller.

    Pass a *fetcher* to substitute the HTTP client (tests, alternate
    backends); the context only closes clients it created itself.
    """

    def __init__(
        self,
        fetcher: PageFetcher | None = None,
        synchronizer: QuerySynchronizer | None = None,
    ) -> None:
        self._owns_client = fetcher is None
        self.fetcher: PageFetcher = fetcher or ProductsClient()
        self.synchronizer = synchronizer or QuerySynchronizer(
            self.fetcher
        )

    def reset(self) -> None:
        """Drop all cached and in-flight queries."""
        self.synchronizer.reset()

    async def aclose(self) -> None:
        """Cancel outstanding fetches and close an owned HTTP client."""
        self.synchronizer.reset()
        if self._owns_client and isinstance(self.fetcher, ProductsClient):
            await self.fetcher.aclose()
        logger.debug("Sync context closed")
