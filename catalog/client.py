"""
Async client for the library catalog search endpoint.
One title query per call, throttled so consecutive queries are spaced by a fixed delay.
"""

from typing import List, Optional

import httpx
from asyncio_throttle import Throttler
from pydantic import ValidationError
import structlog

from .models import CatalogSearchResult

logger = structlog.get_logger(__name__)


class CatalogSearchError(Exception):
    """Raised when a catalog query fails or returns an unusable response."""


class CatalogClient:
    """
    Catalog provider backed by the library's media search API.
    """

    def __init__(
        self,
        search_url: str,
        timeout: float = 30,
        request_delay: float = 0.5,
        headers: Optional[dict] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            search_url: Media search endpoint for one library
            timeout: Per-request timeout in seconds
            request_delay: Minimum spacing between consecutive queries in seconds
            headers: Extra request headers
            transport: Optional httpx transport (used by tests)
        """
        self.search_url = search_url
        self.request_delay = request_delay
        self.logger = logger.bind(component="catalog_client")
        # One query per period spaces consecutive requests by request_delay
        self.throttler = Throttler(rate_limit=1, period=request_delay) if request_delay > 0 else None
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers=headers or {},
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config, transport: Optional[httpx.AsyncBaseTransport] = None) -> "CatalogClient":
        """Create a client from application configuration."""
        return cls(
            search_url=config.catalog_search_url(),
            timeout=config.request_timeout,
            request_delay=config.catalog_request_delay,
            headers=config.get_headers(),
            transport=transport,
        )

    async def search(self, query: str) -> List[CatalogSearchResult]:
        """
        Search the catalog by title.

        Args:
            query: Title to search for (URL-encoded by httpx)

        Returns:
            Parsed results in provider order, empty when nothing matched

        Raises:
            CatalogSearchError: on timeout, transport error, non-2xx status or malformed body
        """
        if self.throttler:
            async with self.throttler:
                return await self._search(query)
        return await self._search(query)

    async def _search(self, query: str) -> List[CatalogSearchResult]:
        try:
            response = await self.client.get(self.search_url, params={"query": query})
            response.raise_for_status()
            payload = response.json()

        except httpx.TimeoutException as e:
            self.logger.warning("Catalog search timed out", query=query, error=str(e))
            raise CatalogSearchError(f"Catalog search timed out for '{query}'") from e

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            self.logger.warning("Catalog search failed", query=query, status_code=status_code)
            raise CatalogSearchError(f"Catalog search returned {status_code} for '{query}'") from e

        except httpx.HTTPError as e:
            self.logger.warning("Catalog request error", query=query, error=str(e))
            raise CatalogSearchError(f"Catalog request failed for '{query}': {e}") from e

        except ValueError as e:
            self.logger.warning("Catalog returned invalid JSON", query=query, error=str(e))
            raise CatalogSearchError(f"Catalog returned invalid JSON for '{query}'") from e

        if not isinstance(payload, dict):
            raise CatalogSearchError(f"Catalog returned an unexpected body for '{query}'")

        try:
            results = CatalogSearchResult.parse_items(payload)
        except ValidationError as e:
            self.logger.warning("Catalog returned malformed results",
                                query=query, errors=e.error_count())
            raise CatalogSearchError(f"Catalog returned malformed results for '{query}'") from e

        self.logger.debug("Catalog search completed", query=query, results=len(results))
        return results

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
