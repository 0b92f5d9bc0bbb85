"""
Real-estate registry client.

One lookup per cadastral object:
- Exactly one outbound GET per call, no internal retry
- Configurable timeout
- HTTP 404 mapped to a not-found error, every other failure to a registry error
- Response flattened by RegistryNormalizer
"""

import httpx
from typing import Dict, Optional
from core.config import settings
from core.exceptions import (
    CadastralObjectNotFoundError,
    RegistryTransportError,
    RegistryResponseError
)
from ingestion.transformers.registry_normalizer import RegistryNormalizer
from schemas.cadastral import CadastralNumber, EnrichmentRecord
import logging

logger = logging.getLogger(__name__)


def default_headers() -> Dict[str, str]:
    """Browser-like headers; the registry rejects requests without them"""
    return {
        "User-Agent": settings.REGISTRY_USER_AGENT,
        "Accept": "*/*",
        "Accept-Encoding": "deflate",
        "Accept-Language": "ru-RU,ru;q=0.8",
        "Referer": settings.REGISTRY_REFERER,
        "sec-fetch-dest": "empty",
        "sec-fetch-mode": "cors",
        "sec-fetch-site": "same-origin",
    }


class RegistryClient:
    """
    Look up cadastral objects in the external registry.

    Attributes:
        registry_url: Search endpoint
        thematic_search_id: Fixed search-type query parameter
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        registry_url: Optional[str] = None,
        thematic_search_id: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        normalizer: Optional[RegistryNormalizer] = None
    ):
        self.registry_url = registry_url or settings.REGISTRY_URL
        self.thematic_search_id = thematic_search_id or settings.REGISTRY_THEMATIC_SEARCH_ID
        self.timeout = timeout if timeout is not None else settings.REGISTRY_TIMEOUT_SECONDS
        self.normalizer = normalizer or RegistryNormalizer()
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers=default_headers(),
                timeout=self.timeout,
                follow_redirects=True
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def fetch(self, cadastral_number: CadastralNumber) -> EnrichmentRecord:
        """
        Fetch and flatten the registry record for one object.

        Raises:
            CadastralObjectNotFoundError: registry answered 404
            RegistryTransportError: other HTTP error status, timeout or connection failure
            RegistryResponseError: body is not JSON or lacks the expected nesting
        """
        query = str(cadastral_number)
        params = {"query": query, "thematicSearchId": self.thematic_search_id}
        context = {"registry_url": self.registry_url, "cadastral_number": query}

        logger.debug(f"Registry lookup for {query}")

        try:
            response = await self._get_client().get(
                self.registry_url,
                params=params,
                timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise RegistryTransportError(
                f"Registry request timed out after {self.timeout} seconds",
                context={**context, "timeout": self.timeout},
                original_exception=e
            )
        except httpx.HTTPError as e:
            raise RegistryTransportError(
                "Registry request failed",
                context=context,
                original_exception=e
            )

        if response.status_code == 404:
            raise CadastralObjectNotFoundError(
                f"Registry has no object {query}",
                context={**context, "status_code": 404}
            )

        if response.is_error:
            raise RegistryTransportError(
                f"Registry returned HTTP {response.status_code}",
                context={
                    **context,
                    "status_code": response.status_code,
                    "response_body": response.text[:500]  # Truncate
                }
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise RegistryResponseError(
                "Failed to parse JSON response",
                context={**context, "response_body": response.text[:500]},
                original_exception=e
            )

        return self.normalizer.normalize(payload, cadastral_number=query)
