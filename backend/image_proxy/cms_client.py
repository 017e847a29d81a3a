"""
CMS Block Client

Thin async wrapper over the Notion block lookup endpoint.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .config import NOTION_API_BASE, NOTION_VERSION
from .errors import CmsLookupError, ConfigurationError

logger = logging.getLogger(__name__)


class CmsClient:
    """
    Fetches block metadata from the CMS.

    Usage:
        client = CmsClient(token, http_client=httpx.AsyncClient())
        block = await client.fetch_block("abc123")
    """

    def __init__(
        self,
        token: Optional[str],
        http_client: Optional[httpx.AsyncClient] = None,
        api_base: str = NOTION_API_BASE,
        notion_version: str = NOTION_VERSION,
        timeout: float = 10.0,
    ):
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.notion_version = notion_version
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        """Close HTTP client if this instance created it."""
        if self._owns_client:
            await self.http_client.aclose()

    async def fetch_block(self, block_id: str) -> Dict[str, Any]:
        """
        Look up a block by id.

        Raises:
            ConfigurationError: no bearer token configured
            CmsLookupError: non-success status or a body that is not a JSON object
            httpx.HTTPError: transport failure
        """
        if not self.token:
            raise ConfigurationError("NOTION_TOKEN is not set", block_id=block_id)

        logger.debug(f"[CmsClient] Looking up block {block_id}")
        response = await self.http_client.get(
            f"{self.api_base}/blocks/{quote(block_id, safe='-')}",
            headers={
                "Authorization": f"Bearer {self.token}",
                "Notion-Version": self.notion_version,
                "Accept": "application/json",
            },
        )

        if not response.is_success:
            raise CmsLookupError(
                f"CMS API error: {response.status_code} {response.reason_phrase}",
                block_id=block_id,
                upstream_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CmsLookupError(f"Invalid JSON from CMS: {e}", block_id=block_id) from e

        if not isinstance(data, dict):
            raise CmsLookupError("Unexpected CMS response shape", block_id=block_id)
        return data
