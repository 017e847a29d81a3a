"""
Signed URL Resolver

Turns a CMS block id into an asset URL that is valid right now.
Signed URLs expire upstream, so resolved URLs are cached for less than
their real lifetime and re-resolved after that.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .cms_client import CmsClient
from .errors import CmsLookupError, ConfigurationError
from .url_cache import SignedUrlCache

logger = logging.getLogger(__name__)

# Block kinds that carry a downloadable asset
ASSET_KINDS = ("image", "file", "pdf", "video")

# Reference variants: an upload ("file") or a plain link ("external")
REFERENCE_TYPES = ("file", "external")


def extract_asset_url(block: Dict[str, Any]) -> Optional[str]:
    """
    Pull the asset URL out of a block payload.

    Expected shape:
        {"type": "image", "image": {"type": "file", "file": {"url": "..."}}}

    Returns None for any kind or reference variant it does not know.
    """
    kind = block.get("type")
    if kind not in ASSET_KINDS:
        return None

    payload = block.get(kind)
    if not isinstance(payload, dict):
        return None

    reference = payload.get("type")
    if reference not in REFERENCE_TYPES:
        return None

    target = payload.get(reference)
    if not isinstance(target, dict):
        return None

    url = target.get("url")
    if isinstance(url, str) and url:
        return url
    return None


class SignedUrlResolver:
    """
    Cache-fronted block id -> signed URL lookup.

    resolve() never raises: every failure is logged and reported as None.

    Without coalescing, concurrent misses for one block each call the CMS
    and each write the cache. With coalesce=True they share one lookup.
    """

    def __init__(self, cms_client: CmsClient, cache: SignedUrlCache, coalesce: bool = False):
        self.cms_client = cms_client
        self.cache = cache
        self.coalesce = coalesce
        self._inflight: Dict[str, "asyncio.Future[Optional[str]]"] = {}

    async def resolve(self, block_id: str) -> Optional[str]:
        """
        Get a currently valid URL for a block.

        Returns:
            The signed URL, or None when the block can't be resolved.
        """
        if not block_id:
            return None

        entry = self.cache.get(block_id)
        if entry is not None:
            logger.debug(f"[Resolver] Cache hit: {block_id}")
            return entry.signed_url

        if not self.coalesce:
            return await self._resolve_uncached(block_id)

        pending = self._inflight.get(block_id)
        if pending is None:
            pending = asyncio.ensure_future(self._resolve_uncached(block_id))
            self._inflight[block_id] = pending
            pending.add_done_callback(lambda _: self._inflight.pop(block_id, None))
        else:
            logger.debug(f"[Resolver] Joining in-flight lookup: {block_id}")
        return await asyncio.shield(pending)

    async def _resolve_uncached(self, block_id: str) -> Optional[str]:
        started_at = self.cache.now()
        try:
            block = await self.cms_client.fetch_block(block_id)
        except ConfigurationError as e:
            logger.error(f"[Resolver] Configuration error: {e}")
            return None
        except CmsLookupError as e:
            logger.error(f"[Resolver] Lookup failed for {block_id}: {e}")
            return None
        except httpx.HTTPError as e:
            logger.error(f"[Resolver] CMS request failed for {block_id}: {e!r}")
            return None
        except Exception:
            logger.exception(f"[Resolver] Unexpected error resolving {block_id}")
            return None

        url = extract_asset_url(block)
        if not url:
            logger.warning(
                f"[Resolver] No asset URL in block {block_id} (type={block.get('type')!r})"
            )
            return None

        entry = self.cache.set(block_id, url, resolved_at=started_at)
        logger.info(f"[Resolver] Resolved {block_id}, cached until {entry.to_dict()['expires_at']}")
        return url
