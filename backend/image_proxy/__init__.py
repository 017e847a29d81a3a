"""
Image Proxy Module

Serves images stored in the CMS through stable URLs.
Signed asset URLs from the CMS expire, so the proxy resolves them per block
id, caches them for less than their lifetime, and streams the asset back.

Features:
- In-memory signed URL cache with TTL and LRU eviction
- Accept-based format negotiation (AVIF > WebP > native)
- Optional resize and quality parameters
- Original bytes served when transcoding fails
"""

from .config import ImageProxyConfig
from .cms_client import CmsClient
from .gateway import ImageGateway, ProxyResult
from .resolver import SignedUrlResolver, extract_asset_url
from .routes_fastapi import router
from .url_cache import SignedUrlCache, CacheEntry
from .urls import build_proxy_url

__all__ = [
    "router",
    "ImageProxyConfig",
    "CmsClient",
    "ImageGateway",
    "ProxyResult",
    "SignedUrlResolver",
    "extract_asset_url",
    "SignedUrlCache",
    "CacheEntry",
    "build_proxy_url",
]
