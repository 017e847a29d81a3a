"""
Image Proxy Server

FastAPI app that serves CMS image blocks through /image-proxy.

Run:
    cd backend
    uvicorn main:app --port 8000
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from image_proxy import (
    CmsClient,
    ImageGateway,
    ImageProxyConfig,
    SignedUrlCache,
    SignedUrlResolver,
    router as image_proxy_router,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(config: Optional[ImageProxyConfig] = None) -> FastAPI:
    """
    Build the app.

    The cache, clients, resolver and gateway are created once per process in
    the lifespan and stored on app.state.
    """
    config = config or ImageProxyConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not config.notion_token:
            logger.error("[ImageProxy] NOTION_TOKEN is not set; every block will be 404")

        url_cache = SignedUrlCache(
            ttl_seconds=config.url_ttl_seconds,
            max_entries=config.cache_max_entries,
        )
        cms_http = httpx.AsyncClient(timeout=config.cms_timeout)
        asset_http = httpx.AsyncClient(timeout=config.fetch_timeout, follow_redirects=True)

        cms_client = CmsClient(
            config.notion_token,
            http_client=cms_http,
            api_base=config.notion_api_base,
            notion_version=config.notion_version,
        )
        resolver = SignedUrlResolver(cms_client, url_cache, coalesce=config.coalesce_resolves)

        app.state.config = config
        app.state.url_cache = url_cache
        app.state.image_gateway = ImageGateway(
            resolver,
            asset_http,
            fetch_timeout=config.fetch_timeout,
            user_agent=config.user_agent,
            max_width=config.max_width,
            default_quality=config.default_quality,
            min_quality=config.min_quality,
            max_quality=config.max_quality,
        )
        logger.info(
            f"[ImageProxy] Ready (url ttl {config.url_ttl_seconds}s, "
            f"max {config.cache_max_entries} entries, coalesce={config.coalesce_resolves})"
        )
        try:
            yield
        finally:
            await cms_http.aclose()
            await asset_http.aclose()

    app = FastAPI(title="Image Proxy", lifespan=lifespan)
    app.include_router(image_proxy_router)
    return app


app = create_app()
