"""
Image Proxy API Routes

Provides endpoints for:
- Serving CMS image blocks (resolve, fetch, transcode)
- Signed URL cache statistics
- Cache management (cleanup, clear, forget one block)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Header, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .gateway import ImageGateway, ProxyResult
from .url_cache import SignedUrlCache

logger = logging.getLogger(__name__)

# ============================================
# Response Models
# ============================================


class CacheStatsResponse(BaseModel):
    """Signed URL cache statistics."""
    total_entries: int
    max_entries: int
    hits: int
    misses: int
    hit_rate: float
    ttl_minutes: float


class CacheOperationResponse(BaseModel):
    """Result of a cache management call."""
    success: bool
    removed_entries: int
    message: str


# ============================================
# Router
# ============================================

router = APIRouter(prefix="/image-proxy", tags=["Image Proxy"])


def _gateway(request: Request) -> ImageGateway:
    return request.app.state.image_gateway


def _url_cache(request: Request) -> SignedUrlCache:
    return request.app.state.url_cache


def _to_response(result: ProxyResult) -> Response:
    headers = dict(result.headers)
    media_type = headers.pop("Content-Type", None)
    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type=media_type,
        headers=headers,
    )


# ============================================
# Endpoints
# ============================================

@router.get("/stats", response_model=CacheStatsResponse)
async def get_cache_stats(request: Request):
    """Get signed URL cache statistics."""
    return _url_cache(request).stats()


@router.post("/cleanup", response_model=CacheOperationResponse)
async def cleanup_cache(request: Request):
    """
    Drop expired signed URLs.

    Expired entries are also skipped on read, so this only frees memory.
    """
    removed = _url_cache(request).cleanup_expired()
    return CacheOperationResponse(
        success=True,
        removed_entries=removed,
        message=f"Removed {removed} expired entries",
    )


@router.delete("/cache", response_model=CacheOperationResponse)
async def clear_cache(request: Request):
    """Forget every resolved URL; the next requests re-resolve from the CMS."""
    removed = _url_cache(request).clear()
    return CacheOperationResponse(
        success=True,
        removed_entries=removed,
        message="Cache cleared successfully",
    )


@router.delete("/cache/{block_id}", response_model=CacheOperationResponse)
async def forget_block(block_id: str, request: Request):
    """Forget one block's resolved URL."""
    removed = _url_cache(request).delete(block_id)
    if not removed:
        return JSONResponse(
            status_code=404,
            content={"success": False, "removed_entries": 0, "message": f"{block_id} is not cached"},
        )
    return CacheOperationResponse(success=True, removed_entries=1, message=f"Forgot {block_id}")


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    return JSONResponse(content={
        "status": "healthy",
        "service": "image-proxy",
        "cache_stats": _url_cache(request).stats(),
    })


@router.get("/{block_id}/{file_name}")
async def proxy_image(
    request: Request,
    block_id: str,
    file_name: str,
    w: Optional[str] = Query(None, description="Target width, clamped to [1, 3840]"),
    q: Optional[str] = Query(None, description="Quality, clamped to [30, 95]"),
    accept: Optional[str] = Header(None),
):
    """
    Serve a CMS image block.

    `file_name` only makes the URL readable and cache-friendly; lookup uses
    `block_id`.

    Example:
        GET /image-proxy/abc123/diagram.png?w=800&q=80
    """
    try:
        result = await _gateway(request).serve(block_id, accept=accept, width=w, quality=q)
    except Exception:
        logger.exception(f"[ImageProxy] Unhandled error for {block_id}/{file_name}")
        result = ProxyResult.error(500, "Internal server error")
    return _to_response(result)
