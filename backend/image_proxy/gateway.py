"""
Image Transcoding Gateway

Serves a CMS image block:
1. Resolves the block id to a signed URL
2. Fetches the bytes with a bounded timeout
3. Re-encodes them in the best format the client accepts
4. Falls back to the original bytes when re-encoding fails

Every outcome is a ProxyResult; nothing raises to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence, Tuple

import httpx

from .config import BROWSER_USER_AGENT
from .errors import (
    ImageProxyError,
    NotFoundError,
    TranscodeError,
    UpstreamFetchError,
    UpstreamTimeoutError,
)
from .negotiation import (
    DEFAULT_QUALITY,
    FORMAT_PREFERENCE,
    MAX_WIDTH,
    MAX_QUALITY,
    MIN_QUALITY,
    OutputFormat,
    choose_format,
    clamp_quality,
    clamp_width,
    normalize_content_type,
    should_passthrough,
)
from .resolver import SignedUrlResolver
from .transcoder import transcode

logger = logging.getLogger(__name__)

# ============================================
# Cache headers
# ============================================

SUCCESS_CACHE_CONTROL = (
    "public, s-maxage=31536000, max-age=31536000, immutable, stale-while-revalidate=2592000"
)
ERROR_CACHE_CONTROL = "public, s-maxage=60, max-age=60"
CLIENT_HINTS = "DPR, Width, Viewport-Width"


def success_headers(content_type: str) -> Dict[str, str]:
    return {
        "Content-Type": content_type,
        "Cache-Control": SUCCESS_CACHE_CONTROL,
        "Vary": "Accept",
        "Accept-CH": CLIENT_HINTS,
    }


def error_headers() -> Dict[str, str]:
    return {
        "Cache-Control": ERROR_CACHE_CONTROL,
        "Vary": "Accept",
    }


@dataclass
class ProxyResult:
    """What the HTTP layer sends back."""
    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("Content-Type")

    @classmethod
    def error(cls, status_code: int, message: str) -> "ProxyResult":
        headers = error_headers()
        headers["Content-Type"] = "text/plain; charset=utf-8"
        return cls(status_code=status_code, body=message.encode("utf-8"), headers=headers)


Transcoder = Callable[[bytes, OutputFormat, Optional[int], int], bytes]


class ImageGateway:
    """
    Resolve, fetch and transcode one image per call.

    Usage:
        gateway = ImageGateway(resolver, http_client)
        result = await gateway.serve("abc123", accept="image/avif,image/webp")
    """

    def __init__(
        self,
        resolver: SignedUrlResolver,
        http_client: httpx.AsyncClient,
        fetch_timeout: float = 10.0,
        user_agent: str = BROWSER_USER_AGENT,
        transcoder: Transcoder = transcode,
        preference: Sequence[OutputFormat] = FORMAT_PREFERENCE,
        max_width: int = MAX_WIDTH,
        default_quality: int = DEFAULT_QUALITY,
        min_quality: int = MIN_QUALITY,
        max_quality: int = MAX_QUALITY,
    ):
        self.resolver = resolver
        self.http_client = http_client
        self.fetch_timeout = fetch_timeout
        self.transcoder = transcoder
        self.preference = tuple(preference)
        self.max_width = max_width
        self.default_quality = default_quality
        self.min_quality = min_quality
        self.max_quality = max_quality

        # Some CDNs reject clients they don't recognize
        self.fetch_headers = {
            "User-Agent": user_agent,
            "Accept": "image/*,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def serve(
        self,
        block_id: str,
        accept: Optional[str] = None,
        width=None,
        quality=None,
    ) -> ProxyResult:
        """
        Produce the response for one proxy request.

        Args:
            block_id: CMS block id from the route path
            accept: Client Accept header
            width: Raw `w` query value, clamped to [1, max_width]
            quality: Raw `q` query value, clamped to [min_quality, max_quality]
        """
        try:
            return await self._serve(block_id, accept, width, quality)
        except ImageProxyError as e:
            return ProxyResult.error(e.status_code, e.public_message)
        except Exception:
            logger.exception(f"[ImageProxy] Unexpected error serving {block_id}")
            return ProxyResult.error(500, "Internal server error")

    async def _serve(self, block_id: str, accept: Optional[str], width, quality) -> ProxyResult:
        signed_url = await self.resolver.resolve(block_id)
        if not signed_url:
            logger.warning(f"[ImageProxy] Not found: {block_id}")
            raise NotFoundError(block_id=block_id)

        data, source_type = await self.fetch(signed_url, block_id)

        body, content_type = await self.render(
            data,
            source_type,
            accept,
            clamp_width(width, self.max_width),
            clamp_quality(quality, self.default_quality, self.min_quality, self.max_quality),
            block_id,
        )
        return ProxyResult(status_code=200, body=body, headers=success_headers(content_type))

    async def fetch(self, url: str, block_id: str = "") -> Tuple[bytes, str]:
        """
        Download the asset bytes.

        Returns:
            Tuple of (data, normalized content type)

        Raises:
            UpstreamTimeoutError: no complete response within fetch_timeout
            UpstreamFetchError: non-success status or any other failure
        """
        try:
            logger.info(f"[ImageProxy] Fetching {block_id}: {url[:60]}...")
            # httpx timeouts are per phase; wait_for caps the whole download
            response = await asyncio.wait_for(
                self.http_client.get(
                    url,
                    headers=self.fetch_headers,
                    timeout=self.fetch_timeout,
                    follow_redirects=True,
                ),
                self.fetch_timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.error(f"[ImageProxy] Timeout fetching {block_id}: {url[:60]}...")
            raise UpstreamTimeoutError(str(e), block_id=block_id) from e
        except Exception as e:
            logger.error(f"[ImageProxy] Fetch error for {block_id}: {e!r}")
            raise UpstreamFetchError(str(e), block_id=block_id) from e

        if not response.is_success:
            logger.error(
                f"[ImageProxy] HTTP error {response.status_code} {response.reason_phrase} "
                f"for {block_id}: {url[:60]}..."
            )
            raise UpstreamFetchError(
                f"Upstream status {response.status_code}",
                block_id=block_id,
                upstream_status=response.status_code,
            )

        return response.content, normalize_content_type(response.headers.get("content-type"))

    async def render(
        self,
        data: bytes,
        source_type: str,
        accept: Optional[str],
        width: Optional[int],
        quality: int,
        block_id: str = "",
    ) -> Tuple[bytes, str]:
        """
        Negotiate and transcode.

        Returns:
            Tuple of (body, content type). On TranscodeError this is the
            untouched source: a usable image beats an error response.
        """
        if should_passthrough(source_type):
            logger.debug(f"[ImageProxy] Passthrough {source_type} for {block_id}")
            return data, source_type

        fmt = choose_format(accept, source_type, self.preference)
        try:
            body = await asyncio.to_thread(self.transcoder, data, fmt, width, quality)
        except TranscodeError as e:
            logger.warning(f"[ImageProxy] Serving original for {block_id}: {e}")
            return data, source_type

        logger.info(
            f"[ImageProxy] Served {block_id} as {fmt.mime_type} "
            f"({len(data)} -> {len(body)} bytes)"
        )
        return body, fmt.mime_type
