"""
Image proxy test configuration

Shared fixtures and helpers:
- FakeClock: controllable time source for the URL cache
- CMS / CDN mocks built on httpx.MockTransport (no network)
- Small in-memory images generated with Pillow
"""

import sys
from io import BytesIO
from pathlib import Path
from typing import Callable, Dict, List, Optional

import httpx
import pytest
from PIL import Image

# Add backend directory to the Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from image_proxy.cms_client import CmsClient
from image_proxy.gateway import ImageGateway
from image_proxy.resolver import SignedUrlResolver
from image_proxy.url_cache import SignedUrlCache


CMS_BASE = "https://cms.test/v1"
SIGNED_URL = "https://files.test/secure/abc123/photo.jpg?X-Amz-Signature=sig"


# ============================================
# Time
# ============================================

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def url_cache(clock):
    return SignedUrlCache(ttl_seconds=55 * 60, max_entries=100, clock=clock)


# ============================================
# Images
# ============================================

def make_image_bytes(fmt: str = "JPEG", size=(64, 32), mode: str = "RGB", color=(200, 40, 40)) -> bytes:
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 128)
    img = Image.new(mode, size, color)
    output = BytesIO()
    img.save(output, format=fmt)
    return output.getvalue()


def make_gif_bytes(frames: int = 2, size=(16, 16)) -> bytes:
    images = [Image.new("P", size, i * 40) for i in range(frames)]
    output = BytesIO()
    images[0].save(output, format="GIF", save_all=True, append_images=images[1:], duration=100, loop=0)
    return output.getvalue()


def open_image(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    return img


# ============================================
# CMS mock
# ============================================

def image_block(url: str = SIGNED_URL, kind: str = "image", reference: str = "file") -> Dict:
    """Block payload in the CMS shape."""
    return {
        "object": "block",
        "id": "abc123",
        "type": kind,
        kind: {
            "type": reference,
            reference: {"url": url},
        },
    }


class CmsMock:
    """
    Records block lookups and answers them from a handler.

    Usage:
        cms = CmsMock(lambda block_id: httpx.Response(200, json=image_block()))
        client = cms.client()
    """

    def __init__(self, respond: Callable[[str], httpx.Response]):
        self.respond = respond
        self.requests: List[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        block_id = request.url.path.rsplit("/", 1)[-1]
        return self.respond(block_id)

    def client(self, token: Optional[str] = "secret-token") -> CmsClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self._handle))
        return CmsClient(token, http_client=http_client, api_base=CMS_BASE)


@pytest.fixture
def cms():
    return CmsMock(lambda block_id: httpx.Response(200, json=image_block()))


@pytest.fixture
def resolver(cms, url_cache):
    return SignedUrlResolver(cms.client(), url_cache)


# ============================================
# CDN mock
# ============================================

def cdn_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def serving(data: bytes, content_type: Optional[str] = "image/jpeg") -> Callable[[httpx.Request], httpx.Response]:
    headers = {"content-type": content_type} if content_type else {}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=data, headers=headers)

    return handler


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes("JPEG", size=(64, 32))


@pytest.fixture
def make_gateway(resolver):
    """Factory: gateway over the mocked resolver with a chosen CDN handler."""

    def factory(handler, **kwargs) -> ImageGateway:
        return ImageGateway(resolver, cdn_client(handler), **kwargs)

    return factory


# ============================================
# Helper Functions
# ============================================

def assert_short_cache(result):
    """Error responses must only be cached briefly."""
    assert result.headers["Cache-Control"] == "public, s-maxage=60, max-age=60"
    assert result.headers["Vary"] == "Accept"


def assert_long_cache(result):
    """Successful responses are immutable for a year."""
    cache_control = result.headers["Cache-Control"]
    assert "immutable" in cache_control
    assert "max-age=31536000" in cache_control
    assert "stale-while-revalidate=2592000" in cache_control
    assert result.headers["Vary"] == "Accept"
    assert result.headers["Accept-CH"] == "DPR, Width, Viewport-Width"
