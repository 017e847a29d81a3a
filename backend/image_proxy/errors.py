"""
Image Proxy Errors

Every failure the proxy can hit maps onto one of these classes.
The HTTP layer turns them into a status code with short-lived cache headers.
"""

from typing import Optional


class ImageProxyError(Exception):
    """Base class for image proxy failures."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str = "", block_id: Optional[str] = None):
        super().__init__(message or self.public_message)
        self.block_id = block_id


class ConfigurationError(ImageProxyError):
    """Required configuration (e.g. the CMS token) is missing."""

    status_code = 404
    public_message = "Image not found"


class NotFoundError(ImageProxyError):
    """Block missing, unsupported kind, or no extractable URL."""

    status_code = 404
    public_message = "Image not found"


class CmsLookupError(ImageProxyError):
    """CMS answered the block lookup with a non-success status."""

    status_code = 404
    public_message = "Image not found"

    def __init__(self, message: str = "", block_id: Optional[str] = None, upstream_status: Optional[int] = None):
        super().__init__(message, block_id)
        self.upstream_status = upstream_status


class UpstreamTimeoutError(ImageProxyError):
    """Asset fetch did not finish within the timeout."""

    status_code = 504
    public_message = "Image download timed out"


class UpstreamFetchError(ImageProxyError):
    """Asset fetch failed for any reason other than a timeout."""

    status_code = 502
    public_message = "Image download failed"

    def __init__(self, message: str = "", block_id: Optional[str] = None, upstream_status: Optional[int] = None):
        super().__init__(message, block_id)
        self.upstream_status = upstream_status


class TranscodeError(ImageProxyError):
    """
    Image could not be decoded or re-encoded.

    Never surfaced to clients: the gateway serves the original bytes instead.
    """
