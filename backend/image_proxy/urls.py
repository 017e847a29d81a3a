"""
Proxy URL helpers

Build the stable /image-proxy/{blockId}/{fileName} path used in rendered
content instead of the short-lived signed URL.
"""

import re
from typing import Optional
from urllib.parse import quote, unquote, urlparse

DEFAULT_PREFIX = "/image-proxy"
MAX_FILE_NAME_LENGTH = 120

_CONTROL_WHITESPACE = re.compile(r"[\n\r\t]")


def sanitize_file_name(name: str) -> str:
    """Replace control whitespace and cap the length."""
    return _CONTROL_WHITESPACE.sub(" ", name)[:MAX_FILE_NAME_LENGTH]


def file_name_from_url(url: Optional[str]) -> Optional[str]:
    """Last decoded path segment of a URL, or None."""
    if not url:
        return None
    try:
        path = urlparse(url).path
    except ValueError:
        return None
    segments = [s for s in path.split("/") if s]
    if not segments:
        return None
    return unquote(segments[-1]) or None


def build_proxy_url(block_id: str, file_name: Optional[str] = None, prefix: str = DEFAULT_PREFIX) -> str:
    """
    Example:
        build_proxy_url("abc123", "cat photo.png") -> "/image-proxy/abc123/cat%20photo.png"
    """
    safe_name = sanitize_file_name(file_name or "image")
    return f"{prefix.rstrip('/')}/{quote(block_id, safe='')}/{quote(safe_name, safe='')}"
