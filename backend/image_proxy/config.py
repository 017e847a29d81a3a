"""
Image Proxy Configuration

All settings come from environment variables and are collected into a
single dataclass that the app builds once at startup.
"""

import os
from dataclasses import dataclass
from typing import Optional


NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

# Notion signed URLs live for about an hour; cached ones are dropped earlier.
DEFAULT_UPSTREAM_URL_LIFETIME_SECONDS = 60 * 60
DEFAULT_URL_TTL_SECONDS = 55 * 60

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ImageProxyConfig:
    """Settings for the image proxy."""
    # CMS
    notion_token: Optional[str] = None
    notion_api_base: str = NOTION_API_BASE
    notion_version: str = NOTION_VERSION
    cms_timeout: float = 10.0

    # Signed URL cache
    url_ttl_seconds: int = DEFAULT_URL_TTL_SECONDS
    upstream_url_lifetime_seconds: int = DEFAULT_UPSTREAM_URL_LIFETIME_SECONDS
    cache_max_entries: int = 5000
    coalesce_resolves: bool = False

    # Asset fetch
    fetch_timeout: float = 10.0
    user_agent: str = BROWSER_USER_AGENT

    # Transcoding
    max_width: int = 3840
    min_quality: int = 30
    max_quality: int = 95
    default_quality: int = 75

    def __post_init__(self):
        if self.url_ttl_seconds <= 0:
            raise ValueError("url_ttl_seconds must be positive")
        if self.url_ttl_seconds >= self.upstream_url_lifetime_seconds:
            raise ValueError(
                f"url_ttl_seconds ({self.url_ttl_seconds}) must be shorter than "
                f"upstream_url_lifetime_seconds ({self.upstream_url_lifetime_seconds})"
            )
        if not self.min_quality <= self.default_quality <= self.max_quality:
            raise ValueError("default_quality must lie within [min_quality, max_quality]")
        if self.max_width < 1:
            raise ValueError("max_width must be at least 1")

    @classmethod
    def from_env(cls) -> "ImageProxyConfig":
        """Build a config from the process environment."""
        return cls(
            notion_token=os.getenv("NOTION_TOKEN") or None,
            notion_api_base=os.getenv("NOTION_API_BASE", NOTION_API_BASE).rstrip("/"),
            notion_version=os.getenv("NOTION_VERSION", NOTION_VERSION),
            cms_timeout=_env_float("IMAGE_PROXY_CMS_TIMEOUT_SECONDS", 10.0),
            url_ttl_seconds=_env_int("IMAGE_PROXY_URL_TTL_SECONDS", DEFAULT_URL_TTL_SECONDS),
            upstream_url_lifetime_seconds=_env_int(
                "IMAGE_PROXY_UPSTREAM_URL_LIFETIME_SECONDS",
                DEFAULT_UPSTREAM_URL_LIFETIME_SECONDS,
            ),
            cache_max_entries=_env_int("IMAGE_PROXY_CACHE_MAX_ENTRIES", 5000),
            coalesce_resolves=_env_bool("IMAGE_PROXY_COALESCE"),
            fetch_timeout=_env_float("IMAGE_PROXY_FETCH_TIMEOUT_SECONDS", 10.0),
            max_width=_env_int("IMAGE_PROXY_MAX_WIDTH", 3840),
            default_quality=_env_int("IMAGE_PROXY_DEFAULT_QUALITY", 75),
        )
