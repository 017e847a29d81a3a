"""
Format Negotiation

Picks the output image format from the client's Accept header and
normalizes the w/q query parameters.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple


@dataclass(frozen=True)
class OutputFormat:
    """An encodable output format."""
    mime_type: str
    pil_format: str


AVIF = OutputFormat("image/avif", "AVIF")
WEBP = OutputFormat("image/webp", "WEBP")
PNG = OutputFormat("image/png", "PNG")
JPEG = OutputFormat("image/jpeg", "JPEG")

# Modern formats in order of preference; the first one the client accepts wins.
FORMAT_PREFERENCE: Tuple[OutputFormat, ...] = (AVIF, WEBP)

DEFAULT_SOURCE_CONTENT_TYPE = "image/jpeg"

# GIF would lose its animation, SVG is vector
PASSTHROUGH_CONTENT_TYPES = frozenset({"image/gif", "image/svg+xml"})

# CDNs often label uploaded images with a generic binary type
GENERIC_BINARY_CONTENT_TYPES = frozenset({"application/octet-stream", "binary/octet-stream"})

MIN_WIDTH = 1
MAX_WIDTH = 3840
MIN_QUALITY = 30
MAX_QUALITY = 95
DEFAULT_QUALITY = 75


def normalize_content_type(value: Optional[str]) -> str:
    """Strip parameters and lowercase; missing or generic binary types default to JPEG."""
    if not value:
        return DEFAULT_SOURCE_CONTENT_TYPE
    media_type = value.split(";", 1)[0].strip().lower()
    if not media_type or media_type in GENERIC_BINARY_CONTENT_TYPES:
        return DEFAULT_SOURCE_CONTENT_TYPE
    return media_type


def parse_accept(accept: Optional[str]) -> Dict[str, float]:
    """
    Parse an Accept header into {media_type: q}.

    Malformed q values count as 1.0. Wildcards are kept as-is.
    """
    result: Dict[str, float] = {}
    if not accept:
        return result

    for part in accept.split(","):
        pieces = [p.strip() for p in part.split(";")]
        media_type = pieces[0].lower()
        if not media_type:
            continue
        q = 1.0
        for param in pieces[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "q":
                try:
                    q = float(value.strip())
                except ValueError:
                    q = 1.0
        result[media_type] = max(q, result.get(media_type, 0.0))
    return result


def should_passthrough(source_content_type: str) -> bool:
    """Sources that must be served byte-for-byte."""
    content_type = normalize_content_type(source_content_type)
    if content_type in PASSTHROUGH_CONTENT_TYPES:
        return True
    # pdf / video / generic file blocks
    return not content_type.startswith("image/")


def native_format(source_content_type: str) -> OutputFormat:
    """PNG stays PNG; everything else becomes JPEG."""
    if normalize_content_type(source_content_type) == PNG.mime_type:
        return PNG
    return JPEG


def choose_format(
    accept: Optional[str],
    source_content_type: str,
    preference: Sequence[OutputFormat] = FORMAT_PREFERENCE,
) -> OutputFormat:
    """
    Pick the output format.

    Only explicitly listed types count: browsers send */* on every image
    request, which says nothing about AVIF or WebP support.
    """
    accepted = parse_accept(accept)
    for fmt in preference:
        if accepted.get(fmt.mime_type, 0.0) > 0:
            return fmt
    return native_format(source_content_type)


def _parse_int(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def clamp_width(value, max_width: int = MAX_WIDTH) -> Optional[int]:
    """Clamp w into [1, max_width]; None when absent or not an integer."""
    width = _parse_int(value)
    if width is None:
        return None
    return max(MIN_WIDTH, min(width, max_width))


def clamp_quality(
    value,
    default: int = DEFAULT_QUALITY,
    min_quality: int = MIN_QUALITY,
    max_quality: int = MAX_QUALITY,
) -> int:
    """Clamp q into [min_quality, max_quality]; default when absent or not an integer."""
    quality = _parse_int(value)
    if quality is None:
        return default
    return max(min_quality, min(quality, max_quality))
