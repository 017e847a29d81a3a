"""
Image Transcoder

Re-encodes image bytes with Pillow:
- Format conversion (AVIF, WebP, PNG, JPEG)
- Resize to a target width, never enlarging
- Quality setting for lossy encoders
"""

import logging
from io import BytesIO
from typing import Optional

from PIL import Image, ImageOps

from .errors import TranscodeError
from .negotiation import DEFAULT_QUALITY, OutputFormat

logger = logging.getLogger(__name__)


def encoder_supports(fmt: OutputFormat) -> bool:
    """Whether the installed Pillow can write this format (AVIF needs libavif)."""
    Image.init()
    return fmt.pil_format in Image.SAVE


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _prepare_mode(img: Image.Image, fmt: OutputFormat) -> Image.Image:
    if fmt.pil_format == "JPEG":
        if _has_alpha(img):
            # White background for transparency
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[3])
            return background
        if img.mode != "RGB":
            return img.convert("RGB")
        return img

    if fmt.pil_format in ("WEBP", "AVIF"):
        if img.mode in ("RGB", "RGBA"):
            return img
        return img.convert("RGBA" if _has_alpha(img) else "RGB")

    # PNG keeps palette/greyscale modes
    if img.mode in ("CMYK", "YCbCr", "LAB", "HSV"):
        return img.convert("RGB")
    return img


def _resize(img: Image.Image, width: Optional[int]) -> Image.Image:
    if not width or width >= img.width:
        return img
    height = max(1, round(img.height * width / img.width))
    return img.resize((width, height), Image.Resampling.LANCZOS)


def transcode(
    data: bytes,
    fmt: OutputFormat,
    width: Optional[int] = None,
    quality: int = DEFAULT_QUALITY,
) -> bytes:
    """
    Decode `data` and encode it as `fmt`.

    Output is deterministic for identical input and options.

    Raises:
        TranscodeError: input can't be decoded or the encoder is unavailable
    """
    if not encoder_supports(fmt):
        raise TranscodeError(f"No encoder for {fmt.mime_type}")

    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            # Apply EXIF orientation before the metadata is dropped
            img = ImageOps.exif_transpose(img)
            original_size = img.size
            img = _resize(img, width)
            img = _prepare_mode(img, fmt)

            save_kwargs = {"format": fmt.pil_format}
            if fmt.pil_format in ("JPEG", "WEBP", "AVIF"):
                save_kwargs["quality"] = quality
            if fmt.pil_format == "WEBP":
                save_kwargs["method"] = 4  # Compression method (0-6)
            if fmt.pil_format in ("JPEG", "PNG"):
                save_kwargs["optimize"] = True

            output = BytesIO()
            img.save(output, **save_kwargs)
    except Exception as e:
        raise TranscodeError(f"Failed to transcode to {fmt.mime_type}: {e}") from e

    result = output.getvalue()
    logger.debug(
        f"[Transcoder] {original_size[0]}x{original_size[1]} -> {img.size[0]}x{img.size[1]} "
        f"{fmt.pil_format} q={quality} ({len(data)//1024}KB -> {len(result)//1024}KB)"
    )
    return result
