"""Image transcoding for captured clipboard images.

Everything here works on Pillow images and returns PNG bytes. Decode and
encode problems surface as ``EncodeDecodeError``; ``transcode`` is the only
entry point that turns them into fallbacks.
"""
import io
import logging

from PIL import Image, UnidentifiedImageError

from clipvault.config import FULL_IMAGE_MAX_SIDE, RAW_IMAGE_LIMIT, THUMBNAIL_MAX_SIDE
from clipvault.exceptions import EncodeDecodeError

logger = logging.getLogger(__name__)

_DECODE_ERRORS = (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError)


def encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    try:
        img.save(buf, format="PNG")
    except (OSError, ValueError) as e:
        raise EncodeDecodeError(f"Failed to encode PNG: {e}") from e
    return buf.getvalue()


def decode_image(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except _DECODE_ERRORS as e:
        raise EncodeDecodeError(f"Failed to decode image: {e}") from e
    return img


def rgba_to_png(width: int, height: int, rgba: bytes) -> bytes:
    """Encode a raw RGBA pixel buffer losslessly as PNG."""
    if width <= 0 or height <= 0 or len(rgba) != width * height * 4:
        raise EncodeDecodeError(f"Pixel buffer of {len(rgba)} bytes does not match {width}x{height} RGBA")
    try:
        img = Image.frombytes("RGBA", (width, height), rgba)
    except ValueError as e:
        raise EncodeDecodeError(f"Failed to build image buffer: {e}") from e
    return encode_png(img)


def png_to_rgba(data: bytes) -> tuple[int, int, bytes]:
    img = decode_image(data).convert("RGBA")
    return img.width, img.height, img.tobytes()


def fit_within(size: tuple[int, int], max_side: int) -> tuple[int, int]:
    """Scale ``size`` so its longer side is at most ``max_side``, keeping aspect ratio."""
    width, height = size
    longer = max(width, height)
    if longer <= max_side:
        return width, height
    scale = max_side / longer
    return max(1, round(width * scale)), max(1, round(height * scale))


def _resize_to_fit(img: Image.Image, max_side: int) -> Image.Image:
    target = fit_within(img.size, max_side)
    if target == img.size:
        return img
    return img.resize(target, Image.Resampling.LANCZOS)


def make_thumbnail(data: bytes, max_side: int = THUMBNAIL_MAX_SIDE) -> bytes:
    img = decode_image(data)
    thumbnail = _resize_to_fit(img, max_side)
    encoded = encode_png(thumbnail)
    logger.info(
        "Created thumbnail: %dx%d -> %dx%d, %d bytes",
        img.width, img.height, thumbnail.width, thumbnail.height, len(encoded),
    )
    return encoded


def process_full_image(data: bytes, max_side: int = FULL_IMAGE_MAX_SIDE) -> bytes:
    img = decode_image(data)
    final = _resize_to_fit(img, max_side)
    encoded = encode_png(final)
    logger.info("Stored high-quality image: %dx%d -> %d bytes", final.width, final.height, len(encoded))
    return encoded


def transcode(width: int, height: int, rgba: bytes, store_original: bool) -> bytes:
    """Produce the bytes stored for a captured image. Never raises."""
    try:
        png = rgba_to_png(width, height, rgba)
    except EncodeDecodeError as e:
        logger.warning("%s; using raw clipboard bytes", e)
        png = rgba

    if store_original:
        try:
            return process_full_image(png)
        except EncodeDecodeError as e:
            logger.warning("%s; falling back to thumbnail", e)

    try:
        return make_thumbnail(png)
    except EncodeDecodeError as e:
        logger.warning("%s; storing raw bytes", e)
        return png[:RAW_IMAGE_LIMIT]
