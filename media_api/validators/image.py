import warnings
from pathlib import Path

from loguru import logger
from PIL import Image

ALLOWED_FORMATS = {"jpeg", "png", "gif", "webp"}
MIN_DIMENSION = 1
MAX_DIMENSION = 20000
MAX_PIXELS = 178_956_970


def is_valid_image(path: Path, max_dimension: int = MAX_DIMENSION, max_pixels: int = MAX_PIXELS) -> bool:
    """Decode the image header with Pillow and check its dimensions and format.

    Corrupted files, unknown formats and decompression bombs are reported as
    invalid rather than raised. ``max_pixels`` caps width * height on top of
    the per-side ``max_dimension`` limit.
    """
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            with Image.open(path) as img:
                width, height = img.size
                image_format = (img.format or "").lower()
                img.verify()
    except Exception as exc:
        logger.debug("Image decode rejected path={} error={}", str(path), str(exc))
        return False

    if not width or not height:
        return False
    if not (MIN_DIMENSION <= width <= max_dimension and MIN_DIMENSION <= height <= max_dimension):
        logger.debug(
            "Image dimensions rejected path={} width={} height={} max={}",
            str(path),
            width,
            height,
            max_dimension,
        )
        return False
    if width * height > max_pixels:
        logger.debug(
            "Image pixel count rejected path={} pixels={} max={}", str(path), width * height, max_pixels
        )
        return False
    if image_format not in ALLOWED_FORMATS:
        logger.debug("Image format rejected path={} format={}", str(path), image_format)
        return False
    return True
