from pathlib import Path

from loguru import logger

HEADER_LENGTH = 12

JPEG_SIGNATURE = b"\xff\xd8\xff"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
GIF_SIGNATURE = b"GIF8"
RIFF_SIGNATURE = b"RIFF"
WEBP_MARKER = b"WEBP"


def matches_image_signature(header: bytes) -> bool:
    if header.startswith(JPEG_SIGNATURE):
        return True
    if header.startswith(PNG_SIGNATURE):
        return True
    if header.startswith(GIF_SIGNATURE):
        return True
    # RIFF container: bytes 4-7 hold the chunk size, the form type follows.
    return header[0:4] == RIFF_SIGNATURE and header[8:12] == WEBP_MARKER


def has_image_signature(path: Path) -> bool:
    """Check the leading bytes of ``path`` against the known image signatures.

    Returns ``False`` when the file cannot be read.
    """
    try:
        with open(path, "rb") as fh:
            header = fh.read(HEADER_LENGTH)
    except OSError as exc:
        logger.warning("Signature read failed path={} error={}", str(path), str(exc))
        return False
    return matches_image_signature(header)
