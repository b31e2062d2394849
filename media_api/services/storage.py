import asyncio
import os
from contextlib import ExitStack
from pathlib import Path

from fastapi import UploadFile
from loguru import logger
from PIL import Image, ImageOps

from media_api.config import settings
from media_api.errors import (
    DeleteFailed,
    DirectoryCreateFailed,
    FileTooLarge,
    InvalidImage,
    InvalidSignature,
    MediaError,
    NoFilesProvided,
    NotFound,
    ProcessingFailed,
    TooManyFiles,
    UnsupportedMediaType,
    UploadRejected,
)
from media_api.models.upload import UploadedImage, WebpVariant
from media_api.services.asset_name import AssetName
from media_api.validators.image import is_valid_image
from media_api.validators.signature import has_image_signature

ALLOWED_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}


class UploadGuard:
    """Deletes the files it tracks unless :meth:`commit` was called."""

    def __init__(self) -> None:
        self._paths: list[Path] = []
        self._committed = False

    def track(self, path: Path) -> None:
        if path not in self._paths:
            self._paths.append(path)

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def commit(self) -> None:
        self._committed = True

    def release(self) -> None:
        for path in self._paths:
            try:
                path.unlink(missing_ok=True)
                logger.debug("Upload artifact removed path={}", str(path))
            except OSError as exc:
                logger.error("Upload cleanup failed path={} error={}", str(path), str(exc))
        self._paths.clear()

    def __enter__(self) -> "UploadGuard":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._committed:
            self.release()


def ensure_upload_dir(directory: Path) -> Path:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Upload directory unavailable directory={} error={}", str(directory), str(exc))
        raise DirectoryCreateFailed() from exc
    return directory


def check_declared_type(upload: UploadFile) -> None:
    if (upload.content_type or "").lower() not in ALLOWED_TYPES:
        raise UnsupportedMediaType()


async def read_limited(upload: UploadFile, max_bytes: int) -> bytes:
    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise FileTooLarge(
            f"File {upload.filename} exceeds the {max_bytes // (1024 * 1024)}MB upload limit"
        )
    return data


def _write_webp(source: Path, target: Path, max_width: int, quality: int, method: int) -> None:
    # Written next to the target first so a WebP original can be replaced in place.
    tmp_path = target.with_name(f".{target.name}.tmp")
    try:
        with Image.open(source) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if img.has_transparency_data else "RGB")
            if img.width > max_width:
                height = max(1, round(img.height * max_width / img.width))
                img = img.resize((max_width, height), Image.Resampling.LANCZOS)
            img.save(tmp_path, format="WEBP", quality=quality, method=method)
        os.replace(tmp_path, target)
    finally:
        tmp_path.unlink(missing_ok=True)


async def convert_to_webp(
    source: Path,
    target: Path,
    max_width: int = 1920,
    quality: int = 80,
    method: int = 6,
) -> None:
    await asyncio.to_thread(_write_webp, source, target, max_width, quality, method)


async def process_upload(upload: UploadFile, directory: Path, guard: UploadGuard) -> UploadedImage:
    original_name = upload.filename or ""
    check_declared_type(upload)
    data = await read_limited(upload, settings.max_file_size_bytes)

    name = AssetName.generate(original_name, upload.content_type)
    original_path = directory / name.filename
    guard.track(original_path)
    await asyncio.to_thread(original_path.write_bytes, data)
    logger.debug(
        "File saved filename={} original_name={} size_bytes={}",
        name.filename,
        original_name,
        len(data),
    )

    if not await asyncio.to_thread(has_image_signature, original_path):
        raise InvalidSignature(
            f"File {original_name} failed magic bytes validation. Invalid or potentially malicious file."
        )

    if not await asyncio.to_thread(
        is_valid_image, original_path, settings.max_image_dimension, settings.max_image_pixels
    ):
        raise InvalidImage(
            f"File {original_name} failed image validation. Corrupted or invalid image format."
        )

    webp_name = name.webp_sibling()
    webp_path = directory / webp_name.filename
    guard.track(webp_path)
    try:
        await convert_to_webp(
            original_path,
            webp_path,
            max_width=settings.webp_max_width,
            quality=settings.webp_quality,
            method=settings.webp_method,
        )
    except Exception as exc:
        logger.warning(
            "WebP conversion failed filename={} original_name={} error={}",
            name.filename,
            original_name,
            str(exc),
        )
        raise ProcessingFailed(
            f"Failed to process image {original_name}. File may be corrupted or in an unsupported format."
        ) from exc

    prefix = settings.public_url_prefix
    return UploadedImage(
        filename=name.filename,
        original_name=original_name,
        size=len(data),
        url=name.public_url(prefix),
        webp=WebpVariant(filename=webp_name.filename, url=webp_name.public_url(prefix)),
    )


async def store_images(uploads: list[UploadFile], directory: Path) -> list[UploadedImage]:
    if not uploads:
        raise NoFilesProvided()
    if len(uploads) > settings.max_files_per_request:
        raise TooManyFiles(f"A maximum of {settings.max_files_per_request} images can be uploaded at once")

    ensure_upload_dir(directory)
    with ExitStack() as stack:
        guards = [stack.enter_context(UploadGuard()) for _ in uploads]
        outcomes = await asyncio.gather(
            *(process_upload(upload, directory, guard) for upload, guard in zip(uploads, guards)),
            return_exceptions=True,
        )

        failures = [o for o in outcomes if isinstance(o, BaseException)]
        unexpected = [f for f in failures if not isinstance(f, MediaError)]
        if unexpected:
            logger.opt(exception=unexpected[0]).error(
                "Upload batch aborted file_count={} failures={}", len(uploads), len(failures)
            )
            raise unexpected[0]
        if failures:
            logger.warning(
                "Upload batch rejected file_count={} failures={} kinds={}",
                len(uploads),
                len(failures),
                [f.kind for f in failures],
            )
            raise UploadRejected(failures)

        for guard in guards:
            guard.commit()
    logger.info("Upload batch stored file_count={}", len(outcomes))
    return list(outcomes)


async def delete_image(filename: str, directory: Path) -> None:
    name = AssetName.parse(filename)
    original_path = name.resolve_in(directory)

    try:
        await asyncio.to_thread(original_path.unlink)
    except FileNotFoundError as exc:
        raise NotFound() from exc
    except OSError as exc:
        logger.error("Image delete failed filename={} error={}", name.filename, str(exc))
        raise DeleteFailed() from exc
    logger.info("Image deleted filename={}", name.filename)

    webp_path = name.webp_sibling().resolve_in(directory)
    try:
        await asyncio.to_thread(webp_path.unlink)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("WebP delete failed filename={} error={}", webp_path.name, str(exc))
