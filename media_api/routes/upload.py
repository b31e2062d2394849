from fastapi import APIRouter, File, UploadFile
from loguru import logger

from media_api.config import settings
from media_api.models.upload import DeleteResponse, ErrorResponse, UploadResponse
from media_api.services.rate_limit import rate_limit
from media_api.services.storage import delete_image, store_images

router = APIRouter(
    prefix="/api/upload",
    tags=["upload"],
    # One budget per client IP covers uploads and deletes alike.
    dependencies=[rate_limit(settings.upload_rate_limit, settings.upload_rate_window_seconds, "upload")],
)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post(
    "/images",
    response_model=UploadResponse,
    responses=_ERROR_RESPONSES,
)
async def upload_images(images: list[UploadFile] | None = File(default=None)) -> UploadResponse:
    files = images or []
    logger.info("Upload request file_count={}", len(files))

    stored = await store_images(files, settings.upload_path)
    for image in stored:
        logger.info(
            "Upload stored filename={} original_name={} size_bytes={} webp={}",
            image.filename,
            image.original_name,
            image.size,
            image.webp.filename,
        )
    return UploadResponse(
        message=f"{len(stored)} image(s) uploaded successfully",
        files=stored,
    )


@router.delete("/images/{filename:path}", response_model=DeleteResponse, responses=_ERROR_RESPONSES)
async def remove_image(filename: str) -> DeleteResponse:
    logger.info("Delete request filename={}", filename)
    await delete_image(filename, settings.upload_path)
    return DeleteResponse(message="Image deleted successfully")
