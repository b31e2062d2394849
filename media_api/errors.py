from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class MediaError(Exception):
    kind = "MediaError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: str | None = None, *, error: str | None = None):
        self.message = message or self.default_message
        self.error = error or self.kind
        super().__init__(self.message)


class NoFilesProvided(MediaError):
    kind = "NoFilesProvided"
    default_message = "No images uploaded"


class TooManyFiles(MediaError):
    kind = "TooManyFiles"
    default_message = "Too many files in a single request"


class FileTooLarge(MediaError):
    kind = "FileTooLarge"
    default_message = "File exceeds the maximum upload size"


class UnsupportedMediaType(MediaError):
    kind = "UnsupportedMediaType"
    default_message = "Invalid file type. Only JPEG, PNG, GIF, and WebP images are allowed."


class InvalidSignature(MediaError):
    kind = "InvalidSignature"
    default_message = "File failed magic bytes validation"


class InvalidImage(MediaError):
    kind = "InvalidImage"
    default_message = "File failed image validation"


class ProcessingFailed(MediaError):
    kind = "ProcessingFailed"
    default_message = "Failed to process image"


class UploadRejected(MediaError):
    kind = "UploadRejected"
    default_message = "Failed to upload images"

    def __init__(self, failures: list[MediaError]):
        self.failures = failures
        super().__init__(
            failures[0].message if failures else None,
            error="; ".join(f"{f.kind}: {f.message}" for f in failures) or None,
        )


class InvalidFilename(MediaError):
    kind = "InvalidFilename"
    default_message = "Invalid filename format"


class InvalidPath(MediaError):
    kind = "InvalidPath"
    default_message = "Invalid file path"


class NotFound(MediaError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Image not found"


class DeleteFailed(MediaError):
    kind = "DeleteFailed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to delete image"


class DirectoryCreateFailed(MediaError):
    kind = "DirectoryCreateFailed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to create upload directory"


class RateLimited(MediaError):
    kind = "RateLimited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many upload attempts, try again later"

    def __init__(self, retry_after: int = 60):
        self.retry_after = retry_after
        super().__init__()


class Unauthorized(MediaError):
    kind = "Unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


def _error_body(message: str, error: str) -> dict:
    return {"success": False, "message": message, "error": error}


async def _media_error_handler(request: Request, exc: MediaError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.error),
        headers=headers,
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(
        "Unhandled error method={} path={}", request.method, request.url.path
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Internal server error", "InternalError"),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MediaError, _media_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
