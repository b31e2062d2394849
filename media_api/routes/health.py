import os
import resource
import secrets
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

from fastapi import APIRouter, Depends, Header, Query
from loguru import logger

from media_api.config import settings
from media_api.errors import Unauthorized
from media_api.models.monitoring import HealthResponse, LogsResponse, MetricsResponse, UploadsStatus
from media_api.services.request_log import RequestLog, get_request_log

router = APIRouter(prefix="/api", tags=["monitoring"])

_STARTED_AT = time.monotonic()


async def require_admin(authorization: str | None = Header(default=None)) -> None:
    expected = settings.admin_api_token
    scheme, _, token = (authorization or "").partition(" ")
    if not expected or scheme.lower() != "bearer":
        raise Unauthorized()
    # Header values arrive latin-1 decoded; compare_digest only accepts ASCII str.
    if not secrets.compare_digest(token.encode(), expected.encode()):
        raise Unauthorized()


def _rss_mb() -> int:
    rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS, kilobytes elsewhere.
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return round(rss / divisor)


def _uploads_status(directory: Path) -> UploadsStatus:
    if not directory.is_dir():
        return UploadsStatus(directory_exists=False, writable=False, file_count=0)
    file_count = sum(1 for p in directory.iterdir() if p.is_file())
    return UploadsStatus(
        directory_exists=True,
        writable=os.access(directory, os.W_OK),
        file_count=file_count,
    )


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=int(time.monotonic() - _STARTED_AT),
        memory={"peakRss": f"{_rss_mb()} MB"},
        env=settings.environment,
        uploads=_uploads_status(settings.upload_path),
    )


@router.get("/logs", response_model=LogsResponse, dependencies=[Depends(require_admin)])
async def list_logs(
    limit: int = Query(default=100, ge=1, le=1000),
    type: str | None = Query(default=None),
    request_log: RequestLog = Depends(get_request_log),
) -> LogsResponse:
    logs = request_log.errors(limit) if type == "errors" else request_log.recent(limit)
    return LogsResponse(count=len(logs), logs=logs)


@router.post("/logs/clear", dependencies=[Depends(require_admin)])
async def clear_logs(request_log: RequestLog = Depends(get_request_log)) -> dict:
    request_log.clear()
    logger.info("Request log cleared")
    return {"success": True, "message": "Logs cleared"}


@router.get("/metrics", response_model=MetricsResponse, dependencies=[Depends(require_admin)])
async def metrics(request_log: RequestLog = Depends(get_request_log)) -> MetricsResponse:
    return request_log.metrics(window=request_log.capacity)
