import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles
from loguru import logger
from PIL import Image

from media_api.config import Settings, settings
from media_api.errors import register_error_handlers
from media_api.models.monitoring import RequestLogEntry
from media_api.routes.health import router as health_router
from media_api.routes.upload import router as upload_router
from media_api.services.rate_limit import SlidingWindowCounter
from media_api.services.request_log import RequestLog
from media_api.services.storage import ensure_upload_dir


def _configure_logging(app_settings: Settings) -> None:
    logger.configure(patcher=lambda record: record["extra"].setdefault("request_id", "-"))
    logger.remove()
    logger.add(
        sys.stderr,
        level=app_settings.log_level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | req={extra[request_id]} | {name}:{function}:{line} | {message}",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_settings: Settings = app.state.settings
    _configure_logging(app_settings)
    ensure_upload_dir(app_settings.upload_path)
    logger.bind(request_id="-").info(
        "Starting app app_name={} environment={} upload_dir={} log_level={}",
        app_settings.app_name,
        app_settings.environment,
        str(app_settings.upload_path),
        app_settings.log_level,
    )
    yield
    logger.bind(request_id="-").info("Shutting down app app_name={}", app_settings.app_name)


async def add_request_context(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id", str(uuid4()))
    bound_logger = logger.bind(request_id=request_id)
    request_log: RequestLog = request.app.state.request_log
    url = request.url.path + (f"?{request.url.query}" if request.url.query else "")
    entry = {
        "method": request.method,
        "url": url,
        "ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }
    start = time.perf_counter()
    bound_logger.info("Request start method={} path={}", request.method, request.url.path)
    with logger.contextualize(request_id=request_id):
        try:
            response = await call_next(request)
        except Exception as exc:
            bound_logger.exception("Request failed method={} path={}", request.method, request.url.path)
            request_log.record(
                RequestLogEntry(
                    timestamp=datetime.now(timezone.utc).isoformat(),
                    status_code=500,
                    error=str(exc),
                    **entry,
                )
            )
            raise
    duration_ms = (time.perf_counter() - start) * 1000
    bound_logger.info(
        "Request finish method={} path={} status={} duration_ms={:.2f}",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    request_log.record(
        RequestLogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            status_code=response.status_code,
            response_time=round(duration_ms),
            **entry,
        )
    )
    response.headers["X-Request-ID"] = request_id
    return response


def create_app(app_settings: Settings = settings) -> FastAPI:
    app = FastAPI(title=app_settings.app_name, debug=app_settings.debug, lifespan=lifespan)
    # Pillow checks this process-wide limit whenever an image is opened.
    Image.MAX_IMAGE_PIXELS = app_settings.max_image_pixels
    app.state.settings = app_settings
    app.state.request_log = RequestLog(capacity=app_settings.request_log_capacity)
    app.state.rate_limiter = SlidingWindowCounter()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(add_request_context)
    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(upload_router)

    if app_settings.serve_uploads:
        app.mount(
            app_settings.public_url_prefix,
            StaticFiles(directory=str(app_settings.upload_path), check_dir=False),
            name="uploads",
        )
    return app


app = create_app()
