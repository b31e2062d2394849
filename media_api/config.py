from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Listing Media Service"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    upload_dir: str = "uploads/images"
    public_url_prefix: str = "/uploads/images"
    serve_uploads: bool = True

    max_files_per_request: int = Field(default=10, ge=1, le=10)
    max_file_size_bytes: int = Field(default=5 * 1024 * 1024, ge=1)
    max_image_dimension: int = Field(default=20000, ge=1)
    max_image_pixels: int = Field(default=178_956_970, ge=1)

    webp_max_width: int = Field(default=1920, ge=1)
    webp_quality: int = Field(default=80, ge=1, le=100)
    webp_method: int = Field(default=6, ge=0, le=6)

    request_log_capacity: int = Field(default=1000, ge=1)
    upload_rate_limit: int = Field(default=10, ge=1)
    upload_rate_window_seconds: int = Field(default=15 * 60, ge=1)

    admin_api_token: str | None = None

    @property
    def upload_path(self) -> Path:
        return Path(self.upload_dir).resolve()


settings = Settings()
