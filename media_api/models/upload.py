from pydantic import BaseModel, ConfigDict, Field


class WebpVariant(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    url: str


class UploadedImage(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    filename: str
    original_name: str = Field(alias="originalName")
    size: int
    url: str
    webp: WebpVariant


class UploadResponse(BaseModel):
    success: bool = True
    message: str
    files: list[UploadedImage]


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: str
