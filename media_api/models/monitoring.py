from pydantic import BaseModel, ConfigDict, Field


class RequestLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: str
    method: str
    url: str
    status_code: int | None = Field(default=None, alias="statusCode")
    response_time: int | None = Field(default=None, alias="responseTime")
    ip: str | None = None
    user_agent: str | None = Field(default=None, alias="userAgent")
    error: str | None = None


class LogsResponse(BaseModel):
    count: int
    logs: list[RequestLogEntry]


class MetricsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    period: str
    total_requests: int = Field(alias="totalRequests")
    error_count: int = Field(alias="errorCount")
    error_rate: str = Field(alias="errorRate")
    avg_response_time: str = Field(alias="avgResponseTime")
    status_codes: dict[int, int] = Field(alias="statusCodes")
    timestamp: str


class UploadsStatus(BaseModel):
    directory_exists: bool
    writable: bool
    file_count: int


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    uptime: int
    memory: dict[str, str]
    env: str
    uploads: UploadsStatus
