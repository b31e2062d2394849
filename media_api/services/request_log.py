"""In-memory request history for the monitoring endpoints.

One :class:`RequestLog` is created per application and kept on
``app.state``; the request middleware writes to it and the monitoring
routes read it through :func:`get_request_log`.
"""

from collections import Counter, deque
from datetime import datetime, timezone

from fastapi import Request

from media_api.models.monitoring import MetricsResponse, RequestLogEntry

ERROR_STATUS_THRESHOLD = 400


class RequestLog:
    def __init__(self, capacity: int = 1000):
        self.capacity = capacity
        self._entries: deque[RequestLogEntry] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, entry: RequestLogEntry) -> None:
        self._entries.append(entry)

    def recent(self, limit: int = 100) -> list[RequestLogEntry]:
        if limit <= 0:
            return []
        return list(self._entries)[-limit:]

    def errors(self, limit: int = 50) -> list[RequestLogEntry]:
        if limit <= 0:
            return []
        failed = [
            e for e in self._entries
            if e.status_code is not None and e.status_code >= ERROR_STATUS_THRESHOLD
        ]
        return failed[-limit:]

    def clear(self) -> None:
        self._entries.clear()

    def metrics(self, window: int = 1000) -> MetricsResponse:
        entries = self.recent(window)
        error_count = sum(
            1 for e in entries
            if e.status_code is not None and e.status_code >= ERROR_STATUS_THRESHOLD
        )
        timings = [e.response_time for e in entries if e.response_time is not None]
        avg_ms = sum(timings) / len(timings) if timings else 0
        error_rate = (error_count / len(entries) * 100) if entries else 0.0
        status_classes = Counter(
            (e.status_code // 100) * 100 for e in entries if e.status_code is not None
        )
        return MetricsResponse(
            period=f"last {window} requests",
            total_requests=len(entries),
            error_count=error_count,
            error_rate=f"{error_rate:.2f}%",
            avg_response_time=f"{round(avg_ms)}ms",
            status_codes=dict(sorted(status_classes.items())),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )


def get_request_log(request: Request) -> RequestLog:
    return request.app.state.request_log
