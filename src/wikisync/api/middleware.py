"""Request middleware that queues access-log events."""

import logging
import re
import time

from fastapi import Request

from wikisync.api.deps import get_access_log_queue
from wikisync.sync.access_log import AccessLogEvent

logger = logging.getLogger(__name__)

REPOSITORY_PATH_PATTERN = re.compile(r"^/api/repos/([^/]+)(?:/|$)")


def resource_for_path(path: str) -> tuple[str, str]:
    """Derive (resource_type, resource_id) from a request path."""
    match = REPOSITORY_PATH_PATTERN.match(path)
    if match:
        return "repository", match.group(1)
    return "", ""


async def access_log_middleware(request: Request, call_next):
    """Time the request and queue an access-log event without waiting on storage."""
    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        resource_type, resource_id = resource_for_path(request.url.path)
        event = AccessLogEvent(
            path=request.url.path,
            method=request.method,
            status_code=status_code,
            response_time_ms=int((time.perf_counter() - start) * 1000),
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=request.headers.get("x-user-id", ""),
            ip_address=request.client.host if request.client else "",
            user_agent=request.headers.get("user-agent", ""),
        )
        if not get_access_log_queue().enqueue(event):
            logger.debug(f"Access log queue full, dropped event for {event.path}")
