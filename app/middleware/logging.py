"""
Request/response logging middleware.

Binds a request id and the caller's user id to the logging context for the
whole request, and echoes the request id back in `X-Request-ID`.
"""
import time
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import generate_request_id, log_event, set_request_id, set_user_id

REQUEST_ID_HEADER = "X-Request-ID"
USER_ID_HEADER = "X-User-ID"

# Polled and long-lived endpoints; only their errors are logged
QUIET_PATH_SUFFIXES = ("/status", "/stream", "/health")


def _log(level: str, event: str, message: str, context: Dict[str, Any], exc_info: Optional[BaseException] = None):
    log_event(
        level=level,
        logger=__name__,
        function="dispatch",
        operation="http_request",
        event=event,
        message=message,
        context=context,
        exc_info=exc_info,
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request and its outcome with timing."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        set_request_id(request_id)
        set_user_id(request.headers.get(USER_ID_HEADER) or None)

        route = f"{request.method} {request.url.path}"
        quiet = request.url.path.endswith(QUIET_PATH_SUFFIXES)
        start_time = time.time()

        if not quiet:
            _log("INFO", "request_received", f"Request received: {route}", {
                "query_params": dict(request.query_params),
                "client_host": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent"),
                "content_length": request.headers.get("content-length"),
            })

        try:
            response = await call_next(request)
        except Exception as e:
            _log("ERROR", "request_error", f"Request error: {route}", {
                "duration_seconds": round(time.time() - start_time, 3),
                "error_type": type(e).__name__,
            }, exc_info=e)
            raise

        if not quiet:
            _log("INFO", "response_sent", f"Response sent: {route} -> {response.status_code}", {
                "status_code": response.status_code,
                "duration_seconds": round(time.time() - start_time, 3),
                "content_type": response.headers.get("content-type"),
            })

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
