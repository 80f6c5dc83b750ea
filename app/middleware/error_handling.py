"""
Error handling middleware that converts exceptions to JSON error responses.

Service exceptions keep their own status code and message. Anything else is
a 500 and is logged with its traceback.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.exceptions import AppGeneratorException

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, **details) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "status_code": status_code, **details},
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Maps AppGeneratorException subclasses to their HTTP status."""

    async def dispatch(self, request: Request, call_next):
        request_context = {"path": request.url.path, "method": request.method}
        try:
            return await call_next(request)

        except AppGeneratorException as e:
            # 4xx is the caller's problem; only 5xx (provider failures) are errors here
            log = logger.error if e.status_code >= 500 else logger.warning
            log(
                f"{type(e).__name__}: {e.message}",
                extra={"context": {"status_code": e.status_code, **request_context}},
            )
            return error_response(e.status_code, e.message)

        except Exception as e:
            logger.error(
                f"Unhandled {type(e).__name__}: {e}",
                exc_info=True,
                extra={"context": request_context},
            )
            return error_response(500, "Internal server error", detail=str(e))
