import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from portal.utils.ids import request_id as get_request_id

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add a request ID to every request and response and log start/finish."""

    async def dispatch(self, request: Request, call_next):
        req_id = get_request_id(request.headers.get("x-request-id"))
        request.state.request_id = req_id

        start_time = time.time()
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={"request_id": req_id, "path": request.url.path},
        )

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Request completed: {request.method} {request.url.path} status={response.status_code}",
            extra={
                "request_id": req_id,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
