"""
Request body size cap, checked against Content-Length before the body is read.
"""
import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from portal.config import settings

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_size_bytes: Optional[int] = None):
        super().__init__(app)
        self.limit = max_size_bytes if max_size_bytes is not None else settings.MAX_REQUEST_SIZE_MB * MB

    async def dispatch(self, request: Request, call_next):
        declared = request.headers.get("content-length", "")
        # Non-numeric lengths are left to the server to reject.
        if declared.isdigit() and int(declared) > self.limit:
            logger.warning(f"Rejected {request.method} {request.url.path}: {declared} bytes over {self.limit}")
            return JSONResponse(
                status_code=413,
                content={"error": f"Request body too large. Maximum size is {self.limit / MB:.1f}MB"},
            )
        return await call_next(request)
