"""
Send browser navigations without a session cookie to the sign-in page.

API paths are left alone; their dependencies answer 401 JSON instead.
"""
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

from portal.config import settings

PUBLIC_PATHS = ("/sign-in", "/api/auth", "/auth-error", "/healthz", "/readyz", "/metrics")


def is_public(path: str) -> bool:
    return any(path == p or path.startswith(p + "/") for p in PUBLIC_PATHS)


def needs_sign_in(request: Request) -> bool:
    path = request.url.path
    if path.startswith("/api/") or is_public(path):
        return False
    return not request.cookies.get(settings.SESSION_COOKIE_NAME)


class AuthRedirectMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if needs_sign_in(request):
            query = urlencode({"callbackUrl": request.url.path})
            return RedirectResponse(f"/sign-in?{query}", status_code=307)
        return await call_next(request)
