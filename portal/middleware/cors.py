"""
CORS configuration from settings.
"""
import logging
from typing import List

from fastapi.middleware.cors import CORSMiddleware

from portal.config import settings

logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = ["http://localhost:3000"]


def cors_origins() -> List[str]:
    origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    if not origins:
        logger.info("CORS_ORIGINS not set, using APP_URL")
        origins = [settings.APP_URL.rstrip("/")] if settings.APP_URL else DEFAULT_ORIGINS
    return origins


def setup_cors(app) -> List[str]:
    """Credentials are allowed so the session cookie crosses origins."""
    origins = cors_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info(f"CORS configured with origins: {origins}")
    return origins
