"""
Log setup (plain text or one JSON object per line) and a sanitized error logger.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from portal.config import settings

# Passed through `extra=` by the middleware and log_error.
EXTRA_FIELDS = ("request_id", "path", "status", "duration_ms", "status_code", "context")
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "service": "harvest-portal",
            "logger": record.name,
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        payload.update({name: getattr(record, name) for name in EXTRA_FIELDS if hasattr(record, name)})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: int = logging.INFO) -> None:
    """Route root logging to stdout; LOG_JSON=true switches to JSON lines."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if settings.LOG_JSON else logging.Formatter(PLAIN_FORMAT))
    logging.basicConfig(level=level, handlers=[handler])


def error_message(error: BaseException | str | None, fallback: str) -> str:
    """Best-effort message extraction for anything that ended up in an except block."""
    if isinstance(error, str):
        return error or fallback
    if error is None:
        return fallback
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error) or fallback


def log_error(
    message: str,
    error: BaseException,
    context: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log an error without leaking request secrets.

    Only the error message, the upstream status code (when there is one) and
    the caller supplied context are recorded. The traceback is attached in
    development only.
    """
    logger = logger or logging.getLogger("portal")
    extra: Dict[str, Any] = {"context": context or {}}
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        extra["status_code"] = status_code

    logger.error(
        f"{message}: {error_message(error, message)}",
        exc_info=error if settings.is_development else None,
        extra=extra,
    )
