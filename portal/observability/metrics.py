"""
Prometheus metrics: HTTP instrumentation plus portal specific counters.
"""
import logging

from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

from portal.config import settings

logger = logging.getLogger(__name__)

harvest_upstream_errors_total = Counter(
    "harvest_upstream_errors_total",
    "Failed Harvest API calls by upstream status code",
    ["status"],
)

auth_failures_total = Counter(
    "auth_failures_total",
    "Requests rejected before reaching Harvest, by reason (session, role, token)",
    ["reason"],
)

rate_limits_total = Counter(
    "rate_limits_total",
    "Requests answered with 429",
    ["service"],
)

token_refreshes_total = Counter(
    "harvest_token_refreshes_total",
    "Harvest access token refresh attempts by outcome",
    ["outcome"],
)


def setup_metrics(app) -> bool:
    """Instrument app and expose /metrics when METRICS_ENABLED is true."""
    if not settings.METRICS_ENABLED:
        return False

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/metrics", "/healthz", "/readyz"],
    ).instrument(app).expose(app, include_in_schema=False)
    logger.info("Prometheus metrics exposed on /metrics")
    return True
