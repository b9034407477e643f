import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from portal import scheduler as sched
from portal.config import settings
from portal.errors import PortalError
from portal.middleware.auth_redirect import AuthRedirectMiddleware
from portal.middleware.cors import setup_cors
from portal.middleware.ratelimit import RateLimitMiddleware
from portal.middleware.request_id import RequestIDMiddleware
from portal.middleware.request_size import RequestSizeLimitMiddleware
from portal.models import ApiResponse
from portal.observability.metrics import setup_metrics
from portal.routes import (
    approvals,
    assignments,
    auth,
    clients,
    expense_categories,
    expenses,
    locked_periods,
    projects,
    reports,
    time_entries,
    users,
)
from portal.utils.ids import request_id as get_request_id
from portal.utils.logging import configure_logging
from portal.validation import summary

load_dotenv()
configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sched.start_scheduler()
    logger.info("PMO Harvest Portal started")
    yield
    sched.shutdown_scheduler()


app = FastAPI(title="PMO Harvest Portal", version="0.1", lifespan=lifespan)

setup_metrics(app)

# Applied in reverse: the last one added runs first.
app.add_middleware(AuthRedirectMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(
    RateLimitMiddleware,
    capacity=settings.RATE_LIMIT_PER_MINUTE,
    burst=settings.RATE_LIMIT_BURST,
)
app.add_middleware(RequestIDMiddleware)
setup_cors(app)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for issue in exc.errors():
        loc = [str(part) for part in issue["loc"] if part not in ("body", "query", "path")]
        errors.setdefault(".".join(loc), []).append(issue["msg"])
    return JSONResponse(status_code=400, content={"error": summary(errors), "errors": errors})


@app.get("/healthz")
async def health(request: Request):
    """Basic health check."""
    req_id = get_request_id(request.headers.get("x-request-id"))
    return ApiResponse.success(data={"status": "healthy"}, request_id=req_id)


@app.get("/readyz")
async def readiness(request: Request):
    """Ready once Harvest OAuth credentials and the account id are configured."""
    req_id = get_request_id(request.headers.get("x-request-id"))

    checks = {
        "harvest_oauth": (
            "configured"
            if settings.HARVEST_OAUTH_CLIENT_ID and settings.HARVEST_OAUTH_CLIENT_SECRET
            else "missing"
        ),
        "harvest_account": "configured" if settings.HARVEST_ACCOUNT_ID else "missing",
    }

    if not all(v == "configured" for v in checks.values()):
        body = ApiResponse.failure(
            code="not_ready",
            message="Harvest configuration incomplete",
            details={"checks": checks},
            request_id=req_id,
        )
        return JSONResponse(status_code=503, content=body.model_dump())

    return ApiResponse.success(data={"ready": True, "checks": checks}, request_id=req_id)


app.include_router(auth.router)
app.include_router(time_entries.router)
app.include_router(expenses.router)
app.include_router(expense_categories.router)
app.include_router(locked_periods.router)
app.include_router(projects.router)
app.include_router(clients.router)
app.include_router(users.router)
app.include_router(assignments.router)
app.include_router(reports.router)
app.include_router(approvals.router)
