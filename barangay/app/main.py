"""
Barangay Records Audit Chain - FastAPI Application

Serves the administrative audit surface of the barangay records system:
listing, exporting and verifying the hash-chained audit log.

Hardening:
- JWT-based authentication with admin role on all audit endpoints
- Rate limiting (disabled in test mode)
- Exception handlers that never echo request bodies
- Database schema and security checks on startup
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from barangay.app.db.migrate import check_db_security, ensure_schema
from barangay.app.routes import audit_logs, health
from barangay.app.security.rate_limit import limiter

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging from LOG_LEVEL (default INFO)."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def sanitize_error_detail(detail) -> dict:
    """
    Sanitize error details before returning them to the client.

    Dict details are produced by our own code and returned as-is; anything
    else is replaced with a generic message.
    """
    if isinstance(detail, dict):
        return detail

    return {
        "error": "request_error",
        "message": str(detail) if isinstance(detail, str) else "An error occurred processing your request",
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    On startup:
    - Ensure database schema exists (Alembic upgrade head)
    - Validate database security configuration
    """
    configure_logging()
    ensure_schema()

    security_status = check_db_security()
    if not security_status.get("wal_enabled"):
        logger.warning("Database WAL mode not enabled")
    if not security_status.get("permissions_secure"):
        logger.warning("Database file permissions may not be secure")

    yield


app = FastAPI(
    title="Barangay Records Audit Chain",
    description="Hash-chained, append-only audit trail for barangay civic records",
    version="0.1.0",
    lifespan=lifespan,
    debug=False,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with a consistent JSON body."""
    return JSONResponse(
        status_code=exc.status_code,
        content=sanitize_error_detail(exc.detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report validation errors by field name only, never echoing values."""
    errors = []
    for error in exc.errors():
        errors.append(
            {
                "field": " -> ".join(str(loc) for loc in error["loc"]),
                "type": error["type"],
                "message": error["msg"],
            }
        )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "message": "Request validation failed",
            "details": errors,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Catch-all handler: log server-side, return a generic 500."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": "An unexpected error occurred"},
    )


app.include_router(health.router)
app.include_router(audit_logs.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Barangay Records Audit Chain",
        "version": "0.1.0",
        "status": "operational",
    }
