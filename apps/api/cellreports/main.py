"""Main FastAPI application with middleware and logging setup."""

from __future__ import annotations

import json
import logging
import sys
import time

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from cellreports.core.config import settings
from cellreports.core.errors import setup_error_handlers
from cellreports.core.middleware import (
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
    RequestLoggingMiddleware,
    setup_cors,
    setup_gzip,
)
from cellreports.members.routes import router as members_router
from cellreports.presence.routes import router as presence_router
from cellreports.reports.routes import router as reports_router
from cellreports.statistics.routes import router as statistics_router

# API prefix constant
API_PREFIX = "/api/v1"


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_data = {
            "timestamp": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add extra fields from record
        if getattr(record, "request_id", None):
            log_data["request_id"] = record.request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class RequestIDDefaultFilter(logging.Filter):
    """Give every record a request_id so the text format never breaks."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True


def setup_logging() -> None:
    """Configure structured JSON logging to stdout."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        # Human-readable format for dev
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(request_id)s] - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    stdout_handler.addFilter(RequestIDDefaultFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # Clear existing handlers to avoid duplicates
    root_logger.handlers = []
    root_logger.addHandler(stdout_handler)

    # Set levels for noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# Setup logging before creating app
setup_logging()

app = FastAPI(
    title=f"{settings.service_name} API",
    version="0.1.0",
)

# Setup error handlers (must be done before routes are added)
setup_error_handlers(app, debug=(settings.app_env != "production"))

# Add middleware (order matters - add in reverse order of execution)
# Last added = outermost = first executed

# 1. Security Headers (innermost)
app.add_middleware(SecurityHeadersMiddleware)

# 2. Request Logging (runs inside Request ID, so the id is already set)
if settings.enable_request_logging:
    app.add_middleware(RequestLoggingMiddleware)

# 3. CORS
setup_cors(app)

# 4. GZip Compression
if settings.enable_gzip:
    setup_gzip(app)

# 5. Request ID (outermost, added last)
app.add_middleware(RequestIDMiddleware)

# Include routers
app.include_router(reports_router, prefix=API_PREFIX)
app.include_router(presence_router, prefix=API_PREFIX)
app.include_router(statistics_router, prefix=API_PREFIX)
app.include_router(members_router, prefix=API_PREFIX)


@app.get("/health")
async def health() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(
        {
            "status": "ok",
            "env": settings.app_env,
            "version": app.version,
        }
    )


@app.get(f"{API_PREFIX}/ping")
async def ping() -> dict:
    """Simple ping endpoint for connectivity checks."""
    return {"message": "pong"}
