"""FastAPI middleware for request processing, logging, and security."""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from cellreports.core.config import settings
from cellreports.core.metrics import emit_http_request

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID to all requests and responses."""

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        # Use existing X-Request-ID if present, otherwise generate one
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        request.state.request_id = request_id

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"

        # Only add HSTS in production (HTTPS)
        if settings.app_env == "production":
            response.headers[
                "Strict-Transport-Security"
            ] = "max-age=31536000; includeSubDomains"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log request/response with structured JSON logging and EMF metrics."""

    def __init__(self, app, exclude_paths: list[str] | None = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or [
            "/health",
            "/api/v1/ping",
            "/docs",
            "/openapi.json",
            "/redoc",
        ]

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        request_id = getattr(request.state, "request_id", "unknown")
        start_time = time.time()

        # Set by the caller dependency once the token is decoded
        user_id = getattr(request.state, "user_id", None)
        account_id = getattr(request.state, "account_id", None)

        request_log = {
            "timestamp": time.time(),
            "level": "INFO",
            "type": "http_request",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client_host": request.client.host if request.client else None,
        }

        if request.method in ("POST", "PUT", "PATCH"):
            content_length = request.headers.get("content-length")
            if content_length and content_length.isdigit():
                request_log["request_body_size"] = int(content_length)

        logger.info(
            json.dumps(request_log, default=str),
            extra={"request_id": request_id},
        )

        error = None
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
            error = str(e)

            logger.error(
                f"Request processing error: {type(e).__name__}: {str(e)}",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise
        finally:
            duration_ms = (time.time() - start_time) * 1000

            user_id = getattr(request.state, "user_id", user_id)
            account_id = getattr(request.state, "account_id", account_id)

            emit_http_request(
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=duration_ms,
                request_id=request_id,
                user_id=str(user_id) if user_id else None,
                account_id=str(account_id) if account_id else None,
            )

            response_log = {
                "timestamp": time.time(),
                "level": "INFO" if status_code < 400 else "ERROR",
                "type": "http_response",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
                "user_id": str(user_id) if user_id else None,
                "account_id": str(account_id) if account_id else None,
            }

            if error:
                response_log["error"] = error

            log_level = logging.ERROR if status_code >= 500 else (
                logging.WARNING if status_code >= 400 else logging.INFO
            )
            logger.log(
                log_level,
                json.dumps(response_log, default=str),
                extra={"request_id": request_id},
            )

        response.headers["X-Process-Time"] = f"{duration_ms:.2f}ms"

        return response


def setup_cors(app) -> None:
    """Configure CORS middleware."""
    if settings.cors_origins:
        cors_origins = [
            origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()
        ]
    elif settings.app_env == "production":
        cors_origins = []  # No CORS in production if not configured
    else:
        cors_origins = [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )


def setup_gzip(app) -> None:
    """Configure GZip compression middleware."""
    app.add_middleware(
        GZipMiddleware,
        minimum_size=500,  # Only compress responses > 500 bytes
        compresslevel=6,
    )
