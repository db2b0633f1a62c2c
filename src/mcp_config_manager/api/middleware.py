"""
API middleware for MCP Config Manager.

Provides request logging and a last-resort error handler.
"""

import time
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from mcp_config_manager.api.models import ErrorResponse
from mcp_config_manager.utils.logging import get_logger

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Request/response logging middleware."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request and response details."""
        start_time = time.time()

        logger.debug("API request started", extra={
            "method": request.method,
            "url": str(request.url),
            "client_ip": getattr(request.client, "host", "unknown"),
            "content_length": request.headers.get("Content-Length", 0),
        })

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error("API request failed", extra={
                "method": request.method,
                "url": str(request.url),
                "duration_ms": round(duration_ms, 2),
                "error": str(e),
                "error_type": type(e).__name__,
            })
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code}", extra={
            "method": request.method,
            "url": str(request.url),
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        })
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Global error handling middleware."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Turn uncaught exceptions into a generic 500 error response."""
        try:
            return await call_next(request)
        except Exception as e:
            logger.error("Unhandled API error", extra={
                "method": request.method,
                "url": str(request.url),
                "error": str(e),
                "error_type": type(e).__name__,
            }, exc_info=True)

            body = ErrorResponse(
                message="Internal server error",
                error_code="INTERNAL_ERROR",
            )
            return JSONResponse(status_code=500, content=body.model_dump(mode="json"))
