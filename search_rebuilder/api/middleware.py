"""FastAPI middleware for CORS, error handling, and logging.

Pure ASGI middleware is used instead of BaseHTTPMiddleware so that long
running rebuild requests are not buffered by an extra task layer.
See: https://starlette.dev/middleware/#pure-asgi-middleware
"""

import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from search_rebuilder.core.config import settings

logger = logging.getLogger(__name__)


class LoggingMiddleware:
    """Logs each HTTP request with its status and duration.

    Adds an ``x-process-time`` header (seconds until the response starts).
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        method = scope["method"]
        path = scope["path"]
        logger.info(f"Request: {method} {path}")

        status_code: int = 0

        async def send_with_timing(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
                elapsed = time.perf_counter() - started
                headers = list(message.get("headers", []))
                headers.append((b"x-process-time", f"{elapsed:.4f}".encode()))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_with_timing)
        except Exception as e:
            logger.error(
                f"Request failed: {method} {path} after "
                f"{time.perf_counter() - started:.4f}s: {e}"
            )
            raise

        logger.info(
            f"Response: {status_code} {method} {path} in {time.perf_counter() - started:.4f}s"
        )


class ErrorHandlerMiddleware:
    """Pure ASGI middleware for global error handling."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as e:
            request = Request(scope)
            logger.exception(f"Unhandled error in {request.method} {request.url.path}: {e}")
            response = JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "message": "An unexpected error occurred",
                    "path": str(request.url.path),
                    "method": request.method,
                },
            )
            await response(scope, receive, send)


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the FastAPI application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_hosts,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # First added is innermost
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LoggingMiddleware)

    logger.info("Middleware setup completed")
