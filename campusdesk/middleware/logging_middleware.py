"""
Logging Middleware - Request/Response logging
"""
import time
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)

QUIET_PATHS = ("/api/v1/health", "/api/v1/health/")


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration of every request and sets
    the X-Process-Time header (milliseconds).
    """

    async def dispatch(self, request: Request, call_next: Callable):
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.time()
        method = request.method
        path = request.url.path
        user_id = request.headers.get("x-user-id", "anonymous")

        logger.info(f"→ {method} {path} (user={user_id})")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(f"✗ {method} {path} ERROR ({duration_ms}ms): {e}", exc_info=True)
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(f"← {method} {path} {response.status_code} ({duration_ms}ms)")

        response.headers["X-Process-Time"] = str(duration_ms)
        return response
