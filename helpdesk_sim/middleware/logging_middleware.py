"""
Logging Middleware - admin request logging

WebSocket traffic is not HTTP and never passes through here; engine events
are logged by the services themselves.
"""
import time
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from helpdesk_sim.utils.logger import get_logger

logger = get_logger(__name__)

# Polled by load balancers
QUIET_PATHS = {"/health"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every HTTP request with its status and duration

    Adds an X-Process-Time header (milliseconds). Client errors are logged
    as warnings so refused admin actions stand out.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"
        start = time.perf_counter()

        logger.info(f"→ {method} {path}", extra={"method": method, "path": path, "client": client_host})

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.error(f"✗ {method} {path} ERROR ({duration_ms}ms): {e}", exc_info=True)
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        log = logger.warning if response.status_code >= 400 else logger.info
        log(
            f"← {method} {path} {response.status_code} ({duration_ms}ms)",
            extra={"status_code": response.status_code, "duration_ms": duration_ms}
        )
        response.headers["X-Process-Time"] = str(duration_ms)
        return response
