"""
Logging Middleware
Logs every API call with client address, status and duration
"""

import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from src.utils.helpers import get_client_ip
from src.utils.logger import setup_logger

logger = setup_logger()

# Paths not worth a log line per hit
QUIET_PREFIXES = ("/uploads/", "/health")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log API requests and responses"""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path.startswith(QUIET_PREFIXES):
            return await call_next(request)

        start_time = time.time()
        client_ip = get_client_ip(request)
        logger.info(f"Request: {request.method} {path} | Client: {client_ip}")

        try:
            response = await call_next(request)
        except Exception:
            # logger.exception keeps braces in paths out of format()
            logger.exception(
                f"Error: {request.method} {path} | Client: {client_ip} | "
                f"Duration: {time.time() - start_time:.3f}s"
            )
            raise

        duration = time.time() - start_time
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"Response: {request.method} {path} | "
            f"Status: {response.status_code} | "
            f"Duration: {duration:.3f}s"
        )
        return response
