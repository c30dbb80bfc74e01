"""Request ID Middleware.

Stamps every request with an ID that appears in all log lines written while
the request is handled, and returns it in the X-Request-ID header.

Usage:
    app.add_middleware(RequestIdMiddleware)
"""

import logging
import time
import uuid
from typing import Any, Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from config.logging_config import request_id_var, user_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def generate_request_id() -> str:
    """Generate a unique request ID for tracing."""
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to handle request IDs for tracing.

    - Reuses an incoming X-Request-ID header when present
    - Sets the ID in the logging context for the request
    - Logs method, path, status and duration once per request
    """

    def __init__(
        self,
        app,
        header_name: str = REQUEST_ID_HEADER,
        generator: Optional[Callable[[], str]] = None,
    ):
        super().__init__(app)
        self.header_name = header_name
        self.generator = generator or generate_request_id

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        request_id = request.headers.get(self.header_name) or self.generator()

        token = request_id_var.set(request_id)
        user_token = user_id_var.set(None)
        started = time.perf_counter()

        try:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers[self.header_name] = request_id

            duration_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f}ms)",
                extra={"extra_data": {"status_code": response.status_code, "duration_ms": round(duration_ms, 1)}},
            )
            return response

        finally:
            user_id_var.reset(user_token)
            request_id_var.reset(token)
