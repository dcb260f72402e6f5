"""Request context middleware for correlation IDs and access logging."""

import time
import uuid
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from src.core.logging import get_logger, request_id_ctx, role_ctx, user_id_ctx

RequestResponseEndpoint = Callable[[Request], Awaitable[Response]]

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Sets per-request logging context and logs each completed request.

    Takes X-Request-ID from the request (or generates one) and echoes it on
    the response. Caller identity is filled in later by the auth dependency.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request and set context variables.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware/handler in chain.

        Returns:
            Response with X-Request-ID header set.
        """
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request_id_ctx.set(request_id)
        user_id_ctx.set(None)
        role_ctx.set(None)

        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
