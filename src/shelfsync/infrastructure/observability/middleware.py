"""Per-request access log lines and X-Correlation-ID propagation."""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from shelfsync.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log "→ GET /api/sync" on arrival and "✓/✗ ... → status (Nms)" on completion.

    The caller's X-Correlation-ID is reused when sent, otherwise one is minted;
    either way it is returned on the response.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))
        route = f"{request.method} {request.url.path}"
        fields = {"method": request.method, "path": request.url.path}

        logger.info(
            f"→ {route}",
            extra={
                **fields,
                "query_params": str(request.query_params),
                "client_ip": request.client.host if request.client else "unknown",
            },
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"Request failed: {route}",
                extra={
                    **fields,
                    "duration_ms": _elapsed_ms(started),
                    "error_type": type(e).__name__,
                },
            )
            raise

        duration_ms = _elapsed_ms(started)
        mark = "✓" if response.status_code < 400 else "✗"
        logger.info(
            f"{mark} {route} → {response.status_code} ({duration_ms}ms)",
            extra={**fields, "status_code": response.status_code, "duration_ms": duration_ms},
        )

        response.headers[CORRELATION_HEADER] = get_correlation_id() or correlation_id
        return response
