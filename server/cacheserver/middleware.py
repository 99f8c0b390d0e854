# ─────────────────────────────────────────────────────────────────────────────
# Request Middleware — request ID, timing, access log per cache operation
# ─────────────────────────────────────────────────────────────────────────────


import time
import uuid
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from cacheserver.keys import extract_key

logger = structlog.get_logger()


def _route_fields(request: Request) -> dict[str, Any]:
    """Matched route template and, for cache routes, the addressed key.

    Only meaningful after routing ran: the router fills scope["route"] and
    scope["path_params"] in place.
    """
    route = request.scope.get("route")
    fields: dict[str, Any] = {"route": getattr(route, "path_format", None)}
    if "key" in request.path_params:
        fields["key"] = extract_key(request.path_params["key"])
    return fields


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags each request with a short ID and logs one line per cache request.

    Probe traffic under /health is not logged.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = uuid.uuid4().hex[:8]
        started = time.perf_counter()

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

            if not request.url.path.startswith("/health"):
                logger.info(
                    "request_completed",
                    method=request.method,
                    status=response.status_code,
                    elapsed_ms=elapsed_ms,
                    **_route_fields(request),
                )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = str(elapsed_ms)
        return response
