# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions + FastAPI Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────


import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


# ── Exception hierarchy ──────────────────────────────────────────────────────


class CacheServerError(Exception):
    """Base exception for request-level failures. Carries the HTTP status."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class BadRequestError(CacheServerError):
    """Raised when a request is structurally invalid (e.g. empty key on GET/PUT)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class KeyNotFoundError(CacheServerError):
    """Raised when a key is absent, or a DELETE names no key at all."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Key '{key}' not found" if key else "No key supplied", status_code=404)


class InternalError(CacheServerError):
    """Raised when the body cannot be read or the engine rejects a write.

    Not retried. Clients may retry with a smaller payload or after backoff.
    """

    def __init__(self, message: str):
        super().__init__(message, status_code=500)


# ── Handler registration ────────────────────────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app.

    Handlers raise CacheServerError subclasses; these turn them into a status
    code plus a small JSON body. Clients should rely on the status code only.
    """

    @app.exception_handler(CacheServerError)
    async def cache_server_error_handler(request: Request, exc: CacheServerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("cache_server_error", error=exc.message, error_type=type(exc).__name__)
        else:
            logger.info("cache_request_rejected", error=exc.message, status=exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "type": type(exc).__name__},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "type": "UnhandledError"},
        )
