"""Global error handler — consistent JSON error responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ballot.ledger.errors import InvalidChoice, LedgerError, TopicUnavailable, TransientStoreError

logger = structlog.get_logger()

_LEDGER_STATUS: list[tuple[type[LedgerError], int]] = [
    (InvalidChoice, 400),
    (TopicUnavailable, 404),
    (TransientStoreError, 503),
]


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent JSON format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle validation errors with consistent JSON format."""
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": exc.errors()},
        )

    @app.exception_handler(LedgerError)
    async def ledger_exception_handler(request: Request, exc: LedgerError) -> JSONResponse:
        """Ledger errors that escaped a route, classified by retryability."""
        status_code = next((code for cls, code in _LEDGER_STATUS if isinstance(exc, cls)), 500)
        logger.warning("ledger_error", path=request.url.path, error=str(exc), status_code=status_code)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "retryable": exc.retryable},
            headers={"Retry-After": "1"} if isinstance(exc, TransientStoreError) else None,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions — always return JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
