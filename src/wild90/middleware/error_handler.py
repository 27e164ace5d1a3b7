"""Exception handlers: every failure leaves the API as a JSON body.

Scanner errors carry their ``kind`` so the UI can pick the right message and
recovery (permission prompt, retry button, sign-in screen).
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from wild90.errors import ErrorKind, LedgerError, Wild90Error

logger = structlog.get_logger()

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.NO_DEVICE: 404,
    ErrorKind.CAMERA_UNAVAILABLE: 503,
    ErrorKind.NOT_READY: 409,
    ErrorKind.CAPTURE_FAILED: 500,
    ErrorKind.CLASSIFICATION_EMPTY: 422,
    ErrorKind.PERSIST_FAILED: 502,
    ErrorKind.SCORE_UPDATE_FAILED: 502,
    ErrorKind.PIPELINE_BUSY: 409,
    ErrorKind.PIPELINE_DISABLED: 401,
    ErrorKind.PROGRESS_COMPUTE_FAILED: 502,
    ErrorKind.DIFF_READ_FAILED: 502,
}


def _json_error(status_code: int, detail: Any, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, **extra})


def setup_error_handlers(app: FastAPI) -> None:
    """Register exception handlers on the app."""

    @app.exception_handler(Wild90Error)
    async def scanner_error(_request: Request, exc: Wild90Error) -> JSONResponse:
        return _json_error(STATUS_BY_KIND.get(exc.kind, 500), exc.message, kind=exc.kind.value)

    @app.exception_handler(LedgerError)
    async def ledger_error(request: Request, exc: LedgerError) -> JSONResponse:
        """A backend read behind a non-scan endpoint failed."""
        logger.error("ledger_error", path=request.url.path, error=str(exc))
        return _json_error(502, "Backend unavailable")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _json_error(exc.status_code, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return _json_error(422, "Validation error", errors=exc.errors())

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            method=request.method,
            path=request.url.path,
            error=str(exc),
            exc_info=exc,
        )
        return _json_error(500, "Internal server error")
