"""Translate printer exceptions into the JSON error envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .obs.logging import request_id_ctx
from .printing.errors import (
    PrinterError,
    PrinterNotConnectedError,
    UnsupportedPlatformError,
)

logger = logging.getLogger("api")

STATUS_BY_ERROR = {
    UnsupportedPlatformError: 503,
    PrinterNotConnectedError: 409,
}


def error_body(code: int | str, message: str) -> dict:
    """Return the JSON error envelope for the current request."""
    return {
        "ok": False,
        "request_id": request_id_ctx.get(None),
        "error": {"code": code, "message": message},
    }


def status_for(exc: PrinterError) -> int:
    for cls, status in STATUS_BY_ERROR.items():
        if isinstance(exc, cls):
            return status
    return 502


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(exc.detail, extra={"route": request.url.path})
        return JSONResponse(
            error_body(exc.status_code, exc.detail), status_code=exc.status_code
        )

    @app.exception_handler(PrinterError)
    async def printer_error_handler(request: Request, exc: PrinterError):
        status = status_for(exc)
        logger.warning("printer error: %s", exc, extra={"route": request.url.path})
        return JSONResponse(error_body(type(exc).__name__, str(exc)), status_code=status)
