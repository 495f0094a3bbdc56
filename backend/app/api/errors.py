"""Render domain errors as JSON responses."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..domain.errors import JournalError, StorageError, UpstreamError
from ..infra.logging import get_logger

__all__ = ["error_body", "register_exception_handlers"]

logger = get_logger(__name__)


def error_body(
    message: str, error_code: str, details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return {"error": message, "error_code": error_code, "details": details or {}}


def register_exception_handlers(application: FastAPI) -> None:
    """Attach the domain and catch-all error handlers to ``application``."""

    @application.exception_handler(JournalError)
    async def _handle_journal_error(request: Request, exc: JournalError) -> JSONResponse:
        if isinstance(exc, (StorageError, UpstreamError)):
            logger.error(
                "request_failed",
                extra={
                    "path": request.url.path,
                    "error_code": exc.error_code,
                    "error": exc.message,
                },
            )
        else:
            logger.info(
                "request_rejected",
                extra={"path": request.url.path, "error_code": exc.error_code},
            )
        return JSONResponse(
            status_code=int(exc.status_code),
            content=error_body(exc.message, exc.error_code, exc.details),
        )

    @application.exception_handler(Exception)
    async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "request_failed",
            extra={"path": request.url.path, "error_code": JournalError.error_code},
            exc_info=exc,
        )
        return JSONResponse(
            status_code=int(JournalError.status_code),
            content=error_body("Internal server error", JournalError.error_code),
        )
