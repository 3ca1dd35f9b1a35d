"""Exception handlers for the pre-stream phase of a request.

Domain errors raised before the first byte of a response is written become a
``{"status": "error", "message": ...}`` body with a matching status code.
After a stream has started, failures are reported as ``error`` events instead
and never reach these handlers.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from repo_browser.domain.exceptions import (
    ConfigurationError,
    InvalidArgumentError,
    NotFoundError,
    RepoBrowserError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

# Checked in order; the first isinstance match wins.
_STATUS_BY_ERROR: tuple[tuple[type[RepoBrowserError], int], ...] = (
    (InvalidArgumentError, 400),
    (NotFoundError, 404),
    (UpstreamError, 500),
    (ConfigurationError, 500),
)


def status_for(exc: RepoBrowserError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message},
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        # Drop the leading "body" so the message names the offending field.
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        field = ".".join(loc) or "body"
        parts.append(f"{field}: {err.get('msg', 'invalid value')}")
    return "Invalid request body - " + "; ".join(parts)


def register_error_handlers(app: FastAPI) -> None:
    """Install the handlers on *app*."""

    @app.exception_handler(RepoBrowserError)
    async def domain_error_handler(request: Request, exc: RepoBrowserError) -> JSONResponse:
        status_code = status_for(exc)
        level = logging.ERROR if status_code >= 500 else logging.INFO
        logger.log(level, "%s %s -> %d %s: %s", request.method, request.url.path,
                   status_code, type(exc).__name__, exc)
        return error_response(status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        message = _describe_validation_error(exc)
        logger.info("%s %s -> 400 %s", request.method, request.url.path, message)
        return error_response(400, message)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "An unexpected error occurred. Please try again later.")
