# ------------------------------------------------------------
# handlers.py — centralized error -> JSON response mapping
# ------------------------------------------------------------

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import AppError, ErrorKind

logger = logging.getLogger(__name__)


def error_response(kind: ErrorKind) -> JSONResponse:
    """The one error body the API ever sends: {"error": message}."""
    return JSONResponse(status_code=kind.status, content={"error": kind.message})


def register_exception_handlers(app: FastAPI, production: bool) -> None:
    """
    Map every exception that escapes a handler to a stable JSON error.

    Outside production the full AppError (context and cause chain) is
    logged; in production only a summary line. Clients get the catalog
    message either way, never a traceback.
    """

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, err: AppError):
        if production:
            logger.error(
                "%s %s -> %s (%s): %s",
                request.method, request.url.path, err.code, err.status, err.message,
            )
        else:
            logger.warning(
                "%s %s -> %s (%s): %s | context=%r | cause=%r",
                request.method, request.url.path, err.code, err.status, err.message,
                err.context, err.cause,
                exc_info=(type(err.cause), err.cause, err.cause.__traceback__),
            )
        return error_response(err.kind)

    @app.exception_handler(RequestValidationError)
    async def handle_bad_request(request: Request, err: RequestValidationError):
        # unparseable JSON bodies and bad query/path types
        logger.info("%s %s -> invalid input: %s", request.method, request.url.path, err.errors())
        return error_response(ErrorKind.GENERAL_INVALID_INPUT)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, err: StarletteHTTPException):
        return JSONResponse(status_code=err.status_code, content={"error": err.detail}, headers=err.headers)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, err: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(ErrorKind.GENERAL_SERVER_ERROR)
