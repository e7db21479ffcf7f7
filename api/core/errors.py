"""
Application error types and the FastAPI handlers that render them.

Routers and services never build error responses themselves: every failure
becomes an `AppError` (or a framework exception) and ends up in one of the
handlers registered by `register_error_handlers`, which log it and write the
uniform body:

    {"status": "error", "statusCode": <int>, "message": "<string>"}
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("users_api.errors")


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class ConnectivityError(AppError):
    pass


class PoolExhaustedError(ConnectivityError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class InternalError(AppError):
    pass


def error_body(status_code: int, message: str) -> dict:
    return {"status": "error", "statusCode": status_code, "message": message}


def _render(request: Request, status_code: int, message: str) -> JSONResponse:
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"Error: {message}, Status Code: {status_code}",
        extra={"status_code": status_code, "method": request.method, "path": request.url.path},
    )
    return JSONResponse(status_code=status_code, content=error_body(status_code, message))


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _render(request, exc.status_code, exc.message or "Internal Server Error")


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for error in exc.errors():
        loc = ".".join(str(part) for part in error.get("loc", ()))
        details.append(f"{loc}: {error.get('msg', 'invalid value')}")
    message = "Invalid request: " + "; ".join(details) if details else "Invalid request"
    return _render(request, status.HTTP_400_BAD_REQUEST, message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _render(request, exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=status_code, content=error_body(status_code, "Internal Server Error"))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
