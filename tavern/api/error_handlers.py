"""Exception handlers mapping domain errors onto HTTP responses.

Every error body has the same shape::

    {"code": "NOT_FOUND", "message": "App with id ... not found"}

Input validation failures are reported as ``BAD_REQUEST`` with an extra
``errors`` list.  Anything unexpected becomes a generic
``INTERNAL_SERVER_ERROR``; the detail goes to the log, never to the caller.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from tavern.api.errors import InternalInconsistencyError, TavernError

STATUS_CODES: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_SUPPORTED",
    status.HTTP_503_SERVICE_UNAVAILABLE: "SERVICE_UNAVAILABLE",
}

INTERNAL_MESSAGE = TavernError.default_message


def error_body(code: str, message: str, errors: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"code": code, "message": message}
    if errors is not None:
        body["errors"] = errors
    return body


async def tavern_error_handler(request: Request, exc: TavernError) -> JSONResponse:
    if isinstance(exc, InternalInconsistencyError) or exc.status_code >= 500:
        logger.opt(exception=exc).error("{} {} failed: {}", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(TavernError.code, INTERNAL_MESSAGE),
        )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "message": error.get("msg", ""),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    message = errors[0]["message"] if len(errors) == 1 else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("BAD_REQUEST", message, errors),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = STATUS_CODES.get(exc.status_code, TavernError.code)
    message = exc.detail if isinstance(exc.detail, str) else code
    return JSONResponse(status_code=exc.status_code, content=error_body(code, message), headers=exc.headers)


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("Unhandled error in {} {}", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(TavernError.code, INTERNAL_MESSAGE),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach the shared exception handlers to *app*."""
    app.add_exception_handler(TavernError, tavern_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)
