"""
Exception → response envelope mapping.

Handlers are chosen by exception class, most specific first, so a
DomainError (a ValueError) keeps its own status and code.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from api.base import ErrorCodes, error_response
from core.errors import DomainError

logger = logging.getLogger(__name__)

_HTTP_CODES = {
    401: ErrorCodes.NOT_AUTHENTICATED,
    404: ErrorCodes.NOT_FOUND,
}


def _envelope(
    request: Request,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    body = error_response(code, message, details, request_id=request_id)
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"), headers=headers)


def _field_errors(errors) -> dict[str, Any]:
    return {"errors": [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in errors
    ]}


def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(DomainError)
    async def domain_error(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return _envelope(request, exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return _envelope(request, 422, ErrorCodes.VALIDATION_ERROR, "Request validation failed",
                         _field_errors(exc.errors()))

    @app.exception_handler(ValidationError)
    async def model_validation_error(request: Request, exc: ValidationError):
        return _envelope(request, 422, ErrorCodes.VALIDATION_ERROR, f"Invalid {exc.title}",
                         _field_errors(exc.errors()))

    @app.exception_handler(ValueError)
    async def value_error(request: Request, exc: ValueError):
        return _envelope(request, 400, ErrorCodes.INVALID_REQUEST, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        code = _HTTP_CODES.get(exc.status_code, ErrorCodes.INVALID_REQUEST)
        return _envelope(request, exc.status_code, code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        return _envelope(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
