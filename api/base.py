"""
Response envelope shared by every endpoint.

    {"success": true,  "data": {...},  "error": null, "meta": {...}}
    {"success": false, "data": null, "error": {"code", "message", "details"}, "meta": {...}}

meta.request_id is the id RequestIDMiddleware assigned to the current
request (the same value as the X-Request-ID header), read from a context
variable so handlers need not pass the request around.
"""

from contextvars import ContextVar
from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from utils.timezone import now_utc

current_request_id: ContextVar[str | None] = ContextVar("current_request_id", default=None)


class APIError(BaseModel):
    code: str = Field(..., description="Machine-readable error code, see ErrorCodes")
    message: str = Field(..., description="Human-readable explanation")
    details: dict[str, Any] | None = Field(None, description="Structured context, e.g. redirect_to")


class APIMeta(BaseModel):
    timestamp: datetime = Field(..., description="Response time (UTC)")
    request_id: str = Field(..., description="Matches the X-Request-ID response header")


class APIResponse(BaseModel):
    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def _meta(request_id: str | None) -> APIMeta:
    return APIMeta(
        timestamp=now_utc(),
        request_id=request_id or current_request_id.get() or str(uuid4()),
    )


def _jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, list):
        return [_jsonable(item) for item in data]
    return data


def success_response(data: Any, request_id: str | None = None) -> APIResponse:
    return APIResponse(success=True, data=_jsonable(data), meta=_meta(request_id))


def error_response(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> APIResponse:
    return APIResponse(
        success=False,
        error=APIError(code=code, message=message, details=details or None),
        meta=_meta(request_id),
    )


def ok(data: Any) -> dict[str, Any]:
    """Success envelope as a JSON-ready dict; models in data are dumped."""
    return success_response(data).model_dump(mode="json")


class ErrorCodes:
    # Authentication
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"

    # Tenant gates
    BUSINESS_REQUIRED = "BUSINESS_REQUIRED"
    SUBSCRIPTION_REQUIRED = "SUBSCRIPTION_REQUIRED"

    # Resources
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    BUSINESS_IN_USE = "BUSINESS_IN_USE"
    CLIENT_IN_USE = "CLIENT_IN_USE"
    CATALOG_ITEM_IN_USE = "CATALOG_ITEM_IN_USE"
    INVOICE_NUMBER_TAKEN = "INVOICE_NUMBER_TAKEN"

    # Request validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Invoice lifecycle
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    INVOICE_ALREADY_SENT = "INVOICE_ALREADY_SENT"
    INVOICE_ALREADY_PAID = "INVOICE_ALREADY_PAID"
    INVOICE_HAS_NO_ITEMS = "INVOICE_HAS_NO_ITEMS"
    INVOICE_HAS_PAYMENTS = "INVOICE_HAS_PAYMENTS"
    INVOICE_NOTHING_OWED = "INVOICE_NOTHING_OWED"

    # Infrastructure
    INTERNAL_ERROR = "INTERNAL_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
