"""HTTP interface: routers and the response envelope."""

from api.base import (
    APIError,
    APIMeta,
    APIResponse,
    ErrorCodes,
    error_response,
    ok,
    success_response,
)
