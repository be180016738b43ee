"""Request tracing: request ids and one access log line per request."""

import logging
import re
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from api.base import current_request_id

logger = logging.getLogger(__name__)

# Caller-supplied ids are kept only when they are short and header-safe
_FORWARDED_ID = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


def request_id_for(request: Request) -> str:
    """Upstream X-Request-ID when it looks sane, otherwise a fresh UUID."""
    forwarded = request.headers.get("X-Request-ID", "")
    if _FORWARDED_ID.match(forwarded):
        return forwarded
    return str(uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an id and logs its outcome.

    The id is available as request.state.request_id, echoed in the
    X-Request-ID response header, and written to the access log together
    with the workspace that made the call (when authentication resolved one).
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request_id_for(request)
        request.state.request_id = request_id
        token = current_request_id.set(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        finally:
            current_request_id.reset(token)

        elapsed_ms = (time.perf_counter() - started) * 1000
        workspace_id = getattr(request.state, "workspace_id", None)
        logger.info(
            "%s %s -> %s (%.1f ms) request_id=%s workspace_id=%s",
            request.method, request.url.path, response.status_code, elapsed_ms, request_id, workspace_id,
        )
        response.headers["X-Request-ID"] = request_id
        return response
