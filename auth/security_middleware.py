"""
Session authentication for every non-public route.

A valid session resolves to the subject's workspace (created on first use)
and lands in request.state as session, workspace and workspace_id; routes
hand workspace_id to the services explicitly.
"""

import logging
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import ErrorCodes, error_response
from auth.exceptions import SessionExpiredError
from auth.session import SessionManager
from core.errors import NotFoundError
from core.models import Workspace

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({"/health", "/docs", "/openapi.json"})
PUBLIC_PREFIXES = ("/webhooks/",)


def is_public(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def session_token(request: Request, cookie_name: str) -> str | None:
    """Token from the session cookie, else from an Authorization: Bearer header."""
    token = request.cookies.get(cookie_name)
    if token:
        return token
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


class AuthMiddleware(BaseHTTPMiddleware):

    def __init__(
        self,
        app,
        session_manager: SessionManager,
        resolve_workspace: Callable[[str], Workspace],
        cookie_name: str = "session_token",
    ):
        super().__init__(app)
        self._sessions = session_manager
        self._resolve_workspace = resolve_workspace
        self._cookie_name = cookie_name

    @staticmethod
    def _reject(code: str, message: str) -> JSONResponse:
        return JSONResponse(status_code=401, content=error_response(code, message).model_dump(mode="json"))

    async def dispatch(self, request: Request, call_next):
        if is_public(request.url.path):
            return await call_next(request)

        token = session_token(request, self._cookie_name)
        if token is None:
            return self._reject(ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        try:
            session = self._sessions.validate_session(token)
        except SessionExpiredError:
            return self._reject(ErrorCodes.SESSION_EXPIRED, "Session has expired")

        try:
            workspace = self._resolve_workspace(session.subject)
        except NotFoundError:
            logger.warning(f"Session for {session.subject} points at a deleted workspace")
            return self._reject(ErrorCodes.NOT_AUTHENTICATED, "Workspace is no longer available")

        request.state.session = session
        request.state.workspace = workspace
        request.state.workspace_id = workspace.id
        return await call_next(request)
