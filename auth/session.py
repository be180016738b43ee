"""
Valkey-backed sessions.

Each session is one JSON document under session:<token>, with a Valkey TTL
equal to its remaining lifetime, so Valkey evicts it at expiry. Sessions
are issued once the identity provider has verified a subject; this service
validates them on every request and revokes them on logout.
"""

import logging
import secrets
from datetime import timedelta

from pydantic import ValidationError

from auth.config import AuthConfig
from auth.exceptions import SessionExpiredError
from auth.types import Session
from clients.valkey_client import ValkeyClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Usage:
        sessions = SessionManager(valkey, AuthConfig())
        token = sessions.create_session("idp|123").token
        session = sessions.validate_session(token)   # SessionExpiredError if gone
        sessions.revoke_session(token)
    """

    KEY_PREFIX = "session:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config
        self._lifetime = timedelta(hours=config.session_expiry_hours)

    def _key(self, token: str) -> str:
        return f"{self.KEY_PREFIX}{token}"

    def _store(self, session: Session) -> None:
        ttl = max(1, int(session.remaining(now_utc()).total_seconds()))
        self._valkey.set_json(
            self._key(session.token),
            session.model_dump(mode="json", exclude={"token"}),
            expire_seconds=ttl,
        )

    def create_session(self, subject: str) -> Session:
        now = now_utc()
        session = Session(
            token=secrets.token_urlsafe(32),
            subject=subject,
            created_at=now,
            expires_at=now + self._lifetime,
            last_activity_at=now,
        )
        self._store(session)
        logger.info(f"Session created for {subject}")
        return session

    def validate_session(self, token: str) -> Session:
        """
        Load a live session, sliding its expiry when configured.

        Raises:
            SessionExpiredError: Unknown, expired or unreadable token
        """
        data = self._valkey.get_json(self._key(token))
        if data is None:
            raise SessionExpiredError("Session not found or expired")

        try:
            session = Session.model_validate({**data, "token": token})
        except ValidationError as e:
            logger.warning(f"Discarding malformed session document: {e.error_count()} error(s)")
            self._valkey.delete(self._key(token))
            raise SessionExpiredError("Session is invalid") from e

        now = now_utc()
        if session.is_expired(now):
            self._valkey.delete(self._key(token))
            raise SessionExpiredError("Session expired")

        if self._config.session_extend_on_activity and self._due_for_touch(session, now):
            session = session.model_copy(update={"expires_at": now + self._lifetime, "last_activity_at": now})
            self._store(session)

        return session

    def _due_for_touch(self, session: Session, now) -> bool:
        idle = (now - session.last_activity_at).total_seconds()
        return idle >= self._config.session_touch_interval_seconds

    def revoke_session(self, token: str) -> bool:
        """Delete a session. True if it existed."""
        return self._valkey.delete(self._key(token))
