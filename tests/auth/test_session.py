"""Tests for SessionManager over a dict-backed Valkey mock."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from auth.config import AuthConfig
from auth.exceptions import SessionExpiredError
from auth.session import SessionManager
from clients.valkey_client import ValkeyClient
from utils.timezone import now_utc


@pytest.fixture
def store():
    return {}


@pytest.fixture
def valkey(store):
    mock = Mock(spec=ValkeyClient)
    mock.set_json.side_effect = lambda key, value, expire_seconds=None: store.__setitem__(key, value)
    mock.get_json.side_effect = lambda key: store.get(key)
    mock.delete.side_effect = lambda key: store.pop(key, None) is not None
    return mock


@pytest.fixture
def sessions(valkey):
    return SessionManager(valkey, AuthConfig(session_expiry_hours=1, session_touch_interval_seconds=0))


def age(store, token: str, **delta) -> None:
    """Move a stored session's activity into the past."""
    doc = store[f"session:{token}"]
    doc["last_activity_at"] = (now_utc() - timedelta(**delta)).isoformat()


class TestCreate:

    def test_unique_opaque_tokens(self, sessions):
        a = sessions.create_session("idp|alice")
        b = sessions.create_session("idp|alice")

        assert len(a.token) > 20
        assert a.token != b.token
        assert a.subject == "idp|alice"

    def test_stored_without_token_and_with_ttl(self, sessions, valkey, store):
        session = sessions.create_session("idp|alice")

        key = f"session:{session.token}"
        assert "token" not in store[key]
        assert store[key]["subject"] == "idp|alice"
        assert 3590 <= valkey.set_json.call_args.kwargs["expire_seconds"] <= 3600


class TestValidate:

    def test_roundtrip(self, sessions):
        created = sessions.create_session("idp|alice")

        validated = sessions.validate_session(created.token)

        assert validated.token == created.token
        assert validated.subject == "idp|alice"
        assert validated.created_at == created.created_at

    def test_unknown_token(self, sessions):
        with pytest.raises(SessionExpiredError, match="not found"):
            sessions.validate_session("nonexistent-token")

    def test_expired_session_removed(self, sessions, store):
        session = sessions.create_session("idp|alice")
        key = f"session:{session.token}"
        store[key]["expires_at"] = (now_utc() - timedelta(minutes=1)).isoformat()

        with pytest.raises(SessionExpiredError, match="expired"):
            sessions.validate_session(session.token)

        assert key not in store

    def test_malformed_document_removed(self, sessions, store):
        store["session:broken"] = {"subject": "idp|alice", "expires_at": "not a date"}

        with pytest.raises(SessionExpiredError, match="invalid"):
            sessions.validate_session("broken")

        assert "session:broken" not in store

    def test_naive_timestamps_rejected(self, sessions, store):
        session = sessions.create_session("idp|alice")
        store[f"session:{session.token}"]["expires_at"] = "2099-01-01T00:00:00"

        with pytest.raises(SessionExpiredError):
            sessions.validate_session(session.token)


class TestSlidingExpiry:

    def test_idle_session_extended(self, sessions, store):
        session = sessions.create_session("idp|alice")
        age(store, session.token, minutes=10)

        validated = sessions.validate_session(session.token)

        assert validated.expires_at > session.expires_at
        assert validated.last_activity_at > session.last_activity_at

    def test_recent_activity_not_rewritten(self, valkey):
        sessions = SessionManager(valkey, AuthConfig(session_expiry_hours=1, session_touch_interval_seconds=300))
        session = sessions.create_session("idp|alice")

        sessions.validate_session(session.token)

        assert valkey.set_json.call_count == 1

    def test_extension_disabled(self, valkey, store):
        sessions = SessionManager(valkey, AuthConfig(session_expiry_hours=1, session_extend_on_activity=False))
        session = sessions.create_session("idp|alice")
        age(store, session.token, hours=1)

        validated = sessions.validate_session(session.token)

        assert validated.expires_at == session.expires_at
        assert valkey.set_json.call_count == 1


class TestRevoke:

    def test_revoked_session_rejected(self, sessions):
        session = sessions.create_session("idp|alice")

        assert sessions.revoke_session(session.token) is True
        with pytest.raises(SessionExpiredError):
            sessions.validate_session(session.token)

    def test_unknown_token(self, sessions):
        assert sessions.revoke_session("never-existed") is False
