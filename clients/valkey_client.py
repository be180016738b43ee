"""
Valkey (Redis-compatible) client.

Session documents with a TTL (auth.session). The same Valkey instance is
the Celery broker of core.jobs. Thin wrapper over redis-py; the
URL comes from Vault. Connection problems raise, there are no fallbacks.
"""

import json
import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Usage:
        valkey = ValkeyClient("redis://localhost:6379/0")
        valkey.set_json("session:abc", {"subject": "idp|1"}, expire_seconds=3600)
    """

    def __init__(self, url: str):
        """
        Connect and ping once.

        Raises:
            redis.ConnectionError: If Valkey is unreachable
        """
        self._client = redis.from_url(url, decode_responses=True)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        """True when Valkey answers; raises redis.ConnectionError otherwise."""
        self._client.ping()
        return True

    # Documents (sessions)

    def set_json(self, key: str, value: dict | list, expire_seconds: int | None = None) -> None:
        """Store value as JSON, replacing any previous value and TTL."""
        payload = json.dumps(value)
        if expire_seconds is None:
            self._client.set(key, payload)
        else:
            self._client.setex(key, expire_seconds, payload)

    def get_json(self, key: str) -> dict | list | None:
        """
        Load a JSON value.

        Returns:
            Decoded value, or None if the key is missing or expired

        Raises:
            ValueError: If the stored value is not JSON
        """
        raw = self._client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Key '{key}' does not hold JSON: {e}") from e

    def delete(self, key: str) -> bool:
        """Remove a key of any type. True if it existed."""
        return self._client.delete(key) > 0

    def close(self) -> None:
        self._client.close()
        logger.info("ValkeyClient closed")
