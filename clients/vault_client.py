"""
HashiCorp Vault access for the invoicing service.

Every secret this service uses lives in one KV v2 entry under 'invoicing/',
grouped by the system it unlocks. SECRET_GROUPS is the complete list; a
missing group or field is a startup error, never a silent default.

Authentication is AppRole from the environment (VAULT_ADDR, VAULT_ROLE_ID,
VAULT_SECRET_ID, optional VAULT_NAMESPACE).
"""

import os
import logging
from typing import Dict, Iterable

import hvac
from hvac.exceptions import Forbidden, InvalidPath, Unauthorized

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "invoicing"

# group → fields that must be present in invoicing/<group>
SECRET_GROUPS: Dict[str, tuple[str, ...]] = {
    "database": ("url",),
    "valkey": ("url",),
    "email": ("gateway_url", "api_key", "hmac_secret"),
    "pdf": ("url", "api_key"),
    "billing": ("webhook_secret",),
}

_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, Dict[str, str]] = {}


class VaultError(Exception):
    """Vault operation failed. Fatal: the service cannot start without its secrets."""


class VaultClient:
    """AppRole-authenticated reader for the invoicing/ secret tree."""

    def __init__(self, vault_addr: str | None = None, vault_namespace: str | None = None):
        """
        Log in with AppRole credentials from the environment.

        Raises:
            ValueError: VAULT_ADDR or the AppRole credentials are missing
            PermissionError: Vault rejected the login
        """
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")
        if not role_id or not secret_id:
            raise ValueError("VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required")

        client_kwargs = {"url": self.vault_addr}
        if self.vault_namespace:
            client_kwargs["namespace"] = self.vault_namespace
        self.client = hvac.Client(**client_kwargs)

        try:
            login = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except hvac.exceptions.VaultError as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"Vault AppRole authentication failed: {e}") from e

        self.client.token = login["auth"]["client_token"]
        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed: token not accepted")

        logger.info(f"Vault client authenticated against {self.vault_addr}")

    def read_group(self, group: str) -> Dict[str, str]:
        """
        Read one secret group and check its fields.

        Args:
            group: Key of SECRET_GROUPS, e.g. 'pdf'

        Returns:
            The group's required fields (extra fields in Vault are ignored)

        Raises:
            KeyError: Unknown group, or a required field is missing
            PermissionError: Path absent or not readable by this role
        """
        if group not in SECRET_GROUPS:
            raise KeyError(f"Unknown secret group '{group}'")
        path = f"{_SECRET_PREFIX}/{group}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(path=path, raise_on_deleted_version=True)
        except InvalidPath as e:
            logger.error(f"Secret path not found: {path}")
            raise PermissionError(f"Secret path '{path}' not found in Vault") from e
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {path}: {e}")
            raise PermissionError(f"Access denied to secret '{path}'") from e

        data = response["data"]["data"]
        missing = [field for field in SECRET_GROUPS[group] if field not in data]
        if missing:
            raise KeyError(f"Secret '{path}' is missing field(s): {', '.join(missing)}")
        return {field: data[field] for field in SECRET_GROUPS[group]}


def _ensure_vault_client() -> VaultClient:
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


def secret_group(group: str) -> Dict[str, str]:
    """Cached read of one group for the life of the process."""
    if group not in _secret_cache:
        _secret_cache[group] = _ensure_vault_client().read_group(group)
    return dict(_secret_cache[group])


def preload_secrets(groups: Iterable[str]) -> None:
    """
    Read the given groups now.

    Raises:
        VaultError: Naming the first group that cannot be read
    """
    for group in groups:
        try:
            secret_group(group)
        except (KeyError, PermissionError) as e:
            raise VaultError(f"Secret group '{group}' unavailable: {e}") from e
    logger.info("Secrets loaded from Vault")


def get_database_url() -> str:
    """PostgreSQL connection URL."""
    return secret_group("database")["url"]


def get_valkey_url() -> str:
    """Valkey connection URL (sessions and Celery broker)."""
    return secret_group("valkey")["url"]


def get_email_config() -> Dict[str, str]:
    """Email gateway settings: gateway_url, api_key, hmac_secret."""
    return secret_group("email")


def get_pdf_service_config() -> Dict[str, str]:
    """PDF renderer settings: url, api_key."""
    return secret_group("pdf")


def get_billing_webhook_secret() -> str:
    """Signing secret of the subscription billing provider's webhooks."""
    return secret_group("billing")["webhook_secret"]
