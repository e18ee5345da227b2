"""
HashiCorp Vault access for ward portal secrets.

AppRole login from VAULT_* environment variables. Every path is confined
to the 'ward_portal/' KV v2 mount prefix. Missing configuration or a
missing secret stops startup: the auth service cannot run without its
database URL and signing secrets.
"""

import os
import logging
from typing import Dict, Iterable

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "ward_portal"

# Process-wide client and field cache; secrets are read once at startup
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultClient:
    """AppRole-authenticated reader for ward_portal/ secrets."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
    ):
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

        self._login(role_id, secret_id)
        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            response = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except Exception as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"AppRole authentication failed: {e}")
        self.client.token = response["auth"]["client_token"]

    def read_secret(self, path: str) -> Dict[str, str]:
        """
        Read every field of ward_portal/<path>.

        Raises:
            PermissionError: Path missing or not readable by this AppRole
        """
        full_path = f"{_SECRET_PREFIX}/{path}"
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath:
            logger.error(f"Secret path not found: {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault")
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}")
        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """
        Read one field of ward_portal/<path>.

        Raises:
            PermissionError: Path missing or not readable
            KeyError: Field not present in the secret
        """
        return self.get_fields(path, [field])[field]

    def get_fields(self, path: str, fields: Iterable[str]) -> Dict[str, str]:
        """Read several fields of one secret in a single request."""
        data = self.read_secret(path)
        missing = [f for f in fields if f not in data]
        if missing:
            raise KeyError(
                f"Field(s) {', '.join(missing)} not found in secret '{_SECRET_PREFIX}/{path}'. "
                f"Available: {', '.join(data)}"
            )
        return {f: data[f] for f in fields}


def _get_cached(path: str, *fields: str) -> Dict[str, str]:
    """Fields of one secret, fetched together on first use and cached."""
    keys = {f: f"{_SECRET_PREFIX}/{path}/{f}" for f in fields}
    if any(key not in _secret_cache for key in keys.values()):
        values = _ensure_vault_client().get_fields(path, fields)
        for f, key in keys.items():
            _secret_cache[key] = values[f]
    return {f: _secret_cache[key] for f, key in keys.items()}


def get_database_url() -> str:
    """PostgreSQL connection URL."""
    return _get_cached("database", "url")["url"]


def get_valkey_url() -> str:
    """Valkey (Redis protocol) connection URL."""
    return _get_cached("valkey", "url")["url"]


def get_email_config() -> Dict[str, str]:
    """Email gateway settings: gateway_url, api_key, hmac_secret."""
    return _get_cached("email", "gateway_url", "api_key", "hmac_secret")


def get_zalo_config() -> Dict[str, str]:
    """Zalo application credentials: app_id, app_secret."""
    return _get_cached("zalo", "app_id", "app_secret")


def get_jwt_secrets() -> Dict[str, str]:
    """Token signing secrets: access_secret, refresh_secret."""
    return _get_cached("jwt", "access_secret", "refresh_secret")
