"""
HashiCorp Vault client for billing secret management.

Uses AppRole authentication. Fails fast on missing Vault configuration.
All paths scoped to 'billing/' prefix - no escape to other secrets.

Stripe values are read leniently: a missing field comes back as None so the
caller can raise a configuration error when (and only when) it is needed.
"""

import os
import logging
from typing import Dict

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

from core.config import brand_account_field
from core.models import BillingEntity

logger = logging.getLogger(__name__)

# Project scope - all secrets under this path
_SECRET_PREFIX = "billing"

# Singleton instance and per-path secret cache
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, Dict[str, str]] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultClient:
    """Vault client with AppRole auth, env-based config, and fail-fast behavior."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
    ):
        """Initialize with environment variables. Fails fast on missing config."""
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        self.vault_role_id = os.getenv("VAULT_ROLE_ID")
        self.vault_secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")

        if not self.vault_role_id or not self.vault_secret_id:
            raise ValueError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        client_kwargs = {"url": self.vault_addr}
        if self.vault_namespace:
            client_kwargs["namespace"] = self.vault_namespace

        self.client = hvac.Client(**client_kwargs)
        self._authenticate_approle()

        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _authenticate_approle(self) -> None:
        """Authenticate using AppRole credentials."""
        try:
            auth_response = self.client.auth.approle.login(
                role_id=self.vault_role_id,
                secret_id=self.vault_secret_id,
            )
            self.client.token = auth_response["auth"]["client_token"]
            logger.info("AppRole authentication successful")
        except Exception as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"AppRole authentication failed: {e}")

    def read_secret(self, path: str) -> Dict[str, str]:
        """
        Read all fields of a KV v2 secret.

        Path is automatically scoped to 'billing/' prefix.

        Raises:
            PermissionError: Path not accessible or doesn't exist.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
            return response["data"]["data"]

        except InvalidPath:
            logger.error(f"Secret path not found: {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault")

        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}")


# Convenience functions


def _read_cached(path: str, required: bool = True) -> Dict[str, str]:
    """
    All fields of billing/<path>, read from Vault once per process.

    With required=False a missing or inaccessible path reads as empty and is
    not cached, so it is picked up once it has been written.
    """
    if path in _secret_cache:
        return _secret_cache[path]

    client = _ensure_vault_client()
    try:
        secret_data = client.read_secret(path)
    except PermissionError:
        if required:
            raise
        return {}

    _secret_cache[path] = secret_data
    return secret_data


def _required_field(path: str, field: str) -> str:
    secret_data = _read_cached(path)
    if field not in secret_data:
        raise KeyError(
            f"Field '{field}' not found in secret '{_SECRET_PREFIX}/{path}'. "
            f"Available: {', '.join(secret_data.keys())}"
        )
    return secret_data[field]


def get_database_url() -> str:
    """Get PostgreSQL connection URL from Vault."""
    return _required_field("database", "url")


def get_valkey_url() -> str:
    """Get Valkey (Redis) connection URL from Vault."""
    return _required_field("valkey", "url")


def get_stripe_config() -> Dict[str, str | None]:
    """
    Get Stripe credentials from Vault.

    Returns:
        Dict with keys: secret_key, webhook_secret. Missing fields are None.
    """
    secret_data = _read_cached("stripe", required=False)
    if not secret_data:
        logger.warning("No Stripe secret in Vault; Stripe calls will fail until configured")

    return {
        "secret_key": secret_data.get("secret_key") or None,
        "webhook_secret": secret_data.get("webhook_secret") or None,
    }


def get_brand_account_ids() -> Dict[str, str]:
    """
    Get Stripe sub-account ids per billing entity from Vault.

    Only needed with organization API keys. Entities without a configured
    account are left out of the mapping.
    """
    secret_data = _read_cached("stripe_accounts", required=False)

    return {
        entity.value: secret_data[brand_account_field(entity)]
        for entity in BillingEntity
        if secret_data.get(brand_account_field(entity))
    }
