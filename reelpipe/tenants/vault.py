"""Credential vault: decrypts per-tenant secret fields."""

from __future__ import annotations

import logging
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from reelpipe.tenants.repository import TenantRepository

logger = logging.getLogger(__name__)


class VaultError(RuntimeError):
    pass


class CredentialVault(Protocol):
    def decrypt(self, tenant_id: str, field: str) -> str | None:
        """Return the plaintext secret, or None when the tenant has no value for ``field``."""
        ...


class FernetVault:
    """Secrets stored as Fernet tokens on the tenant record."""

    def __init__(self, repository: TenantRepository, key: str | bytes | None):
        self._repository = repository
        self._fernet = Fernet(key) if key else None

    def _cipher(self) -> Fernet:
        if self._fernet is None:
            raise VaultError("REELPIPE_VAULT_KEY is not configured")
        return self._fernet

    def encrypt(self, value: str) -> str:
        return self._cipher().encrypt(value.encode("utf-8")).decode("ascii")

    def decrypt(self, tenant_id: str, field: str) -> str | None:
        tenant = self._repository.get(tenant_id)
        if tenant is None:
            raise VaultError(f"Unknown tenant: {tenant_id}")
        token = tenant.encrypted.get(field)
        if not token:
            return None
        try:
            return self._cipher().decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken:
            logger.error("Could not decrypt %s for tenant %s (wrong key or corrupt value)", field, tenant_id)
            raise VaultError(f"Could not decrypt {field} for tenant {tenant_id}") from None

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("ascii")
