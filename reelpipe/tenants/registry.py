"""Cached lookup of tenant configuration and decrypted credentials."""

from __future__ import annotations

import logging
from typing import Any

from reelpipe.cache import Clock, TTLCache
from reelpipe.config import get_settings
from reelpipe.tenants.models import SECRET_FIELDS, Tenant, TenantCredentials
from reelpipe.tenants.repository import FileTenantRepository, PostgresTenantRepository, TenantRepository
from reelpipe.tenants.vault import CredentialVault, FernetVault

logger = logging.getLogger(__name__)

_ACTIVE_KEY = ("active",)


class TenantNotFoundError(LookupError):
    def __init__(self, tenant_id: str, reason: str = "not found"):
        super().__init__(f"Tenant {tenant_id} {reason}")
        self.tenant_id = tenant_id


class TenantRegistry:
    """Read-mostly tenant access with a TTL cache in front of the repository and vault.

    Writes go through ``update`` which invalidates the tenant's entries.
    """

    def __init__(
        self,
        repository: TenantRepository,
        vault: CredentialVault,
        cache_ttl: float = 300.0,
        clock: Clock | None = None,
    ):
        self._repository = repository
        self._vault = vault
        self._cache: TTLCache[Any] = TTLCache(cache_ttl, clock)

    @property
    def repository(self) -> TenantRepository:
        return self._repository

    @property
    def vault(self) -> CredentialVault:
        return self._vault

    def get(self, tenant_id: str) -> Tenant:
        """Return an active tenant or raise TenantNotFoundError."""
        tenant = self._cache.get(("tenant", tenant_id))
        if tenant is None:
            tenant = self._repository.get(tenant_id)
            if tenant is None:
                raise TenantNotFoundError(tenant_id)
            self._cache.set(("tenant", tenant_id), tenant)
        if not tenant.is_active:
            raise TenantNotFoundError(tenant_id, f"is {tenant.status.value}")
        return tenant

    def credentials(self, tenant_id: str) -> TenantCredentials:
        cached = self._cache.get(("credentials", tenant_id))
        if cached is not None:
            return cached
        self.get(tenant_id)
        values = {field: self._vault.decrypt(tenant_id, field) for field in SECRET_FIELDS}
        creds = TenantCredentials(tenant_id=tenant_id, **values)
        self._cache.set(("credentials", tenant_id), creds)
        return creds

    def active(self) -> list[Tenant]:
        return self._cache.get_or_load(
            _ACTIVE_KEY,
            lambda: [t for t in self._repository.list() if t.is_active],
        )

    def for_persona(self, persona: str) -> Tenant | None:
        """First active tenant that publishes ``persona``."""
        for tenant in self.active():
            if persona in tenant.personas:
                return tenant
        return None

    def update(self, tenant_id: str, **fields: Any) -> Tenant:
        tenant = self._repository.update(tenant_id, **fields)
        self.invalidate(tenant_id)
        logger.info("Tenant %s updated (%s)", tenant_id, ", ".join(sorted(fields)))
        return tenant

    def invalidate(self, tenant_id: str | None = None) -> None:
        if tenant_id is None:
            self._cache.clear()
            return
        self._cache.invalidate(("tenant", tenant_id))
        self._cache.invalidate(("credentials", tenant_id))
        self._cache.invalidate(_ACTIVE_KEY)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_registry: TenantRegistry | None = None


def get_tenant_registry() -> TenantRegistry:
    """Return singleton registry (Postgres if configured, else tenants.json)."""
    global _registry
    if _registry is not None:
        return _registry
    settings = get_settings()
    repository: TenantRepository
    if settings.reelpipe_database_url:
        try:
            repository = PostgresTenantRepository(settings.reelpipe_database_url)
            logger.info("Using Postgres tenant repository")
        except Exception as e:
            logger.warning("Postgres tenant repository failed (%s), falling back to file", e)
            repository = FileTenantRepository(settings.data_dir)
    else:
        repository = FileTenantRepository(settings.data_dir)
    vault = FernetVault(repository, settings.reelpipe_vault_key)
    _registry = TenantRegistry(repository, vault, cache_ttl=settings.reelpipe_cache_ttl)
    return _registry
