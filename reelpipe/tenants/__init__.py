"""Tenants: per-channel configuration, encrypted credentials and the cached registry."""

from reelpipe.tenants.models import Branding, Tenant, TenantCredentials, TenantStatus
from reelpipe.tenants.registry import TenantNotFoundError, TenantRegistry, get_tenant_registry
from reelpipe.tenants.repository import FileTenantRepository, PostgresTenantRepository, TenantRepository
from reelpipe.tenants.vault import CredentialVault, FernetVault, VaultError

__all__ = [
    "Branding",
    "CredentialVault",
    "FernetVault",
    "FileTenantRepository",
    "PostgresTenantRepository",
    "Tenant",
    "TenantCredentials",
    "TenantNotFoundError",
    "TenantRegistry",
    "TenantRepository",
    "TenantStatus",
    "VaultError",
    "get_tenant_registry",
]
