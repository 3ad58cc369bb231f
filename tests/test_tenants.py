"""Tests for the tenant registry, its cache and the credential vault."""

import pytest

from reelpipe.tenants.models import Tenant, TenantStatus
from reelpipe.tenants.registry import TenantNotFoundError, TenantRegistry
from reelpipe.tenants.vault import FernetVault, VaultError


class CountingRepository:
    """Wraps a repository and counts reads."""

    def __init__(self, inner):
        self.inner = inner
        self.gets = 0
        self.lists = 0

    def get(self, tenant_id):
        self.gets += 1
        return self.inner.get(tenant_id)

    def list(self):
        self.lists += 1
        return self.inner.list()

    def save(self, tenant):
        return self.inner.save(tenant)

    def update(self, tenant_id, **fields):
        return self.inner.update(tenant_id, **fields)


class Ticker:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def counted(tenant_repo, vault_key):
    repo = CountingRepository(tenant_repo)
    ticker = Ticker()
    registry = TenantRegistry(repo, FernetVault(tenant_repo, vault_key), cache_ttl=300, clock=ticker)
    return registry, repo, ticker


def test_get_is_cached_until_ttl(counted):
    registry, repo, ticker = counted
    assert registry.get("english_shots").name == "English Shots"
    registry.get("english_shots")
    assert repo.gets == 1

    ticker.now = 301
    registry.get("english_shots")
    assert repo.gets == 2


def test_update_invalidates_cache(counted):
    registry, repo, _ = counted
    registry.get("english_shots")
    registry.active()
    registry.update("english_shots", name="English Shots Daily")
    assert registry.get("english_shots").name == "English Shots Daily"
    assert repo.gets == 2
    registry.active()
    assert repo.lists == 2


def test_unknown_and_inactive_tenants(tenants, tenant_repo):
    with pytest.raises(TenantNotFoundError):
        tenants.get("nobody")
    tenant_repo.save(Tenant(id="paused", name="Paused", status=TenantStatus.SUSPENDED))
    with pytest.raises(TenantNotFoundError, match="suspended"):
        tenants.get("paused")
    assert [t.id for t in tenants.active()] == ["english_shots", "health_shots"]


def test_credentials_are_decrypted_and_cached(counted):
    registry, repo, _ = counted
    creds = registry.credentials("english_shots")
    assert creds.google_client_id == "client-id"
    assert creds.refresh_token == "refresh-token"
    assert creds.has_platform
    assert not creds.has_storage
    assert registry.credentials("english_shots") is creds


def test_credentials_hidden_from_repr(tenants):
    creds = tenants.credentials("english_shots")
    assert "refresh-token" not in repr(creds)
    assert "client-secret" not in repr(tenants.get("english_shots"))


def test_tenant_without_secrets(tenants):
    creds = tenants.credentials("health_shots")
    assert creds.google_client_id is None
    assert not creds.has_platform


def test_for_persona(tenants):
    assert tenants.for_persona("eye_health_tips").id == "health_shots"
    assert tenants.for_persona("unknown") is None


def test_vault_round_trip_and_wrong_key(tenant_repo, vault_key):
    vault = FernetVault(tenant_repo, vault_key)
    token = vault.encrypt("s3cret")
    assert token != "s3cret"
    tenant_repo.update("health_shots", encrypted={"refresh_token": token})
    assert vault.decrypt("health_shots", "refresh_token") == "s3cret"

    other = FernetVault(tenant_repo, FernetVault.generate_key())
    with pytest.raises(VaultError):
        other.decrypt("health_shots", "refresh_token")


def test_vault_without_key(tenant_repo):
    vault = FernetVault(tenant_repo, None)
    assert vault.decrypt("health_shots", "refresh_token") is None
    with pytest.raises(VaultError, match="REELPIPE_VAULT_KEY"):
        vault.decrypt("english_shots", "refresh_token")
    with pytest.raises(VaultError):
        vault.encrypt("value")
