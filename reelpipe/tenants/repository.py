"""Tenant persistence: Postgres (preferred) or a JSON file."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Protocol

from reelpipe.jobs.models import utcnow
from reelpipe.tenants.models import Tenant, TenantStatus

logger = logging.getLogger(__name__)


class TenantRepository(Protocol):
    def get(self, tenant_id: str) -> Tenant | None: ...
    def list(self) -> list[Tenant]: ...
    def save(self, tenant: Tenant) -> Tenant: ...
    def update(self, tenant_id: str, **fields: Any) -> Tenant: ...


# ---------------------------------------------------------------------------
# Postgres implementation
# ---------------------------------------------------------------------------

class PostgresTenantRepository:
    def __init__(self, database_url: str):
        self._url = database_url
        self._conn = self._connect()

    def _connect(self):
        try:
            import psycopg
        except ImportError:
            raise ImportError(
                "psycopg required for Postgres tenant store. pip install 'psycopg[binary]'"
            )
        conn = psycopg.connect(self._url, autocommit=True)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS tenants (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'active',
                personas JSONB NOT NULL DEFAULT '[]',
                branding JSONB NOT NULL DEFAULT '{}',
                encrypted JSONB NOT NULL DEFAULT '{}',
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)
        return conn

    def get(self, tenant_id: str) -> Tenant | None:
        row = self._conn.execute(
            """
            SELECT id, name, status, personas, branding, encrypted, created_at, updated_at
            FROM tenants WHERE id = %s
            """,
            (tenant_id,),
        ).fetchone()
        return self._row_to_tenant(row) if row else None

    def list(self) -> list[Tenant]:
        rows = self._conn.execute(
            """
            SELECT id, name, status, personas, branding, encrypted, created_at, updated_at
            FROM tenants ORDER BY id
            """
        ).fetchall()
        return [self._row_to_tenant(r) for r in rows]

    def save(self, tenant: Tenant) -> Tenant:
        self._conn.execute(
            """
            INSERT INTO tenants (id, name, status, personas, branding, encrypted, created_at, updated_at)
            VALUES (%s, %s, %s, %s::jsonb, %s::jsonb, %s::jsonb, NOW(), NOW())
            ON CONFLICT (id) DO UPDATE SET
                name = EXCLUDED.name, status = EXCLUDED.status, personas = EXCLUDED.personas,
                branding = EXCLUDED.branding, encrypted = EXCLUDED.encrypted, updated_at = NOW()
            """,
            (
                tenant.id,
                tenant.name,
                tenant.status.value,
                json.dumps(tenant.personas),
                tenant.branding.model_dump_json(),
                json.dumps(tenant.encrypted),
            ),
        )
        return tenant

    def update(self, tenant_id: str, **fields: Any) -> Tenant:
        tenant = self.get(tenant_id)
        if tenant is None:
            raise KeyError(tenant_id)
        updated = tenant.model_copy(update={**fields, "updated_at": utcnow()})
        updated = Tenant.model_validate(updated.model_dump())
        return self.save(updated)

    def _row_to_tenant(self, row) -> Tenant:
        def _json(value, default):
            if value is None:
                return default
            return value if isinstance(value, (dict, list)) else json.loads(value)

        return Tenant(
            id=row[0],
            name=row[1],
            status=TenantStatus(row[2]),
            personas=_json(row[3], []),
            branding=_json(row[4], {}),
            encrypted=_json(row[5], {}),
            created_at=row[6],
            updated_at=row[7],
        )


# ---------------------------------------------------------------------------
# File-based implementation
# ---------------------------------------------------------------------------

class FileTenantRepository:
    """All tenants in one JSON document (``<data_dir>/tenants.json``)."""

    def __init__(self, data_dir: Path):
        self._path = Path(data_dir) / "tenants.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self._path.exists():
            return {}
        with open(self._path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _dump(self, data: dict[str, dict[str, Any]]) -> None:
        tmp = self._path.parent / (self._path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self._path)

    def get(self, tenant_id: str) -> Tenant | None:
        raw = self._load().get(tenant_id)
        return Tenant.model_validate(raw) if raw else None

    def list(self) -> list[Tenant]:
        return [Tenant.model_validate(v) for _, v in sorted(self._load().items())]

    def save(self, tenant: Tenant) -> Tenant:
        with self._lock:
            data = self._load()
            data[tenant.id] = tenant.model_dump(mode="json")
            self._dump(data)
        return tenant

    def update(self, tenant_id: str, **fields: Any) -> Tenant:
        with self._lock:
            data = self._load()
            if tenant_id not in data:
                raise KeyError(tenant_id)
            merged = {**data[tenant_id], **fields, "updated_at": utcnow()}
            tenant = Tenant.model_validate(merged)
            data[tenant_id] = tenant.model_dump(mode="json")
            self._dump(data)
        return tenant
