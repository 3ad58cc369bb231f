"""Per-tenant generation and upload schedules (hour of day -> personas)."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field

from reelpipe.config import get_settings

logger = logging.getLogger(__name__)

ScheduleKind = Literal["generation", "upload"]


class TenantSchedule(BaseModel):
    generation: dict[int, list[str]] = Field(default_factory=dict)
    upload: dict[int, list[str]] = Field(default_factory=dict)
    weekdays: list[int] | None = None  # 0 = Monday; None means every day

    def personas_at(self, kind: ScheduleKind, when: datetime) -> list[str]:
        if self.weekdays is not None and when.weekday() not in self.weekdays:
            return []
        return list(getattr(self, kind).get(when.hour, []))


class ScheduleBook:
    def __init__(self, schedules: dict[str, TenantSchedule]):
        self._schedules = schedules

    def has_schedule(self, tenant_id: str) -> bool:
        return tenant_id in self._schedules

    def personas_for(self, tenant_id: str, kind: ScheduleKind, when: datetime | None = None) -> list[str] | None:
        """Personas due for ``kind`` at ``when``; None when the tenant has no schedule."""
        schedule = self._schedules.get(tenant_id)
        if schedule is None:
            return None
        return schedule.personas_at(kind, when or datetime.now())

    def is_due(self, tenant_id: str, kind: ScheduleKind, when: datetime | None = None) -> bool:
        """Unscheduled tenants are always due."""
        personas = self.personas_for(tenant_id, kind, when)
        return personas is None or len(personas) > 0


def load_schedules(path: Path | None = None) -> ScheduleBook:
    path = path or get_settings().config_dir / "schedules.yaml"
    if not path.exists():
        logger.info("No schedule file at %s; every tenant runs on every trigger", path)
        return ScheduleBook({})
    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return ScheduleBook({tenant: TenantSchedule.model_validate(value or {}) for tenant, value in raw.items()})
