"""Wiring shared by the stage processors, and their result types."""

from __future__ import annotations

import logging
import random
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, TypeVar

from pydantic import BaseModel, Field

from reelpipe.catalog import PersonaCatalog, load_catalog
from reelpipe.config import Settings, get_settings
from reelpipe.formats.rules import FormatRules, load_format_rules
from reelpipe.generation.service import ContentGenerator
from reelpipe.jobs.models import JobStatus, truncate_error, utcnow
from reelpipe.jobs.store import JobStore, get_job_store
from reelpipe.llm import provider_from_settings
from reelpipe.media.encoder import Encoder
from reelpipe.media.storage import Storage, storage_for
from reelpipe.publish.playlists import PlaylistManager
from reelpipe.publish.youtube import VideoPlatform, YouTubeClient
from reelpipe.render import FrameRenderer, HttpFrameRenderer
from reelpipe.schedule import ScheduleBook, load_schedules
from reelpipe.tenants.registry import TenantRegistry, get_tenant_registry

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class ItemOutcome(BaseModel):
    job_id: str | None = None
    ok: bool
    error: str | None = None
    detail: dict[str, Any] = Field(default_factory=dict)


class StageSummary(BaseModel):
    stage: str
    items: list[ItemOutcome] = Field(default_factory=list)
    recovered: int = 0
    message: str = ""

    @property
    def succeeded(self) -> int:
        return sum(1 for i in self.items if i.ok)

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if not i.ok)

    def text(self) -> str:
        if self.message and not self.items:
            return self.message
        parts = [f"{self.stage}: {self.succeeded} succeeded, {self.failed} failed"]
        if self.recovered:
            parts.append(f"{self.recovered} recovered")
        if self.message:
            parts.append(self.message)
        return "; ".join(parts)


def run_settled(
    fn: Callable[[T], R],
    items: Iterable[T],
    max_workers: int,
) -> list[tuple[T, R | None, BaseException | None]]:
    """Run ``fn`` over ``items`` concurrently; collect every outcome.

    One item's exception never cancels its siblings. Results come back in
    input order as ``(item, result, error)``.
    """
    items = list(items)
    if not items:
        return []
    outcomes: dict[int, tuple[T, R | None, BaseException | None]] = {}
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as executor:
        futures = {executor.submit(fn, item): idx for idx, item in enumerate(items)}
        for future in as_completed(futures):
            idx = futures[future]
            try:
                outcomes[idx] = (items[idx], future.result(), None)
            except Exception as exc:
                outcomes[idx] = (items[idx], None, exc)
    return [outcomes[i] for i in range(len(items))]


def fail_job(store: JobStore, job_id: str, prefix: str, error: BaseException | str) -> str:
    """Record a stage failure on the job; returns the stored message."""
    message = truncate_error(f"{prefix}: {error}")
    logger.error("[Job %s] %s", job_id, message)
    store.update_job(job_id, status=JobStatus.FAILED, error_message=message)
    return message


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@dataclass
class PipelineContext:
    settings: Settings
    store: JobStore
    tenants: TenantRegistry
    catalog: PersonaCatalog
    format_rules: FormatRules
    schedules: ScheduleBook
    renderer: FrameRenderer
    encoder: Encoder
    playlists: PlaylistManager
    storage_factory: Callable[[str | None], Storage] | None = None
    platform_factory: Callable[[str], VideoPlatform] | None = None
    generator: ContentGenerator | None = None
    clock: Callable[[], datetime] = utcnow
    rng: random.Random = field(default_factory=random.Random)

    def content_generator(self) -> ContentGenerator:
        if self.generator is None:
            self.generator = ContentGenerator(
                provider_from_settings(self.settings),
                allow_fallback=self.settings.reelpipe_allow_fallback_content,
            )
        return self.generator

    def storage(self, tenant_id: str | None) -> Storage:
        if self.storage_factory is not None:
            return self.storage_factory(tenant_id)
        creds = None
        if self.settings.reelpipe_storage_backend == "cloudinary" and tenant_id:
            creds = self.tenants.credentials(tenant_id)
        return storage_for(creds, self.settings)

    def platform(self, tenant_id: str) -> VideoPlatform:
        if self.platform_factory is not None:
            return self.platform_factory(tenant_id)
        return YouTubeClient.from_credentials(
            self.tenants.credentials(tenant_id),
            timeout=max(self.settings.reelpipe_http_timeout, 120.0),
        )


def build_context(settings: Settings | None = None) -> PipelineContext:
    """Production wiring from settings."""
    settings = settings or get_settings()
    return PipelineContext(
        settings=settings,
        store=get_job_store(),
        tenants=get_tenant_registry(),
        catalog=load_catalog(),
        format_rules=load_format_rules(),
        schedules=load_schedules(),
        renderer=HttpFrameRenderer(
            settings.reelpipe_renderer_url,
            token=settings.reelpipe_renderer_token,
            width=settings.reelpipe_video_width,
            height=settings.reelpipe_video_height,
            folder=settings.reelpipe_frames_folder,
            timeout=settings.reelpipe_http_timeout,
        ),
        encoder=Encoder(settings.reelpipe_ffmpeg_path, settings.reelpipe_encoder_timeout),
        playlists=PlaylistManager(cache_ttl=settings.reelpipe_cache_ttl),
    )


_context: PipelineContext | None = None


def get_pipeline_context() -> PipelineContext:
    """Return the process-wide context (built on first use)."""
    global _context
    if _context is None:
        _context = build_context()
    return _context
