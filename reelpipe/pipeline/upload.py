"""Step 4: publish an assembled video to the tenant's channel."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

from reelpipe.formats.definitions import get_format
from reelpipe.jobs.models import Job, truncate_error
from reelpipe.jobs.payloads import UploadInput, UploadOutput, payload_for_step
from reelpipe.media.storage import Storage
from reelpipe.pipeline.context import ItemOutcome, PipelineContext, StageSummary, fail_job
from reelpipe.pipeline.recovery import recover_jobs
from reelpipe.publish.metadata import build_metadata
from reelpipe.publish.youtube import VideoPlatform

logger = logging.getLogger(__name__)

STAGE = "upload"
FAILURE_PREFIX = "Upload failed"

_IMAGE_TYPES = {".png": "image/png", ".jpg": "image/jpeg", ".jpeg": "image/jpeg", ".webp": "image/webp"}


def claim_upload_job(ctx: PipelineContext, tenant_id: str | None = None) -> Job | None:
    """Claim the next step-4 job, honouring upload schedules when no tenant is named."""
    if tenant_id or not ctx.settings.reelpipe_respect_schedule:
        return ctx.store.claim_next_pending_job(4, tenant_id)
    now = ctx.clock()
    for tenant in ctx.tenants.active():
        if not ctx.schedules.is_due(tenant.id, "upload", now):
            continue
        job = ctx.store.claim_next_pending_job(4, tenant.id)
        if job is not None:
            return job
    return None


def _resolve_playlist(
    ctx: PipelineContext,
    job: Job,
    platform: VideoPlatform,
    persona_name: str,
    topic_name: str,
) -> str | None:
    try:
        return ctx.playlists.get_or_create(
            job.tenant_id or "",
            platform,
            job.persona,
            job.topic,
            title=f"{persona_name}: {topic_name}",
            description=f"{topic_name} shorts from {persona_name}.",
        )
    except Exception as e:
        logger.warning("[Job %s] Playlist lookup failed, uploading without one: %s", job.id, e)
        return None


def _set_thumbnail(storage: Storage, platform: VideoPlatform, job: Job, video_id: str, frame_url: str) -> None:
    suffix = PurePosixPath(urlparse(frame_url).path).suffix.lower()
    try:
        platform.set_thumbnail(video_id, storage.get(frame_url), _IMAGE_TYPES.get(suffix, "image/png"))
    except Exception as e:
        logger.warning("[Job %s] Thumbnail not set: %s", job.id, e)


def _delete_remote(storage: Storage, job: Job, payload: UploadInput) -> None:
    removed = 0
    targets = [(url, "image") for url in payload.frame_urls] + [(payload.video_url, "video")]
    for url, resource_type in targets:
        try:
            if storage.delete(url, resource_type):
                removed += 1
        except Exception as e:
            logger.warning("[Job %s] Could not delete %s: %s", job.id, url, e)
    logger.info("[Job %s] Removed %d/%d stored assets", job.id, removed, len(targets))


def upload_job(ctx: PipelineContext, job: Job) -> UploadOutput:
    """Publish one claimed step-4 job. Marks the job failed and re-raises on any error."""
    settings = ctx.settings
    tmp_path: Path | None = None
    try:
        payload = payload_for_step(job, 4)
        if not job.tenant_id:
            raise ValueError("Job has no tenant")
        tenant = ctx.tenants.get(job.tenant_id)
        platform = ctx.platform(job.tenant_id)
        storage = ctx.storage(job.tenant_id)

        persona_name = ctx.catalog.display_name(job.persona)
        topic_name = job.topic_display_name or ctx.catalog.topic_display_name(job.persona, job.topic)
        metadata = build_metadata(
            job.id,
            payload.content,
            persona_name,
            topic_name,
            branding=tenant.branding.model_dump(),
            content_kind=get_format(payload.format).content_kind,
            category_id=settings.reelpipe_youtube_category_id,
            privacy=settings.reelpipe_youtube_privacy,
        )
        if payload.platform_video_id:
            # published on an earlier attempt; only the completion write is left
            video_id = payload.platform_video_id
            playlist_id = payload.playlist_id
            logger.info("[Job %s] Already published as %s, completing", job.id, video_id)
        else:
            settings.work_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(prefix=f"{job.id}-", suffix=".mp4", dir=settings.work_dir)
            tmp_path = Path(name)
            with os.fdopen(fd, "wb") as f:
                f.write(storage.get(payload.video_url))

            playlist_id = _resolve_playlist(ctx, job, platform, persona_name, topic_name)
            video_id = platform.upload(tmp_path, metadata)
            logger.info("[Job %s] Uploaded as %s", job.id, video_id)
            ctx.store.update_job(job.id, payload={"platformVideoId": video_id})

            if payload.frame_urls:
                _set_thumbnail(storage, platform, job, video_id, payload.frame_urls[0])
            if playlist_id:
                try:
                    platform.add_to_collection(video_id, playlist_id)
                except Exception as e:
                    logger.warning("[Job %s] Could not add %s to playlist %s: %s", job.id, video_id, playlist_id, e)

        output = UploadOutput(platform_video_id=video_id, playlist_id=playlist_id, title=metadata.title)
        ctx.store.update_job(job.id, payload=output.dump())
        ctx.store.mark_completed(job.id, video_id, metadata.model_dump())
    except Exception as e:
        fail_job(ctx.store, job.id, FAILURE_PREFIX, e)
        raise
    finally:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)

    _delete_remote(storage, job, payload)
    return output


def upload_videos(ctx: PipelineContext, tenant_id: str | None = None) -> StageSummary:
    """Recovery sweep, then publish at most one video."""
    report = recover_jobs(ctx)
    summary = StageSummary(stage=STAGE, recovered=report.recovered)
    job = claim_upload_job(ctx, tenant_id)
    if job is None:
        summary.message = "No videos due for upload"
        return summary
    try:
        output = upload_job(ctx, job)
    except Exception as e:
        summary.items.append(ItemOutcome(job_id=job.id, ok=False, error=truncate_error(f"{FAILURE_PREFIX}: {e}")))
        return summary
    summary.items.append(
        ItemOutcome(
            job_id=job.id,
            ok=True,
            detail={"platformVideoId": output.platform_video_id, "playlistId": output.playlist_id},
        )
    )
    return summary
