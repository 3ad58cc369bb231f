"""Step 2: render frame images for generated content."""

from __future__ import annotations

import logging

from reelpipe.formats.definitions import get_format
from reelpipe.formats.timing import frame_durations
from reelpipe.jobs.models import Job, JobStatus
from reelpipe.jobs.payloads import FramesOutput, payload_for_step
from reelpipe.pipeline.context import ItemOutcome, PipelineContext, StageSummary, fail_job, run_settled
from reelpipe.pipeline.recovery import recover_jobs

logger = logging.getLogger(__name__)

STAGE = "frames"
FAILURE_PREFIX = "Frame creation failed"


def render_job(ctx: PipelineContext, job: Job) -> FramesOutput:
    """Render one claimed step-2 job and advance it to assembly."""
    payload = payload_for_step(job, 2)
    content_format = get_format(payload.format)
    branding = ctx.tenants.get(job.tenant_id).branding.model_dump() if job.tenant_id else {}

    rendered = ctx.renderer.render(job.id, payload.content, content_format, branding)
    output = FramesOutput(
        frame_urls=rendered.urls,
        frame_durations=frame_durations(content_format.type, payload.content, len(rendered.urls)),
        theme_name=rendered.theme_name,
    )
    ctx.store.update_job(
        job.id,
        step=3,
        status=JobStatus.ASSEMBLY_PENDING,
        error_message=None,
        payload=output.dump(),
    )
    logger.info("[Job %s] %d frames ready for assembly", job.id, len(rendered.urls))
    return output


def create_frames(ctx: PipelineContext, tenant_id: str | None = None) -> StageSummary:
    """Recovery sweep, then render a bounded batch of step-2 jobs concurrently."""
    report = recover_jobs(ctx)
    summary = StageSummary(stage=STAGE, recovered=report.recovered)

    limit = ctx.settings.reelpipe_create_frames_concurrency
    jobs = ctx.store.claim_pending_batch(2, limit, tenant_id)
    if not jobs:
        summary.message = "No jobs pending frame creation"
        return summary

    for job, output, error in run_settled(lambda j: render_job(ctx, j), jobs, limit):
        if error is not None:
            message = fail_job(ctx.store, job.id, FAILURE_PREFIX, error)
            summary.items.append(ItemOutcome(job_id=job.id, ok=False, error=message))
        else:
            summary.items.append(
                ItemOutcome(job_id=job.id, ok=True, detail={"frames": len(output.frame_urls)})
            )
    logger.info(summary.text())
    return summary
