"""Step 1: generate validated content and hand it to frame creation.

Work arrives either as planned units (a tenant's personas, topics drawn from
the catalog) or as step-1 ``pending`` jobs seeded by ``enqueue``. Both go
through the same per-unit path; one unit failing never aborts the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from reelpipe.formats.definitions import DEFAULT_FORMAT, get_format
from reelpipe.formats.selector import DIVERSITY_WINDOW, select_format
from reelpipe.generation.service import ContentGenerator
from reelpipe.jobs.models import Job, JobStatus, truncate_error
from reelpipe.jobs.payloads import GenerationOutput
from reelpipe.jobs.store import new_job_id
from reelpipe.pipeline.context import ItemOutcome, PipelineContext, StageSummary, fail_job, run_settled
from reelpipe.tenants.models import Tenant

logger = logging.getLogger(__name__)

STAGE = "generate"


@dataclass
class WorkUnit:
    tenant_id: str
    persona: str
    topic: str
    topic_display_name: str = ""
    format: str | None = None
    # set when the unit advances an existing step-1 job instead of creating one
    job_id: str | None = None


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

def _personas_for(ctx: PipelineContext, tenant: Tenant, personas: list[str] | None) -> list[str]:
    if personas:
        for key in personas:
            ctx.catalog.get(key)  # unknown persona is a caller error
        return list(personas)
    scheduled = ctx.schedules.personas_for(tenant.id, "generation", ctx.clock())
    candidates = tenant.personas if scheduled is None else scheduled
    known = [p for p in candidates if p in ctx.catalog]
    for missing in sorted(set(candidates) - set(known)):
        logger.warning("Tenant %s lists persona '%s' which is not in the catalog", tenant.id, missing)
    return known


def plan_units(
    ctx: PipelineContext,
    tenant_id: str | None = None,
    personas: list[str] | None = None,
    count: int | None = None,
) -> list[WorkUnit]:
    """Spread ``count`` units per tenant round-robin over its due personas."""
    tenants = [ctx.tenants.get(tenant_id)] if tenant_id else ctx.tenants.active()
    count = ctx.settings.reelpipe_generate_batch_size if count is None else count
    units: list[WorkUnit] = []
    for tenant in tenants:
        keys = _personas_for(ctx, tenant, personas)
        if not keys:
            logger.info("Tenant %s: no personas due for generation", tenant.id)
            continue
        for i in range(count):
            persona = keys[i % len(keys)]
            topic = ctx.catalog.pick_topic(persona, ctx.rng)
            units.append(
                WorkUnit(
                    tenant_id=tenant.id,
                    persona=persona,
                    topic=topic.key,
                    topic_display_name=topic.display_name or topic.key,
                )
            )
    return units


def assign_formats(ctx: PipelineContext, units: list[WorkUnit]) -> None:
    """Pick a format for each unit, counting earlier picks in the same batch as recent."""
    recent: dict[tuple[str, str], list[str]] = {}
    for unit in units:
        key = (unit.tenant_id, unit.persona)
        if key not in recent:
            recent[key] = ctx.store.recent_formats(unit.tenant_id, unit.persona, DIVERSITY_WINDOW)
        unit.format = select_format(
            unit.tenant_id,
            unit.persona,
            unit.topic,
            recent[key],
            rules=ctx.format_rules,
            rng=ctx.rng,
        )
        recent[key] = [unit.format, *recent[key]][:DIVERSITY_WINDOW]


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def _generate_unit(ctx: PipelineContext, generator: ContentGenerator, unit: WorkUnit) -> dict[str, Any]:
    tenant = ctx.tenants.get(unit.tenant_id)
    format_type = unit.format or DEFAULT_FORMAT
    persona_name = ctx.catalog.display_name(unit.persona)
    topic_name = unit.topic_display_name or ctx.catalog.topic_display_name(unit.persona, unit.topic)

    generated = generator.generate(
        persona_name,
        topic_name,
        format_type,
        branding=tenant.branding.model_dump(),
    )
    output = GenerationOutput(
        content=generated.content.model_dump(),
        format=format_type,
        frame_roles=get_format(format_type).frame_roles,
        is_fallback=generated.is_fallback,
    )

    if unit.job_id:
        job = ctx.store.update_job(
            unit.job_id,
            step=2,
            status=JobStatus.FRAMES_PENDING,
            error_message=None,
            payload=output.dump(),
        )
    else:
        job = ctx.store.create(
            Job(
                id=new_job_id(),
                tenant_id=unit.tenant_id,
                persona=unit.persona,
                topic=unit.topic,
                topic_display_name=topic_name,
                step=2,
                status=JobStatus.FRAMES_PENDING,
                payload=output.dump(),
            )
        )
    logger.info(
        "[Job %s] Generated %s content for %s/%s%s",
        job.id,
        format_type,
        unit.persona,
        unit.topic,
        " (fallback)" if generated.is_fallback else "",
    )
    return {"jobId": job.id, "format": format_type, "isFallback": generated.is_fallback}


def run_units(ctx: PipelineContext, units: list[WorkUnit]) -> StageSummary:
    """Generate every unit concurrently and collect one outcome per unit."""
    summary = StageSummary(stage=STAGE)
    if not units:
        summary.message = "Nothing to generate"
        return summary

    generator = ctx.content_generator()
    assign_formats(ctx, [u for u in units if u.format is None])
    workers = ctx.settings.reelpipe_generate_batch_size
    for unit, detail, error in run_settled(lambda u: _generate_unit(ctx, generator, u), units, workers):
        if error is None:
            job_id = detail.pop("jobId")
            summary.items.append(ItemOutcome(job_id=job_id, ok=True, detail={"persona": unit.persona, **detail}))
            continue
        if unit.job_id:
            message = fail_job(ctx.store, unit.job_id, "Content generation failed", error)
        else:
            message = truncate_error(f"Content generation failed: {error}")
            logger.error("Unit %s/%s for tenant %s: %s", unit.persona, unit.topic, unit.tenant_id, message)
        summary.items.append(
            ItemOutcome(job_id=unit.job_id, ok=False, error=message, detail={"persona": unit.persona})
        )
    logger.info(summary.text())
    return summary


def generate_content(
    ctx: PipelineContext,
    tenant_id: str | None = None,
    personas: list[str] | None = None,
    count: int | None = None,
) -> StageSummary:
    """Plan units for the tenant (or every active tenant) and generate them."""
    units = plan_units(ctx, tenant_id, personas, count)
    return run_units(ctx, units)


def process_pending(ctx: PipelineContext, tenant_id: str | None = None, limit: int | None = None) -> StageSummary:
    """Claim step-1 ``pending`` jobs and advance them to frame creation."""
    ctx.content_generator()  # raises before claiming when no LLM is configured
    limit = ctx.settings.reelpipe_generate_batch_size if limit is None else limit
    jobs = ctx.store.claim_pending_batch(1, limit, tenant_id)
    if not jobs:
        return StageSummary(stage=STAGE, message="No pending jobs to generate")
    units = [
        WorkUnit(
            tenant_id=job.tenant_id or "",
            persona=job.persona,
            topic=job.topic,
            topic_display_name=job.topic_display_name,
            format=job.payload.get("format"),
            job_id=job.id,
        )
        for job in jobs
    ]
    return run_units(ctx, units)


def enqueue(
    ctx: PipelineContext,
    tenant_id: str,
    personas: list[str] | None = None,
    count: int | None = None,
) -> list[Job]:
    """Seed step-1 ``pending`` jobs for later ``process_pending`` runs."""
    created = []
    for unit in plan_units(ctx, tenant_id, personas, count):
        job = ctx.store.create(
            Job(
                id=new_job_id(),
                tenant_id=unit.tenant_id,
                persona=unit.persona,
                topic=unit.topic,
                topic_display_name=unit.topic_display_name,
            )
        )
        created.append(job)
    logger.info("Tenant %s: enqueued %d jobs", tenant_id, len(created))
    return created

