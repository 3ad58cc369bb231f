"""Recovery sweep: re-admit salvageable failures and abandoned claims.

A failed job at step 2 or later is salvageable when its payload still holds
the output of the stage before it. Each re-admission counts as an attempt and
pushes ``not_before`` out exponentially; once ``max_recovery_attempts`` is
reached the job stays failed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from reelpipe.jobs.models import IN_PROGRESS_STATUSES, Job, JobStatus, truncate_error
from reelpipe.jobs.payloads import has_stage_input
from reelpipe.pipeline.context import PipelineContext

logger = logging.getLogger(__name__)


class RecoveryReport(BaseModel):
    readmitted: list[str] = Field(default_factory=list)
    stale: list[str] = Field(default_factory=list)
    exhausted: list[str] = Field(default_factory=list)
    unrecoverable: list[str] = Field(default_factory=list)

    @property
    def recovered(self) -> int:
        return len(self.readmitted) + len(self.stale)

    def text(self) -> str:
        return (
            f"recovery: {len(self.readmitted)} re-admitted, {len(self.stale)} stale claims released, "
            f"{len(self.exhausted)} exhausted, {len(self.unrecoverable)} missing stage input"
        )


def backoff_delay(attempt: int, base_seconds: float) -> timedelta:
    """Delay before the ``attempt``-th retry (1-based): base, 2x base, 4x base..."""
    return timedelta(seconds=base_seconds * 2 ** max(attempt - 1, 0))


def _readmit(ctx: PipelineContext, job: Job, expected: JobStatus, now: datetime) -> Job | None:
    attempt = job.attempt_count + 1
    not_before = now + backoff_delay(attempt, ctx.settings.reelpipe_recovery_backoff_seconds)
    return ctx.store.readmit(
        job.id,
        expected_status=expected,
        attempt_count=attempt,
        not_before=not_before,
    )


def recover_jobs(ctx: PipelineContext) -> RecoveryReport:
    """Run one sweep over failed jobs and expired claims."""
    settings = ctx.settings
    limit = settings.reelpipe_max_recovery_attempts
    now = ctx.clock()
    report = RecoveryReport()

    for job in ctx.store.list_failed(min_step=2):
        if job.attempt_count >= limit:
            report.exhausted.append(job.id)
            continue
        if not has_stage_input(job):
            report.unrecoverable.append(job.id)
            continue
        if _readmit(ctx, job, JobStatus.FAILED, now) is not None:
            report.readmitted.append(job.id)
            logger.info(
                "[Job %s] Re-admitted to step %d (attempt %d/%d)",
                job.id,
                job.step,
                job.attempt_count + 1,
                limit,
            )

    lease_start = now - timedelta(seconds=settings.reelpipe_claim_lease_seconds)
    for job in ctx.store.list_stale_claims(lease_start):
        if job.status not in IN_PROGRESS_STATUSES:
            continue
        if job.attempt_count >= limit:
            message = truncate_error(
                f"Claim expired while {job.status.value}; recovery attempts exhausted ({limit})"
            )
            ctx.store.update_job(job.id, status=JobStatus.FAILED, error_message=message)
            report.exhausted.append(job.id)
            logger.warning("[Job %s] %s", job.id, message)
            continue
        if _readmit(ctx, job, job.status, now) is not None:
            report.stale.append(job.id)
            logger.warning(
                "[Job %s] Claim from %s expired while %s; released to step %d",
                job.id,
                job.claimed_at,
                job.status.value,
                job.step,
            )

    if report.recovered or report.exhausted:
        logger.info(report.text())
    return report
