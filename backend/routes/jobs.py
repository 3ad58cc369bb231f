"""Stage trigger API, one endpoint per pipeline stage.

POST /api/jobs/generate            content generation (body may add personas, count)
POST /api/jobs/create-frames       frame creation batch
POST /api/jobs/assemble-video      claims one job, assembles it in the background
POST /api/jobs/assemble-video/sync same, but waits for the result
POST /api/jobs/upload-videos       uploads one video
POST /api/jobs/recover             recovery sweep only
GET  /api/jobs/stats               job counts by status and step

Every endpoint takes an optional ``{"tenantId": ...}`` body and answers
``{success, summary}`` or ``{success: false, error}``.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from backend.auth import require_cron_auth
from reelpipe.catalog import UnknownPersonaError
from reelpipe.jobs.models import JobStats
from reelpipe.llm import ProviderConfigError
from reelpipe.pipeline import (
    PipelineContext,
    StageSummary,
    assemble_video,
    claim_assembly_job,
    create_frames,
    generate_content,
    get_pipeline_context,
    recover_jobs,
    upload_videos,
)
from reelpipe.pipeline.assembly import process_in_background
from reelpipe.tenants.registry import TenantNotFoundError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", dependencies=[Depends(require_cron_auth)])

# Failures of the caller's configuration: nothing was claimed, answer 400.
CONFIG_ERRORS = (TenantNotFoundError, UnknownPersonaError, ProviderConfigError)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class StageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    tenant_id: Optional[str] = Field(default=None, alias="tenantId", min_length=1)


class GenerateRequest(StageRequest):
    personas: Optional[list[str]] = None
    count: Optional[int] = Field(default=None, ge=1, le=50)


class StageResponse(BaseModel):
    success: bool = True
    summary: str
    details: Optional[StageSummary] = None


class StatsResponse(BaseModel):
    success: bool = True
    stats: JobStats


def get_context() -> PipelineContext:
    """FastAPI dependency for the pipeline context (overridable in tests)."""
    return get_pipeline_context()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _error(status_code: int, error: Exception | str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": str(error)[:500]})


def _run_stage(stage: Callable[[], StageSummary]):
    try:
        summary = stage()
    except CONFIG_ERRORS as e:
        logger.warning("Stage rejected: %s", e)
        return _error(status.HTTP_400_BAD_REQUEST, e)
    except Exception as e:
        logger.exception("Stage failed")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, e)
    return StageResponse(success=summary.failed == 0, summary=summary.text(), details=summary)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/generate", response_model=StageResponse)
def generate(body: Optional[GenerateRequest] = None, ctx: PipelineContext = Depends(get_context)):
    """Generate content for a tenant (or every active tenant)."""
    body = body or GenerateRequest()
    return _run_stage(lambda: generate_content(ctx, body.tenant_id, body.personas, body.count))


@router.post("/create-frames", response_model=StageResponse)
def frames(body: Optional[StageRequest] = None, ctx: PipelineContext = Depends(get_context)):
    """Render frames for a batch of generated jobs."""
    body = body or StageRequest()
    return _run_stage(lambda: create_frames(ctx, body.tenant_id))


@router.post("/assemble-video", response_model=StageResponse)
def assemble(
    background_tasks: BackgroundTasks,
    body: Optional[StageRequest] = None,
    ctx: PipelineContext = Depends(get_context),
):
    """Claim one job and assemble it after the response is sent."""
    body = body or StageRequest()
    try:
        job = claim_assembly_job(ctx, body.tenant_id)
    except Exception as e:
        logger.exception("Assembly claim failed")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, e)
    if job is None:
        return StageResponse(summary="No jobs pending assembly")
    background_tasks.add_task(process_in_background, ctx, job)
    return StageResponse(summary=f"Job {job.id} started")


@router.post("/assemble-video/sync", response_model=StageResponse)
def assemble_sync(body: Optional[StageRequest] = None, ctx: PipelineContext = Depends(get_context)):
    """Assemble one job within the request."""
    body = body or StageRequest()
    return _run_stage(lambda: assemble_video(ctx, body.tenant_id))


@router.post("/upload-videos", response_model=StageResponse)
def upload(body: Optional[StageRequest] = None, ctx: PipelineContext = Depends(get_context)):
    """Upload one assembled video."""
    body = body or StageRequest()
    return _run_stage(lambda: upload_videos(ctx, body.tenant_id))


@router.post("/recover", response_model=StageResponse)
def recover(ctx: PipelineContext = Depends(get_context)):
    """Run the recovery sweep on its own."""
    try:
        report = recover_jobs(ctx)
    except Exception as e:
        logger.exception("Recovery sweep failed")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, e)
    return StageResponse(summary=report.text())


@router.get("/stats", response_model=StatsResponse)
def stats(
    tenant_id: Optional[str] = Query(default=None, alias="tenantId"),
    ctx: PipelineContext = Depends(get_context),
):
    """Job counts by status and step."""
    return StatsResponse(stats=ctx.store.stats(tenant_id))
