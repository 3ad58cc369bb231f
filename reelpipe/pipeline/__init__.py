"""Stage processors for the four-step content pipeline."""

from reelpipe.pipeline.assembly import assemble_video, claim_assembly_job, process_assembly
from reelpipe.pipeline.context import (
    ItemOutcome,
    PipelineContext,
    StageSummary,
    build_context,
    get_pipeline_context,
)
from reelpipe.pipeline.frames import create_frames
from reelpipe.pipeline.generation import WorkUnit, enqueue, generate_content, process_pending
from reelpipe.pipeline.recovery import RecoveryReport, recover_jobs
from reelpipe.pipeline.upload import upload_videos

__all__ = [
    "ItemOutcome",
    "PipelineContext",
    "RecoveryReport",
    "StageSummary",
    "WorkUnit",
    "assemble_video",
    "build_context",
    "claim_assembly_job",
    "create_frames",
    "enqueue",
    "generate_content",
    "get_pipeline_context",
    "process_assembly",
    "process_pending",
    "recover_jobs",
    "upload_videos",
]
