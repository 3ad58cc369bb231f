"""Pipeline job schema, status values and the step/status state machine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

ERROR_MESSAGE_MAX = 500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    FRAMES_PENDING = "frames_pending"
    RENDERING_FRAMES = "rendering_frames"
    ASSEMBLY_PENDING = "assembly_pending"
    ASSEMBLING = "assembling"
    UPLOAD_PENDING = "upload_pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"


# step -> (pending status, claimed status)
STEP_STATUSES: dict[int, tuple[JobStatus, JobStatus]] = {
    1: (JobStatus.PENDING, JobStatus.GENERATING),
    2: (JobStatus.FRAMES_PENDING, JobStatus.RENDERING_FRAMES),
    3: (JobStatus.ASSEMBLY_PENDING, JobStatus.ASSEMBLING),
    4: (JobStatus.UPLOAD_PENDING, JobStatus.UPLOADING),
}

IN_PROGRESS_STATUSES = frozenset(claimed for _, claimed in STEP_STATUSES.values())


def pending_status(step: int) -> JobStatus:
    """Status a job waits in before a step's processor claims it."""
    try:
        return STEP_STATUSES[step][0]
    except KeyError:
        raise ValueError(f"Unknown pipeline step: {step}") from None


def claimed_status(step: int) -> JobStatus:
    """Status a job holds while a step's processor works on it."""
    try:
        return STEP_STATUSES[step][1]
    except KeyError:
        raise ValueError(f"Unknown pipeline step: {step}") from None


def truncate_error(message: str) -> str:
    return message[:ERROR_MESSAGE_MAX]


class Job(BaseModel):
    """One content item moving through generate, frames, assemble and upload."""

    id: str = ""
    tenant_id: str | None = None
    persona: str = ""
    topic: str = ""
    topic_display_name: str = ""
    step: int = Field(default=1, ge=1, le=4)
    status: JobStatus = JobStatus.PENDING
    payload: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None
    attempt_count: int = Field(default=0, ge=0)
    not_before: datetime | None = None
    claimed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UploadedVideo(BaseModel):
    """Audit row written when a job reaches the platform."""

    job_id: str
    tenant_id: str | None = None
    platform_video_id: str
    title: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    persona: str = ""
    topic: str = ""
    uploaded_at: datetime = Field(default_factory=utcnow)


class JobStats(BaseModel):
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_step: dict[int, int] = Field(default_factory=dict)

    def count(self, status: JobStatus) -> int:
        return self.by_status.get(status.value, 0)
