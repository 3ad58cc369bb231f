"""Pipeline job storage and retrieval."""

from reelpipe.jobs.models import Job, JobStats, JobStatus, UploadedVideo, claimed_status, pending_status
from reelpipe.jobs.store import JobNotFoundError, JobStore, get_job_store, new_job_id

__all__ = [
    "Job",
    "JobStats",
    "JobStatus",
    "JobNotFoundError",
    "JobStore",
    "UploadedVideo",
    "claimed_status",
    "get_job_store",
    "new_job_id",
    "pending_status",
]
