"""Pipeline job storage: Postgres (preferred) or file-based fallback.

Both implementations expose the same claim-and-transition contract: a claim
moves a job from its step's pending status to that step's in-progress status
in one atomic operation, so two concurrent processors never receive the same
job.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Protocol

from reelpipe.config import get_settings
from reelpipe.jobs.models import (
    IN_PROGRESS_STATUSES,
    Job,
    JobStats,
    JobStatus,
    UploadedVideo,
    claimed_status,
    pending_status,
    utcnow,
)

logger = logging.getLogger(__name__)


class JobNotFoundError(LookupError):
    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class JobStore(Protocol):
    def create(self, job: Job) -> Job: ...
    def get(self, job_id: str) -> Job | None: ...
    def claim_next_pending_job(self, step: int, tenant_id: str | None = None) -> Job | None: ...
    def claim_pending_batch(self, step: int, limit: int, tenant_id: str | None = None) -> list[Job]: ...
    def update_job(
        self,
        job_id: str,
        *,
        step: int | None = None,
        status: JobStatus | None = None,
        error_message: str | None = UNSET,
        payload: dict[str, Any] | None = None,
    ) -> Job: ...
    def mark_completed(self, job_id: str, platform_video_id: str, metadata: dict[str, Any]) -> Job: ...
    def readmit(
        self,
        job_id: str,
        *,
        expected_status: JobStatus,
        attempt_count: int,
        not_before: datetime | None,
    ) -> Job | None: ...
    def list_failed(self, min_step: int = 2) -> list[Job]: ...
    def list_stale_claims(self, claimed_before: datetime) -> list[Job]: ...
    def recent_formats(self, tenant_id: str | None, persona: str, limit: int = 3) -> list[str]: ...
    def recent(self, limit: int = 20, tenant_id: str | None = None) -> list[Job]: ...
    def stats(self, tenant_id: str | None = None) -> JobStats: ...
    def uploaded_videos(self, tenant_id: str | None = None, limit: int = 50) -> list[UploadedVideo]: ...


def _check_step(step: int) -> None:
    pending_status(step)  # raises ValueError for unknown steps


def _uploaded_video(job: Job, platform_video_id: str, metadata: dict[str, Any]) -> UploadedVideo:
    return UploadedVideo(
        job_id=job.id,
        tenant_id=job.tenant_id,
        platform_video_id=platform_video_id,
        title=str(metadata.get("title", "")),
        description=str(metadata.get("description", "")),
        tags=list(metadata.get("tags", [])),
        persona=job.persona,
        topic=job.topic,
    )


# ---------------------------------------------------------------------------
# Postgres implementation
# ---------------------------------------------------------------------------

_JOB_COLUMNS = (
    "id, tenant_id, persona, topic, topic_display_name, step, status, payload, "
    "error_message, attempt_count, not_before, claimed_at, created_at, updated_at"
)


class PostgresJobStore:
    """Persist jobs in Postgres. Claims use FOR UPDATE SKIP LOCKED."""

    def __init__(self, database_url: str):
        self._url = database_url
        self._conn = self._connect()

    def _connect(self):
        try:
            import psycopg
        except ImportError:
            raise ImportError(
                "psycopg required for Postgres job store. pip install 'psycopg[binary]'"
            )
        conn = psycopg.connect(self._url, autocommit=True)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS pipeline_jobs (
                id TEXT PRIMARY KEY,
                tenant_id TEXT,
                persona TEXT NOT NULL DEFAULT '',
                topic TEXT NOT NULL DEFAULT '',
                topic_display_name TEXT NOT NULL DEFAULT '',
                step INT NOT NULL DEFAULT 1 CHECK (step BETWEEN 1 AND 4),
                status TEXT NOT NULL,
                payload JSONB NOT NULL DEFAULT '{}',
                error_message TEXT,
                attempt_count INT NOT NULL DEFAULT 0,
                not_before TIMESTAMPTZ,
                claimed_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_pipeline_jobs_claim
            ON pipeline_jobs (step, status, created_at)
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_pipeline_jobs_tenant_persona
            ON pipeline_jobs (tenant_id, persona, created_at DESC)
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS uploaded_videos (
                id BIGSERIAL PRIMARY KEY,
                job_id TEXT NOT NULL REFERENCES pipeline_jobs(id),
                tenant_id TEXT,
                platform_video_id TEXT NOT NULL,
                title TEXT NOT NULL DEFAULT '',
                description TEXT NOT NULL DEFAULT '',
                tags JSONB NOT NULL DEFAULT '[]',
                persona TEXT NOT NULL DEFAULT '',
                topic TEXT NOT NULL DEFAULT '',
                uploaded_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)
        return conn

    def create(self, job: Job) -> Job:
        self._conn.execute(
            """
            INSERT INTO pipeline_jobs
            (id, tenant_id, persona, topic, topic_display_name, step, status, payload,
             error_message, attempt_count, not_before, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s::jsonb, %s, %s, %s, %s, %s)
            """,
            (
                job.id,
                job.tenant_id,
                job.persona,
                job.topic,
                job.topic_display_name,
                job.step,
                job.status.value,
                json.dumps(job.payload),
                job.error_message,
                job.attempt_count,
                job.not_before,
                job.created_at,
                job.updated_at,
            ),
        )
        return job

    def get(self, job_id: str) -> Job | None:
        row = self._conn.execute(
            f"SELECT {_JOB_COLUMNS} FROM pipeline_jobs WHERE id = %s",
            (job_id,),
        ).fetchone()
        if not row:
            return None
        return self._row_to_job(row)

    def claim_next_pending_job(self, step: int, tenant_id: str | None = None) -> Job | None:
        jobs = self.claim_pending_batch(step, 1, tenant_id)
        return jobs[0] if jobs else None

    def claim_pending_batch(self, step: int, limit: int, tenant_id: str | None = None) -> list[Job]:
        _check_step(step)
        if limit <= 0:
            return []
        tenant_clause = "AND tenant_id = %s" if tenant_id else ""
        params: list[Any] = [claimed_status(step).value, step, pending_status(step).value]
        if tenant_id:
            params.append(tenant_id)
        params.append(limit)
        rows = self._conn.execute(
            f"""
            UPDATE pipeline_jobs SET status = %s, claimed_at = NOW(), updated_at = NOW()
            WHERE id IN (
                SELECT id FROM pipeline_jobs
                WHERE step = %s AND status = %s
                  AND (not_before IS NULL OR not_before <= NOW())
                  {tenant_clause}
                ORDER BY created_at ASC
                LIMIT %s
                FOR UPDATE SKIP LOCKED
            )
            RETURNING {_JOB_COLUMNS}
            """,
            params,
        ).fetchall()
        jobs = [self._row_to_job(r) for r in rows]
        jobs.sort(key=lambda j: j.created_at)
        return jobs

    def update_job(
        self,
        job_id: str,
        *,
        step: int | None = None,
        status: JobStatus | None = None,
        error_message: str | None = UNSET,
        payload: dict[str, Any] | None = None,
    ) -> Job:
        sets = ["updated_at = NOW()"]
        params: list[Any] = []
        if step is not None:
            _check_step(step)
            sets.append("step = %s")
            params.append(step)
        if status is not None:
            sets.append("status = %s")
            params.append(status.value)
            if status not in IN_PROGRESS_STATUSES:
                sets.append("claimed_at = NULL")
        if error_message is not UNSET:
            sets.append("error_message = %s")
            params.append(error_message)
        if payload:
            sets.append("payload = payload || %s::jsonb")
            params.append(json.dumps(payload))
        where = "WHERE id = %s"
        params.append(job_id)
        if step is not None:
            where += " AND step <= %s"
            params.append(step)
        row = self._conn.execute(
            f"UPDATE pipeline_jobs SET {', '.join(sets)} {where} RETURNING {_JOB_COLUMNS}",
            params,
        ).fetchone()
        if row:
            return self._row_to_job(row)
        current = self.get(job_id)
        if current is None:
            raise JobNotFoundError(job_id)
        raise ValueError(f"Job {job_id} is at step {current.step}; cannot move back to step {step}")

    def mark_completed(self, job_id: str, platform_video_id: str, metadata: dict[str, Any]) -> Job:
        with self._conn.transaction():
            row = self._conn.execute(
                f"""
                UPDATE pipeline_jobs SET status = %s, error_message = NULL, claimed_at = NULL,
                    payload = payload || %s::jsonb, updated_at = NOW()
                WHERE id = %s
                RETURNING {_JOB_COLUMNS}
                """,
                (
                    JobStatus.COMPLETED.value,
                    json.dumps({"platformVideoId": platform_video_id}),
                    job_id,
                ),
            ).fetchone()
            if not row:
                raise JobNotFoundError(job_id)
            job = self._row_to_job(row)
            video = _uploaded_video(job, platform_video_id, metadata)
            self._conn.execute(
                """
                INSERT INTO uploaded_videos
                (job_id, tenant_id, platform_video_id, title, description, tags, persona, topic)
                VALUES (%s, %s, %s, %s, %s, %s::jsonb, %s, %s)
                """,
                (
                    video.job_id,
                    video.tenant_id,
                    video.platform_video_id,
                    video.title,
                    video.description,
                    json.dumps(video.tags),
                    video.persona,
                    video.topic,
                ),
            )
        return job

    def readmit(
        self,
        job_id: str,
        *,
        expected_status: JobStatus,
        attempt_count: int,
        not_before: datetime | None,
    ) -> Job | None:
        """Move a failed or stale job back to its step's pending status.

        Conditional on the job still holding ``expected_status``; returns None
        when another sweep got there first.
        """
        current = self.get(job_id)
        if current is None:
            raise JobNotFoundError(job_id)
        row = self._conn.execute(
            f"""
            UPDATE pipeline_jobs SET status = %s, error_message = NULL, claimed_at = NULL,
                attempt_count = %s, not_before = %s, updated_at = NOW()
            WHERE id = %s AND status = %s
            RETURNING {_JOB_COLUMNS}
            """,
            (
                pending_status(current.step).value,
                attempt_count,
                not_before,
                job_id,
                expected_status.value,
            ),
        ).fetchone()
        return self._row_to_job(row) if row else None

    def list_failed(self, min_step: int = 2) -> list[Job]:
        rows = self._conn.execute(
            f"""
            SELECT {_JOB_COLUMNS} FROM pipeline_jobs
            WHERE status = %s AND step >= %s
            ORDER BY created_at ASC
            """,
            (JobStatus.FAILED.value, min_step),
        ).fetchall()
        return [self._row_to_job(r) for r in rows]

    def list_stale_claims(self, claimed_before: datetime) -> list[Job]:
        rows = self._conn.execute(
            f"""
            SELECT {_JOB_COLUMNS} FROM pipeline_jobs
            WHERE status = ANY(%s) AND claimed_at IS NOT NULL AND claimed_at < %s
            ORDER BY created_at ASC
            """,
            ([s.value for s in IN_PROGRESS_STATUSES], claimed_before),
        ).fetchall()
        return [self._row_to_job(r) for r in rows]

    def recent_formats(self, tenant_id: str | None, persona: str, limit: int = 3) -> list[str]:
        rows = self._conn.execute(
            """
            SELECT payload->>'format' FROM pipeline_jobs
            WHERE tenant_id IS NOT DISTINCT FROM %s AND persona = %s
              AND payload->>'format' IS NOT NULL
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (tenant_id, persona, limit),
        ).fetchall()
        return [r[0] for r in rows]

    def recent(self, limit: int = 20, tenant_id: str | None = None) -> list[Job]:
        if tenant_id:
            rows = self._conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM pipeline_jobs WHERE tenant_id = %s "
                "ORDER BY created_at DESC LIMIT %s",
                (tenant_id, limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM pipeline_jobs ORDER BY created_at DESC LIMIT %s",
                (limit,),
            ).fetchall()
        return [self._row_to_job(r) for r in rows]

    def stats(self, tenant_id: str | None = None) -> JobStats:
        if tenant_id:
            rows = self._conn.execute(
                "SELECT status, step, COUNT(*) FROM pipeline_jobs WHERE tenant_id = %s "
                "GROUP BY status, step",
                (tenant_id,),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT status, step, COUNT(*) FROM pipeline_jobs GROUP BY status, step"
            ).fetchall()
        stats = JobStats()
        for status, step, count in rows:
            stats.total += count
            stats.by_status[status] = stats.by_status.get(status, 0) + count
            stats.by_step[step] = stats.by_step.get(step, 0) + count
        return stats

    def uploaded_videos(self, tenant_id: str | None = None, limit: int = 50) -> list[UploadedVideo]:
        tenant_clause = "WHERE tenant_id = %s" if tenant_id else ""
        params: list[Any] = [tenant_id] if tenant_id else []
        params.append(limit)
        rows = self._conn.execute(
            f"""
            SELECT job_id, tenant_id, platform_video_id, title, description, tags,
                   persona, topic, uploaded_at
            FROM uploaded_videos {tenant_clause}
            ORDER BY uploaded_at DESC LIMIT %s
            """,
            params,
        ).fetchall()
        return [
            UploadedVideo(
                job_id=r[0],
                tenant_id=r[1],
                platform_video_id=r[2],
                title=r[3],
                description=r[4],
                tags=r[5] if isinstance(r[5], list) else (json.loads(r[5]) if r[5] else []),
                persona=r[6],
                topic=r[7],
                uploaded_at=r[8],
            )
            for r in rows
        ]

    def _row_to_job(self, row) -> Job:
        return Job(
            id=row[0],
            tenant_id=row[1],
            persona=row[2],
            topic=row[3],
            topic_display_name=row[4],
            step=row[5],
            status=JobStatus(row[6]),
            payload=row[7] if isinstance(row[7], dict) else (json.loads(row[7]) if row[7] else {}),
            error_message=row[8],
            attempt_count=row[9],
            not_before=row[10],
            claimed_at=row[11],
            created_at=row[12],
            updated_at=row[13],
        )


# ---------------------------------------------------------------------------
# File-based implementation (fallback when no Postgres)
# ---------------------------------------------------------------------------

class FileJobStore:
    """Persist jobs as JSON files, one per job.

    Claims are serialised by a process-wide lock, so the store is safe for
    concurrent threads of one worker process per data directory.
    """

    def __init__(self, data_dir: Path, clock: Callable[[], datetime] = utcnow):
        self._dir = Path(data_dir) / "jobs"
        self._dir.mkdir(parents=True, exist_ok=True)
        self._uploads_path = self._dir / "uploaded_videos.jsonl"
        self._clock = clock
        self._lock = threading.RLock()

    def _job_path(self, job_id: str) -> Path:
        return self._dir / f"{job_id}.json"

    def create(self, job: Job) -> Job:
        with self._lock:
            if self._job_path(job.id).exists():
                raise ValueError(f"Job already exists: {job.id}")
            self._write_job(job)
        return job

    def get(self, job_id: str) -> Job | None:
        path = self._job_path(job_id)
        if not path.exists():
            return None
        return self._read_job(path)

    def claim_next_pending_job(self, step: int, tenant_id: str | None = None) -> Job | None:
        jobs = self.claim_pending_batch(step, 1, tenant_id)
        return jobs[0] if jobs else None

    def claim_pending_batch(self, step: int, limit: int, tenant_id: str | None = None) -> list[Job]:
        _check_step(step)
        if limit <= 0:
            return []
        want = pending_status(step)
        with self._lock:
            now = self._clock()
            eligible = [
                j
                for j in self._all_jobs()
                if j.step == step
                and j.status == want
                and (tenant_id is None or j.tenant_id == tenant_id)
                and (j.not_before is None or j.not_before <= now)
            ]
            eligible.sort(key=lambda j: j.created_at)
            claimed: list[Job] = []
            for job in eligible[:limit]:
                job.status = claimed_status(step)
                job.claimed_at = now
                job.updated_at = now
                self._write_job(job)
                claimed.append(job)
            return claimed

    def update_job(
        self,
        job_id: str,
        *,
        step: int | None = None,
        status: JobStatus | None = None,
        error_message: str | None = UNSET,
        payload: dict[str, Any] | None = None,
    ) -> Job:
        with self._lock:
            job = self.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if step is not None:
                _check_step(step)
                if step < job.step:
                    raise ValueError(
                        f"Job {job_id} is at step {job.step}; cannot move back to step {step}"
                    )
                job.step = step
            if status is not None:
                job.status = status
                if status not in IN_PROGRESS_STATUSES:
                    job.claimed_at = None
            if error_message is not UNSET:
                job.error_message = error_message
            if payload:
                job.payload = {**job.payload, **payload}
            job.updated_at = self._clock()
            self._write_job(job)
            return job

    def mark_completed(self, job_id: str, platform_video_id: str, metadata: dict[str, Any]) -> Job:
        with self._lock:
            job = self.update_job(
                job_id,
                status=JobStatus.COMPLETED,
                error_message=None,
                payload={"platformVideoId": platform_video_id},
            )
            video = _uploaded_video(job, platform_video_id, metadata)
            with open(self._uploads_path, "a", encoding="utf-8") as f:
                f.write(video.model_dump_json() + "\n")
                f.flush()
                os.fsync(f.fileno())
            return job

    def readmit(
        self,
        job_id: str,
        *,
        expected_status: JobStatus,
        attempt_count: int,
        not_before: datetime | None,
    ) -> Job | None:
        with self._lock:
            job = self.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if job.status != expected_status:
                return None
            job.status = pending_status(job.step)
            job.error_message = None
            job.claimed_at = None
            job.attempt_count = attempt_count
            job.not_before = not_before
            job.updated_at = self._clock()
            self._write_job(job)
            return job

    def list_failed(self, min_step: int = 2) -> list[Job]:
        jobs = [j for j in self._all_jobs() if j.status == JobStatus.FAILED and j.step >= min_step]
        return sorted(jobs, key=lambda j: j.created_at)

    def list_stale_claims(self, claimed_before: datetime) -> list[Job]:
        jobs = [
            j
            for j in self._all_jobs()
            if j.status in IN_PROGRESS_STATUSES
            and j.claimed_at is not None
            and j.claimed_at < claimed_before
        ]
        return sorted(jobs, key=lambda j: j.created_at)

    def recent_formats(self, tenant_id: str | None, persona: str, limit: int = 3) -> list[str]:
        jobs = [
            j
            for j in self._all_jobs()
            if j.tenant_id == tenant_id and j.persona == persona and j.payload.get("format")
        ]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return [str(j.payload["format"]) for j in jobs[:limit]]

    def recent(self, limit: int = 20, tenant_id: str | None = None) -> list[Job]:
        jobs = [j for j in self._all_jobs() if tenant_id is None or j.tenant_id == tenant_id]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    def stats(self, tenant_id: str | None = None) -> JobStats:
        stats = JobStats()
        for job in self._all_jobs():
            if tenant_id is not None and job.tenant_id != tenant_id:
                continue
            stats.total += 1
            stats.by_status[job.status.value] = stats.by_status.get(job.status.value, 0) + 1
            stats.by_step[job.step] = stats.by_step.get(job.step, 0) + 1
        return stats

    def uploaded_videos(self, tenant_id: str | None = None, limit: int = 50) -> list[UploadedVideo]:
        if not self._uploads_path.exists():
            return []
        videos: list[UploadedVideo] = []
        with open(self._uploads_path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    videos.append(UploadedVideo.model_validate_json(line))
        if tenant_id is not None:
            videos = [v for v in videos if v.tenant_id == tenant_id]
        videos.sort(key=lambda v: v.uploaded_at, reverse=True)
        return videos[:limit]

    def _all_jobs(self) -> list[Job]:
        return [self._read_job(p) for p in self._dir.glob("*.json")]

    def _write_job(self, job: Job) -> None:
        path = self._job_path(job.id)
        tmp = path.parent / (path.name + ".tmp")
        data = job.model_dump(mode="json")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)

    def _read_job(self, path: Path) -> Job:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return Job.model_validate(data)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_store: JobStore | None = None


def get_job_store() -> JobStore:
    """Return singleton job store (Postgres if configured, else file-based)."""
    global _store
    if _store is not None:
        return _store
    settings = get_settings()
    if settings.reelpipe_database_url:
        try:
            _store = PostgresJobStore(settings.reelpipe_database_url)
            logger.info("Using Postgres job store")
        except Exception as e:
            logger.warning("Postgres job store failed (%s), falling back to file store", e)
            _store = FileJobStore(settings.data_dir)
    else:
        _store = FileJobStore(settings.data_dir)
        logger.info("Using file-based job store (REELPIPE_DATA_DIR/jobs)")
    return _store


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:16]}"
