"""Step 3: turn rendered frames into one video file.

One job per invocation. All intermediate files live in a per-job temporary
directory under the work dir, removed on every exit path. Every encoder call
carries a deadline; a timeout fails the job.
"""

from __future__ import annotations

import logging
import random
import tempfile
import time
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

from reelpipe.formats.timing import frame_durations
from reelpipe.jobs.models import Job, JobStatus
from reelpipe.jobs.payloads import AssemblyOutput, payload_for_step
from reelpipe.media.encoder import clip_args, concat_args, concat_list
from reelpipe.media.storage import Storage
from reelpipe.pipeline.context import ItemOutcome, PipelineContext, StageSummary, fail_job, run_settled

logger = logging.getLogger(__name__)

STAGE = "assemble"
FAILURE_PREFIX = "Video assembly failed"
MAX_PARALLEL_CLIPS = 4
AUDIO_SUFFIXES = {".mp3", ".m4a", ".aac", ".wav", ".ogg"}


def pick_audio(audio_dir: Path | None, seed: str) -> Path | None:
    """Background track for a job; the same job id always gets the same track."""
    if audio_dir is None or not audio_dir.is_dir():
        return None
    tracks = sorted(p for p in audio_dir.iterdir() if p.suffix.lower() in AUDIO_SUFFIXES)
    if not tracks:
        return None
    return random.Random(seed).choice(tracks)


def _frame_suffix(url: str) -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    return suffix if suffix in (".png", ".jpg", ".jpeg", ".webp") else ".png"


def _first_error(results) -> BaseException | None:
    for _, _, error in results:
        if error is not None:
            return error
    return None


def _download_frames(storage: Storage, urls: list[str], workdir: Path) -> list[Path]:
    def fetch(item: tuple[int, str]) -> Path:
        index, url = item
        path = workdir / f"frame_{index:03d}{_frame_suffix(url)}"
        path.write_bytes(storage.get(url))
        return path

    results = run_settled(fetch, list(enumerate(urls)), len(urls))
    error = _first_error(results)
    if error is not None:
        raise error
    return [path for _, path, _ in results]


def _render_clips(ctx: PipelineContext, frames: list[Path], durations: list[float], workdir: Path) -> list[Path]:
    settings = ctx.settings

    def render(item: tuple[int, Path]) -> Path:
        index, image = item
        clip = workdir / f"clip_{index:03d}.mp4"
        ctx.encoder.run(
            clip_args(
                image,
                durations[index],
                clip,
                settings.reelpipe_video_width,
                settings.reelpipe_video_height,
                settings.reelpipe_video_fps,
            ),
            cwd=workdir,
        )
        return clip

    results = run_settled(render, list(enumerate(frames)), MAX_PARALLEL_CLIPS)
    error = _first_error(results)
    if error is not None:
        raise error
    return [clip for _, clip, _ in results]


def claim_assembly_job(ctx: PipelineContext, tenant_id: str | None = None) -> Job | None:
    return ctx.store.claim_next_pending_job(3, tenant_id)


def process_assembly(ctx: PipelineContext, job: Job) -> AssemblyOutput:
    """Assemble one claimed step-3 job. Marks the job failed and re-raises on any error."""
    settings = ctx.settings
    start = time.monotonic()
    try:
        payload = payload_for_step(job, 3)
        urls = payload.frame_urls
        durations = payload.frame_durations
        if not durations or len(durations) != len(urls):
            durations = frame_durations(payload.format, payload.content, len(urls))
        storage = ctx.storage(job.tenant_id)

        settings.work_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix=f"{job.id}-", dir=settings.work_dir) as tmp:
            workdir = Path(tmp)
            frames = _download_frames(storage, urls, workdir)
            logger.info("[Job %s] Downloaded %d frames", job.id, len(frames))

            clips = _render_clips(ctx, frames, durations, workdir)
            list_file = workdir / "clips.txt"
            list_file.write_text(concat_list(clips), encoding="utf-8")

            audio = pick_audio(settings.audio_dir, job.id)
            video = workdir / f"{job.id}.mp4"
            ctx.encoder.run(
                concat_args(list_file, video, audio, settings.reelpipe_audio_volume),
                cwd=workdir,
            )
            data = video.read_bytes()
            video_url = storage.put(data, f"{settings.reelpipe_videos_folder}/{job.id}.mp4", "video")

        output = AssemblyOutput(
            video_url=video_url,
            video_size=len(data),
            audio_file=audio.name if audio else None,
            assemble_seconds=round(time.monotonic() - start, 2),
        )
        ctx.store.update_job(
            job.id,
            step=4,
            status=JobStatus.UPLOAD_PENDING,
            error_message=None,
            payload=output.dump(),
        )
    except Exception as e:
        fail_job(ctx.store, job.id, FAILURE_PREFIX, e)
        raise
    logger.info(
        "[Job %s] Assembled %d bytes in %.1fs%s",
        job.id,
        output.video_size,
        output.assemble_seconds,
        f" with {output.audio_file}" if output.audio_file else "",
    )
    return output


def assemble_video(ctx: PipelineContext, tenant_id: str | None = None) -> StageSummary:
    """Claim and assemble one job synchronously; failures propagate after being recorded."""
    job = claim_assembly_job(ctx, tenant_id)
    if job is None:
        return StageSummary(stage=STAGE, message="No jobs pending assembly")
    output = process_assembly(ctx, job)
    return StageSummary(
        stage=STAGE,
        items=[ItemOutcome(job_id=job.id, ok=True, detail={"videoUrl": output.video_url})],
    )


def process_in_background(ctx: PipelineContext, job: Job) -> None:
    """Background-task entry point: the failure is already on the job, so only log it."""
    try:
        process_assembly(ctx, job)
    except Exception:
        logger.exception("[Job %s] Background assembly failed", job.id)
