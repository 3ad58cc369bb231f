"""Tests for the upload stage: publishing, playlists, schedules and cleanup."""

import itertools

import pytest

from reelpipe.jobs.models import JobStatus
from reelpipe.pipeline.recovery import recover_jobs
from reelpipe.pipeline.upload import upload_videos
from reelpipe.publish.playlists import parse_managed_key
from reelpipe.publish.youtube import PlatformError
from reelpipe.schedule import ScheduleBook, TenantSchedule


@pytest.fixture
def upload_job(make_job, storage):
    """A step-4 job whose video and frames exist in local storage."""
    serial = itertools.count()

    def _make(tenant_id="english_shots", topic="eng_vocab_synonyms"):
        n = next(serial)
        frames = [storage.put(b"\x89PNG thumb", f"quiz-frames/{topic}-{n}_{i}.png") for i in range(2)]
        video = storage.put(b"fake-mp4-data", f"quiz-videos/{topic}-{n}.mp4", "video")
        return make_job(
            step=4,
            tenant_id=tenant_id,
            topic=topic,
            topic_display_name="Word Twins (Synonyms)",
            payload={
                "content": {"hook": "Which word is stronger?", "format_type": "quick_fix"},
                "format": "quick_fix",
                "frameUrls": frames,
                "videoUrl": video,
            },
        )

    return _make


def test_upload_publishes_and_completes(ctx, upload_job, platform, store, settings):
    job = upload_job()
    summary = upload_videos(ctx)

    assert summary.succeeded == 1
    assert summary.items[0].detail == {"platformVideoId": "yt_1", "playlistId": "PL1"}
    path, metadata = platform.uploads[0]
    assert platform.uploaded_bytes == [b"fake-mp4-data"]
    assert metadata.title.endswith("#shorts")
    assert len(metadata.title) <= 100
    assert "English Shots" in metadata.description
    assert platform.thumbnails == ["yt_1"]
    assert platform.added == [("yt_1", "PL1")]

    stored = store.get(job.id)
    assert stored.status == JobStatus.COMPLETED
    assert stored.error_message is None
    assert stored.payload["platformVideoId"] == "yt_1"
    assert stored.payload["playlistId"] == "PL1"
    assert stored.payload["title"] == metadata.title
    assert [v.job_id for v in store.uploaded_videos()] == [job.id]


def test_temp_file_and_remote_assets_are_removed(ctx, upload_job, platform, storage, settings):
    job = upload_job()
    upload_videos(ctx)

    path, _ = platform.uploads[0]
    assert not path.exists()
    assert [p for p in settings.work_dir.iterdir() if p.name.startswith(job.id)] == []
    for url in job.payload["frameUrls"] + [job.payload["videoUrl"]]:
        with pytest.raises(Exception):
            storage.get(url)


def test_platform_failure_marks_job_failed(ctx, upload_job, platform, store, storage, settings):
    job = upload_job()
    platform.fail_upload = PlatformError("quotaExceeded", 403)

    summary = upload_videos(ctx)

    assert summary.failed == 1
    assert summary.items[0].error == "Upload failed: quotaExceeded"
    stored = store.get(job.id)
    assert stored.status == JobStatus.FAILED
    assert stored.step == 4
    assert stored.error_message == "Upload failed: quotaExceeded"
    assert [p for p in settings.work_dir.iterdir() if p.name.startswith(job.id)] == []
    # assets stay so a recovered job can retry
    assert storage.get(job.payload["videoUrl"]) == b"fake-mp4-data"


def test_playlist_failures_are_not_fatal(ctx, upload_job, platform, store, monkeypatch):
    job = upload_job()

    def broken():
        raise PlatformError("playlists unavailable", 500)

    monkeypatch.setattr(platform, "list_collections", broken)
    summary = upload_videos(ctx)

    assert summary.succeeded == 1
    assert platform.added == []
    stored = store.get(job.id)
    assert stored.status == JobStatus.COMPLETED
    assert "playlistId" not in stored.payload


def test_playlist_add_failure_is_not_fatal(ctx, upload_job, platform, store):
    job = upload_job()
    platform.fail_playlist_add = PlatformError("forbidden", 403)
    upload_videos(ctx)
    assert store.get(job.id).status == JobStatus.COMPLETED


def test_playlist_is_created_once_and_reused(ctx, upload_job, platform):
    upload_job()
    upload_job()
    upload_videos(ctx)
    upload_videos(ctx)

    assert len(platform.collections) == 1
    assert platform.list_calls == 1
    assert platform.added == [("yt_1", "PL1"), ("yt_2", "PL1")]
    collection = platform.collections[0]
    assert collection.title == "Vocabulary Shots: Word Twins (Synonyms)"
    assert parse_managed_key(collection.description) == "english_vocab_builder-eng_vocab_synonyms"


def test_existing_managed_playlist_is_found(ctx, upload_job, platform):
    platform.create_collection(
        "Old title", "Made earlier\n\n[managed-by:reelpipe; key:english_vocab_builder-eng_vocab_synonyms]"
    )
    upload_job()
    upload_videos(ctx)
    assert len(platform.collections) == 1
    assert platform.added == [("yt_1", "PL1")]


def test_upload_respects_schedule(ctx, upload_job, store):
    ctx.settings.reelpipe_respect_schedule = True
    ctx.schedules = ScheduleBook({"english_shots": TenantSchedule(upload={7: ["english_vocab_builder"]})})
    job = upload_job()

    summary = upload_videos(ctx)
    assert summary.text() == "No videos due for upload"
    assert store.get(job.id).status == JobStatus.UPLOAD_PENDING

    summary = upload_videos(ctx, "english_shots")
    assert summary.succeeded == 1


def test_unscheduled_tenant_is_always_due(ctx, upload_job):
    ctx.settings.reelpipe_respect_schedule = True
    ctx.schedules = ScheduleBook({"english_shots": TenantSchedule(upload={7: ["english_vocab_builder"]})})
    job = upload_job(tenant_id="health_shots", topic="focus_tips")
    summary = upload_videos(ctx)
    assert summary.items[0].job_id == job.id


def test_one_upload_per_invocation(ctx, upload_job, store):
    first = upload_job()
    second = upload_job(topic="eng_vocab_antonyms")
    upload_videos(ctx)
    assert store.get(first.id).status == JobStatus.COMPLETED
    assert store.get(second.id).status == JobStatus.UPLOAD_PENDING


def test_job_without_tenant_fails(ctx, upload_job, store):
    job = upload_job(tenant_id=None)
    summary = upload_videos(ctx)
    assert summary.failed == 1
    assert store.get(job.id).error_message == "Upload failed: Job has no tenant"


def test_published_video_is_not_uploaded_again(ctx, upload_job, platform, store, clock, monkeypatch):
    job = upload_job()
    real_mark_completed = store.mark_completed
    calls = itertools.count()

    def flaky_mark_completed(*args, **kwargs):
        if next(calls) == 0:
            raise RuntimeError("database went away")
        return real_mark_completed(*args, **kwargs)

    monkeypatch.setattr(store, "mark_completed", flaky_mark_completed)

    assert upload_videos(ctx).failed == 1
    stored = store.get(job.id)
    assert stored.status == JobStatus.FAILED
    assert stored.payload["platformVideoId"] == "yt_1"

    assert recover_jobs(ctx).readmitted == [job.id]
    clock.advance(61)
    summary = upload_videos(ctx)

    assert summary.succeeded == 1
    assert summary.items[0].detail["platformVideoId"] == "yt_1"
    assert len(platform.uploads) == 1
    stored = store.get(job.id)
    assert stored.status == JobStatus.COMPLETED
    assert [v.platform_video_id for v in store.uploaded_videos()] == ["yt_1"]
