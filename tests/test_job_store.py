"""Tests for the file-backed job store: claims, transitions and conditional readmit."""

import threading
from datetime import timedelta

import pytest

from reelpipe.jobs.models import JobStatus
from reelpipe.jobs.store import JobNotFoundError, UNSET


def test_claim_moves_job_to_in_progress(store, make_job, clock):
    """A claim flips the step's pending status to its claimed status and stamps claimed_at."""
    job = make_job(step=2)
    claimed = store.claim_next_pending_job(2)
    assert claimed.id == job.id
    assert claimed.status == JobStatus.RENDERING_FRAMES
    assert claimed.claimed_at == clock.now
    assert store.get(job.id).status == JobStatus.RENDERING_FRAMES
    assert store.claim_next_pending_job(2) is None


def test_claim_is_fifo_and_ignores_other_steps(store, make_job):
    first = make_job(step=3)
    make_job(step=2)
    second = make_job(step=3)
    assert store.claim_next_pending_job(3).id == first.id
    assert store.claim_next_pending_job(3).id == second.id
    assert store.claim_next_pending_job(3) is None


def test_claim_filters_by_tenant(store, make_job):
    make_job(step=4, tenant_id="english_shots")
    health = make_job(step=4, tenant_id="health_shots")
    claimed = store.claim_next_pending_job(4, "health_shots")
    assert claimed.id == health.id
    assert store.claim_next_pending_job(4, "health_shots") is None


def test_batch_claim_respects_limit(store, make_job):
    jobs = [make_job(step=2) for _ in range(5)]
    batch = store.claim_pending_batch(2, 3)
    assert [j.id for j in batch] == [j.id for j in jobs[:3]]
    assert store.claim_pending_batch(2, 0) == []


def test_concurrent_claims_never_share_a_job(store, make_job):
    """Many threads racing on one store receive disjoint jobs."""
    created = {make_job(step=3).id for _ in range(12)}
    claimed: list[str] = []
    guard = threading.Lock()
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        while True:
            job = store.claim_next_pending_job(3)
            if job is None:
                return
            with guard:
                claimed.append(job.id)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(claimed) == len(set(claimed))
    assert set(claimed) == created


def test_claim_skips_jobs_not_yet_due(store, make_job, clock):
    job = make_job(step=2, not_before=None)
    store.readmit(job.id, expected_status=JobStatus.FRAMES_PENDING, attempt_count=1,
                  not_before=clock.now + timedelta(seconds=60))
    assert store.claim_next_pending_job(2) is None
    clock.advance(61)
    assert store.claim_next_pending_job(2).id == job.id


def test_update_merges_payload_additively(store, make_job):
    job = make_job(step=2, payload={"content": {"hook": "x"}, "format": "mcq"})
    store.update_job(job.id, step=3, status=JobStatus.ASSEMBLY_PENDING, payload={"frameUrls": ["a"]})
    updated = store.get(job.id)
    assert updated.payload == {"content": {"hook": "x"}, "format": "mcq", "frameUrls": ["a"]}
    assert updated.step == 3


def test_update_error_message_sentinel(store, make_job):
    """error_message is left alone unless passed; None clears it."""
    job = make_job(step=2)
    store.update_job(job.id, status=JobStatus.FAILED, error_message="boom")
    store.update_job(job.id, payload={"x": 1}, error_message=UNSET)
    assert store.get(job.id).error_message == "boom"
    store.update_job(job.id, error_message=None)
    assert store.get(job.id).error_message is None


def test_update_rejects_step_decrease(store, make_job):
    job = make_job(step=3)
    with pytest.raises(ValueError):
        store.update_job(job.id, step=2)
    assert store.get(job.id).step == 3


def test_update_unknown_job(store):
    with pytest.raises(JobNotFoundError):
        store.update_job("job_missing", status=JobStatus.FAILED)


def test_update_to_terminal_clears_claim(store, make_job):
    job = make_job(step=2)
    store.claim_next_pending_job(2)
    store.update_job(job.id, status=JobStatus.FAILED, error_message="x")
    assert store.get(job.id).claimed_at is None


def test_readmit_is_conditional(store, make_job, clock):
    job = make_job(step=3)
    store.update_job(job.id, status=JobStatus.FAILED, error_message="Video assembly failed: x")

    assert store.readmit(job.id, expected_status=JobStatus.ASSEMBLING, attempt_count=1, not_before=None) is None
    assert store.get(job.id).status == JobStatus.FAILED

    readmitted = store.readmit(job.id, expected_status=JobStatus.FAILED, attempt_count=1, not_before=clock.now)
    assert readmitted.status == JobStatus.ASSEMBLY_PENDING
    assert readmitted.attempt_count == 1
    assert readmitted.error_message is None
    assert readmitted.step == 3


def test_mark_completed_records_upload(store, make_job):
    job = make_job(step=4)
    store.mark_completed(job.id, "yt_1", {"title": "T", "description": "D", "tags": ["a"]})
    done = store.get(job.id)
    assert done.status == JobStatus.COMPLETED
    assert done.payload["platformVideoId"] == "yt_1"
    videos = store.uploaded_videos("english_shots")
    assert [v.platform_video_id for v in videos] == ["yt_1"]
    assert videos[0].title == "T"


def test_list_failed_and_stale(store, make_job, clock):
    early = make_job(step=1)
    store.update_job(early.id, status=JobStatus.FAILED, error_message="x")
    late = make_job(step=3)
    store.update_job(late.id, status=JobStatus.FAILED, error_message="x")
    assert [j.id for j in store.list_failed(min_step=2)] == [late.id]

    claimed = make_job(step=2)
    store.claim_next_pending_job(2)
    assert store.list_stale_claims(clock.now) == []
    clock.advance(10)
    assert [j.id for j in store.list_stale_claims(clock.now)] == [claimed.id]


def test_recent_formats_most_recent_first(store, make_job):
    for fmt in ("mcq", "quick_fix", "common_mistake", "mcq"):
        make_job(step=2, payload={"content": {"hook": "h"}, "format": fmt})
    make_job(step=2, payload={"format": "quick_tip"}, persona="brain_health_tips")
    assert store.recent_formats("english_shots", "english_vocab_builder") == ["mcq", "common_mistake", "quick_fix"]


def test_stats_counts(store, make_job):
    make_job(step=2)
    make_job(step=3)
    job = make_job(step=3, tenant_id="health_shots")
    store.update_job(job.id, status=JobStatus.FAILED, error_message="x")
    stats = store.stats()
    assert stats.total == 3
    assert stats.count(JobStatus.ASSEMBLY_PENDING) == 1
    assert stats.by_step == {2: 1, 3: 2}
    assert store.stats("health_shots").count(JobStatus.FAILED) == 1
