"""Tests for the content generation stage (planning, jobs, failures)."""

import pytest

from reelpipe.catalog import UnknownPersonaError
from reelpipe.generation.service import ContentGenerator
from reelpipe.jobs.models import JobStatus
from reelpipe.pipeline.generation import enqueue, generate_content, plan_units, process_pending
from reelpipe.schedule import ScheduleBook, TenantSchedule
from reelpipe.tenants.registry import TenantNotFoundError


def test_generate_creates_frames_pending_jobs(ctx, store):
    """Each unit becomes one step-2 job carrying content, format and frame roles."""
    summary = generate_content(ctx, "english_shots", count=3)

    assert summary.succeeded == 3
    assert summary.failed == 0
    jobs = [store.get(item.job_id) for item in summary.items]
    for job in jobs:
        assert job.step == 2
        assert job.status == JobStatus.FRAMES_PENDING
        assert job.tenant_id == "english_shots"
        assert job.persona == "english_vocab_builder"
        assert job.topic.startswith("eng_")
        assert job.payload["format"] == "mcq"
        assert job.payload["frameRoles"] == ["hook", "question", "answer", "explanation"]
        assert job.payload["content"]["answer"] == "A"
        assert job.payload["isFallback"] is False


def test_plan_spreads_units_over_personas(ctx):
    units = plan_units(ctx, "health_shots", count=4)
    assert [u.persona for u in units] == [
        "brain_health_tips", "eye_health_tips", "brain_health_tips", "eye_health_tips",
    ]
    assert all(u.topic_display_name for u in units)


def test_plan_covers_every_active_tenant(ctx):
    units = plan_units(ctx, count=1)
    assert sorted(u.tenant_id for u in units) == ["english_shots", "health_shots"]


def test_explicit_personas_override_tenant_list(ctx):
    units = plan_units(ctx, "english_shots", ["eye_health_tips"], count=2)
    assert {u.persona for u in units} == {"eye_health_tips"}


def test_unknown_tenant_and_persona_are_rejected(ctx):
    with pytest.raises(TenantNotFoundError):
        generate_content(ctx, "nobody", count=1)
    with pytest.raises(UnknownPersonaError):
        generate_content(ctx, "english_shots", ["no_such_persona"], count=1)


def test_schedule_with_nothing_due(ctx, store):
    ctx.schedules = ScheduleBook({"english_shots": TenantSchedule(generation={14: ["english_vocab_builder"]})})
    summary = generate_content(ctx, "english_shots", count=2)
    assert summary.items == []
    assert summary.text() == "Nothing to generate"
    assert store.stats().total == 0


def test_fallback_content_is_marked(ctx, llm, store):
    llm.responses = ['{"hook": "x"}']
    summary = generate_content(ctx, "english_shots", count=1)
    job = store.get(summary.items[0].job_id)
    assert job.payload["isFallback"] is True
    assert job.payload["content"]["is_fallback"] is True


def test_invalid_output_without_fallback_creates_no_job(ctx, llm, store):
    llm.responses = ["not json"]
    ctx.generator = ContentGenerator(llm, allow_fallback=False)
    summary = generate_content(ctx, "english_shots", count=2)
    assert summary.failed == 2
    assert all(item.error.startswith("Content generation failed") for item in summary.items)
    assert store.stats().total == 0


def test_one_failing_unit_does_not_stop_the_batch(ctx, llm, store):
    llm.responses = [ConnectionError("rate limited"), llm.responses[0]]
    summary = generate_content(ctx, "english_shots", count=3)
    assert summary.failed == 1
    assert summary.succeeded == 2
    assert store.stats().count(JobStatus.FRAMES_PENDING) == 2


def test_enqueue_then_process_pending(ctx, store):
    """Step-1 jobs are claimed, generated and advanced in place."""
    jobs = enqueue(ctx, "english_shots", count=2)
    assert all(store.get(j.id).status == JobStatus.PENDING for j in jobs)

    summary = process_pending(ctx, "english_shots")
    assert sorted(item.job_id for item in summary.items) == sorted(j.id for j in jobs)
    for job in jobs:
        stored = store.get(job.id)
        assert stored.step == 2
        assert stored.status == JobStatus.FRAMES_PENDING
        assert stored.payload["format"] == "mcq"
    assert process_pending(ctx).text() == "No pending jobs to generate"


def test_process_pending_failure_marks_job_failed(ctx, llm, store):
    job = enqueue(ctx, "english_shots", count=1)[0]
    llm.responses = [RuntimeError("LLM down")]
    summary = process_pending(ctx)
    assert summary.failed == 1
    stored = store.get(job.id)
    assert stored.status == JobStatus.FAILED
    assert stored.step == 1
    assert stored.error_message == "Content generation failed: LLM down"
