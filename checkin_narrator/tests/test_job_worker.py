"""
Job queue + worker: enqueue (một job active / tuple), claim, xử lý, maintenance.
"""
from datetime import date, timedelta

import pytest
from sqlalchemy import select

from narrator.errors import ProviderError
from narrator.models import GeneratedPost, GenerationJob
from narrator.services.job_service import (
    count_pending_jobs,
    enqueue_job,
    fail_stalled_jobs,
    has_active_job,
    list_jobs,
    process_pending_jobs,
    prune_completed_jobs,
    retry_failed_jobs,
    run_maintenance,
)

from conftest import DAILY_TEXT, FakeLLM, add_check_in, add_post, at, rejecting_llm

DAY = date(2025, 3, 4)
NOW = at(2025, 3, 5, 2)


def _clock():
    return NOW


async def _fresh(db, job_id) -> GenerationJob:
    r = await db.execute(
        select(GenerationJob).where(GenerationJob.id == job_id).execution_options(populate_existing=True)
    )
    return r.scalar_one()


async def _add_job(db, user_id, post_type="DAILY", period=DAY, **kwargs) -> GenerationJob:
    job = GenerationJob(user_id=user_id, type=post_type, date=period, **kwargs)
    db.add(job)
    await db.commit()
    return job


@pytest.mark.asyncio
async def test_enqueue_allows_one_active_job_per_tuple(db, user) -> None:
    first = await enqueue_job(db, user.id, "DAILY", DAY)
    duplicate = await enqueue_job(db, user.id, "DAILY", DAY)
    other_day = await enqueue_job(db, user.id, "DAILY", DAY + timedelta(days=1))

    assert first is not None and first.status == "PENDING"
    assert duplicate is None
    assert other_day is not None
    assert await has_active_job(db, user.id, "DAILY", DAY) is True
    assert await count_pending_jobs(db) == 2


@pytest.mark.asyncio
async def test_finished_job_does_not_block_new_enqueue(db, user) -> None:
    await _add_job(db, user.id, status="COMPLETED", completed_at=NOW)
    assert await enqueue_job(db, user.id, "DAILY", DAY) is not None


@pytest.mark.asyncio
async def test_worker_completes_job_and_creates_post(db, user, fake_llm) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    job = await enqueue_job(db, user.id, "DAILY", DAY)

    summary = await process_pending_jobs(llm=fake_llm, clock=_clock)

    assert summary.as_dict() == {"claimed": 1, "completed": 1, "failed": 0, "errors": []}
    done = await _fresh(db, job.id)
    assert done.status == "COMPLETED"
    assert done.attempts == 1
    assert done.started_at == NOW and done.completed_at == NOW
    r = await db.execute(select(GeneratedPost).where(GeneratedPost.user_id == user.id))
    post = r.scalar_one()
    assert post.generation_type == "AUTO"


@pytest.mark.asyncio
async def test_missing_input_fails_as_not_found_and_is_never_retried(db, user, fake_llm) -> None:
    job = await enqueue_job(db, user.id, "WEEKLY", date(2025, 3, 3))

    summary = await process_pending_jobs(llm=fake_llm, clock=_clock)

    assert summary.failed == 1
    failed = await _fresh(db, job.id)
    assert failed.status == "FAILED"
    assert failed.error_kind == "NOT_FOUND"
    assert fake_llm.calls == []
    assert await retry_failed_jobs(db, now=NOW) == 0


@pytest.mark.asyncio
async def test_provider_failure_is_requeued_by_sweep(db, user) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    job = await enqueue_job(db, user.id, "DAILY", DAY)
    llm = FakeLLM(responses={"daily-generator": ProviderError("LLM call failed after 3 attempts: 503")})

    await process_pending_jobs(llm=llm, clock=_clock)
    failed = await _fresh(db, job.id)
    assert failed.error_kind == "PROVIDER_ERROR"

    assert await retry_failed_jobs(db, now=NOW + timedelta(minutes=5)) == 1
    requeued = await _fresh(db, job.id)
    assert requeued.status == "PENDING"
    assert requeued.error is None and requeued.error_kind is None
    assert requeued.attempts == 1


@pytest.mark.asyncio
async def test_provider_client_error_is_recorded_and_never_requeued(db, user) -> None:
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))
    job = await enqueue_job(db, user.id, "DAILY", DAY)

    summary = await process_pending_jobs(llm=rejecting_llm(), clock=_clock)

    assert summary.failed == 1
    failed = await _fresh(db, job.id)
    assert failed.status == "FAILED"
    assert failed.error_kind == "PROVIDER_CLIENT_ERROR"
    assert await retry_failed_jobs(db, now=NOW + timedelta(minutes=5)) == 0
    assert (await _fresh(db, job.id)).status == "FAILED"


@pytest.mark.asyncio
async def test_one_failing_job_does_not_abort_the_batch(db, user) -> None:
    days = [DAY - timedelta(days=2), DAY - timedelta(days=1), DAY]
    jobs = []
    for d in days:
        await add_check_in(db, user.id, f"note {d}", at(d.year, d.month, d.day, 9))
        jobs.append(await enqueue_job(db, user.id, "DAILY", d))
    broken_day = days[1].isoformat()

    def _daily(system: str, prompt: str) -> str:
        if f"DATE: {broken_day}" in prompt:
            raise ProviderError("LLM call failed after 3 attempts: 503")
        return DAILY_TEXT

    summary = await process_pending_jobs(llm=FakeLLM(responses={"daily-generator": _daily}), concurrency=1, clock=_clock)

    assert (summary.claimed, summary.completed, summary.failed) == (3, 2, 1)
    assert summary.errors == [{"job_id": str(jobs[1].id), "type": "DAILY", "date": broken_day}]
    for job in (jobs[0], jobs[2]):
        done = await _fresh(db, job.id)
        assert done.status == "COMPLETED"
        assert done.completed_at == NOW
        assert done.error is None
    failed = await _fresh(db, jobs[1].id)
    assert failed.status == "FAILED"
    assert failed.error_kind == "PROVIDER_ERROR"
    assert "503" in failed.error
    assert failed.completed_at == NOW
    r = await db.execute(select(GeneratedPost.date).where(GeneratedPost.user_id == user.id))
    assert sorted(r.scalars().all()) == [days[0], days[2]]


@pytest.mark.asyncio
async def test_retry_sweep_respects_attempts_age_and_active_jobs(db, user) -> None:
    exhausted = await _add_job(db, user.id, status="FAILED", error_kind="PROVIDER_ERROR", attempts=3, completed_at=NOW)
    old = await _add_job(
        db, user.id, period=DAY - timedelta(days=1), status="FAILED", error_kind="PROVIDER_ERROR",
        attempts=1, completed_at=NOW - timedelta(hours=30),
    )
    blocked = await _add_job(
        db, user.id, period=DAY - timedelta(days=2), status="FAILED", error_kind="TIMEOUT",
        attempts=1, completed_at=NOW,
    )
    await _add_job(db, user.id, period=DAY - timedelta(days=2), status="PENDING")

    assert await retry_failed_jobs(db, now=NOW) == 0
    for job in (exhausted, old, blocked):
        assert (await _fresh(db, job.id)).status == "FAILED"


@pytest.mark.asyncio
async def test_stalled_processing_jobs_are_failed(db, user) -> None:
    stalled = await _add_job(db, user.id, status="PROCESSING", attempts=1, started_at=NOW - timedelta(minutes=31))
    fresh = await _add_job(
        db, user.id, period=DAY + timedelta(days=1), status="PROCESSING", attempts=1,
        started_at=NOW - timedelta(minutes=5),
    )

    assert await fail_stalled_jobs(db, now=NOW) == 1
    job = await _fresh(db, stalled.id)
    assert job.status == "FAILED"
    assert job.error_kind == "STALLED"
    assert job.error == "Job stalled - exceeded 30 minute timeout"
    assert (await _fresh(db, fresh.id)).status == "PROCESSING"


@pytest.mark.asyncio
async def test_prune_removes_only_old_completed_jobs(db, user) -> None:
    await _add_job(db, user.id, status="COMPLETED", completed_at=NOW - timedelta(days=8))
    recent = await _add_job(db, user.id, period=DAY + timedelta(days=1), status="COMPLETED", completed_at=NOW)
    failed = await _add_job(
        db, user.id, period=DAY + timedelta(days=2), status="FAILED", error_kind="NOT_FOUND",
        completed_at=NOW - timedelta(days=8),
    )

    assert await prune_completed_jobs(db, now=NOW) == 1
    remaining = {j.id for j in await list_jobs(db)}
    assert remaining == {recent.id, failed.id}


@pytest.mark.asyncio
async def test_worker_only_claims_configured_types(db, user, fake_llm) -> None:
    await add_post(db, user.id, "DAILY", date(2025, 3, 3))
    daily = await enqueue_job(db, user.id, "DAILY", DAY)
    weekly = await enqueue_job(db, user.id, "WEEKLY", date(2025, 3, 3))

    summary = await process_pending_jobs(llm=fake_llm, job_types=["WEEKLY"], clock=_clock)

    assert summary.claimed == 1
    assert (await _fresh(db, weekly.id)).status == "COMPLETED"
    assert (await _fresh(db, daily.id)).status == "PENDING"


@pytest.mark.asyncio
async def test_maintenance_summary(db, user) -> None:
    await _add_job(db, user.id, status="PROCESSING", attempts=1, started_at=NOW - timedelta(hours=2))

    summary = await run_maintenance(db, now=NOW)

    # Job vừa bị đánh STALLED được retry sweep đưa lại về PENDING ngay trong cùng vòng.
    assert summary.as_dict() == {"stalled": 1, "pruned": 0, "requeued": 1}
    assert await count_pending_jobs(db) == 1


@pytest.mark.asyncio
async def test_list_jobs_filters(db, user) -> None:
    await _add_job(db, user.id, status="FAILED", error_kind="NOT_FOUND", completed_at=NOW)
    pending = await _add_job(db, user.id, post_type="WEEKLY", period=date(2025, 3, 3))

    assert [j.id for j in await list_jobs(db, status="PENDING")] == [pending.id]
    assert [j.id for j in await list_jobs(db, post_type="WEEKLY", period=date(2025, 3, 3))] == [pending.id]
    assert await list_jobs(db, status="COMPLETED") == []
