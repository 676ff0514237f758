"""Cron endpoints: X-Cron-Secret, một lượt evaluator / worker qua HTTP."""
from datetime import date

import pytest

from narrator.clock import ManualClock
from narrator.config import get_settings
from narrator.services.job_service import enqueue_job
from narrator.services.scheduler_service import get_scheduler

from conftest import add_check_in, add_schedule, at

SECRET = {"X-Cron-Secret": "test-cron-secret"}


@pytest.fixture
def scheduler(monkeypatch, fake_llm):
    s = get_scheduler()
    monkeypatch.setattr(s, "clock", ManualClock(at(2025, 3, 4, 21, 5)))
    monkeypatch.setattr(s, "_llm", fake_llm)
    return s


@pytest.mark.asyncio
async def test_cron_requires_secret(client) -> None:
    missing = await client.post("/cron/check-schedules")
    assert missing.status_code == 401
    assert missing.json()["code"] == "UNAUTHORIZED"

    wrong = await client.post("/cron/process-jobs", headers={"X-Cron-Secret": "nope"})
    assert wrong.status_code == 401


@pytest.mark.asyncio
async def test_cron_without_configured_secret_is_server_error(client, monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "cron_secret", None)
    resp = await client.post("/cron/check-schedules", headers=SECRET)
    assert resp.status_code == 500
    assert resp.json()["code"] == "CONFIGURATION_ERROR"


@pytest.mark.asyncio
async def test_check_schedules_then_process_jobs(client, db, user, scheduler) -> None:
    await add_schedule(db, user.id, weekly_enabled=False, monthly_enabled=False)
    await add_check_in(db, user.id, "note", at(2025, 3, 4, 9))

    resp = await client.post("/cron/check-schedules", headers=SECRET)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert (body["checked"], body["matched"], body["created"]) == (1, 1, 1)

    resp = await client.post("/cron/process-jobs", headers=SECRET)
    assert resp.status_code == 200
    body = resp.json()
    assert (body["claimed"], body["completed"], body["failed"]) == (1, 1, 0)

    jobs = await client.get("/jobs", params={"status": "completed"}, headers=SECRET)
    assert jobs.status_code == 200
    assert [(j["type"], j["date"]) for j in jobs.json()] == [("DAILY", "2025-03-04")]


@pytest.mark.asyncio
async def test_process_jobs_reports_failures(client, db, user, scheduler) -> None:
    await enqueue_job(db, user.id, "MONTHLY", date(2025, 3, 1))

    resp = await client.post("/cron/process-jobs", headers=SECRET)

    assert resp.status_code == 200
    assert resp.json()["failed"] == 1


@pytest.mark.asyncio
async def test_jobs_endpoint_validates_filters(client) -> None:
    assert (await client.get("/jobs")).status_code == 401
    resp = await client.get("/jobs", params={"status": "DONE"}, headers=SECRET)
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_maintenance_endpoint(client, scheduler) -> None:
    resp = await client.post("/cron/maintenance", headers=SECRET)
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["stalled"] == 0


@pytest.mark.asyncio
async def test_cron_health_needs_no_secret(client) -> None:
    resp = await client.get("/cron/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["cron_configured"] is True
    assert body["internal_scheduler"] is False


@pytest.mark.asyncio
async def test_scheduler_status(client, db, user) -> None:
    await enqueue_job(db, user.id, "DAILY", date(2025, 3, 4))
    resp = await client.get("/scheduler/status")
    assert resp.status_code == 200
    body = resp.json()
    assert body["enabled"] is False
    assert body["running"] is False
    assert body["pending_count"] == 1
