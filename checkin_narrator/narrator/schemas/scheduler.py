"""Scheduler status, cron trigger và job listing."""
import datetime as dt
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SchedulerStatusResponse(BaseModel):
    """GET /scheduler/status."""

    enabled: bool
    running: bool
    interval_seconds: int
    worker_interval_seconds: int
    job_types: List[str]
    last_tick_at: Optional[str] = None
    last_worker_tick_at: Optional[str] = None
    last_maintenance_at: Optional[str] = None
    pending_count: Optional[int] = None


class CheckSchedulesResponse(BaseModel):
    """POST /cron/check-schedules."""

    success: bool = True
    checked: int
    matched: int
    created: int
    skipped: Dict[str, int] = Field(default_factory=dict)
    timestamp: dt.datetime


class ProcessJobsResponse(BaseModel):
    """POST /cron/process-jobs."""

    success: bool = True
    claimed: int
    completed: int
    failed: int
    stalled: int
    pruned: int
    requeued: int
    timestamp: dt.datetime


class CronHealthResponse(BaseModel):
    status: str
    cron_configured: bool
    internal_scheduler: bool
    timestamp: dt.datetime


class GenerationJobOut(BaseModel):
    id: UUID
    user_id: UUID
    type: str
    date: dt.date
    status: str
    error: Optional[str] = None
    error_kind: Optional[str] = None
    attempts: int
    started_at: Optional[dt.datetime] = None
    completed_at: Optional[dt.datetime] = None
    created_at: dt.datetime

    model_config = {"from_attributes": True}
