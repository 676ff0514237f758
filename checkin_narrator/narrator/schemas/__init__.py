"""Pydantic request/response schemas."""
from narrator.schemas.common import ErrorResponse, MessageResponse
from narrator.schemas.checkin import CheckInCreate, CheckInListResponse, CheckInOut
from narrator.schemas.generation import (
    CompleteGenerationResponse,
    GeneratedPostOut,
    GeneratedPostWithPlatformsOut,
    GenerateRequest,
    PlatformPostOut,
    PlatformPostUpdate,
    PostListItem,
    PostListResponse,
    PostTypeEnum,
    PostVersionsResponse,
    RegenerationStatsOut,
    TokenUsageOut,
)
from narrator.schemas.settings import (
    PlatformSettingsOut,
    PlatformSettingsUpdate,
    ScheduleSettingsOut,
    ScheduleSettingsUpdate,
)
from narrator.schemas.scheduler import (
    CheckSchedulesResponse,
    CronHealthResponse,
    GenerationJobOut,
    ProcessJobsResponse,
    SchedulerStatusResponse,
)

__all__ = [
    "ErrorResponse",
    "MessageResponse",
    "CheckInCreate",
    "CheckInListResponse",
    "CheckInOut",
    "CompleteGenerationResponse",
    "GeneratedPostOut",
    "GeneratedPostWithPlatformsOut",
    "GenerateRequest",
    "PlatformPostOut",
    "PlatformPostUpdate",
    "PostListItem",
    "PostListResponse",
    "PostTypeEnum",
    "PostVersionsResponse",
    "RegenerationStatsOut",
    "TokenUsageOut",
    "PlatformSettingsOut",
    "PlatformSettingsUpdate",
    "ScheduleSettingsOut",
    "ScheduleSettingsUpdate",
    "CheckSchedulesResponse",
    "CronHealthResponse",
    "GenerationJobOut",
    "ProcessJobsResponse",
    "SchedulerStatusResponse",
]
