"""SQLAlchemy models for Check-in Narrator."""
from narrator.models.user import User
from narrator.models.check_in import CheckIn
from narrator.models.tone_profile import ToneProfile
from narrator.models.generated_post import GeneratedPost
from narrator.models.platform_post import PlatformPost
from narrator.models.generation_job import GenerationJob
from narrator.models.generation_schedule import GenerationSchedule
from narrator.models.platform_settings import PlatformSettings
from narrator.models.token_usage_log import TokenUsageLog

__all__ = [
    "User",
    "CheckIn",
    "ToneProfile",
    "GeneratedPost",
    "PlatformPost",
    "GenerationJob",
    "GenerationSchedule",
    "PlatformSettings",
    "TokenUsageLog",
]
