"""Ràng buộc theo nền tảng đăng bài."""
from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class PlatformSpec:
    key: str
    name: str
    max_length: int
    style: str
    tone: str
    hashtag_limit: int
    allow_emojis: bool


PLATFORM_SPECS: Dict[str, PlatformSpec] = {
    "X": PlatformSpec(
        key="X",
        name="X (Twitter)",
        max_length=280,
        style="concise, punchy",
        tone="casual, direct",
        hashtag_limit=2,
        allow_emojis=True,
    ),
    "LINKEDIN": PlatformSpec(
        key="LINKEDIN",
        name="LinkedIn",
        max_length=3000,
        style="professional storytelling",
        tone="thoughtful, insightful",
        hashtag_limit=5,
        allow_emojis=False,
    ),
    "REDDIT": PlatformSpec(
        key="REDDIT",
        name="Reddit",
        max_length=40000,
        style="conversational, detailed",
        tone="authentic, helpful",
        hashtag_limit=0,
        allow_emojis=True,
    ),
}

PLATFORMS = tuple(PLATFORM_SPECS)
