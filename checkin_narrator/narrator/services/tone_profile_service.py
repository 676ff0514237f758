"""
Merge tone profile: override thủ công > giá trị AI trích xuất; kèm preferences của user.
Kết quả (ToneDirective) được render thành đoạn hướng dẫn giọng văn trong prompt.
"""
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from narrator.models import ToneProfile

LENGTH_GUIDE = {
    "concise": "User prefers concise writing - respect their brevity",
    "moderate": "User prefers moderate length - balanced and complete",
    "detailed": "User prefers detailed writing - develop ideas thoroughly",
}


class ToneDirective(BaseModel):
    """Tone profile đã merge, dùng cho generator và platform adapter."""

    voice: Optional[str] = None
    sentence_style: Optional[str] = None
    emotional_range: Optional[str] = None
    common_phrases: List[str] = Field(default_factory=list)
    writing_goals: List[str] = Field(default_factory=list)
    target_audience: List[str] = Field(default_factory=list)
    content_purpose: Optional[str] = None
    tone_characteristics: Dict[str, int] = Field(default_factory=dict)
    avoid_topics: List[str] = Field(default_factory=list)
    preferred_length: Optional[str] = None
    include_emojis: bool = True
    include_hashtags: bool = True
    manually_customized: bool = False


def _clamp_characteristics(raw: Optional[dict]) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for key, value in (raw or {}).items():
        try:
            score = int(value)
        except (TypeError, ValueError):
            continue
        out[str(key)] = max(1, min(10, score))
    return out


def build_tone_directive(profile: Optional[ToneProfile]) -> Optional[ToneDirective]:
    """None khi user chưa có tone profile; custom_* thắng giá trị AI."""
    if profile is None:
        return None
    return ToneDirective(
        voice=profile.custom_voice or profile.voice,
        sentence_style=profile.custom_sentence_style or profile.sentence_style,
        emotional_range=profile.custom_emotional_range or profile.emotional_range,
        common_phrases=list(profile.common_phrases or []),
        writing_goals=list(profile.writing_goals or []),
        target_audience=list(profile.target_audience or []),
        content_purpose=profile.content_purpose,
        tone_characteristics=_clamp_characteristics(profile.tone_characteristics),
        avoid_topics=list(profile.avoid_topics or []),
        preferred_length=profile.preferred_length,
        include_emojis=bool(profile.include_emojis),
        include_hashtags=bool(profile.include_hashtags),
        manually_customized=bool(profile.manually_edited),
    )


def render_tone_guidance(directive: Optional[ToneDirective]) -> str:
    """Đoạn text chèn vào system prompt; "" khi không có directive."""
    if directive is None:
        return ""
    lines = [
        "USER'S AUTHENTIC VOICE (preserve this exactly):",
        f"- Voice: {directive.voice or 'not specified'}",
        f"- Sentence Structure: {directive.sentence_style or 'not specified'}",
        f"- Emotional Tone: {directive.emotional_range or 'not specified'}",
    ]
    if directive.common_phrases:
        lines.append(f"- Signature Phrases: {', '.join(directive.common_phrases)}")
    if directive.writing_goals:
        lines += ["", "WRITING GOALS (what the user wants to achieve):"]
        lines += [f"- {g}" for g in directive.writing_goals]
    if directive.target_audience:
        lines += ["", "TARGET AUDIENCE (who they're writing for):"]
        lines += [f"- {a}" for a in directive.target_audience]
    if directive.content_purpose:
        lines += ["", "CONTENT PURPOSE:", directive.content_purpose]
    if directive.tone_characteristics:
        lines += ["", "TONE CHARACTERISTICS (1-10 scale):"]
        lines += [f"- {k}: {v}/10" for k, v in directive.tone_characteristics.items()]
    if directive.preferred_length:
        guide = LENGTH_GUIDE.get(directive.preferred_length, directive.preferred_length)
        lines += ["", f"LENGTH PREFERENCE: {guide}"]
    if directive.avoid_topics:
        lines += ["", "TOPICS TO AVOID:"]
        lines += [f"- {t}" for t in directive.avoid_topics]
    lines += [
        "",
        "FORMATTING PREFERENCES:",
        "- Emojis: " + (
            "User allows emojis - use when it fits their voice"
            if directive.include_emojis
            else "User doesn't use emojis - never include them"
        ),
        "- Hashtags: " + (
            "User uses hashtags - include relevant ones"
            if directive.include_hashtags
            else "User doesn't use hashtags - don't include them"
        ),
    ]
    return "\n".join(lines)


async def get_tone_profile(db: AsyncSession, user_id: UUID) -> Optional[ToneProfile]:
    r = await db.execute(select(ToneProfile).where(ToneProfile.user_id == user_id))
    return r.scalar_one_or_none()
