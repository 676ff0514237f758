"""Prompt cho các agent (daily / weekly / monthly generator, platform adapter)."""
from datetime import date
from typing import Iterable, Optional, Tuple

from narrator.services.tone_profile_service import ToneDirective, render_tone_guidance

QUALITY_RULES = (
    "UNIVERSAL QUALITY STANDARDS:\n"
    "- NO generic AI phrases: \"significant milestone\", \"exciting journey\", \"delved into\"\n"
    "- NO corporate buzzwords: \"leveraged\", \"synergized\", \"impactful\"\n"
    "- NO fake positivity: progress includes struggles\n"
    "- NO vague language: be specific with details, actions and outcomes\n"
    "- Write flowing narrative, not a list of activities"
)


def _system(role: str, tone: Optional[ToneDirective], output_format: str) -> str:
    guidance = render_tone_guidance(tone)
    parts = [role]
    if guidance:
        parts.append(guidance)
    parts += [QUALITY_RULES, "OUTPUT FORMAT:\n" + output_format]
    return "\n\n".join(parts)


def daily_prompt(target: date, check_ins: Iterable[Tuple[str, str]], tone: Optional[ToneDirective]) -> Tuple[str, str]:
    """check_ins: (HH:MM local, content), theo thứ tự thời gian."""
    system = _system(
        "You are an expert narrative writer who transforms raw daily check-ins into a polished, "
        "insightful post while preserving the user's authentic voice. Elevate, don't transform.",
        tone,
        "Write the daily narrative in the user's voice. Then on a new line, add:\n"
        "THEMES: [comma-separated themes you identified]\n"
        "HIGHLIGHTS: [comma-separated specific moments/actions]\n"
        "INSIGHTS: [comma-separated insights that were implied but not stated]",
    )
    lines = "\n".join(f"[{hhmm}] {content}" for hhmm, content in check_ins)
    user = (
        "Transform these raw check-ins into a polished narrative that sounds like the user wrote it.\n\n"
        f"DATE: {target.isoformat()}\n\nRAW CHECK-INS:\n{lines}\n\n"
        "Read them chronologically, find the connecting thread and write it as a flowing narrative."
    )
    return system, user


def weekly_prompt(week_start: date, week_end: date, daily_posts: Iterable[Tuple[date, str]], tone: Optional[ToneDirective]) -> Tuple[str, str]:
    system = _system(
        "You are a reflective writer who turns a week of daily narratives into one weekly reflection "
        "in the user's own voice.",
        tone,
        "Write the weekly reflection in the user's voice. Then on a new line, add:\n"
        "THEMES: [comma-separated weekly themes]\n"
        "HIGHLIGHTS: [comma-separated key moments from the week]\n"
        "PATTERNS: [comma-separated patterns you identified]\n"
        "EVOLUTION: [brief description of what changed or evolved]",
    )
    days = "\n\n".join(f"--- {d.isoformat()} ---\n{content}" for d, content in daily_posts)
    user = (
        f"WEEK: {week_start.isoformat()} to {week_end.isoformat()}\n\nDAILY NARRATIVES:\n{days}\n\n"
        "Synthesize the week: what connected these days, what moved forward, what shifted."
    )
    return system, user


def monthly_prompt(month_start: date, month_end: date, weekly_posts: Iterable[Tuple[date, str]], tone: Optional[ToneDirective]) -> Tuple[str, str]:
    system = _system(
        "You are a reflective writer who turns a month of weekly reflections into one monthly "
        "retrospective in the user's own voice. Keep it reflective and forward-looking.",
        tone,
        "Write the monthly reflection. Then on a new line, add:\n"
        "THEMES: [comma-separated monthly themes]\n"
        "ACHIEVEMENTS: [comma-separated key achievements]\n"
        "SHIFTS: [comma-separated shifts in focus or thinking]\n"
        "MOMENTUM: [one sentence on overall momentum]\n"
        "NEXT_FOCUS: [comma-separated areas to focus on next month]",
    )
    weeks = "\n\n".join(f"--- Week of {d.isoformat()} ---\n{content}" for d, content in weekly_posts)
    user = (
        f"MONTH: {month_start.isoformat()} to {month_end.isoformat()}\n\nWEEKLY REFLECTIONS:\n{weeks}\n\n"
        "Write the story of this month: the arc, the wins, what changed and where it is heading."
    )
    return system, user


def platform_prompt(
    base_content: str,
    themes: Iterable[str],
    platform_name: str,
    max_length: int,
    style: str,
    tone_hint: str,
    hashtag_limit: int,
    allow_emojis: bool,
    tone: Optional[ToneDirective],
) -> Tuple[str, str]:
    hashtag_rule = (
        f"- Add at most {hashtag_limit} relevant hashtags at the end"
        if hashtag_limit > 0
        else "- Do not use hashtags"
    )
    emoji_rule = "- Emojis are fine when they fit the voice" if allow_emojis else "- Do not use emojis"
    system = _system(
        f"You adapt a personal narrative for {platform_name} without losing the author's voice.",
        tone,
        f"Return only the post text for {platform_name}.\n"
        f"- Maximum {max_length} characters\n"
        f"- Style: {style}; tone: {tone_hint}\n"
        f"{hashtag_rule}\n{emoji_rule}\n"
        "- Separate paragraphs with a blank line",
    )
    theme_line = ", ".join(themes)
    user = f"ORIGINAL POST:\n{base_content}\n\nTHEMES: {theme_line or 'n/a'}\n\nAdapt it for {platform_name}."
    return system, user
