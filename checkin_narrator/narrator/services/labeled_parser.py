"""
Tokenizer cho output có nhãn của LLM.

Model trả về: đoạn narrative, sau đó các dòng "THEMES: a, b", "EVOLUTION: ...".
Một lần quét: tìm lần xuất hiện đầu tiên của mỗi nhãn, cắt text theo vị trí.
Span có dấu phẩy -> list; không có -> scalar. Nhãn thiếu -> None.
"""
import re
from typing import Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

SectionValue = Union[str, List[str], None]

DAILY_LABELS = ("THEMES", "HIGHLIGHTS", "INSIGHTS")
WEEKLY_LABELS = ("THEMES", "HIGHLIGHTS", "PATTERNS", "EVOLUTION")
MONTHLY_LABELS = ("THEMES", "ACHIEVEMENTS", "SHIFTS", "MOMENTUM", "NEXT_FOCUS")

_DECORATION = "*_#"


class LabeledSections(BaseModel):
    """Kết quả tokenize thô: narrative + giá trị theo nhãn (theo thứ tự nhãn truyền vào)."""

    narrative: str = ""
    sections: Dict[str, SectionValue] = Field(default_factory=dict)


def _label_pattern(labels: Sequence[str]) -> "re.Pattern[str]":
    alternatives = "|".join(re.escape(label) for label in sorted(labels, key=len, reverse=True))
    # Cho phép markdown bao quanh nhãn: **THEMES:**, ## THEMES:
    return re.compile(
        rf"(?<![A-Za-z0-9_])[{re.escape(_DECORATION)}]*\s*({alternatives})\s*[{re.escape(_DECORATION)}]*\s*:[{re.escape(_DECORATION)}]*"
    )


def _span_value(raw: str) -> SectionValue:
    text = raw.strip().strip(_DECORATION).strip()
    if "," in text:
        return [item.strip() for item in text.split(",") if item.strip()]
    return text


def tokenize_labeled(text: Optional[str], labels: Sequence[str]) -> LabeledSections:
    """Tách text theo nhãn trong một lần quét; chỉ lần xuất hiện đầu tiên của mỗi nhãn được tính."""
    body = (text or "").replace("\r\n", "\n").strip()
    first_seen: Dict[str, "re.Match[str]"] = {}
    for match in _label_pattern(labels).finditer(body):
        label = match.group(1)
        if label not in first_seen:
            first_seen[label] = match

    if not first_seen:
        return LabeledSections(narrative=body, sections={label: None for label in labels})

    ordered = sorted(first_seen.values(), key=lambda m: m.start())
    narrative = body[: ordered[0].start()].strip()
    sections: Dict[str, SectionValue] = {label: None for label in labels}
    for i, match in enumerate(ordered):
        end = ordered[i + 1].start() if i + 1 < len(ordered) else len(body)
        sections[match.group(1)] = _span_value(body[match.end():end])
    return LabeledSections(narrative=narrative, sections=sections)


def as_list(value: SectionValue) -> List[str]:
    """Field kiểu list: scalar -> [scalar], rỗng/thiếu -> []."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value] if value else []


def as_scalar(value: SectionValue) -> str:
    """Field kiểu scalar: list -> nối bằng ", ", thiếu -> ""."""
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(value)
    return value


class ParsedDaily(BaseModel):
    narrative: str
    themes: List[str] = Field(default_factory=list)
    highlights: List[str] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)


class ParsedWeekly(BaseModel):
    narrative: str
    themes: List[str] = Field(default_factory=list)
    highlights: List[str] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)
    evolution: str = ""


class ParsedMonthly(BaseModel):
    narrative: str
    themes: List[str] = Field(default_factory=list)
    achievements: List[str] = Field(default_factory=list)
    shifts: List[str] = Field(default_factory=list)
    momentum: str = ""
    next_focus: List[str] = Field(default_factory=list)


def parse_daily(text: Optional[str]) -> ParsedDaily:
    t = tokenize_labeled(text, DAILY_LABELS)
    s = t.sections
    return ParsedDaily(
        narrative=t.narrative,
        themes=as_list(s["THEMES"]),
        highlights=as_list(s["HIGHLIGHTS"]),
        insights=as_list(s["INSIGHTS"]),
    )


def parse_weekly(text: Optional[str]) -> ParsedWeekly:
    t = tokenize_labeled(text, WEEKLY_LABELS)
    s = t.sections
    return ParsedWeekly(
        narrative=t.narrative,
        themes=as_list(s["THEMES"]),
        highlights=as_list(s["HIGHLIGHTS"]),
        patterns=as_list(s["PATTERNS"]),
        evolution=as_scalar(s["EVOLUTION"]),
    )


def parse_monthly(text: Optional[str]) -> ParsedMonthly:
    t = tokenize_labeled(text, MONTHLY_LABELS)
    s = t.sections
    return ParsedMonthly(
        narrative=t.narrative,
        themes=as_list(s["THEMES"]),
        achievements=as_list(s["ACHIEVEMENTS"]),
        shifts=as_list(s["SHIFTS"]),
        momentum=as_scalar(s["MOMENTUM"]),
        next_focus=as_list(s["NEXT_FOCUS"]),
    )
