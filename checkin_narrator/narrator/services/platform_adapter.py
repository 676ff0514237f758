"""
Platform adapter: chuyển thể bài gốc cho X / LinkedIn / Reddit.

LLM viết bản nháp; hậu xử lý tất định (postprocess_adapted_content) đảm bảo
ràng buộc nền tảng: hashtag, emoji, độ dài. Ranh giới đoạn văn ("\n\n") luôn được giữ;
rút gọn chỉ bỏ/cắt đoạn cuối, không bao giờ gộp hai đoạn.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from narrator.config import get_settings
from narrator.errors import ProviderError, ValidationError
from narrator.logging_config import get_logger
from narrator.services import prompts
from narrator.services.llm_service import LLMResponse, LLMService
from narrator.services.platform_specs import PLATFORM_SPECS, PlatformSpec
from narrator.services.tone_profile_service import ToneDirective

logger = get_logger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"
ELLIPSIS = "…"

# Tag có ít nhất một chữ cái (#100DaysOfCode hợp lệ, #123 thì không); bỏ qua URL fragment và &#.
HASHTAG_RE = re.compile(r"(?<![\w&/#])#(\w*[^\W\d_]\w*)")
_HASHTAG_TOKEN_RE = re.compile(r"[ \t]*(?<![\w&/#])#\w*[^\W\d_]\w*")
EMOJI_RE = re.compile(
    "["
    "\U0001F1E6-\U0001F1FF"  # flags
    "\U0001F300-\U0001F5FF"
    "\U0001F600-\U0001F64F"
    "\U0001F680-\U0001F6FF"
    "\U0001F700-\U0001F77F"
    "\U0001F780-\U0001F7FF"
    "\U0001F800-\U0001F8FF"
    "\U0001F900-\U0001F9FF"
    "\U0001FA00-\U0001FAFF"
    "\u2600-\u26FF"  # misc symbols
    "\u2700-\u27BF"  # dingbats
    "\u2B50\u2B55\u231A\u231B\u23E9-\u23F3\u23F8-\u23FA"
    "\u200D\uFE0F\u20E3"  # ZWJ, variation selector, keycap
    "]+"
)
_INNER_SPACES_RE = re.compile(r"(?<=\S)[ \t]{2,}")


@dataclass
class AdaptedContent:
    platform: str
    content: str
    hashtags: List[str] = field(default_factory=list)
    response: Optional[LLMResponse] = None


def get_platform_spec(platform: str) -> PlatformSpec:
    spec = PLATFORM_SPECS.get((platform or "").upper())
    if spec is None:
        raise ValidationError(f"Unsupported platform: {platform}", details={"platform": platform})
    return spec


def split_paragraphs(text: str) -> List[str]:
    """Chuẩn hóa xuống dòng rồi tách đoạn; nhiều dòng trống liên tiếp = một ranh giới."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.rstrip() for line in normalized.split("\n")]
    paragraphs: List[str] = []
    current: List[str] = []
    for line in lines:
        if line.strip():
            current.append(line)
        elif current:
            paragraphs.append("\n".join(current))
            current = []
    if current:
        paragraphs.append("\n".join(current))
    return paragraphs


def _filter_hashtags(paragraphs: List[str], keep: int) -> List[str]:
    """Giữ `keep` hashtag khác nhau đầu tiên (theo thứ tự xuất hiện), xóa phần còn lại."""
    kept: List[str] = []

    def _replace(match: "re.Match[str]") -> str:
        tag = match.group(0).strip()
        if tag.lower() in (k.lower() for k in kept):
            return ""
        if len(kept) < keep:
            kept.append(tag)
            return match.group(0)
        return ""

    out: List[str] = []
    for paragraph in paragraphs:
        lines = []
        for line in paragraph.split("\n"):
            had_text = bool(line.strip())
            cleaned = _HASHTAG_TOKEN_RE.sub(_replace, line).rstrip()
            if cleaned.strip() or not had_text:
                lines.append(cleaned)
        if any(line.strip() for line in lines):
            out.append("\n".join(lines))
    return out


def _strip_emojis(paragraphs: List[str]) -> List[str]:
    out: List[str] = []
    for paragraph in paragraphs:
        lines = []
        for line in paragraph.split("\n"):
            cleaned = _INNER_SPACES_RE.sub(" ", EMOJI_RE.sub("", line)).rstrip()
            if cleaned.strip():
                lines.append(cleaned)
        if lines:
            out.append("\n".join(lines))
    return out


def _fit_length(paragraphs: List[str], max_length: int) -> List[str]:
    """Bỏ đoạn cuối đến khi vừa; còn một đoạn mà vẫn dài thì cắt theo ranh giới từ + "…"."""
    paragraphs = list(paragraphs)
    while len(paragraphs) > 1 and len(PARAGRAPH_SEPARATOR.join(paragraphs)) > max_length:
        paragraphs.pop()
    if not paragraphs or len(PARAGRAPH_SEPARATOR.join(paragraphs)) <= max_length:
        return paragraphs
    last = paragraphs[-1]
    budget = max_length - len(ELLIPSIS)
    cut = last[:budget]
    space = cut.rfind(" ")
    if space > budget // 2:
        cut = cut[:space]
    paragraphs[-1] = cut.rstrip() + ELLIPSIS
    return paragraphs


def extract_hashtags(text: str, limit: int) -> List[str]:
    """Hashtag khác nhau theo thứ tự xuất hiện, tối đa limit."""
    seen: List[str] = []
    for match in HASHTAG_RE.finditer(text):
        tag = "#" + match.group(1)
        if tag.lower() not in (s.lower() for s in seen):
            seen.append(tag)
        if len(seen) >= limit:
            break
    return seen


def postprocess_adapted_content(
    raw: str,
    spec: PlatformSpec,
    include_hashtags: bool = True,
    include_emojis: bool = True,
) -> AdaptedContent:
    """Hậu xử lý tất định cho output của LLM theo ràng buộc nền tảng và preference của user."""
    paragraphs = split_paragraphs(raw or "")
    hashtag_limit = spec.hashtag_limit if include_hashtags else 0
    paragraphs = _filter_hashtags(paragraphs, hashtag_limit)
    if not include_emojis or not spec.allow_emojis:
        paragraphs = _strip_emojis(paragraphs)
    paragraphs = _fit_length(paragraphs, spec.max_length)
    content = PARAGRAPH_SEPARATOR.join(paragraphs)
    hashtags = extract_hashtags(content, hashtag_limit) if hashtag_limit > 0 else []
    return AdaptedContent(platform=spec.key, content=content, hashtags=hashtags)


async def adapt_for_platform(
    base_content: str,
    metadata: Optional[Dict[str, Any]],
    platform: str,
    tone: Optional[ToneDirective] = None,
    llm: Optional[LLMService] = None,
) -> AdaptedContent:
    """Gọi LLM (qua retry wrapper trong LLMService) rồi hậu xử lý."""
    spec = get_platform_spec(platform)
    include_hashtags = tone.include_hashtags if tone is not None else True
    include_emojis = tone.include_emojis if tone is not None else True
    themes = (metadata or {}).get("themes") or []
    system, prompt = prompts.platform_prompt(
        base_content,
        themes,
        spec.name,
        spec.max_length,
        spec.style,
        spec.tone,
        spec.hashtag_limit if include_hashtags else 0,
        spec.allow_emojis and include_emojis,
        tone,
    )
    llm = llm or LLMService(get_settings())
    response = await llm.complete(system, prompt, agent="platform-adapter")
    adapted = postprocess_adapted_content(response.text, spec, include_hashtags, include_emojis)
    if not adapted.content:
        raise ProviderError(f"Adapted content for {spec.key} is empty after post-processing")
    adapted.response = response
    logger.info(
        "platform.adapted",
        platform=spec.key,
        length=len(adapted.content),
        hashtags=len(adapted.hashtags),
    )
    return adapted
