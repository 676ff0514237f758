"""
Chuẩn hóa token usage theo provider ngay tại biên adapter.

Mỗi provider trả usage một kiểu:
- openai / groq / openrouter: prompt_tokens, completion_tokens, total_tokens
- anthropic: input_tokens, output_tokens
- google: chỉ total_tokens (ước tính 60% prompt / 40% completion)
Provider lạ -> fallback đoán theo tên field.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from narrator.config import DEFAULT_INPUT_PRICE_PER_1M, DEFAULT_OUTPUT_PRICE_PER_1M, get_settings
from narrator.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


def _field(usage: Any, *names: str) -> Optional[int]:
    """Đọc field từ dict hoặc object (SDK trả object, test hay dùng dict)."""
    for name in names:
        value = usage.get(name) if isinstance(usage, dict) else getattr(usage, name, None)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return int(value)
    return None


def _split_total(total: int) -> TokenUsage:
    prompt = round(total * 0.6)
    return TokenUsage(prompt_tokens=prompt, completion_tokens=total - prompt, total_tokens=total)


def normalize_openai(usage: Any) -> TokenUsage:
    prompt = _field(usage, "prompt_tokens", "promptTokens") or 0
    completion = _field(usage, "completion_tokens", "completionTokens") or 0
    total = _field(usage, "total_tokens", "totalTokens") or (prompt + completion)
    return TokenUsage(prompt, completion, total)


def normalize_anthropic(usage: Any) -> TokenUsage:
    prompt = _field(usage, "input_tokens")
    completion = _field(usage, "output_tokens")
    if prompt is None and completion is None:
        # Endpoint OpenAI-compatible của Anthropic trả usage kiểu OpenAI.
        return normalize_openai(usage)
    return TokenUsage(prompt or 0, completion or 0, (prompt or 0) + (completion or 0))


def normalize_google(usage: Any) -> TokenUsage:
    if _field(usage, "prompt_tokens") is not None and _field(usage, "completion_tokens") is not None:
        return normalize_openai(usage)
    prompt = _field(usage, "prompt_token_count", "promptTokenCount")
    completion = _field(usage, "candidates_token_count", "candidatesTokenCount")
    total = _field(usage, "total_token_count", "totalTokenCount", "total_tokens", "totalTokens") or 0
    if prompt is not None and completion is not None:
        return TokenUsage(prompt, completion, total or prompt + completion)
    return _split_total(total)


def normalize_fallback(usage: Any) -> TokenUsage:
    total = _field(usage, "total", "total_tokens", "totalTokens") or 0
    prompt = _field(usage, "prompt", "prompt_tokens", "promptTokens", "input", "input_tokens") or 0
    completion = _field(usage, "completion", "completion_tokens", "completionTokens", "output", "output_tokens") or 0
    if not (total or prompt or completion):
        logger.warning("token_usage.unrecognized_shape")
        return TokenUsage()
    if not prompt and not completion:
        return _split_total(total)
    return TokenUsage(prompt, completion, total or prompt + completion)


UsageNormalizer = Callable[[Any], TokenUsage]

NORMALIZERS: Dict[str, UsageNormalizer] = {
    "openai": normalize_openai,
    "groq": normalize_openai,
    "openrouter": normalize_openai,
    "anthropic": normalize_anthropic,
    "google": normalize_google,
}


def register_normalizer(provider: str, normalizer: UsageNormalizer) -> None:
    """Thêm provider mới mà không sửa code persistence."""
    NORMALIZERS[provider] = normalizer


def normalize_usage(provider: str, usage: Any) -> TokenUsage:
    """Usage thô -> TokenUsage. usage None -> toàn 0."""
    if usage is None:
        return TokenUsage()
    normalizer = NORMALIZERS.get(provider, normalize_fallback)
    return normalizer(usage)


# USD / 1M tokens (input, output) theo "provider/model".
MODEL_PRICING: Dict[str, tuple] = {
    "openai/gpt-4o-mini": (0.15, 0.60),
    "openai/gpt-4o": (2.50, 10.00),
    "anthropic/claude-sonnet-4": (3.00, 15.00),
    "google/gemini-1.5-flash": (0.075, 0.30),
    "groq/llama-3.3-70b-versatile": (0.59, 0.79),
}


def estimate_cost_usd(usage: TokenUsage, model_string: str) -> Decimal:
    """
    Cost ước tính từ token counts.
    Model free (":free") -> 0; model không có trong bảng -> giá LLM_*_PRICE_PER_1M hoặc DEFAULT_*.
    """
    if model_string.endswith(":free"):
        return Decimal("0")
    pricing = MODEL_PRICING.get(model_string)
    if pricing is None:
        settings = get_settings()
        pricing = (
            settings.llm_input_price_per_1m or DEFAULT_INPUT_PRICE_PER_1M,
            settings.llm_output_price_per_1m or DEFAULT_OUTPUT_PRICE_PER_1M,
        )
    in_p, out_p = pricing[0] / 1_000_000, pricing[1] / 1_000_000
    return Decimal(str(usage.prompt_tokens * in_p + usage.completion_tokens * out_p)).quantize(Decimal("0.000001"))
