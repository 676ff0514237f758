"""Chuẩn hóa token usage theo provider + ước tính cost."""
from decimal import Decimal
from types import SimpleNamespace

from narrator.services.usage_normalizers import (
    NORMALIZERS,
    TokenUsage,
    estimate_cost_usd,
    normalize_usage,
    register_normalizer,
)


def test_openai_shape_from_sdk_object() -> None:
    usage = SimpleNamespace(prompt_tokens=100, completion_tokens=50, total_tokens=150)
    assert normalize_usage("openai", usage) == TokenUsage(100, 50, 150)


def test_groq_and_openrouter_use_openai_shape() -> None:
    raw = {"prompt_tokens": 10, "completion_tokens": 5}
    assert normalize_usage("groq", raw) == TokenUsage(10, 5, 15)
    assert normalize_usage("openrouter", raw) == TokenUsage(10, 5, 15)


def test_anthropic_input_output_tokens() -> None:
    assert normalize_usage("anthropic", {"input_tokens": 30, "output_tokens": 20}) == TokenUsage(30, 20, 50)


def test_google_total_only_is_split_60_40() -> None:
    assert normalize_usage("google", {"total_tokens": 100}) == TokenUsage(60, 40, 100)


def test_google_native_counts() -> None:
    raw = {"promptTokenCount": 7, "candidatesTokenCount": 3, "totalTokenCount": 10}
    assert normalize_usage("google", raw) == TokenUsage(7, 3, 10)


def test_unknown_provider_falls_back_to_field_guessing() -> None:
    assert normalize_usage("mistral", {"input": 4, "output": 6}) == TokenUsage(4, 6, 10)
    assert normalize_usage("mistral", {"total": 50}) == TokenUsage(30, 20, 50)
    assert normalize_usage("mistral", {"weird": 1}) == TokenUsage()


def test_missing_usage_is_zero() -> None:
    assert normalize_usage("openai", None) == TokenUsage()


def test_register_normalizer() -> None:
    register_normalizer("custom", lambda u: TokenUsage(1, 2, 3))
    try:
        assert normalize_usage("custom", {}) == TokenUsage(1, 2, 3)
    finally:
        NORMALIZERS.pop("custom", None)


def test_cost_estimate_from_pricing_table() -> None:
    usage = TokenUsage(prompt_tokens=1_000_000, completion_tokens=1_000_000, total_tokens=2_000_000)
    assert estimate_cost_usd(usage, "openai/gpt-4o-mini") == Decimal("0.750000")


def test_free_models_cost_nothing() -> None:
    usage = TokenUsage(1000, 1000, 2000)
    assert estimate_cost_usd(usage, "openrouter/meta-llama/llama-3.1-8b-instruct:free") == Decimal("0")
