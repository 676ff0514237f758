"""
LLM service: mọi lời gọi chat completion nằm trong module này.
Dùng OpenAI SDK (AsyncOpenAI) cho openai và các provider có endpoint OpenAI-compatible.
Retry/timeout do llm_retry.call_with_retry đảm nhiệm; client tự nó không retry.
"""
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from narrator.config import Settings
from narrator.errors import NarratorError, ProviderClientError, ProviderError
from narrator.logging_config import get_logger
from narrator.services.llm_retry import call_with_retry, is_retryable
from narrator.services.usage_normalizers import TokenUsage, normalize_usage

logger = get_logger(__name__)

PROVIDER_BASE_URLS: Dict[str, Optional[str]] = {
    "openai": None,
    "groq": "https://api.groq.com/openai/v1",
    "openrouter": "https://openrouter.ai/api/v1",
    "google": "https://generativelanguage.googleapis.com/v1beta/openai/",
    "anthropic": "https://api.anthropic.com/v1/",
}


@dataclass
class LLMResponse:
    """Text trả về + usage đã chuẩn hóa."""

    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    provider: str = "openai"
    model: str = ""

    @property
    def model_string(self) -> str:
        return f"{self.provider}/{self.model}"


class LLMService:
    """Dịch vụ chat completion cho generator và platform adapter."""

    def __init__(self, settings: Settings) -> None:
        """Khởi tạo từ app config (LLM_*)."""
        self.provider = settings.llm_provider
        self.model = settings.resolved_llm_model
        self.api_key = {
            "openai": settings.openai_api_key,
            "groq": settings.groq_api_key,
            "openrouter": settings.openrouter_api_key,
            "google": settings.google_api_key,
            "anthropic": settings.anthropic_api_key,
        }.get(self.provider)
        self.temperature = settings.llm_temperature
        self.timeout_seconds = settings.llm_timeout_seconds
        self.max_attempts = settings.llm_max_attempts
        self.base_delay = settings.llm_base_delay_seconds
        self.max_delay = settings.llm_max_delay_seconds
        self._client: Any = None

    @property
    def model_string(self) -> str:
        return f"{self.provider}/{self.model}"

    def _get_client(self):  # noqa: ANN201
        """Lazy init AsyncOpenAI client."""
        if self._client is not None:
            return self._client
        if self.provider not in PROVIDER_BASE_URLS:
            raise ProviderClientError(f"Unsupported LLM provider: {self.provider}")
        if not self.api_key:
            raise ProviderClientError(f"LLM provider '{self.provider}' is not configured (missing API key)")
        from openai import AsyncOpenAI

        self._client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=PROVIDER_BASE_URLS[self.provider],
            timeout=float(self.timeout_seconds),
            max_retries=0,
        )
        return self._client

    async def _chat_once(self, system: str, prompt: str) -> LLMResponse:
        client = self._get_client()
        resp = await client.chat.completions.create(
            model=self.model,
            messages=[{"role": "system", "content": system}, {"role": "user", "content": prompt}],
            temperature=self.temperature,
        )
        text = (resp.choices[0].message.content or "").strip() if resp.choices else ""
        if not text:
            raise ProviderError("LLM returned an empty response")
        return LLMResponse(
            text=text,
            usage=normalize_usage(self.provider, getattr(resp, "usage", None)),
            provider=self.provider,
            model=self.model,
        )

    async def complete(self, system: str, prompt: str, *, agent: str = "llm") -> LLMResponse:
        """
        Một lượt system + user prompt, có retry/timeout.
        Raises ProviderClientError (không retry) hoặc ProviderError (hết lượt retry).
        """
        start = time.perf_counter()
        try:
            response = await call_with_retry(
                lambda: self._chat_once(system, prompt),
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                max_delay=self.max_delay,
                timeout=self.timeout_seconds,
                label=agent,
            )
        except Exception as e:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.warning("llm.failed", agent=agent, model=self.model_string, latency_ms=round(latency_ms), error=str(e))
            if isinstance(e, NarratorError):
                raise
            # Exception thô của SDK (vd. openai.BadRequestError) được map vào taxonomy lỗi.
            if not is_retryable(e):
                raise ProviderClientError(f"LLM request rejected: {e}") from e
            raise ProviderError(f"LLM call failed: {e}") from e
        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "llm.success",
            agent=agent,
            model=self.model_string,
            latency_ms=round(latency_ms),
            total_tokens=response.usage.total_tokens,
        )
        return response
