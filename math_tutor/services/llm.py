"""
LLM Client - text generation for pedagogical analyses and hints.

Talks to Gemini through its OpenAI-compatible endpoint. The core only sees
`generate(prompt) -> str` and `generate_hint(problem_text, step_index) -> HintPayload`;
transport failures surface as LLMTransportError.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Dict, Optional

import httpx
from openai import OpenAI, OpenAIError
from pydantic import BaseModel, Field
from tenacity import (
    retry,
    retry_if_exception_type,
    wait_exponential,
)

from math_tutor.core.prompts import build_hint_prompt
from math_tutor.core.response_parser import parse_hint_payload
from math_tutor.models.schemas import HintPayload
from math_tutor.services.transport import (
    TRANSIENT_ERRORS,
    log_retry,
    stop_after_configured_attempts,
)
from math_tutor.utils.errors import LLMTransportError
from math_tutor.utils.metrics import Timer, inc_counter, observe_histogram
from math_tutor.utils.observability import log_event, trace_span
from math_tutor.utils.settings import get_settings

logger = logging.getLogger(__name__)


class LLMResult(BaseModel):
    """Raw completion plus token usage."""

    text: str = Field(..., description="model text content")
    usage: Optional[Dict[str, int]] = Field(None, description="token usage")


class LLMClient:
    def __init__(self, *, model: Optional[str] = None):
        settings = get_settings()
        self.api_key = settings.google_ai_api_key
        self.base_url = settings.gemini_base_url
        self.model = model or settings.gemini_model
        self.timeout_seconds = int(settings.llm_timeout_seconds)
        self.temperature = float(settings.llm_temperature)
        self.max_tokens = int(settings.llm_max_tokens)
        self.max_attempts = int(settings.llm_max_attempts)
        self.max_hints = int(settings.max_hints)

    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_url and self.model)

    def _get_client(self) -> OpenAI:
        if not self.api_key:
            raise ValueError("GOOGLE_AI_API_KEY not configured")
        return OpenAI(
            base_url=self.base_url,
            api_key=self.api_key,
            timeout=float(self.timeout_seconds),
        )

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        stop=stop_after_configured_attempts,
        before_sleep=partial(log_retry, "llm_complete"),
        reraise=True,
    )
    def _complete(self, prompt: str) -> LLMResult:
        client = self._get_client()
        response = client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        choices = getattr(response, "choices", None) or []
        text = (choices[0].message.content or "") if choices else ""
        usage: Optional[Dict[str, int]] = None
        raw_usage: Any = getattr(response, "usage", None)
        if raw_usage is not None:
            usage = {
                "prompt_tokens": int(getattr(raw_usage, "prompt_tokens", 0) or 0),
                "completion_tokens": int(getattr(raw_usage, "completion_tokens", 0) or 0),
                "total_tokens": int(getattr(raw_usage, "total_tokens", 0) or 0),
            }
        return LLMResult(text=text, usage=usage)

    @trace_span("llm.generate")
    def generate(self, prompt: str) -> str:
        timer = Timer()
        try:
            result = self._complete(prompt)
        except (OpenAIError, httpx.HTTPError) as e:
            inc_counter("llm_requests_total", labels={"status": "error"})
            log_event(
                logger,
                "llm_request_failed",
                level="warning",
                model=self.model,
                error_type=e.__class__.__name__,
                error=str(e),
            )
            raise LLMTransportError(str(e) or "LLM request failed") from e
        inc_counter("llm_requests_total", labels={"status": "ok"})
        observe_histogram("llm_latency_seconds", value=timer.elapsed_seconds())
        if result.usage:
            log_event(logger, "llm_usage", model=self.model, **result.usage)
        return result.text

    async def generate_hint(self, problem_text: str, step_index: int) -> HintPayload:
        prompt = build_hint_prompt(problem_text, step_index, self.max_hints)
        text = await asyncio.to_thread(self.generate, prompt)
        return parse_hint_payload(text)
