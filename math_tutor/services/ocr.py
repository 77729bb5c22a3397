"""
Vision OCR client (Gemini vision via OpenAI-compatible chat completions).

Notes:
- The engine is a black box for the core: we only keep its text and a confidence.
- Confidence is converted to the 0..1 scale here; nothing downstream rescales it.
- Plain-text replies are accepted (confidence unknown) when the model ignores the JSON contract.
"""

from __future__ import annotations

import base64
import io
import logging
from functools import partial
from typing import Any, Dict, List, Optional

import httpx
from openai import OpenAI, OpenAIError
from PIL import Image, UnidentifiedImageError
from tenacity import retry, retry_if_exception_type, wait_exponential

from math_tutor.core.response_parser import load_json_object, strip_fence_markers
from math_tutor.models.schemas import RawOcrOutput
from math_tutor.services.transport import (
    TRANSIENT_ERRORS,
    log_retry,
    stop_after_configured_attempts,
)
from math_tutor.utils.errors import MalformedResponseError, OcrTransportError
from math_tutor.utils.observability import log_event, trace_span
from math_tutor.utils.settings import get_settings

logger = logging.getLogger(__name__)

OCR_NOTE = "OCR realizat cu un model de viziune. Calitatea pentru formule matematice poate varia."

_PIL_MIME = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
}


def normalize_confidence(value: Any) -> Optional[float]:
    """
    Map engine confidence to 0..1. Values above 1 are percentages (Tesseract style).
    Missing or non-numeric values give None.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    if v != v:  # NaN
        return None
    if v > 1.0:
        v = v / 100.0
    return max(0.0, min(1.0, v))


def sniff_image_mime(image_bytes: bytes) -> Optional[str]:
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            return _PIL_MIME.get(str(img.format or "").upper())
    except (UnidentifiedImageError, OSError, ValueError):
        return None


def resolve_mime(image_bytes: bytes, mime_hint: Optional[str]) -> Optional[str]:
    hint = (mime_hint or "").split(";")[0].strip().lower()
    if hint.startswith("image/"):
        return hint
    return sniff_image_mime(image_bytes)


def _ocr_prompt() -> str:
    return (
        "Transcrie exact textul problemei de matematică din imagine, inclusiv formulele.\n"
        "Nu rezolva problema.\n"
        'Răspunde doar cu JSON strict: {"text": string, "confidence": număr între 0 și 1}.'
    )


def parse_ocr_reply(content: str) -> RawOcrOutput:
    try:
        obj = load_json_object(content)
    except MalformedResponseError:
        return RawOcrOutput(text=strip_fence_markers(content), confidence=None, note=OCR_NOTE)
    text = obj.get("text")
    return RawOcrOutput(
        text=str(text).strip() if text is not None else "",
        confidence=normalize_confidence(obj.get("confidence")),
        note=OCR_NOTE,
    )


class VisionOCRClient:
    def __init__(self):
        settings = get_settings()
        self.api_key = settings.google_ai_api_key
        self.base_url = settings.gemini_base_url
        self.model = settings.ocr_model
        self.timeout_seconds = int(settings.ocr_timeout_seconds)
        self.max_tokens = int(settings.ocr_max_tokens)
        self.max_attempts = int(settings.ocr_max_attempts)

    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_url and self.model)

    def _build_client(self) -> OpenAI:
        return OpenAI(
            base_url=self.base_url,
            api_key=self.api_key,
            timeout=float(self.timeout_seconds),
        )

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        stop=stop_after_configured_attempts,
        before_sleep=partial(log_retry, "ocr_complete"),
        reraise=True,
    )
    def _complete(self, messages: List[Dict[str, Any]]) -> str:
        resp = self._build_client().chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=0,
        )
        choices = getattr(resp, "choices", None) or []
        return (choices[0].message.content or "") if choices else ""

    @trace_span("ocr.recognize")
    def recognize(self, image_bytes: bytes, mime_hint: Optional[str] = None) -> RawOcrOutput:
        if not self.is_configured():
            raise OcrTransportError("GOOGLE_AI_API_KEY/OCR_MODEL not configured")
        mime = resolve_mime(image_bytes, mime_hint) or "image/jpeg"
        data_uri = f"data:{mime};base64,{base64.b64encode(image_bytes).decode('ascii')}"
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": _ocr_prompt()},
                    {"type": "image_url", "image_url": {"url": data_uri}},
                ],
            }
        ]
        try:
            content = self._complete(messages)
        except (OpenAIError, httpx.HTTPError) as e:
            log_event(
                logger,
                "ocr_request_failed",
                level="warning",
                model=self.model,
                error_type=e.__class__.__name__,
                error=str(e),
            )
            raise OcrTransportError(str(e) or "OCR request failed") from e

        result = parse_ocr_reply(content)
        log_event(
            logger,
            "ocr_done",
            model=self.model,
            mime=mime,
            chars=len(result.text),
            confidence=result.confidence,
        )
        return result
