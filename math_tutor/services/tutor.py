"""
Entry points used by outer surfaces (CLI, an HTTP layer if one is added).

Each function validates its input, calls the collaborator off the event loop,
and hands the raw reply to the core (normalizer / parser / hint session).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from pydantic import BaseModel

from math_tutor.core.prompts import build_pedagogical_prompt
from math_tutor.core.response_parser import parse_model_response
from math_tutor.core.text_normalizer import normalize_ocr_text
from math_tutor.models.schemas import (
    NormalizedExpression,
    PedagogicalAnalysis,
    PedagogicalStep,
    RawOcrOutput,
)
from math_tutor.services.hint_session import HintSession
from math_tutor.services.llm import LLMClient
from math_tutor.services.ocr import OCR_NOTE, VisionOCRClient, resolve_mime
from math_tutor.utils.errors import ImageFormatError, InputValidationError, OcrTransportError
from math_tutor.utils.observability import log_event, trace_span
from math_tutor.utils.settings import get_settings

logger = logging.getLogger(__name__)

MISSING_PROBLEM_TEXT = 'Câmpul "problemText" este obligatoriu.'
MISSING_FILE = 'Lipsește fișierul (camp "file").'
NOT_AN_IMAGE = "Fișierul trebuie să fie o imagine."
FILE_TOO_LARGE = "Fișierul depășește dimensiunea maximă permisă."

STUB_FINAL_ANSWER = "Răspuns simulativ. Adaugă GOOGLE_AI_API_KEY pentru analiză reală."
STUB_CAVEAT = "GOOGLE_AI_API_KEY lipsește; răspuns simulat."


class OcrExtraction(BaseModel):
    ocr: RawOcrOutput
    normalized: NormalizedExpression

    def to_wire(self) -> dict:
        return {"ocr": self.ocr.to_wire(), "normalized": self.normalized.to_wire()}


def _stub_analysis(problem_text: str) -> PedagogicalAnalysis:
    return PedagogicalAnalysis(
        problem_text=problem_text,
        steps=[
            PedagogicalStep(title="Identifică datele", explanation="Extrage coeficienții ecuației."),
            PedagogicalStep(
                title="Alege metoda",
                explanation="Folosește formula pentru ecuații de gradul II.",
            ),
        ],
        final_answer=STUB_FINAL_ANSWER,
        caveats=[STUB_CAVEAT],
    )


@trace_span("tutor.analyze_problem")
async def analyze_problem(
    problem_text: Optional[str], client: Optional[LLMClient] = None
) -> PedagogicalAnalysis:
    text = (problem_text or "").strip()
    if not text:
        raise InputValidationError(MISSING_PROBLEM_TEXT)

    client = client or LLMClient()
    if not client.is_configured():
        log_event(logger, "analysis_stubbed", level="warning", reason="api_key_missing")
        return _stub_analysis(text)

    prompt = build_pedagogical_prompt(text)
    # LLMTransportError propagates; the caller maps it to a 502-class response.
    raw = await asyncio.to_thread(client.generate, prompt)
    return parse_model_response(raw, text)


def _validate_image(image_bytes: Optional[bytes], mime_type: Optional[str]) -> str:
    if not image_bytes:
        raise InputValidationError(MISSING_FILE)
    if len(image_bytes) > int(get_settings().max_upload_image_bytes):
        raise InputValidationError(FILE_TOO_LARGE)
    declared = (mime_type or "").split(";")[0].strip().lower()
    if declared and not declared.startswith("image/"):
        raise ImageFormatError(NOT_AN_IMAGE)
    mime = resolve_mime(image_bytes, declared or None)
    if not mime:
        raise ImageFormatError(NOT_AN_IMAGE)
    return mime


@trace_span("tutor.extract_problem_from_image")
async def extract_problem_from_image(
    image_bytes: Optional[bytes],
    mime_type: Optional[str] = None,
    ocr: Optional[VisionOCRClient] = None,
) -> OcrExtraction:
    mime = _validate_image(image_bytes, mime_type)
    ocr = ocr or VisionOCRClient()
    try:
        raw = await asyncio.to_thread(ocr.recognize, image_bytes, mime)
    except OcrTransportError as e:
        log_event(
            logger,
            "ocr_extraction_failed",
            level="warning",
            mime=mime,
            error=str(e),
        )
        return OcrExtraction(
            ocr=RawOcrOutput(text="", error_message=str(e) or "OCR failed", note=OCR_NOTE),
            normalized=NormalizedExpression(cleaned_text="", latex=""),
        )
    return OcrExtraction(ocr=raw, normalized=normalize_ocr_text(raw))


def start_hint_session(
    problem_text: Optional[str],
    client: Optional[LLMClient] = None,
    max_hints: Optional[int] = None,
) -> HintSession:
    text = (problem_text or "").strip()
    if not text:
        raise InputValidationError(MISSING_PROBLEM_TEXT)
    client = client or LLMClient()
    limit = max_hints if max_hints is not None else client.max_hints
    return HintSession(text, client.generate_hint, max_hints=limit)
