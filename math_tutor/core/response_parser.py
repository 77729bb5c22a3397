"""
Model output -> PedagogicalAnalysis.

Order of attempts (first success wins):
1. fenced ```json ... ``` block
2. first "{" .. last "}" span
3. strict json.loads + schema coercion
4. line-oriented heuristic parser (numbered / bulleted lines become steps)
5. a single degraded error step

`parse_model_response` never raises for malformed model output.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from math_tutor.models.schemas import (
    Difficulty,
    HintPayload,
    ParseMode,
    ParseOutcome,
    PedagogicalAnalysis,
    PedagogicalStep,
)
from math_tutor.utils.errors import MalformedResponseError
from math_tutor.utils.metrics import inc_counter
from math_tutor.utils.observability import log_event
from math_tutor.utils.settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_STEP_TITLE = "Pas fără titlu"
DEFAULT_TIME_ESTIMATE = "5-10 minute"
FALLBACK_STEP_TITLE = "Analiză"
EMPTY_RESPONSE_EXPLANATION = "Modelul nu a returnat niciun conținut pentru această problemă."
ERROR_STEP_TITLE = "Eroare la interpretarea răspunsului"
ERROR_STEP_EXPLANATION = (
    "Nu am putut interpreta explicația generată. Încearcă din nou peste câteva momente."
)
ELLIPSIS = "…"

_FENCE_RE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\r?\n?(.*?)```", re.DOTALL)
_LEADING_FENCE_RE = re.compile(r"^```[ \t]*(?:json)?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"```\s*$")

_MARKDOWN_RE = re.compile(r"^#{1,6}\s*|\*\*|__")
_ENUMERATOR_RE = re.compile(
    r"^(?:"
    r"pas(?:ul)?\s*\d*\s*[.:)\-]\s*"  # "Pas 1:", "Pasul 2.", "Pas:"
    r"|\d{1,3}\s*[.):\]]\s*"  # "1.", "2)", "3:"
    r"|\d{1,3}\s+(?=[^\W\d_])"  # "1 Găsește"
    r"|[-*•·–]\s+"  # bullets
    r")",
    re.IGNORECASE,
)
_STEP_PREFIX_RE = re.compile(r"^pas(?:ul)?\s*\d*\s*[.:)\-]\s*", re.IGNORECASE)
_FINAL_ANSWER_RE = re.compile(r"^r[aă]spuns(?:ul)?\s+final\s*[:\-–—]\s*(.+)$", re.IGNORECASE)
_TITLE_SPLIT_RE = re.compile(r"\s+[—–]\s+")


# --- candidate extraction ---


def extract_fenced_block(text: str) -> Optional[str]:
    if not text:
        return None
    m = _FENCE_RE.search(text)
    if not m:
        return None
    return m.group(1).strip()


def extract_brace_span(text: str) -> Optional[str]:
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    return text[start : end + 1]


def strip_fence_markers(text: str) -> str:
    s = (text or "").strip()
    s = _LEADING_FENCE_RE.sub("", s)
    s = _TRAILING_FENCE_RE.sub("", s)
    return s.strip()


def json_candidate(text: str) -> str:
    fenced = extract_fenced_block(text)
    if fenced is not None:
        return fenced
    span = extract_brace_span(text)
    if span is not None:
        return span
    return strip_fence_markers(text)


def load_json_object(text: str) -> Dict[str, Any]:
    """Strict parse of the best JSON candidate in `text`; MalformedResponseError otherwise."""
    candidate = json_candidate(text)
    try:
        obj = json.loads(candidate)
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(f"invalid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise MalformedResponseError(f"expected a JSON object, got {type(obj).__name__}")
    return obj


# --- strict schema coercion ---


def _clean_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "da"}
    return bool(value)


def _coerce_step(item: Any) -> PedagogicalStep:
    if isinstance(item, dict):
        title = _as_text(item.get("title"))
        if not title.strip():
            title = DEFAULT_STEP_TITLE
        return PedagogicalStep(title=title, explanation=_as_text(item.get("explanation")))
    # a bare string step carries only its explanation
    return PedagogicalStep(title=DEFAULT_STEP_TITLE, explanation=_clean_str(item))


def _coerce_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set)):
        return []
    out = []
    for item in value:
        s = _clean_str(item)
        if s:
            out.append(s)
    return out


def _coerce_difficulty(value: Any) -> Difficulty:
    s = _clean_str(value).lower()
    try:
        return Difficulty(s)
    except ValueError:
        return Difficulty.MEDIUM


def _first(obj: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in obj and obj[k] is not None:
            return obj[k]
    return None


def coerce_analysis(obj: Dict[str, Any], problem_text: str) -> PedagogicalAnalysis:
    steps_raw = obj.get("steps")
    if not isinstance(steps_raw, list) or not steps_raw:
        raise MalformedResponseError("`steps` must be a non-empty list")
    final_answer = _clean_str(_first(obj, "finalAnswer", "final_answer")) or None
    time_estimate = _clean_str(_first(obj, "timeEstimate", "time_estimate"))
    return PedagogicalAnalysis(
        problem_text=problem_text,
        steps=[_coerce_step(s) for s in steps_raw],
        final_answer=final_answer,
        key_concepts=_coerce_str_list(_first(obj, "keyConcepts", "key_concepts")),
        difficulty=_coerce_difficulty(obj.get("difficulty")),
        time_estimate=time_estimate or DEFAULT_TIME_ESTIMATE,
        caveats=_coerce_str_list(obj.get("caveats")),
    )


# --- heuristic fallback ---


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + ELLIPSIS


def _strip_markdown(line: str) -> str:
    return _MARKDOWN_RE.sub("", line).strip()


def parse_steps_from_lines(text: str) -> Tuple[List[PedagogicalStep], Optional[str]]:
    """
    Enumerator lines ("1.", "2)", "-", "•", "Pas 3:") open a step; other lines are
    appended to the current step's explanation. Lines before the first step are dropped.
    A "Răspuns final: ..." line sets the final answer instead of opening a step.
    """
    steps: List[Dict[str, Any]] = []
    final_answer: Optional[str] = None
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        plain = _strip_markdown(line)

        m = _ENUMERATOR_RE.match(plain)
        body = plain[m.end() :].strip() if m else plain
        if m:
            # "- Pas: ..." carries both a bullet and a step prefix
            body = _STEP_PREFIX_RE.sub("", body, count=1)
        fm = _FINAL_ANSWER_RE.match(body)
        if fm:
            final_answer = fm.group(1).strip()
            continue

        if m and body:
            title = body.rstrip(":").strip()
            explanation: List[str] = []
            parts = _TITLE_SPLIT_RE.split(title, maxsplit=1)
            if len(parts) == 2 and parts[0] and parts[1]:
                title = parts[0].strip()
                explanation.append(parts[1].strip())
            steps.append({"title": title, "lines": explanation})
            continue

        if steps:
            steps[-1]["lines"].append(line)

    parsed = [
        PedagogicalStep(title=s["title"], explanation="\n".join(s["lines"]))
        for s in steps
        if s["title"]
    ]
    return parsed, final_answer


def _heuristic_analysis(raw_text: str, problem_text: str) -> ParseOutcome:
    steps, final_answer = parse_steps_from_lines(raw_text)
    if steps:
        return ParseOutcome(
            analysis=PedagogicalAnalysis(
                problem_text=problem_text, steps=steps, final_answer=final_answer
            ),
            mode=ParseMode.HEURISTIC,
        )
    excerpt = (raw_text or "").strip()
    limit = int(get_settings().fallback_excerpt_chars)
    explanation = _truncate(excerpt, limit) if excerpt else EMPTY_RESPONSE_EXPLANATION
    return ParseOutcome(
        analysis=PedagogicalAnalysis(
            problem_text=problem_text,
            steps=[PedagogicalStep(title=FALLBACK_STEP_TITLE, explanation=explanation)],
            final_answer=final_answer,
        ),
        mode=ParseMode.FALLBACK,
    )


def degraded_analysis(problem_text: str) -> PedagogicalAnalysis:
    return PedagogicalAnalysis(
        problem_text=problem_text or "",
        steps=[PedagogicalStep(title=ERROR_STEP_TITLE, explanation=ERROR_STEP_EXPLANATION)],
    )


# --- entry points ---


def parse_with_outcome(raw_model_text: Optional[str], problem_text: str) -> ParseOutcome:
    raw = raw_model_text or ""
    try:
        try:
            obj = load_json_object(raw)
            analysis = coerce_analysis(obj, problem_text)
            return ParseOutcome(analysis=analysis, mode=ParseMode.JSON)
        except MalformedResponseError as e:
            log_event(logger, "response_json_rejected", level="debug", reason=str(e))
        return _heuristic_analysis(raw, problem_text)
    except Exception as e:
        log_event(
            logger,
            "response_parse_failed",
            level="warning",
            error_type=e.__class__.__name__,
            error=str(e),
        )
        return ParseOutcome(analysis=degraded_analysis(problem_text), mode=ParseMode.ERROR)


def parse_model_response(raw_model_text: Optional[str], problem_text: str) -> PedagogicalAnalysis:
    outcome = parse_with_outcome(raw_model_text, problem_text)
    inc_counter("response_parse_total", labels={"mode": outcome.mode.value})
    log_event(
        logger,
        "response_parsed",
        mode=outcome.mode.value,
        valid=outcome.is_valid,
        steps=len(outcome.analysis.steps),
    )
    return outcome.analysis


def parse_hint_payload(raw_model_text: Optional[str]) -> HintPayload:
    """
    Hint replies use the same extraction as analyses: {"content": ..., "isFinal": ...}
    when the model follows the contract, otherwise the trimmed text itself.
    """
    raw = raw_model_text or ""
    try:
        obj = load_json_object(raw)
        content = _clean_str(_first(obj, "content", "hint"))
        if content:
            is_final = _first(obj, "isFinal", "is_final")
            return HintPayload(content=content, is_final=_truthy(is_final))
    except MalformedResponseError:
        pass
    return HintPayload(content=strip_fence_markers(raw), is_final=False)
