"""
Best-effort display form for a cleaned OCR statement.

"3. se dă x + y = 5, x - y = 1" becomes
"\\textbf{3.} se dă $$x + y = 5 \\quad x - y = 1$$".

This is a heuristic, not a parser: on anything it cannot handle the input comes back unchanged.
"""

from __future__ import annotations

import logging
import re
from typing import List

from math_tutor.utils.observability import log_event

logger = logging.getLogger(__name__)

_LABEL_RE = re.compile(r"^\s*(\d+)\.(?!\d)\s*")

# Where an equation seems to start: a lone lowercase letter followed by "=",
# or a number followed by a division/multiplication glyph.
_EQUATION_START_RE = re.compile(
    r"(?<![^\W\d_])(?<!\\)[a-z][ ]*=(?!=)"
    r"|(?<![\d.,])\d+(?:[.,]\d+)?[ ]*(?::|/|÷|×|\\cdot(?![A-Za-z]))"
)

# A token that belongs to a formula rather than to prose: no run of two plain letters
# (LaTeX commands excepted) and no sentence punctuation.
_MATH_TOKEN_RE = re.compile(
    r"(?:\\[A-Za-z]+|(?<![^\W\d_])[^\W\d_](?![^\W\d_])|[^\s\w,;:]|\d)+"
)
_SEGMENT_TRIM = " ,;"


def _is_math_token(token: str) -> bool:
    return bool(token) and _MATH_TOKEN_RE.fullmatch(token) is not None


def _expand_left(text: str, start: int) -> int:
    """Move an equation start left over preceding formula tokens ("x + |y = 5" -> "|x + y = 5")."""
    pos = start
    while pos > 0:
        head = text[:pos]
        stripped = head.rstrip(" ")
        if not stripped:
            return 0
        token_start = stripped.rfind(" ") + 1
        token = stripped[token_start:]
        if not _is_math_token(token):
            break
        pos = token_start
    return pos


def _equation_starts(text: str) -> List[int]:
    starts: List[int] = []
    for m in _EQUATION_START_RE.finditer(text):
        s = _expand_left(text, m.start())
        if starts and s <= starts[-1]:
            continue
        starts.append(s)
    return starts


def _split_equations(text: str) -> tuple[str, List[str]]:
    starts = _equation_starts(text)
    if not starts:
        return text, []
    prose = text[: starts[0]].strip()
    segments: List[str] = []
    bounds = starts + [len(text)]
    for a, b in zip(bounds, bounds[1:]):
        seg = text[a:b].strip().strip(_SEGMENT_TRIM)
        if seg:
            segments.append(seg)
    return prose, segments


def to_display_form(cleaned_text: str) -> str:
    if not cleaned_text:
        return ""
    try:
        text = str(cleaned_text)
        label = ""
        body = text
        m = _LABEL_RE.match(text)
        if m:
            label = f"\\textbf{{{m.group(1)}.}}"
            body = text[m.end() :]

        prose, segments = _split_equations(body)
        if len(segments) > 1:
            block = "$$" + " \\quad ".join(segments) + "$$"
            body = f"{prose} {block}" if prose else block

        if label:
            return f"{label} {body}" if body else label
        return body
    except Exception as e:
        log_event(
            logger,
            "latex_format_failed",
            level="warning",
            error_type=e.__class__.__name__,
            error=str(e),
        )
        return cleaned_text
