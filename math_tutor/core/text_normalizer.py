"""
OCR text -> canonical expression string.

Pipeline (each stage is str -> str and runs on the previous stage's output):
1. lower-case (LaTeX command names are left alone)
2. whole-word vocabulary corrections
3. structural rewrites (arrows, relations, blanks, implicit multiplication, letter/digit split)
4. single-character substitution
5. whitespace and operator spacing

Operator spacing runs last so nothing downstream can undo it; running it twice is a no-op.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Tuple, Union

from math_tutor.core.latex_formatter import to_display_form
from math_tutor.core.symbol_corrector import SymbolCorrector
from math_tutor.core.symbol_table import (
    ARROW,
    BLANK_TOKEN,
    EQUIVALENCE,
    RewriteRule,
    literal,
)
from math_tutor.models.schemas import NormalizedExpression, RawOcrOutput
from math_tutor.utils.observability import log_event

logger = logging.getLogger(__name__)

Stage = Tuple[str, Callable[[str], str]]

_COMMAND_SPLIT_RE = re.compile(r"(\\[A-Za-z]+)")


def _skip_commands(fn: Callable[["re.Match[str]"], str]) -> Callable[["re.Match[str]"], str]:
    # Patterns using this put `(\\[A-Za-z]+)` as their first alternative so that
    # letters inside "\cdot", "\sqrt" etc. are never treated as variables.
    def _inner(m: "re.Match[str]") -> str:
        if m.group(1):
            return m.group(1)
        return fn(m)

    return _inner


STRUCTURAL_RULES: Tuple[RewriteRule, ...] = (
    RewriteRule("equivalence", re.compile(r"<=+>"), literal(EQUIVALENCE)),
    RewriteRule("arrow", re.compile(r"[-—–]+>|=+>"), literal(ARROW)),
    RewriteRule("leq", re.compile(r"<="), literal(r" \leq ")),
    RewriteRule("geq", re.compile(r">="), literal(r" \geq ")),
    RewriteRule("neq", re.compile(r"!=|=/="), literal(r" \neq ")),
    RewriteRule("blank", re.compile(r"(=[ \t]*)_+"), lambda m: m.group(1) + BLANK_TOKEN),
    RewriteRule(
        "implicit_multiplication",
        re.compile(r"(\\[A-Za-z]+)|(\d)([a-z])\b"),
        _skip_commands(lambda m: f"{m.group(2)}\\cdot {m.group(3)}"),
    ),
    RewriteRule(
        "letter_digit_space",
        re.compile(r"(\\[A-Za-z]+)|(?<!\d)([^\W\d_])(\d)"),
        _skip_commands(lambda m: f"{m.group(2)} {m.group(3)}"),
    ),
)

_HSPACE_RE = re.compile(r"[ \t\f\v\u00a0]+")
_BLANK_LINES_RE = re.compile(r"\n{2,}")
_RELATION_RE = re.compile(
    r"[ ]*(\\(?:cdot|leq|geq|neq|pm)(?![A-Za-z])|→|⇔|=|<|>)[ ]*"
)
# Binary +/- only: the left neighbour must be an operand, so "= -3" and "(-x" stay tight.
_PLUS_MINUS_RE = re.compile(r"(?<=[\w)\]}])[ ]*([+\-])[ ]*")


def _space_binary_op(m: "re.Match[str]") -> str:
    s = m.string
    # hyphenated words ("într-un", "două-trei") are prose, not subtraction
    if (
        m.group(0) == "-"
        and s[max(0, m.start() - 2) : m.start()].isalpha()
        and s[m.end() : m.end() + 2].isalpha()
    ):
        return "-"
    return f" {m.group(1)} "


_DIVISION_RE = re.compile(r"(?<=[\d)])[ ]*:[ ]*(?=[\d(])")
_OPEN_PAREN_RE = re.compile(r"([(\[])[ ]+")
_CLOSE_PAREN_RE = re.compile(r"[ ]+([)\]])")
_BEFORE_PUNCT_RE = re.compile(r"[ ]+([,.;])")


def lowercase_text(text: str) -> str:
    parts = _COMMAND_SPLIT_RE.split(text)
    return "".join(p if i % 2 else p.lower() for i, p in enumerate(parts))


def apply_structural_rules(text: str) -> str:
    out = text
    for rule in STRUCTURAL_RULES:
        out = rule.apply(out)
    return out


def normalize_spacing(text: str) -> str:
    """Whitespace/operator spacing. A fixed point: normalize_spacing(normalize_spacing(x)) == normalize_spacing(x)."""
    s = text.replace("\r\n", "\n").replace("\r", "\n")
    s = _HSPACE_RE.sub(" ", s)
    s = _RELATION_RE.sub(r" \1 ", s)
    s = _PLUS_MINUS_RE.sub(_space_binary_op, s)
    s = _DIVISION_RE.sub(" : ", s)
    s = _OPEN_PAREN_RE.sub(r"\1", s)
    s = _CLOSE_PAREN_RE.sub(r"\1", s)
    s = _BEFORE_PUNCT_RE.sub(r"\1", s)
    s = re.sub(r" {2,}", " ", s)
    lines = [ln.strip() for ln in s.split("\n")]
    s = "\n".join(lines)
    s = _BLANK_LINES_RE.sub("\n", s)
    return s.strip()


class MathTextNormalizer:
    def __init__(self, corrector: Optional[SymbolCorrector] = None):
        self._corrector = corrector or SymbolCorrector()
        self._stages: List[Stage] = [
            ("lowercase", lowercase_text),
            ("word_corrections", self._corrector.correct_words),
            ("structural_rewrites", apply_structural_rules),
            ("char_substitution", self._corrector.correct_chars),
            ("spacing", normalize_spacing),
        ]

    @property
    def stages(self) -> Tuple[Stage, ...]:
        return tuple(self._stages)

    def normalize(self, raw_text: Optional[str]) -> str:
        """Never raises; empty/None input gives ""."""
        if not raw_text:
            return ""
        text = str(raw_text)
        try:
            for _name, stage in self._stages:
                text = stage(text)
            return text
        except Exception as e:
            log_event(
                logger,
                "normalize_failed",
                level="warning",
                error_type=e.__class__.__name__,
                error=str(e),
            )
            return str(raw_text).strip()


DEFAULT_NORMALIZER = MathTextNormalizer()


def normalize_ocr_text(
    raw: Union[RawOcrOutput, str, None],
    *,
    normalizer: Optional[MathTextNormalizer] = None,
) -> NormalizedExpression:
    """Boundary entry: only the OCR text field is used."""
    text = raw.text if isinstance(raw, RawOcrOutput) else raw
    cleaned = (normalizer or DEFAULT_NORMALIZER).normalize(text)
    return NormalizedExpression(cleaned_text=cleaned, latex=to_display_form(cleaned))
