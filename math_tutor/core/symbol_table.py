"""
Static lookup data for OCR post-processing.

Tables are built once at import time and handed around by reference.
They are wrapped in read-only mappings/tuples so no caller can mutate them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping, Pattern, Tuple, Union

Replacement = Union[str, Callable[["re.Match[str]"], str]]

# Placeholder for "fill in the blank" underscores after an equals sign.
BLANK_TOKEN = "□"
ARROW = "→"
EQUIVALENCE = "⇔"


def literal(text: str) -> Callable[["re.Match[str]"], str]:
    """Replacement that inserts `text` verbatim (no backslash/group processing)."""
    return lambda _m: text


@dataclass(frozen=True)
class RewriteRule:
    name: str
    pattern: Pattern[str]
    replacement: Replacement

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


@dataclass(frozen=True)
class SymbolTables:
    # Unconditional single-glyph substitutions (operators, lookalike digits).
    glyphs: Mapping[str, str]
    # Letters OCR engines emit instead of digits; only rewritten between two digits.
    digit_confusions: Mapping[str, str]
    # Whole-word vocabulary fixes, applied before any character-level substitution.
    words: Tuple[RewriteRule, ...]


_GLYPHS = {
    # multiplication / division
    "×": r"\cdot",
    "·": r"\cdot",
    "∙": r"\cdot",
    "⋅": r"\cdot",
    "*": r"\cdot",
    "÷": ":",
    # relations
    "≤": r"\leq",
    "⩽": r"\leq",
    "≥": r"\geq",
    "⩾": r"\geq",
    "≠": r"\neq",
    # operators and constants
    "√": r"\sqrt",
    "π": r"\pi",
    "∞": r"\infty",
    "±": r"\pm",
    # Δ is lower-cased to δ first; in school algebra it is the discriminant.
    "δ": r"\Delta",
    "α": r"\alpha",
    "β": r"\beta",
    "θ": r"\theta",
    "²": "^2",
    "³": "^3",
    "°": r"^\circ",
    # dashes that should read as minus
    "−": "-",
    "–": "-",
    # lookalike digits from non-Latin scripts
    "ο": "0",  # greek omicron
    "о": "0",  # cyrillic o
    "ı": "1",
    "ǀ": "1",
    "ӏ": "1",
    "ѕ": "5",
    "б": "6",
    "ɡ": "9",
    # legacy cedilla forms -> Romanian comma-below
    "ş": "ș",
    "ţ": "ț",
}

_DIGIT_CONFUSIONS = {
    "o": "0",
    "l": "1",
    "i": "1",
    "z": "2",
    "s": "5",
    "b": "6",
    "g": "9",
    "q": "9",
    # "3x4" is a multiplication sign, not a variable
    "x": r"\cdot",
}

_T = "[tţț]"
_I = "[i1l]"

# (name, pattern, replacement); case-insensitive, whole word.
_WORD_RULES = (
    ("ecuatiile", rf"ecua{_T}{_I}{_I}le", "ecuațiile"),
    ("inecuatia", rf"inecua{_T}{_I}a", "inecuația"),
    ("ecuatia", rf"ecua{_T}{_I}a", "ecuația"),
    ("ecuatie", rf"ecua{_T}{_I}e", "ecuație"),
    ("rezolvati", rf"rez[o0]lva{_T}{_I}", "rezolvați"),
    ("calculati", rf"calcula{_T}{_I}", "calculați"),
    ("aflati", rf"afla{_T}{_I}", "aflați"),
    ("determinati", rf"determina{_T}{_I}", "determinați"),
    ("aratati", rf"ar[aă]ta{_T}{_I}", "arătați"),
    ("simplificati", rf"simplifica{_T}{_I}", "simplificați"),
    ("comparati", rf"compara{_T}{_I}", "comparați"),
    ("solutiile", rf"s[o0][l1]u{_T}{_I}{_I}le", "soluțiile"),
    ("solutia", rf"s[o0][l1]u{_T}{_I}a", "soluția"),
    ("functia", rf"func{_T}{_I}a", "funcția"),
    ("fractia", rf"frac{_T}{_I}a", "fracția"),
    ("multimea", rf"mu[l1]{_T}{_I}mea", "mulțimea"),
    ("numarul", r"num[aă]ru[l1]", "numărul"),
    ("patrat", r"p[aă]trat(ul|ului)?", r"pătrat\1"),
    ("radacina", r"r[aă]d[aă]cin(a|ile|ă)", r"rădăcin\1"),
    ("raspuns", r"r[aă]spuns", "răspuns"),
    ("latura", r"[l1]atura", "latura"),
    ("lungimea", r"[l1]ungimea", "lungimea"),
)


def _compile_words() -> Tuple[RewriteRule, ...]:
    return tuple(
        RewriteRule(name, re.compile(rf"\b{pattern}\b", re.IGNORECASE), repl)
        for name, pattern, repl in _WORD_RULES
    )


def build_default_tables() -> SymbolTables:
    return SymbolTables(
        glyphs=MappingProxyType(dict(_GLYPHS)),
        digit_confusions=MappingProxyType(dict(_DIGIT_CONFUSIONS)),
        words=_compile_words(),
    )


DEFAULT_TABLES = build_default_tables()
