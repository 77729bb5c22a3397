from __future__ import annotations

from typing import Optional

from math_tutor.core.symbol_table import DEFAULT_TABLES, SymbolTables


def _ends_with_command(text: str) -> bool:
    # "\cdot", "\pi" ... a following letter would be glued onto the command name.
    if not text.startswith("\\"):
        return False
    return text[-1].isalpha()


class SymbolCorrector:
    """
    Two-layer OCR correction.

    Word rules run first: character substitution is lossy (e.g. "rez0lvati" would
    otherwise be split and re-mapped before it can be recognized as "rezolvați").
    """

    def __init__(self, tables: Optional[SymbolTables] = None):
        self._tables = tables or DEFAULT_TABLES

    @property
    def tables(self) -> SymbolTables:
        return self._tables

    def correct_words(self, text: str) -> str:
        if not text:
            return ""
        out = text
        for rule in self._tables.words:
            out = rule.apply(out)
        return out

    def correct_char(self, ch: str, prev: str = "", nxt: str = "") -> str:
        glyphs = self._tables.glyphs
        if ch in glyphs:
            return glyphs[ch]
        lower = ch.lower()
        if lower != ch and lower in glyphs:
            return glyphs[lower]
        if prev.isdigit() and nxt.isdigit():
            return self._tables.digit_confusions.get(lower, ch)
        return ch

    def correct_chars(self, text: str) -> str:
        if not text:
            return ""
        out = []
        n = len(text)
        for i, ch in enumerate(text):
            prev = text[i - 1] if i > 0 else ""
            nxt = text[i + 1] if i + 1 < n else ""
            repl = self.correct_char(ch, prev, nxt)
            if repl != ch and _ends_with_command(repl) and nxt.isalpha():
                repl += " "
            out.append(repl)
        return "".join(out)

    def correct(self, token: str) -> str:
        """Total: unmapped input comes back unchanged."""
        if not token:
            return ""
        return self.correct_chars(self.correct_words(token))
