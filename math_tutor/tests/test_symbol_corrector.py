from math_tutor.core.symbol_corrector import SymbolCorrector
from math_tutor.core.symbol_table import DEFAULT_TABLES, build_default_tables


def test_glyphs_map_to_latex_commands():
    c = SymbolCorrector()
    assert c.correct("×") == r"\cdot"
    assert c.correct("*") == r"\cdot"
    assert c.correct("≤") == r"\leq"
    assert c.correct("≥") == r"\geq"
    assert c.correct("≠") == r"\neq"
    assert c.correct("√") == r"\sqrt"
    assert c.correct("π") == r"\pi"
    assert c.correct("÷") == ":"
    assert c.correct("²") == "^2"


def test_unmapped_input_is_returned_unchanged():
    c = SymbolCorrector()
    assert c.correct("abc") == "abc"
    assert c.correct("x + y") == "x + y"
    assert c.correct("") == ""


def test_uppercase_glyph_falls_back_to_lowercase_entry():
    c = SymbolCorrector()
    assert c.correct_char("Δ") == r"\Delta"


def test_digit_confusions_only_between_digits():
    c = SymbolCorrector()
    assert c.correct("1o5") == "105"
    assert c.correct("2l3") == "213"
    assert c.correct("solutie") == "solutie"
    assert c.correct_char("o", "1", "5") == "0"
    assert c.correct_char("o", "a", "5") == "o"


def test_command_followed_by_letter_gets_a_space():
    c = SymbolCorrector()
    assert c.correct("2×x") == r"2\cdot x"
    assert c.correct("√x") == r"\sqrt x"
    assert c.correct("3×4") == r"3\cdot4"


def test_cedilla_forms_become_comma_below():
    c = SymbolCorrector()
    assert c.correct("ş") == "ș"
    assert c.correct("ţ") == "ț"


def test_word_corrections_run_before_characters():
    c = SymbolCorrector()
    assert c.correct("rez0lvati") == "rezolvați"
    assert c.correct("ecuat1a") == "ecuația"
    assert c.correct("Calculati") == "calculați"


def test_word_corrections_respect_word_boundaries():
    c = SymbolCorrector()
    # "latura" inside a longer token is left alone
    assert c.correct_words("xlatura") == "xlatura"
    assert c.correct_words("1atura") == "latura"


def test_tables_are_read_only():
    tables = build_default_tables()
    try:
        tables.glyphs["×"] = "x"  # type: ignore[index]
    except TypeError:
        pass
    else:
        raise AssertionError("glyph table should be immutable")
    assert DEFAULT_TABLES.glyphs["×"] == r"\cdot"
