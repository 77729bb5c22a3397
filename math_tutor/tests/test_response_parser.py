import json

from math_tutor.core import response_parser as rp
from math_tutor.models.schemas import Difficulty, ParseMode
from math_tutor.utils.metrics import get_counter

PROBLEM = "Rezolvați ecuația x^2 - 5 \\cdot x + 6 = 0"


def _payload(**overrides):
    payload = {
        "steps": [
            {"title": "Identifică coeficienții", "explanation": "a = 1, b = -5, c = 6"},
            {"title": "Calculează discriminantul", "explanation": "\\Delta = 25 - 24 = 1"},
        ],
        "finalAnswer": "x = 2 sau x = 3",
        "keyConcepts": ["discriminant", "ecuație de gradul II", "discriminant"],
        "difficulty": "easy",
        "timeEstimate": "10 minute",
        "caveats": [],
    }
    payload.update(overrides)
    return payload


def test_fenced_json_block_is_parsed():
    raw = "Iată analiza:\n```json\n" + json.dumps(_payload(), ensure_ascii=False) + "\n```\nSucces!"
    outcome = rp.parse_with_outcome(raw, PROBLEM)
    assert outcome.mode == ParseMode.JSON
    assert outcome.is_valid
    a = outcome.analysis
    assert a.problem_text == PROBLEM
    assert [s.title for s in a.steps] == ["Identifică coeficienții", "Calculează discriminantul"]
    assert a.final_answer == "x = 2 sau x = 3"
    assert a.key_concepts == ["discriminant", "ecuație de gradul II"]
    assert a.difficulty == Difficulty.EASY
    assert a.time_estimate == "10 minute"


def test_brace_span_is_parsed_from_surrounding_prose():
    raw = "Sigur! " + json.dumps(_payload()) + " Spor la învățat."
    outcome = rp.parse_with_outcome(raw, PROBLEM)
    assert outcome.mode == ParseMode.JSON
    assert len(outcome.analysis.steps) == 2


def test_missing_fields_get_defaults():
    raw = json.dumps({"steps": [{"explanation": "doar explicație"}, "pas ca text"]})
    a = rp.parse_model_response(raw, PROBLEM)
    assert [s.title for s in a.steps] == [rp.DEFAULT_STEP_TITLE, rp.DEFAULT_STEP_TITLE]
    assert a.steps[1].explanation == "pas ca text"
    assert a.final_answer is None
    assert a.key_concepts == []
    assert a.difficulty == Difficulty.MEDIUM
    assert a.time_estimate == rp.DEFAULT_TIME_ESTIMATE


def test_invalid_difficulty_falls_back_to_medium():
    a = rp.parse_model_response(json.dumps(_payload(difficulty="extrem")), PROBLEM)
    assert a.difficulty == Difficulty.MEDIUM


def test_snake_case_keys_are_accepted():
    raw = json.dumps(
        {
            "steps": [{"title": "t", "explanation": "e"}],
            "final_answer": "42",
            "key_concepts": ["aritmetică"],
            "time_estimate": "2 minute",
        }
    )
    a = rp.parse_model_response(raw, PROBLEM)
    assert a.final_answer == "42"
    assert a.key_concepts == ["aritmetică"]
    assert a.time_estimate == "2 minute"


def test_empty_steps_list_is_not_valid_json_output():
    outcome = rp.parse_with_outcome(json.dumps({"steps": []}), PROBLEM)
    assert outcome.mode == ParseMode.FALLBACK
    assert not outcome.is_valid


def test_numbered_lines_become_steps():
    outcome = rp.parse_with_outcome("1. Find X\n2. Compute Y", PROBLEM)
    assert outcome.mode == ParseMode.HEURISTIC
    assert [s.title for s in outcome.analysis.steps] == ["Find X", "Compute Y"]


def test_continuation_lines_join_the_current_step():
    raw = "Introducere care se ignoră\n1) Scrie formula\nΔ = b^2 - 4ac\n2) Înlocuiește\n"
    steps, final_answer = rp.parse_steps_from_lines(raw)
    assert [s.title for s in steps] == ["Scrie formula", "Înlocuiește"]
    assert steps[0].explanation == "Δ = b^2 - 4ac"
    assert final_answer is None


def test_dash_step_format_with_final_answer():
    raw = (
        "- Pas: Identifică datele — a = 1, b = -5, c = 6\n"
        "- Pas: Aplică formula — x = (5 ± 1) / 2\n"
        "- Răspuns final: x = 2 sau x = 3"
    )
    outcome = rp.parse_with_outcome(raw, PROBLEM)
    assert outcome.mode == ParseMode.HEURISTIC
    a = outcome.analysis
    assert [s.title for s in a.steps] == ["Identifică datele", "Aplică formula"]
    assert a.steps[0].explanation == "a = 1, b = -5, c = 6"
    assert a.final_answer == "x = 2 sau x = 3"


def test_markdown_and_step_prefixes():
    raw = "**Pasul 1:** Citește enunțul\n## Pas 2: Rezolvă\n• Verifică"
    steps, _ = rp.parse_steps_from_lines(raw)
    assert [s.title for s in steps] == ["Citește enunțul", "Rezolvă", "Verifică"]


def test_unstructured_text_becomes_single_truncated_step():
    raw = "a" * 300
    outcome = rp.parse_with_outcome(raw, PROBLEM)
    assert outcome.mode == ParseMode.FALLBACK
    [step] = outcome.analysis.steps
    assert step.title == rp.FALLBACK_STEP_TITLE
    assert step.explanation == "a" * 200 + rp.ELLIPSIS


def test_short_unstructured_text_is_kept_whole():
    a = rp.parse_model_response("Nu știu.", PROBLEM)
    assert a.steps[0].title == rp.FALLBACK_STEP_TITLE
    assert a.steps[0].explanation == "Nu știu."


def test_empty_response_never_yields_empty_fields():
    for raw in ("", None, "   \n"):
        a = rp.parse_model_response(raw, PROBLEM)
        assert len(a.steps) == 1
        assert a.steps[0].title
        assert a.steps[0].explanation == rp.EMPTY_RESPONSE_EXPLANATION


def test_excerpt_length_comes_from_settings(monkeypatch):
    monkeypatch.setenv("FALLBACK_EXCERPT_CHARS", "10")
    a = rp.parse_model_response("b" * 50, PROBLEM)
    assert a.steps[0].explanation == "b" * 10 + rp.ELLIPSIS


def test_unexpected_failure_degrades_to_error_step(monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(rp, "_heuristic_analysis", _boom)
    outcome = rp.parse_with_outcome("no json here", PROBLEM)
    assert outcome.mode == ParseMode.ERROR
    assert outcome.analysis.steps[0].title == rp.ERROR_STEP_TITLE


def test_parse_counts_modes():
    rp.parse_model_response(json.dumps(_payload()), PROBLEM)
    rp.parse_model_response("1. a\n2. b", PROBLEM)
    rp.parse_model_response("", PROBLEM)
    assert get_counter("response_parse_total", labels={"mode": "json"}) == 1
    assert get_counter("response_parse_total", labels={"mode": "heuristic"}) == 1
    assert get_counter("response_parse_total", labels={"mode": "fallback"}) == 1


def test_wire_form_uses_camel_case():
    wire = rp.parse_model_response(json.dumps(_payload()), PROBLEM).to_wire()
    assert wire["problemText"] == PROBLEM
    assert wire["finalAnswer"] == "x = 2 sau x = 3"
    assert wire["keyConcepts"] == ["discriminant", "ecuație de gradul II"]
    assert wire["steps"][0] == {
        "title": "Identifică coeficienții",
        "explanation": "a = 1, b = -5, c = 6",
    }


def test_hint_payload_json_and_plain_text():
    h = rp.parse_hint_payload('```json\n{"content": "Gândește-te la Δ.", "isFinal": true}\n```')
    assert h.content == "Gândește-te la Δ."
    assert h.is_final is True

    h2 = rp.parse_hint_payload("Începe prin a identifica coeficienții.")
    assert h2.content == "Începe prin a identifica coeficienții."
    assert h2.is_final is False

    h3 = rp.parse_hint_payload('{"hint": "Folosește formula.", "is_final": "false"}')
    assert h3.content == "Folosește formula."
    assert h3.is_final is False
