import importlib.util
import json
import sys
from pathlib import Path

import pytest

from math_tutor.services.tutor import STUB_FINAL_ANSWER

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "analyze_problem.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("analyze_problem_script", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_metrics_flag_prints_prometheus_text_to_stderr(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
):
    monkeypatch.setenv("GOOGLE_AI_API_KEY", "")
    monkeypatch.setattr(sys, "argv", ["analyze_problem.py", "--text", "2x = 4", "--metrics"])

    assert _load_script().main() == 0

    captured = capsys.readouterr()
    assert json.loads(captured.out)["analysis"]["finalAnswer"] == STUB_FINAL_ANSWER
    assert "# TYPE span_duration_seconds histogram" in captured.err
    assert 'span="tutor.analyze_problem"' in captured.err


def test_metrics_are_not_printed_without_the_flag(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
):
    monkeypatch.setenv("GOOGLE_AI_API_KEY", "")
    monkeypatch.setattr(sys, "argv", ["analyze_problem.py", "--text", "2x = 4"])

    assert _load_script().main() == 0
    assert "span_duration_seconds" not in capsys.readouterr().err
