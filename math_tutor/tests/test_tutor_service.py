import asyncio
import io
import json

import pytest
from PIL import Image

from math_tutor.models.schemas import HintPayload, HintState, RawOcrOutput
from math_tutor.services import tutor
from math_tutor.utils.errors import (
    InputValidationError,
    LLMTransportError,
    OcrTransportError,
    error_payload_for_exception,
)


def _run(coro):
    return asyncio.run(coro)


def _png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color="white").save(buf, format="PNG")
    return buf.getvalue()


class _FakeLLM:
    def __init__(self, reply="", *, configured=True, error=None, max_hints=3):
        self._reply = reply
        self._configured = configured
        self._error = error
        self.max_hints = max_hints
        self.prompts = []
        self.hint_calls = []

    def is_configured(self) -> bool:
        return self._configured

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._error is not None:
            raise self._error
        return self._reply

    async def generate_hint(self, problem_text: str, step_index: int) -> HintPayload:
        self.hint_calls.append(step_index)
        return HintPayload(content=f"indiciu {step_index + 1}")


class _FakeOCR:
    def __init__(self, result=None, error=None):
        self._result = result
        self._error = error
        self.calls = []

    def recognize(self, image_bytes, mime_hint=None):
        self.calls.append(mime_hint)
        if self._error is not None:
            raise self._error
        return self._result


def test_analyze_problem_requires_text():
    with pytest.raises(InputValidationError) as excinfo:
        _run(tutor.analyze_problem("   ", client=_FakeLLM()))
    payload = error_payload_for_exception(excinfo.value)
    assert payload["code"] == "E4220"
    assert payload["error"] == tutor.MISSING_PROBLEM_TEXT


def test_analyze_problem_stub_without_key():
    llm = _FakeLLM(configured=False)
    a = _run(tutor.analyze_problem("x^2 - 4 = 0", client=llm))
    assert [s.title for s in a.steps] == ["Identifică datele", "Alege metoda"]
    assert a.final_answer == tutor.STUB_FINAL_ANSWER
    assert a.caveats == [tutor.STUB_CAVEAT]
    assert llm.prompts == []


def test_analyze_problem_parses_model_reply():
    reply = json.dumps(
        {
            "steps": [{"title": "Mută termenii", "explanation": "2x = 4"}],
            "finalAnswer": "x = 2",
        }
    )
    llm = _FakeLLM(reply)
    a = _run(tutor.analyze_problem(" 2x + 3 = 7 ", client=llm))
    assert a.problem_text == "2x + 3 = 7"
    assert a.final_answer == "x = 2"
    assert "2x + 3 = 7" in llm.prompts[0]


def test_analyze_problem_propagates_transport_errors():
    llm = _FakeLLM(error=LLMTransportError("quota"))
    with pytest.raises(LLMTransportError) as excinfo:
        _run(tutor.analyze_problem("2x = 4", client=llm))
    assert error_payload_for_exception(excinfo.value)["code"] == "E5020"


def test_extract_problem_normalizes_ocr_text():
    fake = _FakeOCR(RawOcrOutput(text="3x4=12", confidence=0.9, note="n"))
    result = _run(tutor.extract_problem_from_image(_png_bytes(), "image/png", ocr=fake))
    assert result.ocr.confidence == pytest.approx(0.9)
    assert result.normalized.cleaned_text == r"3 \cdot 4 = 12"
    assert fake.calls == ["image/png"]
    wire = result.to_wire()
    assert wire["normalized"]["cleanedText"] == r"3 \cdot 4 = 12"


def test_extract_problem_sniffs_missing_mime():
    fake = _FakeOCR(RawOcrOutput(text="1 + 1"))
    _run(tutor.extract_problem_from_image(_png_bytes(), None, ocr=fake))
    assert fake.calls == ["image/png"]


@pytest.mark.parametrize(
    "data,mime,message,code",
    [
        (b"", "image/png", tutor.MISSING_FILE, "E4220"),
        (None, None, tutor.MISSING_FILE, "E4220"),
        (b"%PDF-1.4", "application/pdf", tutor.NOT_AN_IMAGE, "E4001"),
        (b"plain bytes", None, tutor.NOT_AN_IMAGE, "E4001"),
    ],
)
def test_extract_problem_rejects_bad_uploads(data, mime, message, code):
    fake = _FakeOCR(RawOcrOutput(text="x"))
    with pytest.raises(InputValidationError) as excinfo:
        _run(tutor.extract_problem_from_image(data, mime, ocr=fake))
    assert str(excinfo.value) == message
    assert error_payload_for_exception(excinfo.value)["code"] == code
    assert fake.calls == []


def test_extract_problem_rejects_oversized_upload(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MAX_UPLOAD_IMAGE_BYTES", "10")
    with pytest.raises(InputValidationError):
        _run(tutor.extract_problem_from_image(_png_bytes(), "image/png", ocr=_FakeOCR()))


def test_extract_problem_reports_ocr_failure_in_result():
    fake = _FakeOCR(error=OcrTransportError("engine down"))
    result = _run(tutor.extract_problem_from_image(_png_bytes(), "image/png", ocr=fake))
    assert result.ocr.error_message == "engine down"
    assert result.ocr.text == ""
    assert result.normalized.cleaned_text == ""
    assert result.to_wire()["ocr"]["errorMessage"] == "engine down"


def test_start_hint_session_uses_llm_collaborator():
    llm = _FakeLLM(max_hints=2)
    session = tutor.start_hint_session("2x = 4", client=llm)
    assert session.max_hints == 2
    _run(session.request_next())
    last = _run(session.request_next())
    assert last.content == "indiciu 2"
    assert session.state == HintState.EXHAUSTED
    assert llm.hint_calls == [0, 1]


def test_start_hint_session_requires_text():
    with pytest.raises(InputValidationError):
        tutor.start_hint_session("", client=_FakeLLM())
