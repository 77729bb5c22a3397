from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python; both accepted on input."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# --- Enums ---
class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class HintState(str, Enum):
    EMPTY = "empty"
    AWAITING = "awaiting"
    HAS_HINTS = "has_hints"
    EXHAUSTED = "exhausted"
    ERROR = "error"


class ParseMode(str, Enum):
    JSON = "json"
    HEURISTIC = "heuristic"
    FALLBACK = "fallback"
    ERROR = "error"


# --- OCR ---
class RawOcrOutput(_WireModel):
    """Text returned by the OCR collaborator. Confidence is always on the 0..1 scale."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    text: str = ""
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    error_message: Optional[str] = Field(None, alias="errorMessage")
    note: Optional[str] = None


class NormalizedExpression(_WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    cleaned_text: str = Field("", alias="cleanedText")
    latex: str = ""


# --- Pedagogical analysis ---
class PedagogicalStep(_WireModel):
    title: str = Field(..., min_length=1)
    explanation: str = ""


class PedagogicalAnalysis(_WireModel):
    problem_text: str = Field("", alias="problemText")
    steps: List[PedagogicalStep] = Field(default_factory=list)
    final_answer: Optional[str] = Field(None, alias="finalAnswer")
    key_concepts: List[str] = Field(default_factory=list, alias="keyConcepts")
    difficulty: Optional[Difficulty] = None
    time_estimate: Optional[str] = Field(None, alias="timeEstimate")
    caveats: List[str] = Field(default_factory=list)

    @field_validator("key_concepts")
    @classmethod
    def _dedupe_concepts(cls, v: List[str]) -> List[str]:
        # Set semantics, first occurrence wins.
        seen: List[str] = []
        for item in v:
            if item not in seen:
                seen.append(item)
        return seen


class ParseOutcome(BaseModel):
    """Internal tagged result: the same analysis shape, plus how it was obtained."""

    analysis: PedagogicalAnalysis
    mode: ParseMode

    @property
    def is_valid(self) -> bool:
        return self.mode == ParseMode.JSON


# --- Hints ---
class HintPayload(_WireModel):
    """What the hint-fetch collaborator returns for one step."""

    content: str
    is_final: bool = Field(False, alias="isFinal")


class HintRecord(_WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    step_index: int = Field(..., ge=0, alias="stepIndex")
    content: str
    is_final: bool = Field(False, alias="isFinal")
