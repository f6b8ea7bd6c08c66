"""Question-related Pydantic models shared by several envelopes."""
from pydantic import BaseModel, ConfigDict, Field

from studybank.models.db.question import AnswerResult


class QuestionOption(BaseModel):
    """Model for a TEST option."""

    id: str
    text: str


class ClozeBlank(BaseModel):
    """Model for a COMPLETAR blank and its accepted answers."""

    id: str
    accepted: list[str]


class QuestionStats(BaseModel):
    """Practice statistics. Unknown keys are passed through untouched."""

    model_config = ConfigDict(extra="allow")

    seen: int = 0
    correct: int = 0
    wrong: int = 0
    lastSeenAt: str | None = None
    lastResult: AnswerResult | None = None
    nextReviewAt: str | None = None
    easeFactor: float | None = None
    interval: int | None = None
    repetitions: int | None = None


class UserAnswer(BaseModel):
    """Model for an answer given during a practice session."""

    questionId: str = Field(..., min_length=1)
    selectedOptionIds: list[str] | None = None
    freeText: str | None = None
    blankAnswers: dict[str, str] | None = None
    manualResult: AnswerResult | None = None
    result: AnswerResult | None = None
    answeredAt: str | None = None
