"""Contribution pack Pydantic models."""
from typing import Any, Literal

from pydantic import BaseModel, Field

from studybank.models.db.question import QuestionOrigin, QuestionType
from studybank.models.question import ClozeBlank, QuestionOption


class PdfAnchorRef(BaseModel):
    """Portable pdf anchor: page and label only."""

    page: int
    label: str | None = None


class ContributionQuestion(BaseModel):
    """
    Portable question addressed by subject/topic slugs instead of local ids.
    """

    id: str
    subjectKey: str = Field(..., min_length=1)
    topicKey: str = Field(..., min_length=1)
    topicKeys: list[str] | None = None
    type: QuestionType
    prompt: str
    options: list[QuestionOption] | None = None
    correctOptionIds: list[str] | None = None
    modelAnswer: str | None = None
    keywords: list[str] | None = None
    numericAnswer: str | None = None
    clozeText: str | None = None
    blanks: list[ClozeBlank] | None = None
    explanation: str | None = None
    difficulty: int | None = Field(default=None, ge=1, le=5)
    tags: list[str] | None = None
    origin: QuestionOrigin | None = None
    pdfAnchor: PdfAnchorRef | None = None
    createdBy: str | None = None
    contentHash: str | None = None


class ContributionTopic(BaseModel):
    """Declared topic intent inside a target."""

    topicKey: str = Field(..., min_length=1)
    topicTitle: str


class ContributionTarget(BaseModel):
    """Declared subject intent plus the topics it should contain."""

    subjectKey: str = Field(..., min_length=1)
    subjectName: str
    topics: list[ContributionTopic] = Field(default_factory=list)


class ContributionPack(BaseModel):
    """
    Contribution pack envelope.

    Questions stay raw dicts here; each one is validated on its own so a
    single malformed question does not reject the whole pack.
    """

    version: Literal[1]
    kind: Literal["contribution"]
    packId: str = Field(..., min_length=1)
    createdBy: str
    exportedAt: str
    targets: list[ContributionTarget]
    questions: list[dict[str, Any]]
    # filename ("uuid.ext") -> base64 payload
    questionImages: dict[str, str] | None = None


class ContributionImportResult(BaseModel):
    """Summary of a contribution pack merge."""

    packId: str = ""
    createdBy: str = ""
    subjectsCreated: int = 0
    topicsCreated: int = 0
    questionsImported: int = 0
    questionsDeduplicated: int = 0
    imagesImported: int = 0
    alreadyImported: bool = False
    errors: list[str] = Field(default_factory=list)
