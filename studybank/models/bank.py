"""Bank export/import Pydantic models."""
from typing import Literal

from pydantic import BaseModel, Field

from studybank.models.db.question import QuestionOrigin, QuestionType
from studybank.models.question import ClozeBlank, QuestionOption, QuestionStats


class SubjectRecord(BaseModel):
    id: str
    name: str
    color: str | None = None
    icon: str | None = None
    examDate: str | None = None
    createdAt: str
    updatedAt: str


class TopicRecord(BaseModel):
    id: str
    subjectId: str
    title: str
    order: int
    tags: list[str] | None = None
    pdfFilename: str | None = None
    createdAt: str
    updatedAt: str


class QuestionRecord(BaseModel):
    id: str
    subjectId: str
    topicId: str
    topicIds: list[str] | None = None
    type: QuestionType
    prompt: str
    explanation: str | None = None
    difficulty: int | None = Field(default=None, ge=1, le=5)
    tags: list[str] | None = None
    origin: QuestionOrigin | None = None
    options: list[QuestionOption] | None = None
    correctOptionIds: list[str] | None = None
    modelAnswer: str | None = None
    keywords: list[str] | None = None
    numericAnswer: str | None = None
    clozeText: str | None = None
    blanks: list[ClozeBlank] | None = None
    pdfAnchorId: str | None = None
    createdBy: str | None = None
    sourcePackId: str | None = None
    contentHash: str | None = None
    stats: QuestionStats
    createdAt: str
    updatedAt: str


class BoundingBox(BaseModel):
    x: float
    y: float
    w: float
    h: float


class PdfAnchorRecord(BaseModel):
    id: str
    subjectId: str
    pdfId: str
    page: int
    bbox: BoundingBox | None = None
    label: str | None = None


class BankExport(BaseModel):
    """Whole-bank versioned snapshot."""

    version: Literal[1] = 1
    kind: Literal["bank"] = "bank"
    exportedAt: str
    subjects: list[SubjectRecord]
    topics: list[TopicRecord]
    questions: list[QuestionRecord]
    pdfAnchors: list[PdfAnchorRecord]


class ImportBankResult(BaseModel):
    """Summary of an additive bank import."""

    subjectsAdded: int = 0
    topicsAdded: int = 0
    questionsAdded: int = 0
    pdfAnchorsAdded: int = 0
    errors: list[str] = Field(default_factory=list)


class GlobalBankSyncResult(BaseModel):
    """Summary of a slug-identity merge of a global bank."""

    subjectsAdded: int = 0
    topicsAdded: int = 0
    questionsAdded: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
