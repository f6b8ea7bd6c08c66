"""Database models."""
from studybank.models.db.subject import Subject, Topic, new_id
from studybank.models.db.question import (
    AnswerResult,
    Question,
    QuestionOrigin,
    QuestionType,
    empty_stats,
)
from studybank.models.db.pdf_anchor import PENDING_PDF_ID, PdfAnchor
from studybank.models.db.question_image import QuestionImage
from studybank.models.db.practice_session import PracticeSession, SessionAnswer, SessionMode
from studybank.models.db.settings import SETTINGS_ID, AppSettings
from studybank.models.db.deliverable import Deliverable, DeliverableType, SubjectGradingConfig

__all__ = [
    "Subject",
    "Topic",
    "new_id",
    "AnswerResult",
    "Question",
    "QuestionOrigin",
    "QuestionType",
    "empty_stats",
    "PENDING_PDF_ID",
    "PdfAnchor",
    "QuestionImage",
    "PracticeSession",
    "SessionAnswer",
    "SessionMode",
    "SETTINGS_ID",
    "AppSettings",
    "Deliverable",
    "DeliverableType",
    "SubjectGradingConfig",
]
