"""Pydantic models."""
from studybank.models.bank import (
    BankExport,
    BoundingBox,
    GlobalBankSyncResult,
    ImportBankResult,
    PdfAnchorRecord,
    QuestionRecord,
    SubjectRecord,
    TopicRecord,
)
from studybank.models.compact import CompactQuestion, CompactSubjectExport
from studybank.models.contribution import (
    ContributionImportResult,
    ContributionPack,
    ContributionQuestion,
    ContributionTarget,
    ContributionTopic,
    PdfAnchorRef,
)
from studybank.models.grading import GradeBreakdown
from studybank.models.question import ClozeBlank, QuestionOption, QuestionStats, UserAnswer
from studybank.models.resources import ExternalLink, SubjectExtraInfo

__all__ = [
    "BankExport",
    "BoundingBox",
    "GlobalBankSyncResult",
    "ImportBankResult",
    "PdfAnchorRecord",
    "QuestionRecord",
    "SubjectRecord",
    "TopicRecord",
    "CompactQuestion",
    "CompactSubjectExport",
    "ContributionImportResult",
    "ContributionPack",
    "ContributionQuestion",
    "ContributionTarget",
    "ContributionTopic",
    "PdfAnchorRef",
    "GradeBreakdown",
    "ClozeBlank",
    "QuestionOption",
    "QuestionStats",
    "UserAnswer",
    "ExternalLink",
    "SubjectExtraInfo",
]
