"""
Question model and the closed set of question types.

``topic_id`` is a weak reference: it carries no foreign-key constraint and
may point at a topic that no longer exists.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studybank.database import Base
from studybank.models.db.subject import new_id
from studybank.utils import dump_json_column, load_json_column, utc_now

if TYPE_CHECKING:
    from studybank.models.db.subject import Subject


class QuestionType(str, enum.Enum):
    """Kind of question. Fixed once the question exists."""

    TEST = "TEST"
    DESARROLLO = "DESARROLLO"
    COMPLETAR = "COMPLETAR"
    PRACTICO = "PRACTICO"


class QuestionOrigin(str, enum.Enum):
    """Where the question was taken from."""

    TEST = "test"
    EXAMEN_ANTERIOR = "examen_anterior"
    CLASE = "clase"
    ALUMNO = "alumno"


class AnswerResult(str, enum.Enum):
    """Outcome of a scored answer."""

    CORRECT = "CORRECT"
    WRONG = "WRONG"


def empty_stats() -> dict[str, Any]:
    """Stats for a question nobody has practiced yet."""
    return {"seen": 0, "correct": 0, "wrong": 0}


# Optional wire fields, in export order: (wire key, attribute)
_OPTIONAL_FIELDS = (
    ("topicIds", "topic_ids"),
    ("explanation", "explanation"),
    ("difficulty", "difficulty"),
    ("tags", "tags"),
    ("origin", "origin"),
    ("options", "options"),
    ("correctOptionIds", "correct_option_ids"),
    ("modelAnswer", "model_answer"),
    ("keywords", "keywords"),
    ("numericAnswer", "numeric_answer"),
    ("clozeText", "cloze_text"),
    ("blanks", "blanks"),
    ("pdfAnchorId", "pdf_anchor_id"),
    ("createdBy", "created_by"),
    ("sourcePackId", "source_pack_id"),
    ("contentHash", "content_hash"),
)


class Question(Base):
    """A practice question of one of the four types."""

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    subject_id: Mapped[str] = mapped_column(
        ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Primary topic (weak reference)
    topic_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    topic_ids_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    difficulty: Mapped[int | None] = mapped_column(nullable=True)
    tags_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    origin: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # TEST
    options_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    correct_option_ids_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # DESARROLLO / PRACTICO
    model_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    keywords_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    numeric_answer: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # COMPLETAR
    cloze_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    blanks_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    pdf_anchor_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Contribution metadata
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_pack_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    content_hash: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True)

    stats_json: Mapped[str] = mapped_column(Text, nullable=False, default=lambda: dump_json_column(empty_stats()))
    created_at: Mapped[str] = mapped_column(String(40), default=utc_now, nullable=False)
    updated_at: Mapped[str] = mapped_column(String(40), default=utc_now, nullable=False)

    # Relationships
    subject: Mapped["Subject"] = relationship("Subject", back_populates="questions")

    @property
    def question_type(self) -> QuestionType:
        """Typed view of ``type``."""
        return QuestionType(self.type)

    @property
    def topic_ids(self) -> list[str] | None:
        """Parse the full topic set from JSON."""
        return load_json_column(self.topic_ids_json, None)

    @topic_ids.setter
    def topic_ids(self, value: list[str] | None) -> None:
        self.topic_ids_json = dump_json_column(value)

    @property
    def tags(self) -> list[str] | None:
        return load_json_column(self.tags_json, None)

    @tags.setter
    def tags(self, value: list[str] | None) -> None:
        self.tags_json = dump_json_column(value)

    @property
    def options(self) -> list[dict[str, str]] | None:
        """Parse TEST options ({id, text}) from JSON."""
        return load_json_column(self.options_json, None)

    @options.setter
    def options(self, value: list[dict[str, str]] | None) -> None:
        self.options_json = dump_json_column(value)

    @property
    def correct_option_ids(self) -> list[str] | None:
        return load_json_column(self.correct_option_ids_json, None)

    @correct_option_ids.setter
    def correct_option_ids(self, value: list[str] | None) -> None:
        self.correct_option_ids_json = dump_json_column(value)

    @property
    def keywords(self) -> list[str] | None:
        return load_json_column(self.keywords_json, None)

    @keywords.setter
    def keywords(self, value: list[str] | None) -> None:
        self.keywords_json = dump_json_column(value)

    @property
    def blanks(self) -> list[dict[str, Any]] | None:
        """Parse COMPLETAR blanks ({id, accepted}) from JSON."""
        return load_json_column(self.blanks_json, None)

    @blanks.setter
    def blanks(self, value: list[dict[str, Any]] | None) -> None:
        self.blanks_json = dump_json_column(value)

    @property
    def stats(self) -> dict[str, Any]:
        """Parse practice statistics from JSON."""
        stats = load_json_column(self.stats_json, None)
        return stats if isinstance(stats, dict) else empty_stats()

    @stats.setter
    def stats(self, value: dict[str, Any] | None) -> None:
        self.stats_json = dump_json_column(value or empty_stats())

    @property
    def all_topic_ids(self) -> list[str]:
        """Primary topic followed by any additional topics."""
        ids = [self.topic_id]
        for topic_id in self.topic_ids or []:
            if topic_id not in ids:
                ids.append(topic_id)
        return ids

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase, optional fields omitted)."""
        data: dict[str, Any] = {
            "id": self.id,
            "subjectId": self.subject_id,
            "topicId": self.topic_id,
            "type": self.type,
            "prompt": self.prompt,
        }
        for key, attr in _OPTIONAL_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        data["stats"] = self.stats
        data["createdAt"] = self.created_at
        data["updatedAt"] = self.updated_at
        return data

    def apply_fields(self, data: dict[str, Any]) -> None:
        """Copy optional wire fields present in ``data`` onto the row."""
        for key, attr in _OPTIONAL_FIELDS:
            if key in data:
                setattr(self, attr, data[key])
