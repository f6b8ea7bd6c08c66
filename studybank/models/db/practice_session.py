"""
PracticeSession and SessionAnswer database models.
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


class SessionMode(str, enum.Enum):
    """How the questions of a practice session are chosen."""

    RANDOM = "random"
    ALL = "all"
    FAILED = "failed"
    TOPIC = "topic"
    SMART = "smart"


class PracticeSession(Base):
    """
    Practice session record.
    Owns an ordered list of question ids and the answers given.
    """

    __tablename__ = "practice_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    subject_id: Mapped[str] = mapped_column(
        ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    mode: Mapped[str] = mapped_column(String(20), nullable=False)
    topic_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    question_ids_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    created_at: Mapped[str] = mapped_column(String(40), default=utc_now, nullable=False)
    finished_at: Mapped[str | None] = mapped_column(String(40), nullable=True)

    # Relationships
    subject: Mapped["Subject"] = relationship("Subject", back_populates="sessions")
    answers: Mapped[list["SessionAnswer"]] = relationship(
        "SessionAnswer",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionAnswer.id",
    )

    @property
    def question_ids(self) -> list[str]:
        """Parse ordered question ids from JSON."""
        return load_json_column(self.question_ids_json, [])

    @question_ids.setter
    def question_ids(self, value: list[str]) -> None:
        self.question_ids_json = dump_json_column(list(value or []))

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    def answer_for(self, question_id: str) -> "SessionAnswer | None":
        """Latest answer given to a question in this session."""
        for answer in reversed(self.answers):
            if answer.question_id == question_id:
                return answer
        return None

    def to_dict(self) -> dict[str, Any]:
        """Wire representation with answers in the order given."""
        data: dict[str, Any] = {
            "id": self.id,
            "subjectId": self.subject_id,
            "mode": self.mode,
            "questionIds": self.question_ids,
            "answers": [answer.to_dict() for answer in self.answers],
            "createdAt": self.created_at,
        }
        if self.topic_id is not None:
            data["topicId"] = self.topic_id
        if self.finished_at is not None:
            data["finishedAt"] = self.finished_at
        return data


class SessionAnswer(Base):
    """
    Individual answer within a practice session.
    """

    __tablename__ = "session_answers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("practice_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # Answer data
    selected_option_ids_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    free_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    blank_answers_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    manual_result: Mapped[str | None] = mapped_column(String(10), nullable=True)
    # None while a free-text answer is ungraded
    result: Mapped[str | None] = mapped_column(String(10), nullable=True)
    answered_at: Mapped[str] = mapped_column(String(40), default=utc_now, nullable=False)

    # Relationships
    session: Mapped["PracticeSession"] = relationship("PracticeSession", back_populates="answers")

    @property
    def selected_option_ids(self) -> list[str] | None:
        return load_json_column(self.selected_option_ids_json, None)

    @selected_option_ids.setter
    def selected_option_ids(self, value: list[str] | None) -> None:
        self.selected_option_ids_json = dump_json_column(value)

    @property
    def blank_answers(self) -> dict[str, str] | None:
        return load_json_column(self.blank_answers_json, None)

    @blank_answers.setter
    def blank_answers(self, value: dict[str, str] | None) -> None:
        self.blank_answers_json = dump_json_column(value)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation of the answer (UserAnswer shape)."""
        data: dict[str, Any] = {"questionId": self.question_id}
        if self.selected_option_ids is not None:
            data["selectedOptionIds"] = self.selected_option_ids
        if self.free_text is not None:
            data["freeText"] = self.free_text
        if self.blank_answers is not None:
            data["blankAnswers"] = self.blank_answers
        if self.manual_result is not None:
            data["manualResult"] = self.manual_result
        data["result"] = self.result
        data["answeredAt"] = self.answered_at
        return data
