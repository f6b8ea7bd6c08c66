"""
Subject and Topic models.

Merge identity of a subject is ``slugify(name)`` and of a topic
``slugify(title)`` within its subject; ids are local to one database.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studybank.database import Base
from studybank.utils import dump_json_column, load_json_column, utc_now

if TYPE_CHECKING:
    from studybank.models.db.deliverable import Deliverable, SubjectGradingConfig
    from studybank.models.db.pdf_anchor import PdfAnchor
    from studybank.models.db.practice_session import PracticeSession
    from studybank.models.db.question import Question


def new_id() -> str:
    """Generate a fresh local identifier."""
    return str(uuid.uuid4())


class Subject(Base):
    """A subject owns its topics, questions, sessions, pdf anchors and deliverables."""

    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    color: Mapped[str | None] = mapped_column(String(32), nullable=True)
    icon: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # Personal exam date (YYYY-MM-DD), never shared through the global bank
    exam_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    created_at: Mapped[str] = mapped_column(String(40), default=utc_now, nullable=False)
    updated_at: Mapped[str] = mapped_column(String(40), default=utc_now, nullable=False)

    # Relationships
    topics: Mapped[list["Topic"]] = relationship(
        "Topic", back_populates="subject", cascade="all, delete-orphan"
    )
    questions: Mapped[list["Question"]] = relationship(
        "Question", back_populates="subject", cascade="all, delete-orphan"
    )
    sessions: Mapped[list["PracticeSession"]] = relationship(
        "PracticeSession", back_populates="subject", cascade="all, delete-orphan"
    )
    pdf_anchors: Mapped[list["PdfAnchor"]] = relationship(
        "PdfAnchor", back_populates="subject", cascade="all, delete-orphan"
    )
    deliverables: Mapped[list["Deliverable"]] = relationship(
        "Deliverable", back_populates="subject", cascade="all, delete-orphan"
    )
    grading_config: Mapped["SubjectGradingConfig"] = relationship(
        "SubjectGradingConfig",
        back_populates="subject",
        cascade="all, delete-orphan",
        uselist=False,
    )

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase, optional fields omitted)."""
        data: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.color is not None:
            data["color"] = self.color
        if self.icon is not None:
            data["icon"] = self.icon
        if self.exam_date is not None:
            data["examDate"] = self.exam_date
        data["createdAt"] = self.created_at
        data["updatedAt"] = self.updated_at
        return data


class Topic(Base):
    """A topic inside a subject. ``order`` is advisory, not unique."""

    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    subject_id: Mapped[str] = mapped_column(
        ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order: Mapped[int] = mapped_column(default=0, nullable=False, index=True)
    tags_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    pdf_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[str] = mapped_column(String(40), default=utc_now, nullable=False)
    updated_at: Mapped[str] = mapped_column(String(40), default=utc_now, nullable=False)

    # Relationships
    subject: Mapped["Subject"] = relationship("Subject", back_populates="topics")

    @property
    def tags(self) -> list[str] | None:
        """Parse tags from JSON."""
        return load_json_column(self.tags_json, None)

    @tags.setter
    def tags(self, value: list[str] | None) -> None:
        """Serialize tags to JSON."""
        self.tags_json = dump_json_column(value)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase, optional fields omitted)."""
        data: dict[str, Any] = {
            "id": self.id,
            "subjectId": self.subject_id,
            "title": self.title,
            "order": self.order,
        }
        if self.tags is not None:
            data["tags"] = self.tags
        if self.pdf_filename is not None:
            data["pdfFilename"] = self.pdf_filename
        data["createdAt"] = self.created_at
        data["updatedAt"] = self.updated_at
        return data
