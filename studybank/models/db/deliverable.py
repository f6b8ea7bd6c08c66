"""
Deliverable and SubjectGradingConfig models.

Both are personal data: they are never part of contribution packs or bank
exports.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studybank.config import (
    DEFAULT_CONTINUOUS_WEIGHT,
    DEFAULT_MAX_CONTINUOUS_POINTS,
    DEFAULT_TEST_CONTINUOUS_POINTS,
)
from studybank.database import Base
from studybank.models.db.subject import new_id
from studybank.utils import utc_now

if TYPE_CHECKING:
    from studybank.models.db.subject import Subject


class DeliverableType(str, enum.Enum):
    """Kind of graded work."""

    ACTIVITY = "activity"
    TEST = "test"
    EXAM = "exam"
    OTHER = "other"


class Deliverable(Base):
    """A piece of coursework that may add to the continuous-assessment score."""

    __tablename__ = "deliverables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    subject_id: Mapped[str] = mapped_column(
        ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    start_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    due_date: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # 0-10, set once the work has been returned
    grade: Mapped[float | None] = mapped_column(Float, nullable=True)
    continuous_points: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    created_at: Mapped[str] = mapped_column(String(40), default=utc_now, nullable=False)
    updated_at: Mapped[str] = mapped_column(String(40), default=utc_now, nullable=False)

    # Relationships
    subject: Mapped["Subject"] = relationship("Subject", back_populates="deliverables")

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase, optional fields omitted)."""
        data: dict[str, Any] = {
            "id": self.id,
            "subjectId": self.subject_id,
            "name": self.name,
            "type": self.type,
        }
        if self.start_date is not None:
            data["startDate"] = self.start_date
        if self.due_date is not None:
            data["dueDate"] = self.due_date
        data["completed"] = self.completed
        if self.grade is not None:
            data["grade"] = self.grade
        data["continuousPoints"] = self.continuous_points
        data["createdAt"] = self.created_at
        data["updatedAt"] = self.updated_at
        return data


class SubjectGradingConfig(Base):
    """Per-subject weighting of continuous assessment against the final exam."""

    __tablename__ = "grading_configs"

    subject_id: Mapped[str] = mapped_column(
        ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True
    )
    # Share of the final grade taken by continuous assessment (0-1)
    continuous_weight: Mapped[float] = mapped_column(
        Float, default=DEFAULT_CONTINUOUS_WEIGHT, nullable=False
    )
    max_continuous_points: Mapped[float] = mapped_column(
        Float, default=DEFAULT_MAX_CONTINUOUS_POINTS, nullable=False
    )
    # Default points for a new TEST deliverable
    test_continuous_points: Mapped[float] = mapped_column(
        Float, default=DEFAULT_TEST_CONTINUOUS_POINTS, nullable=False
    )
    exam_grade: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Relationships
    subject: Mapped["Subject"] = relationship("Subject", back_populates="grading_config")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "subjectId": self.subject_id,
            "continuousWeight": self.continuous_weight,
            "maxContinuousPoints": self.max_continuous_points,
            "testContinuousPoints": self.test_continuous_points,
        }
        if self.exam_grade is not None:
            data["examGrade"] = self.exam_grade
        return data
