"""
QuestionImage model.

Images are referenced from markdown as ``question-images/<filename>``,
never by foreign key.
"""

from __future__ import annotations

from sqlalchemy import LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from studybank.database import Base
from studybank.utils import utc_now


class QuestionImage(Base):
    """Binary image blob keyed by the uuid part of its filename."""

    __tablename__ = "question_images"

    # UUID without extension
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # "uuid.ext" as it appears after question-images/
    filename: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    blob: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[str] = mapped_column(String(40), default=utc_now, nullable=False)
