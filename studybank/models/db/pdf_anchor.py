"""
PdfAnchor model: a page (and optional box) inside a subject's PDF.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studybank.database import Base
from studybank.models.db.subject import new_id
from studybank.utils import dump_json_column, load_json_column

if TYPE_CHECKING:
    from studybank.models.db.subject import Subject

# pdf_id of anchors whose PDF has not been linked yet
PENDING_PDF_ID = "pending"


class PdfAnchor(Base):
    """Reference to a location in a PDF resource."""

    __tablename__ = "pdf_anchors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    subject_id: Mapped[str] = mapped_column(
        ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pdf_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    page: Mapped[int] = mapped_column(nullable=False)
    bbox_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationships
    subject: Mapped["Subject"] = relationship("Subject", back_populates="pdf_anchors")

    @property
    def bbox(self) -> dict[str, float] | None:
        """Parse bounding box ({x, y, w, h}) from JSON."""
        return load_json_column(self.bbox_json, None)

    @bbox.setter
    def bbox(self, value: dict[str, float] | None) -> None:
        self.bbox_json = dump_json_column(value)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase, optional fields omitted)."""
        data: dict[str, Any] = {
            "id": self.id,
            "subjectId": self.subject_id,
            "pdfId": self.pdf_id,
            "page": self.page,
        }
        if self.bbox is not None:
            data["bbox"] = self.bbox
        if self.label is not None:
            data["label"] = self.label
        return data
