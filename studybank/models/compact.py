"""Compact export Pydantic models."""
from typing import Literal

from pydantic import BaseModel


class CompactQuestion(BaseModel):
    """Minimal question projection."""

    # T=TEST, D=DESARROLLO, C=COMPLETAR, P=PRACTICO
    t: Literal["T", "D", "C", "P"]
    p: str
    h: str | None = None
    tp: str | None = None


class CompactSubjectExport(BaseModel):
    """All questions of one subject in compact form."""

    asignatura: str
    slug: str
    total: int
    preguntas: list[CompactQuestion]
