"""Static resource Pydantic models."""
from pydantic import BaseModel


class ExternalLink(BaseModel):
    name: str
    url: str
    icon: str | None = None


class SubjectExtraInfo(BaseModel):
    """Content of resources/<slug>/extra_info.json."""

    allowsNotes: bool | None = None
    professor: str | None = None
    credits: float | None = None
    description: str | None = None
    pdfs: list[str] | None = None
    externalLinks: list[ExternalLink] | None = None
