"""
Read-only access to static subject resources.

Layout, keyed by the subject slug::

    <resources>/<slug>/extra_info.json
    <resources>/<slug>/Temas/index.json
    <resources>/<slug>/Temas/<file>.pdf
"""
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import ValidationError

from studybank.config import RESOURCES_DIR
from studybank.models.resources import SubjectExtraInfo
from studybank.utils import read_json_file, slugify

logger = logging.getLogger(__name__)

EXTRA_INFO_FILENAME = "extra_info.json"
PDF_DIRNAME = "Temas"
PDF_INDEX_FILENAME = "index.json"

T = TypeVar("T")


class ResourceCache(Generic[T]):
    """In-memory get-or-fetch cache keyed by subject slug. Caches misses too."""

    def __init__(self) -> None:
        self._entries: dict[str, T] = {}

    def get_or_fetch(self, key: str, fetch: Callable[[], T]) -> T:
        if key not in self._entries:
            self._entries[key] = fetch()
        return self._entries[key]

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries


class ResourceLoader:
    """Loads extra info and pdf lists for subjects, caching by slug."""

    def __init__(self, base_dir: Path = RESOURCES_DIR):
        self.base_dir = Path(base_dir)
        self._extra_info: ResourceCache[SubjectExtraInfo | None] = ResourceCache()
        self._pdf_lists: ResourceCache[list[str]] = ResourceCache()

    def subject_dir(self, subject_name: str) -> Path:
        return self.base_dir / slugify(subject_name)

    def _read_json(self, path: Path) -> object | None:
        try:
            return read_json_file(path, None)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {path}: {e}")
            return None

    def _fetch_extra_info(self, subject_name: str) -> SubjectExtraInfo | None:
        raw = self._read_json(self.subject_dir(subject_name) / EXTRA_INFO_FILENAME)
        if raw is None:
            return None
        try:
            return SubjectExtraInfo.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Invalid extra info for {subject_name!r}: {e}")
            return None

    def load_subject_extra_info(self, subject_name: str) -> SubjectExtraInfo | None:
        """Extra info of a subject, or None when missing or unreadable."""
        return self._extra_info.get_or_fetch(
            slugify(subject_name), lambda: self._fetch_extra_info(subject_name)
        )

    def _fetch_pdf_list(self, subject_name: str) -> list[str]:
        index = self._read_json(self.subject_dir(subject_name) / PDF_DIRNAME / PDF_INDEX_FILENAME)
        if isinstance(index, list):
            return [str(name) for name in index]
        info = self.load_subject_extra_info(subject_name)
        return list(info.pdfs or []) if info else []

    def load_pdf_list(self, subject_name: str) -> list[str]:
        """
        PDF filenames of a subject.

        Reads Temas/index.json, falls back to the pdfs listed in the extra
        info, and returns an empty list when neither exists.
        """
        return self._pdf_lists.get_or_fetch(
            slugify(subject_name), lambda: self._fetch_pdf_list(subject_name)
        )

    def get_pdf_path(self, subject_name: str, filename: str) -> Path:
        """Path of a subject pdf (not checked for existence)."""
        if Path(filename).name != filename:
            raise ValueError(f"Invalid pdf filename: {filename!r}")
        return self.subject_dir(subject_name) / PDF_DIRNAME / filename

    def invalidate(self, subject_name: str) -> None:
        """Forget cached resources of a subject."""
        slug = slugify(subject_name)
        self._extra_info.invalidate(slug)
        self._pdf_lists.invalidate(slug)
