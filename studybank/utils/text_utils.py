"""Text canonicalization shared by every identity-sensitive component.

``slugify`` is the join key between independently created databases and the
static resources directory, so its output must never depend on locale, time
or random state.
"""
import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_HYPHENS_RE = re.compile(r"-+")


def strip_diacritics(text: str) -> str:
    """Remove combining marks after canonical decomposition."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not "\u0300" <= ch <= "\u036f")


def normalize_text(text: str, remove_diacritics: bool = True) -> str:
    """Trim, lowercase and collapse whitespace; optionally drop accents."""
    normalized = _WHITESPACE_RE.sub(" ", text.strip().lower())
    if remove_diacritics:
        normalized = strip_diacritics(normalized)
    return normalized


def slugify(text: str) -> str:
    """Build a lowercase, accent-free, hyphenated identifier."""
    slug = strip_diacritics(text).lower()
    slug = _SLUG_STRIP_RE.sub("", slug).strip()
    slug = _WHITESPACE_RE.sub("-", slug)
    return _HYPHENS_RE.sub("-", slug)
