"""Helpers for inline question images referenced from markdown."""
import base64
import binascii
import mimetypes
import re
from pathlib import Path

from studybank.config import QUESTION_IMAGE_PATH_PREFIX

_IMAGE_REF_RE = re.compile(re.escape(QUESTION_IMAGE_PATH_PREFIX) + r"([^\s\"')]+)")

_MIME_OVERRIDES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "svg": "image/svg+xml",
}


def extract_image_filenames(text: str | None) -> list[str]:
    """List unique image filenames referenced in markdown text, in order."""
    if not text:
        return []
    return list(dict.fromkeys(_IMAGE_REF_RE.findall(text)))


def references_image(text: str | None, filename: str) -> bool:
    """Check whether text references question-images/<filename>."""
    return bool(text) and f"{QUESTION_IMAGE_PATH_PREFIX}{filename}" in text


def filename_to_image_id(filename: str) -> str:
    """Strip the extension: "uuid.ext" -> "uuid"."""
    return re.sub(r"\.[^.]+$", "", filename)


def image_extension(filename: str) -> str:
    """Lowercase extension without the dot (png when absent)."""
    suffix = Path(filename).suffix.lower().lstrip(".")
    return suffix or "png"


def guess_image_mime(filename: str) -> str:
    """Guess the MIME type of an image filename."""
    ext = image_extension(filename)
    if ext in _MIME_OVERRIDES:
        return _MIME_OVERRIDES[ext]
    guessed, _ = mimetypes.guess_type(f"x.{ext}")
    if guessed and guessed.startswith("image/"):
        return guessed
    return f"image/{ext}"


def is_safe_image_filename(filename: str) -> bool:
    """Reject names that could escape the image namespace."""
    if not isinstance(filename, str):
        return False
    cleaned = filename.strip()
    if not cleaned or cleaned != filename:
        return False
    return Path(cleaned).name == cleaned and "/" not in cleaned and "\\" not in cleaned


def decode_base64_image(payload: str) -> bytes:
    """Decode a base64 payload (a data: URI prefix is tolerated)."""
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 image payload: {exc}") from exc


def encode_base64_image(data: bytes) -> str:
    """Encode image bytes as plain base64 text."""
    return base64.b64encode(data).decode("ascii")
