"""Storage service for inline question images."""
import logging
import uuid
from collections.abc import Iterable, Mapping

from sqlalchemy.orm import Session as DbSession

from studybank.config import MAX_IMAGE_SIZE_BYTES
from studybank.models.db.question_image import QuestionImage
from studybank.utils import (
    decode_base64_image,
    encode_base64_image,
    extract_image_filenames,
    filename_to_image_id,
    guess_image_mime,
    image_extension,
    is_safe_image_filename,
    utc_now,
)

logger = logging.getLogger(__name__)


def save_question_image(
    db: DbSession,
    data: bytes,
    original_name: str,
    mime_type: str | None = None,
) -> QuestionImage:
    """
    Store a new image under a fresh "uuid.ext" filename.

    Args:
        db: Database session
        data: Raw image bytes
        original_name: Name of the uploaded file (only its extension is kept)
        mime_type: Explicit MIME type, guessed from the extension when absent

    Returns:
        The stored image record; reference it as question-images/<filename>
    """
    if len(data) > MAX_IMAGE_SIZE_BYTES:
        raise ValueError(
            f"Image too large. Maximum size: {MAX_IMAGE_SIZE_BYTES // (1024 * 1024)}MB"
        )
    image_id = str(uuid.uuid4())
    filename = f"{image_id}.{image_extension(original_name)}"
    record = QuestionImage(
        id=image_id,
        filename=filename,
        blob=data,
        mime_type=mime_type or guess_image_mime(filename),
        created_at=utc_now(),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info(f"Saved question image {filename}")
    return record


def get_question_image(db: DbSession, filename: str) -> QuestionImage | None:
    """
    Get an image by its filename.

    Returns:
        Image record or None when it is not stored locally
    """
    if not is_safe_image_filename(filename):
        return None
    return db.get(QuestionImage, filename_to_image_id(filename))


def import_images(
    db: DbSession,
    images: Mapping[str, str],
    only: Iterable[str] | None = None,
) -> tuple[int, list[str]]:
    """
    Persist base64 images from a contribution pack.

    Images already stored under the same id are never overwritten. Invalid
    payloads are reported and skipped. The caller commits.

    Args:
        db: Database session
        images: Map of filename ("uuid.ext") to base64 payload
        only: Restrict the import to these filenames

    Returns:
        Tuple of (imported_count, errors)
    """
    wanted = None if only is None else set(only)
    imported = 0
    errors: list[str] = []

    for filename, payload in images.items():
        if wanted is not None and filename not in wanted:
            continue
        if not is_safe_image_filename(filename):
            errors.append(f"Image {filename!r}: invalid filename")
            continue
        image_id = filename_to_image_id(filename)
        if db.get(QuestionImage, image_id) is not None:
            continue
        try:
            data = decode_base64_image(payload)
        except ValueError as e:
            logger.warning(f"Skipping image {filename}: {e}")
            errors.append(f"Image {filename}: {e}")
            continue
        if len(data) > MAX_IMAGE_SIZE_BYTES:
            errors.append(f"Image {filename}: exceeds {MAX_IMAGE_SIZE_BYTES} bytes")
            continue

        db.add(
            QuestionImage(
                id=image_id,
                filename=filename,
                blob=data,
                mime_type=guess_image_mime(filename),
                created_at=utc_now(),
            )
        )
        db.flush()
        imported += 1

    return imported, errors


def build_image_map(db: DbSession, texts: Iterable[str | None]) -> dict[str, str]:
    """Collect images referenced in the texts as a filename -> base64 map."""
    filenames: dict[str, None] = {}
    for text in texts:
        for filename in extract_image_filenames(text):
            filenames[filename] = None

    image_map: dict[str, str] = {}
    for filename in filenames:
        record = get_question_image(db, filename)
        if record is not None:
            image_map[filename] = encode_base64_image(record.blob)
    return image_map


def delete_question_image(db: DbSession, filename: str) -> bool:
    """
    Delete an image.

    Returns:
        True if deleted, False if not found
    """
    record = get_question_image(db, filename)
    if record is None:
        return False
    db.delete(record)
    db.commit()
    logger.info(f"Deleted question image {filename}")
    return True
