"""Deterministic content fingerprint of a question.

The hash only depends on semantic content: type, normalized prompt, the topic
slug and the normalized type-specific answer data. Ids, stats, timestamps
and whitespace differences do not affect it. Option texts and accepted
answers are sorted so that author-chosen ordering does not matter, and the
correct TEST options are identified by their text rather than their id.
Blank order is kept because it follows the cloze text.
"""
import hashlib
from typing import Any, Mapping

from studybank.models.db.question import QuestionType
from studybank.utils import normalize_text, slugify

HASH_PREFIX = "sha256:"
PART_SEPARATOR = "::"


def _field(item: Any, name: str) -> Any:
    """Read a field from a mapping or a model instance."""
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _test_parts(question: Mapping[str, Any]) -> list[str]:
    options = question.get("options") or []
    text_by_id = {
        str(_field(option, "id")): normalize_text(_field(option, "text") or "", True)
        for option in options
    }
    option_texts = sorted(normalize_text(_field(option, "text") or "", True) for option in options)
    # correct answers by option text; option ids are local to each author
    correct = sorted(
        text_by_id.get(str(option_id), str(option_id))
        for option_id in question.get("correctOptionIds") or []
    )
    return ["|".join(option_texts), ",".join(correct)]


def _free_text_parts(question: Mapping[str, Any]) -> list[str]:
    return [normalize_text(question.get("modelAnswer") or "")]


def _cloze_parts(question: Mapping[str, Any]) -> list[str]:
    blanks = []
    for blank in question.get("blanks") or []:
        accepted = sorted(normalize_text(answer, True) for answer in _field(blank, "accepted") or [])
        blanks.append(",".join(accepted))
    return [normalize_text(question.get("clozeText") or ""), "|".join(blanks)]


def content_hash_parts(question: Mapping[str, Any], topic_key: str) -> list[str]:
    """Ordered list of normalized parts that make up the hash input."""
    question_type = QuestionType(question["type"])
    parts = [
        question_type.value,
        normalize_text(question.get("prompt") or ""),
        slugify(topic_key),
    ]
    if question_type is QuestionType.TEST:
        parts.extend(_test_parts(question))
    elif question_type in (QuestionType.DESARROLLO, QuestionType.PRACTICO):
        parts.extend(_free_text_parts(question))
    elif question_type is QuestionType.COMPLETAR:
        parts.extend(_cloze_parts(question))
    else:
        raise ValueError(f"Unsupported question type: {question_type}")
    return parts


def compute_content_hash(question: Mapping[str, Any], topic_key: str) -> str:
    """
    Compute the content hash of a question in wire (camelCase) form.

    Args:
        question: Question or contribution question as a dict
        topic_key: Primary topic key or title (slugified here)

    Returns:
        "sha256:" followed by the hex digest
    """
    raw = PART_SEPARATOR.join(content_hash_parts(question, topic_key))
    return HASH_PREFIX + hashlib.sha256(raw.encode("utf-8")).hexdigest()


def compute_contribution_hash(question: Mapping[str, Any]) -> str:
    """Hash a contribution question using its own topicKey."""
    return compute_content_hash(question, question["topicKey"])
