"""Service layer for questions."""
import logging
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session as DbSession

from studybank.errors import ImmutableFieldError, NotFoundError
from studybank.models.db.question import AnswerResult, Question, QuestionType, empty_stats
from studybank.models.db.subject import Topic
from studybank.services.hashing_service import compute_content_hash
from studybank.services.review_service import calc_next_review
from studybank.utils import slugify, utc_now

logger = logging.getLogger(__name__)

# Wire fields that feed the content hash (besides the primary topic)
HASH_INPUT_FIELDS = frozenset(
    {"prompt", "options", "correctOptionIds", "modelAnswer", "clozeText", "blanks"}
)
# Wire fields a caller may change through update_question
EDITABLE_FIELDS = HASH_INPUT_FIELDS | {
    "topicId",
    "topicIds",
    "explanation",
    "difficulty",
    "tags",
    "origin",
    "keywords",
    "numericAnswer",
    "pdfAnchorId",
}


def topic_key_for(db: DbSession, topic_id: str) -> str:
    """Slug of the topic title, or the raw id when the topic is gone."""
    topic = db.get(Topic, topic_id)
    return slugify(topic.title) if topic else topic_id


def normalize_topic_ids(primary_topic_id: str, topic_ids: list[str] | None) -> list[str] | None:
    """
    Full topic set starting with the primary topic, or None when the
    question only belongs to its primary topic.
    """
    if not topic_ids:
        return None
    ids = [primary_topic_id]
    for topic_id in topic_ids:
        if topic_id not in ids:
            ids.append(topic_id)
    return ids if len(ids) > 1 else None


def refresh_content_hash(db: DbSession, question: Question) -> str:
    """Recompute and store the content hash of a question."""
    question.content_hash = compute_content_hash(
        question.to_dict(), topic_key_for(db, question.topic_id)
    )
    return question.content_hash


def list_questions_by_subject(db: DbSession, subject_id: str) -> list[Question]:
    """List all questions of a subject."""
    stmt = select(Question).where(Question.subject_id == subject_id).order_by(Question.created_at, Question.id)
    return list(db.execute(stmt).scalars().all())


def list_questions_by_topic(db: DbSession, topic_id: str) -> list[Question]:
    """List questions whose primary or additional topics include the topic."""
    stmt = (
        select(Question)
        .where(
            or_(
                Question.topic_id == topic_id,
                Question.topic_ids_json.contains(f'"{topic_id}"'),
            )
        )
        .order_by(Question.created_at, Question.id)
    )
    return [q for q in db.execute(stmt).scalars().all() if topic_id in q.all_topic_ids]


def get_question(db: DbSession, question_id: str) -> Question | None:
    """Get question by id."""
    return db.get(Question, question_id)


def get_questions(db: DbSession, question_ids: list[str]) -> list[Question]:
    """Get questions by ids, keeping the given order and skipping missing ones."""
    if not question_ids:
        return []
    stmt = select(Question).where(Question.id.in_(question_ids))
    by_id = {q.id: q for q in db.execute(stmt).scalars().all()}
    return [by_id[qid] for qid in question_ids if qid in by_id]


def list_failed_questions(db: DbSession, subject_id: str) -> list[Question]:
    """Questions whose last answer was wrong."""
    return [
        q
        for q in list_questions_by_subject(db, subject_id)
        if q.stats.get("lastResult") == AnswerResult.WRONG.value
    ]


def find_by_hash(db: DbSession, content_hash: str, subject_id: str) -> Question | None:
    """Find a question of the subject with the given content hash."""
    stmt = (
        select(Question)
        .where(Question.content_hash == content_hash, Question.subject_id == subject_id)
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def exists_by_hash(db: DbSession, content_hash: str, subject_id: str) -> bool:
    """Check for a question with the same content in the subject."""
    return find_by_hash(db, content_hash, subject_id) is not None


def create_question(db: DbSession, data: dict[str, Any], alias: str | None = None) -> Question:
    """
    Create a question from wire-format data.

    Args:
        db: Database session
        data: Question fields (subjectId, topicId, type, prompt, ...)
        alias: Author alias stored as createdBy

    Returns:
        The persisted question with its content hash
    """
    for required in ("subjectId", "topicId", "type", "prompt"):
        if not data.get(required):
            raise ValueError(f"{required} is required")
    now = utc_now()
    question = Question(
        subject_id=data["subjectId"],
        topic_id=data["topicId"],
        type=QuestionType(data["type"]).value,
        prompt=data["prompt"],
        created_at=now,
        updated_at=now,
    )
    question.apply_fields({k: v for k, v in data.items() if k in EDITABLE_FIELDS})
    question.topic_ids = normalize_topic_ids(question.topic_id, data.get("topicIds"))
    question.created_by = alias or data.get("createdBy")
    question.stats = empty_stats()
    refresh_content_hash(db, question)
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


def update_question(db: DbSession, question_id: str, changes: dict[str, Any]) -> Question:
    """Update question fields; the content hash follows any content change."""
    question = get_question(db, question_id)
    if not question:
        raise NotFoundError("Question not found")
    if "type" in changes and QuestionType(changes["type"]).value != question.type:
        raise ImmutableFieldError("Question type cannot be changed")

    unknown = set(changes) - EDITABLE_FIELDS - {"type"}
    if unknown:
        raise ValueError(f"Unknown question fields: {', '.join(sorted(unknown))}")

    if "topicId" in changes:
        question.topic_id = changes["topicId"]
    question.apply_fields(changes)
    if "topicId" in changes or "topicIds" in changes:
        question.topic_ids = normalize_topic_ids(question.topic_id, question.topic_ids)
    if "prompt" in changes:
        question.prompt = changes["prompt"]
    if HASH_INPUT_FIELDS & set(changes) or "topicId" in changes:
        refresh_content_hash(db, question)
    question.updated_at = utc_now()
    db.commit()
    db.refresh(question)
    return question


def delete_question(db: DbSession, question_id: str) -> None:
    """Delete a question."""
    question = get_question(db, question_id)
    if not question:
        raise NotFoundError("Question not found")
    db.delete(question)
    db.commit()


def duplicate_question(db: DbSession, question_id: str) -> Question:
    """Copy a question under a fresh id with empty stats."""
    original = get_question(db, question_id)
    if not original:
        raise NotFoundError("Question not found")
    now = utc_now()
    data = original.to_dict()
    copy = Question(
        subject_id=original.subject_id,
        topic_id=original.topic_id,
        type=original.type,
        prompt=original.prompt,
        created_at=now,
        updated_at=now,
    )
    copy.apply_fields(data)
    copy.stats = empty_stats()
    db.add(copy)
    db.commit()
    db.refresh(copy)
    return copy


def apply_result_to_stats(
    stats: dict[str, Any], result: AnswerResult | str, seen_at: str | None = None
) -> dict[str, Any]:
    """New stats after an answer: counters, last result and review schedule."""
    result = AnswerResult(result)
    updated = dict(stats)
    updated["seen"] = stats.get("seen", 0) + 1
    updated["correct"] = stats.get("correct", 0) + (1 if result is AnswerResult.CORRECT else 0)
    updated["wrong"] = stats.get("wrong", 0) + (1 if result is AnswerResult.WRONG else 0)
    updated["lastSeenAt"] = seen_at or utc_now()
    updated["lastResult"] = result.value
    updated.update(calc_next_review(stats, result))
    return updated


def update_stats(db: DbSession, question_id: str, result: AnswerResult | str) -> Question | None:
    """Record a practice result on a question (None when it no longer exists)."""
    question = get_question(db, question_id)
    if not question:
        return None
    now = utc_now()
    question.stats = apply_result_to_stats(question.stats, result, now)
    question.updated_at = now
    db.commit()
    db.refresh(question)
    return question
