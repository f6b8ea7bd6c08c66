"""Service layer for subjects and topics."""
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session as DbSession

from studybank.errors import NotFoundError
from studybank.models.db.question import Question
from studybank.models.db.subject import Subject, Topic
from studybank.utils import slugify, utc_now

logger = logging.getLogger(__name__)

SUBJECT_FIELDS = ("name", "color", "icon", "exam_date")
TOPIC_FIELDS = ("title", "order", "tags", "pdf_filename")


# Subjects


def list_subjects(db: DbSession) -> list[Subject]:
    """List subjects in creation order."""
    stmt = select(Subject).order_by(Subject.created_at, Subject.id)
    return list(db.execute(stmt).scalars().all())


def get_subject(db: DbSession, subject_id: str) -> Subject | None:
    """Get subject by id."""
    return db.get(Subject, subject_id)


def find_subject_by_slug(db: DbSession, subject_key: str) -> Subject | None:
    """Find the first subject whose slugified name equals the key."""
    for subject in list_subjects(db):
        if slugify(subject.name) == subject_key:
            return subject
    return None


def create_subject(
    db: DbSession,
    name: str,
    color: str | None = None,
    icon: str | None = None,
    exam_date: str | None = None,
) -> Subject:
    """Create a new subject."""
    cleaned = name.strip()
    if not cleaned:
        raise ValueError("Subject name is required")
    now = utc_now()
    subject = Subject(
        name=cleaned,
        color=color,
        icon=icon,
        exam_date=exam_date,
        created_at=now,
        updated_at=now,
    )
    db.add(subject)
    db.commit()
    db.refresh(subject)
    return subject


def update_subject(db: DbSession, subject_id: str, **changes: object) -> Subject:
    """Update subject fields."""
    subject = get_subject(db, subject_id)
    if not subject:
        raise NotFoundError("Subject not found")
    for field, value in changes.items():
        if field not in SUBJECT_FIELDS:
            raise ValueError(f"Unknown subject field: {field}")
        setattr(subject, field, value)
    subject.updated_at = utc_now()
    db.commit()
    db.refresh(subject)
    return subject


def delete_subject(db: DbSession, subject_id: str) -> None:
    """Delete a subject with its topics, questions, sessions and anchors."""
    subject = get_subject(db, subject_id)
    if not subject:
        raise NotFoundError("Subject not found")
    db.delete(subject)
    db.commit()
    logger.info(f"Deleted subject {subject_id}")


# Topics


def list_topics(db: DbSession, subject_id: str) -> list[Topic]:
    """List topics of a subject in display order."""
    stmt = (
        select(Topic)
        .where(Topic.subject_id == subject_id)
        .order_by(Topic.order, Topic.created_at, Topic.id)
    )
    return list(db.execute(stmt).scalars().all())


def get_topic(db: DbSession, topic_id: str) -> Topic | None:
    """Get topic by id."""
    return db.get(Topic, topic_id)


def find_topic_by_slug(db: DbSession, subject_id: str, topic_key: str) -> Topic | None:
    """Find a topic of the subject whose slugified title equals the key."""
    for topic in list_topics(db, subject_id):
        if slugify(topic.title) == topic_key:
            return topic
    return None


def next_topic_order(db: DbSession, subject_id: str) -> int:
    """Order value that appends after the subject's existing topics."""
    stmt = select(func.max(Topic.order)).where(Topic.subject_id == subject_id)
    current = db.execute(stmt).scalar()
    return 0 if current is None else current + 1


def create_topic(
    db: DbSession,
    subject_id: str,
    title: str,
    order: int | None = None,
    tags: list[str] | None = None,
    pdf_filename: str | None = None,
) -> Topic:
    """Create a topic; appended after existing topics unless order is given."""
    if not get_subject(db, subject_id):
        raise NotFoundError("Subject not found")
    cleaned = title.strip()
    if not cleaned:
        raise ValueError("Topic title is required")
    now = utc_now()
    topic = Topic(
        subject_id=subject_id,
        title=cleaned,
        order=next_topic_order(db, subject_id) if order is None else order,
        pdf_filename=pdf_filename,
        created_at=now,
        updated_at=now,
    )
    topic.tags = tags
    db.add(topic)
    db.commit()
    db.refresh(topic)
    return topic


def update_topic(db: DbSession, topic_id: str, **changes: object) -> Topic:
    """Update topic fields."""
    topic = get_topic(db, topic_id)
    if not topic:
        raise NotFoundError("Topic not found")
    for field, value in changes.items():
        if field not in TOPIC_FIELDS:
            raise ValueError(f"Unknown topic field: {field}")
        setattr(topic, field, value)
    topic.updated_at = utc_now()
    db.commit()
    db.refresh(topic)
    return topic


def delete_topic(db: DbSession, topic_id: str) -> None:
    """
    Delete a topic.

    Questions that reference it keep their topic id; readers resolve it to
    None (see resolve_question_topic).
    """
    topic = get_topic(db, topic_id)
    if not topic:
        raise NotFoundError("Topic not found")
    db.delete(topic)
    db.commit()


def resolve_question_topic(db: DbSession, question: Question) -> Topic | None:
    """Resolve the primary topic of a question, None when it is gone."""
    return get_topic(db, question.topic_id)
