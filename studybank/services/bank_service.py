"""
Whole-bank snapshots.

Two ways back in:

- import_bank restores or clones a snapshot: every row gets a fresh id and
  references are rewritten in one pass. Importing twice gives two copies.
- merge_global_bank federates a shared bank: subjects and topics are
  matched by slug and questions deduplicated by content hash, so it can run
  on every start without duplicating data.
"""
import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession

from studybank.config import BANK_FORMAT_VERSION, BANK_KIND
from studybank.errors import PackValidationError
from studybank.models.bank import (
    BankExport,
    GlobalBankSyncResult,
    ImportBankResult,
    PdfAnchorRecord,
    QuestionRecord,
)
from studybank.models.db.pdf_anchor import PENDING_PDF_ID, PdfAnchor
from studybank.models.db.question import Question, empty_stats
from studybank.models.db.subject import Subject, Topic, new_id
from studybank.models.question import QuestionStats
from studybank.services.hashing_service import compute_content_hash
from studybank.services.question_service import exists_by_hash, normalize_topic_ids
from studybank.services.settings_service import mark_global_bank_synced
from studybank.services.subject_service import list_subjects, list_topics, next_topic_order
from studybank.utils import slugify, utc_now

logger = logging.getLogger(__name__)

# Question wire fields rewritten on import
_REFERENCE_FIELDS = ("id", "subjectId", "topicId", "topicIds", "pdfAnchorId", "stats")


def _rows_for(db: DbSession, model: type, subject_ids: list[str] | None) -> list[Any]:
    stmt = select(model)
    if subject_ids:
        stmt = stmt.where(model.subject_id.in_(subject_ids))
    return list(db.execute(stmt).scalars().all())


def export_bank(db: DbSession, subject_ids: list[str] | None = None) -> BankExport:
    """
    Snapshot subjects, topics, questions and pdf anchors.

    Args:
        db: Database session
        subject_ids: Restrict the snapshot to these subjects (all when empty)

    Returns:
        Versioned bank envelope, stats and exam dates included
    """
    subjects = list_subjects(db)
    if subject_ids:
        subjects = [s for s in subjects if s.id in subject_ids]

    return BankExport.model_validate(
        {
            "version": BANK_FORMAT_VERSION,
            "kind": BANK_KIND,
            "exportedAt": utc_now(),
            "subjects": [s.to_dict() for s in subjects],
            "topics": [t.to_dict() for t in _rows_for(db, Topic, subject_ids)],
            "questions": [q.to_dict() for q in _rows_for(db, Question, subject_ids)],
            "pdfAnchors": [a.to_dict() for a in _rows_for(db, PdfAnchor, subject_ids)],
        }
    )


def export_global_bank(db: DbSession, subject_ids: list[str] | None = None) -> BankExport:
    """
    Snapshot meant to be shared: exam dates removed, stats zeroed and pack
    provenance dropped.
    """
    bank = export_bank(db, subject_ids)
    return bank.model_copy(
        update={
            "subjects": [s.model_copy(update={"examDate": None}) for s in bank.subjects],
            "questions": [
                q.model_copy(update={"stats": QuestionStats(), "sourcePackId": None})
                for q in bank.questions
            ],
        }
    )


def parse_bank_export(raw: object) -> BankExport:
    """Validate a bank envelope."""
    if not isinstance(raw, dict):
        raise PackValidationError("Bank export must be a JSON object")
    version = raw.get("version")
    # bool is an int subclass and 1.0 == 1
    if (
        raw.get("kind") != BANK_KIND
        or type(version) is not int
        or version != BANK_FORMAT_VERSION
    ):
        raise PackValidationError(
            f"Not a bank export v{BANK_FORMAT_VERSION} "
            f"(kind={raw.get('kind')!r}, version={version!r})"
        )
    try:
        return BankExport.model_validate(raw)
    except ValidationError as e:
        raise PackValidationError(f"Invalid bank export: {e}") from e


def _question_from_record(
    record: QuestionRecord,
    subject_id: str,
    topic_id: str,
    created_at: str,
    updated_at: str,
) -> Question:
    data = record.model_dump(mode="json", exclude_none=True)
    question = Question(
        id=new_id(),
        subject_id=subject_id,
        topic_id=topic_id,
        type=data["type"],
        prompt=data["prompt"],
        created_at=created_at,
        updated_at=updated_at,
    )
    question.apply_fields({k: v for k, v in data.items() if k not in _REFERENCE_FIELDS})
    return question


def _anchor_from_record(record: PdfAnchorRecord, subject_id: str, pdf_id: str) -> PdfAnchor:
    anchor = PdfAnchor(
        id=new_id(),
        subject_id=subject_id,
        pdf_id=pdf_id,
        page=record.page,
        label=record.label,
    )
    anchor.bbox = record.bbox.model_dump() if record.bbox else None
    return anchor


def import_bank(db: DbSession, raw: object) -> ImportBankResult:
    """
    Import a bank snapshot additively under fresh identifiers.

    References to rows outside the snapshot are never carried over: topics
    and questions of unknown subjects are skipped with an error, unknown
    additional topics are dropped and unknown anchors are cleared.

    Raises:
        PackValidationError: The envelope is malformed (nothing written)
    """
    bank = parse_bank_export(raw)
    result = ImportBankResult()
    logger.info(
        f"Importing bank: {len(bank.subjects)} subjects, {len(bank.topics)} topics, "
        f"{len(bank.questions)} questions"
    )

    subject_ids: dict[str, str] = {}
    for record in bank.subjects:
        subject = Subject(
            id=new_id(),
            name=record.name,
            color=record.color,
            icon=record.icon,
            exam_date=record.examDate,
            created_at=record.createdAt,
            updated_at=record.updatedAt,
        )
        db.add(subject)
        subject_ids[record.id] = subject.id
        result.subjectsAdded += 1

    topic_ids: dict[str, str] = {}
    for record in bank.topics:
        subject_id = subject_ids.get(record.subjectId)
        if subject_id is None:
            result.errors.append(f"Topic {record.id}: unknown subject {record.subjectId}")
            continue
        topic = Topic(
            id=new_id(),
            subject_id=subject_id,
            title=record.title,
            order=record.order,
            pdf_filename=record.pdfFilename,
            created_at=record.createdAt,
            updated_at=record.updatedAt,
        )
        topic.tags = record.tags
        db.add(topic)
        topic_ids[record.id] = topic.id
        result.topicsAdded += 1

    # One fresh pdf id per distinct source pdf id
    pdf_ids: dict[str, str] = {PENDING_PDF_ID: PENDING_PDF_ID}
    anchor_ids: dict[str, str] = {}
    for record in bank.pdfAnchors:
        subject_id = subject_ids.get(record.subjectId)
        if subject_id is None:
            result.errors.append(f"PdfAnchor {record.id}: unknown subject {record.subjectId}")
            continue
        pdf_id = pdf_ids.setdefault(record.pdfId, new_id())
        anchor = _anchor_from_record(record, subject_id, pdf_id)
        db.add(anchor)
        anchor_ids[record.id] = anchor.id
        result.pdfAnchorsAdded += 1

    for record in bank.questions:
        subject_id = subject_ids.get(record.subjectId)
        topic_id = topic_ids.get(record.topicId)
        if subject_id is None or topic_id is None:
            result.errors.append(f"Question {record.id}: unknown subject or topic")
            continue
        question = _question_from_record(
            record, subject_id, topic_id, record.createdAt, record.updatedAt
        )
        question.topic_ids = normalize_topic_ids(
            topic_id, [topic_ids[tid] for tid in record.topicIds or [] if tid in topic_ids]
        )
        question.pdf_anchor_id = anchor_ids.get(record.pdfAnchorId) if record.pdfAnchorId else None
        question.stats = record.stats.model_dump(mode="json", exclude_none=True)
        db.add(question)
        result.questionsAdded += 1

    db.commit()
    logger.info(
        f"Bank imported: {result.subjectsAdded} subjects, {result.topicsAdded} topics, "
        f"{result.questionsAdded} questions, {len(result.errors)} errors"
    )
    return result


def merge_global_bank(db: DbSession, raw: object) -> GlobalBankSyncResult:
    """
    Merge a shared bank by identity: subject slug, topic slug within the
    subject, question content hash within the subject.

    Local exam dates and stats are never touched; new questions start with
    empty stats. Safe to run repeatedly.

    Raises:
        PackValidationError: The envelope is malformed (nothing written)
    """
    bank = parse_bank_export(raw)
    result = GlobalBankSyncResult()
    now = utc_now()

    subject_by_slug: dict[str, Subject] = {}
    for subject in list_subjects(db):
        subject_by_slug.setdefault(slugify(subject.name), subject)

    subjects: dict[str, Subject] = {}
    for record in bank.subjects:
        slug = slugify(record.name)
        subject = subject_by_slug.get(slug)
        if subject is None:
            # exam dates are personal; never imported
            subject = Subject(
                id=new_id(),
                name=record.name,
                color=record.color,
                icon=record.icon,
                created_at=now,
                updated_at=now,
            )
            db.add(subject)
            db.flush()
            subject_by_slug[slug] = subject
            result.subjectsAdded += 1
        subjects[record.id] = subject

    topic_by_key: dict[tuple[str, str], Topic] = {}
    for subject in {s.id: s for s in subjects.values()}.values():
        for topic in list_topics(db, subject.id):
            topic_by_key.setdefault((subject.id, slugify(topic.title)), topic)

    topics: dict[str, Topic] = {}
    for record in bank.topics:
        subject = subjects.get(record.subjectId)
        if subject is None:
            result.errors.append(f"Topic {record.title!r}: unknown subject {record.subjectId}")
            continue
        key = (subject.id, slugify(record.title))
        topic = topic_by_key.get(key)
        if topic is None:
            topic = Topic(
                id=new_id(),
                subject_id=subject.id,
                title=record.title,
                order=next_topic_order(db, subject.id),
                pdf_filename=record.pdfFilename,
                created_at=now,
                updated_at=now,
            )
            topic.tags = record.tags
            db.add(topic)
            db.flush()
            topic_by_key[key] = topic
            result.topicsAdded += 1
        topics[record.id] = topic

    anchors = {record.id: record for record in bank.pdfAnchors}

    for record in bank.questions:
        subject = subjects.get(record.subjectId)
        topic = topics.get(record.topicId)
        if subject is None or topic is None:
            result.errors.append(f"Question {record.id}: unknown subject or topic")
            continue

        data = record.model_dump(mode="json", exclude_none=True)
        content_hash = compute_content_hash(data, slugify(topic.title))
        if exists_by_hash(db, content_hash, subject.id):
            result.skipped += 1
            continue

        question = _question_from_record(record, subject.id, topic.id, now, now)
        question.topic_ids = normalize_topic_ids(
            topic.id, [topics[tid].id for tid in record.topicIds or [] if tid in topics]
        )
        question.source_pack_id = None
        question.content_hash = content_hash
        question.stats = empty_stats()

        anchor_record = anchors.get(record.pdfAnchorId) if record.pdfAnchorId else None
        if anchor_record is not None:
            anchor = _anchor_from_record(anchor_record, subject.id, anchor_record.pdfId)
            db.add(anchor)
            question.pdf_anchor_id = anchor.id
        else:
            question.pdf_anchor_id = None

        db.add(question)
        db.flush()
        result.questionsAdded += 1

    mark_global_bank_synced(db, now)
    db.commit()
    logger.info(
        f"Global bank merged: {result.subjectsAdded} subjects, {result.topicsAdded} topics, "
        f"{result.questionsAdded} questions added, {result.skipped} already present"
    )
    return result
