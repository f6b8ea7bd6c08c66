"""Contribution pack merge and export.

A contribution pack addresses subjects and topics by slug instead of local
ids, so it can be merged into any database:

1. every declared target subject/topic is resolved by slug or created,
2. each question is resolved against the declared keys, hashed and
   skipped when the subject already holds the same content,
3. images referenced by newly created questions are stored once.

Per-question problems are collected in the result; only a malformed
envelope rejects the pack, and that happens before any write.
"""
import json
import logging
import uuid
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession

from studybank.config import BANK_FORMAT_VERSION, CONTRIBUTION_KIND
from studybank.errors import NotFoundError, PackValidationError, ResolutionError
from studybank.models.contribution import (
    ContributionImportResult,
    ContributionPack,
    ContributionQuestion,
    ContributionTarget,
    ContributionTopic,
)
from studybank.models.db.pdf_anchor import PENDING_PDF_ID, PdfAnchor
from studybank.models.db.question import Question, QuestionType, empty_stats
from studybank.models.db.subject import Subject, Topic, new_id
from studybank.services.hashing_service import compute_content_hash
from studybank.services.image_service import build_image_map, import_images
from studybank.services.question_service import (
    exists_by_hash,
    list_questions_by_subject,
    list_questions_by_topic,
    normalize_topic_ids,
)
from studybank.services.settings_service import is_pack_imported, mark_pack_imported
from studybank.services.subject_service import (
    find_subject_by_slug,
    find_topic_by_slug,
    get_subject,
    list_topics,
    next_topic_order,
)
from studybank.utils import json_load, references_image, slugify, utc_now

logger = logging.getLogger(__name__)

# Type-specific and descriptive fields copied verbatim onto new questions
COPIED_FIELDS = (
    "explanation",
    "difficulty",
    "tags",
    "origin",
    "options",
    "correctOptionIds",
    "modelAnswer",
    "keywords",
    "numericAnswer",
    "clozeText",
    "blanks",
)

# Texts scanned for question-images/ references
IMAGE_TEXT_FIELDS = ("prompt", "model_answer", "explanation", "cloze_text")


def load_pack_file(path: Path) -> object:
    """Read a pack file from disk as raw JSON."""
    try:
        return json_load(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise PackValidationError(f"Invalid JSON in {path.name}: {e}") from e


def _format_validation_error(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in item['loc']) or 'value'}: {item['msg']}"
        for item in error.errors()
    )


def parse_contribution_pack(raw: object) -> ContributionPack:
    """Validate the envelope of a contribution pack."""
    if not isinstance(raw, dict):
        raise PackValidationError("Contribution pack must be a JSON object")
    version = raw.get("version")
    # bool is an int subclass and 1.0 == 1
    if (
        raw.get("kind") != CONTRIBUTION_KIND
        or type(version) is not int
        or version != BANK_FORMAT_VERSION
    ):
        raise PackValidationError(
            f"Not a contribution pack v{BANK_FORMAT_VERSION} "
            f"(kind={raw.get('kind')!r}, version={version!r})"
        )
    try:
        return ContributionPack.model_validate(raw)
    except ValidationError as e:
        raise PackValidationError(f"Invalid contribution pack: {_format_validation_error(e)}") from e


def check_required_fields(question: ContributionQuestion) -> None:
    """Raise ResolutionError when a required field for the type is missing."""
    if not question.prompt.strip():
        raise ResolutionError("prompt is required")

    question_type = question.type
    if question_type is QuestionType.TEST:
        if not question.options:
            raise ResolutionError("TEST question requires options")
        if not question.correctOptionIds:
            raise ResolutionError("TEST question requires correctOptionIds")
        option_ids = {option.id for option in question.options}
        unknown = [oid for oid in question.correctOptionIds if oid not in option_ids]
        if unknown:
            raise ResolutionError(f"correctOptionIds reference unknown options: {', '.join(unknown)}")
    elif question_type is QuestionType.COMPLETAR:
        if not (question.clozeText or "").strip():
            raise ResolutionError("COMPLETAR question requires clozeText")
        if not question.blanks:
            raise ResolutionError("COMPLETAR question requires blanks")
    elif question_type in (QuestionType.DESARROLLO, QuestionType.PRACTICO):
        pass
    else:
        raise ResolutionError(f"Unsupported question type: {question_type}")


class PackResolver:
    """
    Resolves pack keys to local subjects and topics.

    Only keys declared in the pack targets are resolvable; declared entities
    missing locally are created by resolve_targets. An existing subject or
    topic matches by its key or by the slug of the declared name.
    """

    def __init__(self, db: DbSession, targets: list[ContributionTarget], now: str):
        self.db = db
        self.now = now
        self.targets = targets
        self.declared: dict[str, set[str]] = {}
        for target in targets:
            self.declared.setdefault(target.subjectKey, set()).update(
                topic.topicKey for topic in target.topics
            )

        self.subject_by_key: dict[str, Subject] = {}
        self.topic_by_key: dict[tuple[str, str], Topic] = {}

    def resolve_targets(self, result: ContributionImportResult) -> None:
        """Find or create every declared subject and topic."""
        for target in self.targets:
            subject = self._find_subject(target)
            if subject is None:
                subject = self._create_subject(target)
                result.subjectsCreated += 1
            self.subject_by_key[target.subjectKey] = subject
            for declared_topic in target.topics:
                key = (subject.id, declared_topic.topicKey)
                if key in self.topic_by_key:
                    continue
                topic = self._find_topic(subject, declared_topic)
                if topic is None:
                    topic = self._create_topic(subject, declared_topic)
                    result.topicsCreated += 1
                self.topic_by_key[key] = topic

    def resolve_subject(self, subject_key: str) -> Subject:
        if subject_key not in self.declared:
            raise ResolutionError(f"subjectKey {subject_key!r} is not declared in targets")
        return self.subject_by_key[subject_key]

    def resolve_topic(self, subject: Subject, subject_key: str, topic_key: str) -> Topic:
        if topic_key not in self.declared.get(subject_key, set()):
            raise ResolutionError(
                f"topicKey {topic_key!r} is not declared in targets for {subject_key!r}"
            )
        return self.topic_by_key[(subject.id, topic_key)]

    def _find_subject(self, target: ContributionTarget) -> Subject | None:
        subject = self.subject_by_key.get(target.subjectKey)
        if subject is None:
            subject = find_subject_by_slug(self.db, target.subjectKey)
        name_key = slugify(target.subjectName)
        if subject is None and name_key:
            subject = find_subject_by_slug(self.db, name_key)
        return subject

    def _find_topic(self, subject: Subject, declared_topic: ContributionTopic) -> Topic | None:
        topic = find_topic_by_slug(self.db, subject.id, declared_topic.topicKey)
        title_key = slugify(declared_topic.topicTitle)
        if topic is None and title_key:
            topic = find_topic_by_slug(self.db, subject.id, title_key)
        return topic

    def _create_subject(self, target: ContributionTarget) -> Subject:
        name = target.subjectName.strip() or target.subjectKey
        if slugify(name) != target.subjectKey:
            logger.info(
                f"Subject name {name!r} does not slugify to its key {target.subjectKey!r}"
            )
        subject = Subject(id=new_id(), name=name, created_at=self.now, updated_at=self.now)
        self.db.add(subject)
        self.db.flush()
        logger.info(f"Created subject {name!r}")
        return subject

    def _create_topic(self, subject: Subject, declared_topic: ContributionTopic) -> Topic:
        title = declared_topic.topicTitle.strip() or declared_topic.topicKey
        topic = Topic(
            id=new_id(),
            subject_id=subject.id,
            title=title,
            order=next_topic_order(self.db, subject.id),
            created_at=self.now,
            updated_at=self.now,
        )
        self.db.add(topic)
        self.db.flush()
        logger.info(f"Created topic {title!r} in subject {subject.name!r}")
        return topic


def _merge_question(
    db: DbSession,
    pack: ContributionPack,
    raw_question: Any,
    resolver: PackResolver,
    now: str,
    result: ContributionImportResult,
) -> Question | None:
    """Merge one pack question; returns the new question or None when deduplicated."""
    try:
        contribution = ContributionQuestion.model_validate(raw_question)
    except ValidationError as e:
        raise ResolutionError(f"invalid question: {_format_validation_error(e)}") from e
    check_required_fields(contribution)

    subject = resolver.resolve_subject(contribution.subjectKey)
    topic = resolver.resolve_topic(subject, contribution.subjectKey, contribution.topicKey)
    extra_topics = [
        resolver.resolve_topic(subject, contribution.subjectKey, key)
        for key in contribution.topicKeys or []
    ]

    data = contribution.model_dump(mode="json", exclude_none=True)
    content_hash = compute_content_hash(data, contribution.topicKey)
    if exists_by_hash(db, content_hash, subject.id):
        result.questionsDeduplicated += 1
        return None

    question = Question(
        id=new_id(),
        subject_id=subject.id,
        topic_id=topic.id,
        type=contribution.type.value,
        prompt=contribution.prompt,
        created_at=now,
        updated_at=now,
    )
    question.apply_fields({key: data[key] for key in COPIED_FIELDS if key in data})
    question.topic_ids = normalize_topic_ids(topic.id, [t.id for t in extra_topics])
    question.content_hash = content_hash
    question.created_by = pack.createdBy
    question.source_pack_id = pack.packId
    question.stats = empty_stats()

    if contribution.pdfAnchor is not None:
        anchor = PdfAnchor(
            id=new_id(),
            subject_id=subject.id,
            pdf_id=PENDING_PDF_ID,
            page=contribution.pdfAnchor.page,
            label=contribution.pdfAnchor.label,
        )
        db.add(anchor)
        question.pdf_anchor_id = anchor.id

    db.add(question)
    db.flush()
    result.questionsImported += 1
    return question


def _question_label(raw_question: Any, index: int) -> str:
    if isinstance(raw_question, dict) and raw_question.get("id"):
        return str(raw_question["id"])
    return f"#{index + 1}"


def _used_image_filenames(filenames: list[str], questions: list[Question]) -> list[str]:
    """Filenames referenced by at least one of the questions."""
    texts = [getattr(q, field) for q in questions for field in IMAGE_TEXT_FIELDS]
    return [
        filename
        for filename in filenames
        if any(references_image(text, filename) for text in texts)
    ]


def import_contribution_pack(db: DbSession, raw: object) -> ContributionImportResult:
    """
    Merge a contribution pack into the local bank.

    Args:
        db: Database session
        raw: Parsed JSON of the pack

    Returns:
        Merge summary with per-question errors

    Raises:
        PackValidationError: The envelope is malformed (nothing written)
    """
    pack = parse_contribution_pack(raw)
    result = ContributionImportResult(packId=pack.packId, createdBy=pack.createdBy)
    result.alreadyImported = is_pack_imported(db, pack.packId)
    logger.info(
        f"Importing contribution pack {pack.packId} by {pack.createdBy!r} "
        f"({len(pack.questions)} questions)"
    )

    now = utc_now()
    resolver = PackResolver(db, pack.targets, now)
    resolver.resolve_targets(result)

    created: list[Question] = []
    for index, raw_question in enumerate(pack.questions):
        try:
            question = _merge_question(db, pack, raw_question, resolver, now, result)
        except ResolutionError as e:
            label = _question_label(raw_question, index)
            logger.warning(f"Skipping question {label}: {e}")
            result.errors.append(f"Question {label}: {e}")
            continue
        if question is not None:
            created.append(question)

    if pack.questionImages:
        used = _used_image_filenames(list(pack.questionImages), created)
        imported, image_errors = import_images(db, pack.questionImages, only=used)
        result.imagesImported = imported
        result.errors.extend(image_errors)

    mark_pack_imported(db, pack.packId)
    db.commit()

    logger.info(
        f"Pack {pack.packId}: {result.questionsImported} imported, "
        f"{result.questionsDeduplicated} duplicates, {result.topicsCreated} new topics, "
        f"{result.subjectsCreated} new subjects, {result.imagesImported} images, "
        f"{len(result.errors)} errors"
    )
    return result


def _contribution_question(
    db: DbSession,
    question: Question,
    subject_key: str,
    topics: dict[str, Topic],
    alias: str,
) -> dict[str, Any]:
    data = question.to_dict()
    item: dict[str, Any] = {
        "id": question.id,
        "subjectKey": subject_key,
        "topicKey": slugify(topics[question.topic_id].title),
        "type": question.type,
        "prompt": question.prompt,
    }
    if question.topic_ids:
        topic_keys = [slugify(topics[tid].title) for tid in question.topic_ids if tid in topics]
        if len(topic_keys) > 1:
            item["topicKeys"] = topic_keys
    for key in COPIED_FIELDS:
        if key in data:
            item[key] = data[key]
    if question.pdf_anchor_id:
        anchor = db.get(PdfAnchor, question.pdf_anchor_id)
        if anchor is not None:
            item["pdfAnchor"] = {"page": anchor.page, "label": anchor.label}
    item["createdBy"] = question.created_by or alias
    if question.content_hash:
        item["contentHash"] = question.content_hash
    return item


def export_contribution_pack(
    db: DbSession,
    subject_id: str,
    alias: str = "",
    topic_id: str | None = None,
) -> ContributionPack:
    """
    Build a contribution pack from local questions.

    Args:
        db: Database session
        subject_id: Subject to export
        alias: Only export questions created by this alias (all when empty)
        topic_id: Restrict to questions of this topic

    Returns:
        Contribution pack with a fresh packId
    """
    subject = get_subject(db, subject_id)
    if not subject:
        raise NotFoundError("Subject not found")

    if topic_id:
        questions = [q for q in list_questions_by_topic(db, topic_id) if q.subject_id == subject_id]
    else:
        questions = list_questions_by_subject(db, subject_id)
    if alias:
        questions = [q for q in questions if q.created_by == alias]

    topics = {topic.id: topic for topic in list_topics(db, subject_id)}
    exportable = []
    for question in questions:
        if question.topic_id not in topics:
            logger.warning(f"Question {question.id} has no topic; not exported")
            continue
        exportable.append(question)

    subject_key = slugify(subject.name)
    declared: dict[str, ContributionTopic] = {}
    for question in exportable:
        for tid in question.all_topic_ids:
            topic = topics.get(tid)
            if topic is not None:
                declared.setdefault(
                    slugify(topic.title),
                    ContributionTopic(topicKey=slugify(topic.title), topicTitle=topic.title),
                )

    items = [_contribution_question(db, q, subject_key, topics, alias) for q in exportable]
    images = build_image_map(
        db, [getattr(q, field) for q in exportable for field in IMAGE_TEXT_FIELDS]
    )

    return ContributionPack(
        version=BANK_FORMAT_VERSION,
        kind=CONTRIBUTION_KIND,
        packId=str(uuid.uuid4()),
        createdBy=alias or "unknown",
        exportedAt=utc_now(),
        targets=[
            ContributionTarget(
                subjectKey=subject_key,
                subjectName=subject.name,
                topics=list(declared.values()),
            )
        ],
        questions=items,
        questionImages=images or None,
    )


def list_pack_questions(db: DbSession, pack_id: str) -> list[Question]:
    """Questions created from a given contribution pack."""
    stmt = select(Question).where(Question.source_pack_id == pack_id)
    return list(db.execute(stmt).scalars().all())
