"""Compact per-subject projection of the question bank."""
from sqlalchemy.orm import Session as DbSession

from studybank.errors import NotFoundError
from studybank.models.compact import CompactQuestion, CompactSubjectExport
from studybank.models.db.question import QuestionType
from studybank.services.question_service import list_questions_by_subject
from studybank.services.subject_service import get_subject, list_subjects, list_topics
from studybank.utils import slugify

TYPE_CODES = {
    QuestionType.TEST: "T",
    QuestionType.DESARROLLO: "D",
    QuestionType.COMPLETAR: "C",
    QuestionType.PRACTICO: "P",
}


def export_compact_subject(db: DbSession, subject_id: str) -> CompactSubjectExport:
    """
    Type code, prompt, stored hash and topic slug of every question.

    Read-only; the stored content hash is reported as is.
    """
    subject = get_subject(db, subject_id)
    if not subject:
        raise NotFoundError("Subject not found")

    topic_slugs = {topic.id: slugify(topic.title) for topic in list_topics(db, subject_id)}
    questions = list_questions_by_subject(db, subject_id)
    return CompactSubjectExport(
        asignatura=subject.name,
        slug=slugify(subject.name),
        total=len(questions),
        preguntas=[
            CompactQuestion(
                t=TYPE_CODES[q.question_type],
                p=q.prompt,
                h=q.content_hash,
                tp=topic_slugs.get(q.topic_id),
            )
            for q in questions
        ],
    )


def export_all_compact_subjects(db: DbSession) -> list[CompactSubjectExport]:
    """Compact export of every subject."""
    return [export_compact_subject(db, subject.id) for subject in list_subjects(db)]
