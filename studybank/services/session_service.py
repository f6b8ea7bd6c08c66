"""Service layer for practice sessions."""
import logging
import random
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession, selectinload

from studybank.errors import NotFoundError
from studybank.models.db.practice_session import PracticeSession, SessionAnswer, SessionMode
from studybank.models.db.question import AnswerResult, Question, QuestionType
from studybank.models.question import UserAnswer
from studybank.services.question_service import (
    apply_result_to_stats,
    get_question,
    list_failed_questions,
    list_questions_by_subject,
    list_questions_by_topic,
)
from studybank.services.review_service import sort_by_priority
from studybank.services.scoring_service import score_answer
from studybank.services.subject_service import get_subject
from studybank.utils import utc_now

logger = logging.getLogger(__name__)

MANUALLY_GRADED_TYPES = (QuestionType.DESARROLLO, QuestionType.PRACTICO)


def select_questions(
    db: DbSession,
    subject_id: str,
    mode: SessionMode,
    topic_id: str | None = None,
    rng: random.Random | None = None,
) -> list[Question]:
    """Pick the questions of a session according to its mode."""
    if mode is SessionMode.ALL:
        return list_questions_by_subject(db, subject_id)
    if mode is SessionMode.RANDOM:
        questions = list_questions_by_subject(db, subject_id)
        (rng or random).shuffle(questions)
        return questions
    if mode is SessionMode.FAILED:
        return list_failed_questions(db, subject_id)
    if mode is SessionMode.TOPIC:
        if not topic_id:
            raise ValueError("topic mode requires a topic id")
        return [q for q in list_questions_by_topic(db, topic_id) if q.subject_id == subject_id]
    if mode is SessionMode.SMART:
        return sort_by_priority(list_questions_by_subject(db, subject_id))
    raise ValueError(f"Unsupported session mode: {mode}")


def create_session(
    db: DbSession,
    subject_id: str,
    mode: SessionMode | str,
    topic_id: str | None = None,
    limit: int | None = None,
    rng: random.Random | None = None,
) -> PracticeSession:
    """
    Start a practice session.

    Args:
        db: Database session
        subject_id: Subject to practice
        mode: random, all, failed, topic or smart
        topic_id: Topic to practice (topic mode only)
        limit: Maximum number of questions
        rng: Random source for random mode

    Returns:
        The new session with its ordered question ids
    """
    if not get_subject(db, subject_id):
        raise NotFoundError("Subject not found")
    mode = SessionMode(mode)
    if limit is not None and limit < 1:
        raise ValueError("limit must be positive")

    questions = select_questions(db, subject_id, mode, topic_id, rng)
    if limit is not None:
        questions = questions[:limit]
    if not questions:
        raise ValueError("No questions available for this session")

    session = PracticeSession(
        subject_id=subject_id,
        mode=mode.value,
        topic_id=topic_id if mode is SessionMode.TOPIC else None,
        created_at=utc_now(),
    )
    session.question_ids = [q.id for q in questions]
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(f"Started {mode.value} session {session.id} with {len(questions)} questions")
    return session


def get_session(db: DbSession, session_id: str) -> PracticeSession | None:
    """Get session by ID with answers loaded."""
    return db.execute(
        select(PracticeSession)
        .options(selectinload(PracticeSession.answers))
        .where(PracticeSession.id == session_id)
    ).scalar_one_or_none()


def _open_session(db: DbSession, session_id: str) -> PracticeSession:
    session = get_session(db, session_id)
    if not session:
        raise NotFoundError("Session not found")
    if session.is_finished:
        raise ValueError("Session is already finished")
    return session


def _apply_stats(question: Question, result: AnswerResult, seen_at: str) -> None:
    question.stats = apply_result_to_stats(question.stats, result, seen_at)
    question.updated_at = seen_at


def record_answer(
    db: DbSession,
    session_id: str,
    answer: UserAnswer | dict[str, Any],
) -> SessionAnswer:
    """
    Score and store an answer.

    TEST and COMPLETAR answers are scored right away; free-text answers stay
    ungraded unless they carry a manualResult. Question stats change only
    when there is a result.
    """
    answer = UserAnswer.model_validate(answer)
    session = _open_session(db, session_id)
    if answer.questionId not in session.question_ids:
        raise ValueError("Question is not part of this session")
    question = get_question(db, answer.questionId)
    if not question:
        raise NotFoundError("Question not found")

    payload = answer.model_dump(mode="json", exclude_none=True)
    result = score_answer(question.to_dict(), payload)
    now = utc_now()

    record = SessionAnswer(
        session_id=session.id,
        question_id=question.id,
        free_text=answer.freeText,
        manual_result=answer.manualResult.value if answer.manualResult else None,
        result=result.value if result else None,
        answered_at=now,
    )
    record.selected_option_ids = answer.selectedOptionIds
    record.blank_answers = answer.blankAnswers
    db.add(record)

    if result is not None:
        _apply_stats(question, result, now)

    db.commit()
    db.refresh(record)
    return record


def grade_answer(
    db: DbSession,
    session_id: str,
    question_id: str,
    result: AnswerResult | str,
) -> SessionAnswer:
    """Apply a manual grade to a pending free-text answer."""
    result = AnswerResult(result)
    session = _open_session(db, session_id)
    record = session.answer_for(question_id)
    if not record:
        raise NotFoundError("Answer not found")
    question = get_question(db, question_id)
    if not question:
        raise NotFoundError("Question not found")
    if question.question_type not in MANUALLY_GRADED_TYPES:
        raise ValueError(f"{question.type} answers are scored automatically")
    if record.result is not None:
        raise ValueError("Answer is already graded")

    now = utc_now()
    record.manual_result = result.value
    record.result = result.value
    _apply_stats(question, result, now)

    db.commit()
    db.refresh(record)
    return record


def summarize_session(session: PracticeSession) -> dict[str, int]:
    """Count latest answers per question by outcome."""
    latest = {answer.question_id: answer for answer in session.answers}
    results = [answer.result for answer in latest.values()]
    return {
        "total": len(session.question_ids),
        "answered": len(latest),
        "correct": results.count(AnswerResult.CORRECT.value),
        "wrong": results.count(AnswerResult.WRONG.value),
        "ungraded": results.count(None),
    }


def finish_session(db: DbSession, session_id: str) -> PracticeSession:
    """Close a session; further answers are rejected."""
    session = _open_session(db, session_id)
    session.finished_at = utc_now()
    db.commit()
    db.refresh(session)
    summary = summarize_session(session)
    logger.info(
        f"Finished session {session.id}: {summary['correct']}/{summary['total']} correct, "
        f"{summary['ungraded']} ungraded"
    )
    return session


def list_sessions(
    db: DbSession,
    subject_id: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[PracticeSession]:
    """List sessions, newest first, optionally for one subject."""
    query = select(PracticeSession)
    if subject_id:
        query = query.where(PracticeSession.subject_id == subject_id)
    query = query.order_by(PracticeSession.created_at.desc()).limit(limit).offset(offset)
    return list(db.execute(query).scalars().all())


def delete_session(db: DbSession, session_id: str) -> bool:
    """Delete a session and all its answers."""
    session = db.get(PracticeSession, session_id)
    if not session:
        return False
    db.delete(session)
    db.commit()
    return True
