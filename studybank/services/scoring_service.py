"""Pure answer scoring."""
from typing import Any, Mapping

from studybank.models.db.question import AnswerResult, QuestionType
from studybank.utils import normalize_text


def score_test(question: Mapping[str, Any], answer: Mapping[str, Any]) -> AnswerResult:
    """Correct only when the selected option set equals the correct set."""
    correct = set(question.get("correctOptionIds") or [])
    selected = set(answer.get("selectedOptionIds") or [])
    return AnswerResult.CORRECT if correct == selected else AnswerResult.WRONG


def score_completar(question: Mapping[str, Any], answer: Mapping[str, Any]) -> AnswerResult:
    """Every blank must match one of its accepted answers after normalization."""
    blank_answers = answer.get("blankAnswers") or {}
    for blank in question.get("blanks") or []:
        user_input = normalize_text(blank_answers.get(blank["id"]) or "")
        accepted = {normalize_text(value) for value in blank.get("accepted") or []}
        if user_input not in accepted:
            return AnswerResult.WRONG
    return AnswerResult.CORRECT


def score_answer(
    question: Mapping[str, Any], answer: Mapping[str, Any]
) -> AnswerResult | None:
    """
    Score an answer according to the question type.

    Free-text types (DESARROLLO, PRACTICO) are graded manually: the answer's
    ``manualResult`` is returned as is, ``None`` meaning ungraded.
    """
    question_type = QuestionType(question["type"])
    if question_type is QuestionType.TEST:
        return score_test(question, answer)
    if question_type is QuestionType.COMPLETAR:
        return score_completar(question, answer)
    if question_type in (QuestionType.DESARROLLO, QuestionType.PRACTICO):
        manual = answer.get("manualResult")
        return AnswerResult(manual) if manual is not None else None
    raise ValueError(f"Unsupported question type: {question_type}")


def keyword_match_count(question: Mapping[str, Any], free_text: str) -> int:
    """Count keywords present in the free text (grading hint only)."""
    normalized = normalize_text(free_text or "")
    return sum(
        1 for keyword in question.get("keywords") or [] if normalize_text(keyword) in normalized
    )
