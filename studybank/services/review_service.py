"""SM-2 style spaced repetition scheduling."""
from datetime import date
from typing import Any, Mapping, Sequence

from studybank.config import DEFAULT_EASE_FACTOR, MIN_EASE_FACTOR
from studybank.models.db.question import AnswerResult
from studybank.utils import add_days_iso, today_iso

# Sorts before any real YYYY-MM-DD date
UNSCHEDULED_SENTINEL = "0000-00-00"


def calc_next_review(
    current: Mapping[str, Any] | None,
    result: AnswerResult | str,
    today: date | None = None,
) -> dict[str, Any]:
    """
    Compute the next review schedule after an answer.

    Quality is binary: 5 for CORRECT, 0 otherwise.

    Args:
        current: Existing stats (easeFactor/interval/repetitions may be absent)
        result: CORRECT or WRONG
        today: Reference date (defaults to today)

    Returns:
        Dict with easeFactor, interval, repetitions and nextReviewAt
    """
    current = current or {}
    ease = current.get("easeFactor")
    ease = DEFAULT_EASE_FACTOR if ease is None else ease
    repetitions = current.get("repetitions") or 0
    quality = 5 if AnswerResult(result) is AnswerResult.CORRECT else 0

    miss = 5 - quality
    new_ease = max(MIN_EASE_FACTOR, ease + (0.1 - miss * (0.08 + miss * 0.02)))

    if quality < 3:
        interval = 1
        new_repetitions = 0
    else:
        new_repetitions = repetitions + 1
        if repetitions == 0:
            interval = 1
        elif repetitions == 1:
            interval = 6
        else:
            # round half up
            interval = int((current.get("interval") or 1) * new_ease + 0.5)

    return {
        "easeFactor": new_ease,
        "interval": interval,
        "repetitions": new_repetitions,
        "nextReviewAt": add_days_iso(interval, today),
    }


def _next_review_at(question: Any) -> str:
    stats = question.get("stats") if isinstance(question, Mapping) else question.stats
    return (stats or {}).get("nextReviewAt") or UNSCHEDULED_SENTINEL


def sort_by_priority(questions: Sequence[Any], today: date | None = None) -> list[Any]:
    """
    Order questions for review: overdue (or never scheduled) first, then
    future ones, each group by ascending review date. Stable.
    """
    today_str = today_iso(today)

    def priority(question: Any) -> tuple[int, str]:
        review_at = _next_review_at(question)
        return (0 if review_at <= today_str else 1, review_at)

    return sorted(questions, key=priority)
