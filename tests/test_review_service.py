from datetime import date

import pytest

from studybank.services.review_service import calc_next_review, sort_by_priority

TODAY = date(2024, 5, 10)


def test_wrong_answer_resets_schedule() -> None:
    schedule = calc_next_review({}, "WRONG", today=TODAY)
    assert schedule["interval"] == 1
    assert schedule["repetitions"] == 0
    assert schedule["easeFactor"] == pytest.approx(1.7)
    assert schedule["nextReviewAt"] == "2024-05-11"


def test_first_and_second_correct_answers() -> None:
    first = calc_next_review({"repetitions": 0}, "CORRECT", today=TODAY)
    assert (first["interval"], first["repetitions"]) == (1, 1)
    assert first["easeFactor"] == pytest.approx(2.6)

    second = calc_next_review({"repetitions": 1, "interval": 1}, "CORRECT", today=TODAY)
    assert (second["interval"], second["repetitions"]) == (6, 2)
    assert second["nextReviewAt"] == "2024-05-16"


def test_later_correct_answers_multiply_interval() -> None:
    current = {"repetitions": 2, "interval": 6, "easeFactor": 2.5}
    schedule = calc_next_review(current, "CORRECT", today=TODAY)
    assert schedule["repetitions"] == 3
    # 6 * 2.6 = 15.6
    assert schedule["interval"] == 16


def test_ease_factor_has_a_floor() -> None:
    schedule = calc_next_review({"easeFactor": 1.3, "repetitions": 4, "interval": 30}, "WRONG")
    assert schedule["easeFactor"] == pytest.approx(1.3)


def test_sort_by_priority_puts_overdue_first() -> None:
    questions = [
        {"id": "future-far", "stats": {"nextReviewAt": "2024-06-01"}},
        {"id": "never", "stats": {"seen": 0}},
        {"id": "today", "stats": {"nextReviewAt": "2024-05-10"}},
        {"id": "future-near", "stats": {"nextReviewAt": "2024-05-20"}},
        {"id": "overdue", "stats": {"nextReviewAt": "2024-05-01"}},
        {"id": "never-too", "stats": {}},
    ]
    ordered = [q["id"] for q in sort_by_priority(questions, today=TODAY)]
    assert ordered == ["never", "never-too", "overdue", "today", "future-near", "future-far"]
