"""
Grade breakdown for subjects with continuous assessment.

The final grade mixes the exam grade with the continuous-assessment points
earned through deliverables:

    final = min(raw, maxContinuousPoints) * continuousWeight
            + examGrade * (1 - continuousWeight)

A completed TEST counts its full points until it gets a grade, then
``grade / 10`` of them. An ACTIVITY only counts once graded. EXAM and OTHER
deliverables never count towards the continuous score.
"""
import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession

from studybank.config import (
    DEFAULT_CONTINUOUS_WEIGHT,
    DEFAULT_MAX_CONTINUOUS_POINTS,
    DEFAULT_TEST_CONTINUOUS_POINTS,
    MAX_GRADE,
)
from studybank.errors import NotFoundError
from studybank.models.db.deliverable import Deliverable, DeliverableType, SubjectGradingConfig
from studybank.models.grading import GradeBreakdown
from studybank.services.subject_service import get_subject
from studybank.utils import utc_now

logger = logging.getLogger(__name__)

DELIVERABLE_FIELDS = (
    "name",
    "type",
    "start_date",
    "due_date",
    "completed",
    "grade",
    "continuous_points",
)
GRADING_CONFIG_FIELDS = (
    "continuous_weight",
    "max_continuous_points",
    "test_continuous_points",
    "exam_grade",
)


def _check_grade(grade: float | None, label: str = "Grade") -> None:
    if grade is not None and not 0 <= grade <= MAX_GRADE:
        raise ValueError(f"{label} must be between 0 and {MAX_GRADE:g}")


def _check_config(config: SubjectGradingConfig) -> None:
    if not 0 <= config.continuous_weight <= 1:
        raise ValueError("Continuous weight must be between 0 and 1")
    if config.max_continuous_points < 0 or config.test_continuous_points < 0:
        raise ValueError("Continuous points cannot be negative")
    _check_grade(config.exam_grade, "Exam grade")


def _check_deliverable(deliverable: Deliverable) -> None:
    if not (deliverable.name or "").strip():
        raise ValueError("Deliverable name is required")
    _check_grade(deliverable.grade)
    if deliverable.continuous_points < 0:
        raise ValueError("Continuous points cannot be negative")


# Arithmetic


def _contribution(deliverable: Deliverable) -> float:
    kind = DeliverableType(deliverable.type)
    if kind is DeliverableType.TEST:
        if not deliverable.completed:
            return 0.0
        if deliverable.grade is not None:
            return deliverable.grade / MAX_GRADE * deliverable.continuous_points
        return deliverable.continuous_points
    if kind is DeliverableType.ACTIVITY:
        if deliverable.grade is None:
            return 0.0
        return deliverable.grade / MAX_GRADE * deliverable.continuous_points
    return 0.0


def _is_pending(deliverable: Deliverable) -> bool:
    kind = DeliverableType(deliverable.type)
    if kind is DeliverableType.TEST:
        return not deliverable.completed or deliverable.grade is None
    if kind is DeliverableType.ACTIVITY:
        return deliverable.grade is None
    return False


def calc_continuous_raw(deliverables: Iterable[Deliverable]) -> float:
    """Sum of continuous-assessment points earned, before the cap."""
    return sum(_contribution(d) for d in deliverables)


def calc_grade_breakdown(
    config: SubjectGradingConfig,
    deliverables: Iterable[Deliverable],
) -> GradeBreakdown:
    """
    Compute the grade breakdown of a subject.

    Args:
        config: Weighting of the subject
        deliverables: Every deliverable of the subject

    Returns:
        Breakdown; final and best-case grades are None until the exam is graded
    """
    items = list(deliverables)
    weight = config.continuous_weight
    cap = config.max_continuous_points

    raw = calc_continuous_raw(items)
    capped = min(raw, cap)
    continuous_contribution = capped * weight

    exam_contribution = None
    final_grade = None
    if config.exam_grade is not None:
        exam_contribution = config.exam_grade * (1 - weight)
        final_grade = exam_contribution + continuous_contribution

    # completed TESTs without a grade count in both raw and potential
    potential = sum(d.continuous_points for d in items if _is_pending(d))
    remaining = max(0.0, min(potential, cap - raw))

    best_case = None
    if exam_contribution is not None:
        best_case = exam_contribution + min(raw + potential, cap) * weight

    return GradeBreakdown(
        rawContinuous=raw,
        cappedContinuous=capped,
        continuousContribution=continuous_contribution,
        examContribution=exam_contribution,
        finalGrade=final_grade,
        remainingPotential=remaining,
        bestCaseGrade=best_case,
    )


# Grading config


def get_grading_config(db: DbSession, subject_id: str) -> SubjectGradingConfig:
    """Stored config of a subject, or an unsaved default one."""
    config = db.get(SubjectGradingConfig, subject_id)
    if config is None:
        config = SubjectGradingConfig(
            subject_id=subject_id,
            continuous_weight=DEFAULT_CONTINUOUS_WEIGHT,
            max_continuous_points=DEFAULT_MAX_CONTINUOUS_POINTS,
            test_continuous_points=DEFAULT_TEST_CONTINUOUS_POINTS,
            exam_grade=None,
        )
    return config


def save_grading_config(db: DbSession, subject_id: str, **changes: object) -> SubjectGradingConfig:
    """Update the grading config of a subject, creating it on first save."""
    if not get_subject(db, subject_id):
        raise NotFoundError("Subject not found")
    config = get_grading_config(db, subject_id)
    for field, value in changes.items():
        if field not in GRADING_CONFIG_FIELDS:
            raise ValueError(f"Unknown grading config field: {field}")
        setattr(config, field, value)
    try:
        _check_config(config)
    except ValueError:
        db.rollback()
        raise
    if config not in db:
        db.add(config)
    db.commit()
    db.refresh(config)
    return config


# Deliverables


def list_deliverables(db: DbSession, subject_id: str | None = None) -> list[Deliverable]:
    """List deliverables by due date; undated ones last."""
    stmt = select(Deliverable).order_by(
        Deliverable.due_date.is_(None),
        Deliverable.due_date,
        Deliverable.created_at,
        Deliverable.id,
    )
    if subject_id is not None:
        stmt = stmt.where(Deliverable.subject_id == subject_id)
    return list(db.execute(stmt).scalars().all())


def get_deliverable(db: DbSession, deliverable_id: str) -> Deliverable | None:
    return db.get(Deliverable, deliverable_id)


def create_deliverable(
    db: DbSession,
    subject_id: str,
    name: str,
    deliverable_type: DeliverableType | str = DeliverableType.ACTIVITY,
    start_date: str | None = None,
    due_date: str | None = None,
    completed: bool = False,
    grade: float | None = None,
    continuous_points: float | None = None,
) -> Deliverable:
    """
    Create a deliverable.

    Without explicit points a TEST gets the subject's default test points
    and anything else gets none.
    """
    if not get_subject(db, subject_id):
        raise NotFoundError("Subject not found")
    kind = DeliverableType(deliverable_type)
    if continuous_points is None:
        if kind is DeliverableType.TEST:
            continuous_points = get_grading_config(db, subject_id).test_continuous_points
        else:
            continuous_points = 0.0
    now = utc_now()
    deliverable = Deliverable(
        subject_id=subject_id,
        name=name.strip(),
        type=kind.value,
        start_date=start_date,
        due_date=due_date,
        completed=completed,
        grade=grade,
        continuous_points=continuous_points,
        created_at=now,
        updated_at=now,
    )
    _check_deliverable(deliverable)
    db.add(deliverable)
    db.commit()
    db.refresh(deliverable)
    return deliverable


def update_deliverable(db: DbSession, deliverable_id: str, **changes: object) -> Deliverable:
    """Update deliverable fields."""
    deliverable = get_deliverable(db, deliverable_id)
    if not deliverable:
        raise NotFoundError("Deliverable not found")
    for field, value in changes.items():
        if field not in DELIVERABLE_FIELDS:
            raise ValueError(f"Unknown deliverable field: {field}")
        if field == "type":
            value = DeliverableType(value).value
        setattr(deliverable, field, value)
    try:
        _check_deliverable(deliverable)
    except ValueError:
        db.rollback()
        raise
    deliverable.updated_at = utc_now()
    db.commit()
    db.refresh(deliverable)
    return deliverable


def delete_deliverable(db: DbSession, deliverable_id: str) -> None:
    deliverable = get_deliverable(db, deliverable_id)
    if not deliverable:
        raise NotFoundError("Deliverable not found")
    db.delete(deliverable)
    db.commit()


def subject_grade_breakdown(db: DbSession, subject_id: str) -> GradeBreakdown:
    """Grade breakdown of a stored subject."""
    if not get_subject(db, subject_id):
        raise NotFoundError("Subject not found")
    breakdown = calc_grade_breakdown(
        get_grading_config(db, subject_id), list_deliverables(db, subject_id)
    )
    logger.debug(f"Grade breakdown for {subject_id}: {breakdown}")
    return breakdown
