"""Grade breakdown Pydantic models."""
from pydantic import BaseModel


class GradeBreakdown(BaseModel):
    """Final-grade arithmetic for one subject, all values on a 0-10 scale."""

    # Sum of deliverable contributions before the cap
    rawContinuous: float
    cappedContinuous: float
    # cappedContinuous * continuousWeight
    continuousContribution: float
    # examGrade * (1 - continuousWeight)
    examContribution: float | None = None
    finalGrade: float | None = None
    # Raw points still reachable from pending deliverables, limited by the cap
    remainingPotential: float
    bestCaseGrade: float | None = None
