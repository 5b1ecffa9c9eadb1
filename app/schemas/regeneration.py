"""
RepCycle API - Regeneration Schemas.

Results of the eligibility checker, recommendations and the orchestrator.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.performance import ProgressionSuggestion
from app.schemas.program import Workout, WorkoutProgram


class RegenerationCheck(BaseModel):
    """
    Eligibility verdict. Carries exactly one reason.

    Attributes:
        can_regenerate: Whether regeneration is currently permitted.
        reason: The first failing rule's reason, or a confirmation.
        blocking_rule: cooldown / minimum_progress / profile_incomplete.
    """

    model_config = ConfigDict(frozen=True)

    can_regenerate: bool
    reason: str
    blocking_rule: Optional[str] = None
    suggested_wait_hours: Optional[float] = None
    program_age_days: Optional[int] = None
    progress_percentage: Optional[float] = None
    optimal_timing: bool = False


class RegenerationResult(BaseModel):
    """Outcome of regenerate / revert / initialize."""

    success: bool
    program: Optional[WorkoutProgram] = None
    workouts: List[Workout] = Field(default_factory=list)
    used_fallback: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None
    retryable: bool = False

    @classmethod
    def failure(cls, error: str, error_code: str, retryable: bool = False) -> "RegenerationResult":
        return cls(success=False, error=error, error_code=error_code, retryable=retryable)


class RecommendationList(BaseModel):
    """Advisory output. Never blocks regeneration."""

    should_regenerate: bool
    reason: str
    benefits: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    plateaued_exercises: List[str] = Field(default_factory=list)
    suggestions: List[ProgressionSuggestion] = Field(default_factory=list)
    eligibility: Optional[RegenerationCheck] = None
