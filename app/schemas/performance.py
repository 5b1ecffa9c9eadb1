"""
RepCycle API - Performance Schemas.

Pydantic schemas for exercise logs, trend summaries and progression advice.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_exercise_id(value: str) -> str:
    """Normalize an exercise name or id to its canonical key."""
    key = (value or "").strip().lower()
    for char in (" ", "-", "/"):
        key = key.replace(char, "_")
    while "__" in key:
        key = key.replace("__", "_")
    return key.strip("_")


class Trend(str, Enum):
    """Trend of the two most recent sessions of an exercise."""

    IMPROVING = "improving"
    FLAT = "flat"
    DECLINING = "declining"
    NONE = "none"


class ExerciseCategory(str, Enum):
    """Movement category used to pick a weight increment."""

    UPPER_ISOLATION = "upper_isolation"
    UPPER_COMPOUND = "upper_compound"
    LOWER_ISOLATION = "lower_isolation"
    LOWER_COMPOUND = "lower_compound"


class ReasonCode(str, Enum):
    """Why a progression suggestion was made."""

    MET_TARGET = "met_target"
    NEAR_FAILURE = "near_failure"
    MISSED_TARGET = "missed_target"
    PLATEAU_DETECTED = "plateau_detected"


class ExercisePerformanceRecord(BaseModel):
    """
    One logged exercise entry. Append-only.

    Attributes:
        exercise_id: Canonical exercise key.
        weight: Load in kg (0 for bodyweight).
        reps: Reps achieved per set.
        sets: Sets completed.
        effort_rating: Optional RPE (1-10).
        performed_at: When the exercise was performed.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    exercise_id: str
    weight: float = Field(default=0.0, ge=0)
    reps: int = Field(..., ge=0)
    sets: int = Field(..., ge=0)
    effort_rating: Optional[int] = Field(default=None, ge=1, le=10)
    performed_at: datetime

    @field_validator("exercise_id")
    @classmethod
    def _normalize_exercise(cls, value: str) -> str:
        key = normalize_exercise_id(value)
        if not key:
            raise ValueError("exercise_id must not be empty")
        return key


class SessionSnapshot(BaseModel):
    """The parts of a record the advisor reasons about."""

    model_config = ConfigDict(frozen=True)

    weight: float
    reps: int
    sets: int
    effort_rating: Optional[int] = None
    performed_at: datetime


class PerformanceSummary(BaseModel):
    """
    Derived per-exercise summary. Never persisted.

    ``has_history=False`` means a first-time exercise, which is not the same
    thing as a declining trend.
    """

    model_config = ConfigDict(frozen=True)

    exercise_id: str
    has_history: bool
    trend: Trend = Trend.NONE
    last_weight: Optional[float] = None
    last_reps: Optional[int] = None
    last_sets: Optional[int] = None
    last_effort_rating: Optional[int] = None
    last_performed_at: Optional[datetime] = None
    session_count: int = 0
    recent_sessions: List[SessionSnapshot] = Field(default_factory=list)

    @classmethod
    def first_time(cls, exercise_id: str) -> "PerformanceSummary":
        return cls(exercise_id=exercise_id, has_history=False, trend=Trend.NONE)


class ExerciseTargets(BaseModel):
    """Prescribed sets/reps for an exercise."""

    model_config = ConfigDict(frozen=True)

    target_sets: int = Field(..., ge=1)
    target_reps: int = Field(..., ge=1)
    category: Optional[ExerciseCategory] = None


class ProgressionSuggestion(BaseModel):
    """
    Load/rep adjustment for the next session of an exercise.

    A pure function of (summary, targets); regenerated on every request.
    """

    model_config = ConfigDict(frozen=True)

    exercise_id: str
    current_weight: float
    weight_delta: float
    rep_delta: int
    reason_code: ReasonCode
    reason: str
    implementation_notes: str
    consecutive_misses: int = 0

    @property
    def suggested_weight(self) -> float:
        return round(self.current_weight + self.weight_delta, 2)


# ============================================
# API Schemas
# ============================================

class PerformanceLogRequest(BaseModel):
    """Schema for logging a performed exercise."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "exercise_id": "barbell_back_squat",
                "weight": 100.0,
                "reps": 5,
                "sets": 5,
                "effort_rating": 8
            }
        }
    )

    exercise_id: str = Field(..., min_length=1, description="Exercise id or name")
    weight: float = Field(default=0.0, ge=0, description="Load in kg")
    reps: int = Field(..., ge=0)
    sets: int = Field(..., ge=0)
    effort_rating: Optional[int] = Field(default=None, ge=1, le=10, description="RPE (1-10)")
    performed_at: Optional[datetime] = None


class ProgressionRequest(BaseModel):
    """Schema for requesting a progression suggestion."""

    exercise_id: str = Field(..., min_length=1)
    target_sets: int = Field(..., ge=1)
    target_reps: int = Field(..., ge=1)
    category: Optional[ExerciseCategory] = None


class ProgressionResponse(BaseModel):
    """Progression suggestion, or a first-time marker when there is no history."""

    exercise_id: str
    first_time: bool
    suggestion: Optional[ProgressionSuggestion] = None
    message: str
