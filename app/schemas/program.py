"""
RepCycle API - Program Schemas.

Workout programs, their workouts, and the per-user active pointer.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.performance import ExerciseCategory, PerformanceSummary
from app.schemas.profile import UserProfile
from app.utils.clock import utcnow


def new_id() -> str:
    return str(uuid4())


class ProgramStatus(str, Enum):
    """Lifecycle status of a program record."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    REVERTED = "reverted"


class GenerationSource(str, Enum):
    """Which synthesizer produced a program."""

    AI = "ai"
    FALLBACK = "fallback"


class ExercisePrescription(BaseModel):
    """An exercise inside a workout."""

    exercise_id: str
    name: str
    sets: int = Field(..., ge=1)
    target_reps: int = Field(..., ge=1)
    rep_range: Optional[str] = None
    rest_seconds: int = Field(default=90, ge=0)
    notes: Optional[str] = None
    category: Optional[ExerciseCategory] = None


class WorkoutPlan(BaseModel):
    """A synthesized, not yet persisted workout."""

    week: int = Field(..., ge=1)
    day: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)
    estimated_time: int = Field(default=60, ge=1)
    exercises: List[ExercisePrescription] = Field(default_factory=list)
    rotation: int = 1
    rotation_week: int = 1
    progression_notes: Optional[str] = None


class SynthesizedProgram(BaseModel):
    """Output of a program synthesizer."""

    name: str = Field(..., min_length=1)
    total_weeks: int
    workouts: List[WorkoutPlan]
    progression_notes: Optional[str] = None
    recovery_guidance: Optional[str] = None


class Workout(BaseModel):
    """A persisted workout of a program."""

    id: str = Field(default_factory=new_id)
    program_id: str
    user_id: str
    title: str
    week: int
    day: int
    estimated_time: int = 60
    exercises: List[ExercisePrescription] = Field(default_factory=list)
    rotation: int = 1
    rotation_week: int = 1
    progression_notes: Optional[str] = None
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)


class WorkoutProgram(BaseModel):
    """
    A user's training program.

    Never physically deleted; archived and reverted records stay for
    reverts and auditing.
    """

    id: str = Field(default_factory=new_id)
    user_id: str
    name: str
    current_week: int = Field(default=1, ge=1)
    total_weeks: int = Field(..., ge=1)
    workouts_completed: int = Field(default=0, ge=0)
    total_workouts: int = Field(..., ge=0)
    status: ProgramStatus = ProgramStatus.ACTIVE
    previous_program_id: Optional[str] = None
    generation_source: GenerationSource = GenerationSource.FALLBACK
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    archived_at: Optional[datetime] = None
    reverted_at: Optional[datetime] = None
    reverted_to_program_id: Optional[str] = None

    @property
    def progress_percentage(self) -> float:
        if self.total_workouts <= 0:
            return 0.0
        return round(self.workouts_completed / self.total_workouts * 100, 1)

    def metadata(self) -> "ProgramMetadata":
        return ProgramMetadata(
            program_id=self.id,
            name=self.name,
            current_week=self.current_week,
            total_weeks=self.total_weeks,
            workouts_completed=self.workouts_completed,
            total_workouts=self.total_workouts,
            created_at=self.created_at,
        )


class ProgramMetadata(BaseModel):
    """Program fields sent along with a generation request."""

    program_id: str
    name: str
    current_week: int
    total_weeks: int
    workouts_completed: int
    total_workouts: int
    created_at: datetime


class ProgramState(BaseModel):
    """
    Per-user pointer to the Active program.

    The compare-and-swap key for regenerate/revert.
    """

    user_id: str
    active_program_id: Optional[str] = None
    last_regenerated_at: Optional[datetime] = None
    version: int = 0


class GenerationRequest(BaseModel):
    """Payload handed to program synthesizers."""

    user_id: str
    profile: UserProfile
    history: Dict[str, PerformanceSummary] = Field(default_factory=dict)
    current_program: Optional[ProgramMetadata] = None


class ProgramResponse(BaseModel):
    """A program with its workouts."""

    program: WorkoutProgram
    workouts: List[Workout] = Field(default_factory=list)
