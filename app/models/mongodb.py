# app/models/mongodb.py
"""
RepCycle MongoDB Document Models.

Beanie ODM models plus the mapping to and from domain schemas. Beanie
reserves ``id`` for the Mongo ObjectId, so domain ids live in ``uid``.
"""

from beanie import Document, Indexed
from pydantic import Field
from datetime import datetime
from typing import Optional, List, Dict, Any

from app.schemas.performance import ExercisePerformanceRecord
from app.schemas.profile import Availability, Experience, Goals, Preferences, UserProfile
from app.schemas.program import (
    ExercisePrescription,
    GenerationSource,
    ProgramState,
    ProgramStatus,
    Workout,
    WorkoutProgram,
)
from app.utils.clock import utcnow


class ProfileDocument(Document):
    """Training profile model for MongoDB."""

    user_id: Indexed(str, unique=True)
    goals: Optional[Goals] = None
    availability: Optional[Availability] = None
    experience: Optional[Experience] = None
    preferences: Preferences = Field(default_factory=Preferences)
    limitations: List[str] = Field(default_factory=list)
    onboarding_completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "profiles"


class ProgramDocument(Document):
    """Workout program model for MongoDB. Never deleted."""

    uid: Indexed(str, unique=True)
    user_id: Indexed(str)
    name: str
    current_week: int = 1
    total_weeks: int
    workouts_completed: int = 0
    total_workouts: int
    status: ProgramStatus = ProgramStatus.ACTIVE
    previous_program_id: Optional[str] = None
    generation_source: GenerationSource = GenerationSource.FALLBACK
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    archived_at: Optional[datetime] = None
    reverted_at: Optional[datetime] = None
    reverted_to_program_id: Optional[str] = None

    class Settings:
        name = "programs"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
        ]


class WorkoutDocument(Document):
    """Workout of a program."""

    uid: Indexed(str, unique=True)
    program_id: Indexed(str)
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

    class Settings:
        name = "workouts"


class PerformanceLogDocument(Document):
    """Append-only exercise log entry."""

    uid: Indexed(str, unique=True)
    user_id: str
    exercise_id: str
    weight: float = 0.0
    reps: int
    sets: int
    effort_rating: Optional[int] = None
    performed_at: datetime

    class Settings:
        name = "performance_logs"
        indexes = [
            [("user_id", 1), ("exercise_id", 1), ("performed_at", -1)],
        ]


class ProgramStateDocument(Document):
    """Per-user active program pointer; the compare-and-swap key."""

    user_id: Indexed(str, unique=True)
    active_program_id: Optional[str] = None
    last_regenerated_at: Optional[datetime] = None
    version: int = 0
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "program_states"


DOCUMENT_MODELS = [
    ProfileDocument,
    ProgramDocument,
    WorkoutDocument,
    PerformanceLogDocument,
    ProgramStateDocument,
]


# ============================================
# Mapping
# ============================================

_BEANIE_FIELDS = {"id", "revision_id"}


def _fields(document: Document) -> Dict[str, Any]:
    return document.model_dump(exclude=_BEANIE_FIELDS)


def profile_from_document(document: ProfileDocument) -> UserProfile:
    return UserProfile.model_validate(_fields(document))


def profile_to_document(profile: UserProfile) -> ProfileDocument:
    return ProfileDocument(**profile.model_dump())


def program_from_document(document: ProgramDocument) -> WorkoutProgram:
    data = _fields(document)
    data["id"] = data.pop("uid")
    return WorkoutProgram.model_validate(data)


def program_to_document(program: WorkoutProgram) -> ProgramDocument:
    data = program.model_dump(exclude={"id"})
    return ProgramDocument(uid=program.id, **data)


def program_update_fields(program: WorkoutProgram) -> Dict[str, Any]:
    """``$set`` payload for a raw collection update of a program."""
    data = program.model_dump(exclude={"id"})
    data["status"] = program.status.value
    data["generation_source"] = program.generation_source.value
    return data


def workout_from_document(document: WorkoutDocument) -> Workout:
    data = _fields(document)
    data["id"] = data.pop("uid")
    return Workout.model_validate(data)


def workout_to_document(workout: Workout) -> WorkoutDocument:
    data = workout.model_dump(exclude={"id"})
    return WorkoutDocument(uid=workout.id, **data)


def record_from_document(document: PerformanceLogDocument) -> ExercisePerformanceRecord:
    data = _fields(document)
    data["id"] = data.pop("uid")
    return ExercisePerformanceRecord.model_validate(data)


def record_to_document(record: ExercisePerformanceRecord) -> PerformanceLogDocument:
    data = record.model_dump(exclude={"id"})
    return PerformanceLogDocument(uid=record.id, **data)


def state_from_document(document: ProgramStateDocument) -> ProgramState:
    return ProgramState(
        user_id=document.user_id,
        active_program_id=document.active_program_id,
        last_regenerated_at=document.last_regenerated_at,
        version=document.version,
    )
