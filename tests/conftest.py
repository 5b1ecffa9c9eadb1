"""Shared fixtures and fakes for the RepCycle test suite."""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import List, Optional

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest

from app.config.rules import ProgressionRules, RegenerationRules
from app.dependencies import ServiceContainer
from app.schemas.performance import ExercisePerformanceRecord
from app.schemas.profile import Availability, Experience, Goals, Preferences, UserProfile
from app.schemas.program import (
    ExercisePrescription,
    GenerationRequest,
    SynthesizedProgram,
    WorkoutPlan,
)
from app.services.program_synthesis import ProgramSynthesizer
from app.services.stores import InMemoryPerformanceLogStore, InMemoryProfileStore, InMemoryProgramStore
from app.utils.errors import UpstreamServiceError

START = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FailingSynthesizer(ProgramSynthesizer):
    name = "failing"

    def __init__(self):
        self.calls = 0

    async def synthesize(self, request: GenerationRequest) -> SynthesizedProgram:
        self.calls += 1
        await asyncio.sleep(0)
        raise UpstreamServiceError("generative service unavailable")


class SlowSynthesizer(ProgramSynthesizer):
    name = "slow"

    def __init__(self, delay: float = 5.0):
        self.delay = delay
        self.calls = 0

    async def synthesize(self, request: GenerationRequest) -> SynthesizedProgram:
        self.calls += 1
        await asyncio.sleep(self.delay)
        raise AssertionError("should have been cancelled by the timeout")


class StaticSynthesizer(ProgramSynthesizer):
    """Returns a small fixed program, yielding once to let other tasks run."""

    name = "static"

    def __init__(self, name: str = "Static Strength", weeks: int = 2, exercises: Optional[List[ExercisePrescription]] = None):
        self.program_name = name
        self.weeks = weeks
        self.exercises = exercises or [
            ExercisePrescription(exercise_id="back_squat", name="Back Squat", sets=3, target_reps=5),
            ExercisePrescription(exercise_id="bench_press", name="Bench Press", sets=3, target_reps=5),
        ]
        self.calls = 0

    async def synthesize(self, request: GenerationRequest) -> SynthesizedProgram:
        self.calls += 1
        await asyncio.sleep(0)
        return SynthesizedProgram(
            name=self.program_name,
            total_weeks=self.weeks,
            workouts=[
                WorkoutPlan(week=week, day=day, title=f"Week {week} Day {day}", exercises=self.exercises)
                for week in range(1, self.weeks + 1)
                for day in (1, 2)
            ],
        )


class EmptySynthesizer(ProgramSynthesizer):
    """Produces a structurally invalid program."""

    name = "empty"

    async def synthesize(self, request: GenerationRequest) -> SynthesizedProgram:
        return SynthesizedProgram(name="Empty", total_weeks=4, workouts=[])


def complete_profile(user_id: str, split: str = "full-body", sessions: int = 3) -> UserProfile:
    return UserProfile(
        user_id=user_id,
        goals=Goals(primary_goals=["muscle-gain"]),
        availability=Availability(sessions_per_week=sessions, session_duration_minutes=60),
        experience=Experience(training_experience="intermediate", equipment_access=["full-gym"]),
        preferences=Preferences(preferred_workout_split=split),
        onboarding_completed=True,
        created_at=START,
        updated_at=START,
    )


def make_record(
    user_id: str,
    exercise_id: str,
    weight: float,
    reps: int,
    sets: int = 3,
    effort: Optional[int] = None,
    at: datetime = START,
) -> ExercisePerformanceRecord:
    return ExercisePerformanceRecord(
        user_id=user_id,
        exercise_id=exercise_id,
        weight=weight,
        reps=reps,
        sets=sets,
        effort_rating=effort,
        performed_at=at,
    )


def make_container(
    clock: FrozenClock,
    primary: Optional[ProgramSynthesizer] = None,
    fallback: Optional[ProgramSynthesizer] = None,
    programs: Optional[InMemoryProgramStore] = None,
    regeneration_rules: Optional[RegenerationRules] = None,
    cache=None,
) -> ServiceContainer:
    return ServiceContainer(
        programs=programs or InMemoryProgramStore(),
        profiles=InMemoryProfileStore(),
        logs=InMemoryPerformanceLogStore(),
        primary_synthesizer=primary or StaticSynthesizer(),
        fallback_synthesizer=fallback,
        progression_rules=ProgressionRules(),
        regeneration_rules=regeneration_rules or RegenerationRules(generation_timeout_seconds=0.05),
        cache=cache,
        clock=clock,
    )


async def onboard(container: ServiceContainer, user_id: str, **profile_kwargs):
    """Save a complete profile and create the first program."""
    await container.profiles.save_profile(complete_profile(user_id, **profile_kwargs))
    result = await container.regeneration.initialize_program(user_id)
    assert result.success, result.error
    return result


async def complete_workouts(container: ServiceContainer, user_id: str, count: int) -> None:
    program = await container.programs.get_active_program(user_id)
    workouts = await container.programs.list_workouts(user_id, program.id)
    for workout in workouts[:count]:
        await container.regeneration.complete_workout(user_id, workout.id)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def container(clock) -> ServiceContainer:
    return make_container(clock)
