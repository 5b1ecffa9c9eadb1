"""
RepCycle API - Storage ports and in-memory implementations.

Program mutations are compare-and-swap operations keyed on the user's
active-program pointer. The in-memory store serializes them with a per-user
asyncio.Lock, stages every change, and applies the staged set in one step so a
failure leaves nothing partially written.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from app.schemas.performance import ExercisePerformanceRecord
from app.schemas.profile import UserProfile
from app.schemas.program import ProgramState, ProgramStatus, Workout, WorkoutProgram
from app.services.program_lifecycle import LifecycleEvent, apply_transition
from app.utils.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


# ============================================
# Ports
# ============================================

class PerformanceLogStore(ABC):
    """Append-only exercise log."""

    @abstractmethod
    async def append(self, record: ExercisePerformanceRecord) -> None:
        ...

    @abstractmethod
    async def recent(self, user_id: str, exercise_id: str, limit: int) -> List[ExercisePerformanceRecord]:
        """Most recent records of an exercise, newest first."""

    @abstractmethod
    async def exercise_ids(self, user_id: str) -> List[str]:
        ...


class ProfileStore(ABC):
    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...

    @abstractmethod
    async def save_profile(self, profile: UserProfile) -> UserProfile:
        ...


class ProgramStore(ABC):
    """
    Program documents plus the per-user active pointer.

    Mutating methods are all-or-nothing. A stale ``expected_active_id``
    raises ConflictError.
    """

    @abstractmethod
    async def get_state(self, user_id: str) -> ProgramState:
        ...

    @abstractmethod
    async def get_program(self, user_id: str, program_id: str) -> Optional[WorkoutProgram]:
        ...

    @abstractmethod
    async def list_programs(self, user_id: str) -> List[WorkoutProgram]:
        """All program records, newest first."""

    @abstractmethod
    async def list_workouts(self, user_id: str, program_id: str) -> List[Workout]:
        ...

    @abstractmethod
    async def create_initial_program(
        self, user_id: str, program: WorkoutProgram, workouts: List[Workout], at: datetime
    ) -> WorkoutProgram:
        ...

    @abstractmethod
    async def commit_regeneration(
        self,
        user_id: str,
        expected_active_id: str,
        new_program: WorkoutProgram,
        workouts: List[Workout],
        at: datetime,
    ) -> WorkoutProgram:
        ...

    @abstractmethod
    async def commit_revert(
        self, user_id: str, expected_active_id: str, restore_program_id: str, at: datetime
    ) -> WorkoutProgram:
        ...

    @abstractmethod
    async def complete_workout(self, user_id: str, workout_id: str, at: datetime) -> WorkoutProgram:
        ...

    async def get_active_program(self, user_id: str) -> Optional[WorkoutProgram]:
        state = await self.get_state(user_id)
        if not state.active_program_id:
            return None
        return await self.get_program(user_id, state.active_program_id)


# ============================================
# Shared commit planning
# ============================================

def plan_initial_program(program: WorkoutProgram, at: datetime) -> WorkoutProgram:
    return program.model_copy(update={
        "status": ProgramStatus.ACTIVE,
        "previous_program_id": None,
        "created_at": at,
        "updated_at": at,
    })


def plan_regeneration(
    current: WorkoutProgram, new_program: WorkoutProgram, at: datetime
) -> Tuple[WorkoutProgram, WorkoutProgram]:
    """Archived copy of the current program and the new active program."""
    archived = apply_transition(current, LifecycleEvent.ARCHIVE, at)
    created = new_program.model_copy(update={
        "status": ProgramStatus.ACTIVE,
        "previous_program_id": current.id,
        "created_at": at,
        "updated_at": at,
    })
    return archived, created


def plan_revert(
    current: WorkoutProgram, previous: WorkoutProgram, at: datetime
) -> Tuple[WorkoutProgram, WorkoutProgram]:
    """Reverted copy of the current program and the restored predecessor."""
    if current.previous_program_id != previous.id:
        raise ConflictError(
            "Program to restore is not the active program's predecessor",
            detail=f"program_id={previous.id}",
        )
    reverted = apply_transition(current, LifecycleEvent.REVERT, at)
    restored = apply_transition(previous, LifecycleEvent.RESTORE, at)
    return reverted, restored


def plan_workout_completion(
    program: WorkoutProgram, workout: Workout, at: datetime
) -> Tuple[WorkoutProgram, Workout]:
    """Updated program counters and workout; unchanged when already completed."""
    if program.status != ProgramStatus.ACTIVE:
        raise ConflictError("Workouts can only be completed on the active program")
    if workout.is_completed:
        return program, workout
    completed = workout.model_copy(update={"is_completed": True, "completed_at": at})
    updated = program.model_copy(update={
        "workouts_completed": min(program.workouts_completed + 1, program.total_workouts),
        "current_week": min(max(program.current_week, workout.week), program.total_weeks),
        "updated_at": at,
    })
    return updated, completed


def validate_workouts(program: WorkoutProgram, workouts: List[Workout]) -> None:
    if not workouts:
        raise ValidationError("A program needs at least one workout")
    for workout in workouts:
        if workout.program_id != program.id or workout.user_id != program.user_id:
            raise ValidationError("Workout does not belong to the program", detail=f"workout_id={workout.id}")


# ============================================
# In-memory implementations
# ============================================

class InMemoryPerformanceLogStore(PerformanceLogStore):
    def __init__(self):
        self._records: Dict[str, List[ExercisePerformanceRecord]] = defaultdict(list)

    async def append(self, record: ExercisePerformanceRecord) -> None:
        self._records[record.user_id].append(record)

    async def recent(self, user_id: str, exercise_id: str, limit: int) -> List[ExercisePerformanceRecord]:
        matching = [r for r in self._records.get(user_id, []) if r.exercise_id == exercise_id]
        matching.sort(key=lambda r: r.performed_at, reverse=True)
        return matching[:limit]

    async def exercise_ids(self, user_id: str) -> List[str]:
        return sorted({r.exercise_id for r in self._records.get(user_id, [])})


class InMemoryProfileStore(ProfileStore):
    def __init__(self):
        self._profiles: Dict[str, UserProfile] = {}

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)

    async def save_profile(self, profile: UserProfile) -> UserProfile:
        self._profiles[profile.user_id] = profile
        return profile


class InMemoryProgramStore(ProgramStore):
    """Process-local program store used for development and tests."""

    def __init__(self):
        self._programs: Dict[str, WorkoutProgram] = {}
        self._workouts: Dict[str, Workout] = {}
        self._states: Dict[str, ProgramState] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get_state(self, user_id: str) -> ProgramState:
        return self._states.get(user_id) or ProgramState(user_id=user_id)

    async def get_program(self, user_id: str, program_id: str) -> Optional[WorkoutProgram]:
        program = self._programs.get(program_id)
        if program is None or program.user_id != user_id:
            return None
        return program

    async def list_programs(self, user_id: str) -> List[WorkoutProgram]:
        programs = [p for p in self._programs.values() if p.user_id == user_id]
        return sorted(programs, key=lambda p: p.created_at, reverse=True)

    async def list_workouts(self, user_id: str, program_id: str) -> List[Workout]:
        workouts = [
            w for w in self._workouts.values()
            if w.program_id == program_id and w.user_id == user_id
        ]
        return sorted(workouts, key=lambda w: (w.week, w.day))

    def _check_pointer(self, user_id: str, expected_active_id: Optional[str]) -> ProgramState:
        state = self._states.get(user_id) or ProgramState(user_id=user_id)
        if state.active_program_id != expected_active_id:
            logger.warning(
                f"Stale active pointer for user {user_id}: "
                f"expected {expected_active_id}, found {state.active_program_id}"
            )
            raise ConflictError("Active program changed since it was read; retry the operation")
        return state

    def _apply(
        self,
        programs: List[WorkoutProgram],
        workouts: List[Workout],
        state: Optional[ProgramState],
    ) -> None:
        """Apply a staged change set."""
        for program in programs:
            self._programs[program.id] = program
        for workout in workouts:
            self._workouts[workout.id] = workout
        if state is not None:
            self._states[state.user_id] = state

    async def create_initial_program(
        self, user_id: str, program: WorkoutProgram, workouts: List[Workout], at: datetime
    ) -> WorkoutProgram:
        async with self._locks[user_id]:
            state = self._check_pointer(user_id, None)
            validate_workouts(program, workouts)
            created = plan_initial_program(program, at)
            new_state = state.model_copy(update={
                "active_program_id": created.id,
                "version": state.version + 1,
            })
            self._apply([created], workouts, new_state)
            return created

    async def commit_regeneration(
        self,
        user_id: str,
        expected_active_id: str,
        new_program: WorkoutProgram,
        workouts: List[Workout],
        at: datetime,
    ) -> WorkoutProgram:
        async with self._locks[user_id]:
            state = self._check_pointer(user_id, expected_active_id)
            current = self._programs.get(expected_active_id)
            if current is None:
                raise NotFoundError("Active program not found")
            validate_workouts(new_program, workouts)
            archived, created = plan_regeneration(current, new_program, at)
            new_state = state.model_copy(update={
                "active_program_id": created.id,
                "last_regenerated_at": at,
                "version": state.version + 1,
            })
            self._apply([archived, created], workouts, new_state)
            return created

    async def commit_revert(
        self, user_id: str, expected_active_id: str, restore_program_id: str, at: datetime
    ) -> WorkoutProgram:
        async with self._locks[user_id]:
            state = self._check_pointer(user_id, expected_active_id)
            current = self._programs.get(expected_active_id)
            previous = self._programs.get(restore_program_id)
            if current is None or previous is None or previous.user_id != user_id:
                raise NotFoundError("Program to restore not found")
            reverted, restored = plan_revert(current, previous, at)
            new_state = state.model_copy(update={
                "active_program_id": restored.id,
                "version": state.version + 1,
            })
            self._apply([reverted, restored], [], new_state)
            return restored

    async def complete_workout(self, user_id: str, workout_id: str, at: datetime) -> WorkoutProgram:
        async with self._locks[user_id]:
            workout = self._workouts.get(workout_id)
            if workout is None or workout.user_id != user_id:
                raise NotFoundError("Workout not found")
            program = self._programs[workout.program_id]
            updated, completed = plan_workout_completion(program, workout, at)
            self._apply([updated], [completed], None)
            return updated
