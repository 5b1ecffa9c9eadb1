"""
RepCycle API - Program Regeneration Orchestrator.

Coordinates eligibility re-validation, program synthesis with a
deterministic fallback, and the atomic archive/create or revert commit.

Mutations never raise for expected outcomes; they return a
RegenerationResult whose ``error_code`` is one of ``ineligible``,
``conflict``, ``persistence`` or ``not_found``.
"""

import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from app.config.rules import RegenerationRules
from app.schemas.program import (
    GenerationRequest,
    GenerationSource,
    ProgramStatus,
    Workout,
    WorkoutProgram,
)
from app.schemas.regeneration import RecommendationList, RegenerationCheck, RegenerationResult
from app.services.cache import ProgramCache
from app.services.eligibility import EligibilityService
from app.services.performance_history import PerformanceHistoryService
from app.services.program_synthesis import FallbackProgramSynthesizer, SynthesisOutcome
from app.services.stores import ProgramStore
from app.utils.clock import Clock, ensure_utc, utcnow
from app.utils.errors import (
    ConflictError,
    IneligibleError,
    NotFoundError,
    PersistenceError,
    RepCycleException,
)

logger = logging.getLogger(__name__)


def materialize_program(
    user_id: str, outcome: SynthesisOutcome, at
) -> Tuple[WorkoutProgram, List[Workout]]:
    """Turn a synthesis outcome into unsaved program and workout records."""
    synthesized = outcome.program
    program = WorkoutProgram(
        user_id=user_id,
        name=synthesized.name,
        current_week=1,
        total_weeks=synthesized.total_weeks,
        workouts_completed=0,
        total_workouts=len(synthesized.workouts),
        generation_source=GenerationSource.FALLBACK if outcome.used_fallback else GenerationSource.AI,
        created_at=at,
        updated_at=at,
    )
    workouts = [
        Workout(
            program_id=program.id,
            user_id=user_id,
            title=plan.title,
            week=plan.week,
            day=plan.day,
            estimated_time=plan.estimated_time,
            exercises=plan.exercises,
            rotation=plan.rotation,
            rotation_week=plan.rotation_week,
            progression_notes=plan.progression_notes,
            created_at=at,
        )
        for plan in synthesized.workouts
    ]
    return program, workouts


def _failure(error: RepCycleException) -> RegenerationResult:
    if isinstance(error, ConflictError):
        return RegenerationResult.failure(error.message, ConflictError.error_code, retryable=True)
    return RegenerationResult.failure(error.message, error.error_code)


class ProgramRegenerationService:
    """
    Program mutations for one user at a time.

    Regenerate and revert are compare-and-swap commits keyed on the active
    pointer read during re-validation; a concurrent change turns into a
    retryable ``conflict`` result.
    """

    def __init__(
        self,
        programs: ProgramStore,
        history: PerformanceHistoryService,
        eligibility: EligibilityService,
        synthesizer: FallbackProgramSynthesizer,
        rules: Optional[RegenerationRules] = None,
        cache: Optional[ProgramCache] = None,
        clock: Clock = utcnow,
    ):
        self.programs = programs
        self.history = history
        self.eligibility = eligibility
        self.synthesizer = synthesizer
        self.rules = rules or eligibility.rules
        self.cache = cache
        self.clock = clock

    async def invalidate_cache(self, user_id: str) -> None:
        if self.cache is not None:
            await self.cache.invalidate_user(user_id)

    # ============================================
    # Mutations
    # ============================================

    async def regenerate_program_smart(self, user_id: str) -> RegenerationResult:
        """
        Replace the active program with a newly synthesized one.

        Eligibility is re-validated against the store, never the cache.
        """
        check, state, current, profile = await self.eligibility.load_and_check(user_id)
        if not check.can_regenerate:
            return RegenerationResult.failure(check.reason, IneligibleError.error_code)
        if current is None:
            return RegenerationResult.failure(
                "No active program to regenerate. Complete onboarding first.",
                NotFoundError.error_code,
            )

        request = GenerationRequest(
            user_id=user_id,
            profile=profile,
            history=await self.history.summarize_all(user_id),
            current_program=current.metadata(),
        )

        try:
            outcome = await self.synthesizer.synthesize(request)
            now = self.clock()
            program, workouts = materialize_program(user_id, outcome, now)
            committed = await self.programs.commit_regeneration(
                user_id, state.active_program_id, program, workouts, now
            )
        except (ConflictError, PersistenceError, NotFoundError) as e:
            logger.warning(f"Regeneration failed for user {user_id}: {e.message}")
            return _failure(e)

        await self.invalidate_cache(user_id)
        logger.info(
            f"Regenerated program for user {user_id}: {current.id} -> {committed.id} "
            f"(fallback={outcome.used_fallback})"
        )
        return RegenerationResult(
            success=True,
            program=committed,
            workouts=workouts,
            used_fallback=outcome.used_fallback,
        )

    async def revert_program(self, user_id: str) -> RegenerationResult:
        """
        Restore the predecessor of the active program.

        Allowed while the active program is no older than the revert window.
        """
        state = await self.programs.get_state(user_id)
        current = None
        if state.active_program_id:
            current = await self.programs.get_program(user_id, state.active_program_id)
        if current is None:
            return RegenerationResult.failure("No active program to revert.", NotFoundError.error_code)
        if not current.previous_program_id:
            return RegenerationResult.failure(
                "Cannot revert: no previous program found.", IneligibleError.error_code
            )

        now = self.clock()
        elapsed = now - ensure_utc(current.created_at)
        if elapsed > timedelta(hours=self.rules.revert_window_hours):
            return RegenerationResult.failure(
                f"Cannot revert: the {self.rules.revert_window_hours:g}-hour revert period has expired.",
                IneligibleError.error_code,
            )

        previous = await self.programs.get_program(user_id, current.previous_program_id)
        if previous is None or previous.status != ProgramStatus.ARCHIVED:
            return RegenerationResult.failure(
                "Cannot revert: the previous program is no longer available.",
                IneligibleError.error_code,
            )

        try:
            restored = await self.programs.commit_revert(user_id, current.id, previous.id, now)
        except (ConflictError, PersistenceError, NotFoundError) as e:
            logger.warning(f"Revert failed for user {user_id}: {e.message}")
            return _failure(e)

        await self.invalidate_cache(user_id)
        logger.info(f"Reverted program for user {user_id}: {current.id} -> {restored.id}")
        workouts = await self.programs.list_workouts(user_id, restored.id)
        return RegenerationResult(success=True, program=restored, workouts=workouts)

    async def initialize_program(self, user_id: str) -> RegenerationResult:
        """Create the first program once onboarding is complete."""
        check, state, _, profile = await self.eligibility.load_and_check(user_id)
        if state.active_program_id:
            return RegenerationResult.failure(
                "A program already exists. Use regeneration to replace it.",
                ConflictError.error_code,
            )
        if not check.can_regenerate:
            return RegenerationResult.failure(check.reason, IneligibleError.error_code)

        request = GenerationRequest(
            user_id=user_id,
            profile=profile,
            history=await self.history.summarize_all(user_id),
        )
        try:
            outcome = await self.synthesizer.synthesize(request)
            now = self.clock()
            program, workouts = materialize_program(user_id, outcome, now)
            committed = await self.programs.create_initial_program(user_id, program, workouts, now)
        except (ConflictError, PersistenceError) as e:
            logger.warning(f"Program initialization failed for user {user_id}: {e.message}")
            return _failure(e)

        await self.invalidate_cache(user_id)
        logger.info(f"Created first program {committed.id} for user {user_id}")
        return RegenerationResult(
            success=True,
            program=committed,
            workouts=workouts,
            used_fallback=outcome.used_fallback,
        )

    async def complete_workout(self, user_id: str, workout_id: str) -> WorkoutProgram:
        """
        Mark a workout of the active program completed.

        Raises:
            NotFoundError: Unknown workout.
            ConflictError: The workout's program is not active.
        """
        program = await self.programs.complete_workout(user_id, workout_id, self.clock())
        await self.invalidate_cache(user_id)
        return program

    # ============================================
    # Reads
    # ============================================

    async def get_active_program(self, user_id: str, use_cache: bool = True) -> Optional[WorkoutProgram]:
        if use_cache and self.cache is not None:
            return await self.cache.active_program(user_id, lambda: self.programs.get_active_program(user_id))
        return await self.programs.get_active_program(user_id)

    async def can_revert(self, user_id: str) -> bool:
        """Whether ``revert_program`` would currently pass its own checks."""
        program = await self.programs.get_active_program(user_id)
        if program is None or not program.previous_program_id:
            return False
        elapsed = self.clock() - ensure_utc(program.created_at)
        return elapsed <= timedelta(hours=self.rules.revert_window_hours)

    async def list_programs(self, user_id: str) -> List[WorkoutProgram]:
        return await self.programs.list_programs(user_id)

    async def list_workouts(self, user_id: str, program_id: str) -> List[Workout]:
        program = await self.programs.get_program(user_id, program_id)
        if program is None:
            raise NotFoundError("Program not found")
        return await self.programs.list_workouts(user_id, program_id)

    async def check_regeneration_eligibility(self, user_id: str, use_cache: bool = False) -> RegenerationCheck:
        if use_cache and self.cache is not None:
            return await self.cache.eligibility(
                user_id, lambda: self.eligibility.check_regeneration_eligibility(user_id)
            )
        return await self.eligibility.check_regeneration_eligibility(user_id)

    async def get_regeneration_recommendations(self, user_id: str, use_cache: bool = True) -> RecommendationList:
        if use_cache and self.cache is not None:
            return await self.cache.recommendations(
                user_id, lambda: self.eligibility.get_regeneration_recommendations(user_id)
            )
        return await self.eligibility.get_regeneration_recommendations(user_id)
