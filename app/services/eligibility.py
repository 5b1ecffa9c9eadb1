"""
RepCycle API - Regeneration Eligibility Checker.

Rules are evaluated in fixed priority order and the first failing rule's
reason is returned:

    1. cooldown           - no regeneration within the cooldown window
    2. minimum_progress   - program age or completed workouts threshold
    3. profile_incomplete - goals, availability and experience present

A user without an active program skips rules 1-2.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from app.config.rules import ProgressionRules, RegenerationRules
from app.schemas.performance import ExerciseTargets, ProgressionSuggestion, ReasonCode
from app.schemas.profile import UserProfile
from app.schemas.program import ProgramState, Workout, WorkoutProgram
from app.schemas.regeneration import RecommendationList, RegenerationCheck
from app.services.performance_history import PerformanceHistoryService
from app.services.progression import compute_progression_suggestion
from app.services.stores import ProfileStore, ProgramStore
from app.utils.clock import Clock, ensure_utc, utcnow

logger = logging.getLogger(__name__)

RULE_COOLDOWN = "cooldown"
RULE_MINIMUM_PROGRESS = "minimum_progress"
RULE_PROFILE_INCOMPLETE = "profile_incomplete"

MATURE_PROGRAM_DAYS = 42
NEW_PROGRAM_DAYS = 14
STRONG_PROGRESS_PERCENTAGE = 70.0
LOW_PROGRESS_PERCENTAGE = 50.0


def _hours(delta: timedelta) -> float:
    return delta.total_seconds() / 3600


def evaluate_eligibility(
    active: Optional[WorkoutProgram],
    state: ProgramState,
    profile: Optional[UserProfile],
    now: datetime,
    rules: RegenerationRules,
) -> RegenerationCheck:
    """Pure rule evaluation over already-loaded records."""
    age_days: Optional[int] = None
    progress: Optional[float] = None
    optimal = False

    if active is not None:
        age = now - ensure_utc(active.created_at)
        age_days = int(age.total_seconds() // 86400)
        progress = active.progress_percentage
        optimal = age_days >= rules.optimal_age_days or progress >= rules.optimal_progress_percentage

        last = ensure_utc(state.last_regenerated_at)
        if last is not None:
            since = _hours(now - last)
            if since < rules.cooldown_hours:
                remaining = round(rules.cooldown_hours - since, 1)
                return RegenerationCheck(
                    can_regenerate=False,
                    reason=(
                        f"Program was regenerated {since:.1f} hours ago. "
                        f"Please wait {remaining:g} more hours before regenerating."
                    ),
                    blocking_rule=RULE_COOLDOWN,
                    suggested_wait_hours=remaining,
                    program_age_days=age_days,
                    progress_percentage=progress,
                    optimal_timing=optimal,
                )

        age_hours = _hours(age)
        min_age_hours = rules.min_program_age_days * 24
        if age_hours < min_age_hours and active.workouts_completed < rules.min_completed_workouts:
            remaining = round(min_age_hours - age_hours, 1)
            return RegenerationCheck(
                can_regenerate=False,
                reason=(
                    f"Insufficient progress on the current program: "
                    f"{active.workouts_completed} of {rules.min_completed_workouts} workouts completed "
                    f"and the program is {age_days} days old. Complete more workouts or wait "
                    f"{rules.min_program_age_days:g} days before regenerating."
                ),
                blocking_rule=RULE_MINIMUM_PROGRESS,
                suggested_wait_hours=remaining,
                program_age_days=age_days,
                progress_percentage=progress,
                optimal_timing=optimal,
            )

    missing = profile.missing_fields() if profile else ["goals", "availability", "experience"]
    if missing:
        return RegenerationCheck(
            can_regenerate=False,
            reason=f"Profile incomplete: missing {', '.join(missing)}. Update your profile first.",
            blocking_rule=RULE_PROFILE_INCOMPLETE,
            program_age_days=age_days,
            progress_percentage=progress,
            optimal_timing=optimal,
        )

    if active is None:
        reason = "No active program. A first program can be generated."
    elif optimal:
        reason = "Program can be regenerated. Timing is optimal for a new program."
    else:
        reason = "Program can be regenerated."
    return RegenerationCheck(
        can_regenerate=True,
        reason=reason,
        program_age_days=age_days,
        progress_percentage=progress,
        optimal_timing=optimal,
    )


def prescribed_targets(workouts: List[Workout]) -> Dict[str, ExerciseTargets]:
    """First prescription of every exercise across a program's workouts."""
    targets: Dict[str, ExerciseTargets] = {}
    for workout in sorted(workouts, key=lambda w: (w.week, w.day)):
        for exercise in workout.exercises:
            if exercise.exercise_id not in targets:
                targets[exercise.exercise_id] = ExerciseTargets(
                    target_sets=exercise.sets,
                    target_reps=exercise.target_reps,
                    category=exercise.category,
                )
    return targets


class EligibilityService:
    """Eligibility checks and advisory recommendations for one store set."""

    def __init__(
        self,
        programs: ProgramStore,
        profiles: ProfileStore,
        history: PerformanceHistoryService,
        rules: Optional[RegenerationRules] = None,
        progression_rules: Optional[ProgressionRules] = None,
        clock: Clock = utcnow,
    ):
        self.programs = programs
        self.profiles = profiles
        self.history = history
        self.rules = rules or RegenerationRules()
        self.progression_rules = progression_rules or history.rules
        self.clock = clock

    async def load_and_check(
        self, user_id: str
    ) -> Tuple[RegenerationCheck, ProgramState, Optional[WorkoutProgram], Optional[UserProfile]]:
        """
        Evaluate eligibility and return the records it was evaluated on.

        Callers that go on to mutate use ``state.active_program_id`` as the
        compare-and-swap key, so the commit fails if anything moved since.
        """
        state = await self.programs.get_state(user_id)
        active = None
        if state.active_program_id:
            active = await self.programs.get_program(user_id, state.active_program_id)
        profile = await self.profiles.get_profile(user_id)
        check = evaluate_eligibility(active, state, profile, self.clock(), self.rules)
        if not check.can_regenerate:
            logger.info(f"Regeneration blocked for user {user_id} by {check.blocking_rule}")
        return check, state, active, profile

    async def check_regeneration_eligibility(self, user_id: str) -> RegenerationCheck:
        """Evaluate the regeneration rules for a user. Read-only."""
        check, _, _, _ = await self.load_and_check(user_id)
        return check

    async def get_exercise_suggestions(self, user_id: str, program: WorkoutProgram) -> List[ProgressionSuggestion]:
        """Suggestions for every prescribed exercise that has history."""
        workouts = await self.programs.list_workouts(user_id, program.id)
        suggestions = []
        for exercise_id, targets in prescribed_targets(workouts).items():
            summary = await self.history.get_summary(user_id, exercise_id, targets=targets)
            suggestion = compute_progression_suggestion(exercise_id, summary, targets, self.progression_rules)
            if suggestion is not None:
                suggestions.append(suggestion)
        return suggestions

    async def get_regeneration_recommendations(self, user_id: str) -> RecommendationList:
        """
        Advisory view over eligibility and per-exercise plateaus.

        ``should_regenerate`` is a soft signal and never overrides the
        eligibility gate enforced on regeneration.
        """
        check = await self.check_regeneration_eligibility(user_id)
        active = await self.programs.get_active_program(user_id)

        if active is None:
            return RecommendationList(
                should_regenerate=check.can_regenerate,
                reason="No active program found.",
                benefits=["Get a personalized workout plan", "Start fresh with new exercises"],
                risks=[] if check.can_regenerate else [check.reason],
                eligibility=check,
            )

        suggestions = await self.get_exercise_suggestions(user_id, active)
        plateaued = [s.exercise_id for s in suggestions if s.reason_code == ReasonCode.PLATEAU_DETECTED]
        plateau_signal = len(plateaued) >= self.rules.plateau_exercise_threshold

        benefits: List[str] = []
        risks: List[str] = []
        if check.optimal_timing:
            benefits.append("Perfect timing for a new challenge")
            benefits.append("Your body has adapted to the current routine")
        if check.progress_percentage is not None and check.progress_percentage >= STRONG_PROGRESS_PERCENTAGE:
            benefits.append("You've made excellent progress on your current program")
        if check.program_age_days is not None and check.program_age_days >= MATURE_PROGRAM_DAYS:
            benefits.append("Program is mature - time for new stimulus")
        if plateau_signal:
            benefits.append(f"Fresh stimulus for {len(plateaued)} plateaued exercises")

        if not check.can_regenerate:
            risks.append(check.reason)
        if check.progress_percentage is not None and check.progress_percentage < LOW_PROGRESS_PERCENTAGE:
            risks.append("Consider completing more of your current program first")
        if check.program_age_days is not None and check.program_age_days < NEW_PROGRAM_DAYS:
            risks.append("Program is still relatively new")

        if plateau_signal:
            reason = f"Plateau detected on {len(plateaued)} exercises: {', '.join(plateaued)}."
        else:
            reason = check.reason

        return RecommendationList(
            should_regenerate=plateau_signal or (check.can_regenerate and check.optimal_timing),
            reason=reason,
            benefits=benefits,
            risks=risks,
            plateaued_exercises=plateaued,
            suggestions=suggestions,
            eligibility=check,
        )
