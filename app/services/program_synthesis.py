"""
RepCycle API - Program Synthesis.

One ``ProgramSynthesizer`` interface with two implementations (Gemini-backed
and deterministic rule-based) and the try/fallback combinator the
orchestrator uses.
"""

import asyncio
import logging
import math
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from app.schemas.performance import ExerciseCategory, normalize_exercise_id
from app.schemas.program import (
    ExercisePrescription,
    GenerationRequest,
    SynthesizedProgram,
    WorkoutPlan,
)
from app.utils.errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)


class ProgramSynthesizer(ABC):
    """Builds a program from a generation request."""

    name: str = "synthesizer"

    @abstractmethod
    async def synthesize(self, request: GenerationRequest) -> SynthesizedProgram:
        ...


def validate_synthesized_program(program: SynthesizedProgram) -> SynthesizedProgram:
    """
    Structural validation shared by every synthesizer.

    Raises:
        ValidationError: When the program could not be persisted as-is.
    """
    if program.total_weeks < 1:
        raise ValidationError("Program must span at least one week")
    if not program.workouts:
        raise ValidationError("Program has no workouts")
    slots = set()
    for workout in program.workouts:
        if workout.week > program.total_weeks:
            raise ValidationError(
                f"Workout '{workout.title}' is scheduled in week {workout.week} "
                f"of a {program.total_weeks}-week program"
            )
        if not workout.exercises:
            raise ValidationError(f"Workout '{workout.title}' has no exercises")
        slot = (workout.week, workout.day)
        if slot in slots:
            raise ValidationError(f"Duplicate workout for week {workout.week} day {workout.day}")
        slots.add(slot)
    return program


def parse_rep_range(reps) -> Tuple[int, Optional[str]]:
    """
    Turn a rep prescription like ``"8-10"`` or ``12`` into a target.

    The upper bound of a range is the target; the original text is kept
    as the rep range.
    """
    if isinstance(reps, int):
        return max(reps, 1), None
    text = str(reps).strip()
    numbers = [int(n) for n in re.findall(r"\d+", text)]
    if not numbers:
        raise ValidationError(f"Unreadable rep prescription: {reps!r}")
    return max(max(numbers), 1), text


# ============================================
# Rule-based synthesizer
# ============================================

# (name, category) pools per workout focus
EXERCISE_POOLS: Dict[str, List[Tuple[str, ExerciseCategory]]] = {
    "full_body": [
        ("Goblet Squat", ExerciseCategory.LOWER_COMPOUND),
        ("Push-Up", ExerciseCategory.UPPER_COMPOUND),
        ("Dumbbell Row", ExerciseCategory.UPPER_COMPOUND),
        ("Romanian Deadlift", ExerciseCategory.LOWER_COMPOUND),
        ("Overhead Press", ExerciseCategory.UPPER_COMPOUND),
        ("Walking Lunge", ExerciseCategory.LOWER_COMPOUND),
        ("Lat Pulldown", ExerciseCategory.UPPER_COMPOUND),
        ("Hip Thrust", ExerciseCategory.LOWER_COMPOUND),
        ("Lateral Raise", ExerciseCategory.UPPER_ISOLATION),
        ("Leg Curl", ExerciseCategory.LOWER_ISOLATION),
    ],
    "upper": [
        ("Bench Press", ExerciseCategory.UPPER_COMPOUND),
        ("Barbell Row", ExerciseCategory.UPPER_COMPOUND),
        ("Overhead Press", ExerciseCategory.UPPER_COMPOUND),
        ("Pull-Up", ExerciseCategory.UPPER_COMPOUND),
        ("Incline Dumbbell Press", ExerciseCategory.UPPER_COMPOUND),
        ("Cable Row", ExerciseCategory.UPPER_COMPOUND),
        ("Lateral Raise", ExerciseCategory.UPPER_ISOLATION),
        ("Biceps Curl", ExerciseCategory.UPPER_ISOLATION),
        ("Triceps Pushdown", ExerciseCategory.UPPER_ISOLATION),
        ("Face Pull", ExerciseCategory.UPPER_ISOLATION),
    ],
    "lower": [
        ("Back Squat", ExerciseCategory.LOWER_COMPOUND),
        ("Romanian Deadlift", ExerciseCategory.LOWER_COMPOUND),
        ("Leg Press", ExerciseCategory.LOWER_COMPOUND),
        ("Walking Lunge", ExerciseCategory.LOWER_COMPOUND),
        ("Hip Thrust", ExerciseCategory.LOWER_COMPOUND),
        ("Leg Curl", ExerciseCategory.LOWER_ISOLATION),
        ("Leg Extension", ExerciseCategory.LOWER_ISOLATION),
        ("Standing Calf Raise", ExerciseCategory.LOWER_ISOLATION),
        ("Bulgarian Split Squat", ExerciseCategory.LOWER_COMPOUND),
        ("Seated Calf Raise", ExerciseCategory.LOWER_ISOLATION),
    ],
    "push": [
        ("Bench Press", ExerciseCategory.UPPER_COMPOUND),
        ("Overhead Press", ExerciseCategory.UPPER_COMPOUND),
        ("Incline Dumbbell Press", ExerciseCategory.UPPER_COMPOUND),
        ("Dips", ExerciseCategory.UPPER_COMPOUND),
        ("Lateral Raise", ExerciseCategory.UPPER_ISOLATION),
        ("Cable Fly", ExerciseCategory.UPPER_ISOLATION),
        ("Triceps Pushdown", ExerciseCategory.UPPER_ISOLATION),
        ("Overhead Triceps Extension", ExerciseCategory.UPPER_ISOLATION),
    ],
    "pull": [
        ("Deadlift", ExerciseCategory.LOWER_COMPOUND),
        ("Pull-Up", ExerciseCategory.UPPER_COMPOUND),
        ("Barbell Row", ExerciseCategory.UPPER_COMPOUND),
        ("Lat Pulldown", ExerciseCategory.UPPER_COMPOUND),
        ("Cable Row", ExerciseCategory.UPPER_COMPOUND),
        ("Face Pull", ExerciseCategory.UPPER_ISOLATION),
        ("Biceps Curl", ExerciseCategory.UPPER_ISOLATION),
        ("Hammer Curl", ExerciseCategory.UPPER_ISOLATION),
    ],
    "legs": [
        ("Back Squat", ExerciseCategory.LOWER_COMPOUND),
        ("Romanian Deadlift", ExerciseCategory.LOWER_COMPOUND),
        ("Leg Press", ExerciseCategory.LOWER_COMPOUND),
        ("Bulgarian Split Squat", ExerciseCategory.LOWER_COMPOUND),
        ("Leg Curl", ExerciseCategory.LOWER_ISOLATION),
        ("Leg Extension", ExerciseCategory.LOWER_ISOLATION),
        ("Standing Calf Raise", ExerciseCategory.LOWER_ISOLATION),
        ("Hip Thrust", ExerciseCategory.LOWER_COMPOUND),
    ],
    "bodyweight": [
        ("Bodyweight Squat", ExerciseCategory.LOWER_COMPOUND),
        ("Push-Up", ExerciseCategory.UPPER_COMPOUND),
        ("Reverse Lunge", ExerciseCategory.LOWER_COMPOUND),
        ("Pike Push-Up", ExerciseCategory.UPPER_COMPOUND),
        ("Glute Bridge", ExerciseCategory.LOWER_COMPOUND),
        ("Inverted Row", ExerciseCategory.UPPER_COMPOUND),
        ("Jump Squat", ExerciseCategory.LOWER_COMPOUND),
        ("Diamond Push-Up", ExerciseCategory.UPPER_COMPOUND),
        ("Single-Leg Calf Raise", ExerciseCategory.LOWER_ISOLATION),
        ("Plank", ExerciseCategory.UPPER_ISOLATION),
    ],
}

# Body-part split days borrow from the split pools
BODY_PART_POOLS = {
    "Chest": "push",
    "Back": "pull",
    "Shoulders": "push",
    "Legs": "legs",
    "Arms": "upper",
}

PHASES = {1: "Foundation", 2: "Build", 3: "Peak"}
PHASE_NOTES = {
    1: "Foundation phase: Focus on proper form, controlled movements, and building base strength.",
    2: "Build phase: Increase intensity and volume. Add complexity to movements.",
    3: "Peak phase: Maximum intensity with advanced variations and techniques.",
}

GOOD_PROGRESS_RATIO = 0.6


class RuleBasedProgramSynthesizer(ProgramSynthesizer):
    """
    Deterministic program builder. Never calls out of process.

    Produces a ``total_weeks`` program with one workout per weekly session,
    rotating Foundation/Build/Peak phases every two weeks.
    """

    name = "rule_based"

    def __init__(self, total_weeks: int = 6):
        self.total_weeks = total_weeks

    async def synthesize(self, request: GenerationRequest) -> SynthesizedProgram:
        return self.build(request)

    def build(self, request: GenerationRequest) -> SynthesizedProgram:
        profile = request.profile
        missing = profile.missing_fields()
        if missing:
            raise ValidationError(f"Profile incomplete: missing {', '.join(missing)}")

        split = profile.preferences.preferred_workout_split
        sessions = profile.availability.sessions_per_week
        duration = profile.availability.session_duration_minutes
        experience = profile.experience.training_experience.lower()
        advanced = self._has_good_progress(request)
        level = "Advanced" if advanced else "Progressive"
        intensity_note = (
            " Push your limits with heavier weights and shorter rest periods."
            if advanced else
            " Progress at a comfortable pace, prioritizing form over weight."
        )
        sets, reps, rest = self._volume_for_goals(profile.goals.primary_goals)
        disliked = {normalize_exercise_id(name) for name in profile.preferences.disliked_exercises}
        bodyweight_only = self._bodyweight_only(profile.experience.equipment_access)

        workouts: List[WorkoutPlan] = []
        for week in range(1, self.total_weeks + 1):
            rotation = min(math.ceil(week / 2), 3)
            rotation_week = 2 if week % 2 == 0 else 1
            for day in range(1, sessions + 1):
                title, pool_key = self._title_and_pool(split, day, rotation, level)
                if bodyweight_only:
                    pool_key = "bodyweight"
                count = min(self._exercise_count(experience) + (rotation - 1), 10)
                exercises = self._pick_exercises(pool_key, count, rotation + day - 2, sets, reps, rest, disliked)
                workouts.append(WorkoutPlan(
                    week=week,
                    day=day,
                    title=title,
                    estimated_time=duration,
                    exercises=exercises,
                    rotation=rotation,
                    rotation_week=rotation_week,
                    progression_notes=PHASE_NOTES[rotation] + intensity_note,
                ))

        split_label = split.replace("-", " ").title()
        return SynthesizedProgram(
            name=f"{level} {split_label} Program",
            total_weeks=self.total_weeks,
            workouts=workouts,
            progression_notes="Advance one phase every two weeks; add load when all sets hit the target reps.",
            recovery_guidance="Keep at least one rest day between sessions that train the same muscles.",
        )

    @staticmethod
    def _has_good_progress(request: GenerationRequest) -> bool:
        current = request.current_program
        if current is None or current.total_workouts <= 0:
            return False
        return current.workouts_completed >= current.total_workouts * GOOD_PROGRESS_RATIO

    @staticmethod
    def _exercise_count(experience: str) -> int:
        if experience == "beginner":
            return 4
        if experience == "intermediate":
            return 6
        return 8

    @staticmethod
    def _volume_for_goals(goals: List[str]) -> Tuple[int, int, int]:
        joined = " ".join(goals).lower()
        if "strength" in joined or "power" in joined:
            return 5, 5, 150
        if "muscle" in joined or "hypertrophy" in joined:
            return 3, 10, 90
        return 3, 12, 60

    @staticmethod
    def _bodyweight_only(equipment: List[str]) -> bool:
        if not equipment:
            return True
        names = {normalize_exercise_id(item) for item in equipment}
        return names <= {"bodyweight", "none", "no_equipment"}

    @staticmethod
    def _title_and_pool(split: str, day: int, rotation: int, level: str) -> Tuple[str, str]:
        phase = PHASES[rotation]
        if split == "full-body":
            return f"{level} Full Body {phase} - Day {day}", "full_body"
        if split == "upper-lower":
            if day % 2 == 1:
                return f"{level} Upper Body {phase}", "upper"
            return f"{level} Lower Body {phase}", "lower"
        if split == "push-pull-legs":
            focus = ["Push", "Pull", "Legs"][(day - 1) % 3]
            return f"{level} {focus} {phase}", focus.lower()
        if split == "body-part-split":
            part = ["Chest", "Back", "Shoulders", "Legs", "Arms"][(day - 1) % 5]
            return f"{level} {part} {phase}", BODY_PART_POOLS[part]
        return f"{level} Workout {day} - {phase}", "full_body"

    @staticmethod
    def _pick_exercises(
        pool_key: str,
        count: int,
        offset: int,
        sets: int,
        reps: int,
        rest: int,
        disliked: set,
    ) -> List[ExercisePrescription]:
        pool = [entry for entry in EXERCISE_POOLS[pool_key] if normalize_exercise_id(entry[0]) not in disliked]
        if not pool:
            pool = EXERCISE_POOLS["bodyweight"]
        count = min(count, len(pool))
        picked = []
        for i in range(count):
            name, category = pool[(offset + i) % len(pool)]
            picked.append(ExercisePrescription(
                exercise_id=normalize_exercise_id(name),
                name=name,
                sets=sets,
                target_reps=reps,
                rep_range=f"{max(reps - 2, 1)}-{reps}",
                rest_seconds=rest,
                category=category,
            ))
        return picked


# ============================================
# Try/fallback combinator
# ============================================

class SynthesisOutcome(BaseModel):
    """A synthesized program and the path that produced it."""

    program: SynthesizedProgram
    used_fallback: bool
    upstream_error: Optional[str] = None


class FallbackProgramSynthesizer:
    """
    Try the primary synthesizer once under a timeout, then the fallback.

    No retries against the primary. A fallback result that fails
    validation raises PersistenceError.
    """

    def __init__(self, primary: ProgramSynthesizer, fallback: ProgramSynthesizer, timeout: float = 30.0):
        self.primary = primary
        self.fallback = fallback
        self.timeout = timeout

    async def synthesize(self, request: GenerationRequest) -> SynthesisOutcome:
        try:
            program = await asyncio.wait_for(self.primary.synthesize(request), timeout=self.timeout)
            validate_synthesized_program(program)
            return SynthesisOutcome(program=program, used_fallback=False)
        except asyncio.TimeoutError:
            upstream_error = f"{self.primary.name} timed out after {self.timeout}s"
        except Exception as e:
            upstream_error = f"{self.primary.name} failed: {e}"

        logger.warning(f"Using fallback synthesizer for user {request.user_id}: {upstream_error}")

        try:
            program = await self.fallback.synthesize(request)
            validate_synthesized_program(program)
        except Exception as e:
            logger.error(f"Fallback synthesizer failed for user {request.user_id}: {e}")
            raise PersistenceError(
                "Could not build a valid program",
                detail=f"fallback {self.fallback.name} failed: {e}",
            )
        return SynthesisOutcome(program=program, used_fallback=True, upstream_error=upstream_error)
