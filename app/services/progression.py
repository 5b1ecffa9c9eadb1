"""
RepCycle API - Progression Advisor.

Deterministic load/rep suggestions from an exercise's performance summary.

Rules, evaluated in order:
    1. No history: no suggestion (first-time exercise).
    2. Target met at acceptable effort: add the category weight increment.
    3. Target met near failure: repeat the weight. Efforts between the
       acceptable maximum and the near-failure minimum also repeat the
       weight, as a consolidation session.
    4. Target missed: repeat the weight, or deload once the consecutive-miss
       threshold is reached.
"""

import logging
from typing import Optional

from app.config.rules import ProgressionRules
from app.schemas.performance import (
    ExerciseCategory,
    ExerciseTargets,
    PerformanceSummary,
    ProgressionSuggestion,
    ReasonCode,
    normalize_exercise_id,
)
from app.services.performance_history import count_consecutive_misses, session_meets_target

logger = logging.getLogger(__name__)

REASONS = {
    ReasonCode.MET_TARGET: "Met target at acceptable effort.",
    ReasonCode.NEAR_FAILURE: "Target met but near failure.",
    ReasonCode.MISSED_TARGET: "Missed target. Repeat the same weight.",
    ReasonCode.PLATEAU_DETECTED: "Plateau detected.",
}
CONSOLIDATE_REASON = "Met target at high effort. Consolidate before adding load."

LOWER_BODY_KEYWORDS = (
    "squat", "deadlift", "lunge", "leg", "calf", "glute", "hip", "hamstring",
    "quad", "rdl", "step_up", "good_morning", "thrust", "adductor", "abductor",
)
ISOLATION_KEYWORDS = (
    "curl", "extension", "raise", "fly", "flye", "kickback", "shrug",
    "pushdown", "pullover", "crunch", "adductor", "abductor",
)


def classify_exercise(exercise_id: str) -> ExerciseCategory:
    """Keyword-based movement category. Unknown exercises are upper compound."""
    key = normalize_exercise_id(exercise_id)
    lower = any(word in key for word in LOWER_BODY_KEYWORDS)
    isolation = any(word in key for word in ISOLATION_KEYWORDS)
    if lower:
        return ExerciseCategory.LOWER_ISOLATION if isolation else ExerciseCategory.LOWER_COMPOUND
    return ExerciseCategory.UPPER_ISOLATION if isolation else ExerciseCategory.UPPER_COMPOUND


def _format_kg(value: float) -> str:
    return f"{value:g}kg"


def _deload_reps(last_reps: int, rules: ProgressionRules) -> int:
    if last_reps <= 0:
        return 0
    return min(last_reps, max(1, round(last_reps * rules.deload_fraction)))


def compute_progression_suggestion(
    exercise_id: str,
    summary: Optional[PerformanceSummary],
    targets: ExerciseTargets,
    rules: Optional[ProgressionRules] = None,
) -> Optional[ProgressionSuggestion]:
    """
    Suggest the next-session adjustment for an exercise.

    Pure and idempotent: identical inputs always yield an identical suggestion.

    Args:
        exercise_id: Exercise the suggestion is for.
        summary: Performance summary of the exercise, or None.
        targets: Prescribed sets and reps, optionally with a category.
        rules: Thresholds and increments; defaults apply when omitted.

    Returns:
        A ProgressionSuggestion, or None when there is no history.
    """
    rules = rules or ProgressionRules()
    key = normalize_exercise_id(exercise_id)

    if summary is None or not summary.has_history or not summary.recent_sessions:
        return None

    latest = summary.recent_sessions[0]
    weight = latest.weight
    bodyweight = weight <= 0

    if session_meets_target(latest, targets):
        effort = latest.effort_rating
        if effort is None or effort <= rules.acceptable_effort_max:
            if bodyweight:
                return ProgressionSuggestion(
                    exercise_id=key,
                    current_weight=weight,
                    weight_delta=0.0,
                    rep_delta=1,
                    reason_code=ReasonCode.MET_TARGET,
                    reason=REASONS[ReasonCode.MET_TARGET],
                    implementation_notes="Add 1 rep per set. Keep the same variation.",
                )
            category = targets.category or classify_exercise(key)
            increment = rules.increment_for(category)
            return ProgressionSuggestion(
                exercise_id=key,
                current_weight=weight,
                weight_delta=increment,
                rep_delta=0,
                reason_code=ReasonCode.MET_TARGET,
                reason=REASONS[ReasonCode.MET_TARGET],
                implementation_notes=f"Add {_format_kg(increment)} to current weight. Maintain current rep range.",
            )

        if effort < rules.near_failure_effort_min:
            return ProgressionSuggestion(
                exercise_id=key,
                current_weight=weight,
                weight_delta=0.0,
                rep_delta=0,
                reason_code=ReasonCode.MET_TARGET,
                reason=CONSOLIDATE_REASON,
                implementation_notes=(
                    f"Repeat the same weight until effort is {rules.acceptable_effort_max} or lower."
                ),
            )

        return ProgressionSuggestion(
            exercise_id=key,
            current_weight=weight,
            weight_delta=0.0,
            rep_delta=0,
            reason_code=ReasonCode.NEAR_FAILURE,
            reason=REASONS[ReasonCode.NEAR_FAILURE],
            implementation_notes="Repeat the same weight and aim for a lower effort rating.",
        )

    misses = count_consecutive_misses(summary.recent_sessions, targets)

    if misses >= rules.plateau_miss_threshold:
        if bodyweight:
            rep_drop = _deload_reps(latest.reps, rules)
            return ProgressionSuggestion(
                exercise_id=key,
                current_weight=weight,
                weight_delta=0.0,
                rep_delta=-rep_drop,
                reason_code=ReasonCode.PLATEAU_DETECTED,
                reason=REASONS[ReasonCode.PLATEAU_DETECTED],
                implementation_notes=f"Deload: drop {rep_drop} rep(s) per set for one week, then rebuild.",
                consecutive_misses=misses,
            )
        reduction = round(min(weight * rules.deload_fraction, rules.deload_max_kg), 2)
        return ProgressionSuggestion(
            exercise_id=key,
            current_weight=weight,
            weight_delta=-reduction,
            rep_delta=0,
            reason_code=ReasonCode.PLATEAU_DETECTED,
            reason=REASONS[ReasonCode.PLATEAU_DETECTED],
            implementation_notes=(
                f"Deload: reduce weight by {_format_kg(reduction)} for one week, then rebuild."
            ),
            consecutive_misses=misses,
        )

    return ProgressionSuggestion(
        exercise_id=key,
        current_weight=weight,
        weight_delta=0.0,
        rep_delta=0,
        reason_code=ReasonCode.MISSED_TARGET,
        reason=REASONS[ReasonCode.MISSED_TARGET],
        implementation_notes=(
            f"Repeat {_format_kg(weight)} for {targets.target_sets}x{targets.target_reps}. "
            f"Miss {misses} of {rules.plateau_miss_threshold} before a deload."
        ),
        consecutive_misses=misses,
    )
