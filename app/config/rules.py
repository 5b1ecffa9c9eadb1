"""
RepCycle API - Training Rule Configuration.

Named, overridable thresholds for progression and program regeneration.
Defaults come from settings; services accept explicit instances so tests and
experiments can override individual values.
"""

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.performance import ExerciseCategory


class ProgressionRules(BaseModel):
    """Thresholds used by the history aggregator and progression advisor."""

    model_config = ConfigDict(frozen=True)

    history_lookback: int = Field(default=6, ge=1)
    plateau_miss_threshold: int = Field(default=3, ge=1)
    acceptable_effort_max: int = Field(default=8, ge=1, le=10)
    near_failure_effort_min: int = Field(default=9, ge=1, le=10)
    weight_increments: Dict[ExerciseCategory, float] = Field(
        default_factory=lambda: {
            ExerciseCategory.UPPER_ISOLATION: 1.25,
            ExerciseCategory.UPPER_COMPOUND: 2.5,
            ExerciseCategory.LOWER_ISOLATION: 2.5,
            ExerciseCategory.LOWER_COMPOUND: 5.0,
        }
    )
    deload_fraction: float = Field(default=0.15, gt=0, lt=1)
    deload_max_kg: float = Field(default=5.0, gt=0)

    @model_validator(mode="after")
    def check_thresholds(self) -> "ProgressionRules":
        # Misses are counted within the summary window only
        if self.plateau_miss_threshold > self.history_lookback:
            raise ValueError("plateau_miss_threshold must not exceed history_lookback")
        if self.acceptable_effort_max >= self.near_failure_effort_min:
            raise ValueError("acceptable_effort_max must be below near_failure_effort_min")
        return self

    def increment_for(self, category: ExerciseCategory) -> float:
        return self.weight_increments.get(category, self.weight_increments[ExerciseCategory.UPPER_COMPOUND])


class RegenerationRules(BaseModel):
    """Thresholds used by the eligibility checker and orchestrator."""

    model_config = ConfigDict(frozen=True)

    cooldown_hours: float = Field(default=24.0, ge=0)
    min_program_age_days: float = Field(default=7.0, ge=0)
    min_completed_workouts: int = Field(default=3, ge=0)
    revert_window_hours: float = Field(default=24.0, ge=0)
    plateau_exercise_threshold: int = Field(default=2, ge=1)
    optimal_age_days: int = 28
    optimal_progress_percentage: float = 80.0
    generation_timeout_seconds: float = Field(default=30.0, gt=0)


def progression_rules_from_settings(settings) -> ProgressionRules:
    """Build progression rules from application settings."""
    return ProgressionRules(
        history_lookback=settings.HISTORY_LOOKBACK,
        plateau_miss_threshold=settings.PLATEAU_MISS_THRESHOLD,
        acceptable_effort_max=settings.ACCEPTABLE_EFFORT_MAX,
        near_failure_effort_min=settings.NEAR_FAILURE_EFFORT_MIN,
        weight_increments={
            ExerciseCategory.UPPER_ISOLATION: settings.INCREMENT_UPPER_ISOLATION_KG,
            ExerciseCategory.UPPER_COMPOUND: settings.INCREMENT_UPPER_COMPOUND_KG,
            ExerciseCategory.LOWER_ISOLATION: settings.INCREMENT_LOWER_ISOLATION_KG,
            ExerciseCategory.LOWER_COMPOUND: settings.INCREMENT_LOWER_COMPOUND_KG,
        },
        deload_fraction=settings.DELOAD_FRACTION,
        deload_max_kg=settings.DELOAD_MAX_KG,
    )


def regeneration_rules_from_settings(settings) -> RegenerationRules:
    """Build regeneration rules from application settings."""
    return RegenerationRules(
        cooldown_hours=settings.REGENERATION_COOLDOWN_HOURS,
        min_program_age_days=settings.MIN_PROGRAM_AGE_DAYS,
        min_completed_workouts=settings.MIN_COMPLETED_WORKOUTS,
        revert_window_hours=settings.REVERT_WINDOW_HOURS,
        plateau_exercise_threshold=settings.PLATEAU_EXERCISE_THRESHOLD,
        generation_timeout_seconds=settings.GENERATION_TIMEOUT_SECONDS,
    )
