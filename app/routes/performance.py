"""
RepCycle API - Performance Routes.

Exercise logging, trend summaries and progression suggestions.
"""

from fastapi import APIRouter, Depends, status

from app.dependencies import ServiceContainer, get_container, get_current_user_id
from app.schemas.performance import (
    ExercisePerformanceRecord,
    ExerciseTargets,
    PerformanceLogRequest,
    PerformanceSummary,
    ProgressionRequest,
    ProgressionResponse,
    normalize_exercise_id,
)
from app.services.progression import compute_progression_suggestion
from app.utils.clock import utcnow
from app.utils.errors import ValidationError


router = APIRouter()

FIRST_TIME_MESSAGE = "First time doing this exercise. Pick a weight you can lift with good form."


@router.post("/logs", response_model=ExercisePerformanceRecord, status_code=status.HTTP_201_CREATED)
async def log_performance(
    request: PerformanceLogRequest,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> ExercisePerformanceRecord:
    """Append one exercise log entry."""
    try:
        record = ExercisePerformanceRecord(
            user_id=user_id,
            exercise_id=request.exercise_id,
            weight=request.weight,
            reps=request.reps,
            sets=request.sets,
            effort_rating=request.effort_rating,
            performed_at=request.performed_at or utcnow(),
        )
    except ValueError as e:
        raise ValidationError("Invalid performance log", detail=str(e))

    await container.history.log_performance(record)
    # Recommendations are derived from logs
    await container.regeneration.invalidate_cache(user_id)
    return record


@router.get("/{exercise_id}/summary", response_model=PerformanceSummary)
async def get_summary(
    exercise_id: str,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> PerformanceSummary:
    """Trend summary of the most recent sessions of an exercise."""
    return await container.history.get_summary(user_id, exercise_id)


@router.post("/progression", response_model=ProgressionResponse)
async def get_progression(
    request: ProgressionRequest,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> ProgressionResponse:
    """
    Next-session suggestion for an exercise.

    A first-time exercise gets a message and no suggestion.
    """
    exercise_id = normalize_exercise_id(request.exercise_id)
    targets = ExerciseTargets(
        target_sets=request.target_sets,
        target_reps=request.target_reps,
        category=request.category,
    )
    summary = await container.history.get_summary(user_id, exercise_id, targets=targets)
    suggestion = compute_progression_suggestion(exercise_id, summary, targets, container.progression_rules)

    if suggestion is None:
        return ProgressionResponse(
            exercise_id=exercise_id,
            first_time=True,
            message=FIRST_TIME_MESSAGE,
        )

    return ProgressionResponse(
        exercise_id=exercise_id,
        first_time=False,
        suggestion=suggestion,
        message=suggestion.reason,
    )
