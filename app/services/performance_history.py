"""
RepCycle API - Performance History Aggregator.

Reduces raw exercise log entries to per-exercise trend summaries.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from app.config.rules import ProgressionRules
from app.schemas.performance import (
    ExercisePerformanceRecord,
    ExerciseTargets,
    PerformanceSummary,
    SessionSnapshot,
    Trend,
    normalize_exercise_id,
)
from app.services.stores import PerformanceLogStore
from app.utils.errors import ValidationError

logger = logging.getLogger(__name__)

# Consecutive misses that make a trend declining regardless of load changes
DECLINING_MISS_COUNT = 2


def session_meets_target(session: SessionSnapshot, targets: ExerciseTargets) -> bool:
    """True when a session hit the target reps across all target sets."""
    return session.sets >= targets.target_sets and session.reps >= targets.target_reps


def count_consecutive_misses(sessions: Sequence[SessionSnapshot], targets: ExerciseTargets) -> int:
    """Count sessions missing the target, walking back from the newest."""
    misses = 0
    for session in sessions:
        if session_meets_target(session, targets):
            break
        misses += 1
    return misses


def _effort_acceptable(session: SessionSnapshot, acceptable_effort_max: int) -> bool:
    return session.effort_rating is None or session.effort_rating <= acceptable_effort_max


def classify_trend(
    sessions: Sequence[SessionSnapshot],
    targets: Optional[ExerciseTargets] = None,
    acceptable_effort_max: int = 8,
) -> Trend:
    """
    Classify the trend of newest-first sessions.

    Compares the newest session to the one before it. Repeated target misses
    count as declining whatever the load did.
    """
    if not sessions:
        return Trend.NONE
    if len(sessions) == 1:
        return Trend.FLAT

    if targets is not None and count_consecutive_misses(sessions, targets) >= DECLINING_MISS_COUNT:
        return Trend.DECLINING

    latest, previous = sessions[0], sessions[1]

    if latest.weight < previous.weight:
        return Trend.DECLINING
    if latest.weight > previous.weight:
        return Trend.IMPROVING if _effort_acceptable(latest, acceptable_effort_max) else Trend.FLAT

    if latest.reps < previous.reps or latest.sets < previous.sets:
        return Trend.DECLINING
    if latest.reps > previous.reps or latest.sets > previous.sets:
        return Trend.IMPROVING if _effort_acceptable(latest, acceptable_effort_max) else Trend.FLAT
    return Trend.FLAT


def summarize_exercise_history(
    exercise_id: str,
    records: Iterable[ExercisePerformanceRecord],
    lookback: int = 6,
    targets: Optional[ExerciseTargets] = None,
    acceptable_effort_max: int = 8,
) -> PerformanceSummary:
    """
    Reduce the records of one exercise to a summary.

    Args:
        exercise_id: Exercise id or name; normalized before matching.
        records: Log entries in any order; other exercises are ignored.
        lookback: Number of most recent sessions considered.
        targets: Optional targets enabling miss-based decline detection.
        acceptable_effort_max: Highest effort rating still counting as acceptable.

    Returns:
        A summary, or ``PerformanceSummary.first_time`` when nothing matches.
    """
    if lookback < 1:
        raise ValidationError("lookback must be at least 1")

    key = normalize_exercise_id(exercise_id)
    if not key:
        raise ValidationError("exercise_id must not be empty")

    matching = [record for record in records if record.exercise_id == key]
    if not matching:
        return PerformanceSummary.first_time(key)

    matching.sort(key=lambda record: record.performed_at, reverse=True)
    recent = matching[:lookback]
    sessions = [
        SessionSnapshot(
            weight=record.weight,
            reps=record.reps,
            sets=record.sets,
            effort_rating=record.effort_rating,
            performed_at=record.performed_at,
        )
        for record in recent
    ]
    latest = sessions[0]

    return PerformanceSummary(
        exercise_id=key,
        has_history=True,
        trend=classify_trend(sessions, targets, acceptable_effort_max),
        last_weight=latest.weight,
        last_reps=latest.reps,
        last_sets=latest.sets,
        last_effort_rating=latest.effort_rating,
        last_performed_at=latest.performed_at,
        session_count=len(sessions),
        recent_sessions=sessions,
    )


class PerformanceHistoryService:
    """Store-backed access to exercise logs and their summaries."""

    def __init__(self, store: PerformanceLogStore, rules: Optional[ProgressionRules] = None):
        self.store = store
        self.rules = rules or ProgressionRules()

    async def log_performance(self, record: ExercisePerformanceRecord) -> ExercisePerformanceRecord:
        """Append a log entry. Entries are never updated or deleted."""
        await self.store.append(record)
        logger.info(f"Logged {record.exercise_id} for user {record.user_id}")
        return record

    async def get_summary(
        self,
        user_id: str,
        exercise_id: str,
        lookback: Optional[int] = None,
        targets: Optional[ExerciseTargets] = None,
    ) -> PerformanceSummary:
        """Summary of the most recent sessions of one exercise."""
        key = normalize_exercise_id(exercise_id)
        if not key:
            raise ValidationError("exercise_id must not be empty")
        limit = lookback or self.rules.history_lookback
        records = await self.store.recent(user_id, key, limit)
        return summarize_exercise_history(
            key,
            records,
            lookback=limit,
            targets=targets,
            acceptable_effort_max=self.rules.acceptable_effort_max,
        )

    async def summarize_all(self, user_id: str, lookback: Optional[int] = None) -> Dict[str, PerformanceSummary]:
        """Summary for every exercise the user has logged."""
        summaries: Dict[str, PerformanceSummary] = {}
        exercise_ids: List[str] = await self.store.exercise_ids(user_id)
        for exercise_id in exercise_ids:
            summaries[exercise_id] = await self.get_summary(user_id, exercise_id, lookback=lookback)
        return summaries
