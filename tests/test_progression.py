"""Tests for the progression advisor."""

from datetime import timedelta

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st
from pydantic import ValidationError as PydanticValidationError

from app.config.rules import ProgressionRules
from app.schemas.performance import ExerciseCategory, ExerciseTargets, ReasonCode
from app.services.performance_history import summarize_exercise_history
from app.services.progression import classify_exercise, compute_progression_suggestion

from tests.conftest import START, make_record

PROPERTY_SETTINGS = settings(
    max_examples=100,
    suppress_health_check=[HealthCheck.too_slow],
    deadline=None,
)

TARGETS = ExerciseTargets(target_sets=3, target_reps=10)


def summary_of(exercise_id, *entries, targets=TARGETS):
    records = [
        make_record("u1", exercise_id, weight, reps, sets, effort, at=START + timedelta(days=i))
        for i, (weight, reps, sets, effort) in enumerate(entries)
    ]
    return summarize_exercise_history(exercise_id, records, targets=targets)


class TestClassifyExercise:
    def test_categories(self):
        assert classify_exercise("barbell_back_squat") == ExerciseCategory.LOWER_COMPOUND
        assert classify_exercise("leg_extension") == ExerciseCategory.LOWER_ISOLATION
        assert classify_exercise("bench_press") == ExerciseCategory.UPPER_COMPOUND
        assert classify_exercise("Dumbbell Bicep Curl") == ExerciseCategory.UPPER_ISOLATION

    def test_unknown_defaults_to_upper_compound(self):
        assert classify_exercise("mystery_move") == ExerciseCategory.UPPER_COMPOUND


class TestComputeProgressionSuggestion:
    def test_no_history_gives_no_suggestion(self):
        summary = summary_of("bench_press")
        assert compute_progression_suggestion("bench_press", summary, TARGETS) is None
        assert compute_progression_suggestion("bench_press", None, TARGETS) is None

    def test_met_target_at_acceptable_effort_adds_weight(self):
        summary = summary_of("bench_press", (60, 10, 3, 7))

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS)

        assert suggestion.reason_code == ReasonCode.MET_TARGET
        assert suggestion.weight_delta > 0
        assert suggestion.reason.lower() == "met target at acceptable effort."
        assert suggestion.suggested_weight == 62.5

    def test_increment_follows_category(self):
        summary = summary_of("back_squat", (100, 10, 3, 6))

        suggestion = compute_progression_suggestion("back_squat", summary, TARGETS)

        assert suggestion.weight_delta == 5.0

    def test_explicit_category_overrides_keywords(self):
        targets = ExerciseTargets(target_sets=3, target_reps=10, category=ExerciseCategory.UPPER_ISOLATION)
        summary = summary_of("bench_press", (60, 10, 3, 7), targets=targets)

        suggestion = compute_progression_suggestion("bench_press", summary, targets)

        assert suggestion.weight_delta == 1.25

    def test_missing_effort_counts_as_acceptable(self):
        summary = summary_of("bench_press", (60, 10, 3, None))

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS)

        assert suggestion.reason_code == ReasonCode.MET_TARGET

    def test_met_target_near_failure_repeats_weight(self):
        summary = summary_of("bench_press", (60, 10, 3, 10))

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS)

        assert suggestion.reason_code == ReasonCode.NEAR_FAILURE
        assert suggestion.weight_delta == 0
        assert suggestion.rep_delta == 0

    def test_single_miss_repeats_weight(self):
        summary = summary_of("bench_press", (60, 10, 3, 7), (60, 8, 3, 9))

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS)

        assert suggestion.reason_code == ReasonCode.MISSED_TARGET
        assert suggestion.weight_delta == 0
        assert suggestion.consecutive_misses == 1

    def test_three_consecutive_misses_deload(self):
        summary = summary_of("bench_press", (60, 8, 3, 9), (60, 9, 3, 9), (60, 7, 3, 10))

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS)

        assert suggestion.reason_code == ReasonCode.PLATEAU_DETECTED
        assert suggestion.weight_delta < 0
        assert suggestion.reason.lower() == "plateau detected."
        assert suggestion.consecutive_misses == 3

    def test_deload_is_capped(self):
        summary = summary_of("bench_press", (200, 8, 3, 9), (200, 9, 3, 9), (200, 7, 3, 10))

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS)

        assert suggestion.weight_delta == -5.0

    def test_missing_sets_counts_as_a_miss(self):
        summary = summary_of("bench_press", (60, 10, 2, 7))

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS)

        assert suggestion.reason_code == ReasonCode.MISSED_TARGET

    def test_bodyweight_progresses_reps(self):
        summary = summary_of("push_up", (0, 10, 3, 6))

        suggestion = compute_progression_suggestion("push_up", summary, TARGETS)

        assert suggestion.reason_code == ReasonCode.MET_TARGET
        assert suggestion.weight_delta == 0
        assert suggestion.rep_delta == 1

    def test_bodyweight_plateau_drops_reps(self):
        summary = summary_of("push_up", (0, 8, 3, 9), (0, 8, 3, 9), (0, 7, 3, 9))

        suggestion = compute_progression_suggestion("push_up", summary, TARGETS)

        assert suggestion.reason_code == ReasonCode.PLATEAU_DETECTED
        assert suggestion.weight_delta == 0
        assert suggestion.rep_delta < 0

    def test_threshold_is_configurable(self):
        rules = ProgressionRules(plateau_miss_threshold=2)
        summary = summary_of("bench_press", (60, 8, 3, 9), (60, 9, 3, 9))

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS, rules)

        assert suggestion.reason_code == ReasonCode.PLATEAU_DETECTED

    def test_high_effort_below_near_failure_consolidates(self):
        rules = ProgressionRules(acceptable_effort_max=7, near_failure_effort_min=9)
        summary = summary_of("bench_press", (60, 10, 3, 8))

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS, rules)

        assert suggestion.reason_code == ReasonCode.MET_TARGET
        assert suggestion.weight_delta == 0
        assert suggestion.rep_delta == 0
        assert "consolidate" in suggestion.reason.lower()

    def test_near_failure_minimum_is_configurable(self):
        rules = ProgressionRules(acceptable_effort_max=7, near_failure_effort_min=8)
        summary = summary_of("bench_press", (60, 10, 3, 8))

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS, rules)

        assert suggestion.reason_code == ReasonCode.NEAR_FAILURE


class TestProgressionRules:
    def test_miss_threshold_beyond_lookback_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            ProgressionRules(history_lookback=6, plateau_miss_threshold=8)

    def test_miss_threshold_up_to_lookback_deloads(self):
        rules = ProgressionRules(history_lookback=8, plateau_miss_threshold=8)
        entries = [(60, 8, 3, 9)] * 12
        records = [
            make_record("u1", "bench_press", *entry, at=START + timedelta(days=i))
            for i, entry in enumerate(entries)
        ]
        summary = summarize_exercise_history(
            "bench_press", records, lookback=rules.history_lookback, targets=TARGETS
        )

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS, rules)

        assert suggestion.reason_code == ReasonCode.PLATEAU_DETECTED
        assert suggestion.consecutive_misses == 8

    def test_overlapping_effort_bands_are_rejected(self):
        with pytest.raises(PydanticValidationError):
            ProgressionRules(acceptable_effort_max=9, near_failure_effort_min=9)


session = st.tuples(
    st.sampled_from([0.0, 20.0, 40.0, 60.0, 80.0, 100.0]),
    st.integers(min_value=0, max_value=15),
    st.integers(min_value=0, max_value=5),
    st.one_of(st.none(), st.integers(min_value=1, max_value=10)),
)


class TestProgressionProperties:
    @PROPERTY_SETTINGS
    @given(entries=st.lists(session, min_size=0, max_size=8))
    def test_suggestion_is_deterministic(self, entries):
        summary = summary_of("bench_press", *entries)

        first = compute_progression_suggestion("bench_press", summary, TARGETS)
        second = compute_progression_suggestion("bench_press", summary, TARGETS)

        assert first == second

    @PROPERTY_SETTINGS
    @given(entries=st.lists(session, min_size=1, max_size=8))
    def test_only_met_target_increases_load(self, entries):
        summary = summary_of("bench_press", *entries)

        suggestion = compute_progression_suggestion("bench_press", summary, TARGETS)

        assert suggestion is not None
        if suggestion.weight_delta > 0 or suggestion.rep_delta > 0:
            assert suggestion.reason_code == ReasonCode.MET_TARGET
        if suggestion.reason_code == ReasonCode.PLATEAU_DETECTED:
            assert suggestion.consecutive_misses >= ProgressionRules().plateau_miss_threshold
        assert suggestion.suggested_weight >= 0
