"""Tests for regeneration eligibility and recommendations."""

from datetime import timedelta

import pytest

from app.config.rules import RegenerationRules
from app.schemas.performance import ReasonCode
from app.schemas.profile import UserProfile
from app.schemas.program import ProgramState, WorkoutProgram
from app.services.eligibility import (
    RULE_COOLDOWN,
    RULE_MINIMUM_PROGRESS,
    RULE_PROFILE_INCOMPLETE,
    evaluate_eligibility,
)

from tests.conftest import START, complete_profile, complete_workouts, make_record, onboard


def active_program(**kwargs) -> WorkoutProgram:
    values = dict(user_id="u1", name="Test", total_weeks=4, total_workouts=12, created_at=START)
    values.update(kwargs)
    return WorkoutProgram(**values)


class TestEvaluateEligibility:
    rules = RegenerationRules()

    def test_cooldown_blocks_first(self):
        program = active_program(workouts_completed=0)
        state = ProgramState(user_id="u1", last_regenerated_at=START)

        check = evaluate_eligibility(program, state, None, START + timedelta(hours=2), self.rules)

        assert check.can_regenerate is False
        assert check.blocking_rule == RULE_COOLDOWN
        assert check.suggested_wait_hours == 22

    def test_minimum_progress_requires_both_age_and_workouts_missing(self):
        program = active_program(workouts_completed=3)
        check = evaluate_eligibility(
            program, ProgramState(user_id="u1"), complete_profile("u1"), START + timedelta(hours=1), self.rules
        )
        assert check.can_regenerate is True

    def test_old_program_passes_minimum_progress(self):
        program = active_program(workouts_completed=0)
        check = evaluate_eligibility(
            program, ProgramState(user_id="u1"), complete_profile("u1"), START + timedelta(days=7), self.rules
        )
        assert check.can_regenerate is True

    def test_missing_profile(self):
        check = evaluate_eligibility(None, ProgramState(user_id="u1"), None, START, self.rules)

        assert check.can_regenerate is False
        assert check.blocking_rule == RULE_PROFILE_INCOMPLETE
        assert "goals" in check.reason

    def test_no_active_program_with_complete_profile(self):
        check = evaluate_eligibility(None, ProgramState(user_id="u1"), complete_profile("u1"), START, self.rules)

        assert check.can_regenerate is True
        assert check.program_age_days is None

    def test_optimal_timing_by_progress(self):
        program = active_program(workouts_completed=10)
        check = evaluate_eligibility(
            program, ProgramState(user_id="u1"), complete_profile("u1"), START + timedelta(days=10), self.rules
        )
        assert check.optimal_timing is True

    def test_thresholds_are_configurable(self):
        rules = RegenerationRules(min_completed_workouts=0, min_program_age_days=0)
        program = active_program()
        check = evaluate_eligibility(program, ProgramState(user_id="u1"), complete_profile("u1"), START, rules)
        assert check.can_regenerate is True


class TestEligibilityService:
    @pytest.mark.asyncio
    async def test_new_program_without_progress_is_blocked(self, container, clock):
        await onboard(container, "u1")
        clock.advance(hours=1)

        check = await container.regeneration.check_regeneration_eligibility("u1")

        assert check.can_regenerate is False
        assert check.blocking_rule == RULE_MINIMUM_PROGRESS
        assert "insufficient progress" in check.reason.lower()

    @pytest.mark.asyncio
    async def test_check_is_idempotent(self, container, clock):
        await onboard(container, "u1")
        clock.advance(hours=1)
        state_before = await container.programs.get_state("u1")

        first = await container.regeneration.check_regeneration_eligibility("u1")
        second = await container.regeneration.check_regeneration_eligibility("u1")

        assert first == second
        assert await container.programs.get_state("u1") == state_before

    @pytest.mark.asyncio
    async def test_cooldown_then_minimum_progress(self, container, clock):
        await onboard(container, "u1")
        await complete_workouts(container, "u1", 3)
        result = await container.regeneration.regenerate_program_smart("u1")
        assert result.success

        clock.advance(hours=2)
        check = await container.regeneration.check_regeneration_eligibility("u1")
        assert check.blocking_rule == RULE_COOLDOWN
        assert "2.0 hours ago" in check.reason

        clock.advance(hours=22)
        check = await container.regeneration.check_regeneration_eligibility("u1")
        assert check.blocking_rule == RULE_MINIMUM_PROGRESS

    @pytest.mark.asyncio
    async def test_incomplete_profile_blocks(self, container, clock):
        await onboard(container, "u1")
        await container.profiles.save_profile(UserProfile(user_id="u1"))
        clock.advance(days=8)

        check = await container.regeneration.check_regeneration_eligibility("u1")

        assert check.blocking_rule == RULE_PROFILE_INCOMPLETE

    @pytest.mark.asyncio
    async def test_recommendations_without_program(self, container):
        await container.profiles.save_profile(complete_profile("u1"))

        recommendations = await container.regeneration.get_regeneration_recommendations("u1")

        assert recommendations.reason == "No active program found."
        assert recommendations.should_regenerate is True

    @pytest.mark.asyncio
    async def test_plateaus_recommend_regeneration_even_when_blocked(self, container, clock):
        await onboard(container, "u1")
        for day in range(3):
            at = START + timedelta(days=day)
            await container.history.log_performance(make_record("u1", "back_squat", 100, 3, at=at))
            await container.history.log_performance(make_record("u1", "bench_press", 80, 3, at=at))
        clock.advance(days=3)

        recommendations = await container.regeneration.get_regeneration_recommendations("u1")

        assert recommendations.eligibility.can_regenerate is False
        assert recommendations.should_regenerate is True
        assert set(recommendations.plateaued_exercises) == {"back_squat", "bench_press"}
        assert all(s.reason_code == ReasonCode.PLATEAU_DETECTED for s in recommendations.suggestions)
        assert recommendations.eligibility.reason in recommendations.risks

    @pytest.mark.asyncio
    async def test_recommendations_never_unblock_regeneration(self, container, clock):
        await onboard(container, "u1")
        for day in range(3):
            await container.history.log_performance(
                make_record("u1", "back_squat", 100, 3, at=START + timedelta(days=day))
            )
        await container.history.log_performance(make_record("u1", "bench_press", 80, 3))
        clock.advance(days=3)

        recommendations = await container.regeneration.get_regeneration_recommendations("u1")
        result = await container.regeneration.regenerate_program_smart("u1")

        assert recommendations.plateaued_exercises == ["back_squat"]
        assert recommendations.should_regenerate is False
        assert result.success is False
        assert result.error_code == "ineligible"

    @pytest.mark.asyncio
    async def test_optimal_timing_recommends(self, container, clock):
        await onboard(container, "u1")
        clock.advance(days=30)

        recommendations = await container.regeneration.get_regeneration_recommendations("u1")

        assert recommendations.should_regenerate is True
        assert "Perfect timing for a new challenge" in recommendations.benefits
