"""Tests for the program regeneration orchestrator."""

import asyncio
from datetime import timedelta

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from app.schemas.program import GenerationSource, ProgramStatus
from app.schemas.profile import UserProfile
from app.services.program_lifecycle import verify_program_chain
from app.services.stores import InMemoryProgramStore
from app.utils.errors import ConflictError, NotFoundError, PersistenceError

from tests.conftest import (
    EmptySynthesizer,
    FailingSynthesizer,
    FrozenClock,
    complete_profile,
    complete_workouts,
    make_container,
    onboard,
)

PROPERTY_SETTINGS = settings(
    max_examples=50,
    suppress_health_check=[HealthCheck.too_slow],
    deadline=None,
)


class FlakyProgramStore(InMemoryProgramStore):
    """Fails while applying a staged change set once armed."""

    def __init__(self):
        super().__init__()
        self.fail_next_apply = False

    def _apply(self, programs, workouts, state):
        if self.fail_next_apply:
            self.fail_next_apply = False
            raise PersistenceError("disk full")
        super()._apply(programs, workouts, state)


async def ready_to_regenerate(container, user_id="u1"):
    """Onboard a user and complete enough workouts to pass the progress rule."""
    first = await onboard(container, user_id)
    await complete_workouts(container, user_id, 3)
    return first.program


class TestRegenerateProgramSmart:
    @pytest.mark.asyncio
    async def test_archives_current_and_links_new(self, container):
        first = await ready_to_regenerate(container)

        result = await container.regeneration.regenerate_program_smart("u1")

        assert result.success is True
        assert result.used_fallback is False
        assert result.program.previous_program_id == first.id
        assert result.program.generation_source == GenerationSource.AI
        assert result.workouts and all(w.program_id == result.program.id for w in result.workouts)
        archived = await container.programs.get_program("u1", first.id)
        assert archived.status == ProgramStatus.ARCHIVED
        assert archived.workouts_completed == 3
        active = await container.programs.get_active_program("u1")
        assert active.id == result.program.id
        assert verify_program_chain(await container.programs.list_programs("u1")) == []

    @pytest.mark.asyncio
    async def test_ineligible_changes_nothing(self, container):
        await onboard(container, "u1")
        state = await container.programs.get_state("u1")

        result = await container.regeneration.regenerate_program_smart("u1")

        assert result.success is False
        assert result.error_code == "ineligible"
        assert "insufficient progress" in result.error.lower()
        assert await container.programs.get_state("u1") == state
        assert container.synthesizer.primary.calls == 1

    @pytest.mark.asyncio
    async def test_no_active_program(self, container):
        await container.profiles.save_profile(complete_profile("u1"))

        result = await container.regeneration.regenerate_program_smart("u1")

        assert result.error_code == "not_found"

    @pytest.mark.asyncio
    async def test_primary_failure_falls_back(self, clock):
        primary = FailingSynthesizer()
        container = make_container(clock, primary=primary)
        await ready_to_regenerate(container)

        result = await container.regeneration.regenerate_program_smart("u1")

        assert result.success is True
        assert result.used_fallback is True
        assert result.program.generation_source == GenerationSource.FALLBACK
        assert primary.calls == 2

    @pytest.mark.asyncio
    async def test_fallback_failure_is_a_persistence_error(self, clock):
        container = make_container(clock, primary=FailingSynthesizer(), fallback=EmptySynthesizer())
        await container.profiles.save_profile(complete_profile("u1"))

        result = await container.regeneration.initialize_program("u1")

        assert result.success is False
        assert result.error_code == "persistence"
        assert await container.programs.get_active_program("u1") is None

    @pytest.mark.asyncio
    async def test_failed_commit_leaves_no_partial_state(self, clock):
        store = FlakyProgramStore()
        container = make_container(clock, programs=store)
        first = await ready_to_regenerate(container)
        state = await store.get_state("u1")

        store.fail_next_apply = True
        result = await container.regeneration.regenerate_program_smart("u1")

        assert result.error_code == "persistence"
        assert await store.get_state("u1") == state
        programs = await store.list_programs("u1")
        assert [p.id for p in programs] == [first.id]
        assert programs[0].status == ProgramStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_concurrent_regenerations_commit_once(self, container):
        await ready_to_regenerate(container)

        results = await asyncio.gather(
            container.regeneration.regenerate_program_smart("u1"),
            container.regeneration.regenerate_program_smart("u1"),
        )

        succeeded = [r for r in results if r.success]
        failed = [r for r in results if not r.success]
        assert len(succeeded) == 1
        assert len(failed) == 1
        assert failed[0].error_code in ("conflict", "ineligible")
        programs = await container.programs.list_programs("u1")
        assert len(programs) == 2
        assert verify_program_chain(programs) == []

    @pytest.mark.asyncio
    async def test_stale_pointer_is_retryable_conflict(self, container, clock):
        first = await ready_to_regenerate(container)
        regenerated = await container.regeneration.regenerate_program_smart("u1")

        with pytest.raises(ConflictError):
            await container.programs.commit_regeneration(
                "u1", first.id, regenerated.program, regenerated.workouts, clock()
            )


class TestRevertProgram:
    @pytest.mark.asyncio
    async def test_restores_predecessor(self, container, clock):
        await ready_to_regenerate(container)
        original = await container.programs.get_active_program("u1")
        regenerated = await container.regeneration.regenerate_program_smart("u1")
        clock.advance(hours=2)

        result = await container.regeneration.revert_program("u1")

        assert result.success is True
        assert result.program.id == original.id
        assert result.program.status == ProgramStatus.ACTIVE
        exclude = {"status", "updated_at", "archived_at"}
        assert result.program.model_dump(exclude=exclude) == original.model_dump(exclude=exclude)
        assert [w.program_id for w in result.workouts] == [original.id] * len(result.workouts)

        reverted = await container.programs.get_program("u1", regenerated.program.id)
        assert reverted.status == ProgramStatus.REVERTED
        assert reverted.previous_program_id is None
        assert reverted.reverted_to_program_id == original.id
        assert verify_program_chain(await container.programs.list_programs("u1")) == []

    @pytest.mark.asyncio
    async def test_revert_window_expired(self, container, clock):
        await ready_to_regenerate(container)
        await container.regeneration.regenerate_program_smart("u1")
        clock.advance(hours=24, seconds=1)

        result = await container.regeneration.revert_program("u1")

        assert result.success is False
        assert result.error_code == "ineligible"
        assert "expired" in result.error
        assert await container.regeneration.can_revert("u1") is False

    @pytest.mark.asyncio
    async def test_revert_just_inside_window(self, container, clock):
        await ready_to_regenerate(container)
        await container.regeneration.regenerate_program_smart("u1")
        clock.advance(hours=23, minutes=59)

        assert await container.regeneration.can_revert("u1") is True
        result = await container.regeneration.revert_program("u1")

        assert result.success is True

    @pytest.mark.asyncio
    async def test_revert_at_window_boundary(self, container, clock):
        await ready_to_regenerate(container)
        await container.regeneration.regenerate_program_smart("u1")
        clock.advance(hours=24)

        result = await container.regeneration.revert_program("u1")

        assert result.success is True

    @pytest.mark.asyncio
    async def test_first_program_cannot_revert(self, container):
        await onboard(container, "u1")

        result = await container.regeneration.revert_program("u1")

        assert result.error_code == "ineligible"
        assert "no previous program" in result.error

    @pytest.mark.asyncio
    async def test_double_revert(self, container):
        await ready_to_regenerate(container)
        await container.regeneration.regenerate_program_smart("u1")

        first = await container.regeneration.revert_program("u1")
        second = await container.regeneration.revert_program("u1")

        assert first.success is True
        assert second.success is False
        assert second.error_code == "ineligible"

    @pytest.mark.asyncio
    async def test_no_program(self, container):
        result = await container.regeneration.revert_program("nobody")
        assert result.error_code == "not_found"


class TestInitializeAndComplete:
    @pytest.mark.asyncio
    async def test_initialize_twice_conflicts(self, container):
        await onboard(container, "u1")

        result = await container.regeneration.initialize_program("u1")

        assert result.error_code == "conflict"

    @pytest.mark.asyncio
    async def test_initialize_requires_profile(self, container):
        await container.profiles.save_profile(UserProfile(user_id="u1"))

        result = await container.regeneration.initialize_program("u1")

        assert result.error_code == "ineligible"

    @pytest.mark.asyncio
    async def test_complete_workout_updates_counters(self, container):
        first = await onboard(container, "u1")
        last = first.workouts[-1]

        program = await container.regeneration.complete_workout("u1", last.id)
        again = await container.regeneration.complete_workout("u1", last.id)

        assert program.workouts_completed == 1
        assert program.current_week == last.week
        assert again.workouts_completed == 1

    @pytest.mark.asyncio
    async def test_complete_workout_of_archived_program(self, container):
        first = await ready_to_regenerate(container)
        await container.regeneration.regenerate_program_smart("u1")
        workouts = await container.regeneration.list_workouts("u1", first.id)

        with pytest.raises(ConflictError):
            await container.regeneration.complete_workout("u1", workouts[-1].id)

    @pytest.mark.asyncio
    async def test_unknown_workout(self, container):
        await onboard(container, "u1")
        with pytest.raises(NotFoundError):
            await container.regeneration.complete_workout("u1", "missing")

    @pytest.mark.asyncio
    async def test_list_workouts_of_unknown_program(self, container):
        with pytest.raises(NotFoundError):
            await container.regeneration.list_workouts("u1", "missing")


operation = st.one_of(
    st.just(("regenerate", 0)),
    st.just(("revert", 0)),
    st.just(("complete", 0)),
    st.tuples(st.just("advance"), st.integers(min_value=1, max_value=200)),
)


async def run_operations(operations):
    clock = FrozenClock()
    container = make_container(clock)
    await onboard(container, "u1")
    for name, hours in operations:
        if name == "regenerate":
            await container.regeneration.regenerate_program_smart("u1")
        elif name == "revert":
            await container.regeneration.revert_program("u1")
        elif name == "complete":
            await complete_workouts(container, "u1", 3)
        else:
            clock.advance(hours=hours)

        programs = await container.programs.list_programs("u1")
        assert verify_program_chain(programs) == []
        active = await container.programs.get_active_program("u1")
        assert active is not None
        assert active.status == ProgramStatus.ACTIVE
        assert active.workouts_completed <= active.total_workouts
        assert active.current_week <= active.total_weeks


class TestLifecycleProperties:
    @PROPERTY_SETTINGS
    @given(operations=st.lists(operation, max_size=15))
    def test_any_operation_sequence_keeps_one_consistent_chain(self, operations):
        asyncio.run(run_operations(operations))
