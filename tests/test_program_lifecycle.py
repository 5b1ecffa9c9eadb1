"""Tests for the program lifecycle state machine."""

import pytest

from app.schemas.program import ProgramStatus, WorkoutProgram
from app.services.program_lifecycle import (
    LifecycleEvent,
    apply_transition,
    can_transition,
    verify_program_chain,
)
from app.utils.errors import InvalidTransitionError

from tests.conftest import START


def program(status=ProgramStatus.ACTIVE, previous=None, **kwargs) -> WorkoutProgram:
    return WorkoutProgram(
        user_id="u1",
        name="Progressive Full Body Program",
        total_weeks=6,
        total_workouts=18,
        status=status,
        previous_program_id=previous,
        created_at=START,
        updated_at=START,
        **kwargs,
    )


class TestTransitions:
    def test_archive_active(self):
        archived = apply_transition(program(previous="p0"), LifecycleEvent.ARCHIVE, START)

        assert archived.status == ProgramStatus.ARCHIVED
        assert archived.archived_at == START
        assert archived.previous_program_id == "p0"

    def test_revert_moves_predecessor_link(self):
        reverted = apply_transition(program(previous="p0"), LifecycleEvent.REVERT, START)

        assert reverted.status == ProgramStatus.REVERTED
        assert reverted.reverted_at == START
        assert reverted.previous_program_id is None
        assert reverted.reverted_to_program_id == "p0"

    def test_restore_archived(self):
        archived = program(status=ProgramStatus.ARCHIVED, archived_at=START)

        restored = apply_transition(archived, LifecycleEvent.RESTORE, START)

        assert restored.status == ProgramStatus.ACTIVE
        assert restored.archived_at is None
        assert restored.id == archived.id

    def test_original_is_untouched(self):
        original = program()
        apply_transition(original, LifecycleEvent.ARCHIVE, START)
        assert original.status == ProgramStatus.ACTIVE

    @pytest.mark.parametrize(
        "status,event",
        [
            (ProgramStatus.ACTIVE, LifecycleEvent.RESTORE),
            (ProgramStatus.ARCHIVED, LifecycleEvent.ARCHIVE),
            (ProgramStatus.ARCHIVED, LifecycleEvent.REVERT),
            (ProgramStatus.REVERTED, LifecycleEvent.ARCHIVE),
            (ProgramStatus.REVERTED, LifecycleEvent.REVERT),
            (ProgramStatus.REVERTED, LifecycleEvent.RESTORE),
        ],
    )
    def test_invalid_transitions_raise(self, status, event):
        assert can_transition(status, event) is False
        with pytest.raises(InvalidTransitionError):
            apply_transition(program(status=status), event, START)


class TestVerifyProgramChain:
    def test_empty_is_consistent(self):
        assert verify_program_chain([]) == []

    def test_regenerated_chain_is_consistent(self):
        first = program(status=ProgramStatus.ARCHIVED)
        second = program(previous=first.id)
        assert verify_program_chain([first, second]) == []

    def test_two_active_programs(self):
        problems = verify_program_chain([program(), program()])
        assert any("exactly one active" in p for p in problems)

    def test_shared_predecessor(self):
        first = program(status=ProgramStatus.ARCHIVED)
        second = program(status=ProgramStatus.ARCHIVED, previous=first.id)
        third = program(previous=first.id)

        problems = verify_program_chain([first, second, third])

        assert any("successors" in p for p in problems)

    def test_cycle(self):
        first = program(status=ProgramStatus.ARCHIVED)
        second = program(previous=first.id)
        looped = first.model_copy(update={"previous_program_id": second.id})

        problems = verify_program_chain([looped, second])

        assert any("cycle" in p for p in problems)

    def test_reverted_program_with_link(self):
        first = program()
        stale = program(status=ProgramStatus.REVERTED, previous=first.id)

        problems = verify_program_chain([first, stale])

        assert any("still links" in p for p in problems)
