"""
RepCycle API - Program Lifecycle State Machine.

Valid states and transitions of a WorkoutProgram record:

    active   --archive--> archived   (regeneration, paired with a new active)
    active   --revert-->  reverted   (paired with a restore of the predecessor)
    archived --restore--> active     (only as the pair of a revert)

Every other transition raises InvalidTransitionError.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Tuple

from app.schemas.program import ProgramStatus, WorkoutProgram
from app.utils.errors import InvalidTransitionError


class LifecycleEvent(str, Enum):
    ARCHIVE = "archive"
    REVERT = "revert"
    RESTORE = "restore"


TRANSITIONS: Dict[Tuple[ProgramStatus, LifecycleEvent], ProgramStatus] = {
    (ProgramStatus.ACTIVE, LifecycleEvent.ARCHIVE): ProgramStatus.ARCHIVED,
    (ProgramStatus.ACTIVE, LifecycleEvent.REVERT): ProgramStatus.REVERTED,
    (ProgramStatus.ARCHIVED, LifecycleEvent.RESTORE): ProgramStatus.ACTIVE,
}


def can_transition(status: ProgramStatus, event: LifecycleEvent) -> bool:
    return (status, event) in TRANSITIONS


def apply_transition(program: WorkoutProgram, event: LifecycleEvent, at: datetime) -> WorkoutProgram:
    """
    Return an updated copy of ``program`` after ``event``.

    Archive keeps the previous-program reference unchanged. Revert moves it
    to ``reverted_to_program_id`` so the restored predecessor is never
    referenced by two successors.
    """
    target = TRANSITIONS.get((program.status, event))
    if target is None:
        raise InvalidTransitionError(
            f"Cannot {event.value} a program that is {program.status.value}",
            detail=f"program_id={program.id}",
        )

    changes = {"status": target, "updated_at": at}
    if event == LifecycleEvent.ARCHIVE:
        changes["archived_at"] = at
    elif event == LifecycleEvent.REVERT:
        changes["reverted_at"] = at
        changes["reverted_to_program_id"] = program.previous_program_id
        changes["previous_program_id"] = None
    elif event == LifecycleEvent.RESTORE:
        changes["archived_at"] = None
    return program.model_copy(update=changes)


def verify_program_chain(programs: Iterable[WorkoutProgram]) -> List[str]:
    """
    Check a user's program records for lifecycle violations.

    Returns a list of human-readable problems; empty means consistent.
    """
    records = list(programs)
    problems: List[str] = []
    if not records:
        return problems

    by_id = {program.id: program for program in records}

    active = [program for program in records if program.status == ProgramStatus.ACTIVE]
    if len(active) != 1:
        problems.append(f"expected exactly one active program, found {len(active)}")

    successors: Dict[str, List[str]] = {}
    for program in records:
        if program.previous_program_id:
            successors.setdefault(program.previous_program_id, []).append(program.id)
    for previous_id, children in successors.items():
        if len(children) > 1:
            problems.append(f"program {previous_id} is referenced by {len(children)} successors")

    for program in records:
        seen = {program.id}
        current = program
        while current.previous_program_id:
            if current.previous_program_id in seen:
                problems.append(f"previous-program chain of {program.id} has a cycle")
                break
            seen.add(current.previous_program_id)
            current = by_id.get(current.previous_program_id)
            if current is None:
                break

    for program in records:
        if program.status == ProgramStatus.REVERTED and program.previous_program_id is not None:
            problems.append(f"reverted program {program.id} still links a predecessor")

    return problems
