# app/workflows/regeneration_dialog.py
"""
RepCycle Regeneration Dialog Workflow.

Finite-state machine for the program regeneration dialog. Transitions are
driven only by the results of the orchestrator's operations, so any client
(web, mobile, CLI) can render the same flow.

    checking   --eligible-->   confirming
    checking   --ineligible--> blocked
    confirming --confirm-->    generating --succeeded--> success
                                          --failed-->    error
    blocked/confirming/success --revert--> reverting --succeeded--> reverted
                                                     --failed-->    error
    blocked/error --recheck--> checking

A service call that raises fires "failed" with the error message.
"""

import logging
from enum import Enum
from typing import Dict, Optional, Tuple

from app.schemas.regeneration import RecommendationList, RegenerationCheck, RegenerationResult
from app.services.program_regeneration import ProgramRegenerationService
from app.utils.errors import InvalidTransitionError, RepCycleException

logger = logging.getLogger(__name__)


class DialogState(str, Enum):
    CHECKING = "checking"
    BLOCKED = "blocked"
    CONFIRMING = "confirming"
    GENERATING = "generating"
    SUCCESS = "success"
    ERROR = "error"
    REVERTING = "reverting"
    REVERTED = "reverted"


class DialogEvent(str, Enum):
    ELIGIBLE = "eligible"
    INELIGIBLE = "ineligible"
    CONFIRM = "confirm"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REVERT = "revert"
    RECHECK = "recheck"


TRANSITIONS: Dict[Tuple[DialogState, DialogEvent], DialogState] = {
    (DialogState.CHECKING, DialogEvent.ELIGIBLE): DialogState.CONFIRMING,
    (DialogState.CHECKING, DialogEvent.INELIGIBLE): DialogState.BLOCKED,
    (DialogState.CHECKING, DialogEvent.FAILED): DialogState.ERROR,
    (DialogState.CONFIRMING, DialogEvent.CONFIRM): DialogState.GENERATING,
    (DialogState.GENERATING, DialogEvent.SUCCEEDED): DialogState.SUCCESS,
    (DialogState.GENERATING, DialogEvent.FAILED): DialogState.ERROR,
    (DialogState.BLOCKED, DialogEvent.REVERT): DialogState.REVERTING,
    (DialogState.CONFIRMING, DialogEvent.REVERT): DialogState.REVERTING,
    (DialogState.SUCCESS, DialogEvent.REVERT): DialogState.REVERTING,
    (DialogState.REVERTING, DialogEvent.SUCCEEDED): DialogState.REVERTED,
    (DialogState.REVERTING, DialogEvent.FAILED): DialogState.ERROR,
    (DialogState.BLOCKED, DialogEvent.RECHECK): DialogState.CHECKING,
    (DialogState.ERROR, DialogEvent.RECHECK): DialogState.CHECKING,
}


def next_state(state: DialogState, event: DialogEvent) -> DialogState:
    """Pure transition function. Raises on an event the state does not accept."""
    target = TRANSITIONS.get((state, event))
    if target is None:
        raise InvalidTransitionError(f"Dialog cannot handle '{event.value}' while {state.value}")
    return target


class RegenerationDialog:
    """
    Async driver of the dialog for one user.

    Holds only what the dialog displays; the document store stays the
    source of truth and every step re-reads through the orchestrator.
    """

    def __init__(self, service: ProgramRegenerationService, user_id: str):
        self.service = service
        self.user_id = user_id
        self.state = DialogState.CHECKING
        self.is_open = False
        self.eligibility: Optional[RegenerationCheck] = None
        self.recommendations: Optional[RecommendationList] = None
        self.result: Optional[RegenerationResult] = None
        self.error: Optional[str] = None
        self.can_revert = False

    def _fire(self, event: DialogEvent) -> DialogState:
        previous = self.state
        self.state = next_state(self.state, event)
        logger.debug(f"Dialog {self.user_id}: {previous.value} --{event.value}--> {self.state.value}")
        return self.state

    def _fail(self, error: RepCycleException) -> DialogState:
        logger.warning(f"Dialog {self.user_id} failed while {self.state.value}: {error.message}")
        self.error = error.message
        return self._fire(DialogEvent.FAILED)

    async def open(self) -> DialogState:
        """Open the dialog and run the eligibility check."""
        self.is_open = True
        self.state = DialogState.CHECKING
        self.result = None
        self.error = None
        return await self._check()

    async def _check(self) -> DialogState:
        try:
            self.eligibility = await self.service.check_regeneration_eligibility(self.user_id)
            self.recommendations = await self.service.get_regeneration_recommendations(
                self.user_id, use_cache=False
            )
            self.can_revert = await self.service.can_revert(self.user_id)
        except RepCycleException as e:
            return self._fail(e)
        if self.eligibility.can_regenerate:
            return self._fire(DialogEvent.ELIGIBLE)
        self.error = self.eligibility.reason
        return self._fire(DialogEvent.INELIGIBLE)

    async def confirm(self) -> DialogState:
        """Regenerate the program."""
        self._fire(DialogEvent.CONFIRM)
        try:
            self.result = await self.service.regenerate_program_smart(self.user_id)
            if self.result.success:
                self.can_revert = await self.service.can_revert(self.user_id)
        except RepCycleException as e:
            return self._fail(e)
        if self.result.success:
            self.error = None
            return self._fire(DialogEvent.SUCCEEDED)
        self.error = self.result.error
        return self._fire(DialogEvent.FAILED)

    async def revert(self) -> DialogState:
        """Restore the previous program."""
        if not self.can_revert:
            raise InvalidTransitionError("No program to revert to")
        self._fire(DialogEvent.REVERT)
        self.can_revert = False
        try:
            self.result = await self.service.revert_program(self.user_id)
        except RepCycleException as e:
            return self._fail(e)
        if self.result.success:
            self.error = None
            return self._fire(DialogEvent.SUCCEEDED)
        self.error = self.result.error
        return self._fire(DialogEvent.FAILED)

    async def recheck(self) -> DialogState:
        """Re-run the eligibility check from a blocked or failed dialog."""
        self._fire(DialogEvent.RECHECK)
        self.error = None
        return await self._check()

    def close(self) -> None:
        self.is_open = False
