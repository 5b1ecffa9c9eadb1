# app/workflows/__init__.py
"""
RepCycle Workflows Package.

Client-agnostic state machines driven by service results.
"""

from app.workflows.regeneration_dialog import (
    DialogEvent,
    DialogState,
    RegenerationDialog,
    next_state,
)

__all__ = [
    "DialogEvent",
    "DialogState",
    "RegenerationDialog",
    "next_state",
]
