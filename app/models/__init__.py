"""RepCycle API - MongoDB document models."""

from app.models.mongodb import (
    ProfileDocument,
    ProgramDocument,
    WorkoutDocument,
    PerformanceLogDocument,
    ProgramStateDocument,
    DOCUMENT_MODELS,
)

__all__ = [
    "ProfileDocument",
    "ProgramDocument",
    "WorkoutDocument",
    "PerformanceLogDocument",
    "ProgramStateDocument",
    "DOCUMENT_MODELS",
]
