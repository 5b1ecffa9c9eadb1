"""RepCycle API - Services Package."""

from .auth import create_access_token, verify_token
from .cache import CacheService, ProgramCache
from .performance_history import PerformanceHistoryService, summarize_exercise_history
from .progression import compute_progression_suggestion, classify_exercise
from .program_lifecycle import LifecycleEvent, apply_transition, verify_program_chain
from .eligibility import EligibilityService
from .program_synthesis import (
    ProgramSynthesizer,
    RuleBasedProgramSynthesizer,
    FallbackProgramSynthesizer,
)
from .gemini import GeminiProgramSynthesizer
from .program_regeneration import ProgramRegenerationService

__all__ = [
    "create_access_token",
    "verify_token",
    "CacheService",
    "ProgramCache",
    "PerformanceHistoryService",
    "summarize_exercise_history",
    "compute_progression_suggestion",
    "classify_exercise",
    "LifecycleEvent",
    "apply_transition",
    "verify_program_chain",
    "EligibilityService",
    "ProgramSynthesizer",
    "RuleBasedProgramSynthesizer",
    "FallbackProgramSynthesizer",
    "GeminiProgramSynthesizer",
    "ProgramRegenerationService",
]
