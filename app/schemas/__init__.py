"""RepCycle API - Pydantic Schemas Package."""

from app.schemas.performance import (
    Trend,
    ExerciseCategory,
    ReasonCode,
    ExercisePerformanceRecord,
    SessionSnapshot,
    PerformanceSummary,
    ExerciseTargets,
    ProgressionSuggestion,
    PerformanceLogRequest,
    ProgressionRequest,
    ProgressionResponse,
    normalize_exercise_id,
)
from app.schemas.profile import (
    Goals,
    Availability,
    Experience,
    Preferences,
    UserProfile,
    ProfileUpdateRequest,
)
from app.schemas.program import (
    ProgramStatus,
    GenerationSource,
    ExercisePrescription,
    WorkoutPlan,
    SynthesizedProgram,
    Workout,
    WorkoutProgram,
    ProgramMetadata,
    ProgramState,
    GenerationRequest,
    ProgramResponse,
)
from app.schemas.regeneration import (
    RegenerationCheck,
    RegenerationResult,
    RecommendationList,
)

__all__ = [
    # Performance
    "Trend",
    "ExerciseCategory",
    "ReasonCode",
    "ExercisePerformanceRecord",
    "SessionSnapshot",
    "PerformanceSummary",
    "ExerciseTargets",
    "ProgressionSuggestion",
    "PerformanceLogRequest",
    "ProgressionRequest",
    "ProgressionResponse",
    "normalize_exercise_id",
    # Profile
    "Goals",
    "Availability",
    "Experience",
    "Preferences",
    "UserProfile",
    "ProfileUpdateRequest",
    # Program
    "ProgramStatus",
    "GenerationSource",
    "ExercisePrescription",
    "WorkoutPlan",
    "SynthesizedProgram",
    "Workout",
    "WorkoutProgram",
    "ProgramMetadata",
    "ProgramState",
    "GenerationRequest",
    "ProgramResponse",
    # Regeneration
    "RegenerationCheck",
    "RegenerationResult",
    "RecommendationList",
]
