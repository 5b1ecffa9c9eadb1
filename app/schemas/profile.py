"""
RepCycle API - Profile Schemas.

The subset of the onboarding profile that program generation and the
eligibility rules depend on.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.utils.clock import utcnow


class Goals(BaseModel):
    """Training goals."""

    primary_goals: List[str] = Field(default_factory=list, description="e.g. muscle-gain, strength")
    secondary_goals: List[str] = Field(default_factory=list)
    target_timeline_months: Optional[int] = Field(default=None, ge=1, le=24)


class Availability(BaseModel):
    """Weekly schedule."""

    sessions_per_week: int = Field(..., ge=1, le=7)
    session_duration_minutes: int = Field(default=60, ge=10, le=180)
    available_days: List[str] = Field(default_factory=list)


class Experience(BaseModel):
    """Training background."""

    training_experience: str = Field(..., description="beginner/intermediate/advanced/expert")
    equipment_access: List[str] = Field(default_factory=list)
    workout_location: Optional[str] = None
    years_training: Optional[float] = None


class Preferences(BaseModel):
    """Program preferences."""

    preferred_workout_split: str = "full-body"
    favorite_exercises: List[str] = Field(default_factory=list)
    disliked_exercises: List[str] = Field(default_factory=list)


class UserProfile(BaseModel):
    """
    Training profile of a user.

    Attributes:
        goals: Primary/secondary goals.
        availability: Sessions per week and duration.
        experience: Experience level and equipment.
        preferences: Split and exercise preferences.
        limitations: Injuries or limitations to respect.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "user_id": "3f2c0a1e-3c1d-4a53-9d5e-9b2f7a0d2f11",
                "goals": {"primary_goals": ["muscle-gain"], "target_timeline_months": 6},
                "availability": {"sessions_per_week": 4, "session_duration_minutes": 60},
                "experience": {"training_experience": "intermediate", "equipment_access": ["full-gym"]},
                "preferences": {"preferred_workout_split": "upper-lower"}
            }
        }
    )

    user_id: str
    goals: Optional[Goals] = None
    availability: Optional[Availability] = None
    experience: Optional[Experience] = None
    preferences: Preferences = Field(default_factory=Preferences)
    limitations: List[str] = Field(default_factory=list)
    onboarding_completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def missing_fields(self) -> List[str]:
        """Names of the fields program generation cannot do without."""
        missing = []
        if not self.goals or not self.goals.primary_goals:
            missing.append("goals")
        if not self.availability:
            missing.append("availability")
        if not self.experience or not self.experience.training_experience:
            missing.append("experience")
        return missing


class ProfileUpdateRequest(BaseModel):
    """Schema for creating or replacing the caller's profile."""

    goals: Optional[Goals] = None
    availability: Optional[Availability] = None
    experience: Optional[Experience] = None
    preferences: Optional[Preferences] = None
    limitations: List[str] = Field(default_factory=list)
    onboarding_completed: bool = True
