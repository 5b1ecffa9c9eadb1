"""
RepCycle API - Profile Routes.

Endpoints for the training profile collected during onboarding.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import ServiceContainer, get_container, get_current_user_id
from app.schemas.profile import Preferences, ProfileUpdateRequest, UserProfile
from app.utils.clock import utcnow


router = APIRouter()


@router.get("", response_model=UserProfile)
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> UserProfile:
    """
    Get current user's training profile.

    Raises:
        HTTPException: 404 if the profile was never saved.
    """
    profile = await container.profiles.get_profile(user_id)

    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found"
        )

    return profile


@router.put("", response_model=UserProfile)
async def update_profile(
    request: ProfileUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> UserProfile:
    """
    Create or replace current user's training profile.

    Cached eligibility depends on profile completeness, so the user's
    cached reads are dropped.
    """
    existing = await container.profiles.get_profile(user_id)
    now = utcnow()

    profile = UserProfile(
        user_id=user_id,
        goals=request.goals,
        availability=request.availability,
        experience=request.experience,
        preferences=request.preferences or (existing.preferences if existing else Preferences()),
        limitations=request.limitations,
        onboarding_completed=request.onboarding_completed,
        created_at=existing.created_at if existing else now,
        updated_at=now,
    )

    saved = await container.profiles.save_profile(profile)
    await container.regeneration.invalidate_cache(user_id)
    return saved
