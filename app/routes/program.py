"""
RepCycle API - Program Routes.

Active program, workout completion, regeneration and revert.

Mutations respond with the RegenerationResult body. Failed results keep
the body and use the status code of their error code.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from app.dependencies import ServiceContainer, get_container, get_current_user_id
from app.schemas.program import ProgramResponse, WorkoutProgram
from app.schemas.regeneration import RecommendationList, RegenerationCheck, RegenerationResult


router = APIRouter()

RESULT_STATUS = {
    "ineligible": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "conflict": status.HTTP_409_CONFLICT,
    "not_found": status.HTTP_404_NOT_FOUND,
    "persistence": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _result_response(result: RegenerationResult):
    if result.success:
        return result
    return JSONResponse(
        status_code=RESULT_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
        content=result.model_dump(mode="json"),
    )


@router.get("/active", response_model=ProgramResponse)
async def get_active_program(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> ProgramResponse:
    """
    Get the active program with its workouts.

    Raises:
        HTTPException: 404 if the user has no program yet.
    """
    program = await container.regeneration.get_active_program(user_id)
    if not program:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active program"
        )
    workouts = await container.regeneration.list_workouts(user_id, program.id)
    return ProgramResponse(program=program, workouts=workouts)


@router.get("/history", response_model=List[WorkoutProgram])
async def get_program_history(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> List[WorkoutProgram]:
    """All program records of the user, newest first."""
    return await container.regeneration.list_programs(user_id)


@router.post("/initialize", response_model=RegenerationResult, status_code=status.HTTP_201_CREATED)
async def initialize_program(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    """Create the first program after onboarding."""
    result = await container.regeneration.initialize_program(user_id)
    return _result_response(result)


@router.post("/workouts/{workout_id}/complete", response_model=WorkoutProgram)
async def complete_workout(
    workout_id: str,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> WorkoutProgram:
    """Mark a workout of the active program as completed."""
    return await container.regeneration.complete_workout(user_id, workout_id)


@router.get("/regeneration/eligibility", response_model=RegenerationCheck)
async def get_regeneration_eligibility(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> RegenerationCheck:
    """Whether the active program can be regenerated now."""
    return await container.regeneration.check_regeneration_eligibility(user_id, use_cache=True)


@router.get("/regeneration/recommendations", response_model=RecommendationList)
async def get_regeneration_recommendations(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
) -> RecommendationList:
    """Advisory signals for regenerating; never blocks."""
    return await container.regeneration.get_regeneration_recommendations(user_id)


@router.post("/regenerate", response_model=RegenerationResult)
async def regenerate_program(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    """Replace the active program with a newly generated one."""
    result = await container.regeneration.regenerate_program_smart(user_id)
    return _result_response(result)


@router.post("/revert", response_model=RegenerationResult)
async def revert_program(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    """Restore the previous program within the revert window."""
    result = await container.regeneration.revert_program(user_id)
    return _result_response(result)
