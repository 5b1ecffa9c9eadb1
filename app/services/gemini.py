"""
RepCycle API - Gemini Program Synthesizer.

Gemini-backed program generation. Any failure (missing key, transport error,
unparseable or structurally invalid response) raises UpstreamServiceError so
the fallback combinator can take over.
"""

import json
import logging
from typing import Annotated, Any, Dict, List, Optional

from google import genai
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from app.schemas.performance import normalize_exercise_id
from app.schemas.program import (
    ExercisePrescription,
    GenerationRequest,
    SynthesizedProgram,
    WorkoutPlan,
)
from app.services.program_synthesis import (
    ProgramSynthesizer,
    parse_rep_range,
    validate_synthesized_program,
)
from app.services.progression import classify_exercise
from app.utils.errors import UpstreamServiceError, ValidationError

logger = logging.getLogger(__name__)


class _ModelWrapper:
    """
    Thin async wrapper exposing ``generate_content`` for one model name
    on top of the google-genai client.
    """

    def __init__(self, client: genai.Client, model_name: str):
        self.client = client
        self.model_name = model_name

    async def generate_content(self, contents):
        return await self.client.aio.models.generate_content(model=self.model_name, contents=contents)


# ============================================
# Response payload
# ============================================

class _GeminiExercise(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1)
    sets: int = Field(..., ge=1)
    reps: Any
    rest_time: int = Field(default=90, alias="restTime", ge=0)
    notes: Optional[str] = None


class _GeminiWorkout(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    day: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)
    estimated_time: int = Field(default=60, alias="estimatedTime", ge=1)
    exercises: List[_GeminiExercise] = Field(..., min_length=1)


class _GeminiCycle(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    cycle_number: int = Field(..., alias="cycleNumber", ge=1)
    weeks: List[Annotated[int, Field(ge=1)]] = Field(..., min_length=1)
    focus: Optional[str] = None
    workouts: List[_GeminiWorkout] = Field(..., min_length=1)


class _GeminiProgram(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    program_name: str = Field(..., alias="programName", min_length=1)
    total_weeks: int = Field(..., alias="totalWeeks", ge=1)
    rotation_cycles: List[_GeminiCycle] = Field(..., alias="rotationCycles", min_length=1)
    progression_notes: Optional[str] = Field(default=None, alias="progressionNotes")
    recovery_guidance: Optional[str] = Field(default=None, alias="recoveryGuidance")


def extract_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Extract and parse JSON from a Gemini response.
    """
    if not text:
        return None
    try:
        if "```json" in text:
            start = text.find("```json") + 7
            end = text.find("```", start)
            text = text[start:end].strip()
        elif "```" in text:
            start = text.find("```") + 3
            end = text.find("```", start)
            text = text[start:end].strip()

        json_start = text.find("{")
        json_end = text.rfind("}") + 1

        if json_start != -1 and json_end > json_start:
            return json.loads(text[json_start:json_end])

        return None

    except json.JSONDecodeError as e:
        logger.error(f"JSON parsing error: {str(e)}")
        return None


def build_program_prompt(request: GenerationRequest) -> str:
    """Prompt describing the user, their history and current program."""
    profile = request.profile
    goals = profile.goals.primary_goals if profile.goals else []
    availability = profile.availability
    experience = profile.experience

    history_lines = []
    for exercise_id, summary in sorted(request.history.items()):
        if not summary.has_history:
            continue
        history_lines.append(
            f"- {exercise_id}: {summary.last_sets}x{summary.last_reps} @ {summary.last_weight}kg, "
            f"effort {summary.last_effort_rating or 'n/a'}, trend {summary.trend.value}"
        )
    history = "\n".join(history_lines) or "- No logged sessions yet"

    current = "None (first program)"
    if request.current_program:
        cp = request.current_program
        current = (
            f"{cp.name}: week {cp.current_week}/{cp.total_weeks}, "
            f"{cp.workouts_completed}/{cp.total_workouts} workouts completed"
        )

    return f"""You are a Strength and Conditioning Coach. Focus on progressive overload, technique and recovery.

Design a new training program for this user:
- Primary goals: {', '.join(goals) or 'general fitness'}
- Experience: {experience.training_experience if experience else 'beginner'}
- Equipment: {', '.join(experience.equipment_access) if experience and experience.equipment_access else 'bodyweight'}
- Sessions per week: {availability.sessions_per_week if availability else 3}
- Session duration: {availability.session_duration_minutes if availability else 60} minutes
- Preferred split: {profile.preferences.preferred_workout_split}
- Favorite exercises: {', '.join(profile.preferences.favorite_exercises) or 'none'}
- Avoid: {', '.join(profile.preferences.disliked_exercises) or 'none'}
- Limitations: {', '.join(profile.limitations) or 'none'}

Recent performance:
{history}

Current program: {current}

Return ONLY valid JSON (no markdown):
{{
    "programName": "string",
    "totalWeeks": 6,
    "rotationCycles": [
        {{
            "cycleNumber": 1,
            "weeks": [1, 2],
            "focus": "Foundation Phase",
            "workouts": [
                {{
                    "day": 1,
                    "title": "Workout Name",
                    "estimatedTime": 60,
                    "exercises": [
                        {{"name": "Exercise Name", "sets": 3, "reps": "8-10", "restTime": 90, "notes": "Form cues"}}
                    ]
                }}
            ]
        }}
    ],
    "progressionNotes": "How to advance between cycles",
    "recoveryGuidance": "Rest and recovery recommendations"
}}
"""


def convert_gemini_program(payload: Dict[str, Any]) -> SynthesizedProgram:
    """
    Parse a rotation-cycle payload and expand it into week-by-week workouts.

    Raises:
        ValidationError: When the payload does not describe a usable program.
    """
    try:
        parsed = _GeminiProgram.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError("Generated program has an invalid structure", detail=str(e))

    workouts: List[WorkoutPlan] = []
    for cycle in parsed.rotation_cycles:
        for index, week in enumerate(cycle.weeks):
            for workout in cycle.workouts:
                exercises = []
                for exercise in workout.exercises:
                    target_reps, rep_range = parse_rep_range(exercise.reps)
                    exercise_id = normalize_exercise_id(exercise.name)
                    exercises.append(ExercisePrescription(
                        exercise_id=exercise_id,
                        name=exercise.name,
                        sets=exercise.sets,
                        target_reps=target_reps,
                        rep_range=rep_range,
                        rest_seconds=exercise.rest_time,
                        notes=exercise.notes,
                        category=classify_exercise(exercise_id),
                    ))
                workouts.append(WorkoutPlan(
                    week=week,
                    day=workout.day,
                    title=workout.title,
                    estimated_time=workout.estimated_time,
                    exercises=exercises,
                    rotation=cycle.cycle_number,
                    rotation_week=index + 1,
                    progression_notes=cycle.focus,
                ))

    program = SynthesizedProgram(
        name=parsed.program_name,
        total_weeks=parsed.total_weeks,
        workouts=sorted(workouts, key=lambda w: (w.week, w.day)),
        progression_notes=parsed.progression_notes,
        recovery_guidance=parsed.recovery_guidance,
    )
    return validate_synthesized_program(program)


class GeminiProgramSynthesizer(ProgramSynthesizer):
    """
    Gemini-backed program synthesizer.

    Makes exactly one request per call; retries are the caller's decision.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = "gemini-1.5-flash",
        client: Optional[genai.Client] = None,
    ):
        self.api_key = api_key
        if client is None and api_key:
            client = genai.Client(api_key=api_key)
        self.client = client
        self.text_model = _ModelWrapper(client, model_name) if client is not None else None
        self.logger = logging.getLogger(__name__)

    async def synthesize(self, request: GenerationRequest) -> SynthesizedProgram:
        if not self.text_model:
            raise UpstreamServiceError("Gemini API key not configured")

        prompt = build_program_prompt(request)
        try:
            response = await self.text_model.generate_content(prompt)
        except Exception as e:
            self.logger.error(f"Program generation error: {str(e)}")
            raise UpstreamServiceError("Gemini request failed", detail=str(e))

        payload = extract_json(getattr(response, "text", None))
        if payload is None:
            raise UpstreamServiceError("Gemini returned no JSON program")

        try:
            program = convert_gemini_program(payload)
        except ValidationError as e:
            raise UpstreamServiceError("Gemini returned an invalid program", detail=e.detail)

        self.logger.info(
            f"Generated program '{program.name}' with {len(program.workouts)} workouts for user {request.user_id}"
        )
        return program
