"""
RepCycle API - MongoDB store implementations.

Program mutations run in a multi-document transaction (replica set
required). The pointer document is updated conditionally on the expected
active program id; zero matches means a concurrent mutation won and the
transaction is aborted with ConflictError.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from database import Database
from app.models.mongodb import (
    PerformanceLogDocument,
    ProfileDocument,
    ProgramDocument,
    ProgramStateDocument,
    WorkoutDocument,
    profile_from_document,
    program_from_document,
    program_to_document,
    program_update_fields,
    record_from_document,
    record_to_document,
    state_from_document,
    workout_from_document,
    workout_to_document,
)
from app.schemas.performance import ExercisePerformanceRecord
from app.schemas.profile import UserProfile
from app.schemas.program import ProgramState, ProgramStatus, Workout, WorkoutProgram
from app.services.stores import (
    PerformanceLogStore,
    ProfileStore,
    ProgramStore,
    plan_initial_program,
    plan_regeneration,
    plan_revert,
    plan_workout_completion,
    validate_workouts,
)
from app.utils.errors import ConflictError, NotFoundError, PersistenceError, RepCycleException

logger = logging.getLogger(__name__)


class MongoPerformanceLogStore(PerformanceLogStore):
    async def append(self, record: ExercisePerformanceRecord) -> None:
        try:
            await record_to_document(record).insert()
        except PyMongoError as e:
            logger.error(f"Failed to store performance log: {e}")
            raise PersistenceError("Failed to store performance log", detail=str(e))

    async def recent(self, user_id: str, exercise_id: str, limit: int) -> List[ExercisePerformanceRecord]:
        documents = await PerformanceLogDocument.find(
            PerformanceLogDocument.user_id == user_id,
            PerformanceLogDocument.exercise_id == exercise_id,
        ).sort("-performed_at").limit(limit).to_list()
        return [record_from_document(doc) for doc in documents]

    async def exercise_ids(self, user_id: str) -> List[str]:
        ids = await PerformanceLogDocument.distinct("exercise_id", {"user_id": user_id})
        return sorted(ids)


class MongoProfileStore(ProfileStore):
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        document = await ProfileDocument.find_one(ProfileDocument.user_id == user_id)
        return profile_from_document(document) if document else None

    async def save_profile(self, profile: UserProfile) -> UserProfile:
        data = profile.model_dump()
        try:
            document = await ProfileDocument.find_one(ProfileDocument.user_id == profile.user_id)
            if document is None:
                await ProfileDocument(**data).insert()
            else:
                data.pop("created_at", None)
                await document.set(data)
        except PyMongoError as e:
            logger.error(f"Failed to save profile for user {profile.user_id}: {e}")
            raise PersistenceError("Failed to save profile", detail=str(e))
        return profile


class MongoProgramStore(ProgramStore):
    """Transactional program store on a MongoDB replica set."""

    async def _transaction(self, operation: Callable[[Any], Awaitable[Any]]):
        try:
            async with Database.transaction() as session:
                return await operation(session)
        except RepCycleException:
            raise
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key during program commit: {e}")
            raise ConflictError("Program state changed concurrently; retry the operation")
        except PyMongoError as e:
            if e.has_error_label("TransientTransactionError"):
                logger.warning(f"Transient transaction error: {e}")
                raise ConflictError("Program state changed concurrently; retry the operation")
            logger.error(f"Program transaction failed: {e}")
            raise PersistenceError("Failed to commit program changes", detail=str(e))

    @staticmethod
    async def _swap_pointer(
        session,
        user_id: str,
        expected_active_id: str,
        new_active_id: str,
        at: datetime,
        regenerated: bool,
    ) -> None:
        changes = {"active_program_id": new_active_id, "updated_at": at}
        if regenerated:
            changes["last_regenerated_at"] = at
        result = await ProgramStateDocument.get_motor_collection().update_one(
            {"user_id": user_id, "active_program_id": expected_active_id},
            {"$set": changes, "$inc": {"version": 1}},
            session=session,
        )
        if result.matched_count != 1:
            logger.warning(f"Stale active pointer for user {user_id}: expected {expected_active_id}")
            raise ConflictError("Active program changed since it was read; retry the operation")

    @staticmethod
    async def _replace_program(session, program: WorkoutProgram, expected_status: ProgramStatus) -> None:
        result = await ProgramDocument.get_motor_collection().update_one(
            {"uid": program.id, "user_id": program.user_id, "status": expected_status.value},
            {"$set": program_update_fields(program)},
            session=session,
        )
        if result.matched_count != 1:
            raise ConflictError(f"Program {program.id} is no longer {expected_status.value}")

    @staticmethod
    async def _load_program(session, user_id: str, program_id: str) -> WorkoutProgram:
        document = await ProgramDocument.find_one(
            ProgramDocument.uid == program_id,
            ProgramDocument.user_id == user_id,
            session=session,
        )
        if document is None:
            raise NotFoundError("Program not found", detail=f"program_id={program_id}")
        return program_from_document(document)

    async def get_state(self, user_id: str) -> ProgramState:
        document = await ProgramStateDocument.find_one(ProgramStateDocument.user_id == user_id)
        return state_from_document(document) if document else ProgramState(user_id=user_id)

    async def get_program(self, user_id: str, program_id: str) -> Optional[WorkoutProgram]:
        document = await ProgramDocument.find_one(
            ProgramDocument.uid == program_id,
            ProgramDocument.user_id == user_id,
        )
        return program_from_document(document) if document else None

    async def list_programs(self, user_id: str) -> List[WorkoutProgram]:
        documents = await ProgramDocument.find(ProgramDocument.user_id == user_id).sort("-created_at").to_list()
        return [program_from_document(doc) for doc in documents]

    async def list_workouts(self, user_id: str, program_id: str) -> List[Workout]:
        documents = await WorkoutDocument.find(
            WorkoutDocument.program_id == program_id,
            WorkoutDocument.user_id == user_id,
        ).sort("week", "day").to_list()
        return [workout_from_document(doc) for doc in documents]

    async def create_initial_program(
        self, user_id: str, program: WorkoutProgram, workouts: List[Workout], at: datetime
    ) -> WorkoutProgram:
        validate_workouts(program, workouts)
        created = plan_initial_program(program, at)

        async def operation(session):
            result = await ProgramStateDocument.get_motor_collection().update_one(
                {"user_id": user_id, "active_program_id": None},
                {"$set": {"active_program_id": created.id, "updated_at": at}, "$inc": {"version": 1}},
                upsert=True,
                session=session,
            )
            if result.matched_count == 0 and result.upserted_id is None:
                raise ConflictError("A program already exists for this user")
            await ProgramDocument.insert_one(program_to_document(created), session=session)
            await WorkoutDocument.insert_many([workout_to_document(w) for w in workouts], session=session)
            return created

        return await self._transaction(operation)

    async def commit_regeneration(
        self,
        user_id: str,
        expected_active_id: str,
        new_program: WorkoutProgram,
        workouts: List[Workout],
        at: datetime,
    ) -> WorkoutProgram:
        validate_workouts(new_program, workouts)

        async def operation(session):
            current = await self._load_program(session, user_id, expected_active_id)
            archived, created = plan_regeneration(current, new_program, at)
            await self._swap_pointer(session, user_id, expected_active_id, created.id, at, regenerated=True)
            await self._replace_program(session, archived, ProgramStatus.ACTIVE)
            await ProgramDocument.insert_one(program_to_document(created), session=session)
            await WorkoutDocument.insert_many([workout_to_document(w) for w in workouts], session=session)
            return created

        return await self._transaction(operation)

    async def commit_revert(
        self, user_id: str, expected_active_id: str, restore_program_id: str, at: datetime
    ) -> WorkoutProgram:
        async def operation(session):
            current = await self._load_program(session, user_id, expected_active_id)
            previous = await self._load_program(session, user_id, restore_program_id)
            reverted, restored = plan_revert(current, previous, at)
            await self._swap_pointer(session, user_id, expected_active_id, restored.id, at, regenerated=False)
            await self._replace_program(session, reverted, ProgramStatus.ACTIVE)
            await self._replace_program(session, restored, ProgramStatus.ARCHIVED)
            return restored

        return await self._transaction(operation)

    async def complete_workout(self, user_id: str, workout_id: str, at: datetime) -> WorkoutProgram:
        async def operation(session):
            document = await WorkoutDocument.find_one(
                WorkoutDocument.uid == workout_id,
                WorkoutDocument.user_id == user_id,
                session=session,
            )
            if document is None:
                raise NotFoundError("Workout not found")
            workout = workout_from_document(document)
            program = await self._load_program(session, user_id, workout.program_id)
            updated, completed = plan_workout_completion(program, workout, at)
            if completed is workout:
                return program
            await WorkoutDocument.get_motor_collection().update_one(
                {"uid": workout.id, "is_completed": False},
                {"$set": {"is_completed": True, "completed_at": at}},
                session=session,
            )
            await self._replace_program(session, updated, ProgramStatus.ACTIVE)
            return updated

        return await self._transaction(operation)
