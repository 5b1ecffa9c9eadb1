# database.py
"""
RepCycle MongoDB Database Connection.

Motor client plus Beanie ODM. Program commits run in multi-document
transactions, which MongoDB only supports on a replica set.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from app.utils.errors import PersistenceError

logger = logging.getLogger(__name__)


class Database:
    """Process-wide MongoDB connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    _initialized: bool = False

    @classmethod
    async def connect_db(cls, database_url: str, database_name: str):
        """Connect, verify the deployment and register the document models."""
        # Several workers may race here at startup
        if cls._initialized:
            return

        try:
            cls.client = AsyncIOMotorClient(
                database_url,
                serverSelectionTimeoutMS=5000,
                maxPoolSize=50,
                minPoolSize=10,
                tz_aware=True,
            )
            hello = await cls.client.admin.command("hello")
            if not hello.get("setName"):
                logger.warning("MongoDB is not a replica set - program commits will fail")

            from app.models.mongodb import DOCUMENT_MODELS

            await init_beanie(database=cls.client[database_name], document_models=DOCUMENT_MODELS)
            cls._initialized = True
            logger.info(f"Connected to MongoDB: {database_name} ({len(DOCUMENT_MODELS)} document models)")

        except Exception as e:
            logger.error(f"Error connecting to MongoDB: {e}")
            raise

    @classmethod
    @asynccontextmanager
    async def transaction(cls):
        """Yield a session inside a transaction; commits on exit, aborts on error."""
        if cls.client is None:
            raise PersistenceError("Database not connected")
        async with await cls.client.start_session() as session:
            async with session.start_transaction():
                yield session

    @classmethod
    async def close_db(cls):
        if cls.client:
            cls.client.close()
            cls.client = None
            cls._initialized = False
            logger.info("MongoDB connection closed")

    @classmethod
    async def ping(cls) -> bool:
        """Test MongoDB connection."""
        if not cls.client:
            return False
        try:
            await cls.client.admin.command("ping")
            return True
        except Exception:
            return False
