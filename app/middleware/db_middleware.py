# app/middleware/db_middleware.py
"""
Lazy Database Connection Middleware.

Connects to MongoDB on the first request that needs it when startup could
not. Requests fail fast with 503 while the database stays unreachable.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from database import Database
from settings import settings

logger = logging.getLogger(__name__)

SKIP_PATHS = frozenset({"/", "/health", "/health/detailed", "/docs", "/openapi.json"})


class LazyDatabaseMiddleware(BaseHTTPMiddleware):
    """Ensure the MongoDB connection before handling a request."""

    async def dispatch(self, request: Request, call_next):
        if not settings.is_mongodb or request.url.path in SKIP_PATHS or Database._initialized:
            return await call_next(request)

        try:
            logger.info("Lazy initializing MongoDB connection...")
            await Database.connect_db(
                database_url=settings.DATABASE_URL,
                database_name=settings.DATABASE_NAME
            )
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"detail": "Database unavailable", "error": "persistence"},
            )

        return await call_next(request)
