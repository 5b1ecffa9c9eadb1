# main.py
"""
RepCycle API - Main Application.

FastAPI app for progression advice and program lifecycle management,
backed by MongoDB (or in-memory storage for development).
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from database import Database
from settings import settings
from app.middleware.db_middleware import LazyDatabaseMiddleware
from app.utils.errors import RepCycleException

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR
            ),
        ],
    )
    logger.info(f"Sentry initialized ({settings.SENTRY_ENVIRONMENT})")
else:
    logger.warning("Sentry DSN not configured - error tracking disabled")

# Import routers
from app.routes import performance, profile, program


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(f"Starting RepCycle API ({settings.STORAGE_BACKEND} storage)...")
    if settings.is_mongodb:
        # If initialization fails, lazy initialization is used as fallback
        try:
            await Database.connect_db(settings.DATABASE_URL, settings.DATABASE_NAME)
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.warning(f"Failed to initialize database at startup: {e}")
            logger.warning("Database will be initialized lazily on first request")

    yield

    await Database.close_db()
    logger.info("RepCycle API shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="RepCycle API",
    version="1.0.0",
    description="Progressive overload advice and training program lifecycle",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Lazy database connection middleware
app.add_middleware(LazyDatabaseMiddleware)


@app.exception_handler(RepCycleException)
async def repcycle_exception_handler(request: Request, exc: RepCycleException):
    """Render application errors as JSON with their status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.detail})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.error_code},
    )


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint - fast response without database dependency."""
    return {
        "status": "ok",
        "environment": settings.ENV,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0"
    }


@app.get("/health/detailed")
async def health_check_detailed():
    """Detailed health check with MongoDB and Redis connectivity."""
    from app.dependencies import get_container

    cache = get_container().program_cache
    redis_ok = await cache.cache.healthcheck() if cache is not None else False

    if not settings.is_mongodb:
        return {
            "status": "ok",
            "database": "memory",
            "database_connected": True,
            "redis_connected": redis_ok,
            "environment": settings.ENV,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": "1.0.0"
        }

    mongo_ok = await Database.ping()
    return {
        "status": "ok" if mongo_ok else "degraded",
        "database": "mongodb",
        "database_connected": mongo_ok,
        "redis_connected": redis_ok,
        "environment": settings.ENV,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0"
    }


# Include routers
app.include_router(profile.router, prefix="/profile", tags=["Profile"])
app.include_router(performance.router, prefix="/performance", tags=["Performance"])
app.include_router(program.router, prefix="/program", tags=["Program"])


# Root endpoint
@app.get("/")
async def root():
    """API root endpoint."""
    return {
        "message": "RepCycle API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }
