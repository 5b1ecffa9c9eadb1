"""RepCycle API - Utilities Package."""

from app.utils.clock import utcnow, ensure_utc
from app.utils.errors import (
    RepCycleException,
    AuthenticationError,
    NotFoundError,
    ValidationError,
    IneligibleError,
    UpstreamServiceError,
    ConflictError,
    InvalidTransitionError,
    PersistenceError,
)

__all__ = [
    "utcnow",
    "ensure_utc",
    "RepCycleException",
    "AuthenticationError",
    "NotFoundError",
    "ValidationError",
    "IneligibleError",
    "UpstreamServiceError",
    "ConflictError",
    "InvalidTransitionError",
    "PersistenceError",
]
