"""RepCycle API - Routes Package."""

from app.routes import (
    performance,
    profile,
    program,
)

__all__ = [
    "performance",
    "profile",
    "program",
]
