"""
RepCycle API - FastAPI Dependencies.

Service wiring and dependency injection helpers for routes.
"""

import logging
from functools import lru_cache
from typing import Optional

from app.config.rules import (
    ProgressionRules,
    RegenerationRules,
    progression_rules_from_settings,
    regeneration_rules_from_settings,
)
from app.middleware.auth import get_current_user_id
from app.services.cache import CacheService, ProgramCache
from app.services.eligibility import EligibilityService
from app.services.gemini import GeminiProgramSynthesizer
from app.services.performance_history import PerformanceHistoryService
from app.services.program_regeneration import ProgramRegenerationService
from app.services.program_synthesis import (
    FallbackProgramSynthesizer,
    ProgramSynthesizer,
    RuleBasedProgramSynthesizer,
)
from app.services.stores import (
    InMemoryPerformanceLogStore,
    InMemoryProfileStore,
    InMemoryProgramStore,
    PerformanceLogStore,
    ProfileStore,
    ProgramStore,
)
from app.utils.clock import Clock, utcnow
from settings import settings

logger = logging.getLogger(__name__)

__all__ = ["ServiceContainer", "build_container", "get_container", "get_current_user_id"]


class ServiceContainer:
    """Stores and services sharing one storage backend."""

    def __init__(
        self,
        programs: ProgramStore,
        profiles: ProfileStore,
        logs: PerformanceLogStore,
        primary_synthesizer: ProgramSynthesizer,
        fallback_synthesizer: Optional[ProgramSynthesizer] = None,
        progression_rules: Optional[ProgressionRules] = None,
        regeneration_rules: Optional[RegenerationRules] = None,
        cache: Optional[CacheService] = None,
        cache_ttl_seconds: int = 300,
        clock: Clock = utcnow,
    ):
        self.programs = programs
        self.profiles = profiles
        self.logs = logs
        self.progression_rules = progression_rules or ProgressionRules()
        self.regeneration_rules = regeneration_rules or RegenerationRules()
        self.clock = clock

        self.history = PerformanceHistoryService(logs, self.progression_rules)
        self.eligibility = EligibilityService(
            programs,
            profiles,
            self.history,
            rules=self.regeneration_rules,
            progression_rules=self.progression_rules,
            clock=clock,
        )
        self.synthesizer = FallbackProgramSynthesizer(
            primary_synthesizer,
            fallback_synthesizer or RuleBasedProgramSynthesizer(),
            timeout=self.regeneration_rules.generation_timeout_seconds,
        )
        self.program_cache = ProgramCache(cache, cache_ttl_seconds) if cache is not None else None
        self.regeneration = ProgramRegenerationService(
            programs,
            self.history,
            self.eligibility,
            self.synthesizer,
            rules=self.regeneration_rules,
            cache=self.program_cache,
            clock=clock,
        )


def build_container() -> ServiceContainer:
    """Build the container for the configured storage backend."""
    if settings.is_mongodb:
        from app.services.mongo_stores import (
            MongoPerformanceLogStore,
            MongoProfileStore,
            MongoProgramStore,
        )
        programs, profiles, logs = MongoProgramStore(), MongoProfileStore(), MongoPerformanceLogStore()
    else:
        logger.warning("Using in-memory storage backend - data is lost on restart")
        programs, profiles, logs = InMemoryProgramStore(), InMemoryProfileStore(), InMemoryPerformanceLogStore()

    cache = CacheService(settings.REDIS_URL if settings.CACHE_ENABLED else None)

    return ServiceContainer(
        programs=programs,
        profiles=profiles,
        logs=logs,
        primary_synthesizer=GeminiProgramSynthesizer(
            api_key=settings.GEMINI_API_KEY,
            model_name=settings.GEMINI_MODEL,
        ),
        progression_rules=progression_rules_from_settings(settings),
        regeneration_rules=regeneration_rules_from_settings(settings),
        cache=cache,
        cache_ttl_seconds=settings.CACHE_TTL_PROGRAM,
    )


@lru_cache()
def get_container() -> ServiceContainer:
    """Dependency returning the process-wide service container."""
    return build_container()
