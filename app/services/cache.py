"""
RepCycle API - Redis Cache Service.

Read-through cache for advisory reads (active program, eligibility,
recommendations). The document store stays canonical; every successful
program mutation invalidates the user's entries.
"""

import json
import logging
import math
import socket
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar
from uuid import uuid4

from pydantic import BaseModel

from app.schemas.program import WorkoutProgram
from app.schemas.regeneration import RecommendationList, RegenerationCheck

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class CacheService:
    """
    Redis cache service.

    Lazy-initializes to allow app startup without Redis. Includes a circuit
    breaker so a dead Redis never slows requests down. A ``redis_url`` of
    None disables caching entirely.
    """

    def __init__(self, redis_url: Optional[str], client=None):
        """Initialize Redis cache client (lazy connection)."""
        self._redis_url = redis_url
        self._client = client
        self._available = None if (redis_url or client is not None) else False
        self._circuit_open_until = None
        self._failure_count = 0
        self._circuit_threshold = 5
        self._circuit_timeout = 60
        self.logger = logging.getLogger(__name__)

    @property
    def enabled(self) -> bool:
        return self._available is not False

    def _is_circuit_open(self) -> bool:
        """Check if circuit breaker is open."""
        if self._circuit_open_until:
            if datetime.now() < self._circuit_open_until:
                return True
            # Circuit timeout expired, allow retry
            self._circuit_open_until = None
            self._failure_count = 0
        return False

    def _record_failure(self):
        """Record failure and potentially open circuit."""
        self._failure_count += 1
        if self._failure_count >= self._circuit_threshold:
            self._circuit_open_until = datetime.now() + timedelta(seconds=self._circuit_timeout)
            self.logger.warning(
                f"Circuit breaker OPEN for {self._circuit_timeout}s after {self._failure_count} failures"
            )

    def _record_success(self):
        """Reset failure counter on success."""
        if self._failure_count > 0:
            self._failure_count = 0
            self.logger.info("Circuit breaker reset after successful operation")

    @property
    def client(self):
        """Lazy-load Redis client with connection pooling."""
        if self._client is None and self._redis_url:
            try:
                import redis.asyncio as redis
                self._client = redis.from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=50,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    socket_keepalive=True,
                    socket_keepalive_options={
                        socket.TCP_KEEPIDLE: 60,
                        socket.TCP_KEEPINTVL: 30,
                        socket.TCP_KEEPCNT: 3
                    },
                )
            except Exception as e:
                self.logger.warning(f"Redis init failed: {e}")
                self._available = False
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        """Get cached value by key with circuit breaker."""
        if self._available is False or self._is_circuit_open():
            return None
        try:
            if self.client is None:
                return None
            value = await self.client.get(key)
            if value:
                self.logger.debug(f"Cache hit: {key}")
                self._record_success()
                return json.loads(value)
            return None
        except Exception as e:
            self.logger.debug(f"Cache get error: {e}")
            self._record_failure()
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> bool:
        """Set cached value with TTL and circuit breaker."""
        if self._available is False or self._is_circuit_open():
            return False
        try:
            if self.client is None:
                return False
            await self.client.setex(key, ttl_seconds, json.dumps(value))
            self._record_success()
            return True
        except Exception as e:
            self.logger.debug(f"Cache set error: {e}")
            self._record_failure()
            return False

    async def delete(self, *keys: str) -> int:
        """Delete cached values. Returns the number of keys removed."""
        if self._available is False or not keys:
            return 0
        try:
            if self.client is None:
                return 0
            deleted = await self.client.delete(*keys)
            self._record_success()
            return deleted
        except Exception as e:
            self.logger.warning(f"Cache delete error: {e}")
            self._record_failure()
            return 0

    async def healthcheck(self) -> bool:
        """Check Redis connection health."""
        if self._available is False:
            return False
        try:
            if self.client is None:
                return False
            await self.client.ping()
            self._available = True
            self._record_success()
            return True
        except Exception:
            self._record_failure()
            return False


class ProgramCache:
    """
    Per-user read-through cache keys for program advisory reads.

    Keys carry the user's cache generation. Invalidation moves the user to a
    new generation, so a load that started before a mutation writes its
    result under the old generation where no later read looks.
    """

    GENERATION_TTL_SECONDS = 7 * 24 * 3600

    def __init__(self, cache: CacheService, ttl_seconds: int = 300):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def generation_key(user_id: str) -> str:
        return f"program:generation:{user_id}"

    @staticmethod
    def active_program_key(user_id: str, generation: str = "0") -> str:
        return f"program:active:{user_id}:{generation}"

    @staticmethod
    def eligibility_key(user_id: str, generation: str = "0") -> str:
        return f"program:eligibility:{user_id}:{generation}"

    @staticmethod
    def recommendations_key(user_id: str, generation: str = "0") -> str:
        return f"program:recommendations:{user_id}:{generation}"

    def user_keys(self, user_id: str, generation: str = "0"):
        return (
            self.active_program_key(user_id, generation),
            self.eligibility_key(user_id, generation),
            self.recommendations_key(user_id, generation),
        )

    async def current_generation(self, user_id: str) -> str:
        generation = await self.cache.get(self.generation_key(user_id))
        return str(generation) if generation else "0"

    def eligibility_ttl(self, check: RegenerationCheck) -> int:
        """Blocked verdicts expire no later than the suggested wait."""
        if check.can_regenerate or check.suggested_wait_hours is None:
            return self.ttl_seconds
        return max(1, min(self.ttl_seconds, math.floor(check.suggested_wait_hours * 3600)))

    async def read_through(
        self,
        key: str,
        model: Type[ModelT],
        loader: Callable[[], Awaitable[Optional[ModelT]]],
        ttl_for: Optional[Callable[[ModelT], int]] = None,
    ) -> Optional[ModelT]:
        """Return the cached value for ``key`` or load, store and return it."""
        cached = await self.cache.get(key)
        if cached is not None:
            try:
                return model.model_validate(cached)
            except ValueError:
                logger.warning(f"Discarding unreadable cache entry {key}")
                await self.cache.delete(key)

        value = await loader()
        if value is not None:
            ttl_seconds = ttl_for(value) if ttl_for else self.ttl_seconds
            await self.cache.set(key, value.model_dump(mode="json"), ttl_seconds=ttl_seconds)
        return value

    async def active_program(self, user_id: str, loader) -> Optional[WorkoutProgram]:
        generation = await self.current_generation(user_id)
        return await self.read_through(self.active_program_key(user_id, generation), WorkoutProgram, loader)

    async def eligibility(self, user_id: str, loader) -> RegenerationCheck:
        generation = await self.current_generation(user_id)
        return await self.read_through(
            self.eligibility_key(user_id, generation),
            RegenerationCheck,
            loader,
            ttl_for=self.eligibility_ttl,
        )

    async def recommendations(self, user_id: str, loader) -> RecommendationList:
        generation = await self.current_generation(user_id)
        return await self.read_through(self.recommendations_key(user_id, generation), RecommendationList, loader)

    async def invalidate_user(self, user_id: str) -> int:
        """Move the user to a new generation and drop the previous entries."""
        previous = await self.current_generation(user_id)
        await self.cache.set(self.generation_key(user_id), uuid4().hex, ttl_seconds=self.GENERATION_TTL_SECONDS)
        return await self.cache.delete(*self.user_keys(user_id, previous))
