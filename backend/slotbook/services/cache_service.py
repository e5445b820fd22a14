# backend/slotbook/services/cache_service.py
"""
Read-through cache for availability and slot lookups.

Redis is used when configured, with an in-process fallback otherwise. The
cache is never the system of record: every failure is logged and the caller
falls through to the database.

Invalidation uses generation counters. Every cached entry key embeds the
generations it was read under (per entity, per consultant, global). A
mutation bumps those counters after commit, so entries written by a read
that raced with the mutation land under an old generation and are never
served again.
"""

from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from enum import Enum
import hashlib
import json
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, TypeVar, Union

import redis
from redis import Redis
from redis.exceptions import RedisError

from ..monitoring.prometheus_metrics import prometheus_metrics
from .base import BaseService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreaker:
    """
    Circuit breaker for cache resilience.

    Prevents cascading failures when the cache is unavailable.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        expected_exception: type[BaseException] = RedisError,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception

        self._failure_count: int = 0
        self._last_failure_time: Optional[datetime] = None
        self._state: CircuitState = CircuitState.CLOSED
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        with self._lock:
            if self._state == CircuitState.OPEN:
                if self._last_failure_time:
                    time_since_failure = (datetime.now() - self._last_failure_time).total_seconds()
                    if time_since_failure >= self.recovery_timeout:
                        self._state = CircuitState.HALF_OPEN
            return self._state

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Execute function with circuit breaker protection.

        Raises:
            CacheUnavailable: If the circuit is open or the call failed
        """
        if self.state == CircuitState.OPEN:
            raise CacheUnavailable("circuit open")

        try:
            result = func(*args, **kwargs)
        except self.expected_exception as exc:
            self._on_failure()
            raise CacheUnavailable(str(exc)) from exc
        self._on_success()
        return result

    def _on_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                logger.info("Circuit breaker recovered, closing circuit")

    def _on_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = datetime.now()

            if self._failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                logger.warning(f"Circuit breaker opened after {self._failure_count} failures")


class CacheUnavailable(Exception):
    """Internal signal that a cache call could not be completed."""


class CacheKeyBuilder:
    """Standardized cache key generation."""

    # Key prefixes for different domains
    PREFIXES = {
        "availability": "avail",
        "slot": "slot",
        "generation": "gen",
    }

    @staticmethod
    def build(*parts: Union[str, int, date]) -> str:
        """
        Build a cache key from parts.

        Examples:
            build('slot', '01HX...', 'v3') -> 'slot:01HX...:v3'
        """
        formatted_parts = []

        for part in parts:
            if isinstance(part, (date, datetime, time)):
                formatted_parts.append(part.isoformat())
            else:
                formatted_parts.append(str(part))

        if parts:
            first = parts[0]
            if isinstance(first, str) and first in CacheKeyBuilder.PREFIXES:
                formatted_parts[0] = CacheKeyBuilder.PREFIXES[first]

        return ":".join(formatted_parts)

    @staticmethod
    def hash_complex_key(data: Dict[str, Any]) -> str:
        """Generate a hash for complex cache keys."""
        sorted_data = json.dumps(data, sort_keys=True, default=str)
        return hashlib.md5(sorted_data.encode()).hexdigest()[:12]


class CacheService:
    """
    Process-wide cache shared by every request handler.

    Construct once per process (API lifespan, worker) and pass it into the
    services that need it.
    """

    # Generation counters outlive every entry written under them.
    GENERATION_TTL_SECONDS = 86400

    def __init__(
        self,
        redis_client: Optional[Redis] = None,
        *,
        redis_url: Optional[str] = None,
        default_ttl: int = 300,
        max_memory_entries: int = 10000,
    ):
        self.logger = logging.getLogger(__name__)
        self.default_ttl = default_ttl
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=5, recovery_timeout=60, expected_exception=RedisError
        )
        self.key_builder = CacheKeyBuilder()

        # In-memory fallback, shared across request threads
        self._memory_lock = threading.Lock()
        # Least recently used first
        self._memory_cache: "OrderedDict[str, str]" = OrderedDict()
        self._memory_expiry: Dict[str, datetime] = {}
        # generation key -> entry keys written under it
        self._memory_dependents: Dict[str, Set[str]] = {}
        self.max_memory_entries = max_memory_entries

        self.redis: Optional[Redis] = redis_client
        if self.redis is None and redis_url:
            self._setup_redis_connection(redis_url)

        self._stats: Dict[str, int] = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "deletes": 0,
            "errors": 0,
            "invalidations": 0,
        }

    @classmethod
    def from_settings(cls, settings: Any) -> "CacheService":
        return cls(redis_url=settings.redis_url, default_ttl=settings.cache_ttl_seconds)

    def _setup_redis_connection(self, redis_url: str) -> None:
        """Setup Redis connection with fallback to in-memory cache."""
        try:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_keepalive=True,
                socket_connect_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=50,
            )
            client.ping()
            self.redis = client
            logger.info("Connected to Redis cache")
        except (RedisError, ConnectionError) as e:
            logger.warning(f"Redis not available: {e}. Using in-memory fallback.")
            self.redis = None

    @property
    def backend(self) -> str:
        return "redis" if self.redis is not None else "memory"

    def close(self) -> None:
        if self.redis is not None:
            try:
                self.redis.close()
            except RedisError as e:
                logger.warning(f"Error closing Redis client: {e}")
        self.clear_memory()

    def clear_memory(self) -> None:
        with self._memory_lock:
            self._memory_cache.clear()
            self._memory_expiry.clear()
            self._memory_dependents.clear()

    def _count(self, stat: str, amount: int = 1) -> None:
        self._stats[stat] = self._stats.get(stat, 0) + amount

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = dict(self._stats)
        lookups = stats["hits"] + stats["misses"]
        stats["hit_rate"] = round(stats["hits"] / lookups, 4) if lookups else 0.0
        stats["backend"] = self.backend
        stats["circuit_state"] = self.circuit_breaker.state.value
        return stats

    # Memory fallback primitives

    def _memory_get(self, key: str) -> Optional[str]:
        with self._memory_lock:
            if key not in self._memory_cache:
                return None
            expires_at = self._memory_expiry.get(key)
            if expires_at is not None and datetime.now() >= expires_at:
                self._memory_pop(key)
                return None
            self._memory_cache.move_to_end(key)
            return self._memory_cache[key]

    def _memory_pop(self, key: str) -> bool:
        # Caller holds _memory_lock. Dropping a generation counter also drops
        # the entries written under it, since a reset counter would reach them.
        self._memory_expiry.pop(key, None)
        existed = self._memory_cache.pop(key, None) is not None
        for entry_key in self._memory_dependents.pop(key, ()):
            self._memory_expiry.pop(entry_key, None)
            self._memory_cache.pop(entry_key, None)
        return existed

    def _memory_store(self, key: str, raw: str, ttl: int) -> None:
        # Caller holds _memory_lock
        self._memory_cache[key] = raw
        self._memory_cache.move_to_end(key)
        self._memory_expiry[key] = datetime.now() + timedelta(seconds=ttl)
        if len(self._memory_cache) > self.max_memory_entries:
            self._memory_evict()

    def _memory_evict(self) -> None:
        """Drop expired entries, then least recently used ones, down to the cap."""
        now = datetime.now()
        expired = [key for key, expires_at in self._memory_expiry.items() if now >= expires_at]
        for key in expired:
            self._memory_pop(key)
        while len(self._memory_cache) > self.max_memory_entries:
            self._memory_pop(next(iter(self._memory_cache)))

    def _memory_set(self, key: str, raw: str, ttl: int) -> None:
        with self._memory_lock:
            self._memory_store(key, raw, ttl)

    def _memory_delete(self, keys: Sequence[str]) -> int:
        removed = 0
        with self._memory_lock:
            for key in keys:
                if self._memory_pop(key):
                    removed += 1
        return removed

    def _memory_incr(self, key: str, ttl: int) -> int:
        with self._memory_lock:
            expires_at = self._memory_expiry.get(key)
            current = self._memory_cache.get(key)
            if current is None or (expires_at is not None and datetime.now() >= expires_at):
                current = "0"
            value = int(current) + 1
            # Entries under the previous generation are unreachable from here on
            for entry_key in self._memory_dependents.pop(key, ()):
                self._memory_pop(entry_key)
            self._memory_store(key, str(value), ttl)
            return value

    def _memory_track(self, generation_keys: Sequence[str], entry_key: str) -> None:
        with self._memory_lock:
            if entry_key not in self._memory_cache:
                return
            for generation_key in generation_keys:
                self._memory_dependents.setdefault(generation_key, set()).add(entry_key)

    # Core Cache Operations

    @BaseService.measure_operation("cache_get")
    def get(self, key: str) -> Optional[Any]:
        """Get a value, or None on miss or cache failure."""
        redis_client = self.redis
        try:
            if redis_client is not None:
                raw = self.circuit_breaker.call(redis_client.get, key)
            else:
                raw = self._memory_get(key)
        except CacheUnavailable as e:
            logger.error(f"Cache get error for key {key}: {e}")
            self._count("errors")
            return None

        if raw is None:
            self._count("misses")
            prometheus_metrics.record_cache_event("miss")
            return None
        self._count("hits")
        prometheus_metrics.record_cache_event("hit")
        return json.loads(raw)

    @BaseService.measure_operation("cache_set")
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a JSON-serializable value with a TTL."""
        ttl = ttl or self.default_ttl
        serialized = json.dumps(value, default=str)
        redis_client = self.redis
        try:
            if redis_client is not None:
                self.circuit_breaker.call(redis_client.setex, key, ttl, serialized)
            else:
                self._memory_set(key, serialized, ttl)
        except CacheUnavailable as e:
            logger.error(f"Cache set error for key {key}: {e}")
            self._count("errors")
            return False
        self._count("sets")
        return True

    @BaseService.measure_operation("cache_delete")
    def delete(self, *keys: str) -> int:
        """Delete keys; returns how many existed."""
        if not keys:
            return 0
        redis_client = self.redis
        try:
            if redis_client is not None:
                removed = int(self.circuit_breaker.call(redis_client.delete, *keys))
            else:
                removed = self._memory_delete(keys)
        except CacheUnavailable as e:
            logger.error(f"Cache delete error for keys {keys}: {e}")
            self._count("errors")
            return 0
        self._count("deletes", removed)
        return removed

    # Generations

    def _generation_key(self, *parts: str) -> str:
        return self.key_builder.build("generation", *parts)

    def get_generations(self, keys: Sequence[str]) -> Optional[List[int]]:
        """
        Current values of the given generation counters.

        Returns None when the cache cannot answer; the caller must then skip
        the cache entirely for this read.
        """
        redis_client = self.redis
        try:
            if redis_client is not None:
                raw_values = self.circuit_breaker.call(redis_client.mget, list(keys))
            else:
                raw_values = [self._memory_get(key) for key in keys]
        except CacheUnavailable as e:
            logger.error(f"Cache generation read failed: {e}")
            self._count("errors")
            return None
        return [int(value) if value is not None else 0 for value in raw_values]

    def bump_generations(self, keys: Iterable[str]) -> None:
        """Atomically advance each generation counter."""
        key_list = list(dict.fromkeys(keys))
        if not key_list:
            return
        redis_client = self.redis
        try:
            if redis_client is not None:

                def _bump() -> None:
                    pipe = redis_client.pipeline()
                    for key in key_list:
                        pipe.incr(key)
                        pipe.expire(key, self.GENERATION_TTL_SECONDS)
                    pipe.execute()

                self.circuit_breaker.call(_bump)
            else:
                for key in key_list:
                    self._memory_incr(key, self.GENERATION_TTL_SECONDS)
        except CacheUnavailable as e:
            logger.error(f"Cache invalidation failed for {key_list}: {e}")
            self._count("errors")
            return
        self._count("invalidations", len(key_list))
        prometheus_metrics.record_cache_event("invalidate")

    def read_through(
        self,
        key_parts: Sequence[Union[str, int, date]],
        generation_keys: Sequence[str],
        loader: Callable[[], Any],
        ttl: Optional[int] = None,
    ) -> Any:
        """
        Return the cached value for ``key_parts`` or load, store and return it.

        Generations are read before ``loader`` runs, so a value loaded before a
        concurrent commit is stored under the pre-commit generation.
        """
        generations = self.get_generations(generation_keys)
        if generations is None:
            return loader()

        key = self.key_builder.build(*key_parts, "v" + ".".join(str(g) for g in generations))
        cached = self.get(key)
        if cached is not None:
            return cached

        value = loader()
        if value is not None and self.set(key, value, ttl) and self.redis is None:
            self._memory_track(generation_keys, key)
        return value

    # Domain keys

    def slot_generation_keys(self, slot_id: str) -> List[str]:
        return [self._generation_key("slot", slot_id)]

    def slot_listing_generation_keys(self, consultant_id: Optional[str]) -> List[str]:
        if consultant_id:
            return [self._generation_key("slot", "consultant", consultant_id)]
        return [self._generation_key("slot", "all")]

    def availability_generation_keys(self, availability_id: str) -> List[str]:
        return [self._generation_key("avail", availability_id)]

    def availability_listing_generation_keys(self, consultant_id: Optional[str]) -> List[str]:
        if consultant_id:
            return [self._generation_key("avail", "consultant", consultant_id)]
        return [self._generation_key("avail", "all")]

    def invalidate_slots(self, consultant_id: str, slot_ids: Iterable[str] = ()) -> None:
        """Make every cached entry for these slots and the consultant's slot listings unreachable."""
        keys: List[str] = []
        for slot_id in slot_ids:
            keys.extend(self.slot_generation_keys(slot_id))
        keys.extend(self.slot_listing_generation_keys(consultant_id))
        keys.extend(self.slot_listing_generation_keys(None))
        self.bump_generations(keys)

    def invalidate_availability(
        self, consultant_id: str, availability_ids: Iterable[str] = ()
    ) -> None:
        keys: List[str] = []
        for availability_id in availability_ids:
            keys.extend(self.availability_generation_keys(availability_id))
        keys.extend(self.availability_listing_generation_keys(consultant_id))
        keys.extend(self.availability_listing_generation_keys(None))
        self.bump_generations(keys)
