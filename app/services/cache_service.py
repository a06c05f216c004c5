"""
Multi-Tenant Cache Service for the Optimization Engine.

IMPORTANT: All cache keys MUST include tenant_id to prevent cross-tenant
data leakage. Keys are built with build_key() and always carry the tenant
and warehouse identifiers.

Cached values:
1. Consumption totals per (tenant, warehouse, product) - short TTL, reflects recent shipments
2. Location distance ranks per (tenant, warehouse) - long TTL, layout is static
3. Pairwise route distances per (tenant, warehouse) - long TTL

Entries are never invalidated eagerly; staleness is bounded by TTL. Two
concurrent misses both recompute and the last write wins.

Supports:
1. Redis (preferred for production)
2. In-memory fallback (for development/testing)

Usage:
    cache = get_cache()
    qty = await cache.get_consumption(tenant_id, warehouse_id, product_id)
    if qty is None:
        qty = await compute()
        await cache.set_consumption(tenant_id, warehouse_id, product_id, qty)
"""
import json
from typing import Any, Optional, Dict, Iterable, Union
from datetime import datetime, timedelta, timezone
from abc import ABC, abstractmethod
import asyncio
import logging

from app.config import settings

logger = logging.getLogger(__name__)

KeyPart = Union[str, int, None, Any]

CONSUMPTION_NAMESPACE = "slotting:consumption"
DISTANCE_RANK_NAMESPACE = "slotting:distance"
DISTANCE_MATRIX_NAMESPACE = "route:distance-matrix"


class CacheBackend(ABC):
    """Abstract cache backend interface."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (seconds)."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        pass

    @abstractmethod
    async def clear_pattern(self, pattern: str) -> int:
        """Clear all keys matching pattern."""
        pass


class InMemoryCache(CacheBackend):
    """
    In-memory cache for development/fallback.

    Values are stored as JSON text so callers get fresh copies back,
    the same as with Redis.
    """

    def __init__(self):
        self._cache: Dict[str, tuple[str, datetime]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if key in self._cache:
                raw, expires_at = self._cache[key]
                if expires_at > datetime.now(timezone.utc):
                    return json.loads(raw)
                else:
                    del self._cache[key]
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        async with self._lock:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
            self._cache[key] = (json.dumps(value), expires_at)
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def clear_pattern(self, pattern: str) -> int:
        """Clear keys matching pattern (simple prefix match)."""
        async with self._lock:
            prefix = pattern.rstrip('*')
            keys_to_delete = [k for k in self._cache.keys() if k.startswith(prefix)]
            for key in keys_to_delete:
                del self._cache[key]
            return len(keys_to_delete)

    async def cleanup_expired(self) -> int:
        """Remove expired entries. Call periodically to prevent memory bloat."""
        async with self._lock:
            now = datetime.now(timezone.utc)
            expired_keys = [
                k for k, (_, expires_at) in self._cache.items()
                if expires_at <= now
            ]
            for key in expired_keys:
                del self._cache[key]
            return len(expired_keys)


class RedisCache(CacheBackend):
    """
    Redis cache backend for production.

    Connection or serialization failures are logged and behave like a miss
    so an unavailable cache never fails an optimization run.
    """

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._client = None

    async def _get_client(self):
        if self._client is None:
            import redis.asyncio as redis
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        try:
            client = await self._get_client()
            value = await client.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.warning(f"Redis get failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        try:
            client = await self._get_client()
            await client.set(key, json.dumps(value), ex=ttl)
            return True
        except Exception as e:
            logger.warning(f"Redis set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            client = await self._get_client()
            await client.delete(key)
            return True
        except Exception as e:
            logger.warning(f"Redis delete failed for {key}: {e}")
            return False

    async def clear_pattern(self, pattern: str) -> int:
        try:
            client = await self._get_client()
            cursor = 0
            deleted = 0
            while True:
                cursor, keys = await client.scan(cursor, match=pattern, count=100)
                if keys:
                    await client.delete(*keys)
                    deleted += len(keys)
                if cursor == 0:
                    break
            return deleted
        except Exception as e:
            logger.warning(f"Redis clear_pattern failed for {pattern}: {e}")
            return 0


class CacheService:
    """
    Multi-Tenant Cache Service.

    Cache keys follow the format:

        {prefix}:{namespace}:{tenant_id}:{warehouse_id}[:{identifier}]

    Examples:
        wmsopt:slotting:consumption:t1:wh1:prod9
        wmsopt:slotting:distance:t1:wh1
        wmsopt:route:distance-matrix:t1:wh1
    """

    def __init__(self, backend: CacheBackend, prefix: Optional[str] = None):
        self._backend = backend
        self._prefix = prefix or settings.CACHE_NAMESPACE

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    def build_key(self, namespace: str, parts: Iterable[KeyPart]) -> str:
        """
        Create a namespaced key. None parts render as ALL.

        IMPORTANT: the first part MUST be the tenant_id.
        """
        parts = list(parts)
        if not parts or parts[0] is None:
            logger.warning(f"Cache key created without tenant_id: {namespace}")
        normalized = ["ALL" if p is None else str(p) for p in parts]
        return ":".join([self._prefix, namespace, *normalized])

    async def get_json(self, key: str) -> Optional[Any]:
        """Get a JSON value, None on miss."""
        return await self._backend.get(key)

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Store a JSON-serializable value with TTL (seconds)."""
        return await self._backend.set(key, value, ttl_seconds)

    async def delete(self, key: str) -> bool:
        return await self._backend.delete(key)

    async def clear_tenant_cache(self, tenant_id: KeyPart) -> int:
        """Clear ALL engine cache data for a tenant."""
        count = 0
        for namespace in (CONSUMPTION_NAMESPACE, DISTANCE_RANK_NAMESPACE, DISTANCE_MATRIX_NAMESPACE):
            count += await self._backend.clear_pattern(f"{self._prefix}:{namespace}:{tenant_id}:*")
        return count

    # ==================== Consumption Cache ====================

    async def get_consumption(
        self,
        tenant_id: KeyPart,
        warehouse_id: KeyPart,
        product_id: KeyPart,
    ) -> Optional[float]:
        """Get cached consumption total for a product."""
        key = self.build_key(CONSUMPTION_NAMESPACE, [tenant_id, warehouse_id, product_id])
        value = await self.get_json(key)
        return float(value) if value is not None else None

    async def set_consumption(
        self,
        tenant_id: KeyPart,
        warehouse_id: KeyPart,
        product_id: KeyPart,
        quantity: float,
        ttl: Optional[int] = None
    ) -> bool:
        """Cache consumption total for a product."""
        key = self.build_key(CONSUMPTION_NAMESPACE, [tenant_id, warehouse_id, product_id])
        ttl = ttl or settings.CONSUMPTION_CACHE_TTL
        return await self.set_json(key, quantity, ttl)

    # ==================== Distance Cache ====================

    async def get_distance_ranks(self, tenant_id: KeyPart, warehouse_id: KeyPart) -> Optional[Dict[str, int]]:
        """Get cached location -> distance rank map for a warehouse."""
        key = self.build_key(DISTANCE_RANK_NAMESPACE, [tenant_id, warehouse_id])
        return await self.get_json(key)

    async def set_distance_ranks(
        self,
        tenant_id: KeyPart,
        warehouse_id: KeyPart,
        ranks: Dict[str, int],
        ttl: Optional[int] = None
    ) -> bool:
        key = self.build_key(DISTANCE_RANK_NAMESPACE, [tenant_id, warehouse_id])
        ttl = ttl or settings.DISTANCE_CACHE_TTL
        return await self.set_json(key, ranks, ttl)

    async def get_distance_matrix(self, tenant_id: KeyPart, warehouse_id: KeyPart) -> Optional[Dict[str, float]]:
        """Get cached pairwise distances keyed 'from->to'."""
        key = self.build_key(DISTANCE_MATRIX_NAMESPACE, [tenant_id, warehouse_id])
        return await self.get_json(key)

    async def set_distance_matrix(
        self,
        tenant_id: KeyPart,
        warehouse_id: KeyPart,
        matrix: Dict[str, float],
        ttl: Optional[int] = None
    ) -> bool:
        key = self.build_key(DISTANCE_MATRIX_NAMESPACE, [tenant_id, warehouse_id])
        ttl = ttl or settings.DISTANCE_CACHE_TTL
        return await self.set_json(key, matrix, ttl)


# Singleton cache instance
_cache_instance: Optional[CacheService] = None


def get_cache() -> CacheService:
    """Get the cache service singleton."""
    global _cache_instance

    if _cache_instance is None:
        if settings.REDIS_URL and settings.CACHE_ENABLED:
            backend = RedisCache(settings.REDIS_URL)
            logger.info("Cache initialized with Redis backend")
        else:
            backend = InMemoryCache()
            logger.info("Cache initialized with in-memory backend")

        _cache_instance = CacheService(backend)

    return _cache_instance


def reset_cache() -> None:
    """Drop the singleton so the next get_cache() re-reads settings."""
    global _cache_instance
    _cache_instance = None
