"""Redis cache service for hotel listings near destinations."""

import json
import logging
from typing import Any

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)


class CacheService:
    """Redis-backed cache with typed TTLs."""

    def __init__(self, url: str | None = None):
        self._url = url or settings.redis_url
        self._redis: redis.Redis | None = None
        self._disabled = False

    async def _get_redis(self) -> redis.Redis | None:
        if self._disabled:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self._url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, cache disabled: {e}")
                self._redis = None
                self._disabled = True
                return None
        return self._redis

    async def get(self, key: str) -> Any | None:
        """Get a value from cache. Returns None on miss or error."""
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception:
            return None

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """Set a value in cache with TTL. Returns False on error."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except Exception:
            return False

    # Typed helpers

    def hotel_listing_key(self, lat: float, lng: float, radius_km: int, ratings: list[str]) -> str:
        return f"hotels:geo:{lat:.4f}:{lng:.4f}:{radius_km}:{','.join(ratings) or 'any'}"

    async def get_hotel_listings(self, lat: float, lng: float, radius_km: int, ratings: list[str]) -> list[dict] | None:
        return await self.get(self.hotel_listing_key(lat, lng, radius_km, ratings))

    async def set_hotel_listings(self, lat: float, lng: float, radius_km: int, ratings: list[str], data: list[dict]):
        await self.set(self.hotel_listing_key(lat, lng, radius_km, ratings), data, settings.hotel_search_cache_ttl)

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


cache_service = CacheService()
