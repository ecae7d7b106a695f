"""
Redis caching layer for the billing provider's pricing config.

Lets several service instances share one fetched pricing config instead of
each calling the provider. Cache errors are logged and treated as misses.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional

import redis.asyncio as redis

from shared.errors import DependencyStartError
from shared.logging import get_logger


class PricingConfigCache:
    """Redis-backed cache for the provider pricing config."""

    def __init__(self, redis_url: str, ttl_seconds: int = 300):
        self.redis_url = redis_url
        self.logger = get_logger("entitlements.cache.redis")
        self.redis: Optional[redis.Redis] = None

        self.default_ttl = ttl_seconds
        self.max_ttl = 3600
        self.min_ttl = 30

        self.PRICING_KEY = "pricing:config"

    async def start(self):
        """Start the Redis cache."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis cache started")

        except Exception as e:
            self.logger.error("Failed to start Redis cache", error=str(e))
            raise DependencyStartError("redis", str(e))

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.logger.info("Redis cache stopped")

    async def get_pricing_config(self) -> Optional[Dict[str, Any]]:
        """Get the cached pricing config, or None on miss or error."""
        if self.redis is None:
            return None
        try:
            cached_data = await self.redis.get(self.PRICING_KEY)
            if not cached_data:
                return None

            data = json.loads(cached_data)
            self.logger.debug("Cache hit for pricing config", cached_at=data.get("cached_at"))
            return data.get("config")

        except Exception as e:
            self.logger.error("Error getting cached pricing config", error=str(e))
            return None

    async def set_pricing_config(self, config: Dict[str, Any], ttl_seconds: Optional[int] = None) -> bool:
        """Cache the pricing config."""
        if self.redis is None:
            return False
        try:
            ttl_seconds = ttl_seconds or self.default_ttl
            ttl_seconds = max(self.min_ttl, min(self.max_ttl, ttl_seconds))

            data = {
                "config": config,
                "cached_at": datetime.now().isoformat()
            }

            await self.redis.setex(self.PRICING_KEY, ttl_seconds, json.dumps(data))

            self.logger.debug("Cached pricing config", ttl=ttl_seconds)
            return True

        except Exception as e:
            self.logger.error("Error caching pricing config", error=str(e))
            return False

    async def clear_cache(self) -> bool:
        """Drop the cached pricing config."""
        if self.redis is None:
            return False
        try:
            await self.redis.delete(self.PRICING_KEY)
            self.logger.info("Pricing cache cleared")
            return True

        except Exception as e:
            self.logger.error("Error clearing cache", error=str(e))
            return False

    async def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False
